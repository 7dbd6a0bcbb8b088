#!/usr/bin/env python
#
# Stellar Batch CLI - Utilities
# © 2025 Shinichi Morita (shin3tky)
#

"""
Utility functions for coordinate formatting, timestamps and file names.
"""

import os
from datetime import datetime
from typing import Callable, Optional

import astropy.units as u
from astropy.coordinates import Angle

Clock = Callable[[], datetime]


def format_ra_sexagesimal(ra_degrees: float) -> str:
    """Format a right ascension in degrees as ``HH:MM:SS.sss``.

    Examples:
        >>> format_ra_sexagesimal(56.75)
        '03:47:00.000'
    """
    angle = Angle(ra_degrees, unit=u.deg).wrap_at(360 * u.deg)
    return angle.to_string(unit=u.hourangle, sep=":", precision=3, pad=True)


def format_dec_sexagesimal(dec_degrees: float) -> str:
    """Format a declination in degrees as ``+DD:MM:SS.sss``.

    Examples:
        >>> format_dec_sexagesimal(24.1)
        '+24:06:00.000'
    """
    angle = Angle(dec_degrees, unit=u.deg)
    return angle.to_string(
        unit=u.deg, sep=":", precision=3, pad=True, alwayssign=True
    )


def local_now() -> datetime:
    """Current local time, second precision."""
    return datetime.now().astimezone().replace(microsecond=0)


def format_timestamp(moment: datetime) -> str:
    """ISO 8601 rendering used for the ``date processed`` report field."""
    return moment.isoformat(timespec="seconds")


def format_seconds(seconds: float) -> str:
    return f"{seconds:.2f}"


def image_name(path: str) -> str:
    """Identity of an image in reports: its file name."""
    return os.path.basename(os.path.normpath(path))


def derived_report_path(image_path: str, suffix: str) -> str:
    """Per-image report path: the image path with ``suffix`` appended."""
    return f"{image_path}{suffix}"


def normalize_extension(path: str, known: Optional[list] = None) -> str:
    """Return the lower-case extension, keeping compound ones like ``.fits.gz``."""
    lowered = path.lower()
    for extension in sorted(known or [], key=len, reverse=True):
        if lowered.endswith(extension):
            return extension
    return os.path.splitext(lowered)[1]


__all__ = [
    "Clock",
    "derived_report_path",
    "format_dec_sexagesimal",
    "format_ra_sexagesimal",
    "format_seconds",
    "format_timestamp",
    "image_name",
    "local_now",
    "normalize_extension",
]
