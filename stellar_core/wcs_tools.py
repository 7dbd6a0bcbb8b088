#!/usr/bin/env python
#
# Stellar Batch CLI - WCS helpers
# © 2025 Shinichi Morita (shin3tky)
#

"""
Derive field solutions from a WCS and map pixels to sky coordinates.
"""

import logging
import math
from typing import Tuple

import numpy as np
from astropy.wcs import WCS
from astropy.wcs.utils import proj_plane_pixel_scales

from .schema import PARITY_FLIPPED, PARITY_NORMAL, SolveOutcome

logger = logging.getLogger(__name__)


def orientation_and_parity(cd: np.ndarray) -> Tuple[float, str]:
    """Field rotation (degrees E of N) and parity from a 2x2 CD matrix.

    Follows the astrometry.net convention: a negative determinant is the
    normal sky orientation (north up, east left).
    """
    det = cd[0, 0] * cd[1, 1] - cd[0, 1] * cd[1, 0]
    parity_sign = 1.0 if det >= 0 else -1.0
    t = parity_sign * cd[0, 0] + cd[1, 1]
    a = parity_sign * cd[1, 0] - cd[0, 1]
    orientation = -math.degrees(math.atan2(a, t))
    parity = PARITY_FLIPPED if det >= 0 else PARITY_NORMAL
    return orientation, parity


def outcome_from_wcs(wcs: WCS, width: int, height: int) -> SolveOutcome:
    """Build a :class:`SolveOutcome` for an image of ``width`` x ``height``."""
    center_ra, center_dec = wcs.all_pix2world((width - 1) / 2.0, (height - 1) / 2.0, 0)
    scales_deg = proj_plane_pixel_scales(wcs.celestial)
    pixel_scale = float(np.mean(scales_deg[:2])) * 3600.0
    orientation, parity = orientation_and_parity(wcs.celestial.pixel_scale_matrix)

    outcome = SolveOutcome(
        ra_degrees=float(center_ra) % 360.0,
        dec_degrees=float(center_dec),
        field_width_arcmin=width * pixel_scale / 60.0,
        field_height_arcmin=height * pixel_scale / 60.0,
        pixel_scale=pixel_scale,
        orientation_degrees=orientation,
        parity=parity,
        success=True,
        wcs=wcs,
    )
    logger.debug("Solution from WCS: %s", outcome)
    return outcome


def _linear_cd(outcome: SolveOutcome) -> np.ndarray:
    """CD matrix (degrees/pixel) equivalent to a solution's scale/rotation/parity."""
    scale = outcome.pixel_scale / 3600.0
    theta = math.radians(outcome.orientation_degrees)
    sign = -1.0 if outcome.parity == PARITY_NORMAL else 1.0
    return np.array(
        [
            [sign * scale * math.cos(theta), scale * math.sin(theta)],
            [-sign * scale * math.sin(theta), scale * math.cos(theta)],
        ]
    )


def approximate_wcs(outcome: SolveOutcome, width: int, height: int) -> WCS:
    """Tangent-plane WCS reconstructed from a solution without its own WCS."""
    wcs = WCS(naxis=2)
    wcs.wcs.ctype = ["RA---TAN", "DEC--TAN"]
    wcs.wcs.crval = [outcome.ra_degrees, outcome.dec_degrees]
    wcs.wcs.crpix = [(width + 1) / 2.0, (height + 1) / 2.0]
    wcs.wcs.cd = _linear_cd(outcome)
    return wcs


def pixels_to_sky(
    outcome: SolveOutcome, xs: np.ndarray, ys: np.ndarray, width: int, height: int
) -> Tuple[np.ndarray, np.ndarray]:
    """Map zero-based pixel coordinates to (RA, Dec) degrees."""
    wcs = outcome.wcs if outcome.wcs is not None else approximate_wcs(outcome, width, height)
    ra, dec = wcs.all_pix2world(np.asarray(xs), np.asarray(ys), 0)
    return np.mod(ra, 360.0), dec


__all__ = [
    "approximate_wcs",
    "orientation_and_parity",
    "outcome_from_wcs",
    "pixels_to_sky",
]
