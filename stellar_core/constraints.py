#!/usr/bin/env python
#
# Stellar Batch CLI - Search constraint composition
# © 2025 Shinichi Morita (shin3tky)
#

"""
Compose per-image solver search constraints.

Right ascension is carried internally in hours everywhere (image hints,
:class:`~stellar_core.schema.SkyPosition`). Values entering from the command
line or configuration are in degrees and are converted here with
:func:`ra_degrees_to_hours`; adapters that need degrees convert back with
:func:`ra_hours_to_degrees`.

Precedence, applied per field group:

* An explicit position (RA and Dec) wins outright; otherwise the image's
  embedded position hint is adopted unchanged.
* Explicit scale bounds win; otherwise the embedded scale hint is adopted
  when both of its bounds are present. Scale bounds always carry a unit,
  ``degwidth`` when none is known.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .schema import (
    DEFAULT_SCALE_UNITS,
    ImageHints,
    ImageRecord,
    RunConfig,
    ScaleBounds,
    SearchConstraints,
    SkyPosition,
)

logger = logging.getLogger(__name__)

DEGREES_PER_HOUR = 15.0

CliPosition = Tuple[float, float]
CliScale = Tuple[float, float, Optional[str]]


def ra_degrees_to_hours(ra_degrees: float) -> float:
    """Convert right ascension from degrees to hours, wrapped into [0, 24)."""
    hours = (float(ra_degrees) % 360.0) / DEGREES_PER_HOUR
    # Tiny negative inputs round up to exactly 360 degrees
    return 0.0 if hours >= 24.0 else hours


def ra_hours_to_degrees(ra_hours: float) -> float:
    """Convert right ascension from hours to degrees."""
    return float(ra_hours) * DEGREES_PER_HOUR


@dataclass(frozen=True)
class ConstraintTemplate:
    """Run-wide explicit constraints, shared read-only by every image.

    Attributes:
        position: Explicit (RA degrees, Dec degrees), or None.
        scale: Explicit (low, high, units), or None.
        radius_degrees: Search radius applied to any adopted position.
    """

    position: Optional[CliPosition] = None
    scale: Optional[CliScale] = None
    radius_degrees: Optional[float] = None

    @classmethod
    def from_run_config(cls, run_config: RunConfig) -> "ConstraintTemplate":
        return cls(
            position=run_config.cli_position(),
            scale=run_config.cli_scale(),
            radius_degrees=run_config.radius_degrees,
        )


def _position_from_cli(
    position: CliPosition, radius_degrees: Optional[float]
) -> SkyPosition:
    ra_degrees, dec_degrees = position
    return SkyPosition(
        ra_hours=ra_degrees_to_hours(ra_degrees),
        dec_degrees=float(dec_degrees),
        radius_degrees=radius_degrees,
    )


def _scale_from_cli(scale: CliScale) -> ScaleBounds:
    low, high, units = scale
    return ScaleBounds(
        low=float(low), high=float(high), units=units or DEFAULT_SCALE_UNITS
    )


def compose(
    cli_position: Optional[CliPosition],
    cli_scale: Optional[CliScale],
    hints: Union[ImageHints, ImageRecord, None],
    *,
    radius_degrees: Optional[float] = None,
) -> SearchConstraints:
    """Merge explicit values with an image's embedded hints.

    Args:
        cli_position: Explicit (RA degrees, Dec degrees), or None.
        cli_scale: Explicit (low, high, units), or None.
        hints: The image's hints (or the record carrying them).
        radius_degrees: Search radius attached to the adopted position.

    Returns:
        The composed constraints; empty when neither source has values.
    """
    if isinstance(hints, ImageRecord):
        hints = hints.hints
    hints = hints or ImageHints()

    position: Optional[SkyPosition] = None
    if cli_position is not None:
        position = _position_from_cli(cli_position, radius_degrees)
        logger.debug(
            "Using explicit position RA=%.6fh Dec=%.6f (from %.6f deg)",
            position.ra_hours,
            position.dec_degrees,
            cli_position[0],
        )
    elif hints.has_position:
        position = SkyPosition(
            ra_hours=hints.ra_hours,
            dec_degrees=hints.dec_degrees,
            radius_degrees=radius_degrees,
        )
        logger.debug(
            "Using embedded position hint RA=%.6fh Dec=%.6f",
            position.ra_hours,
            position.dec_degrees,
        )

    scale: Optional[ScaleBounds] = None
    if cli_scale is not None:
        scale = _scale_from_cli(cli_scale)
        logger.debug(
            "Using explicit scale %s-%s %s", scale.low, scale.high, scale.units
        )
    elif hints.has_scale:
        scale = ScaleBounds(
            low=hints.scale_low,
            high=hints.scale_high,
            units=hints.scale_units or DEFAULT_SCALE_UNITS,
        )
        logger.debug(
            "Using embedded scale hint %s-%s %s", scale.low, scale.high, scale.units
        )

    return SearchConstraints(position=position, scale=scale)


class SearchConstraintComposer:
    """Compose constraints for each image from a shared template."""

    def __init__(self, template: Optional[ConstraintTemplate] = None) -> None:
        self.template = template or ConstraintTemplate()

    def compose(
        self, hints: Union[ImageHints, ImageRecord, None]
    ) -> SearchConstraints:
        return compose(
            self.template.position,
            self.template.scale,
            hints,
            radius_degrees=self.template.radius_degrees,
        )


__all__ = [
    "ConstraintTemplate",
    "SearchConstraintComposer",
    "compose",
    "ra_degrees_to_hours",
    "ra_hours_to_degrees",
]
