#!/usr/bin/env python
#
# Stellar Batch CLI - Report Formats
# © 2025 Shinichi Morita (shin3tky)
#

"""
Built-in report encodings: tabular text, TOML and YAML.

All three carry the same content in the same order: image identity, date
processed, field center, field size, pixel scale, rotation and parity,
then the star count and one entry per star. Labels are fixed and never
localized so reports stay comparable byte for byte across runs.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, List

import yaml

from ..schema import SolveOutcome, StarRecord
from ..utils import format_dec_sexagesimal, format_ra_sexagesimal, format_timestamp
from .base import DataclassReportFormat, ReportFormatConfig

logger = logging.getLogger(__name__)

SECTION_SEPARATOR = "+" * 59


class TextReportFormat(DataclassReportFormat[ReportFormatConfig]):
    """Line-oriented report matching the classic solver console output.

    Example output::

        +++++++++++++++++++++++++++++++++++++++++++++++++++++++++++
        Image: m45.fits
        Date processed: 2025-01-04T21:13:08+09:00
        Field center: (RA,Dec) = (56.750000, 24.116667) deg.
        Field size: 180.000000 x 120.000000 arcminutes
        Pixel Scale: 3.600000"
        Field rotation angle: up is 0.500000 degrees E of N
        Field parity: normal
        +++++++++++++++++++++++++++++++++++++++++++++++++++++++++++
        Stars found: 1
        Star #0: (10.000000 x, 20.000000 y), (ra: 03:47:00.000,dec: +24:07:00.000), mag: 12.000000, peak: 200.000000, hfr: 1.800000
    """

    plugin_name = "text"
    name = "Text Report"
    version = "1.0.0"
    suffix = ".txt"
    ConfigType = ReportFormatConfig

    def render_solve(
        self, image_name: str, outcome: SolveOutcome, processed_at: datetime
    ) -> str:
        n = self.number
        lines = [
            SECTION_SEPARATOR,
            f"Image: {image_name}",
            f"Date processed: {format_timestamp(processed_at)}",
            f"Field center: (RA,Dec) = ({n(outcome.ra_degrees)}, "
            f"{n(outcome.dec_degrees)}) deg.",
            f"Field size: {n(outcome.field_width_arcmin)} x "
            f"{n(outcome.field_height_arcmin)} arcminutes",
            f'Pixel Scale: {n(outcome.pixel_scale)}"',
            f"Field rotation angle: up is {n(outcome.orientation_degrees)} "
            "degrees E of N",
            f"Field parity: {outcome.parity}",
        ]
        return "\n".join(lines) + "\n"

    def render_stars(self, image_name: str, stars: List[StarRecord]) -> str:
        n = self.number
        lines = [SECTION_SEPARATOR, f"Stars found: {len(stars)}"]
        for index, star in enumerate(stars):
            # trailing space kept from the console format
            lines.append(
                f"Star #{index}: ({n(star.x)} x, {n(star.y)} y), "
                f"(ra: {format_ra_sexagesimal(star.ra_degrees)},"
                f"dec: {format_dec_sexagesimal(star.dec_degrees)}), "
                f"mag: {n(star.magnitude)}, peak: {n(star.peak)}, "
                f"hfr: {n(star.hfr)} "
            )
        return "\n".join(lines) + "\n"

    def contains_report(self, text: str, image_name: str) -> bool:
        return f"\nImage: {image_name}\n" in f"\n{text}"


class TomlReportFormat(DataclassReportFormat[ReportFormatConfig]):
    """TOML report: one ``["<image>".solution]`` table per image.

    The star list is an array of tables under ``["<image>".stars.list]``.
    """

    plugin_name = "toml"
    name = "TOML Report"
    version = "1.0.0"
    suffix = ".toml"
    ConfigType = ReportFormatConfig

    @staticmethod
    def _key(image_name: str) -> str:
        # JSON string escaping is valid TOML basic-string escaping
        return json.dumps(image_name, ensure_ascii=False)

    @staticmethod
    def _string(value: str) -> str:
        return json.dumps(value, ensure_ascii=False)

    def render_solve(
        self, image_name: str, outcome: SolveOutcome, processed_at: datetime
    ) -> str:
        n = self.number
        key = self._key(image_name)
        lines = [
            f"[{key}.solution]",
            f"date_processed = {self._string(format_timestamp(processed_at))}",
            f"ra = {n(outcome.ra_degrees)}",
            f"dec = {n(outcome.dec_degrees)}",
            f"field_width = {n(outcome.field_width_arcmin)}",
            f"field_height = {n(outcome.field_height_arcmin)}",
            f"pixel_scale = {n(outcome.pixel_scale)}",
            f"orientation = {n(outcome.orientation_degrees)}",
            f"parity = {self._string(outcome.parity)}",
            "",
        ]
        return "\n".join(lines) + "\n"

    def render_stars(self, image_name: str, stars: List[StarRecord]) -> str:
        n = self.number
        key = self._key(image_name)
        lines = [f"[{key}.stars]", f"count = {len(stars)}", ""]
        for index, star in enumerate(stars):
            lines.extend(
                [
                    f"[[{key}.stars.list]]",
                    f"index = {index}",
                    f"x = {n(star.x)}",
                    f"y = {n(star.y)}",
                    f"ra = {self._string(format_ra_sexagesimal(star.ra_degrees))}",
                    f"dec = {self._string(format_dec_sexagesimal(star.dec_degrees))}",
                    f"mag = {n(star.magnitude)}",
                    f"peak = {n(star.peak)}",
                    f"hfr = {n(star.hfr)}",
                    "",
                ]
            )
        return "\n".join(lines) + "\n"

    def contains_report(self, text: str, image_name: str) -> bool:
        return f"\n[{self._key(image_name)}.solution]\n" in f"\n{text}"


class YamlReportFormat(DataclassReportFormat[ReportFormatConfig]):
    """YAML report: one document per image.

    The solve section opens the document (``---``) and the star section
    continues the same top-level mapping, so an aggregate file reads back
    with ``yaml.safe_load_all``.
    """

    plugin_name = "yaml"
    name = "YAML Report"
    version = "1.0.0"
    suffix = ".yaml"
    ConfigType = ReportFormatConfig

    def _round(self, value: float) -> float:
        return round(float(value), self.config.precision)

    @staticmethod
    def _dump(payload: Dict[str, Any]) -> str:
        return yaml.safe_dump(
            payload,
            sort_keys=False,
            default_flow_style=False,
            allow_unicode=True,
        )

    def render_solve(
        self, image_name: str, outcome: SolveOutcome, processed_at: datetime
    ) -> str:
        r = self._round
        payload = {
            "image": image_name,
            "date_processed": format_timestamp(processed_at),
            "solution": {
                "ra": r(outcome.ra_degrees),
                "dec": r(outcome.dec_degrees),
                "field_width": r(outcome.field_width_arcmin),
                "field_height": r(outcome.field_height_arcmin),
                "pixel_scale": r(outcome.pixel_scale),
                "orientation": r(outcome.orientation_degrees),
                "parity": outcome.parity,
            },
        }
        return "---\n" + self._dump(payload)

    def render_stars(self, image_name: str, stars: List[StarRecord]) -> str:
        r = self._round
        payload = {
            "stars": {
                "count": len(stars),
                "list": [
                    {
                        "index": index,
                        "x": r(star.x),
                        "y": r(star.y),
                        "ra": format_ra_sexagesimal(star.ra_degrees),
                        "dec": format_dec_sexagesimal(star.dec_degrees),
                        "mag": r(star.magnitude),
                        "peak": r(star.peak),
                        "hfr": r(star.hfr),
                    }
                    for index, star in enumerate(stars)
                ],
            }
        }
        return self._dump(payload)

    def contains_report(self, text: str, image_name: str) -> bool:
        needle = self._dump({"image": image_name})
        return f"\n{needle}" in f"\n{text}"


__all__ = [
    "SECTION_SEPARATOR",
    "TextReportFormat",
    "TomlReportFormat",
    "YamlReportFormat",
]
