#!/usr/bin/env python
#
# Stellar Batch CLI - Report Format Base Class
# © 2025 Shinichi Morita (shin3tky)
#

"""
Abstract base class for report format plugins.

A report format turns a field solution and a star list into text. Formats
never touch files; the :class:`~stellar_core.outputs.sink.OutputSink`
decides where the text goes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Generic, List, Type, TypeVar

from ..exceptions import StellarValidationError
from ..plugin_contract import DataclassConfigured, is_plugin_class, plugin_info
from ..schema import SolveOutcome, StarRecord

ConfigType = TypeVar("ConfigType")


@dataclass
class ReportFormatConfig:
    """Configuration shared by the built-in report formats.

    Attributes:
        precision: Digits after the decimal point for numeric fields.
    """

    precision: int = 6

    def __post_init__(self) -> None:
        if not 0 <= self.precision <= 15:
            raise StellarValidationError(
                "Invalid precision for report format",
                parameter_name="precision",
                provided_value=self.precision,
                expected="integer between 0 and 15",
            )


class BaseReportFormat(ABC, Generic[ConfigType]):
    """Abstract base class for report format plugins.

    Subclasses must define:
        - plugin_name: str - Unique identifier (selected with ``--format``)
        - suffix: str - Appended to an image path for per-image reports
        - render_solve: Text for the solve section of one image
        - render_stars: Text for the star section of one image
        - contains_report: Whether existing text already holds an image

    Example:
        >>> class CsvFormat(DataclassReportFormat[ReportFormatConfig]):
        ...     plugin_name = "csv"
        ...     suffix = ".csv"
        ...     ConfigType = ReportFormatConfig
        ...
        ...     def render_solve(self, image_name, outcome, processed_at):
        ...         return f"{image_name},{outcome.ra_degrees},{outcome.dec_degrees}\\n"
        ...
        ...     def render_stars(self, image_name, stars):
        ...         return ""
        ...
        ...     def contains_report(self, text, image_name):
        ...         return f"{image_name}," in text
    """

    #: Unique name identifying this format plugin
    plugin_name: str = ""

    #: Human-readable name of the format
    name: str = "BaseReportFormat"

    #: Version string of the format
    version: str = "1.0.0"

    #: Suffix appended to the image path in per-image mode
    suffix: str = ""

    config: ConfigType

    @abstractmethod
    def render_solve(
        self, image_name: str, outcome: SolveOutcome, processed_at: datetime
    ) -> str:
        """Render the solve section for ``image_name``."""

    @abstractmethod
    def render_stars(self, image_name: str, stars: List[StarRecord]) -> str:
        """Render the star section that follows a solve section."""

    @abstractmethod
    def contains_report(self, text: str, image_name: str) -> bool:
        """Return True if ``text`` already holds a report for ``image_name``."""

    def number(self, value: float) -> str:
        """Fixed-point rendering used by every numeric report field."""
        precision = getattr(self.config, "precision", 6)
        return f"{value:.{precision}f}"

    def get_info(self) -> Dict[str, str]:
        info = plugin_info(self)
        info["suffix"] = self.suffix
        return info


def _is_valid_report_format(cls: Type[Any]) -> bool:
    return is_plugin_class(cls, BaseReportFormat)


class DataclassReportFormat(
    DataclassConfigured, BaseReportFormat[ConfigType], Generic[ConfigType]
):
    """Base class for report formats configured by dataclasses."""

    _plugin_kind_label = "report format"
    ConfigType: Type[ConfigType]


__all__ = [
    "BaseReportFormat",
    "DataclassReportFormat",
    "ReportFormatConfig",
]
