"""Report formats, output targets and the output sink."""

from .base import BaseReportFormat, DataclassReportFormat, ReportFormatConfig
from .formats import (
    SECTION_SEPARATOR,
    TextReportFormat,
    TomlReportFormat,
    YamlReportFormat,
)
from .targets import (
    AggregateFileTarget,
    OutputTarget,
    PerImageFileTarget,
    StandardStreamTarget,
)
from .sink import OutputSink
from .registry import ReportFormatRegistry

__all__ = [
    "BaseReportFormat",
    "DataclassReportFormat",
    "ReportFormatConfig",
    "SECTION_SEPARATOR",
    "TextReportFormat",
    "TomlReportFormat",
    "YamlReportFormat",
    "AggregateFileTarget",
    "OutputTarget",
    "PerImageFileTarget",
    "StandardStreamTarget",
    "OutputSink",
    "ReportFormatRegistry",
]
