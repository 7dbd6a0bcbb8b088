#!/usr/bin/env python
#
# Stellar Batch CLI - Report Format Registry
# © 2025 Shinichi Morita (shin3tky)
#

"""Registry for report format plugins (built-in: ``text``, ``toml``, ``yaml``)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, Union

from ..plugin_registry import (
    FORMAT_ENTRY_POINT_GROUP,
    FORMAT_PLUGIN_DIR,
    _PLUGIN_KIND_FORMAT,
)
from ..plugin_registry_base import PluginRegistryBase
from ..schema import DEFAULT_OUTPUT_FORMAT
from .base import BaseReportFormat, _is_valid_report_format

logger = logging.getLogger(__name__)


class ReportFormatRegistry(PluginRegistryBase[BaseReportFormat]):
    """Report format registry with discovery, registration and instantiation."""

    _plugin_kind = _PLUGIN_KIND_FORMAT
    _entry_point_group = FORMAT_ENTRY_POINT_GROUP
    _plugin_dir = FORMAT_PLUGIN_DIR
    _skip_classes = frozenset({"BaseReportFormat", "DataclassReportFormat"})

    @classmethod
    def _builtin_plugins(cls) -> List[Type[BaseReportFormat]]:
        from .formats import TextReportFormat, TomlReportFormat, YamlReportFormat

        return [TextReportFormat, TomlReportFormat, YamlReportFormat]

    @classmethod
    def _is_valid_plugin(cls, format_cls: Type[BaseReportFormat]) -> bool:
        return _is_valid_report_format(format_cls)

    @classmethod
    def create_default(
        cls, config: Optional[Union[Dict[str, Any], Any]] = None
    ) -> BaseReportFormat:
        return cls.create(DEFAULT_OUTPUT_FORMAT, config)


__all__ = ["ReportFormatRegistry"]
