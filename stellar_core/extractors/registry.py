#!/usr/bin/env python
#
# Stellar Batch CLI - Extractor Registry
# © 2025 Shinichi Morita (shin3tky)
#

"""Registry for star extractor plugins (built-in: ``sep``)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, Union

from ..plugin_registry import (
    EXTRACTOR_ENTRY_POINT_GROUP,
    EXTRACTOR_PLUGIN_DIR,
    _PLUGIN_KIND_EXTRACTOR,
)
from ..plugin_registry_base import PluginRegistryBase
from ..schema import DEFAULT_EXTRACTOR_NAME
from .base import BaseExtractor, _is_valid_extractor

logger = logging.getLogger(__name__)


class ExtractorRegistry(PluginRegistryBase[BaseExtractor]):
    """Extractor registry with discovery, registration and instantiation."""

    _plugin_kind = _PLUGIN_KIND_EXTRACTOR
    _entry_point_group = EXTRACTOR_ENTRY_POINT_GROUP
    _plugin_dir = EXTRACTOR_PLUGIN_DIR
    _skip_classes = frozenset(
        {"BaseExtractor", "DataclassExtractor", "PydanticExtractor"}
    )

    @classmethod
    def _builtin_plugins(cls) -> List[Type[BaseExtractor]]:
        from .sep_extractor import SepExtractor

        return [SepExtractor]

    @classmethod
    def _is_valid_plugin(cls, extractor_cls: Type[BaseExtractor]) -> bool:
        return _is_valid_extractor(extractor_cls)

    @classmethod
    def create_default(
        cls, config: Optional[Union[Dict[str, Any], Any]] = None
    ) -> BaseExtractor:
        return cls.create(DEFAULT_EXTRACTOR_NAME, config)


__all__ = ["ExtractorRegistry"]
