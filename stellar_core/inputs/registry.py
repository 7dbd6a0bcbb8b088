#!/usr/bin/env python
#
# Stellar Batch CLI - Image Loader Registry
# © 2025 Shinichi Morita (shin3tky)
#

"""
Registry for image loader plugins.

Built-in loaders are ``auto`` (dispatch by extension), ``fits`` and
``raster``. Third-party loaders register through the
``stellar_batch.loaders`` entry point group or a ``*.py`` file in
``~/.stellar_batch/loader_plugins``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, Union

from ..plugin_registry import (
    LOADER_ENTRY_POINT_GROUP,
    LOADER_PLUGIN_DIR,
    _PLUGIN_KIND_LOADER,
)
from ..plugin_registry_base import PluginRegistryBase
from ..schema import DEFAULT_LOADER_NAME
from .base import BaseImageLoader, _is_valid_image_loader

logger = logging.getLogger(__name__)


class LoaderRegistry(PluginRegistryBase[BaseImageLoader]):
    """Image loader registry with discovery, registration and instantiation.

    Example:
        >>> loader = LoaderRegistry.create("fits", {"read_hints": False})
        >>> record = loader.load("m42.fits")
    """

    _plugin_kind = _PLUGIN_KIND_LOADER
    _entry_point_group = LOADER_ENTRY_POINT_GROUP
    _plugin_dir = LOADER_PLUGIN_DIR
    _skip_classes = frozenset(
        {"BaseImageLoader", "DataclassImageLoader", "PydanticImageLoader"}
    )

    @classmethod
    def _builtin_plugins(cls) -> List[Type[BaseImageLoader]]:
        # Imported here to keep registry import cheap
        from .auto import AutoImageLoader
        from .fits import FitsImageLoader
        from .raster import RasterImageLoader

        return [AutoImageLoader, FitsImageLoader, RasterImageLoader]

    @classmethod
    def _is_valid_plugin(cls, loader_cls: Type[BaseImageLoader]) -> bool:
        return _is_valid_image_loader(loader_cls)

    @classmethod
    def create_default(
        cls, config: Optional[Union[Dict[str, Any], Any]] = None
    ) -> BaseImageLoader:
        """Create the default (extension-dispatching) loader."""
        return cls.create(DEFAULT_LOADER_NAME, config)


__all__ = ["LoaderRegistry"]
