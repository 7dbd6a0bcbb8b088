"""Image loader plugins for stellar_core."""

from .base import (
    BaseImageLoader,
    DataclassImageLoader,
    PydanticImageLoader,
    compute_statistics,
)
from .auto import AutoImageLoader, AutoLoaderConfig
from .fits import FitsImageLoader, FitsLoaderConfig
from .raster import RasterImageLoader, RasterLoaderConfig
from .registry import LoaderRegistry

__all__ = [
    "BaseImageLoader",
    "DataclassImageLoader",
    "PydanticImageLoader",
    "compute_statistics",
    "AutoImageLoader",
    "AutoLoaderConfig",
    "FitsImageLoader",
    "FitsLoaderConfig",
    "RasterImageLoader",
    "RasterLoaderConfig",
    "LoaderRegistry",
]
