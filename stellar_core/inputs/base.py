"""Abstract base classes and helpers for image loader plugins."""

from abc import ABC, abstractmethod
import logging
from typing import Any, Dict, Generic, List, Type, TypeVar

import numpy as np

from stellar_core.plugin_contract import (
    DataclassConfigured,
    PydanticConfigured,
    is_plugin_class,
    plugin_info,
)
from stellar_core.schema import ImageRecord, ImageStatistics
from stellar_core.utils import normalize_extension

ConfigType = TypeVar("ConfigType")

# Module-level logger for diagnostics shared by image loaders
logger = logging.getLogger(__name__)


class BaseImageLoader(ABC, Generic[ConfigType]):
    """Abstract base class for image loader plugins.

    A loader decodes one file into an :class:`ImageRecord` carrying the
    pixel buffer, basic statistics and any position/scale hints found in
    the file's metadata. The loader owns the buffer: the pipeline hands the
    record back through :meth:`release` once the image is done.

    Subclasses must define:
        - plugin_name: str - Unique identifier for the loader
        - extensions: List[str] - Lower-case file extensions handled
        - load(filepath: str) -> ImageRecord

    Example:
        >>> class MyLoader(DataclassImageLoader[MyConfig]):
        ...     plugin_name = "my_loader"
        ...     extensions = [".xyz"]
        ...     ConfigType = MyConfig
        ...
        ...     def load(self, filepath: str) -> ImageRecord:
        ...         data = read_xyz(filepath)
        ...         return build_record(filepath, data)
    """

    #: Unique name identifying this loader plugin
    plugin_name: str = ""

    #: Human-readable name of the loader
    name: str = "BaseImageLoader"

    #: Version string of the loader
    version: str = "1.0.0"

    #: Lower-case file extensions this loader understands
    extensions: List[str] = []

    #: Configuration instance for this loader
    config: ConfigType

    @abstractmethod
    def load(self, filepath: str) -> ImageRecord:
        """Decode ``filepath`` into an image record.

        Raises:
            StellarLoadError: If the file cannot be decoded.
        """

    def release(self, record: ImageRecord) -> None:
        """Drop the pixel buffer held by ``record``."""
        if record.data is not None:
            logger.debug("%s.release: releasing buffer of %s", type(self).__name__, record.name)
        record.data = None

    def supports(self, filepath: str) -> bool:
        return normalize_extension(filepath, self.extensions) in self.extensions

    def get_info(self) -> Dict[str, str]:
        return plugin_info(self)


def compute_statistics(data: np.ndarray) -> ImageStatistics:
    """Summarize a decoded pixel buffer (height, width[, channels])."""
    height, width = data.shape[:2]
    channels = data.shape[2] if data.ndim == 3 else 1
    if data.size == 0:
        return ImageStatistics(
            width=width, height=height, channels=channels, dtype=str(data.dtype)
        )
    return ImageStatistics(
        width=int(width),
        height=int(height),
        channels=int(channels),
        dtype=str(data.dtype),
        minimum=float(np.min(data)),
        maximum=float(np.max(data)),
        mean=float(np.mean(data)),
    )


def _is_valid_image_loader(cls: Type[Any]) -> bool:
    return is_plugin_class(cls, BaseImageLoader)


class DataclassImageLoader(
    DataclassConfigured, BaseImageLoader[ConfigType], Generic[ConfigType]
):
    """Base class for loaders configured by dataclasses."""

    _plugin_kind_label = "image loader"
    ConfigType: Type[ConfigType]


class PydanticImageLoader(
    PydanticConfigured, BaseImageLoader[ConfigType], Generic[ConfigType]
):
    """Base class for loaders configured by pydantic models."""

    _plugin_kind_label = "image loader"
    ConfigType: Type[ConfigType]


__all__ = [
    "BaseImageLoader",
    "DataclassImageLoader",
    "PydanticImageLoader",
    "compute_statistics",
]
