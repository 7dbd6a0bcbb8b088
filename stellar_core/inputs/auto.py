"""Extension-dispatching image loader (the default loader)."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from ..exceptions import StellarUnsupportedFormatError
from ..schema import FITS_EXTENSIONS, RASTER_EXTENSIONS, ImageRecord
from ..utils import normalize_extension
from .base import BaseImageLoader, DataclassImageLoader
from .fits import FitsImageLoader, FitsLoaderConfig
from .raster import RasterImageLoader, RasterLoaderConfig

logger = logging.getLogger(__name__)


@dataclass
class AutoLoaderConfig:
    """Per-format settings forwarded to the FITS and raster loaders."""

    fits: Dict[str, Any] = field(default_factory=dict)
    raster: Dict[str, Any] = field(default_factory=dict)


class AutoImageLoader(DataclassImageLoader[AutoLoaderConfig]):
    """Pick the FITS or raster loader from the file extension."""

    plugin_name = "auto"
    name = "Automatic Image Loader"
    version = "1.0.0"
    extensions = list(FITS_EXTENSIONS) + list(RASTER_EXTENSIONS)
    ConfigType = AutoLoaderConfig

    def __init__(self, config: AutoLoaderConfig) -> None:
        super().__init__(config)
        self._delegates: List[BaseImageLoader] = [
            FitsImageLoader(FitsLoaderConfig(**self.config.fits)),
            RasterImageLoader(RasterLoaderConfig(**self.config.raster)),
        ]

    def _delegate_for(self, filepath: str) -> BaseImageLoader:
        for loader in self._delegates:
            if loader.supports(filepath):
                return loader
        raise StellarUnsupportedFormatError(
            filepath=filepath,
            detected_format=normalize_extension(filepath) or None,
            supported_formats=self.extensions,
        )

    def load(self, filepath: str) -> ImageRecord:
        loader = self._delegate_for(filepath)
        logger.debug("AutoImageLoader: %s -> %s", filepath, loader.plugin_name)
        return loader.load(filepath)


__all__ = ["AutoImageLoader", "AutoLoaderConfig"]
