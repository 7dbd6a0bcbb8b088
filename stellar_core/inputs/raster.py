"""Raster (JPEG/PNG/TIFF/BMP) image loader plugin."""

import logging
import os
from dataclasses import dataclass

import cv2

from ..exceptions import StellarLoadError
from ..schema import RASTER_EXTENSIONS, ImageHints, ImageRecord
from ..utils import image_name
from .base import DataclassImageLoader, compute_statistics

logger = logging.getLogger(__name__)


@dataclass
class RasterLoaderConfig:
    """Configuration for :class:`RasterImageLoader`.

    Attributes:
        grayscale: Convert color images to a single luminance channel.
        keep_depth: Keep 16-bit depth instead of reducing to 8 bits.
    """

    grayscale: bool = True
    keep_depth: bool = True


class RasterImageLoader(DataclassImageLoader[RasterLoaderConfig]):
    """Loader for common raster formats using OpenCV.

    Raster files carry no astrometric metadata, so records produced here
    never have position or scale hints.
    """

    plugin_name = "raster"
    name = "Raster Image Loader"
    version = "1.0.0"
    extensions = list(RASTER_EXTENSIONS)
    ConfigType = RasterLoaderConfig

    def _imread_flags(self) -> int:
        flags = cv2.IMREAD_GRAYSCALE if self.config.grayscale else cv2.IMREAD_COLOR
        if self.config.keep_depth:
            flags |= cv2.IMREAD_ANYDEPTH
        return flags

    def load(self, filepath: str) -> ImageRecord:
        logger.debug(
            "RasterImageLoader.load: filepath=%s, grayscale=%s",
            filepath,
            self.config.grayscale,
        )
        if not os.path.isfile(filepath):
            raise StellarLoadError("Image file not found", filepath=filepath)

        try:
            data = cv2.imread(filepath, self._imread_flags())
        except cv2.error as exc:
            raise StellarLoadError(
                "OpenCV failed to decode image",
                filepath=filepath,
                original_error=exc,
            ) from exc
        if data is None:
            logger.error("OpenCV could not decode %s", filepath)
            raise StellarLoadError("OpenCV could not decode image", filepath=filepath)

        if data.ndim == 3:
            data = cv2.cvtColor(data, cv2.COLOR_BGR2RGB)

        return ImageRecord(
            path=filepath,
            name=image_name(filepath),
            data=data,
            statistics=compute_statistics(data),
            hints=ImageHints(),
            decoded=True,
            metadata={"loader": self.plugin_name},
        )


__all__ = ["RasterImageLoader", "RasterLoaderConfig"]
