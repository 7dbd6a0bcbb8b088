"""FITS image loader plugin."""

import logging
from dataclasses import dataclass
from typing import Any, Optional

import astropy.units as u
import numpy as np
from astropy.coordinates import Angle
from astropy.io import fits

from ..constraints import ra_degrees_to_hours
from ..exceptions import StellarLoadError, StellarValidationError
from ..schema import (
    DEFAULT_SCALE_TOLERANCE,
    FITS_EXTENSIONS,
    ImageHints,
    ImageRecord,
)
from ..utils import image_name
from .base import DataclassImageLoader, compute_statistics

# Module-level logger
logger = logging.getLogger(__name__)

# 180 * 3600 / pi / 1000: arcsec per pixel from pixel size (um) / focal length (mm)
ARCSEC_PER_RADIAN_MILLI = 206.264806

_PIXEL_SIZE_KEYS = ("XPIXSZ", "PIXSIZE1", "PIXSIZE")
_BINNING_KEYS = ("XBINNING", "BINX")
_PIXEL_SCALE_KEYS = ("PIXSCALE", "SCALE", "SECPIX")


@dataclass
class FitsLoaderConfig:
    """Configuration for :class:`FitsImageLoader`.

    Attributes:
        hdu: Index of the HDU to read. None picks the first HDU with data.
        read_hints: Whether to derive position/scale hints from the header.
        scale_tolerance: Relative width of the scale bounds derived from the
            header pixel scale (0.2 gives +/-20%).
    """

    hdu: Optional[int] = None
    read_hints: bool = True
    scale_tolerance: float = DEFAULT_SCALE_TOLERANCE

    def __post_init__(self) -> None:
        if not 0.0 < self.scale_tolerance < 1.0:
            raise StellarValidationError(
                "Invalid scale tolerance for FitsLoaderConfig",
                parameter_name="scale_tolerance",
                provided_value=self.scale_tolerance,
                expected="a fraction between 0 and 1",
            )


def _header_float(header: fits.Header, *keys: str) -> Optional[float]:
    for key in keys:
        value = header.get(key)
        if value is None or isinstance(value, bool):
            continue
        try:
            return float(value)
        except (TypeError, ValueError):
            continue
    return None


def _parse_angle(value: Any, unit: Any) -> Optional[float]:
    """Parse a header angle given in ``unit``, returning degrees."""
    if value is None:
        return None
    try:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return float(Angle(value, unit=unit).degree)
        text = str(value).strip()
        if not text:
            return None
        return float(Angle(text.replace(" ", ":"), unit=unit).degree)
    except (ValueError, TypeError, u.UnitsError) as exc:
        logger.debug("Ignoring unparsable header angle %r: %s", value, exc)
        return None


def read_position_hint(header: fits.Header) -> Optional[tuple]:
    """Return (RA hours, Dec degrees) from the header, or None.

    Decimal ``RA``/``DEC`` keywords are in degrees; sexagesimal
    ``OBJCTRA``/``OBJCTDEC`` keywords are in hours and degrees.
    """
    ra_degrees = _header_float(header, "RA")
    dec_degrees = _header_float(header, "DEC")
    if ra_degrees is None or dec_degrees is None:
        ra_degrees = _parse_angle(header.get("OBJCTRA"), u.hourangle)
        dec_degrees = _parse_angle(header.get("OBJCTDEC"), u.deg)
    if ra_degrees is None or dec_degrees is None:
        return None
    if not -90.0 <= dec_degrees <= 90.0:
        logger.debug("Ignoring out-of-range declination hint %s", dec_degrees)
        return None
    return ra_degrees_to_hours(ra_degrees), dec_degrees


def read_pixel_scale(header: fits.Header) -> Optional[float]:
    """Return the pixel scale in arcsec/pixel from the header, or None."""
    scale = _header_float(header, *_PIXEL_SCALE_KEYS)
    if scale is not None and scale > 0:
        return scale

    focal_mm = _header_float(header, "FOCALLEN")
    pixel_um = _header_float(header, *_PIXEL_SIZE_KEYS)
    if not focal_mm or not pixel_um or focal_mm <= 0 or pixel_um <= 0:
        return None
    binning = _header_float(header, *_BINNING_KEYS) or 1.0
    return ARCSEC_PER_RADIAN_MILLI * pixel_um * binning / focal_mm


def read_hints(header: fits.Header, scale_tolerance: float) -> ImageHints:
    position = read_position_hint(header)
    scale = read_pixel_scale(header)
    hints = ImageHints(
        ra_hours=position[0] if position else None,
        dec_degrees=position[1] if position else None,
        scale_low=scale * (1.0 - scale_tolerance) if scale else None,
        scale_high=scale * (1.0 + scale_tolerance) if scale else None,
        scale_units="arcsecperpix" if scale else None,
    )
    logger.debug("FITS header hints: %s", hints)
    return hints


def _to_image_layout(data: np.ndarray) -> np.ndarray:
    """Reorder FITS (channels, height, width) cubes to (height, width, channels)."""
    if data.ndim == 3 and data.shape[0] in (1, 3, 4):
        data = np.moveaxis(data, 0, -1)
        if data.shape[2] == 1:
            data = data[:, :, 0]
    return data


class FitsImageLoader(DataclassImageLoader[FitsLoaderConfig]):
    """Loader for FITS images based on :mod:`astropy.io.fits`.

    Position hints come from ``RA``/``DEC`` (degrees) or
    ``OBJCTRA``/``OBJCTDEC`` (sexagesimal). Scale hints come from an explicit
    pixel scale keyword or from ``FOCALLEN`` with ``XPIXSZ``/``PIXSIZE1`` and
    binning, widened by ``scale_tolerance``.
    """

    plugin_name = "fits"
    name = "FITS Image Loader"
    version = "1.0.0"
    extensions = list(FITS_EXTENSIONS)
    ConfigType = FitsLoaderConfig

    def _select_hdu(self, hdul: fits.HDUList, filepath: str):
        if self.config.hdu is not None:
            try:
                return hdul[self.config.hdu]
            except IndexError as exc:
                raise StellarLoadError(
                    "Requested HDU does not exist",
                    filepath=filepath,
                    original_error=exc,
                    context={"hdu": self.config.hdu, "hdu_count": len(hdul)},
                ) from exc
        for hdu in hdul:
            if getattr(hdu, "data", None) is not None and hdu.is_image:
                return hdu
        raise StellarLoadError(
            "FITS file contains no image data",
            filepath=filepath,
            context={"hdu_count": len(hdul)},
        )

    def load(self, filepath: str) -> ImageRecord:
        logger.debug("FitsImageLoader.load: filepath=%s, hdu=%s", filepath, self.config.hdu)
        try:
            with fits.open(filepath, memmap=False) as hdul:
                hdu = self._select_hdu(hdul, filepath)
                data = np.asarray(hdu.data, dtype=np.float32)
                header = hdu.header.copy()
        except StellarLoadError:
            raise
        except (OSError, ValueError, TypeError) as exc:
            logger.error("Failed to read FITS file %s: %s", filepath, exc)
            raise StellarLoadError(
                "Failed to read FITS file",
                filepath=filepath,
                original_error=exc,
            ) from exc

        if data.ndim < 2:
            raise StellarLoadError(
                "FITS image data must have at least two dimensions",
                filepath=filepath,
                context={"shape": data.shape},
            )
        data = _to_image_layout(data)

        hints = (
            read_hints(header, self.config.scale_tolerance)
            if self.config.read_hints
            else ImageHints()
        )
        record = ImageRecord(
            path=filepath,
            name=image_name(filepath),
            data=data,
            statistics=compute_statistics(data),
            hints=hints,
            decoded=True,
            metadata={"loader": self.plugin_name, "header_cards": len(header)},
        )
        logger.debug(
            "Loaded FITS image %s (%dx%d)",
            record.name,
            record.statistics.width,
            record.statistics.height,
        )
        return record


__all__ = ["FitsImageLoader", "FitsLoaderConfig", "read_hints"]
