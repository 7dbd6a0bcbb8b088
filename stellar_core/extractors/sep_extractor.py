"""Star extractor plugin based on SEP (Source Extractor as a library)."""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

import numpy as np
import sep

from ..exceptions import StellarExtractError, StellarValidationError
from ..schema import ExtractionProfile, ImageRecord, SolveOutcome, StarRecord
from ..wcs_tools import pixels_to_sky
from .base import DataclassExtractor

logger = logging.getLogger(__name__)

# SEP flag values >= 8 mark truncated or corrupted sources
_MAX_GOOD_FLAG = 8

# Aperture used for the half-flux radius, in units of the semi-major axis
_HFR_APERTURE_SCALE = 6.0


@dataclass
class SepExtractorConfig:
    """Configuration for :class:`SepExtractor`.

    Values left at None fall back to the extraction profile handed in by
    the pipeline.

    Attributes:
        threshold: Detection threshold (x background RMS).
        min_area: Minimum source area in pixels.
        magnitude_zero_point: Zero point for instrumental magnitudes.
        max_stars: Keep at most this many sources, brightest first.
        pixel_stack: SEP pixel stack size, raised for dense fields.
    """

    threshold: Optional[float] = None
    min_area: Optional[int] = None
    magnitude_zero_point: Optional[float] = None
    max_stars: Optional[int] = None
    pixel_stack: int = 1_000_000

    def __post_init__(self) -> None:
        if self.pixel_stack <= 0:
            raise StellarValidationError(
                "Invalid pixel stack for SepExtractorConfig",
                parameter_name="pixel_stack",
                provided_value=self.pixel_stack,
                expected="positive integer",
            )


class SepExtractor(DataclassExtractor[SepExtractorConfig]):
    """Extract stars with SEP background subtraction and segmentation.

    Magnitudes are instrumental (``zero_point - 2.5 log10(flux)``), the
    half-flux radius comes from ``sep.flux_radius`` and sky positions from
    the solution's WCS.
    """

    plugin_name = "sep"
    name = "SEP Star Extractor"
    version = "1.0.0"
    ConfigType = SepExtractorConfig

    def effective_profile(self, profile: ExtractionProfile) -> ExtractionProfile:
        overrides = {
            key: value
            for key, value in (
                ("threshold", self.config.threshold),
                ("min_area", self.config.min_area),
                ("magnitude_zero_point", self.config.magnitude_zero_point),
                ("max_stars", self.config.max_stars),
            )
            if value is not None
        }
        return replace(profile, **overrides) if overrides else profile

    @staticmethod
    def _prepare(data: np.ndarray) -> np.ndarray:
        if data.ndim == 3:
            data = data.mean(axis=2)
        # SEP needs native byte order and C-contiguous memory
        return np.ascontiguousarray(data, dtype=np.float64)

    def extract(
        self,
        record: ImageRecord,
        profile: ExtractionProfile,
        solution: Optional[SolveOutcome] = None,
    ) -> List[StarRecord]:
        if record.data is None:
            raise StellarExtractError("Image has no pixel data", filepath=record.path)

        profile = self.effective_profile(profile)
        logger.debug("SepExtractor.extract: %s with profile %s", record.name, profile)
        data = self._prepare(record.data)
        height, width = data.shape

        try:
            sep.set_extract_pixstack(self.config.pixel_stack)
            background = sep.Background(
                data,
                bw=profile.background_box,
                bh=profile.background_box,
                fw=profile.background_filter,
                fh=profile.background_filter,
            )
            residual = data - background.back()
            sources = sep.extract(
                residual,
                profile.threshold,
                err=background.globalrms,
                minarea=profile.min_area,
                deblend_nthresh=profile.deblend_nthresh,
                deblend_cont=profile.deblend_cont,
                clean=profile.clean,
                clean_param=profile.clean_param,
            )
            keep = (sources["flag"] < _MAX_GOOD_FLAG) & (sources["flux"] > 0)
            sources = sources[keep]
            if len(sources) == 0:
                logger.debug("SepExtractor: no sources in %s", record.name)
                return []

            sources = sources[np.argsort(sources["flux"])[::-1]]
            if profile.max_stars is not None:
                sources = sources[: profile.max_stars]

            hfr, _ = sep.flux_radius(
                residual,
                sources["x"],
                sources["y"],
                _HFR_APERTURE_SCALE * sources["a"],
                0.5,
                normflux=sources["flux"],
                subpix=5,
            )
        except Exception as exc:  # sep raises bare Exception on internal errors
            raise StellarExtractError(
                "SEP extraction failed",
                filepath=record.path,
                original_error=exc,
            ) from exc

        magnitudes = profile.magnitude_zero_point - 2.5 * np.log10(sources["flux"])
        if solution is not None:
            ra, dec = pixels_to_sky(solution, sources["x"], sources["y"], width, height)
        else:
            ra = dec = np.full(len(sources), np.nan)

        stars = [
            StarRecord(
                x=float(sources["x"][i]),
                y=float(sources["y"][i]),
                ra_degrees=float(ra[i]),
                dec_degrees=float(dec[i]),
                magnitude=float(magnitudes[i]),
                peak=float(sources["peak"][i]),
                hfr=float(hfr[i]),
            )
            for i in range(len(sources))
        ]
        logger.debug("SepExtractor: %d star(s) in %s", len(stars), record.name)
        return stars


__all__ = ["SepExtractor", "SepExtractorConfig"]
