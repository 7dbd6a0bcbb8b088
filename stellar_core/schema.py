#!/usr/bin/env python
#
# Stellar Batch CLI - Schema definitions
# © 2025 Shinichi Morita (shin3tky)
#

"""
Data structures, constants, and type definitions for batch plate solving.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    import numpy as np

# ==========================================
# Version
# ==========================================
VERSION = "1.0.0"
RUN_CONFIG_SCHEMA_VERSION = 1

# ==========================================
# Default Settings
# ==========================================
DEFAULT_LOADER_NAME = "auto"
DEFAULT_SOLVER_NAME = "astrometry"
DEFAULT_EXTRACTOR_NAME = "sep"
DEFAULT_OUTPUT_FORMAT = "text"

DEFAULT_VERBOSITY = 1
VERBOSITY_SILENT = 0
VERBOSITY_NORMAL = 1
VERBOSITY_VERBOSE = 2

# Special output path values bound to the standard streams
STDOUT_TARGET = "stdout"
STDERR_TARGET = "stderr"
STANDARD_STREAM_TARGETS = (STDOUT_TARGET, STDERR_TARGET)

# Environment variable naming one extra catalog index directory
INDEX_FILES_ENV_VAR = "ASTROMETRY_INDEX_FILES"

FITS_EXTENSIONS = [
    ".fits",
    ".fit",
    ".fts",
    ".fits.gz",
    ".fit.gz",
]

RASTER_EXTENSIONS = [
    ".jpg",
    ".jpeg",
    ".png",
    ".tif",
    ".tiff",
    ".bmp",
]

# ==========================================
# Search Constraints
# ==========================================
# Scale units understood by the solver adapters. "degwidth" is the image
# width in degrees, "arcminwidth" in arcminutes, "arcsecperpix" the pixel
# scale, "focalmm" the 35mm-equivalent focal length.
SCALE_UNITS = ("degwidth", "arcminwidth", "arcsecperpix", "focalmm")
DEFAULT_SCALE_UNITS = "degwidth"

# Search radius used when a position is known but no radius was given (deg)
DEFAULT_SEARCH_RADIUS_DEG = 15.0

# Relative tolerance applied to a pixel scale derived from image metadata
DEFAULT_SCALE_TOLERANCE = 0.2

# Solver defaults
DEFAULT_SOLVER_TIME_LIMIT_SEC = 600
DEFAULT_SOLVE_FIELD_COMMAND = "solve-field"

PARITY_NORMAL = "normal"
PARITY_FLIPPED = "flipped"
PARITY_VALUES = (PARITY_NORMAL, PARITY_FLIPPED)

# ==========================================
# Extraction Profiles
# ==========================================
DEFAULT_MAGNITUDE_ZERO_POINT = 20.0


@dataclass(frozen=True)
class ExtractionProfile:
    """Parameter set handed to the extractor.

    Attributes:
        name: Profile identifier.
        threshold: Detection threshold in units of the background RMS.
        min_area: Minimum number of connected pixels per source.
        deblend_nthresh: Number of deblending sub-thresholds.
        deblend_cont: Minimum contrast ratio for deblending.
        clean: Whether to clean spurious detections near bright sources.
        clean_param: Cleaning parameter.
        magnitude_zero_point: Zero point used to convert flux to magnitude.
        max_stars: Keep at most this many sources, brightest first (None = all).
        background_box: Mesh size of the background model in pixels.
        background_filter: Median filter size of the background model.
    """

    name: str
    threshold: float = 1.5
    min_area: int = 5
    deblend_nthresh: int = 32
    deblend_cont: float = 0.005
    clean: bool = True
    clean_param: float = 1.0
    magnitude_zero_point: float = DEFAULT_MAGNITUDE_ZERO_POINT
    max_stars: Optional[int] = None
    background_box: int = 64
    background_filter: int = 3


# Exhaustive profile: favor completeness over speed, run after a solve.
ALL_STARS = ExtractionProfile(
    name="all_stars",
    threshold=1.5,
    min_area=5,
    deblend_nthresh=32,
    deblend_cont=0.005,
    clean=True,
    clean_param=1.0,
    max_stars=None,
)


# ==========================================
# Per-image state
# ==========================================
class ImageState(str, Enum):
    """States of the per-image pipeline stage."""

    PENDING = "pending"
    LOADED = "loaded"
    SKIPPED = "skipped"
    LOAD_FAILED = "load_failed"
    SOLVED = "solved"
    SOLVE_FAILED = "solve_failed"
    EXTRACTED = "extracted"
    EXTRACT_FAILED = "extract_failed"
    REPORTED = "reported"

    @property
    def is_failure(self) -> bool:
        return self in FAILURE_STATES


FAILURE_STATES = frozenset(
    {
        ImageState.LOAD_FAILED,
        ImageState.SOLVE_FAILED,
        ImageState.EXTRACT_FAILED,
    }
)


@dataclass(frozen=True)
class ImageHints:
    """Position and scale hints embedded in an image's own metadata.

    RA is stored in hours, Dec in degrees. A hint pair is only meaningful
    when both halves are present.
    """

    ra_hours: Optional[float] = None
    dec_degrees: Optional[float] = None
    scale_low: Optional[float] = None
    scale_high: Optional[float] = None
    scale_units: Optional[str] = None

    @property
    def has_position(self) -> bool:
        return self.ra_hours is not None and self.dec_degrees is not None

    @property
    def has_scale(self) -> bool:
        return self.scale_low is not None and self.scale_high is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ra_hours": self.ra_hours,
            "dec_degrees": self.dec_degrees,
            "scale_low": self.scale_low,
            "scale_high": self.scale_high,
            "scale_units": self.scale_units,
        }


@dataclass(frozen=True)
class ImageStatistics:
    """Basic pixel statistics reported by an image loader."""

    width: int
    height: int
    channels: int = 1
    dtype: str = ""
    minimum: float = 0.0
    maximum: float = 0.0
    mean: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "channels": self.channels,
            "dtype": self.dtype,
            "minimum": self.minimum,
            "maximum": self.maximum,
            "mean": self.mean,
        }


@dataclass
class ImageRecord:
    """One image flowing through the pipeline.

    The pixel buffer is owned by the loader that produced it and is only
    borrowed by the pipeline stage; ``loader.release(record)`` drops it
    before the next image is loaded.
    """

    path: str
    name: str
    data: Optional["np.ndarray"] = None
    statistics: Optional[ImageStatistics] = None
    hints: ImageHints = field(default_factory=ImageHints)
    decoded: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "name": self.name,
            "decoded": self.decoded,
            "statistics": self.statistics.to_dict() if self.statistics else None,
            "hints": self.hints.to_dict(),
            "metadata": self.metadata,
        }


@dataclass(frozen=True)
class SkyPosition:
    """Search center (RA in hours, Dec in degrees) and optional radius."""

    ra_hours: float
    dec_degrees: float
    radius_degrees: Optional[float] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.ra_hours < 24.0:
            raise ValueError(f"ra_hours must be in [0, 24), got {self.ra_hours}")
        if not -90.0 <= self.dec_degrees <= 90.0:
            raise ValueError(
                f"dec_degrees must be in [-90, 90], got {self.dec_degrees}"
            )
        if self.radius_degrees is not None and self.radius_degrees <= 0:
            raise ValueError(
                f"radius_degrees must be > 0, got {self.radius_degrees}"
            )


@dataclass(frozen=True)
class ScaleBounds:
    """Lower and upper angular-scale bounds with their unit."""

    low: float
    high: float
    units: str = DEFAULT_SCALE_UNITS

    def __post_init__(self) -> None:
        if self.units not in SCALE_UNITS:
            raise ValueError(
                f"units must be one of {', '.join(SCALE_UNITS)}, got {self.units!r}"
            )
        if self.low <= 0 or self.high <= 0:
            raise ValueError(
                f"scale bounds must be > 0, got low={self.low}, high={self.high}"
            )
        if self.low > self.high:
            raise ValueError(
                f"scale low must not exceed high, got low={self.low}, high={self.high}"
            )


@dataclass(frozen=True)
class SearchConstraints:
    """Solver-ready search constraints for a single image."""

    position: Optional[SkyPosition] = None
    scale: Optional[ScaleBounds] = None

    @property
    def is_empty(self) -> bool:
        return self.position is None and self.scale is None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.position is not None:
            payload["ra_hours"] = self.position.ra_hours
            payload["dec_degrees"] = self.position.dec_degrees
            payload["radius_degrees"] = self.position.radius_degrees
        if self.scale is not None:
            payload["scale_low"] = self.scale.low
            payload["scale_high"] = self.scale.high
            payload["scale_units"] = self.scale.units
        return payload


@dataclass(frozen=True)
class SolveOutcome:
    """Result of a plate solve.

    Attributes:
        ra_degrees: Field center right ascension (degrees).
        dec_degrees: Field center declination (degrees).
        field_width_arcmin: Field width (arcminutes).
        field_height_arcmin: Field height (arcminutes).
        pixel_scale: Pixel scale (arcseconds per pixel).
        orientation_degrees: Field rotation, degrees east of north.
        parity: ``"normal"`` or ``"flipped"``.
        success: Whether the solve succeeded.
        wcs: Optional astropy WCS for pixel-to-sky conversion.
    """

    ra_degrees: float
    dec_degrees: float
    field_width_arcmin: float
    field_height_arcmin: float
    pixel_scale: float
    orientation_degrees: float
    parity: str = PARITY_NORMAL
    success: bool = True
    wcs: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.parity not in PARITY_VALUES:
            raise ValueError(
                f"parity must be one of {', '.join(PARITY_VALUES)}, got {self.parity!r}"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ra_degrees": self.ra_degrees,
            "dec_degrees": self.dec_degrees,
            "field_width_arcmin": self.field_width_arcmin,
            "field_height_arcmin": self.field_height_arcmin,
            "pixel_scale": self.pixel_scale,
            "orientation_degrees": self.orientation_degrees,
            "parity": self.parity,
            "success": self.success,
        }


@dataclass(frozen=True)
class StarRecord:
    """One extracted point source."""

    x: float
    y: float
    ra_degrees: float
    dec_degrees: float
    magnitude: float
    peak: float
    hfr: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "ra_degrees": self.ra_degrees,
            "dec_degrees": self.dec_degrees,
            "magnitude": self.magnitude,
            "peak": self.peak,
            "hfr": self.hfr,
        }


@dataclass
class StageResult:
    """Terminal outcome of one image's pipeline stage.

    ``output_error`` is set when a report could not be written. The state
    still records how far the image got, so a solved image keeps counting
    as processed.
    """

    image_name: str
    state: ImageState
    outcome: Optional[SolveOutcome] = None
    stars: Optional[List[StarRecord]] = None
    error: Optional[BaseException] = None
    output_error: Optional[BaseException] = None
    elapsed_seconds: float = 0.0

    @property
    def solved(self) -> bool:
        return self.state in (
            ImageState.SOLVED,
            ImageState.EXTRACTED,
            ImageState.EXTRACT_FAILED,
            ImageState.REPORTED,
        )


@dataclass
class BatchCounters:
    """Run-wide counters, owned and mutated by the batch driver only."""

    total: int = 0
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    elapsed_seconds: float = 0.0
    states: Dict[str, int] = field(default_factory=dict)
    aborted: bool = False

    def record(self, result: StageResult) -> None:
        key = result.state.value
        self.states[key] = self.states.get(key, 0) + 1
        if result.solved:
            self.processed += 1
        if result.state is ImageState.SKIPPED:
            self.skipped += 1
        elif result.state.is_failure:
            self.failed += 1

    @property
    def mean_seconds_per_processed(self) -> Optional[float]:
        if self.processed <= 1:
            return None
        return self.elapsed_seconds / self.processed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "elapsed_seconds": self.elapsed_seconds,
            "states": dict(self.states),
            "aborted": self.aborted,
        }


def _optional_float(value: Any, name: str) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if math.isnan(result):
        raise ValueError(f"{name} must not be NaN")
    return result


@dataclass
class RunConfig:
    """Configuration for a batch run.

    Attributes:
        output_path: Explicit output target. ``None`` derives one file per
            image; ``"stdout"``/``"stderr"`` bind to the standard streams;
            anything else is a single aggregate file.
        output_format: Report encoding plugin name (text, toml, yaml).
        overwrite: Truncate on first write instead of appending.
        skip_solved: Skip images whose report already exists.
        stop_on_failure: Stop after the first image that fails a stage.
        verbosity: 0 (silent), 1 (normal) or 2 (verbose).
        locale: Locale for progress messages.
        index_dirs: Extra catalog index directories.
        ra_degrees: Search center RA (degrees).
        dec_degrees: Search center Dec (degrees).
        radius_degrees: Search radius (degrees).
        scale_low: Lower scale bound.
        scale_high: Upper scale bound.
        scale_units: Unit of the scale bounds.
        loader_name: Image loader plugin name.
        loader_config: Configuration for the image loader.
        solver_name: Solver plugin name.
        solver_config: Configuration for the solver.
        extractor_name: Extractor plugin name.
        extractor_config: Configuration for the extractor.
    """

    output_path: Optional[str] = None
    output_format: str = DEFAULT_OUTPUT_FORMAT
    overwrite: bool = False
    skip_solved: bool = False
    stop_on_failure: bool = False
    verbosity: int = DEFAULT_VERBOSITY
    locale: Optional[str] = None

    index_dirs: List[str] = field(default_factory=list)

    ra_degrees: Optional[float] = None
    dec_degrees: Optional[float] = None
    radius_degrees: Optional[float] = None
    scale_low: Optional[float] = None
    scale_high: Optional[float] = None
    scale_units: Optional[str] = None

    loader_name: str = DEFAULT_LOADER_NAME
    loader_config: Optional[Dict[str, Any]] = None
    solver_name: str = DEFAULT_SOLVER_NAME
    solver_config: Optional[Dict[str, Any]] = None
    extractor_name: str = DEFAULT_EXTRACTOR_NAME
    extractor_config: Optional[Dict[str, Any]] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.verbosity not in (
            VERBOSITY_SILENT,
            VERBOSITY_NORMAL,
            VERBOSITY_VERBOSE,
        ):
            raise ValueError(f"verbosity must be 0, 1 or 2, got {self.verbosity}")
        if not self.output_format:
            raise ValueError("output_format must be a non-empty string")
        if self.output_path == "":
            raise ValueError("output_path must not be empty")
        self.ra_degrees = _optional_float(self.ra_degrees, "ra_degrees")
        self.dec_degrees = _optional_float(self.dec_degrees, "dec_degrees")
        self.radius_degrees = _optional_float(self.radius_degrees, "radius_degrees")
        self.scale_low = _optional_float(self.scale_low, "scale_low")
        self.scale_high = _optional_float(self.scale_high, "scale_high")
        if self.scale_units is not None and self.scale_units not in SCALE_UNITS:
            raise ValueError(
                f"scale_units must be one of {', '.join(SCALE_UNITS)}, "
                f"got {self.scale_units!r}"
            )
        if (self.ra_degrees is None) != (self.dec_degrees is None):
            raise ValueError("ra_degrees and dec_degrees must be given together")
        if (self.scale_low is None) != (self.scale_high is None):
            raise ValueError("scale_low and scale_high must be given together")
        if self.dec_degrees is not None and not -90.0 <= self.dec_degrees <= 90.0:
            raise ValueError(
                f"dec_degrees must be in [-90, 90], got {self.dec_degrees}"
            )
        if self.radius_degrees is not None and self.radius_degrees <= 0:
            raise ValueError(
                f"radius_degrees must be > 0, got {self.radius_degrees}"
            )
        if self.scale_low is not None and self.scale_high is not None:
            # Same rules as ScaleBounds, checked before any image is touched
            ScaleBounds(
                self.scale_low,
                self.scale_high,
                self.scale_units or DEFAULT_SCALE_UNITS,
            )
        self.index_dirs = [str(path) for path in self.index_dirs]

    @property
    def aggregate(self) -> bool:
        return self.output_path is not None

    @property
    def silent(self) -> bool:
        return self.verbosity == VERBOSITY_SILENT

    @property
    def verbose(self) -> bool:
        return self.verbosity >= VERBOSITY_VERBOSE

    def cli_position(self) -> Optional[Tuple[float, float]]:
        """Return the explicit (RA deg, Dec deg) pair, if any."""
        if self.ra_degrees is None or self.dec_degrees is None:
            return None
        return self.ra_degrees, self.dec_degrees

    def cli_scale(self) -> Optional[Tuple[float, float, Optional[str]]]:
        """Return the explicit (low, high, units) triple, if any."""
        if self.scale_low is None or self.scale_high is None:
            return None
        return self.scale_low, self.scale_high, self.scale_units

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of the configuration.
        """
        return {
            "output_path": self.output_path,
            "output_format": self.output_format,
            "overwrite": self.overwrite,
            "skip_solved": self.skip_solved,
            "stop_on_failure": self.stop_on_failure,
            "verbosity": self.verbosity,
            "locale": self.locale,
            "index_dirs": list(self.index_dirs),
            "ra_degrees": self.ra_degrees,
            "dec_degrees": self.dec_degrees,
            "radius_degrees": self.radius_degrees,
            "scale_low": self.scale_low,
            "scale_high": self.scale_high,
            "scale_units": self.scale_units,
            "loader_name": self.loader_name,
            "loader_config": self.loader_config,
            "solver_name": self.solver_name,
            "solver_config": self.solver_config,
            "extractor_name": self.extractor_name,
            "extractor_config": self.extractor_config,
            "schema_version": RUN_CONFIG_SCHEMA_VERSION,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RunConfig":
        """Create configuration from dictionary.

        Unknown keys raise ``KeyError`` so typos in configuration files are
        reported instead of silently ignored.

        Args:
            data: Dictionary containing configuration values.

        Returns:
            RunConfig instance.
        """
        known = set(cls.__dataclass_fields__) | {"schema_version"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise KeyError(f"Unknown configuration keys: {', '.join(unknown)}")

        return cls(
            output_path=data.get("output_path"),
            output_format=data.get("output_format", DEFAULT_OUTPUT_FORMAT),
            overwrite=bool(data.get("overwrite", False)),
            skip_solved=bool(data.get("skip_solved", False)),
            stop_on_failure=bool(data.get("stop_on_failure", False)),
            verbosity=int(data.get("verbosity", DEFAULT_VERBOSITY)),
            locale=data.get("locale"),
            index_dirs=list(data.get("index_dirs") or []),
            ra_degrees=data.get("ra_degrees"),
            dec_degrees=data.get("dec_degrees"),
            radius_degrees=data.get("radius_degrees"),
            scale_low=data.get("scale_low"),
            scale_high=data.get("scale_high"),
            scale_units=data.get("scale_units"),
            loader_name=data.get("loader_name", DEFAULT_LOADER_NAME),
            loader_config=data.get("loader_config"),
            solver_name=data.get("solver_name", DEFAULT_SOLVER_NAME),
            solver_config=data.get("solver_config"),
            extractor_name=data.get("extractor_name", DEFAULT_EXTRACTOR_NAME),
            extractor_config=data.get("extractor_config"),
        )
