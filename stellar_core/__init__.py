#!/usr/bin/env python
#
# Stellar Batch CLI - Core Package
# © 2025 Shinichi Morita (shin3tky)
#

"""
Batch plate solving and star extraction core library.

This package provides:
- schema: Data structures and constants
- catalogs: Catalog index directory resolution
- constraints: Per-image solver search constraints
- inputs: Image loader plugins (FITS, raster)
- solvers: Plate solver plugins (astrometry.net)
- extractors: Star extractor plugins (SEP)
- outputs: Report formats, output targets and the output sink
- pipeline: Per-image stage and batch driver

Logging:
    This library uses Python's standard logging module. By default, a NullHandler
    is attached to prevent "No handler found" warnings. To see log output, configure
    logging in your application:

    Example:
        >>> import logging
        >>> logging.basicConfig(level=logging.DEBUG)
"""

import logging

# Configure library-level logger with NullHandler to prevent
# "No handler found" warnings when the library is used without
# explicit logging configuration.
_logger = logging.getLogger(__name__)
_logger.addHandler(logging.NullHandler())

from .schema import (
    VERSION,
    DEFAULT_LOADER_NAME,
    DEFAULT_SOLVER_NAME,
    DEFAULT_EXTRACTOR_NAME,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_SCALE_UNITS,
    DEFAULT_SEARCH_RADIUS_DEG,
    DEFAULT_VERBOSITY,
    VERBOSITY_SILENT,
    VERBOSITY_NORMAL,
    VERBOSITY_VERBOSE,
    SCALE_UNITS,
    STDOUT_TARGET,
    STDERR_TARGET,
    ALL_STARS,
    ExtractionProfile,
    ImageState,
    ImageHints,
    ImageStatistics,
    ImageRecord,
    SkyPosition,
    ScaleBounds,
    SearchConstraints,
    SolveOutcome,
    StarRecord,
    StageResult,
    BatchCounters,
    RunConfig,
)

from .exceptions import (
    DiagnosticInfo,
    StellarError,
    StellarCatalogPathError,
    StellarStageError,
    StellarLoadError,
    StellarUnsupportedFormatError,
    StellarSolveError,
    StellarExtractError,
    StellarValidationError,
    StellarConfigError,
    StellarOutputError,
    StellarOutputOpenError,
    StellarWriteError,
    format_error_for_user,
    save_diagnostic_report,
    create_diagnostic_from_exception,
)
from .i18n import get_message, resolve_locale

from .catalogs import (
    CatalogPathResolver,
    default_index_folder_paths,
    index_path_from_environment,
    resolve_catalog_paths,
)
from .constraints import (
    ConstraintTemplate,
    SearchConstraintComposer,
    compose,
    ra_degrees_to_hours,
    ra_hours_to_degrees,
)
from .config_io import (
    SUPPORTED_CONFIG_EXTENSIONS,
    load_run_config,
    parse_config_payload,
    parse_plugin_config,
)

from .inputs import (
    BaseImageLoader,
    DataclassImageLoader,
    PydanticImageLoader,
    FitsImageLoader,
    RasterImageLoader,
    AutoImageLoader,
    LoaderRegistry,
)
from .solvers import (
    BaseSolver,
    DataclassSolver,
    PydanticSolver,
    AstrometryNetSolver,
    SolverRegistry,
)
from .extractors import (
    BaseExtractor,
    DataclassExtractor,
    PydanticExtractor,
    SepExtractor,
    ExtractorRegistry,
)
from .outputs import (
    BaseReportFormat,
    DataclassReportFormat,
    ReportFormatConfig,
    TextReportFormat,
    TomlReportFormat,
    YamlReportFormat,
    OutputTarget,
    PerImageFileTarget,
    AggregateFileTarget,
    StandardStreamTarget,
    OutputSink,
    ReportFormatRegistry,
)

from .pipeline import (
    BatchDriver,
    ImagePipelineStage,
    ProgressReporter,
    collect_images,
)

__version__ = VERSION
