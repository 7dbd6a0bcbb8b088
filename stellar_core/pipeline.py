#!/usr/bin/env python
#
# Stellar Batch CLI - Pipeline
# © 2025 Shinichi Morita (shin3tky)
#

"""
Batch orchestration for plate solving and star extraction.

:class:`ImagePipelineStage` runs one image through
load -> constrain -> solve -> report -> extract -> report and never lets a
collaborator failure escape; :class:`BatchDriver` walks the image list in
order, keeps the counters and prints progress and the run summary.
"""

import logging
import os
import sys
import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, TextIO, Tuple

from .constraints import ConstraintTemplate, SearchConstraintComposer
from .exceptions import (
    STAGE_EXTRACT,
    STAGE_LOAD,
    STAGE_REPORT,
    STAGE_SOLVE,
    StellarConfigError,
    StellarError,
    StellarExtractError,
    StellarLoadError,
    StellarOutputError,
    StellarSolveError,
)
from .extractors import BaseExtractor, ExtractorRegistry
from .i18n import get_message, resolve_locale
from .inputs import BaseImageLoader, LoaderRegistry
from .outputs import BaseReportFormat, OutputSink, ReportFormatRegistry
from .schema import (
    ALL_STARS,
    BatchCounters,
    ExtractionProfile,
    ImageRecord,
    ImageState,
    RunConfig,
    StageResult,
    VERBOSITY_SILENT,
    VERBOSITY_VERBOSE,
)
from .solvers import BaseSolver, SolverRegistry
from .utils import Clock, format_seconds, image_name, local_now

# Module-level logger for pipeline diagnostics
logger = logging.getLogger(__name__)

Timer = Callable[[], float]


# =============================================================================
# Collaborator resolution
# =============================================================================


def _resolve_plugin(
    registry: Any,
    instance: Any,
    name: Optional[str],
    config: Optional[Dict[str, Any]],
    *,
    config_key: str,
    label: str,
) -> Any:
    """Shared resolution: explicit instance, then registry lookup by name."""
    if instance is not None:
        logger.debug("Using provided %s instance: %s", label, type(instance).__name__)
        return instance

    logger.debug("Resolving %s by name: %s", label, name)
    try:
        if name:
            return registry.create(name, config)
        return registry.create_default(config)
    except KeyError as e:
        available = registry.list_available()
        logger.error("%s '%s' not found. Available: %s", label, name, available)
        raise StellarConfigError(
            f"Unknown {label}: '{name}'",
            config_key=config_key,
            plugin_name=name,
            original_error=e,
            context={"available": ", ".join(available)},
        ) from e
    except (TypeError, ValueError) as e:
        logger.error("Invalid configuration for %s '%s': %s", label, name, e)
        raise StellarConfigError(
            f"Invalid configuration for {label} '{name}'",
            config_key=config_key,
            plugin_name=name,
            original_error=e,
        ) from e


def _resolve_loader(
    loader: Optional[BaseImageLoader] = None,
    loader_name: Optional[str] = None,
    loader_config: Optional[Dict[str, Any]] = None,
) -> BaseImageLoader:
    """Resolve the image loader.

    Raises:
        StellarConfigError: If the name is unknown or the config invalid.
    """
    return _resolve_plugin(
        LoaderRegistry,
        loader,
        loader_name,
        loader_config,
        config_key="loader_name",
        label="image loader",
    )


def _resolve_solver(
    solver: Optional[BaseSolver] = None,
    solver_name: Optional[str] = None,
    solver_config: Optional[Dict[str, Any]] = None,
) -> BaseSolver:
    return _resolve_plugin(
        SolverRegistry,
        solver,
        solver_name,
        solver_config,
        config_key="solver_name",
        label="solver",
    )


def _resolve_extractor(
    extractor: Optional[BaseExtractor] = None,
    extractor_name: Optional[str] = None,
    extractor_config: Optional[Dict[str, Any]] = None,
) -> BaseExtractor:
    return _resolve_plugin(
        ExtractorRegistry,
        extractor,
        extractor_name,
        extractor_config,
        config_key="extractor_name",
        label="extractor",
    )


def _resolve_report_format(
    report_format: Optional[BaseReportFormat] = None,
    format_name: Optional[str] = None,
) -> BaseReportFormat:
    return _resolve_plugin(
        ReportFormatRegistry,
        report_format,
        format_name,
        None,
        config_key="output_format",
        label="report format",
    )


def collect_images(
    paths: Iterable[str], *, exists: Callable[[str], bool] = os.path.isfile
) -> Tuple[List[str], List[str]]:
    """Split image paths into existing and missing ones, keeping order.

    Returns:
        (existing, missing)
    """
    existing: List[str] = []
    missing: List[str] = []
    for path in paths:
        (existing if exists(path) else missing).append(path)
    logger.debug(
        "collect_images: %d existing, %d missing", len(existing), len(missing)
    )
    return existing, missing


# =============================================================================
# Progress reporting
# =============================================================================


class ProgressReporter:
    """Console progress lines, honoring the run's verbosity.

    Progress goes to stdout, per-image failures to stderr as
    ``[stage] image: message``. Silent mode drops progress and the summary
    but still prints failures.
    """

    def __init__(
        self,
        verbosity: int,
        locale: str,
        *,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self.verbosity = verbosity
        self.locale = locale
        self._stdout = stdout
        self._stderr = stderr

    @property
    def stdout(self) -> TextIO:
        return self._stdout or sys.stdout

    @property
    def stderr(self) -> TextIO:
        return self._stderr or sys.stderr

    def message(self, key: str, **params: Any) -> str:
        return get_message(key, locale=self.locale, **params)

    def info(self, key: str, **params: Any) -> None:
        if self.verbosity > VERBOSITY_SILENT:
            print(self.message(key, **params), file=self.stdout, flush=True)

    def detail(self, key: str, **params: Any) -> None:
        if self.verbosity >= VERBOSITY_VERBOSE:
            print(self.message(key, **params), file=self.stdout, flush=True)

    def failure(self, stage: str, name: str, error: BaseException) -> None:
        print(
            self.message("ui.batch.stage_failed", stage=stage, image=name, error=error),
            file=self.stderr,
            flush=True,
        )


# =============================================================================
# Per-image stage
# =============================================================================


class ImagePipelineStage:
    """Run one image through load, solve, extract and report.

    The stage holds no state across images: constraints are composed
    fresh for each image from the shared template and the pixel buffer is
    released back to the loader on every path out of :meth:`run`.
    Collaborator failures end the image in a ``*_FAILED`` state. Output
    failures (:class:`StellarOutputError`) stop the image where it is and
    are handed to the driver in ``StageResult.output_error``.
    """

    def __init__(
        self,
        loader: BaseImageLoader,
        solver: BaseSolver,
        extractor: BaseExtractor,
        sink: OutputSink,
        composer: SearchConstraintComposer,
        *,
        reporter: ProgressReporter,
        skip_solved: bool = False,
        profile: ExtractionProfile = ALL_STARS,
        timer: Timer = time.perf_counter,
    ) -> None:
        self.loader = loader
        self.solver = solver
        self.extractor = extractor
        self.sink = sink
        self.composer = composer
        self.reporter = reporter
        self.skip_solved = skip_solved
        self.profile = profile
        self.timer = timer

    def _fail(
        self,
        result: StageResult,
        state: ImageState,
        stage: str,
        error: BaseException,
    ) -> StageResult:
        result.state = state
        result.error = error
        logger.debug("[%s] %s failed: %s", stage, result.image_name, error)
        self.reporter.failure(stage, result.image_name, error)
        return result

    def _output_failed(self, result: StageResult, error: StellarOutputError) -> StageResult:
        if result.output_error is None:
            result.output_error = error
            logger.debug("[%s] %s failed: %s", STAGE_REPORT, result.image_name, error)
            self.reporter.failure(STAGE_REPORT, result.image_name, error)
        return result

    def _load(self, path: str) -> ImageRecord:
        try:
            return self.loader.load(path)
        except StellarLoadError:
            raise
        except Exception as exc:
            raise StellarLoadError(
                "Image loader failed", filepath=path, original_error=exc
            ) from exc

    def _solve(self, record: ImageRecord):
        try:
            constraints = self.composer.compose(record.hints)
            if constraints.is_empty:
                self.solver.clear_constraints()
            else:
                self.solver.apply_constraints(constraints)
            outcome = self.solver.solve(record)
        except StellarSolveError:
            raise
        except Exception as exc:
            raise StellarSolveError(
                "Solver failed", filepath=record.path, original_error=exc
            ) from exc
        if not outcome.success:
            raise StellarSolveError("Solver found no solution", filepath=record.path)
        return outcome

    def _extract(self, record: ImageRecord, outcome):
        try:
            return list(self.extractor.extract(record, self.profile, outcome))
        except StellarExtractError:
            raise
        except Exception as exc:
            raise StellarExtractError(
                "Extractor failed", filepath=record.path, original_error=exc
            ) from exc

    def run(self, path: str) -> StageResult:
        """Process ``path`` and return its :class:`StageResult`.

        A report write failure leaves the state at the last step reached
        and sets ``output_error``.
        """
        name = image_name(path)
        identity = self.sink.report_identity(path, name)
        result = StageResult(image_name=name, state=ImageState.PENDING)
        started = self.timer()
        target = self.sink.resolve(path, identity)
        record: Optional[ImageRecord] = None
        try:
            if self.skip_solved and self.sink.already_reported(target, identity):
                result.state = ImageState.SKIPPED
                self.reporter.info("ui.batch.skipped", filename=name)
                return result

            try:
                record = self._load(path)
            except StellarLoadError as exc:
                return self._fail(result, ImageState.LOAD_FAILED, STAGE_LOAD, exc)
            result.state = ImageState.LOADED
            logger.debug("Loaded %s: %s", name, record.statistics)

            self.reporter.info("ui.batch.solving", filename=name)
            try:
                outcome = self._solve(record)
            except StellarSolveError as exc:
                return self._fail(result, ImageState.SOLVE_FAILED, STAGE_SOLVE, exc)
            result.state = ImageState.SOLVED
            result.outcome = outcome
            try:
                self.sink.write_solve_report(target, identity, outcome)
            except StellarOutputError as exc:
                return self._output_failed(result, exc)
            self.reporter.detail(
                "ui.batch.solved",
                filename=name,
                ra=outcome.ra_degrees,
                dec=outcome.dec_degrees,
                scale=outcome.pixel_scale,
            )

            try:
                stars = self._extract(record, outcome)
            except StellarExtractError as exc:
                return self._fail(
                    result, ImageState.EXTRACT_FAILED, STAGE_EXTRACT, exc
                )
            result.state = ImageState.EXTRACTED
            result.stars = stars
            try:
                self.sink.append_star_report(target, stars)
            except StellarOutputError as exc:
                return self._output_failed(result, exc)
            result.state = ImageState.REPORTED
            self.reporter.detail("ui.batch.extracted", filename=name, count=len(stars))
            return result
        finally:
            if record is not None:
                self.loader.release(record)
            try:
                self.sink.finalize(target)
            except StellarOutputError as exc:
                self._output_failed(result, exc)
            result.elapsed_seconds = self.timer() - started
            logger.debug(
                "Stage finished for %s: %s in %.3fs",
                name,
                result.state.value,
                result.elapsed_seconds,
            )


# =============================================================================
# Batch driver
# =============================================================================


class BatchDriver:
    """Drive a batch of images through :class:`ImagePipelineStage`.

    Collaborators may be passed as instances (tests, embedding) or are
    created from the run configuration's plugin names.

    Example:
        >>> driver = BatchDriver()
        >>> counters = driver.run(
        ...     ["/data/m45.fits"],
        ...     resolve_catalog_paths(["/data/index"]),
        ...     ConstraintTemplate(),
        ...     RunConfig(),
        ... )
        >>> counters.processed
        1
    """

    def __init__(
        self,
        *,
        loader: Optional[BaseImageLoader] = None,
        solver: Optional[BaseSolver] = None,
        extractor: Optional[BaseExtractor] = None,
        report_format: Optional[BaseReportFormat] = None,
        profile: ExtractionProfile = ALL_STARS,
        clock: Clock = local_now,
        timer: Timer = time.perf_counter,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        self.loader = loader
        self.solver = solver
        self.extractor = extractor
        self.report_format = report_format
        self.profile = profile
        self.clock = clock
        self.timer = timer
        self.stdout = stdout
        self.stderr = stderr

    def run(
        self,
        images: Sequence[str],
        catalog_paths: Sequence[Path],
        constraints_template: Optional[ConstraintTemplate],
        run_config: RunConfig,
    ) -> BatchCounters:
        """Process ``images`` in order and return the run's counters.

        ``counters.processed`` is the number of successfully solved images.

        Raises:
            StellarConfigError: If a collaborator cannot be created.
        """
        locale = resolve_locale(run_config.locale)
        loader = _resolve_loader(
            self.loader, run_config.loader_name, run_config.loader_config
        )
        solver = _resolve_solver(
            self.solver, run_config.solver_name, run_config.solver_config
        )
        extractor = _resolve_extractor(
            self.extractor, run_config.extractor_name, run_config.extractor_config
        )
        report_format = _resolve_report_format(
            self.report_format, run_config.output_format
        )
        solver.set_index_folder_paths(catalog_paths)

        reporter = ProgressReporter(
            run_config.verbosity, locale, stdout=self.stdout, stderr=self.stderr
        )
        sink = OutputSink.from_run_config(
            report_format, run_config, clock=self.clock, locale=locale
        )
        stage = ImagePipelineStage(
            loader,
            solver,
            extractor,
            sink,
            SearchConstraintComposer(constraints_template),
            reporter=reporter,
            skip_solved=run_config.skip_solved,
            profile=self.profile,
            timer=self.timer,
        )

        total = len(images)
        counters = BatchCounters(total=total)
        logger.debug(
            "BatchDriver.run: %d image(s), %d catalog path(s), config=%s",
            total,
            len(catalog_paths),
            run_config.to_dict(),
        )
        reporter.detail("ui.batch.catalogs", count=len(catalog_paths))
        for path in catalog_paths:
            reporter.detail("ui.batch.catalog_path", path=path)

        started = self.timer()
        try:
            for index, path in enumerate(images, start=1):
                reporter.info(
                    "ui.batch.progress",
                    current=index,
                    total=total,
                    filename=image_name(path),
                )
                result = stage.run(path)
                counters.record(result)
                if result.output_error is not None:
                    # Later reports would fail the same way
                    logger.error(
                        "Report output failed for %s, stopping: %s",
                        path,
                        result.output_error,
                    )
                    counters.aborted = True
                    break
                if result.state.is_failure and run_config.stop_on_failure:
                    reporter.info("ui.batch.stopped", filename=result.image_name)
                    counters.aborted = True
                    break
        finally:
            try:
                sink.close()
            except (OSError, StellarError) as exc:
                logger.error("Failed to close report output: %s", exc)
            counters.elapsed_seconds = self.timer() - started

        self._print_summary(reporter, counters)
        return counters

    @staticmethod
    def _print_summary(reporter: ProgressReporter, counters: BatchCounters) -> None:
        reporter.info("ui.batch.summary.separator")
        reporter.info("ui.batch.summary.processed", count=counters.processed)
        if counters.skipped:
            reporter.info("ui.batch.summary.skipped", count=counters.skipped)
        if counters.failed:
            reporter.info("ui.batch.summary.failed", count=counters.failed)
        reporter.info(
            "ui.batch.summary.elapsed",
            seconds=format_seconds(counters.elapsed_seconds),
        )
        mean = counters.mean_seconds_per_processed
        if mean is not None:
            reporter.info("ui.batch.summary.mean", seconds=format_seconds(mean))


__all__ = [
    "BatchDriver",
    "ImagePipelineStage",
    "ProgressReporter",
    "collect_images",
]
