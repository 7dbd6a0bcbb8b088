#!/usr/bin/env python
#
# Stellar Batch CLI - Output Sink
# © 2025 Shinichi Morita (shin3tky)
#

"""
Report routing for a batch run.

The sink chooses the target variant once, from the configured output path:

- no path: one file per image, ``<image path><format suffix>``
- ``stdout`` / ``stderr``: the matching standard stream
- any other path: one aggregate file for the whole run

When a file cannot be opened the sink logs the failure and writes that
image's reports to stdout instead.
"""

import logging
from typing import List, Optional

from ..exceptions import StellarOutputOpenError
from ..i18n import DEFAULT_LOCALE, log_warning
from ..schema import (
    STANDARD_STREAM_TARGETS,
    STDOUT_TARGET,
    RunConfig,
    SolveOutcome,
    StarRecord,
)
from ..utils import Clock, derived_report_path, local_now
from .base import BaseReportFormat
from .targets import (
    AggregateFileTarget,
    OutputTarget,
    PerImageFileTarget,
    StandardStreamTarget,
)

logger = logging.getLogger(__name__)


class OutputSink:
    """Resolve, open and write report targets for one run.

    Example:
        >>> sink = OutputSink(TextReportFormat(ReportFormatConfig()), "stdout")
        >>> target = sink.resolve("/data/m45.fits")
        >>> sink.write_solve_report(target, "m45.fits", outcome)
        >>> sink.append_star_report(target, stars)
        >>> sink.finalize(target)
        >>> sink.close()
    """

    def __init__(
        self,
        report_format: BaseReportFormat,
        output_path: Optional[str] = None,
        *,
        overwrite: bool = False,
        clock: Clock = local_now,
        locale: str = DEFAULT_LOCALE,
    ) -> None:
        self.report_format = report_format
        self.output_path = output_path
        self.overwrite = overwrite
        self.clock = clock
        self.locale = locale
        self._shared: Optional[OutputTarget] = None

        if output_path in STANDARD_STREAM_TARGETS:
            self._shared = StandardStreamTarget(output_path)
        elif output_path is not None:
            self._shared = AggregateFileTarget(output_path, overwrite=overwrite)
        logger.debug(
            "OutputSink: format=%s, output_path=%s, overwrite=%s, target=%r",
            report_format.plugin_name,
            output_path,
            overwrite,
            self._shared,
        )

    @classmethod
    def from_run_config(
        cls,
        report_format: BaseReportFormat,
        run_config: RunConfig,
        *,
        clock: Clock = local_now,
        locale: str = DEFAULT_LOCALE,
    ) -> "OutputSink":
        return cls(
            report_format,
            run_config.output_path,
            overwrite=run_config.overwrite,
            clock=clock,
            locale=locale,
        )

    @property
    def aggregate(self) -> bool:
        return self._shared is not None

    def resolve(self, image_path: str, image_name: Optional[str] = None) -> OutputTarget:
        """Return the target for ``image_path``.

        Aggregate and stream targets are shared, per-image targets are
        created fresh.
        """
        if self._shared is not None:
            target = self._shared
        else:
            target = PerImageFileTarget(
                derived_report_path(image_path, self.report_format.suffix),
                overwrite=self.overwrite,
            )
        target.image_name = image_name or image_path
        return target

    def report_identity(self, image_path: str, image_name: str) -> str:
        """Identity written into and searched for in reports.

        Shared targets hold many images, so they use the path as given to
        keep same-named files from different directories apart.
        """
        return image_path if self.aggregate else image_name

    def already_reported(self, target: OutputTarget, image_name: str) -> bool:
        """Skip check: does ``target`` already hold ``image_name``'s report?

        An unreadable target counts as not reported; writing then goes
        through the usual open and stdout fallback path.
        """
        try:
            reported = target.already_reported(image_name, self.report_format)
        except StellarOutputOpenError as exc:
            log_warning(
                logger,
                "ui.output.skip_check_failed",
                locale=self.locale,
                path=target.description,
                error=exc.original_error or exc,
                image=image_name,
            )
            return False
        logger.debug("already_reported(%s, %r) -> %s", image_name, target, reported)
        return reported

    def _effective(self, target: OutputTarget) -> OutputTarget:
        while target.fallback is not None:
            target = target.fallback
        return target

    def _write(self, target: OutputTarget, text: str) -> None:
        effective = self._effective(target)
        try:
            effective.open()
        except StellarOutputOpenError as exc:
            logger.debug("Output open failed: %s", exc)
            log_warning(
                logger,
                "ui.output.fallback_stdout",
                locale=self.locale,
                path=effective.description,
                error=exc.original_error or exc,
            )
            effective.fallback = StandardStreamTarget(STDOUT_TARGET)
            effective = effective.fallback
        effective.write(text)

    def write_solve_report(
        self, target: OutputTarget, image_name: str, outcome: SolveOutcome
    ) -> None:
        target.image_name = image_name
        text = self.report_format.render_solve(image_name, outcome, self.clock())
        self._write(target, text)
        # Solve report must survive a crash during extraction
        self._effective(target).flush()

    def append_star_report(self, target: OutputTarget, stars: List[StarRecord]) -> None:
        image_name = target.image_name or ""
        self._write(target, self.report_format.render_stars(image_name, stars))

    def finalize(self, target: OutputTarget) -> None:
        """Flush after an image; per-image files are also closed."""
        self._effective(target).finalize()

    def close(self) -> None:
        """Close the shared target at the end of the run (streams stay open)."""
        target = self._shared
        while target is not None:
            target.close()
            target = target.fallback


__all__ = ["OutputSink"]
