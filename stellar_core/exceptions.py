#!/usr/bin/env python
#
# Stellar Batch CLI - Custom Exceptions
# © 2025 Shinichi Morita (shin3tky)
#

"""
Custom exception classes for batch plate solving.

Every error carries enough context (file, wrapped cause, key/value details)
to build a diagnostic report that can be attached to a bug report.

Exception Hierarchy:
    StellarError (base)
    ├── StellarCatalogPathError (catalog directory rejected, non-fatal)
    ├── StellarLoadError (image decoding failures)
    │   └── StellarUnsupportedFormatError (unknown image formats)
    ├── StellarSolveError (plate solve failures)
    ├── StellarExtractError (star extraction failures)
    ├── StellarOutputError (report output failures)
    │   ├── StellarOutputOpenError (target could not be opened)
    │   └── StellarWriteError (report write failures)
    ├── StellarValidationError (argument/value validation, fatal)
    └── StellarConfigError (configuration/plugin errors, fatal)

Load, solve and extract errors are "stage" errors: the pipeline stage
catches them, records the failing stage and moves on to the next image.

Example:
    >>> try:
    ...     record = loader.load("m42.fits")
    ... except StellarLoadError as e:
    ...     print(e.get_diagnostic_info())
"""

from __future__ import annotations

import os
import platform
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import lru_cache
from importlib import resources
from string import Template
from typing import Any, Dict, List, Optional

from .i18n import DEFAULT_LOCALE, get_message
from .schema import VERSION

# Dependencies listed in diagnostic reports
_KEY_DEPENDENCIES = [
    "numpy",
    "opencv-python",
    "astropy",
    "sep",
    "pydantic",
    "PyYAML",
]

_ISSUE_URL = "https://github.com/shin3tky/stellar_batch/issues/new"

# Stage names used in per-image failure lines
STAGE_LOAD = "load"
STAGE_SOLVE = "solve"
STAGE_EXTRACT = "extract"
STAGE_REPORT = "report"


def _get_package_versions() -> Dict[str, str]:
    """Collect versions of key dependencies ("not installed" when missing)."""
    from importlib.metadata import PackageNotFoundError, version

    versions: Dict[str, str] = {}
    for pkg in _KEY_DEPENDENCIES:
        try:
            versions[pkg] = version(pkg)
        except PackageNotFoundError:
            versions[pkg] = "not installed"
    return versions


@lru_cache(maxsize=1)
def _load_diagnostic_template() -> Template:
    template_path = resources.files(__package__).joinpath(
        "templates", "diagnostic_report.md.j2"
    )
    return Template(template_path.read_text(encoding="utf-8"))


def _format_section(title: str, lines: List[str]) -> str:
    if not lines:
        return ""
    return "\n".join([title, "", "```", *lines, "```", ""])


def _label(key: str, locale: str) -> str:
    return get_message(f"ui.diagnostic.label.{key}", locale=locale)


def _build_report_header(locale: str) -> str:
    return "\n".join(
        [
            get_message("ui.diagnostic.report.title", locale=locale),
            "",
            get_message("ui.diagnostic.report.description", locale=locale),
            get_message(
                "ui.diagnostic.report.issue_link", locale=locale, issue_url=_ISSUE_URL
            ),
            "",
            "---",
            "",
        ]
    )


def _render_diagnostic_report(
    diagnostic: "DiagnosticInfo", *, locale: str, include_header: bool
) -> str:
    """Render a diagnostic report using the template and localized labels."""
    general_section = _format_section(
        get_message("ui.diagnostic.section.heading", locale=locale),
        [
            f"{_label('version', locale)}: {diagnostic.version}",
            f"{_label('python_version', locale)}: {diagnostic.python_version}",
            f"{_label('platform', locale)}: {diagnostic.platform}",
            f"{_label('timestamp', locale)}: {diagnostic.timestamp}",
        ],
    )

    file_section = ""
    if diagnostic.filepath:
        file_lines = [
            f"{_label('filepath', locale)}: {diagnostic.filepath}",
            f"{_label('file_exists', locale)}: {diagnostic.file_exists}",
        ]
        if diagnostic.file_size is not None:
            file_lines.append(
                f"{_label('file_size', locale)}: {diagnostic.file_size:,} "
                f"{_label('bytes', locale)}"
            )
        file_section = _format_section(
            get_message("ui.diagnostic.section.file", locale=locale), file_lines
        )

    error_lines = [
        f"{_label('error_type', locale)}: {diagnostic.error_type}",
        f"{_label('error_message', locale)}: {diagnostic.error_message}",
    ]
    if diagnostic.original_error_type:
        error_lines.append(
            f"{_label('original_error_type', locale)}: "
            f"{diagnostic.original_error_type}"
        )
    if diagnostic.original_error_message:
        error_lines.append(
            f"{_label('original_error_message', locale)}: "
            f"{diagnostic.original_error_message}"
        )
    error_section = _format_section(
        get_message("ui.diagnostic.section.error", locale=locale), error_lines
    )

    context_section = _format_section(
        get_message("ui.diagnostic.section.context", locale=locale),
        [f"{key}: {value}" for key, value in diagnostic.context.items()],
    )
    dependencies_section = _format_section(
        get_message("ui.diagnostic.section.dependencies", locale=locale),
        [f"{pkg}: {ver}" for pkg, ver in sorted(diagnostic.dependencies.items())],
    )

    return _load_diagnostic_template().safe_substitute(
        report_header=_build_report_header(locale) if include_header else "",
        diagnostic_section=general_section,
        file_section=file_section,
        error_section=error_section,
        context_section=context_section,
        dependencies_section=dependencies_section,
    )


@dataclass
class DiagnosticInfo:
    """Structured diagnostic information for error reporting.

    Attributes:
        version: stellar_core version string.
        python_version: Python interpreter version.
        platform: Operating system and architecture.
        timestamp: ISO format timestamp when the error occurred.
        filepath: Path to the file that caused the error (if applicable).
        file_exists: Whether the file exists at the given path.
        file_size: Size of the file in bytes (if exists).
        error_type: Name of the exception class.
        error_message: The error message.
        original_error_type: Type of the wrapped original exception.
        original_error_message: Message from the wrapped original exception.
        context: Additional context-specific information.
        dependencies: Installed versions of key dependencies.
    """

    version: str = ""
    python_version: str = ""
    platform: str = ""
    timestamp: str = ""
    filepath: Optional[str] = None
    file_exists: Optional[bool] = None
    file_size: Optional[int] = None
    error_type: str = ""
    error_message: str = ""
    original_error_type: Optional[str] = None
    original_error_message: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    dependencies: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "python_version": self.python_version,
            "platform": self.platform,
            "timestamp": self.timestamp,
            "filepath": self.filepath,
            "file_exists": self.file_exists,
            "file_size": self.file_size,
            "error_type": self.error_type,
            "error_message": self.error_message,
            "original_error_type": self.original_error_type,
            "original_error_message": self.original_error_message,
            "context": self.context,
            "dependencies": self.dependencies,
        }

    def format_for_issue(
        self, *, locale: str = DEFAULT_LOCALE, include_header: bool = False
    ) -> str:
        """Format diagnostic info as a Markdown report."""
        return _render_diagnostic_report(
            self, locale=locale, include_header=include_header
        )


def _collect_file_info(filepath: Optional[str]) -> tuple[Optional[bool], Optional[int]]:
    if filepath is None:
        return None, None
    try:
        if os.path.exists(filepath):
            return True, os.path.getsize(filepath)
        return False, None
    except OSError:
        return None, None


def _build_diagnostic(
    *,
    filepath: Optional[str],
    error_type: str,
    error_message: str,
    original_error: Optional[BaseException],
    context: Dict[str, Any],
) -> DiagnosticInfo:
    file_exists, file_size = _collect_file_info(filepath)
    return DiagnosticInfo(
        version=VERSION,
        python_version=sys.version,
        platform=f"{platform.system()} {platform.release()} ({platform.machine()})",
        timestamp=datetime.now(timezone.utc).isoformat(timespec="seconds"),
        filepath=filepath,
        file_exists=file_exists,
        file_size=file_size,
        error_type=error_type,
        error_message=error_message,
        original_error_type=(
            type(original_error).__name__ if original_error is not None else None
        ),
        original_error_message=(
            str(original_error) if original_error is not None else None
        ),
        context=context,
        dependencies=_get_package_versions(),
    )


def _merge_context(
    context: Optional[Dict[str, Any]], **extra: Any
) -> Dict[str, Any]:
    ctx = dict(context) if context else {}
    for key, value in extra.items():
        if value is not None:
            ctx[key] = value
    return ctx


class StellarError(Exception):
    """Base exception for all stellar_core errors.

    Attributes:
        message: Human-readable error message.
        filepath: Path to the related file (if applicable).
        original_error: The original exception that was caught (if wrapping).
        context: Additional context information as key-value pairs.

    Example:
        >>> raise StellarError("Something went wrong", context={"step": "solve"})
    """

    def __init__(
        self,
        message: str,
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.filepath = filepath
        self.original_error = original_error
        self.context = context or {}

        full_message = message
        if filepath:
            full_message = f"{message} (file: {filepath})"
        if original_error:
            full_message = (
                f"{full_message}: {type(original_error).__name__}: {original_error}"
            )

        super().__init__(full_message)

    def get_diagnostic_info(self) -> DiagnosticInfo:
        """Generate diagnostic information for this error."""
        return _build_diagnostic(
            filepath=self.filepath,
            error_type=type(self).__name__,
            error_message=self.message,
            original_error=self.original_error,
            context=self.context,
        )

    def format_for_issue(
        self, *, locale: str = DEFAULT_LOCALE, include_header: bool = False
    ) -> str:
        """Format this error as a Markdown issue report."""
        return self.get_diagnostic_info().format_for_issue(
            locale=locale, include_header=include_header
        )


class StellarCatalogPathError(StellarError):
    """A catalog index directory was rejected.

    Raised internally while resolving catalog directories; the resolver logs
    it and drops the path rather than failing the run.
    """

    def __init__(
        self,
        message: str = "Catalog directory does not exist",
        *,
        filepath: Optional[str] = None,
        source: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.source = source
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=_merge_context(context, source=source),
        )


class StellarStageError(StellarError):
    """Base for errors raised by a single image's pipeline stage."""

    stage: str = ""

    def __init__(
        self,
        message: str,
        *,
        filepath: Optional[str] = None,
        image_name: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.image_name = image_name or (
            os.path.basename(filepath) if filepath else None
        )
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=_merge_context(
                context, stage=self.stage or None, image_name=self.image_name
            ),
        )


class StellarLoadError(StellarStageError):
    """Exception raised when decoding an image file fails.

    Example:
        >>> try:
        ...     hdul = fits.open(filepath)
        ... except OSError as e:
        ...     raise StellarLoadError(
        ...         "Failed to open FITS file",
        ...         filepath=filepath,
        ...         original_error=e,
        ...     )
    """

    stage = STAGE_LOAD

    def __init__(
        self,
        message: str = "Failed to load image file",
        *,
        filepath: Optional[str] = None,
        image_name: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            filepath=filepath,
            image_name=image_name,
            original_error=original_error,
            context=context,
        )


class StellarUnsupportedFormatError(StellarLoadError):
    """Exception raised when no loader understands a file's format.

    Attributes:
        detected_format: The detected file format (if available).
        supported_formats: List of supported formats.
    """

    def __init__(
        self,
        message: str = "Unsupported file format",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        detected_format: Optional[str] = None,
        supported_formats: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.detected_format = detected_format
        self.supported_formats = supported_formats
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=_merge_context(
                context,
                detected_format=detected_format,
                supported_formats=(
                    ", ".join(supported_formats) if supported_formats else None
                ),
            ),
        )


class StellarSolveError(StellarStageError):
    """Exception raised when the solver cannot determine a field solution."""

    stage = STAGE_SOLVE

    def __init__(
        self,
        message: str = "Plate solve failed",
        *,
        filepath: Optional[str] = None,
        image_name: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            filepath=filepath,
            image_name=image_name,
            original_error=original_error,
            context=context,
        )


class StellarExtractError(StellarStageError):
    """Exception raised when star extraction fails after a successful solve."""

    stage = STAGE_EXTRACT

    def __init__(
        self,
        message: str = "Star extraction failed",
        *,
        filepath: Optional[str] = None,
        image_name: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            filepath=filepath,
            image_name=image_name,
            original_error=original_error,
            context=context,
        )


class StellarValidationError(StellarError):
    """Exception raised when validation of arguments or values fails.

    Attributes:
        parameter_name: Name of the invalid parameter.
        provided_value: The value that was provided.
        expected: Description of what was expected.

    Example:
        >>> raise StellarValidationError(
        ...     "--ra requires --dec",
        ...     parameter_name="ra",
        ...     provided_value=56.75,
        ...     expected="both --ra and --dec",
        ... )
    """

    def __init__(
        self,
        message: str = "Validation failed",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        parameter_name: Optional[str] = None,
        provided_value: Any = None,
        expected: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.parameter_name = parameter_name
        self.provided_value = provided_value
        self.expected = expected
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=_merge_context(
                context,
                parameter_name=parameter_name,
                provided_value=(
                    repr(provided_value) if provided_value is not None else None
                ),
                expected=expected,
            ),
        )


class StellarConfigError(StellarError):
    """Exception raised when configuration or plugin setup is invalid.

    Attributes:
        config_key: The configuration key that has an issue.
        plugin_name: Name of the plugin (if plugin-related).
    """

    def __init__(
        self,
        message: str = "Configuration error",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        config_key: Optional[str] = None,
        plugin_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.config_key = config_key
        self.plugin_name = plugin_name
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=_merge_context(
                context, config_key=config_key, plugin_name=plugin_name
            ),
        )


class StellarOutputError(StellarError):
    """Base exception for report output failures.

    Attributes:
        destination_path: Path where the output was attempted (if applicable).
        operation: Type of operation being performed (e.g., "open", "write").
    """

    def __init__(
        self,
        message: str = "Output operation failed",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        destination_path: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.destination_path = destination_path
        self.operation = operation
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            context=_merge_context(
                context, destination_path=destination_path, operation=operation
            ),
        )


class StellarOutputOpenError(StellarOutputError):
    """An output target could not be opened; the sink falls back to stdout."""

    def __init__(
        self,
        message: str = "Failed to open output target",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        destination_path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            destination_path=destination_path,
            operation="open",
            context=context,
        )


class StellarWriteError(StellarOutputError):
    """Exception raised when writing a report to an open target fails."""

    def __init__(
        self,
        message: str = "Failed to write report",
        *,
        filepath: Optional[str] = None,
        original_error: Optional[BaseException] = None,
        destination_path: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message,
            filepath=filepath,
            original_error=original_error,
            destination_path=destination_path,
            operation="write",
            context=context,
        )


# =============================================================================
# CLI Helper Functions
# =============================================================================


def format_error_for_user(
    error: StellarError, *, verbose: bool = False, locale: str = DEFAULT_LOCALE
) -> str:
    """Format an error message for CLI display.

    Args:
        error: The StellarError to format.
        verbose: If True, include full diagnostic information.
        locale: Locale code for message localization.

    Returns:
        Formatted error message string.
    """
    lines: List[str] = [
        "",
        "=" * 60,
        get_message("ui.error.header", locale=locale, message=error.message),
        "=" * 60,
    ]

    if error.filepath:
        lines.append(
            get_message("ui.error.filepath", locale=locale, filepath=error.filepath)
        )

    if error.original_error:
        lines.append(
            get_message(
                "ui.error.cause",
                locale=locale,
                error_type=type(error.original_error).__name__,
                error_message=error.original_error,
            )
        )

    if verbose:
        lines.extend(
            [
                "",
                get_message("ui.diagnostic.info", locale=locale),
                "-" * 60,
                error.format_for_issue(locale=locale),
            ]
        )
    else:
        lines.extend(
            [
                "",
                get_message("ui.diagnostic.hint.verbose", locale=locale),
                get_message("ui.diagnostic.hint.save_option", locale=locale),
            ]
        )

    lines.append("")
    return "\n".join(lines)


def save_diagnostic_report(
    error: BaseException,
    output_path: Optional[str] = None,
    *,
    locale: str = DEFAULT_LOCALE,
) -> str:
    """Save diagnostic information for ``error`` to a Markdown file.

    Args:
        error: The error to generate diagnostics for. Exceptions outside the
            StellarError hierarchy get a report built from the exception itself.
        output_path: Path for the output file. If None, a timestamped file
            name in the current directory is used.
        locale: Locale code for localized messages.

    Returns:
        Path to the saved diagnostic file.
    """
    if output_path is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        output_path = f"stellar_diagnostic_{timestamp}.md"

    if isinstance(error, StellarError):
        info = error.get_diagnostic_info()
    else:
        info = create_diagnostic_from_exception(error)
    content = info.format_for_issue(locale=locale, include_header=True)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(content)

    return output_path


def create_diagnostic_from_exception(
    exc: BaseException,
    *,
    filepath: Optional[str] = None,
    context: Optional[Dict[str, Any]] = None,
) -> DiagnosticInfo:
    """Create diagnostic info from an arbitrary (non-Stellar) exception."""
    return _build_diagnostic(
        filepath=filepath,
        error_type=type(exc).__name__,
        error_message=str(exc),
        original_error=None,
        context=context or {},
    )


__all__ = [
    "DiagnosticInfo",
    "STAGE_LOAD",
    "STAGE_SOLVE",
    "STAGE_EXTRACT",
    "STAGE_REPORT",
    "StellarError",
    "StellarCatalogPathError",
    "StellarStageError",
    "StellarLoadError",
    "StellarUnsupportedFormatError",
    "StellarSolveError",
    "StellarExtractError",
    "StellarValidationError",
    "StellarConfigError",
    "StellarOutputError",
    "StellarOutputOpenError",
    "StellarWriteError",
    "format_error_for_user",
    "save_diagnostic_report",
    "create_diagnostic_from_exception",
]
