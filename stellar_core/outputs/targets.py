#!/usr/bin/env python
#
# Stellar Batch CLI - Output Targets
# © 2025 Shinichi Morita (shin3tky)
#

"""
Writable destinations for reports.

Exactly one variant is chosen per run by the output sink:

- :class:`PerImageFileTarget` - one file per image, derived from its path
- :class:`AggregateFileTarget` - one shared file held open for the run
- :class:`StandardStreamTarget` - ``stdout`` or ``stderr``, never closed

Every variant implements ``open``, ``write``, ``flush`` and ``finalize``.
"""

import logging
import os
import sys
from abc import ABC, abstractmethod
from typing import Optional, TextIO

from ..exceptions import StellarOutputOpenError, StellarWriteError
from ..schema import STDERR_TARGET, STDOUT_TARGET

logger = logging.getLogger(__name__)


class OutputTarget(ABC):
    """A resolved report destination.

    Attributes:
        image_name: Image whose reports are currently being written.
        fallback: Target used instead of this one after an open failure.
    """

    def __init__(self) -> None:
        self.image_name: Optional[str] = None
        self.fallback: Optional["OutputTarget"] = None

    @property
    @abstractmethod
    def description(self) -> str:
        """Path or stream name, for messages."""

    @abstractmethod
    def open(self) -> TextIO:
        """Return a writable handle, opening it on first use.

        Raises:
            StellarOutputOpenError: If the destination cannot be opened.
        """

    @abstractmethod
    def already_reported(self, image_name: str, report_format) -> bool:
        """Return True if this target already holds ``image_name``'s report."""

    def write(self, text: str) -> None:
        handle = self.open()
        try:
            handle.write(text)
        except (OSError, ValueError) as exc:
            logger.error(
                "Failed to write report to %s: %s: %s",
                self.description,
                type(exc).__name__,
                exc,
            )
            raise StellarWriteError(
                f"Failed to write report to {self.description}",
                original_error=exc,
                destination_path=self.description,
            ) from exc

    @abstractmethod
    def flush(self) -> None:
        """Push buffered text to the destination."""

    @abstractmethod
    def finalize(self) -> None:
        """End of one image's reports."""

    def close(self) -> None:
        """End of the run."""
        self.finalize()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.description!r})"


class _FileTarget(OutputTarget):
    """Shared open/flush/close handling for file-backed targets."""

    def __init__(self, path: str, overwrite: bool = False) -> None:
        super().__init__()
        self.path = path
        self.overwrite = overwrite
        self._handle: Optional[TextIO] = None

    @property
    def description(self) -> str:
        return self.path

    def _open_mode(self) -> str:
        return "w" if self.overwrite else "a"

    def open(self) -> TextIO:
        if self._handle is not None:
            return self._handle
        mode = self._open_mode()
        try:
            self._handle = open(self.path, mode, encoding="utf-8")
        except OSError as exc:
            raise StellarOutputOpenError(
                f"Failed to open report file {self.path}",
                original_error=exc,
                destination_path=self.path,
            ) from exc
        logger.debug("Opened report file %s (mode=%s)", self.path, mode)
        return self._handle

    def flush(self) -> None:
        if self._handle is None:
            return
        try:
            self._handle.flush()
        except (OSError, ValueError) as exc:
            raise StellarWriteError(
                f"Failed to write report to {self.path}",
                original_error=exc,
                destination_path=self.path,
            ) from exc

    def _close_handle(self) -> None:
        if self._handle is not None:
            handle, self._handle = self._handle, None
            try:
                handle.close()
            except OSError as exc:
                raise StellarWriteError(
                    f"Failed to close report file {self.path}",
                    original_error=exc,
                    destination_path=self.path,
                ) from exc
            logger.debug("Closed report file %s", self.path)

    def _read_existing(self) -> Optional[str]:
        """Current file content, or None when the file does not exist.

        Raises:
            StellarOutputOpenError: If the file exists but cannot be read.
        """
        if not os.path.isfile(self.path):
            return None
        self.flush()
        try:
            with open(self.path, "r", encoding="utf-8", errors="replace") as handle:
                return handle.read()
        except OSError as exc:
            raise StellarOutputOpenError(
                f"Failed to read report file {self.path}",
                original_error=exc,
                destination_path=self.path,
            ) from exc


class PerImageFileTarget(_FileTarget):
    """One report file per image; overwrite truncates on first write."""

    def already_reported(self, image_name: str, report_format) -> bool:
        return os.path.exists(self.path)

    def finalize(self) -> None:
        self._close_handle()


class AggregateFileTarget(_FileTarget):
    """One report file shared by every image of the run.

    The handle stays open until ``close``. Overwrite only truncates on the
    first open of the run; later images always append.
    """

    def __init__(self, path: str, overwrite: bool = False) -> None:
        super().__init__(path, overwrite)
        self._opened_once = False

    def _open_mode(self) -> str:
        if self.overwrite and not self._opened_once:
            return "w"
        return "a"

    def open(self) -> TextIO:
        handle = super().open()
        self._opened_once = True
        return handle

    def already_reported(self, image_name: str, report_format) -> bool:
        # Content that the first open will truncate does not count
        if self.overwrite and not self._opened_once:
            return False
        existing = self._read_existing()
        if existing is None:
            return False
        return report_format.contains_report(existing, image_name)

    def finalize(self) -> None:
        self.flush()

    def close(self) -> None:
        self._close_handle()


class StandardStreamTarget(OutputTarget):
    """``stdout`` or ``stderr``; flushed after every image, never closed."""

    def __init__(self, stream_name: str = STDOUT_TARGET, stream: Optional[TextIO] = None):
        super().__init__()
        if stream_name not in (STDOUT_TARGET, STDERR_TARGET):
            raise ValueError(f"Unknown standard stream: {stream_name!r}")
        self.stream_name = stream_name
        self._stream = stream

    @property
    def description(self) -> str:
        return self.stream_name

    def open(self) -> TextIO:
        # Looked up on each use so redirected streams are honored
        if self._stream is not None:
            return self._stream
        return getattr(sys, self.stream_name)

    def already_reported(self, image_name: str, report_format) -> bool:
        return False

    def flush(self) -> None:
        try:
            self.open().flush()
        except (OSError, ValueError) as exc:
            raise StellarWriteError(
                f"Failed to write report to {self.stream_name}",
                original_error=exc,
                destination_path=self.stream_name,
            ) from exc

    def finalize(self) -> None:
        self.flush()


__all__ = [
    "AggregateFileTarget",
    "OutputTarget",
    "PerImageFileTarget",
    "StandardStreamTarget",
]
