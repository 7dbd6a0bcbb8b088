#!/usr/bin/env python
#
# Stellar Batch CLI - Catalog index directory resolution
# © 2025 Shinichi Morita (shin3tky)
#

"""
Resolve the ordered set of catalog index directories handed to the solver.

Directories come from three sources, in this order: platform defaults,
directories given on the command line, and the ``ASTROMETRY_INDEX_FILES``
environment variable. Search order matters because the solver prefers
earlier indexes among equally scoring matches.
"""

import logging
import os
import platform
from pathlib import Path
from typing import Callable, Iterable, List, Mapping, Optional, Tuple, Union

from .exceptions import StellarCatalogPathError
from .schema import INDEX_FILES_ENV_VAR

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]

SOURCE_DEFAULT = "default"
SOURCE_CLI = "cli"
SOURCE_ENV = "environment"


def default_index_folder_paths(
    system: Optional[str] = None, home: Optional[Path] = None
) -> List[Path]:
    """Return the conventional index locations for this platform.

    These mirror where astrometry.net packages and KStars install their
    index files. The list is not existence-filtered.
    """
    system = system or platform.system()
    home = home or Path.home()

    if system == "Darwin":
        return [
            home / "Library" / "Application Support" / "Astrometry",
            Path("/Applications/KStars.app/Contents/Resources/astrometry/data"),
            Path("/usr/local/share/astrometry"),
            Path("/opt/homebrew/share/astrometry"),
        ]
    if system == "Windows":
        return [
            home / "AppData" / "Local" / "cygwin_ansvr" / "usr" / "share" / "astrometry" / "data",
            Path("C:/cygwin/usr/share/astrometry/data"),
        ]
    return [
        Path("/usr/share/astrometry"),
        home / ".local" / "share" / "kstars" / "astrometry",
        Path("/usr/local/share/astrometry"),
    ]


def index_path_from_environment(
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[Path]:
    """Return the directory named by ``ASTROMETRY_INDEX_FILES``, if set."""
    env = os.environ if environ is None else environ
    value = env.get(INDEX_FILES_ENV_VAR)
    if not value:
        return None
    return Path(value)


def _normalize(path: PathLike) -> Path:
    return Path(os.path.abspath(os.path.expanduser(os.fspath(path))))


class CatalogPathResolver:
    """Merge default, CLI and environment catalog directories.

    The result never contains a path that does not exist at resolution
    time, keeps defaults before CLI directories before the environment
    directory, and contains each normalized absolute path at most once.

    Args:
        exists: Existence predicate, ``os.path.exists`` unless overridden.
    """

    def __init__(self, exists: Optional[Callable[[str], bool]] = None) -> None:
        self._exists = exists or os.path.exists

    def _check(self, path: PathLike, source: str) -> Path:
        normalized = _normalize(path)
        if not self._exists(str(normalized)):
            raise StellarCatalogPathError(
                "Catalog directory does not exist",
                filepath=str(normalized),
                source=source,
            )
        return normalized

    def resolve(
        self,
        defaults: Iterable[PathLike],
        cli_paths: Iterable[PathLike],
        env_path: Optional[PathLike] = None,
    ) -> Tuple[Path, ...]:
        """Return the ordered, de-duplicated, existence-filtered path set."""
        sources: List[Tuple[str, PathLike]] = [
            (SOURCE_DEFAULT, path) for path in defaults
        ]
        sources.extend((SOURCE_CLI, path) for path in cli_paths)
        if env_path:
            sources.append((SOURCE_ENV, env_path))

        resolved: List[Path] = []
        seen = set()
        for source, path in sources:
            try:
                normalized = self._check(path, source)
            except StellarCatalogPathError as exc:
                logger.debug("Dropping catalog path from %s: %s", source, exc)
                continue
            if normalized in seen:
                logger.debug("Ignoring duplicate catalog path %s (%s)", normalized, source)
                continue
            seen.add(normalized)
            resolved.append(normalized)

        logger.debug(
            "Resolved %d catalog path(s): %s",
            len(resolved),
            ", ".join(str(path) for path in resolved) or "none",
        )
        return tuple(resolved)


def resolve_catalog_paths(
    cli_paths: Iterable[PathLike] = (),
    *,
    defaults: Optional[Iterable[PathLike]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Tuple[Path, ...]:
    """Resolve catalog paths from platform defaults, CLI and environment."""
    return CatalogPathResolver().resolve(
        default_index_folder_paths() if defaults is None else defaults,
        cli_paths,
        index_path_from_environment(environ),
    )


__all__ = [
    "CatalogPathResolver",
    "default_index_folder_paths",
    "index_path_from_environment",
    "resolve_catalog_paths",
]
