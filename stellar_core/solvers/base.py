"""Abstract base classes for plate solver plugins."""

from abc import ABC, abstractmethod
import logging
from pathlib import Path
from typing import Any, Dict, Generic, Iterable, Optional, Tuple, Type, TypeVar

from stellar_core.plugin_contract import (
    DataclassConfigured,
    PydanticConfigured,
    is_plugin_class,
    plugin_info,
)
from stellar_core.schema import ImageRecord, SearchConstraints, SolveOutcome

ConfigType = TypeVar("ConfigType")

logger = logging.getLogger(__name__)


class BaseSolver(ABC, Generic[ConfigType]):
    """Abstract base class for plate solver plugins.

    The pipeline configures a solver once per image: catalog index paths
    (shared, read-only), then either ``apply_constraints`` or
    ``clear_constraints``, then ``solve``. Solvers must not keep any other
    state between images.

    Subclasses must define:
        - plugin_name: str - Unique identifier for the solver
        - solve(record: ImageRecord) -> SolveOutcome
    """

    #: Unique name identifying this solver plugin
    plugin_name: str = ""

    #: Human-readable name of the solver
    name: str = "BaseSolver"

    #: Version string of the solver
    version: str = "1.0.0"

    config: ConfigType

    _index_folder_paths: Tuple[Path, ...] = ()
    _constraints: Optional[SearchConstraints] = None

    @property
    def index_folder_paths(self) -> Tuple[Path, ...]:
        return self._index_folder_paths

    @property
    def constraints(self) -> Optional[SearchConstraints]:
        return self._constraints

    def set_index_folder_paths(self, paths: Iterable[Path]) -> None:
        self._index_folder_paths = tuple(Path(path) for path in paths)
        logger.debug(
            "%s: %d index folder(s) configured",
            type(self).__name__,
            len(self._index_folder_paths),
        )

    def apply_constraints(self, constraints: SearchConstraints) -> None:
        """Restrict the next solve to ``constraints``."""
        self._constraints = constraints
        logger.debug("%s: constraints applied: %s", type(self).__name__, constraints.to_dict())

    def clear_constraints(self) -> None:
        """Run the next solve unconstrained (full sky, any scale)."""
        self._constraints = None

    @abstractmethod
    def solve(self, record: ImageRecord) -> SolveOutcome:
        """Plate-solve ``record``.

        Raises:
            StellarSolveError: If no solution is found.
        """

    def get_info(self) -> Dict[str, str]:
        return plugin_info(self)


def _is_valid_solver(cls: Type[Any]) -> bool:
    return is_plugin_class(cls, BaseSolver)


class DataclassSolver(DataclassConfigured, BaseSolver[ConfigType], Generic[ConfigType]):
    """Base class for solvers configured by dataclasses."""

    _plugin_kind_label = "solver"
    ConfigType: Type[ConfigType]


class PydanticSolver(PydanticConfigured, BaseSolver[ConfigType], Generic[ConfigType]):
    """Base class for solvers configured by pydantic models."""

    _plugin_kind_label = "solver"
    ConfigType: Type[ConfigType]


__all__ = ["BaseSolver", "DataclassSolver", "PydanticSolver"]
