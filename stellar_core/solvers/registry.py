#!/usr/bin/env python
#
# Stellar Batch CLI - Solver Registry
# © 2025 Shinichi Morita (shin3tky)
#

"""Registry for plate solver plugins (built-in: ``astrometry``)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Type, Union

from ..plugin_registry import (
    SOLVER_ENTRY_POINT_GROUP,
    SOLVER_PLUGIN_DIR,
    _PLUGIN_KIND_SOLVER,
)
from ..plugin_registry_base import PluginRegistryBase
from ..schema import DEFAULT_SOLVER_NAME
from .base import BaseSolver, _is_valid_solver

logger = logging.getLogger(__name__)


class SolverRegistry(PluginRegistryBase[BaseSolver]):
    """Solver registry with discovery, registration and instantiation.

    Example:
        >>> solver = SolverRegistry.create("astrometry", {"time_limit": 120})
    """

    _plugin_kind = _PLUGIN_KIND_SOLVER
    _entry_point_group = SOLVER_ENTRY_POINT_GROUP
    _plugin_dir = SOLVER_PLUGIN_DIR
    _skip_classes = frozenset({"BaseSolver", "DataclassSolver", "PydanticSolver"})

    @classmethod
    def _builtin_plugins(cls) -> List[Type[BaseSolver]]:
        from .astrometry_net import AstrometryNetSolver

        return [AstrometryNetSolver]

    @classmethod
    def _is_valid_plugin(cls, solver_cls: Type[BaseSolver]) -> bool:
        return _is_valid_solver(solver_cls)

    @classmethod
    def create_default(
        cls, config: Optional[Union[Dict[str, Any], Any]] = None
    ) -> BaseSolver:
        return cls.create(DEFAULT_SOLVER_NAME, config)


__all__ = ["SolverRegistry"]
