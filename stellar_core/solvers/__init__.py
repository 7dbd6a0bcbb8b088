"""Plate solver plugins for stellar_core."""

from .base import BaseSolver, DataclassSolver, PydanticSolver
from .astrometry_net import AstrometryNetConfig, AstrometryNetSolver
from .registry import SolverRegistry

__all__ = [
    "BaseSolver",
    "DataclassSolver",
    "PydanticSolver",
    "AstrometryNetConfig",
    "AstrometryNetSolver",
    "SolverRegistry",
]
