"""Plate solver plugin driving the astrometry.net ``solve-field`` executable."""

import logging
import os
import shutil
import subprocess
import tempfile
from typing import List, Optional

import numpy as np
from astropy.io import fits
from astropy.wcs import WCS
from pydantic import BaseModel, Field

from ..constraints import ra_hours_to_degrees
from ..exceptions import StellarSolveError
from ..plugin_contract import forbid_unknown_keys
from ..schema import (
    DEFAULT_SEARCH_RADIUS_DEG,
    DEFAULT_SOLVE_FIELD_COMMAND,
    DEFAULT_SOLVER_TIME_LIMIT_SEC,
    ImageRecord,
    SolveOutcome,
)
from ..wcs_tools import outcome_from_wcs
from .base import PydanticSolver

logger = logging.getLogger(__name__)

_INPUT_NAME = "field.fits"
_CONFIG_NAME = "backend.cfg"


class AstrometryNetConfig(BaseModel):
    """Configuration for :class:`AstrometryNetSolver`.

    Attributes:
        command: solve-field executable (name on PATH or absolute path).
        time_limit: CPU time limit in seconds (``--cpulimit``).
        downsample: Downsample factor passed to solve-field (None disables).
        timeout_margin: Extra wall-clock seconds allowed beyond the time limit.
        extra_args: Additional solve-field arguments.
        keep_temp: Keep the working directory for inspection.
    """

    command: str = DEFAULT_SOLVE_FIELD_COMMAND
    time_limit: int = Field(default=DEFAULT_SOLVER_TIME_LIMIT_SEC, gt=0)
    downsample: Optional[int] = Field(default=2, ge=1)
    timeout_margin: float = Field(default=30.0, ge=0)
    extra_args: List[str] = Field(default_factory=list)
    keep_temp: bool = False


forbid_unknown_keys(AstrometryNetConfig)


def _luminance(data: np.ndarray) -> np.ndarray:
    if data.ndim == 3:
        data = data.mean(axis=2)
    return np.ascontiguousarray(data, dtype=np.float32)


class AstrometryNetSolver(PydanticSolver[AstrometryNetConfig]):
    """Solve fields with a local astrometry.net installation.

    The pixel buffer is written to a temporary FITS file, ``solve-field``
    runs with a generated backend configuration listing the resolved index
    directories, and the resulting ``.wcs`` header is read back with
    astropy. Right ascension constraints are converted from hours to the
    degrees solve-field expects.
    """

    plugin_name = "astrometry"
    name = "astrometry.net solve-field"
    version = "1.0.0"
    ConfigType = AstrometryNetConfig

    def _backend_config(self) -> str:
        lines = [f"add_path {path}" for path in self.index_folder_paths]
        lines.extend(["autoindex", "inparallel"])
        return "\n".join(lines) + "\n"

    def build_command(self, input_path: str, workdir: str, config_path: str) -> List[str]:
        """Assemble the solve-field command line for one image."""
        args = [
            self.config.command,
            "--overwrite",
            "--no-plots",
            "--dir",
            workdir,
            "--cpulimit",
            str(self.config.time_limit),
            "--backend-config",
            config_path,
            "--new-fits",
            "none",
        ]
        if self.config.downsample:
            args.extend(["--downsample", str(self.config.downsample)])

        constraints = self.constraints
        if constraints is not None and constraints.position is not None:
            position = constraints.position
            radius = position.radius_degrees or DEFAULT_SEARCH_RADIUS_DEG
            args.extend(
                [
                    "--ra",
                    f"{ra_hours_to_degrees(position.ra_hours):.6f}",
                    "--dec",
                    f"{position.dec_degrees:.6f}",
                    "--radius",
                    f"{radius:g}",
                ]
            )
        if constraints is not None and constraints.scale is not None:
            scale = constraints.scale
            args.extend(
                [
                    "--scale-low",
                    f"{scale.low:g}",
                    "--scale-high",
                    f"{scale.high:g}",
                    "--scale-units",
                    scale.units,
                ]
            )

        args.extend(self.config.extra_args)
        args.append(input_path)
        return args

    def _run(self, args: List[str], record: ImageRecord) -> None:
        logger.debug("Running solve-field: %s", " ".join(args))
        try:
            completed = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.config.time_limit + self.config.timeout_margin,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise StellarSolveError(
                "solve-field timed out",
                filepath=record.path,
                original_error=exc,
                context={"time_limit": self.config.time_limit},
            ) from exc
        except OSError as exc:
            raise StellarSolveError(
                "Failed to start solve-field",
                filepath=record.path,
                original_error=exc,
                context={"command": self.config.command},
            ) from exc

        if completed.returncode != 0:
            logger.debug("solve-field stderr: %s", completed.stderr)
            raise StellarSolveError(
                "solve-field returned a non-zero exit status",
                filepath=record.path,
                context={
                    "returncode": completed.returncode,
                    "stderr": (completed.stderr or "").strip()[-500:],
                },
            )

    def solve(self, record: ImageRecord) -> SolveOutcome:
        if record.data is None or record.statistics is None:
            raise StellarSolveError("Image has no pixel data", filepath=record.path)
        if shutil.which(self.config.command) is None:
            raise StellarSolveError(
                "solve-field executable not found",
                filepath=record.path,
                context={"command": self.config.command},
            )

        workdir = tempfile.mkdtemp(prefix="stellar_batch_")
        try:
            input_path = os.path.join(workdir, _INPUT_NAME)
            config_path = os.path.join(workdir, _CONFIG_NAME)
            fits.PrimaryHDU(_luminance(record.data)).writeto(input_path)
            with open(config_path, "w", encoding="utf-8") as handle:
                handle.write(self._backend_config())

            self._run(self.build_command(input_path, workdir, config_path), record)

            base = os.path.splitext(input_path)[0]
            wcs_path = base + ".wcs"
            if not os.path.exists(base + ".solved") or not os.path.exists(wcs_path):
                raise StellarSolveError(
                    "No solution found",
                    filepath=record.path,
                    context={"index_folders": len(self.index_folder_paths)},
                )
            wcs = WCS(fits.getheader(wcs_path))
            return outcome_from_wcs(
                wcs, record.statistics.width, record.statistics.height
            )
        finally:
            if self.config.keep_temp:
                logger.debug("Keeping solve-field working directory %s", workdir)
            else:
                shutil.rmtree(workdir, ignore_errors=True)


__all__ = ["AstrometryNetConfig", "AstrometryNetSolver"]
