"""Tests for the solve-field adapter's command assembly and error paths."""

import os
import sys
import unittest
from pathlib import Path
from unittest import mock

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np  # noqa: E402

from stellar_core.exceptions import StellarSolveError  # noqa: E402
from stellar_core.schema import (  # noqa: E402
    ImageRecord,
    ScaleBounds,
    SearchConstraints,
    SkyPosition,
)
from stellar_core.inputs import compute_statistics  # noqa: E402
from stellar_core.solvers import AstrometryNetConfig, AstrometryNetSolver  # noqa: E402


def _record():
    data = np.zeros((8, 8), dtype=np.float32)
    return ImageRecord(
        path="/data/m45.fits",
        name="m45.fits",
        data=data,
        statistics=compute_statistics(data),
    )


class TestBuildCommand(unittest.TestCase):
    def setUp(self):
        self.solver = AstrometryNetSolver(AstrometryNetConfig(time_limit=120))

    def _value(self, args, flag):
        return args[args.index(flag) + 1]

    def test_unconstrained(self):
        self.solver.clear_constraints()
        args = self.solver.build_command("in.fits", "/work", "/work/backend.cfg")
        self.assertEqual(args[0], "solve-field")
        self.assertEqual(args[-1], "in.fits")
        self.assertEqual(self._value(args, "--cpulimit"), "120")
        self.assertEqual(self._value(args, "--backend-config"), "/work/backend.cfg")
        self.assertNotIn("--ra", args)
        self.assertNotIn("--scale-low", args)

    def test_position_converted_back_to_degrees(self):
        self.solver.apply_constraints(
            SearchConstraints(position=SkyPosition(3.7833333333, 24.1, 5.0))
        )
        args = self.solver.build_command("in.fits", "/work", "/work/backend.cfg")
        self.assertEqual(self._value(args, "--ra"), "56.750000")
        self.assertEqual(self._value(args, "--dec"), "24.100000")
        self.assertEqual(self._value(args, "--radius"), "5")

    def test_default_radius(self):
        self.solver.apply_constraints(
            SearchConstraints(position=SkyPosition(1.0, 2.0))
        )
        args = self.solver.build_command("in.fits", "/work", "/work/backend.cfg")
        self.assertEqual(self._value(args, "--radius"), "15")

    def test_scale(self):
        self.solver.apply_constraints(
            SearchConstraints(scale=ScaleBounds(1.5, 2.5, "arcsecperpix"))
        )
        args = self.solver.build_command("in.fits", "/work", "/work/backend.cfg")
        self.assertEqual(self._value(args, "--scale-low"), "1.5")
        self.assertEqual(self._value(args, "--scale-high"), "2.5")
        self.assertEqual(self._value(args, "--scale-units"), "arcsecperpix")

    def test_extra_arguments_precede_input(self):
        solver = AstrometryNetSolver(
            AstrometryNetConfig(extra_args=["--no-verify"], downsample=None)
        )
        args = solver.build_command("in.fits", "/work", "/work/backend.cfg")
        self.assertEqual(args[-2:], ["--no-verify", "in.fits"])
        self.assertNotIn("--downsample", args)

    def test_backend_config_lists_index_paths(self):
        self.solver.set_index_folder_paths([Path("/data/a"), "/data/b"])
        text = self.solver._backend_config()
        self.assertEqual(
            text.splitlines(),
            ["add_path /data/a", "add_path /data/b", "autoindex", "inparallel"],
        )


class TestSolveErrors(unittest.TestCase):
    def test_missing_executable(self):
        solver = AstrometryNetSolver(AstrometryNetConfig(command="no-such-solve-field"))
        with mock.patch("stellar_core.solvers.astrometry_net.shutil.which", return_value=None):
            with self.assertRaises(StellarSolveError):
                solver.solve(_record())

    def test_missing_pixels(self):
        solver = AstrometryNetSolver(AstrometryNetConfig())
        record = _record()
        record.data = None
        with self.assertRaises(StellarSolveError):
            solver.solve(record)

    def test_no_solution_files(self):
        solver = AstrometryNetSolver(AstrometryNetConfig())
        completed = mock.Mock(returncode=0, stderr="")
        with mock.patch(
            "stellar_core.solvers.astrometry_net.shutil.which",
            return_value="/usr/bin/solve-field",
        ), mock.patch(
            "stellar_core.solvers.astrometry_net.subprocess.run",
            return_value=completed,
        ):
            with self.assertRaises(StellarSolveError) as ctx:
                solver.solve(_record())
        self.assertEqual(ctx.exception.message, "No solution found")

    def test_non_zero_exit(self):
        solver = AstrometryNetSolver(AstrometryNetConfig())
        completed = mock.Mock(returncode=1, stderr="bad index")
        with mock.patch(
            "stellar_core.solvers.astrometry_net.shutil.which",
            return_value="/usr/bin/solve-field",
        ), mock.patch(
            "stellar_core.solvers.astrometry_net.subprocess.run",
            return_value=completed,
        ):
            with self.assertRaises(StellarSolveError) as ctx:
                solver.solve(_record())
        self.assertEqual(ctx.exception.context["stderr"], "bad index")


if __name__ == "__main__":
    unittest.main()
