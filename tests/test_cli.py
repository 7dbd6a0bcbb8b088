"""Tests for the stellar-batch command line interface."""

import contextlib
import io
import json
import os
import sys
import tempfile
import unittest
from dataclasses import dataclass
from unittest import mock

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np  # noqa: E402

from stellar_batch_cli import (  # noqa: E402
    MAX_EXIT_STATUS,
    _build_run_config,
    _clamp_exit_status,
    build_arg_parser,
    main,
)
from stellar_core.exceptions import StellarValidationError  # noqa: E402
from stellar_core.extractors import DataclassExtractor, ExtractorRegistry  # noqa: E402
from stellar_core.inputs import (  # noqa: E402
    DataclassImageLoader,
    LoaderRegistry,
    compute_statistics,
)
from stellar_core.schema import ImageRecord, SolveOutcome  # noqa: E402
from stellar_core.solvers import DataclassSolver, SolverRegistry  # noqa: E402


@dataclass
class _CliStubConfig:
    pass


class CliStubLoader(DataclassImageLoader[_CliStubConfig]):
    plugin_name = "cli_stub"
    ConfigType = _CliStubConfig

    def load(self, filepath):
        if "broken" in os.path.basename(filepath):
            raise ValueError("cannot decode")
        data = np.zeros((4, 4), dtype=np.float32)
        return ImageRecord(
            path=filepath,
            name=os.path.basename(filepath),
            data=data,
            statistics=compute_statistics(data),
            decoded=True,
        )


class CliStubSolver(DataclassSolver[_CliStubConfig]):
    plugin_name = "cli_stub"
    ConfigType = _CliStubConfig
    seen = []

    def solve(self, record):
        CliStubSolver.seen.append(self.constraints)
        return SolveOutcome(56.75, 24.1, 180.0, 120.0, 3.6, 0.5)


class CliStubExtractor(DataclassExtractor[_CliStubConfig]):
    plugin_name = "cli_stub"
    ConfigType = _CliStubConfig

    def extract(self, record, profile, solution=None):
        return []


_STUB_ARGS = ["--loader", "cli_stub", "--solver", "cli_stub", "--extractor", "cli_stub"]


class TestArgumentParser(unittest.TestCase):
    def setUp(self):
        self.parser = build_arg_parser()

    def test_flags_default_to_none(self):
        args = self.parser.parse_args(["a.fits"])
        self.assertEqual(args.images, ["a.fits"])
        for name in (
            "index_dirs",
            "out",
            "overwrite",
            "skip_solved",
            "stop_on_failure",
            "ra",
            "dec",
            "radius",
            "scale_low",
            "scale_high",
            "scale_units",
            "output_format",
            "verbosity",
            "loader",
            "solver",
            "extractor",
            "time_limit",
            "save_diagnostic",
        ):
            self.assertIsNone(getattr(args, name), name)

    def test_index_dir_forms(self):
        args = self.parser.parse_args(
            ["-I/data/one", "-I", "/data/two", "-d", "/data/three", "--index-dir", "x", "a.fits"]
        )
        self.assertEqual(args.index_dirs, ["/data/one", "/data/two", "/data/three", "x"])

    def test_skip_solved_aliases(self):
        for flag in ("-K", "-J", "--skip-solved", "--continue"):
            args = self.parser.parse_args([flag, "a.fits"])
            self.assertTrue(args.skip_solved, flag)

    def test_short_options(self):
        args = self.parser.parse_args(
            ["-o", "all.txt", "-O", "-L", "1", "-H", "2", "--scale-units", "arcsecperpix", "a.fits"]
        )
        self.assertEqual(args.out, "all.txt")
        self.assertTrue(args.overwrite)
        self.assertEqual((args.scale_low, args.scale_high), (1.0, 2.0))
        self.assertEqual(args.scale_units, "arcsecperpix")

    def test_options_after_images(self):
        args = self.parser.parse_intermixed_args(["a.fits", "--silent", "b.fits"])
        self.assertEqual(args.images, ["a.fits", "b.fits"])
        self.assertEqual(args.verbosity, 0)

    def test_verbose_and_silent_are_exclusive(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                self.parser.parse_args(["--verbose", "--silent", "a.fits"])
        self.assertEqual(ctx.exception.code, 2)

    def test_images_are_required(self):
        with contextlib.redirect_stderr(io.StringIO()):
            with self.assertRaises(SystemExit) as ctx:
                self.parser.parse_args([])
        self.assertEqual(ctx.exception.code, 2)

    def test_save_diagnostic_without_value(self):
        args = self.parser.parse_args(["--save-diagnostic", "--", "a.fits"])
        self.assertEqual(args.save_diagnostic, "")


class TestRunConfigFromArguments(unittest.TestCase):
    def setUp(self):
        self.parser = build_arg_parser()
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def build(self, argv):
        return _build_run_config(self.parser.parse_args(argv))

    def test_position_and_scale(self):
        config = self.build(["--ra", "56.75", "--dec", "24.1", "-L", "1", "-H", "3", "a.fits"])
        self.assertEqual(config.cli_position(), (56.75, 24.1))
        self.assertEqual(config.cli_scale(), (1.0, 3.0, None))

    def test_half_pair_is_rejected(self):
        with self.assertRaises(StellarValidationError):
            self.build(["--ra", "56.75", "a.fits"])
        with self.assertRaises(StellarValidationError):
            self.build(["-H", "3", "a.fits"])

    def test_time_limit_merges_into_solver_config(self):
        config = self.build(["--solver-config", '{"downsample": 4}', "--time-limit", "90", "a.fits"])
        self.assertEqual(config.solver_config, {"downsample": 4, "time_limit": 90})

    def test_config_file_with_command_line_overrides(self):
        path = os.path.join(self.tmp, "run.json")
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(
                {
                    "output_format": "yaml",
                    "stop_on_failure": True,
                    "index_dirs": ["/from/config"],
                    "solver_config": {"downsample": 4},
                },
                handle,
            )
        config = self.build(
            ["--config", path, "--format", "toml", "-I", "/from/cli", "--time-limit", "60", "a.fits"]
        )
        self.assertEqual(config.output_format, "toml")
        self.assertTrue(config.stop_on_failure)
        self.assertEqual(config.index_dirs, ["/from/config", "/from/cli"])
        self.assertEqual(config.solver_config, {"downsample": 4, "time_limit": 60})


class TestMain(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name
        LoaderRegistry.register(CliStubLoader)
        SolverRegistry.register(CliStubSolver)
        ExtractorRegistry.register(CliStubExtractor)
        CliStubSolver.seen = []

    def tearDown(self):
        LoaderRegistry._reset()
        SolverRegistry._reset()
        ExtractorRegistry._reset()
        self._tmp.cleanup()

    def touch(self, name):
        path = os.path.join(self.tmp, name)
        with open(path, "wb") as handle:
            handle.write(b"\0")
        return path

    def run_main(self, argv):
        stdout, stderr = io.StringIO(), io.StringIO()
        with contextlib.redirect_stdout(stdout), contextlib.redirect_stderr(stderr):
            with self.assertRaises(SystemExit) as ctx:
                main(argv)
        return ctx.exception.code, stdout.getvalue(), stderr.getvalue()

    def test_exit_status_is_processed_count(self):
        images = [self.touch("a.fits"), self.touch("broken.fits"), self.touch("c.fits")]
        code, out, err = self.run_main(_STUB_ARGS + images)
        self.assertEqual(code, 2)
        self.assertIn("[load] broken.fits:", err)
        self.assertIn("2 images processed", out)
        self.assertTrue(os.path.exists(images[0] + ".txt"))

    def test_load_failure_after_solved_image_exits_one(self):
        images = [self.touch("a.fits"), self.touch("broken.fits")]
        code, out, err = self.run_main(_STUB_ARGS + images)
        self.assertEqual(code, 1)
        self.assertIn("[load] broken.fits:", err)
        self.assertIn("1 image processed", out)

    def test_silent_run_still_reports_failures(self):
        images = [self.touch("broken.fits"), self.touch("a.fits")]
        code, out, err = self.run_main(_STUB_ARGS + ["--silent"] + images)
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertIn("[load] broken.fits:", err)

    def test_unexpected_error_saves_diagnostic(self):
        report = os.path.join(self.tmp, "diag.md")
        with mock.patch(
            "stellar_batch_cli.BatchDriver.run", side_effect=RuntimeError("index exploded")
        ):
            code, _, err = self.run_main(
                _STUB_ARGS + ["--save-diagnostic", report, self.touch("a.fits")]
            )
        self.assertEqual(code, 1)
        self.assertIn("RuntimeError", err)
        with open(report, encoding="utf-8") as handle:
            text = handle.read()
        self.assertIn("RuntimeError", text)
        self.assertIn("index exploded", text)

    def test_position_reaches_solver_in_hours(self):
        code, _, _ = self.run_main(
            _STUB_ARGS + ["--ra", "56.75", "--dec", "24.1", self.touch("a.fits")]
        )
        self.assertEqual(code, 1)
        position = CliStubSolver.seen[0].position
        self.assertAlmostEqual(position.ra_hours, 3.783333, places=5)
        self.assertEqual(position.dec_degrees, 24.1)

    def test_missing_images_are_dropped(self):
        present = self.touch("a.fits")
        missing = os.path.join(self.tmp, "missing.fits")
        code, _, err = self.run_main(_STUB_ARGS + [missing, present])
        self.assertEqual(code, 1)
        self.assertIn(f"Image file not found, skipped: {missing}", err)

    def test_no_existing_images_is_fatal(self):
        code, _, err = self.run_main(_STUB_ARGS + [os.path.join(self.tmp, "missing.fits")])
        self.assertEqual(code, 0)
        self.assertIn("Error: No existing image files to process", err)

    def test_half_pair_is_fatal(self):
        code, out, err = self.run_main(_STUB_ARGS + ["--ra", "56.75", self.touch("a.fits")])
        self.assertEqual(code, 0)
        self.assertIn("Error: Invalid arguments", err)
        self.assertIn("usage:", err)
        self.assertEqual(CliStubSolver.seen, [])

    def test_unknown_format_is_fatal(self):
        code, _, err = self.run_main(_STUB_ARGS + ["--format", "csv", self.touch("a.fits")])
        self.assertEqual(code, 0)
        self.assertIn("Unknown report format", err)

    def test_save_diagnostic_on_fatal_error(self):
        report = os.path.join(self.tmp, "diag.md")
        code, _, err = self.run_main(
            ["--save-diagnostic", report, os.path.join(self.tmp, "missing.fits")]
        )
        self.assertEqual(code, 0)
        self.assertTrue(os.path.exists(report))
        self.assertIn(f"Diagnostic report saved to: {report}", err)

    def test_aggregate_output_to_stdout(self):
        image = self.touch("a.fits")
        code, out, _ = self.run_main(_STUB_ARGS + ["--out", "stdout", "--silent", image])
        self.assertEqual(code, 1)
        self.assertIn(f"Image: {image}\n", out)
        self.assertIn("Stars found: 0", out)
        self.assertNotIn("1 image processed", out)


class TestExitStatus(unittest.TestCase):
    def test_clamp(self):
        self.assertEqual(_clamp_exit_status(0), 0)
        self.assertEqual(_clamp_exit_status(42), 42)
        self.assertEqual(_clamp_exit_status(300), MAX_EXIT_STATUS)
        self.assertEqual(_clamp_exit_status(-3), 0)


if __name__ == "__main__":
    unittest.main()
