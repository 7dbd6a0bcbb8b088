"""Tests for schema dataclasses, state sets and RunConfig validation."""

import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from stellar_core.schema import (  # noqa: E402
    DEFAULT_OUTPUT_FORMAT,
    RUN_CONFIG_SCHEMA_VERSION,
    BatchCounters,
    ImageHints,
    ImageState,
    RunConfig,
    ScaleBounds,
    SearchConstraints,
    SkyPosition,
    SolveOutcome,
    StageResult,
)


class TestImageState(unittest.TestCase):
    def test_failure_states(self):
        self.assertTrue(ImageState.EXTRACT_FAILED.is_failure)
        self.assertFalse(ImageState.SKIPPED.is_failure)
        self.assertFalse(ImageState.REPORTED.is_failure)


class TestValueTypes(unittest.TestCase):
    def test_sky_position_ranges(self):
        SkyPosition(ra_hours=23.99, dec_degrees=-90.0)
        with self.assertRaises(ValueError):
            SkyPosition(ra_hours=24.0, dec_degrees=0.0)
        with self.assertRaises(ValueError):
            SkyPosition(ra_hours=1.0, dec_degrees=90.5)
        with self.assertRaises(ValueError):
            SkyPosition(ra_hours=1.0, dec_degrees=0.0, radius_degrees=0.0)

    def test_scale_bounds_validation(self):
        bounds = ScaleBounds(1.0, 2.0)
        self.assertEqual(bounds.units, "degwidth")
        with self.assertRaises(ValueError):
            ScaleBounds(2.0, 1.0)
        with self.assertRaises(ValueError):
            ScaleBounds(0.0, 1.0)
        with self.assertRaises(ValueError):
            ScaleBounds(1.0, 2.0, "furlongs")

    def test_search_constraints_empty(self):
        self.assertTrue(SearchConstraints().is_empty)
        constraints = SearchConstraints(scale=ScaleBounds(1.0, 2.0))
        self.assertFalse(constraints.is_empty)
        self.assertEqual(
            constraints.to_dict(),
            {"scale_low": 1.0, "scale_high": 2.0, "scale_units": "degwidth"},
        )

    def test_image_hints_need_both_halves(self):
        self.assertFalse(ImageHints(ra_hours=3.0).has_position)
        self.assertTrue(ImageHints(ra_hours=3.0, dec_degrees=24.0).has_position)
        self.assertFalse(ImageHints(scale_low=1.0).has_scale)

    def test_solve_outcome_rejects_unknown_parity(self):
        with self.assertRaises(ValueError):
            SolveOutcome(56.75, 24.1, 180.0, 120.0, 3.6, 0.0, parity="sideways")


class TestBatchCounters(unittest.TestCase):
    def _result(self, state):
        return StageResult(image_name="x.fits", state=state)

    def test_extract_failure_counts_as_processed(self):
        counters = BatchCounters(total=4)
        counters.record(self._result(ImageState.REPORTED))
        counters.record(self._result(ImageState.EXTRACT_FAILED))
        counters.record(self._result(ImageState.SOLVE_FAILED))
        counters.record(self._result(ImageState.SKIPPED))

        self.assertEqual(counters.processed, 2)
        self.assertEqual(counters.failed, 2)
        self.assertEqual(counters.skipped, 1)
        self.assertEqual(counters.states["reported"], 1)

    def test_mean_only_for_more_than_one_processed(self):
        counters = BatchCounters(elapsed_seconds=10.0)
        self.assertIsNone(counters.mean_seconds_per_processed)
        counters.processed = 1
        self.assertIsNone(counters.mean_seconds_per_processed)
        counters.processed = 4
        self.assertAlmostEqual(counters.mean_seconds_per_processed, 2.5)


class TestRunConfig(unittest.TestCase):
    def test_defaults(self):
        config = RunConfig()
        self.assertIsNone(config.output_path)
        self.assertFalse(config.aggregate)
        self.assertEqual(config.output_format, DEFAULT_OUTPUT_FORMAT)
        self.assertIsNone(config.cli_position())
        self.assertIsNone(config.cli_scale())

    def test_position_requires_both_halves(self):
        with self.assertRaises(ValueError):
            RunConfig(ra_degrees=56.75)
        with self.assertRaises(ValueError):
            RunConfig(dec_degrees=24.1)

    def test_scale_requires_both_halves(self):
        with self.assertRaises(ValueError):
            RunConfig(scale_low=1.0)
        with self.assertRaises(ValueError):
            RunConfig(scale_high=2.0)

    def test_scale_bounds_checked_up_front(self):
        with self.assertRaises(ValueError):
            RunConfig(scale_low=5.0, scale_high=1.0)
        with self.assertRaises(ValueError):
            RunConfig(scale_low=1.0, scale_high=2.0, scale_units="parsecs")

    def test_declination_and_radius_ranges(self):
        with self.assertRaises(ValueError):
            RunConfig(ra_degrees=10.0, dec_degrees=91.0)
        with self.assertRaises(ValueError):
            RunConfig(radius_degrees=-1.0)

    def test_numeric_strings_are_coerced(self):
        config = RunConfig(ra_degrees="56.75", dec_degrees="24.1")
        self.assertEqual(config.cli_position(), (56.75, 24.1))
        with self.assertRaises(ValueError):
            RunConfig(ra_degrees="north", dec_degrees=1.0)

    def test_rejects_empty_output_path_and_bad_verbosity(self):
        with self.assertRaises(ValueError):
            RunConfig(output_path="")
        with self.assertRaises(ValueError):
            RunConfig(verbosity=5)

    def test_round_trip_through_dict(self):
        config = RunConfig(
            output_path="all.txt",
            index_dirs=["/data/index"],
            scale_low=1.0,
            scale_high=2.0,
            scale_units="arcsecperpix",
            solver_config={"time_limit": 60},
        )
        data = config.to_dict()
        self.assertEqual(data["schema_version"], RUN_CONFIG_SCHEMA_VERSION)
        restored = RunConfig.from_dict(data)
        self.assertEqual(restored, config)
        self.assertTrue(restored.aggregate)
        self.assertEqual(restored.cli_scale(), (1.0, 2.0, "arcsecperpix"))

    def test_from_dict_rejects_unknown_keys(self):
        with self.assertRaises(KeyError):
            RunConfig.from_dict({"ouput_path": "typo.txt"})


if __name__ == "__main__":
    unittest.main()
