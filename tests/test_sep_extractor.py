"""Tests for the SEP star extractor on synthetic star fields."""

import math
import os
import sys
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import numpy as np  # noqa: E402

from stellar_core.exceptions import StellarExtractError, StellarValidationError  # noqa: E402
from stellar_core.extractors import SepExtractor, SepExtractorConfig  # noqa: E402
from stellar_core.inputs import compute_statistics  # noqa: E402
from stellar_core.schema import (  # noqa: E402
    ALL_STARS,
    ExtractionProfile,
    ImageRecord,
    SolveOutcome,
)

# (x, y, amplitude), brightest first
STARS = [(60.0, 70.0, 4000.0), (190.0, 180.0, 2000.0), (120.0, 200.0, 1000.0)]

PROFILE = ExtractionProfile(name="test", threshold=5.0, min_area=5, background_box=32)


def _star_field(width=256, height=256, seed=7):
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:height, 0:width]
    data = 100.0 + rng.normal(0.0, 3.0, size=(height, width))
    for x, y, amplitude in STARS:
        data += amplitude * np.exp(-((xx - x) ** 2 + (yy - y) ** 2) / (2 * 2.0**2))
    return data.astype(np.float32)


def _record(data):
    return ImageRecord(
        path="/data/field.fits",
        name="field.fits",
        data=data,
        statistics=compute_statistics(data),
        decoded=True,
    )


class TestSepExtractor(unittest.TestCase):
    def setUp(self):
        self.extractor = SepExtractor(SepExtractorConfig())
        self.record = _record(_star_field())

    def test_finds_stars_brightest_first(self):
        stars = self.extractor.extract(self.record, PROFILE)
        self.assertEqual(len(stars), len(STARS))
        for star, (x, y, _) in zip(stars, STARS):
            self.assertAlmostEqual(star.x, x, delta=0.5)
            self.assertAlmostEqual(star.y, y, delta=0.5)
        magnitudes = [star.magnitude for star in stars]
        self.assertEqual(magnitudes, sorted(magnitudes))
        for star in stars:
            self.assertGreater(star.hfr, 0.0)
            self.assertGreater(star.peak, 0.0)

    def test_sky_coordinates_are_nan_without_solution(self):
        stars = self.extractor.extract(self.record, PROFILE)
        self.assertTrue(all(math.isnan(star.ra_degrees) for star in stars))
        self.assertTrue(all(math.isnan(star.dec_degrees) for star in stars))

    def test_sky_coordinates_from_solution(self):
        solution = SolveOutcome(56.75, 24.1, 8.533, 8.533, 2.0, 0.0)
        stars = self.extractor.extract(self.record, PROFILE, solution)
        for star in stars:
            self.assertAlmostEqual(star.ra_degrees, 56.75, delta=0.1)
            self.assertAlmostEqual(star.dec_degrees, 24.1, delta=0.1)

    def test_max_stars_keeps_brightest(self):
        extractor = SepExtractor(SepExtractorConfig(max_stars=2))
        stars = extractor.extract(self.record, PROFILE)
        self.assertEqual(len(stars), 2)
        self.assertAlmostEqual(stars[0].x, STARS[0][0], delta=0.5)

    def test_color_buffer_is_reduced_to_luminance(self):
        gray = _star_field()
        record = _record(np.dstack([gray, gray, gray]))
        self.assertEqual(len(self.extractor.extract(record, PROFILE)), len(STARS))

    def test_empty_field_yields_no_stars(self):
        rng = np.random.default_rng(3)
        noise = 100.0 + rng.normal(0.0, 3.0, size=(128, 128))
        record = _record(noise.astype(np.float32))
        self.assertEqual(self.extractor.extract(record, PROFILE), [])

    def test_missing_pixels(self):
        record = _record(_star_field())
        record.data = None
        with self.assertRaises(StellarExtractError):
            self.extractor.extract(record, PROFILE)


class TestEffectiveProfile(unittest.TestCase):
    def test_defaults_keep_profile(self):
        extractor = SepExtractor(SepExtractorConfig())
        self.assertIs(extractor.effective_profile(ALL_STARS), ALL_STARS)

    def test_overrides(self):
        extractor = SepExtractor(
            SepExtractorConfig(threshold=4.0, magnitude_zero_point=25.0)
        )
        profile = extractor.effective_profile(ALL_STARS)
        self.assertEqual(profile.threshold, 4.0)
        self.assertEqual(profile.magnitude_zero_point, 25.0)
        self.assertEqual(profile.min_area, ALL_STARS.min_area)
        self.assertEqual(ALL_STARS.threshold, 1.5)

    def test_invalid_pixel_stack(self):
        with self.assertRaises(StellarValidationError):
            SepExtractorConfig(pixel_stack=0)


if __name__ == "__main__":
    unittest.main()
