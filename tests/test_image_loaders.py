"""Tests for the FITS, raster and automatic image loaders."""

import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

import cv2  # noqa: E402
import numpy as np  # noqa: E402
from astropy.io import fits  # noqa: E402

from stellar_core.exceptions import (  # noqa: E402
    StellarLoadError,
    StellarUnsupportedFormatError,
    StellarValidationError,
)
from stellar_core.inputs import (  # noqa: E402
    AutoImageLoader,
    AutoLoaderConfig,
    FitsImageLoader,
    FitsLoaderConfig,
    RasterImageLoader,
    RasterLoaderConfig,
)
from stellar_core.inputs.fits import read_hints  # noqa: E402


class LoaderTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = self._tmp.name

    def tearDown(self):
        self._tmp.cleanup()

    def write_fits(self, name, header_cards=None, data=None):
        if data is None:
            data = np.arange(12, dtype=np.uint16).reshape(3, 4)
        hdu = fits.PrimaryHDU(data)
        for key, value in (header_cards or {}).items():
            hdu.header[key] = value
        path = os.path.join(self.tmp, name)
        hdu.writeto(path)
        return path


class TestFitsHints(LoaderTestCase):
    def test_decimal_position_in_degrees(self):
        header = fits.Header()
        header["RA"] = 56.75
        header["DEC"] = 24.1
        hints = read_hints(header, 0.2)
        self.assertAlmostEqual(hints.ra_hours, 3.783333, places=5)
        self.assertAlmostEqual(hints.dec_degrees, 24.1)
        self.assertFalse(hints.has_scale)

    def test_sexagesimal_position(self):
        header = fits.Header()
        header["OBJCTRA"] = "03 47 00"
        header["OBJCTDEC"] = "+24 06 00"
        hints = read_hints(header, 0.2)
        self.assertAlmostEqual(hints.ra_hours, 3.783333, places=5)
        self.assertAlmostEqual(hints.dec_degrees, 24.1, places=5)

    def test_scale_from_focal_length_and_pixel_size(self):
        header = fits.Header()
        header["FOCALLEN"] = 400.0
        header["XPIXSZ"] = 3.76
        hints = read_hints(header, 0.2)
        scale = 206.264806 * 3.76 / 400.0
        self.assertAlmostEqual(hints.scale_low, scale * 0.8)
        self.assertAlmostEqual(hints.scale_high, scale * 1.2)
        self.assertEqual(hints.scale_units, "arcsecperpix")

    def test_binning_multiplies_scale(self):
        header = fits.Header()
        header["FOCALLEN"] = 400.0
        header["XPIXSZ"] = 3.76
        header["XBINNING"] = 2
        hints = read_hints(header, 0.5)
        self.assertAlmostEqual(hints.scale_low, 206.264806 * 7.52 / 400.0 * 0.5)

    def test_explicit_pixel_scale(self):
        header = fits.Header()
        header["PIXSCALE"] = 1.5
        hints = read_hints(header, 0.1)
        self.assertAlmostEqual(hints.scale_low, 1.35)
        self.assertAlmostEqual(hints.scale_high, 1.65)

    def test_unparsable_or_partial_position(self):
        header = fits.Header()
        header["OBJCTRA"] = "not an angle"
        header["OBJCTDEC"] = "+24 06 00"
        self.assertFalse(read_hints(header, 0.2).has_position)

        header = fits.Header()
        header["RA"] = 56.75
        self.assertFalse(read_hints(header, 0.2).has_position)


class TestFitsImageLoader(LoaderTestCase):
    def test_load_with_hints(self):
        path = self.write_fits("m45.fits", {"RA": 56.75, "DEC": 24.1})
        record = FitsImageLoader(FitsLoaderConfig()).load(path)
        self.assertEqual(record.name, "m45.fits")
        self.assertTrue(record.decoded)
        self.assertEqual(record.data.shape, (3, 4))
        self.assertEqual(record.statistics.width, 4)
        self.assertEqual(record.statistics.height, 3)
        self.assertEqual(record.statistics.maximum, 11.0)
        self.assertTrue(record.hints.has_position)

    def test_hints_can_be_disabled(self):
        path = self.write_fits("m45.fits", {"RA": 56.75, "DEC": 24.1})
        record = FitsImageLoader(FitsLoaderConfig(read_hints=False)).load(path)
        self.assertFalse(record.hints.has_position)

    def test_color_cube_is_reordered(self):
        data = np.zeros((3, 5, 7), dtype=np.float32)
        path = self.write_fits("rgb.fits", data=data)
        record = FitsImageLoader(FitsLoaderConfig()).load(path)
        self.assertEqual(record.data.shape, (5, 7, 3))
        self.assertEqual(record.statistics.channels, 3)

    def test_corrupt_file(self):
        path = os.path.join(self.tmp, "broken.fits")
        with open(path, "wb") as handle:
            handle.write(b"this is not a FITS file")
        with self.assertRaises(StellarLoadError):
            FitsImageLoader(FitsLoaderConfig()).load(path)

    def test_missing_hdu(self):
        path = self.write_fits("m45.fits")
        with self.assertRaises(StellarLoadError):
            FitsImageLoader(FitsLoaderConfig(hdu=4)).load(path)

    def test_header_only_file(self):
        path = os.path.join(self.tmp, "empty.fits")
        fits.PrimaryHDU().writeto(path)
        with self.assertRaises(StellarLoadError):
            FitsImageLoader(FitsLoaderConfig()).load(path)

    def test_release_drops_buffer(self):
        loader = FitsImageLoader(FitsLoaderConfig())
        record = loader.load(self.write_fits("m45.fits"))
        loader.release(record)
        self.assertIsNone(record.data)

    def test_config_validation(self):
        with self.assertRaises(StellarValidationError):
            FitsLoaderConfig(scale_tolerance=1.5)


class TestRasterAndAutoLoaders(LoaderTestCase):
    def write_png(self, name, color=False):
        shape = (6, 8, 3) if color else (6, 8)
        data = np.full(shape, 100, dtype=np.uint8)
        path = os.path.join(self.tmp, name)
        self.assertTrue(cv2.imwrite(path, data))
        return path

    def test_raster_grayscale(self):
        record = RasterImageLoader(RasterLoaderConfig()).load(self.write_png("a.png", True))
        self.assertEqual(record.data.shape, (6, 8))
        self.assertFalse(record.hints.has_position)

    def test_raster_color(self):
        loader = RasterImageLoader(RasterLoaderConfig(grayscale=False))
        record = loader.load(self.write_png("a.png", True))
        self.assertEqual(record.data.shape, (6, 8, 3))

    def test_raster_undecodable(self):
        path = os.path.join(self.tmp, "bad.png")
        with open(path, "wb") as handle:
            handle.write(b"garbage")
        with self.assertRaises(StellarLoadError):
            RasterImageLoader(RasterLoaderConfig()).load(path)

    def test_auto_dispatches_by_extension(self):
        loader = AutoImageLoader(AutoLoaderConfig())
        fits_record = loader.load(self.write_fits("m45.FITS"))
        self.assertEqual(fits_record.metadata["loader"], "fits")
        png_record = loader.load(self.write_png("m45.png"))
        self.assertEqual(png_record.metadata["loader"], "raster")

    def test_auto_rejects_unknown_extension(self):
        path = os.path.join(self.tmp, "notes.txt")
        with open(path, "w") as handle:
            handle.write("hello")
        with self.assertRaises(StellarUnsupportedFormatError):
            AutoImageLoader(AutoLoaderConfig()).load(path)

    def test_auto_forwards_format_settings(self):
        loader = AutoImageLoader(AutoLoaderConfig(fits={"read_hints": False}))
        path = self.write_fits("m45.fit", {"RA": 56.75, "DEC": 24.1})
        self.assertFalse(loader.load(path).hints.has_position)


if __name__ == "__main__":
    unittest.main()
