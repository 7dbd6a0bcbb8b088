"""Tests for the plugin registries and the shared plugin contract."""

import os
import sys
import unittest
import warnings
from dataclasses import dataclass

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from pydantic import BaseModel  # noqa: E402

from stellar_core.extractors import (  # noqa: E402
    DataclassExtractor,
    ExtractorRegistry,
    SepExtractor,
    SepExtractorConfig,
)
from stellar_core.inputs import (  # noqa: E402
    AutoImageLoader,
    FitsImageLoader,
    LoaderRegistry,
    RasterImageLoader,
)
from stellar_core.outputs import (  # noqa: E402
    ReportFormatConfig,
    ReportFormatRegistry,
    TextReportFormat,
    YamlReportFormat,
)
from stellar_core.plugin_contract import forbid_unknown_keys, plugin_info  # noqa: E402
from stellar_core.solvers import (  # noqa: E402
    AstrometryNetConfig,
    AstrometryNetSolver,
    PydanticSolver,
    SolverRegistry,
)

_REGISTRIES = (LoaderRegistry, SolverRegistry, ExtractorRegistry, ReportFormatRegistry)


@dataclass
class _EchoConfig:
    gain: float = 1.0


class _EchoExtractor(DataclassExtractor[_EchoConfig]):
    plugin_name = "echo"
    ConfigType = _EchoConfig

    def extract(self, record, profile, solution=None):
        return []


class _NamelessExtractor(DataclassExtractor[_EchoConfig]):
    ConfigType = _EchoConfig

    def extract(self, record, profile, solution=None):
        return []


class _StrictModel(BaseModel):
    level: int = 1


forbid_unknown_keys(_StrictModel)


class _StrictSolver(PydanticSolver[_StrictModel]):
    plugin_name = "strict"
    ConfigType = _StrictModel

    def solve(self, record):
        raise NotImplementedError


class RegistryTestCase(unittest.TestCase):
    def setUp(self):
        for registry in _REGISTRIES:
            registry._reset()

    def tearDown(self):
        for registry in _REGISTRIES:
            registry._reset()


class TestBuiltinPlugins(RegistryTestCase):
    def test_builtins_are_listed(self):
        self.assertEqual(LoaderRegistry.list_available(), ["auto", "fits", "raster"])
        self.assertIn("astrometry", SolverRegistry.list_available())
        self.assertIn("sep", ExtractorRegistry.list_available())
        self.assertEqual(
            ReportFormatRegistry.list_available(), ["text", "toml", "yaml"]
        )

    def test_defaults(self):
        self.assertIsInstance(LoaderRegistry.create_default(), AutoImageLoader)
        self.assertIsInstance(SolverRegistry.create_default(), AstrometryNetSolver)
        self.assertIsInstance(ExtractorRegistry.create_default(), SepExtractor)
        self.assertIsInstance(ReportFormatRegistry.create_default(), TextReportFormat)

    def test_lookup_is_case_insensitive(self):
        self.assertIs(LoaderRegistry.get("FITS"), FitsImageLoader)
        self.assertIs(LoaderRegistry.get("Raster"), RasterImageLoader)
        self.assertIs(ReportFormatRegistry.get("YAML"), YamlReportFormat)

    def test_unknown_name_raises_key_error(self):
        with self.assertRaises(KeyError):
            ReportFormatRegistry.create("csv")

    def test_dict_config_is_coerced(self):
        extractor = ExtractorRegistry.create("sep", {"max_stars": 10})
        self.assertIsInstance(extractor.config, SepExtractorConfig)
        self.assertEqual(extractor.config.max_stars, 10)

        solver = SolverRegistry.create("astrometry", {"time_limit": 120})
        self.assertIsInstance(solver.config, AstrometryNetConfig)
        self.assertEqual(solver.config.time_limit, 120)

        report_format = ReportFormatRegistry.create("text", {"precision": 3})
        self.assertEqual(report_format.config, ReportFormatConfig(precision=3))

    def test_invalid_dict_config(self):
        with self.assertRaises(TypeError):
            ExtractorRegistry.create("sep", {"no_such_field": 1})
        with self.assertRaises(ValueError):
            SolverRegistry.create("astrometry", {"time_limit": -5})
        with self.assertRaises(ValueError):
            SolverRegistry.create("astrometry", {"unknown": True})


class TestRuntimeRegistration(RegistryTestCase):
    def test_register_and_unregister(self):
        ExtractorRegistry.register(_EchoExtractor)
        self.assertIn("echo", ExtractorRegistry.list_available())
        extractor = ExtractorRegistry.create("echo", {"gain": 2.0})
        self.assertEqual(extractor.config.gain, 2.0)

        self.assertTrue(ExtractorRegistry.unregister("echo"))
        self.assertFalse(ExtractorRegistry.unregister("echo"))
        self.assertNotIn("echo", ExtractorRegistry.list_available())

    def test_register_twice_warns(self):
        ExtractorRegistry.register(_EchoExtractor)
        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            ExtractorRegistry.register(_EchoExtractor)
        self.assertTrue(any("Overwriting" in str(w.message) for w in caught))

    def test_register_rejects_invalid_classes(self):
        with self.assertRaises(ValueError):
            ExtractorRegistry.register(_NamelessExtractor)
        with self.assertRaises(ValueError):
            SolverRegistry.register(_EchoExtractor)

    def test_pydantic_plugin(self):
        SolverRegistry.register(_StrictSolver)
        solver = SolverRegistry.create("strict", {"level": 3})
        self.assertEqual(solver.config.level, 3)
        with self.assertRaises(ValueError):
            SolverRegistry.create("strict", {"level": 3, "extra": 1})


class TestPluginContract(unittest.TestCase):
    def test_constructor_checks_config_type(self):
        with self.assertRaises(TypeError):
            _EchoExtractor(ReportFormatConfig())
        with self.assertRaises(ValueError):
            _NamelessExtractor(_EchoConfig())

    def test_plugin_info(self):
        info = plugin_info(_EchoExtractor(_EchoConfig()))
        self.assertEqual(info["plugin_name"], "echo")
        self.assertEqual(info["class"], "_EchoExtractor")

        text_info = TextReportFormat(ReportFormatConfig()).get_info()
        self.assertEqual(text_info["suffix"], ".txt")

    def test_forbid_unknown_keys_requires_model(self):
        with self.assertRaises(TypeError):
            forbid_unknown_keys(_EchoConfig)


if __name__ == "__main__":
    unittest.main()
