"""Tests for the exception hierarchy and diagnostic reports."""

import os
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from stellar_core.exceptions import (  # noqa: E402
    STAGE_EXTRACT,
    STAGE_LOAD,
    STAGE_SOLVE,
    StellarCatalogPathError,
    StellarConfigError,
    StellarError,
    StellarExtractError,
    StellarLoadError,
    StellarOutputError,
    StellarOutputOpenError,
    StellarSolveError,
    StellarStageError,
    StellarUnsupportedFormatError,
    StellarValidationError,
    StellarWriteError,
    create_diagnostic_from_exception,
    format_error_for_user,
    save_diagnostic_report,
)
from stellar_core.schema import VERSION  # noqa: E402


class TestExceptionHierarchy(unittest.TestCase):
    def test_stage_errors(self):
        for cls in (StellarLoadError, StellarSolveError, StellarExtractError):
            self.assertTrue(issubclass(cls, StellarStageError))
            self.assertTrue(issubclass(cls, StellarError))
        self.assertTrue(issubclass(StellarUnsupportedFormatError, StellarLoadError))
        self.assertEqual(StellarLoadError.stage, STAGE_LOAD)
        self.assertEqual(StellarSolveError.stage, STAGE_SOLVE)
        self.assertEqual(StellarExtractError.stage, STAGE_EXTRACT)

    def test_output_errors(self):
        self.assertTrue(issubclass(StellarOutputOpenError, StellarOutputError))
        self.assertTrue(issubclass(StellarWriteError, StellarOutputError))
        self.assertEqual(StellarOutputOpenError().operation, "open")
        self.assertEqual(StellarWriteError().operation, "write")

    def test_stage_error_context(self):
        error = StellarSolveError("No solution", filepath="/data/m45.fits")
        self.assertEqual(error.image_name, "m45.fits")
        self.assertEqual(error.context["stage"], STAGE_SOLVE)
        self.assertEqual(error.context["image_name"], "m45.fits")

    def test_message_includes_file_and_cause(self):
        cause = OSError("disk on fire")
        error = StellarLoadError("Failed", filepath="a.fits", original_error=cause)
        self.assertEqual(str(error), "Failed (file: a.fits): OSError: disk on fire")

    def test_validation_and_config_context(self):
        validation = StellarValidationError(
            "--ra requires --dec",
            parameter_name="ra",
            provided_value=56.75,
            expected="both",
        )
        self.assertEqual(validation.context["provided_value"], "56.75")
        config = StellarConfigError("Unknown solver", config_key="solver_name")
        self.assertEqual(config.context, {"config_key": "solver_name"})
        catalog = StellarCatalogPathError(filepath="/nope", source="cli")
        self.assertEqual(catalog.context["source"], "cli")


class TestDiagnostics(unittest.TestCase):
    def test_diagnostic_info(self):
        error = StellarConfigError(
            "Bad config",
            filepath="/definitely/missing.yaml",
            original_error=ValueError("oops"),
        )
        info = error.get_diagnostic_info()
        self.assertEqual(info.version, VERSION)
        self.assertEqual(info.error_type, "StellarConfigError")
        self.assertFalse(info.file_exists)
        self.assertEqual(info.original_error_type, "ValueError")
        self.assertIn("astropy", info.dependencies)

    def test_format_for_issue_sections(self):
        error = StellarSolveError("No solution", filepath="/missing/a.fits")
        report = error.format_for_issue(include_header=True)
        self.assertIn("# Stellar Batch Diagnostic Report", report)
        self.assertIn("## Error", report)
        self.assertIn("Error type: StellarSolveError", report)
        self.assertIn("stage: solve", report)

    def test_format_error_for_user(self):
        error = StellarValidationError("No existing image files to process")
        text = format_error_for_user(error)
        self.assertIn("Error: No existing image files to process", text)
        self.assertIn("--save-diagnostic", text)

        verbose = format_error_for_user(error, verbose=True)
        self.assertIn("## Environment", verbose)

    def test_save_diagnostic_report(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "diag.md")
            saved = save_diagnostic_report(StellarError("Boom"), path)
            self.assertEqual(saved, path)
            with open(path, encoding="utf-8") as handle:
                self.assertIn("Error message: Boom", handle.read())

    def test_save_diagnostic_report_for_plain_exception(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "diag.md")
            save_diagnostic_report(RuntimeError("disk vanished"), path)
            with open(path, encoding="utf-8") as handle:
                text = handle.read()
        self.assertIn("Error type: RuntimeError", text)
        self.assertIn("Error message: disk vanished", text)

    def test_create_diagnostic_from_exception(self):
        info = create_diagnostic_from_exception(RuntimeError("x"), context={"k": 1})
        self.assertEqual(info.error_type, "RuntimeError")
        self.assertEqual(info.context, {"k": 1})


if __name__ == "__main__":
    unittest.main()
