#!/usr/bin/env python
#
# Stellar Batch CLI
# © 2025 Shinichi Morita (shin3tky)
#
# CLI entry point for batch plate solving and star extraction.
# This module handles argument parsing and delegates to stellar_core.
#

import sys
import argparse
import logging
from typing import Any, Dict, List, Optional

from stellar_core import (
    VERSION,
    SCALE_UNITS,
    VERBOSITY_SILENT,
    VERBOSITY_VERBOSE,
    DEFAULT_VERBOSITY,
    DEFAULT_SEARCH_RADIUS_DEG,
    # Exceptions
    StellarError,
    StellarValidationError,
    format_error_for_user,
    save_diagnostic_report,
    get_message,
    resolve_locale,
    RunConfig,
    ConstraintTemplate,
    BatchDriver,
    collect_images,
    resolve_catalog_paths,
    load_run_config,
    parse_plugin_config,
    SUPPORTED_CONFIG_EXTENSIONS,
)

# Largest value a process exit status can carry
MAX_EXIT_STATUS = 255


def build_arg_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    locale = resolve_locale(None)
    parser = argparse.ArgumentParser(
        prog="stellar-batch",
        description=get_message("ui.cli.description", locale=locale),
        epilog=get_message("ui.cli.epilog", locale=locale),
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Stellar Batch CLI (https://github.com/shin3tky/stellar_batch) {VERSION}",
    )
    parser.add_argument(
        "--locale",
        default=None,
        help="Locale code for CLI messages (default: STELLAR_BATCH_LOCALE or 'en').",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help=(
            "Path to run configuration file (YAML/JSON). "
            f"Supported extensions: {', '.join(sorted(SUPPORTED_CONFIG_EXTENSIONS))}."
        ),
    )

    parser.add_argument("images", nargs="+", metavar="IMAGE", help="Image files to solve")

    parser.add_argument(
        "-I",
        "-d",
        "--index-dir",
        dest="index_dirs",
        action="append",
        default=None,
        metavar="DIR",
        help=(
            "Add a directory holding astrometry.net index files "
            "(repeatable; -IDIR also accepted). ASTROMETRY_INDEX_FILES is added last."
        ),
    )

    parser.add_argument(
        "-o",
        "--out",
        dest="out",
        default=None,
        metavar="PATH",
        help=(
            "Write all reports to PATH ('stdout'/'stderr' for the streams). "
            "Default: one report per image next to the image."
        ),
    )
    parser.add_argument(
        "-O",
        "--overwrite",
        action="store_true",
        default=None,
        help="Truncate existing reports instead of appending",
    )
    parser.add_argument(
        "-K",
        "-J",
        "--skip-solved",
        "--continue",
        dest="skip_solved",
        action="store_true",
        default=None,
        help="Skip images whose report already exists",
    )
    parser.add_argument(
        "--stop-on-failure",
        action="store_true",
        default=None,
        help="Stop the batch after the first image that fails",
    )

    parser.add_argument(
        "--ra", type=float, default=None, metavar="DEG", help="Search center RA (degrees)"
    )
    parser.add_argument(
        "--dec", type=float, default=None, metavar="DEG", help="Search center Dec (degrees)"
    )
    parser.add_argument(
        "--radius",
        type=float,
        default=None,
        metavar="DEG",
        help=f"Search radius around --ra/--dec (default: {DEFAULT_SEARCH_RADIUS_DEG})",
    )
    parser.add_argument(
        "-L",
        "--scale-low",
        type=float,
        default=None,
        help="Lower bound of the image scale",
    )
    parser.add_argument(
        "-H",
        "--scale-high",
        type=float,
        default=None,
        help="Upper bound of the image scale",
    )
    parser.add_argument(
        "--scale-units",
        choices=SCALE_UNITS,
        default=None,
        help="Unit of --scale-low/--scale-high (default: degwidth)",
    )

    parser.add_argument(
        "--format",
        dest="output_format",
        default=None,
        help="Report format: text (default), toml or yaml",
    )
    verbosity_group = parser.add_mutually_exclusive_group()
    verbosity_group.add_argument(
        "--verbose",
        dest="verbosity",
        action="store_const",
        const=VERBOSITY_VERBOSE,
        help="Verbose output with debug logging",
    )
    verbosity_group.add_argument(
        "--silent",
        dest="verbosity",
        action="store_const",
        const=VERBOSITY_SILENT,
        help="Print nothing but errors",
    )
    parser.set_defaults(verbosity=None)

    parser.add_argument("--loader", default=None, help="Image loader plugin name")
    parser.add_argument(
        "--loader-config",
        default=None,
        help="Image loader config (JSON/YAML string or file path)",
    )
    parser.add_argument("--solver", default=None, help="Solver plugin name")
    parser.add_argument(
        "--solver-config",
        default=None,
        help="Solver config (JSON/YAML string or file path)",
    )
    parser.add_argument("--extractor", default=None, help="Extractor plugin name")
    parser.add_argument(
        "--extractor-config",
        default=None,
        help="Extractor config (JSON/YAML string or file path)",
    )
    parser.add_argument(
        "--time-limit",
        type=int,
        default=None,
        metavar="SEC",
        help="Solver time limit per image in seconds",
    )

    parser.add_argument(
        "--save-diagnostic",
        metavar="FILE",
        nargs="?",
        const="",
        type=str,
        default=None,
        help="Save diagnostic report to file on error (default: auto-generated name)",
    )
    return parser


def _configure_logging(verbosity: int) -> None:
    """Configure logging for CLI execution.

    Verbose mode shows DEBUG logs from every stellar_core module; silent
    mode hides warnings as well.
    """

    if verbosity >= VERBOSITY_VERBOSE:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(levelname)s:%(name)s:%(message)s",
            force=True,
        )
        logging.getLogger("stellar_core").setLevel(logging.DEBUG)
    elif verbosity == VERBOSITY_SILENT:
        logging.getLogger().setLevel(logging.ERROR)


def _clamp_exit_status(processed: int) -> int:
    return max(0, min(int(processed), MAX_EXIT_STATUS))


def _merged_solver_config(args, base: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    config = parse_plugin_config(args.solver_config, "--solver-config")
    if config is None and base is not None:
        config = dict(base)
    if args.time_limit is not None:
        config = dict(config or {})
        config["time_limit"] = args.time_limit
    return config


def _build_run_config(args) -> RunConfig:
    """Merge the optional config file with flags given on the command line.

    Raises:
        StellarConfigError: If a config file or payload is invalid.
        StellarValidationError: If the merged values are inconsistent.
    """
    base = load_run_config(args.config) if args.config else RunConfig()
    values = base.to_dict()
    values.pop("schema_version", None)

    overrides = {
        "output_path": args.out,
        "output_format": args.output_format,
        "overwrite": args.overwrite,
        "skip_solved": args.skip_solved,
        "stop_on_failure": args.stop_on_failure,
        "verbosity": args.verbosity,
        "locale": args.locale,
        "ra_degrees": args.ra,
        "dec_degrees": args.dec,
        "radius_degrees": args.radius,
        "scale_low": args.scale_low,
        "scale_high": args.scale_high,
        "scale_units": args.scale_units,
        "loader_name": args.loader,
        "loader_config": parse_plugin_config(args.loader_config, "--loader-config"),
        "solver_name": args.solver,
        "solver_config": _merged_solver_config(args, base.solver_config),
        "extractor_name": args.extractor,
        "extractor_config": parse_plugin_config(
            args.extractor_config, "--extractor-config"
        ),
    }
    for key, value in overrides.items():
        if value is not None:
            values[key] = value
    if args.index_dirs:
        values["index_dirs"] = list(values.get("index_dirs") or []) + list(
            args.index_dirs
        )

    try:
        return RunConfig.from_dict(values)
    except (TypeError, ValueError, KeyError) as exc:
        raise StellarValidationError(
            f"Invalid arguments: {exc}",
            original_error=exc,
        ) from exc


def _run_main(args, parser: argparse.ArgumentParser) -> int:
    """Run the batch and return the number of processed images.

    Raises:
        StellarError: On fatal configuration or validation errors.
    """
    try:
        run_config = _build_run_config(args)
    except StellarValidationError:
        parser.print_usage(sys.stderr)
        raise
    _configure_logging(run_config.verbosity)
    locale = resolve_locale(run_config.locale)

    images, missing = collect_images(args.images)
    for path in missing:
        if not run_config.silent:
            print(
                get_message("ui.cli.missing_image", locale=locale, path=path),
                file=sys.stderr,
            )
    if not images:
        raise StellarValidationError(
            "No existing image files to process",
            parameter_name="images",
            provided_value=list(args.images),
            expected="at least one existing image file",
        )

    catalog_paths = resolve_catalog_paths(run_config.index_dirs)
    template = ConstraintTemplate.from_run_config(run_config)
    counters = BatchDriver().run(images, catalog_paths, template, run_config)
    return counters.processed


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point for the CLI; exits with the processed image count."""
    parser = build_arg_parser()
    args = parser.parse_intermixed_args(argv)

    locale = resolve_locale(args.locale)
    verbosity = args.verbosity if args.verbosity is not None else DEFAULT_VERBOSITY
    verbose = verbosity >= VERBOSITY_VERBOSE
    _configure_logging(verbosity)

    processed = 0
    try:
        processed = _run_main(args, parser)
    except StellarError as e:
        # Handle stellar_core exceptions with user-friendly output
        print(
            format_error_for_user(e, verbose=verbose, locale=locale),
            file=sys.stderr,
        )

        # Save diagnostic report if requested
        if args.save_diagnostic is not None:
            diag_path = args.save_diagnostic if args.save_diagnostic else None
            saved_path = save_diagnostic_report(e, diag_path, locale=locale)
            print(
                get_message(
                    "ui.diagnostic.report.saved", locale=locale, path=saved_path
                ),
                file=sys.stderr,
            )
        elif not verbose:
            print(
                get_message("ui.diagnostic.hint.save", locale=locale),
                file=sys.stderr,
            )
    except KeyboardInterrupt:
        print(
            "\n" + get_message("ui.interrupt.generic", locale=locale),
            file=sys.stderr,
        )
        sys.exit(130)
    except Exception as e:
        # Unexpected errors - show traceback in verbose mode
        if verbose:
            import traceback

            traceback.print_exc()
        else:
            print(
                "\n"
                + get_message(
                    "ui.error.unexpected",
                    locale=locale,
                    error_type=type(e).__name__,
                    error_message=e,
                ),
                file=sys.stderr,
            )
            print(
                get_message("ui.error.unexpected_hint", locale=locale),
                file=sys.stderr,
            )
        if args.save_diagnostic is not None:
            saved_path = save_diagnostic_report(
                e, args.save_diagnostic or None, locale=locale
            )
            print(
                get_message(
                    "ui.diagnostic.report.saved", locale=locale, path=saved_path
                ),
                file=sys.stderr,
            )
        sys.exit(1)

    sys.exit(_clamp_exit_status(processed))


if __name__ == "__main__":
    main()
