#!/usr/bin/env python
#
# Stellar Batch CLI - Plugin Registry Constants
# © 2025 Shinichi Morita (shin3tky)

"""Shared constants for plugin registry kinds and discovery locations."""

from pathlib import Path

_PLUGIN_KIND_GENERIC = "plugin"
_PLUGIN_KIND_LOADER = "image loader"
_PLUGIN_KIND_SOLVER = "solver"
_PLUGIN_KIND_EXTRACTOR = "extractor"
_PLUGIN_KIND_FORMAT = "report format"

# Entry point groups, one per plugin kind
ENTRY_POINT_PREFIX = "stellar_batch"
LOADER_ENTRY_POINT_GROUP = f"{ENTRY_POINT_PREFIX}.loaders"
SOLVER_ENTRY_POINT_GROUP = f"{ENTRY_POINT_PREFIX}.solvers"
EXTRACTOR_ENTRY_POINT_GROUP = f"{ENTRY_POINT_PREFIX}.extractors"
FORMAT_ENTRY_POINT_GROUP = f"{ENTRY_POINT_PREFIX}.formats"

# Local plugin directories (*.py files scanned for plugin classes)
PLUGIN_ROOT = Path.home() / ".stellar_batch"
LOADER_PLUGIN_DIR = PLUGIN_ROOT / "loader_plugins"
SOLVER_PLUGIN_DIR = PLUGIN_ROOT / "solver_plugins"
EXTRACTOR_PLUGIN_DIR = PLUGIN_ROOT / "extractor_plugins"
FORMAT_PLUGIN_DIR = PLUGIN_ROOT / "format_plugins"


__all__ = [
    "_PLUGIN_KIND_GENERIC",
    "_PLUGIN_KIND_LOADER",
    "_PLUGIN_KIND_SOLVER",
    "_PLUGIN_KIND_EXTRACTOR",
    "_PLUGIN_KIND_FORMAT",
    "LOADER_ENTRY_POINT_GROUP",
    "SOLVER_ENTRY_POINT_GROUP",
    "EXTRACTOR_ENTRY_POINT_GROUP",
    "FORMAT_ENTRY_POINT_GROUP",
    "LOADER_PLUGIN_DIR",
    "SOLVER_PLUGIN_DIR",
    "EXTRACTOR_PLUGIN_DIR",
    "FORMAT_PLUGIN_DIR",
]
