#!/usr/bin/env python
#
# Stellar Batch CLI - Configuration I/O
# © 2025 Shinichi Morita (shin3tky)
#

"""Load run configuration files and plugin configuration payloads."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .exceptions import StellarConfigError
from .schema import RunConfig

logger = logging.getLogger(__name__)

SUPPORTED_CONFIG_EXTENSIONS = {".json", ".yaml", ".yml"}


def _read_structured_file(path: Path, config_key: Optional[str] = None) -> Any:
    suffix = path.suffix.lower()
    if suffix not in SUPPORTED_CONFIG_EXTENSIONS:
        raise StellarConfigError(
            "Unsupported configuration file format",
            filepath=str(path),
            config_key=config_key,
            context={
                "supported_extensions": ", ".join(sorted(SUPPORTED_CONFIG_EXTENSIONS))
            },
        )
    text = path.read_text(encoding="utf-8")
    if suffix == ".json":
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise StellarConfigError(
                "Invalid JSON configuration file",
                filepath=str(path),
                config_key=config_key,
                original_error=exc,
            ) from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise StellarConfigError(
            "Invalid YAML configuration file",
            filepath=str(path),
            config_key=config_key,
            original_error=exc,
        ) from exc
    return data if data is not None else {}


def load_run_config(path: str | Path) -> RunConfig:
    """Load a :class:`RunConfig` from a YAML/JSON file.

    Raises:
        StellarConfigError: If the file is missing, unreadable or invalid.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise StellarConfigError(
            "Configuration file not found",
            filepath=str(config_path),
        )
    if config_path.is_dir():
        raise StellarConfigError(
            "Configuration path must be a file, not a directory",
            filepath=str(config_path),
        )
    data = _read_structured_file(config_path)
    if not isinstance(data, dict):
        raise StellarConfigError(
            "Configuration file must define an object at the top level",
            filepath=str(config_path),
        )
    logger.debug("load_run_config(%s): keys=%s", config_path, sorted(data))
    try:
        return RunConfig.from_dict(data)
    except (TypeError, ValueError, KeyError) as exc:
        raise StellarConfigError(
            "Invalid run configuration",
            filepath=str(config_path),
            original_error=exc,
        ) from exc


def parse_config_payload(value: Optional[str], arg_name: str) -> Any:
    """Parse a JSON/YAML string, or the file it names."""
    if value is None:
        return None
    if value == "":
        return {}

    path = Path(value)
    if path.is_file():
        return _read_structured_file(path, config_key=arg_name)

    try:
        return json.loads(value)
    except json.JSONDecodeError:
        try:
            return yaml.safe_load(value)
        except yaml.YAMLError as exc:
            raise StellarConfigError(
                "Invalid configuration string",
                config_key=arg_name,
                original_error=exc,
            ) from exc


def parse_plugin_config(
    value: Optional[str], arg_name: str
) -> Optional[Dict[str, Any]]:
    """Parse plugin configuration from a JSON/YAML string or file path."""
    data = parse_config_payload(value, arg_name)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise StellarConfigError(
            "Plugin configuration must be a mapping",
            config_key=arg_name,
            context={"provided_type": type(data).__name__},
        )
    return data


__all__ = [
    "SUPPORTED_CONFIG_EXTENSIONS",
    "load_run_config",
    "parse_config_payload",
    "parse_plugin_config",
]
