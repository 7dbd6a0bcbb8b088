#!/usr/bin/env python
#
# Stellar Batch CLI - Plugin Registry Base
# © 2025 Shinichi Morita (shin3tky)
#

"""Shared registry and discovery utilities for plugin-based components.

All four plugin kinds (image loaders, solvers, extractors and report
formats) are looked up through a :class:`PluginRegistryBase` subclass.
Discovery order is deterministic:

1. Built-in plugins returned by ``_builtin_plugins``
2. Entry points in ``_entry_point_group``, sorted by entry-point name
3. ``*.py`` files in ``_plugin_dir``, sorted alphabetically

Later discoveries with a duplicate ``plugin_name`` are ignored with a
warning. Runtime-registered plugins (``register``) take priority over
discovered ones.
"""

from __future__ import annotations

import importlib.util
import inspect
import logging
import warnings
from dataclasses import is_dataclass
from importlib import metadata
from pathlib import Path
from typing import (
    Any,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

from .plugin_registry import _PLUGIN_KIND_GENERIC

# Module-level logger for registry operations
logger = logging.getLogger(__name__)

PluginType = TypeVar("PluginType")

# Abstract helpers that must never be registered as plugins
_SKIP_CLASSES = frozenset({"ABC", "Generic", "Protocol"})


def _iter_entry_points(group: str) -> Iterable[metadata.EntryPoint]:
    eps = metadata.entry_points()
    if hasattr(eps, "select"):
        return eps.select(group=group)
    return eps.get(group, [])  # type: ignore[return-value]


def _load_module_from_file(filepath: Path):
    spec = importlib.util.spec_from_file_location(filepath.stem, filepath)
    if spec and spec.loader:
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    raise ImportError(f"Could not load spec for {filepath}")


class PluginRegistryBase(Generic[PluginType]):
    """Base class providing discovery, registration and instantiation.

    Subclasses set ``_plugin_kind``, ``_entry_point_group`` and
    ``_plugin_dir`` and implement ``_builtin_plugins`` and
    ``_is_valid_plugin``.

    Plugins expose a ``ConfigType`` attribute (a dataclass or a pydantic
    model) whose zero-argument constructor yields a complete default
    configuration; ``create`` coerces dictionaries into that type.
    """

    _plugin_kind: str = _PLUGIN_KIND_GENERIC
    _entry_point_group: Optional[str] = None
    _plugin_dir: Optional[Path] = None
    _skip_classes: frozenset = frozenset()

    # Discovered plugins (built-ins + entry points + plugin dir), lazy
    _discovered: Optional[Dict[str, Type[PluginType]]] = None

    # Runtime-registered plugins (for testing/dynamic plugins)
    _custom: Dict[str, Type[PluginType]] = {}

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        # Each subclass keeps its own registry state
        cls._discovered = None
        cls._custom = {}

    # ========================================
    # Hooks for subclasses
    # ========================================
    @classmethod
    def _builtin_plugins(cls) -> List[Type[PluginType]]:
        return []

    @classmethod
    def _is_valid_plugin(cls, plugin_cls: Type[PluginType]) -> bool:
        raise NotImplementedError

    # ========================================
    # Discovery
    # ========================================
    @classmethod
    def _add_discovered(
        cls,
        registry: Dict[str, Type[PluginType]],
        plugin_cls: Any,
        origin: str,
    ) -> None:
        if not inspect.isclass(plugin_cls):
            return
        if plugin_cls.__name__ in _SKIP_CLASSES | cls._skip_classes:
            return
        if inspect.isabstract(plugin_cls):
            return
        if not cls._is_valid_plugin(plugin_cls):
            logger.debug(
                "%s: skipping %s.%s from %s (not a valid %s)",
                cls.__name__,
                plugin_cls.__module__,
                plugin_cls.__name__,
                origin,
                cls._plugin_kind,
            )
            return

        name_lower = plugin_cls.plugin_name.lower()
        if name_lower in registry:
            existing = registry[name_lower]
            warnings.warn(
                f"Duplicate {cls._plugin_kind} name '{plugin_cls.plugin_name}' "
                f"from {origin}; keeping {existing.__module__}.{existing.__name__}",
                stacklevel=3,
            )
            return
        registry[name_lower] = plugin_cls

    @classmethod
    def _discover_internal(
        cls, plugin_dir: Optional[Path] = None
    ) -> Dict[str, Type[PluginType]]:
        registry: Dict[str, Type[PluginType]] = {}

        for plugin_cls in cls._builtin_plugins():
            cls._add_discovered(registry, plugin_cls, f"built-in {plugin_cls.__name__}")

        if cls._entry_point_group:
            for ep in sorted(
                _iter_entry_points(cls._entry_point_group), key=lambda e: e.name
            ):
                try:
                    plugin_cls = ep.load()
                except Exception as exc:  # pragma: no cover - third-party code
                    warnings.warn(
                        f"Failed to load {cls._plugin_kind} entry point "
                        f"'{ep.name}' from {ep.value}: {exc}",
                        stacklevel=2,
                    )
                    continue
                cls._add_discovered(registry, plugin_cls, f"entry point {ep.name}")

        directory = plugin_dir if plugin_dir is not None else cls._plugin_dir
        if directory is not None and directory.is_dir():
            for path in sorted(directory.glob("*.py")):
                try:
                    module = _load_module_from_file(path)
                except Exception as exc:  # pragma: no cover - third-party code
                    warnings.warn(
                        f"Failed to load plugin module {path}: {exc}",
                        stacklevel=2,
                    )
                    continue
                for _, obj in inspect.getmembers(module, inspect.isclass):
                    # Only classes defined in the plugin file itself
                    if obj.__module__ == module.__name__:
                        cls._add_discovered(registry, obj, f"plugin file {path}")

        return registry

    @classmethod
    def discover(cls, force: bool = False) -> Dict[str, Type[PluginType]]:
        """Discover available plugins (cached, lazy)."""
        if cls._discovered is None or force:
            logger.debug(
                "%s.discover: starting discovery (force=%s)", cls.__name__, force
            )
            cls._discovered = cls._discover_internal()
            logger.debug(
                "%s.discover: completed, found %d %s(s): %s",
                cls.__name__,
                len(cls._discovered),
                cls._plugin_kind,
                ", ".join(sorted(cls._discovered)) or "none",
            )
        return cls._discovered

    # ========================================
    # Lookup & Registration
    # ========================================
    @classmethod
    def get(cls, name: str) -> Type[PluginType]:
        """Get a plugin class by (case-insensitive) name.

        Raises:
            KeyError: If no plugin with that name is registered.
        """
        name_lower = name.lower()

        if name_lower in cls._custom:
            logger.debug(
                "%s.get('%s'): found in custom registry", cls.__name__, name
            )
            return cls._custom[name_lower]

        discovered = cls.discover()
        if name_lower in discovered:
            logger.debug(
                "%s.get('%s'): found in discovered registry (%s.%s)",
                cls.__name__,
                name,
                discovered[name_lower].__module__,
                discovered[name_lower].__name__,
            )
            return discovered[name_lower]

        available_str = ", ".join(cls.list_available()) or "none"
        logger.warning(
            "%s.get('%s'): %s not found. Available: %s",
            cls.__name__,
            name,
            cls._plugin_kind,
            available_str,
        )
        raise KeyError(
            f"Unknown {cls._plugin_kind} '{name}'. Available: {available_str}"
        )

    @classmethod
    def register(cls, plugin_cls: Type[PluginType]) -> None:
        """Register a plugin class at runtime (overrides discovered plugins)."""
        if not cls._is_valid_plugin(plugin_cls):
            logger.error(
                "%s.register: invalid %s class %s",
                cls.__name__,
                cls._plugin_kind,
                plugin_cls,
            )
            raise ValueError(
                f"Invalid {cls._plugin_kind} class: {plugin_cls}. "
                f"Must inherit from the proper base and have non-empty plugin_name."
            )

        name = plugin_cls.plugin_name
        name_lower = name.lower()
        if name_lower in cls._custom:
            logger.warning(
                "%s.register: overwriting runtime-registered %s '%s'",
                cls.__name__,
                cls._plugin_kind,
                name,
            )
            warnings.warn(
                f"Overwriting existing runtime-registered {cls._plugin_kind} '{name}'",
                stacklevel=2,
            )

        cls._custom[name_lower] = plugin_cls
        logger.info(
            "%s.register: registered %s '%s' (%s.%s)",
            cls.__name__,
            cls._plugin_kind,
            name,
            plugin_cls.__module__,
            plugin_cls.__name__,
        )

    @classmethod
    def unregister(cls, name: str) -> bool:
        """Remove a runtime-registered plugin; returns False if absent."""
        removed = cls._custom.pop(name.lower(), None)
        if removed is None:
            logger.debug(
                "%s.unregister: %s '%s' not found in custom registry",
                cls.__name__,
                cls._plugin_kind,
                name,
            )
            return False
        logger.info(
            "%s.unregister: removed %s '%s'", cls.__name__, cls._plugin_kind, name
        )
        return True

    @classmethod
    def list_available(cls) -> List[str]:
        """List all available plugin names."""
        return sorted(set(cls.discover()) | set(cls._custom))

    # ========================================
    # Instantiation
    # ========================================
    @classmethod
    def create(
        cls,
        name: str,
        config: Optional[Union[Dict[str, Any], Any]] = None,
    ) -> PluginType:
        """Create a plugin instance with config coercion.

        Args:
            name: Plugin name.
            config: None (default config), a dict (coerced to ConfigType)
                or a ConfigType instance.

        Raises:
            KeyError: If the plugin is not found.
            TypeError: If the config type is incompatible.
            ValueError: If config validation fails.
        """
        logger.debug("Creating %s '%s' with config %r", cls._plugin_kind, name, config)
        plugin_cls = cls.get(name)
        coerced = cls._coerce_config(plugin_cls, config)
        instance = plugin_cls(coerced)
        logger.debug(
            "Created %s '%s' (%s) with config type %s",
            cls._plugin_kind,
            name,
            plugin_cls.__name__,
            type(coerced).__name__ if coerced is not None else None,
        )
        return instance

    @classmethod
    def _coerce_config(
        cls,
        plugin_cls: Type[PluginType],
        config: Optional[Union[Dict[str, Any], Any]],
    ) -> Any:
        """Coerce config to the plugin's expected ConfigType."""
        config_type = getattr(plugin_cls, "ConfigType", None)
        plugin_name = getattr(plugin_cls, "plugin_name", "unknown")

        if config_type is None:
            logger.debug(
                "_coerce_config(%s): no ConfigType defined, passing %s as-is",
                plugin_name,
                type(config).__name__,
            )
            return config

        if config is None:
            try:
                return config_type()
            except TypeError as exc:
                logger.error(
                    "_coerce_config(%s): failed to create default %s - %s",
                    plugin_name,
                    config_type.__name__,
                    exc,
                )
                raise TypeError(
                    f"Failed to create default config for {cls._plugin_kind} "
                    f"'{plugin_name}': {config_type.__name__} requires arguments."
                ) from exc

        if isinstance(config, config_type):
            return config

        if not isinstance(config, dict):
            logger.debug(
                "_coerce_config(%s): passing config as-is (type=%s, expected=%s)",
                plugin_name,
                type(config).__name__,
                config_type.__name__,
            )
            return config

        if is_dataclass(config_type):
            try:
                result = config_type(**config)
            except TypeError as exc:
                logger.error(
                    "_coerce_config(%s): failed to coerce dict to dataclass %s - %s",
                    plugin_name,
                    config_type.__name__,
                    exc,
                )
                raise TypeError(
                    f"Invalid config for {cls._plugin_kind} '{plugin_name}': {exc}"
                ) from exc
            logger.debug(
                "_coerce_config(%s): coerced dict to dataclass %s",
                plugin_name,
                config_type.__name__,
            )
            return result

        validate = getattr(config_type, "model_validate", None) or getattr(
            config_type, "parse_obj", None
        )
        if validate is not None:
            try:
                result = validate(config)
            except Exception as exc:  # pydantic.ValidationError
                logger.error(
                    "_coerce_config(%s): validation failed for %s - %s: %s",
                    plugin_name,
                    config_type.__name__,
                    type(exc).__name__,
                    exc,
                )
                raise ValueError(
                    f"Config validation failed for {cls._plugin_kind} "
                    f"'{plugin_name}': {exc}"
                ) from exc
            logger.debug(
                "_coerce_config(%s): coerced dict to pydantic model %s",
                plugin_name,
                config_type.__name__,
            )
            return result

        logger.error(
            "_coerce_config(%s): cannot coerce dict to %s (not a dataclass "
            "or pydantic model)",
            plugin_name,
            config_type.__name__,
        )
        raise TypeError(
            f"Cannot coerce dict to {config_type.__name__} for {cls._plugin_kind} "
            f"'{plugin_name}': ConfigType is neither a dataclass nor a pydantic model."
        )

    @classmethod
    def _reset(cls) -> None:
        """Reset registry state (for tests)."""
        cls._discovered = None
        cls._custom = {}
        logger.debug("%s._reset: cleared registry state", cls.__name__)


__all__ = ["PluginRegistryBase"]
