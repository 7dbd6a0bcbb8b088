"""Shared plugin contract helpers for stellar_core plugins.

Every plugin kind (image loaders, solvers, extractors, report formats)
follows the same contract: a non-empty ``plugin_name`` class attribute, an
optional ``ConfigType`` (dataclass or pydantic model) and a constructor that
takes one config instance. The mixins below implement the constructor for
the two supported config flavors.
"""

from __future__ import annotations

import logging
from dataclasses import is_dataclass
from typing import Any, Dict, Type

from pydantic import BaseModel

logger = logging.getLogger(__name__)


def require_plugin_name(cls: type[Any], *, kind: str) -> str:
    """Validate and return the plugin name defined on a class.

    Raises:
        ValueError: If the plugin name is missing or empty.
    """
    plugin_name = getattr(cls, "plugin_name", "")
    if not isinstance(plugin_name, str) or not plugin_name:
        raise ValueError(
            f"{kind} subclasses must define a non-empty 'plugin_name' string."
        )
    return plugin_name


def require_config_type(cls: type[Any]) -> Any:
    """Fetch the ConfigType declared on a plugin class (if any)."""
    return getattr(cls, "ConfigType", None)


def is_plugin_class(cls: Any, base: Type[Any]) -> bool:
    """Return True if ``cls`` subclasses ``base`` and names itself."""
    if not isinstance(cls, type):
        logger.debug("is_plugin_class: %r is not a type", cls)
        return False
    if not issubclass(cls, base):
        logger.debug(
            "is_plugin_class: %s does not inherit from %s",
            cls.__name__,
            base.__name__,
        )
        return False
    plugin_name = getattr(cls, "plugin_name", None)
    if not isinstance(plugin_name, str) or not plugin_name:
        logger.debug(
            "is_plugin_class: %s has invalid plugin_name: %r",
            cls.__name__,
            plugin_name,
        )
        return False
    return True


def forbid_unknown_keys(model: type[Any]) -> type[Any]:
    """Force a pydantic model to reject unknown fields at parse time.

    Raises:
        TypeError: If model is not a pydantic BaseModel.
    """
    if not (isinstance(model, type) and issubclass(model, BaseModel)):
        raise TypeError("Model must inherit from pydantic.BaseModel.")

    merged_config = dict(getattr(model, "model_config", None) or {})
    merged_config["extra"] = "forbid"
    model.model_config = merged_config
    model.model_rebuild(force=True)
    return model


class DataclassConfigured:
    """Constructor mixin for plugins configured by a dataclass."""

    _plugin_kind_label: str = "plugin"

    def __init__(self, config: Any) -> None:
        require_plugin_name(self.__class__, kind=self._plugin_kind_label)
        config_type = require_config_type(self.__class__)
        if config_type is not None:
            if not is_dataclass(config_type):
                logger.error(
                    "ConfigType %s is not a dataclass for %s %s",
                    config_type,
                    self._plugin_kind_label,
                    self.__class__.__name__,
                )
                raise TypeError(
                    f"ConfigType must be a dataclass type for {self.__class__.__name__}."
                )
            if not isinstance(config, config_type):
                logger.error(
                    "Config instance %s does not match dataclass %s for %s",
                    type(config).__name__,
                    config_type.__name__,
                    self.__class__.__name__,
                )
                raise TypeError(
                    f"config must be an instance of {config_type.__name__}."
                )
        self.config = config
        logger.debug(
            "%s initialized with dataclass config %s", self.__class__.__name__, config
        )


class PydanticConfigured:
    """Constructor mixin for plugins configured by a pydantic model."""

    _plugin_kind_label: str = "plugin"

    def __init__(self, config: Any) -> None:
        require_plugin_name(self.__class__, kind=self._plugin_kind_label)
        config_type = require_config_type(self.__class__)
        if config_type is not None:
            if not issubclass(config_type, BaseModel):
                logger.error(
                    "ConfigType %s is not a pydantic BaseModel for %s %s",
                    config_type,
                    self._plugin_kind_label,
                    self.__class__.__name__,
                )
                raise TypeError(
                    "ConfigType must inherit from pydantic.BaseModel for "
                    f"{self.__class__.__name__}."
                )
            if not isinstance(config, config_type):
                logger.error(
                    "Config instance %s does not match pydantic model %s for %s",
                    type(config).__name__,
                    config_type.__name__,
                    self.__class__.__name__,
                )
                raise TypeError(
                    f"config must be an instance of {config_type.__name__}."
                )
        self.config = config
        logger.debug(
            "%s initialized with pydantic config %s", self.__class__.__name__, config
        )


def plugin_info(plugin: Any) -> Dict[str, str]:
    """Metadata dictionary shared by every plugin's ``get_info``."""
    return {
        "plugin_name": getattr(plugin, "plugin_name", ""),
        "name": getattr(plugin, "name", ""),
        "version": getattr(plugin, "version", ""),
        "class": plugin.__class__.__name__,
    }


__all__ = [
    "DataclassConfigured",
    "PydanticConfigured",
    "forbid_unknown_keys",
    "is_plugin_class",
    "plugin_info",
    "require_config_type",
    "require_plugin_name",
]
