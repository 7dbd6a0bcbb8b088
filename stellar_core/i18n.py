"""Internationalization helpers for stellar_core.

Progress, summary and diagnostic strings live in locale-specific YAML
catalogs under ``stellar_core/locales/<locale>/messages.yaml``. Templates use
``{placeholder}`` substitution plus ICU-style plural blocks such as
``{count, plural, one {# image} other {# images}}``.

Report content (labels inside text/TOML/YAML reports) is never localized.
"""

from __future__ import annotations

import os
import re
from functools import lru_cache
from importlib import resources
from logging import Logger
from numbers import Number
from string import Template
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULT_LOCALE = "en"
LOCALE_ENV_VAR = "STELLAR_BATCH_LOCALE"
_LOCALES_PACKAGE = "stellar_core.locales"

_PLURAL_KEY = re.compile(r"[a-zA-Z0-9_=]+")


class _SafeDict(dict):
    """Dictionary that leaves unknown format keys untouched."""

    def __missing__(self, key: str) -> str:
        return "{" + key + "}"


def resolve_locale(locale: Optional[str] = None) -> str:
    """Return ``locale`` or the environment default, falling back to English."""
    if locale:
        return locale
    return os.environ.get(LOCALE_ENV_VAR) or DEFAULT_LOCALE


def _normalize_locale(locale: str | None) -> str:
    normalized = (locale or DEFAULT_LOCALE).strip().replace("_", "-").lower()
    return normalized or DEFAULT_LOCALE


def _candidate_locales(locale: str) -> list[str]:
    normalized = _normalize_locale(locale)
    candidates = [normalized]
    for fallback in (normalized.split("-")[0], DEFAULT_LOCALE):
        if fallback not in candidates:
            candidates.append(fallback)
    return candidates


def _flatten_messages(node: Mapping[str, Any], prefix: str = "") -> Dict[str, str]:
    flat: Dict[str, str] = {}
    for key, value in node.items():
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten_messages(value, prefix=full_key))
        else:
            flat[full_key] = str(value)
    return flat


@lru_cache(maxsize=None)
def _load_catalog(locale: str) -> Dict[str, str]:
    """Load and flatten the catalog for one locale ({} when missing)."""
    try:
        path = resources.files(_LOCALES_PACKAGE).joinpath(locale, "messages.yaml")
    except ModuleNotFoundError:
        return {}
    if not path.is_file():
        return {}

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError:
        return {}
    if not isinstance(data, Mapping):
        return {}
    return _flatten_messages(data)


def _coerce_number(value: Any) -> Number | None:
    if isinstance(value, Number):
        return value
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return None


def _plural_category(locale: str, count: Number) -> str:
    language = _normalize_locale(locale).split("-")[0]
    if language == "ja":
        return "other"
    return "one" if count == 1 else "other"


def _extract_braced(text: str, start_index: int) -> tuple[str, int] | None:
    """Return the content of the balanced brace block at ``start_index``."""
    if start_index >= len(text) or text[start_index] != "{":
        return None

    depth = 0
    for idx in range(start_index, len(text)):
        if text[idx] == "{":
            depth += 1
        elif text[idx] == "}":
            depth -= 1
            if depth == 0:
                return text[start_index + 1 : idx], idx
    return None


def _parse_plural_options(source: str) -> Dict[str, str]:
    options: Dict[str, str] = {}
    cursor = 0
    while cursor < len(source):
        while cursor < len(source) and source[cursor].isspace():
            cursor += 1
        key_match = _PLURAL_KEY.match(source, cursor)
        if not key_match:
            break
        key = key_match.group(0)
        cursor = key_match.end()
        while cursor < len(source) and source[cursor].isspace():
            cursor += 1
        extracted = _extract_braced(source, cursor)
        if not extracted:
            break
        value, end = extracted
        options[key] = value
        cursor = end + 1
    return options


def _parse_plural_block(
    template: str, index: int, params: Mapping[str, Any], locale: str
) -> tuple[str, int] | None:
    parsed = _extract_braced(template, index)
    if not parsed:
        return None

    content, end_index = parsed
    parts = [part.strip() for part in content.split(",", 2)]
    if len(parts) < 2 or parts[1] != "plural":
        return None

    options = _parse_plural_options(parts[2] if len(parts) == 3 else "")
    if not options:
        return None

    count = _coerce_number(params.get(parts[0]))
    if count is None:
        selected = options.get("other")
    else:
        selected = options.get(f"={count}") or options.get(
            _plural_category(locale, count)
        )
        selected = selected if selected is not None else options.get("other")
    if selected is None:
        return None

    return selected.replace("#", str(count if count is not None else "")), end_index


def _render_plurals(template: str, params: Mapping[str, Any], locale: str) -> str:
    rendered = []
    index = 0
    while index < len(template):
        if template[index] == "{":
            parsed = _parse_plural_block(template, index, params, locale)
            if parsed:
                replacement, end_index = parsed
                rendered.append(replacement)
                index = end_index + 1
                continue
        rendered.append(template[index])
        index += 1
    return "".join(rendered)


def _format_template(template: str, params: Mapping[str, Any], locale: str) -> str:
    rendered = _render_plurals(template, params, locale)
    try:
        return rendered.format_map(_SafeDict(params))
    except (ValueError, IndexError, AttributeError):
        return Template(rendered).safe_substitute(**params)


def get_message(
    key: str,
    *,
    locale: str = DEFAULT_LOCALE,
    params: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> str:
    """Retrieve a localized message by key; unknown keys render as the key."""
    merged_params: Dict[str, Any] = dict(params or {})
    merged_params.update(kwargs)

    template = key
    for candidate in _candidate_locales(locale):
        catalog = _load_catalog(candidate)
        if key in catalog:
            template = catalog[key]
            break

    return _format_template(template, merged_params, locale)


def log_warning(
    logger: Logger,
    key: str,
    *,
    locale: str = DEFAULT_LOCALE,
    params: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> None:
    """Log a localized warning message."""
    logger.warning(get_message(key, locale=locale, params=params, **kwargs))


__all__ = [
    "DEFAULT_LOCALE",
    "LOCALE_ENV_VAR",
    "get_message",
    "log_warning",
    "resolve_locale",
]
