"""Schema helpers for the dashview settings file."""

from __future__ import annotations

from copy import deepcopy
from typing import Any

from jsonschema import Draft202012Validator

from dashview.config import (
    DEFAULT_PAGE_SIZE,
    GC_TIME_SEC,
    MAX_RETRIES,
    PAGE_SIZE_OPTIONS,
    REQUEST_TIMEOUT_SEC,
    SEARCH_DEBOUNCE_MS,
    STALE_TIME_SEC,
)

SETTINGS_SCHEMA: dict[str, Any] = {
    "$id": "dashview/settings.schema.json",
    "type": "object",
    "required": ["schema", "api", "views", "cache"],
    "properties": {
        "schema": {"const": "dashview/settings@1"},
        "api": {
            "type": "object",
            "properties": {
                "base_url": {"type": ["string", "null"]},
                "timeout": {"type": "number", "exclusiveMinimum": 0},
                "max_retries": {"type": "integer", "minimum": 0, "maximum": 10},
            },
            "additionalProperties": True,
        },
        "views": {
            "type": "object",
            "properties": {
                "page_size": {"type": "integer", "enum": list(PAGE_SIZE_OPTIONS)},
                "search_debounce_ms": {"type": "integer", "minimum": 0},
                "default_view": {"type": "string", "enum": ["table", "grid"]},
                "url_sync": {"type": "boolean"},
            },
            "additionalProperties": True,
        },
        "cache": {
            "type": "object",
            "properties": {
                "stale_time": {"type": "number", "minimum": 0},
                "gc_time": {"type": "number", "minimum": 0},
            },
            "additionalProperties": True,
        },
        "log_level": {
            "type": "string",
            "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        },
    },
    "additionalProperties": True,
}

DEFAULT_SETTINGS: dict[str, Any] = {
    "schema": "dashview/settings@1",
    "api": {
        "base_url": None,
        "timeout": REQUEST_TIMEOUT_SEC,
        "max_retries": MAX_RETRIES,
    },
    "views": {
        "page_size": DEFAULT_PAGE_SIZE,
        "search_debounce_ms": SEARCH_DEBOUNCE_MS,
        "default_view": "table",
        "url_sync": True,
    },
    "cache": {
        "stale_time": STALE_TIME_SEC,
        "gc_time": GC_TIME_SEC,
    },
    "log_level": "WARNING",
}

_SECTIONS = ("api", "views", "cache")

_validator = Draft202012Validator(SETTINGS_SCHEMA)


def merge_with_defaults(data: dict[str, Any] | None) -> dict[str, Any]:
    """Merge *data* with :data:`DEFAULT_SETTINGS` and validate the result."""

    merged = deepcopy(DEFAULT_SETTINGS)
    if data:
        for key, value in data.items():
            if key in _SECTIONS and isinstance(value, dict):
                target = merged.setdefault(key, {})
                for sub_key, sub_value in value.items():
                    target[sub_key] = sub_value
                continue
            merged[key] = value
    _validator.validate(merged)
    return merged


def validate_settings(data: dict[str, Any]) -> None:
    """Validate *data* against the settings schema."""

    _validator.validate(data)


__all__ = ["DEFAULT_SETTINGS", "SETTINGS_SCHEMA", "merge_with_defaults", "validate_settings"]
