"""
Configuration loader (``inventory_config.loader``).

Loads ``defaults.yaml``, merges an optional override file over it key by
key, validates every value and parses the result into the frozen
dataclasses of ``inventory_config.schema``.  Runtime callers use
``inventory_config.get_active_config()``; this module is the tooling
behind it.

Failure modes:
    - Missing override file -> ``FileNotFoundError`` propagates.
    - Malformed YAML -> ``yaml.YAMLError`` propagates.
    - Out-of-range or mistyped values -> ``ConfigurationError`` naming the
      dotted key.
"""

from __future__ import annotations

import copy
import hashlib
import json
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from uuid import UUID

import yaml

from inventory_config.schema import (
    AdjustmentConfig,
    DatabaseConfig,
    ErpExportConfig,
    IngestionConfig,
    MatchingConfig,
    ReconciliationConfig,
    SourceTags,
)
from inventory_kernel.exceptions import ConfigurationError

DEFAULTS_FILE = Path(__file__).parent / "defaults.yaml"

_EXPORT_FORMATS = frozenset({"array", "jsonl"})


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file; an empty file yields an empty dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level must be a mapping")
    return data


def merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    """Recursive merge; mappings merge key by key, everything else replaces."""
    result = copy.deepcopy(dict(base))
    for key, value in override.items():
        if isinstance(value, Mapping) and isinstance(result.get(key), Mapping):
            result[key] = merge(result[key], value)
        else:
            result[key] = copy.deepcopy(value)
    return result


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization (sorted keys)."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


# -----------------------------------------------------------------------------
# Typed getters
# -----------------------------------------------------------------------------


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(key, "must be a mapping")
    return value


def _int(data: Mapping[str, Any], key: str, path: str, minimum: int = 0, maximum: int | None = None) -> int:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigurationError(path, f"expected an integer, got {value!r}")
    if value < minimum or (maximum is not None and value > maximum):
        bounds = f">= {minimum}" if maximum is None else f"between {minimum} and {maximum}"
        raise ConfigurationError(path, f"must be {bounds}, got {value}")
    return value


def _str(data: Mapping[str, Any], key: str, path: str, allow_empty: bool = False) -> str:
    value = data[key]
    if not isinstance(value, str) or (not allow_empty and not value.strip()):
        raise ConfigurationError(path, f"expected a non-empty string, got {value!r}")
    return value


def _bool(data: Mapping[str, Any], key: str, path: str) -> bool:
    value = data[key]
    if not isinstance(value, bool):
        raise ConfigurationError(path, f"expected true/false, got {value!r}")
    return value


def _optional_str(data: Mapping[str, Any], key: str, path: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ConfigurationError(path, f"expected a string, got {value!r}")
    return value


# -----------------------------------------------------------------------------
# Sections
# -----------------------------------------------------------------------------


def parse_database(data: Mapping[str, Any]) -> DatabaseConfig:
    return DatabaseConfig(
        url=_str(data, "url", "database.url"),
        echo=_bool(data, "echo", "database.echo"),
    )


def parse_matching(data: Mapping[str, Any]) -> MatchingConfig:
    weights = _section(data, "weights")
    prefixes = data.get("code_variant_prefixes") or {}
    if not isinstance(prefixes, Mapping) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in prefixes.items()
    ):
        raise ConfigurationError(
            "matching.code_variant_prefixes", "must map strings to strings",
        )
    threshold = data["similarity_threshold"]
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)) or not 0 <= threshold <= 1:
        raise ConfigurationError(
            "matching.similarity_threshold", f"must be between 0 and 1, got {threshold!r}",
        )
    return MatchingConfig(
        min_confidence=_int(data, "min_confidence", "matching.min_confidence", 0, 100),
        category_weight=_int(weights, "category", "matching.weights.category"),
        exact_name_weight=_int(weights, "exact_name", "matching.weights.exact_name"),
        contains_weight=_int(weights, "contains", "matching.weights.contains"),
        token_weight=_int(weights, "token", "matching.weights.token"),
        token_cap=_int(weights, "token_cap", "matching.weights.token_cap"),
        min_token_length=_int(data, "min_token_length", "matching.min_token_length", 1),
        color_weight=_int(weights, "color", "matching.weights.color"),
        size_weight=_int(weights, "size", "matching.weights.size"),
        default_variant=_str(data, "default_variant", "matching.default_variant"),
        fallback_category=_str(data, "fallback_category", "matching.fallback_category"),
        similarity_threshold=float(threshold),
        code_variant_prefixes={k.lower(): v.lower() for k, v in prefixes.items()},
    )


def parse_ingestion(data: Mapping[str, Any]) -> IngestionConfig:
    export = _section(data, "erp_export")
    fmt = export.get("format") or "array"
    if fmt not in _EXPORT_FORMATS:
        raise ConfigurationError(
            "ingestion.erp_export.format",
            f"must be one of {sorted(_EXPORT_FORMATS)}, got {fmt!r}",
        )
    try:
        actor = UUID(str(data["system_actor_id"]))
    except ValueError:
        raise ConfigurationError(
            "ingestion.system_actor_id", f"not a UUID: {data['system_actor_id']!r}",
        ) from None
    return IngestionConfig(
        max_concurrent_fetches=_int(
            data, "max_concurrent_fetches", "ingestion.max_concurrent_fetches", 1,
        ),
        company_return_customer_name=_str(
            data, "company_return_customer_name", "ingestion.company_return_customer_name",
        ),
        processed_return_status=_str(
            data, "processed_return_status", "ingestion.processed_return_status",
        ),
        system_actor_id=actor,
        erp_export=ErpExportConfig(
            path=_optional_str(export, "path", "ingestion.erp_export.path"),
            format=fmt,
            json_path=_optional_str(export, "json_path", "ingestion.erp_export.json_path"),
        ),
    )


def parse_sources(data: Mapping[str, Any]) -> SourceTags:
    tags = {name: _str(data, name, f"sources.{name}") for name in (
        "external_erp", "mirrored_erp", "local_sales",
        "customer_returns", "company_returns", "adjustment",
    )}
    if len(set(tags.values())) != len(tags):
        raise ConfigurationError("sources", "source tags must be distinct")
    return SourceTags(**tags)


def parse_adjustments(data: Mapping[str, Any]) -> AdjustmentConfig:
    return AdjustmentConfig(
        allow_positive_adjustments=_bool(
            data, "allow_positive_adjustments", "adjustments.allow_positive_adjustments",
        ),
        forbid_self_review=_bool(data, "forbid_self_review", "adjustments.forbid_self_review"),
    )


def parse_config(data: dict[str, Any]) -> ReconciliationConfig:
    """Parse a fully merged config dict.

    Raises:
        ConfigurationError: a value is missing, mistyped or out of range.
    """
    try:
        return ReconciliationConfig(
            config_id=_str(data, "config_id", "config_id"),
            version=_int(data, "version", "version", 1),
            checksum=compute_checksum(data),
            database=parse_database(_section(data, "database")),
            matching=parse_matching(_section(data, "matching")),
            ingestion=parse_ingestion(_section(data, "ingestion")),
            sources=parse_sources(_section(data, "sources")),
            adjustments=parse_adjustments(_section(data, "adjustments")),
        )
    except KeyError as exc:
        raise ConfigurationError(str(exc.args[0]), "required key missing") from None


def load_config(path: Path | None = None) -> ReconciliationConfig:
    """Defaults merged with the YAML file at ``path`` (if any), parsed."""
    data = load_yaml_file(DEFAULTS_FILE)
    if path is not None:
        data = merge(data, load_yaml_file(Path(path)))
    return parse_config(data)
