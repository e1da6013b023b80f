"""
Configuration Loader (``market_config.loader``).

Responsibility
--------------
Reads YAML documents and parses them into the frozen ``MarketConfig``.
A user file overlays the packaged ``defaults.yaml`` section by section.
The single runtime entry point is ``market_config.get_active_config()``.

Invariants enforced
-------------------
* Unknown sections or keys raise ``ValueError``; nothing is silently
  ignored.
* ``compute_checksum`` is a deterministic SHA-256 of the merged document.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong value types  -> ``ValueError``.
"""

from __future__ import annotations

import copy
import dataclasses
import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from market_config.schema import (
    CoordinatorSettings,
    DatabaseSettings,
    IdempotencySettings,
    LoggingSettings,
    MaintenanceSettings,
    MarketConfig,
)
from market_engines.fraud import FraudPolicy
from market_engines.restriction import RestrictionPolicy
from market_engines.trust import TrustPolicy

DEFAULTS_PATH = Path(__file__).parent / "defaults.yaml"

_SECTIONS: dict[str, type] = {
    "database": DatabaseSettings,
    "coordinator": CoordinatorSettings,
    "idempotency": IdempotencySettings,
    "maintenance": MaintenanceSettings,
    "logging": LoggingSettings,
    "trust": TrustPolicy,
    "restriction": RestrictionPolicy,
    "fraud": FraudPolicy,
}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load one YAML file as a dict (empty file -> empty dict).

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ValueError: if the top level is not a mapping.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping, got {type(data).__name__}")
    return data


def merge_documents(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Overlay ``overlay`` on ``base`` one section deep."""
    merged = copy.deepcopy(base)
    for key, value in overlay.items():
        if key not in merged:
            raise ValueError(f"Unknown configuration section: {key!r}")
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key].update(value)
        else:
            merged[key] = value
    return merged


def compute_checksum(data: dict[str, Any]) -> str:
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _coerce(section: str, name: str, expected: Any, value: Any) -> Any:
    if value is None:
        return None
    target = expected if isinstance(expected, type) else None
    if target is None:
        # Optional[...] and other annotations: accept as given
        return value
    if target is bool:
        if not isinstance(value, bool):
            raise ValueError(f"{section}.{name} must be a boolean, got {value!r}")
        return value
    if target in (int, float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"{section}.{name} must be a number, got {value!r}")
        return target(value)
    if target is str:
        if not isinstance(value, str):
            raise ValueError(f"{section}.{name} must be a string, got {value!r}")
        return value
    return value


def _parse_section(section: str, cls: type, raw: Any) -> Any:
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ValueError(f"Section {section!r} must be a mapping")

    fields = {f.name: f for f in dataclasses.fields(cls)}
    unknown = set(raw) - set(fields)
    if unknown:
        raise ValueError(f"Unknown keys in section {section!r}: {sorted(unknown)}")

    hints = {name: _annotation_type(f.type) for name, f in fields.items()}
    kwargs = {
        name: _coerce(section, name, hints[name], value) for name, value in raw.items()
    }
    return cls(**kwargs)


_ANNOTATIONS = {"int": int, "float": float, "bool": bool, "str": str}


def _annotation_type(annotation: Any) -> Any:
    # Annotations are strings under ``from __future__ import annotations``.
    if isinstance(annotation, str):
        return _ANNOTATIONS.get(annotation.strip(), annotation)
    return annotation


def parse_config(data: dict[str, Any]) -> MarketConfig:
    """Build a ``MarketConfig`` from a merged document."""
    unknown = set(data) - set(_SECTIONS) - {"admin_registry"}
    if unknown:
        raise ValueError(f"Unknown configuration sections: {sorted(unknown)}")

    registry = data.get("admin_registry") or []
    if not isinstance(registry, list) or not all(isinstance(e, str) for e in registry):
        raise ValueError("admin_registry must be a list of e-mail addresses")

    sections = {
        name: _parse_section(name, cls, data.get(name)) for name, cls in _SECTIONS.items()
    }
    return MarketConfig(
        **sections,
        admin_registry=frozenset(e.strip().lower() for e in registry),
        checksum=compute_checksum(data),
    )


def load_config(path: Path | str | None = None) -> MarketConfig:
    """
    Load the packaged defaults, overlay ``path`` when given, and parse.

    Raises:
        FileNotFoundError, yaml.YAMLError, ValueError -- see module docstring.
    """
    data = load_yaml_file(DEFAULTS_PATH)
    if path is not None:
        data = merge_documents(data, load_yaml_file(Path(path)))
    return parse_config(data)
