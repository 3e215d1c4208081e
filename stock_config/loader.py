"""
Configuration Loader (``stock_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into the frozen
``stock_config.schema`` dataclasses.  Callers should use
``stock_config.get_active_config()`` rather than this module directly.

Invariants enforced
-------------------
* Parse errors raise ``ValueError`` with a message naming the offending
  key; unknown keys are rejected rather than ignored.
* Numeric settings become ``Decimal`` via ``str()`` so YAML floats never
  carry binary rounding into tolerances.
* ``compute_checksum`` is deterministic for identical parsed data.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Bad values or unknown keys  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from stock_config.schema import (
    InventorySettings,
    MatchingDefaults,
    ProcurementSettings,
    StockConfig,
)

_HUNDRED = Decimal("100")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_decimal(key: str, value: Any) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"{key}: expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"{key}: expected a number, got {value!r}") from exc
    if not result.is_finite():
        raise ValueError(f"{key}: must be finite")
    return result


def _check_keys(section: str, data: dict[str, Any], cls: type) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - allowed)
    if unknown:
        raise ValueError(f"{section}: unknown keys {unknown}")


def _flag(key: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"{key}: expected true or false, got {value!r}")
    return value


def parse_inventory(data: dict[str, Any]) -> InventorySettings:
    _check_keys("inventory", data, InventorySettings)
    defaults = InventorySettings()
    days = data.get("expiring_soon_days", defaults.expiring_soon_days)
    if not isinstance(days, int) or isinstance(days, bool) or days < 0:
        raise ValueError(f"inventory.expiring_soon_days: expected a non-negative integer, got {days!r}")
    level = parse_decimal(
        "inventory.default_reorder_level",
        data.get("default_reorder_level", defaults.default_reorder_level),
    )
    if level < 0:
        raise ValueError("inventory.default_reorder_level: must not be negative")
    return InventorySettings(expiring_soon_days=days, default_reorder_level=level)


def parse_procurement(data: dict[str, Any]) -> ProcurementSettings:
    _check_keys("procurement", data, ProcurementSettings)
    defaults = ProcurementSettings()
    prefix = str(data.get("grn_number_prefix", defaults.grn_number_prefix)).strip()
    width = data.get("grn_number_width", defaults.grn_number_width)
    if not prefix or "-" in prefix:
        raise ValueError("procurement.grn_number_prefix: must be non-empty and contain no '-'")
    if not isinstance(width, int) or isinstance(width, bool) or not 1 <= width <= 12:
        raise ValueError(f"procurement.grn_number_width: expected 1..12, got {width!r}")
    return ProcurementSettings(grn_number_prefix=prefix, grn_number_width=width)


def parse_matching(data: dict[str, Any]) -> MatchingDefaults:
    _check_keys("matching", data, MatchingDefaults)
    values: dict[str, Any] = {}
    for f in fields(MatchingDefaults):
        if f.name not in data:
            continue
        key = f"matching.{f.name}"
        if f.name.endswith("_pct"):
            pct = parse_decimal(key, data[f.name])
            if not (Decimal("0") <= pct <= _HUNDRED):
                raise ValueError(f"{key}: must be between 0 and 100, got {pct}")
            values[f.name] = pct
        else:
            values[f.name] = _flag(key, data[f.name])
    return MatchingDefaults(**values)


def parse_config(data: dict[str, Any]) -> StockConfig:
    """
    Parse a whole configuration document.

    Missing sections take their defaults; ``config_id`` is required.
    """
    unknown = sorted(set(data) - {"config_id", "version", "description",
                                  "inventory", "procurement", "matching"})
    if unknown:
        raise ValueError(f"unknown top-level keys {unknown}")
    if not data.get("config_id"):
        raise ValueError("config_id is required")

    config = StockConfig(
        config_id=str(data["config_id"]),
        version=int(data.get("version", 1)),
        description=str(data.get("description", "")),
        inventory=parse_inventory(data.get("inventory") or {}),
        procurement=parse_procurement(data.get("procurement") or {}),
        matching=parse_matching(data.get("matching") or {}),
    )
    checksum = compute_checksum({
        "config_id": config.config_id,
        "version": config.version,
        "inventory": config.inventory.as_dict(),
        "procurement": config.procurement.as_dict(),
        "matching": config.matching.as_dict(),
    })
    return StockConfig(
        config_id=config.config_id,
        version=config.version,
        description=config.description,
        inventory=config.inventory,
        procurement=config.procurement,
        matching=config.matching,
        checksum=checksum,
    )


def compute_checksum(data: dict[str, Any]) -> str:
    """
    Compute SHA-256 checksum of canonical JSON serialization.

    Identical ``data`` always produces identical checksums.
    """
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
