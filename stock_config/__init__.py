"""
stock_config -- single public entrypoint for stock-system configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``.  Returns a frozen ``StockConfig`` whose
    sections feed the module configuration dataclasses
    (``InventoryConfig.from_dict(config.inventory.as_dict())`` and so on).

Architecture position:
    Configuration -- YAML-driven defaults.  The kernel and engines MUST
    NEVER import from ``stock_config``.

Failure modes:
    - ``FileNotFoundError`` -- the requested configuration set does not exist.
    - ``ValueError`` -- schema or range validation failures.

Audit relevance:
    Every successful ``get_active_config()`` call emits a
    ``STOCK_CONFIG_TRACE`` log entry with the config id, version and
    checksum.
"""

from __future__ import annotations

import logging
from pathlib import Path

from stock_config.loader import load_yaml_file, parse_config
from stock_config.schema import (
    InventorySettings,
    MatchingDefaults,
    ProcurementSettings,
    StockConfig,
)

_logger = logging.getLogger("stock_kernel.config")

# Default configuration sets directory
_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"


def get_active_config(config_dir: Path | None = None, name: str = "default") -> StockConfig:
    """Load, validate and return the named configuration set.

    Args:
        config_dir: Override path to configuration sets directory.
            Defaults to stock_config/sets/.
        name: Set name; the file read is ``<config_dir>/<name>.yaml``.

    Raises:
        FileNotFoundError: If the set does not exist.
        ValueError: If validation fails.
    """
    sets_dir = config_dir or _DEFAULT_CONFIG_DIR
    path = Path(sets_dir) / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Configuration set not found: {path}")

    config = parse_config(load_yaml_file(path))

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
        },
    )
    return config


__all__ = [
    "InventorySettings",
    "MatchingDefaults",
    "ProcurementSettings",
    "StockConfig",
    "get_active_config",
]
