"""Kernel utilities."""

from stock_kernel.utils.hashing import (
    canonical_movement,
    grn_check_in_event_id,
    movement_hash,
)

__all__ = ["canonical_movement", "grn_check_in_event_id", "movement_hash"]
