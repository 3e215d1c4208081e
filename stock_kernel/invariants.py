"""
Kernel Invariants Contract.

These invariants are structural law.  No matching setting, module option, or
caller flag may switch them off.

This module exists solely to declare them explicitly.  Enforcement is
distributed across the event parser, TransactionLedger, the ORM immutability
listeners, LedgerReducer, and GRNService.
"""

from enum import Enum, unique


@unique
class KernelInvariant(str, Enum):
    """Non-configurable invariants enforced by the kernel."""

    APPEND_ONLY_LEDGER = "append_only_ledger"
    """Movement events are never updated or deleted once appended.
    Enforced by ORM listeners (stock_kernel.db.immutability)."""

    DERIVED_STOCK = "derived_stock"
    """Batch and item quantities are never stored; they are folded from the
    event stream at query time (stock_engines.ledger_reducer)."""

    WELL_FORMED_EVENTS = "well_formed_events"
    """Every appended event satisfies the required-field set of its type.
    Enforced by parse_transaction_event at ingestion."""

    GRN_ITEM_BALANCE = "grn_item_balance"
    """quantity_accepted + quantity_rejected == quantity_received for every
    GRN item.  Enforced at entry time by GRNService."""

    ATOMIC_APPROVAL = "atomic_approval"
    """A GRN approval appends its check-in events and increments the PO line
    counters in one transaction, or does neither."""

    SINGLE_TRANSITION_WINNER = "single_transition_winner"
    """Concurrent transitions on one GRN produce exactly one winner.
    Enforced by row locks plus the GRN version column."""


ALL_KERNEL_INVARIANTS: frozenset[KernelInvariant] = frozenset(KernelInvariant)

# The kernel package may not import from these packages.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "stock_modules",
    "stock_config",
)
