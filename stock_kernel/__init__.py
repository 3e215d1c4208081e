"""
Stock Kernel

Append-only inventory ledger core with:
- Validated, tagged movement events
- Derived (never stored) batch and item quantities
- Atomic GRN approval (ledger append + PO counter update)
- Typed errors and structured logging
"""

__version__ = "0.1.0"
