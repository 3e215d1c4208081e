"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (procurement UI, settings UI, invoice approval) must be able to present
the *specific* reason an operation failed.  Parsing message strings for that is
fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example - WRONG way:
    try:
        grn_service.submit(grn_id, actor_id)
    except Exception as e:
        if "pending" in str(e):
            ...

Example - RIGHT way:
    try:
        grn_service.submit(grn_id, actor_id)
    except OverReceiptBlockedError as e:
        show_warnings(e.warnings)
        api_response(code=e.code, lines=e.po_line_ids)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from StockKernelError:

    StockKernelError (base)
    |
    +-- ValidationError
    |   +-- EventValidationError
    |   +-- GRNItemQuantityMismatchError
    |   +-- InvalidQuantityError
    |   +-- MissingRejectionReasonError
    |   +-- EmptyReceiptError
    |   +-- InvalidSettingsError
    |   +-- InvalidOverrideError
    |
    +-- PolicyBlockError
    |   +-- OverReceiptBlockedError
    |   +-- GRNRequiredError
    |
    +-- InvalidTransitionError
    |   +-- InvalidGRNTransitionError
    |
    +-- ConsistencyViolationError
    |
    +-- EventError
    |   +-- EventAlreadyExistsError
    |   +-- PayloadMismatchError
    |
    +-- NotFoundError
    |   +-- GRNNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- PurchaseOrderLineNotFoundError
    |
    +-- ConcurrencyError
    |   +-- OptimisticLockError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|-----------------------------------------
Validation      | EVENT_VALIDATION_FAILED       | Movement payload missing/invalid fields
                | GRN_ITEM_QUANTITY_MISMATCH    | accepted + rejected != received
                | INVALID_QUANTITY              | Negative GRN/PO quantity
                | MISSING_REJECTION_REASON      | reject() without a reason
                | EMPTY_RECEIPT                 | submit() with nothing received
                | INVALID_SETTINGS              | Tolerance outside 0..100, unknown key
                | INVALID_OVERRIDE              | Override without reason/approver/score
----------------|-------------------------------|-----------------------------------------
Policy          | OVER_RECEIPT_BLOCKED          | accepted > pending, over-receipt off
                | GRN_REQUIRED                  | Invoice evaluated with no approved GRN
----------------|-------------------------------|-----------------------------------------
Transition      | INVALID_GRN_TRANSITION        | Action not allowed from current state
----------------|-------------------------------|-----------------------------------------
Consistency     | CONSISTENCY_VIOLATION         | Partial approval write detected
----------------|-------------------------------|-----------------------------------------
Event           | EVENT_ALREADY_EXISTS          | Duplicate event id (concurrent insert)
                | PAYLOAD_MISMATCH              | Same event id, different payload
----------------|-------------------------------|-----------------------------------------
Not found       | GRN_NOT_FOUND                 | Unknown GRN id
                | PURCHASE_ORDER_NOT_FOUND      | Unknown PO id
                | PURCHASE_ORDER_LINE_NOT_FOUND | Unknown PO line id
----------------|-------------------------------|-----------------------------------------
Concurrency     | OPTIMISTIC_LOCK_CONFLICT      | Settings version changed underneath
----------------|-------------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION        | UPDATE/DELETE on a ledger row

===============================================================================
HANDLING PATTERNS
===============================================================================

1. POLICY BLOCKS ARE NOT GENERIC FAILURES:

    except OverReceiptBlockedError as e:
        return {"error": e.code, "warnings": list(e.warnings)}

2. INVALID TRANSITIONS ARE NEVER RETRIED:

    except InvalidGRNTransitionError as e:
        refresh_view(e.grn_id)   # state changed underneath; re-read, do not retry

3. CONSISTENCY VIOLATIONS STOP PROCESSING:

    except ConsistencyViolationError as e:
        alert_operations(e)
        halt_processing()

===============================================================================
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOCK_KERNEL_ERROR"


# Validation errors


class ValidationError(StockKernelError):
    """Base exception for input rejected at the boundary."""

    code: str = "VALIDATION_ERROR"


class EventValidationError(ValidationError):
    """
    Movement event payload failed ingestion validation.

    The event never reaches the ledger.
    """

    code: str = "EVENT_VALIDATION_FAILED"

    def __init__(self, event_type: str | None, field_errors: list[dict]):
        self.event_type = event_type
        self.field_errors = field_errors
        super().__init__(
            f"Invalid {event_type or 'unknown'} event: "
            f"{len(field_errors)} error(s): "
            + "; ".join(f"{e['field']}: {e['message']}" for e in field_errors)
        )


class GRNItemQuantityMismatchError(ValidationError):
    """GRN item violates quantity_accepted + quantity_rejected == quantity_received."""

    code: str = "GRN_ITEM_QUANTITY_MISMATCH"

    def __init__(
        self,
        po_line_id: str,
        quantity_received: str,
        quantity_accepted: str,
        quantity_rejected: str,
    ):
        self.po_line_id = po_line_id
        self.quantity_received = quantity_received
        self.quantity_accepted = quantity_accepted
        self.quantity_rejected = quantity_rejected
        super().__init__(
            f"GRN item for PO line {po_line_id}: accepted ({quantity_accepted}) + "
            f"rejected ({quantity_rejected}) must equal received ({quantity_received})"
        )


class InvalidQuantityError(ValidationError):
    """A GRN or PO quantity is negative (or non-positive where positive is required)."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, field: str, value: str, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} ({value}): {reason}")


class MissingRejectionReasonError(ValidationError):
    """A GRN rejection was attempted without a reason."""

    code: str = "MISSING_REJECTION_REASON"

    def __init__(self, grn_id: str):
        self.grn_id = grn_id
        super().__init__(f"Rejecting GRN {grn_id} requires a non-empty reason")


class EmptyReceiptError(ValidationError):
    """A GRN was submitted with no item carrying a positive received quantity."""

    code: str = "EMPTY_RECEIPT"

    def __init__(self, grn_id: str):
        self.grn_id = grn_id
        super().__init__(
            f"GRN {grn_id} has no item with quantity_received > 0"
        )


class InvalidSettingsError(ValidationError):
    """Matching settings update carries an invalid value or unknown field."""

    code: str = "INVALID_SETTINGS"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid matching setting '{field}': {reason}")


class InvalidOverrideError(ValidationError):
    """Manual match override is missing its reason, approver, or has a bad score."""

    code: str = "INVALID_OVERRIDE"

    def __init__(self, invoice_line_id: str, reason: str):
        self.invoice_line_id = invoice_line_id
        self.reason = reason
        super().__init__(
            f"Invalid manual override for invoice line {invoice_line_id}: {reason}"
        )


# Policy blocks


class PolicyBlockError(StockKernelError):
    """Base exception for named business-policy blocks."""

    code: str = "POLICY_BLOCK"


class OverReceiptBlockedError(PolicyBlockError):
    """
    Accepted quantity exceeds the PO line's pending quantity and over-receipt
    is not authorized by the matching settings.
    """

    code: str = "OVER_RECEIPT_BLOCKED"

    def __init__(self, grn_id: str, warnings: tuple[str, ...], po_line_ids: tuple[str, ...]):
        self.grn_id = grn_id
        self.warnings = warnings
        self.po_line_ids = po_line_ids
        super().__init__(
            f"GRN {grn_id} blocked by over-receipt: " + "; ".join(warnings)
        )


class GRNRequiredError(PolicyBlockError):
    """An invoice was evaluated for a PO with no approved GRN while GRNs are required."""

    code: str = "GRN_REQUIRED"

    def __init__(self, purchase_order_id: str):
        self.purchase_order_id = purchase_order_id
        super().__init__(
            f"Purchase order {purchase_order_id} has no approved GRN"
        )


# Workflow transitions


class InvalidTransitionError(StockKernelError):
    """Base exception for state transitions not permitted from the current state."""

    code: str = "INVALID_TRANSITION"


class InvalidGRNTransitionError(InvalidTransitionError):
    """The requested GRN action is not allowed from the GRN's current status."""

    code: str = "INVALID_GRN_TRANSITION"

    def __init__(self, grn_id: str, from_state: str, action: str):
        self.grn_id = grn_id
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Cannot {action} GRN {grn_id} from status '{from_state}'"
        )


# Consistency


class ConsistencyViolationError(StockKernelError):
    """
    Ledger and purchase-order counters disagree.

    Never repaired automatically; treat as an alert.
    """

    code: str = "CONSISTENCY_VIOLATION"

    def __init__(self, grn_id: str, reason: str):
        self.grn_id = grn_id
        self.reason = reason
        super().__init__(f"Consistency violation for GRN {grn_id}: {reason}")


# Ledger events


class EventError(StockKernelError):
    """Base exception for ledger event errors."""

    code: str = "EVENT_ERROR"


class EventAlreadyExistsError(EventError):
    """Event with given ID already exists."""

    code: str = "EVENT_ALREADY_EXISTS"

    def __init__(self, event_id: str):
        self.event_id = event_id
        super().__init__(f"Event already exists: {event_id}")


class PayloadMismatchError(EventError):
    """
    Event ID exists but with a different payload hash.

    Ledger events are immutable; a changed payload under the same id is a
    protocol violation.
    """

    code: str = "PAYLOAD_MISMATCH"

    def __init__(self, event_id: str, expected_hash: str, received_hash: str):
        self.event_id = event_id
        self.expected_hash = expected_hash
        self.received_hash = received_hash
        super().__init__(
            f"Payload mismatch for event {event_id}: "
            f"expected {expected_hash}, received {received_hash}"
        )


# Lookups


class NotFoundError(StockKernelError):
    """Base exception for missing records."""

    code: str = "NOT_FOUND"


class GRNNotFoundError(NotFoundError):
    """GRN with given ID was not found."""

    code: str = "GRN_NOT_FOUND"

    def __init__(self, grn_id: str):
        self.grn_id = grn_id
        super().__init__(f"GRN not found: {grn_id}")


class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order with given ID was not found."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, purchase_order_id: str):
        self.purchase_order_id = purchase_order_id
        super().__init__(f"Purchase order not found: {purchase_order_id}")


class PurchaseOrderLineNotFoundError(NotFoundError):
    """Purchase order line with given ID was not found."""

    code: str = "PURCHASE_ORDER_LINE_NOT_FOUND"

    def __init__(self, po_line_id: str):
        self.po_line_id = po_line_id
        super().__init__(f"Purchase order line not found: {po_line_id}")


# Concurrency


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class OptimisticLockError(ConcurrencyError):
    """Optimistic locking conflict detected."""

    code: str = "OPTIMISTIC_LOCK_CONFLICT"

    def __init__(self, entity_type: str, entity_id: str, expected_version: int | None = None):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        super().__init__(
            f"Optimistic lock conflict on {entity_type} {entity_id}: "
            "entity was modified by another transaction"
        )


# Immutability


class ImmutabilityError(StockKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger movement events are append-only from creation.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
