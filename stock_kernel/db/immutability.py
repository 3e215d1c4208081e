"""
ORM-level immutability enforcement for the inventory ledger.

===============================================================================
HOW IT WORKS
===============================================================================

SQLAlchemy fires mapper events before UPDATE/DELETE operations reach the
database.  We register listeners that intercept these events:

    session.flush()
         |
         v
    [before_update event] --> _check_immutable_update() ---------> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_immutable_delete() ---------> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

If a check fails the flush is aborted and the database is never modified.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Any mapped class that sets ``__immutable_entity__`` is protected from
creation onwards.  Today that is:

Entity                      | Declared in
----------------------------|-----------------------------------
InventoryTransactionModel   | stock_kernel.models.transaction
MatchOverrideModel          | stock_modules.matching.orm

The kernel never imports the module-layer models; it finds them through
the mapper registry once they are imported.  A correction to stock is a new
adjustment event, never an edit.  A revised override is a new override row;
the latest one wins.

===============================================================================
USAGE
===============================================================================

Called by create_tables() at startup:

    from stock_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()
"""

from sqlalchemy import event

from stock_kernel.db.base import Base
from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _block(target, operation: str, reason: str) -> None:
    entity_type = type(target).__immutable_entity__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "invariant": "append_only_ledger",
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


def _check_immutable_update(mapper, connection, target):
    """Prevent any update to an append-only row."""
    hint = getattr(type(target), "__immutable_hint__", None)
    reason = f"{type(target).__immutable_entity__} rows are immutable"
    _block(target, "UPDATE", f"{reason}; {hint}" if hint else reason)


def _check_immutable_delete(mapper, connection, target):
    _block(target, "DELETE", f"{type(target).__immutable_entity__} rows cannot be deleted")


def protected_models() -> list[type]:
    """Mapped classes declaring ``__immutable_entity__``, in name order."""
    return sorted(
        (
            mapper.class_
            for mapper in Base.registry.mappers
            if getattr(mapper.class_, "__immutable_entity__", None)
        ),
        key=lambda cls: cls.__name__,
    )


def register_immutability_listeners() -> list[type]:
    """
    Register immutability listeners on every protected model imported so far.

    Safe to call more than once; already-registered listeners are skipped.
    Returns the protected classes.
    """
    models = protected_models()
    for model in models:
        for event_name, listener_fn in (
            ("before_update", _check_immutable_update),
            ("before_delete", _check_immutable_delete),
        ):
            if not event.contains(model, event_name, listener_fn):
                event.listen(model, event_name, listener_fn)
    logger.debug(
        "immutability_listeners_registered",
        extra={"models": [m.__name__ for m in models]},
    )
    return models
