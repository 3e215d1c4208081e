"""
Module ORM Registry (``stock_modules._orm_registry``).

Responsibility
--------------
Ensure all module-level SQLAlchemy ORM models are imported so that
``Base.metadata`` contains their table definitions before tables are
created.  ``stock_kernel.db.engine.create_tables()`` calls
``import_all_orm_models()`` itself, so every consumer gets the complete
schema.

Architecture position
---------------------
**Modules layer** -- utility.  Imports from sibling ``stock_modules``
packages and from ``stock_kernel`` (allowed: modules -> kernel).
"""


def import_all_orm_models() -> None:
    """Import kernel models and every ``stock_modules.*.orm`` module.

    This function is idempotent -- repeated calls are harmless.
    """
    # Kernel tables first (inventory_transactions, sequence_counters)
    import stock_kernel.models  # noqa: F401
    # fmt: off
    import stock_modules.inventory.orm  # noqa: F401
    import stock_modules.matching.orm  # noqa: F401
    import stock_modules.procurement.orm  # noqa: F401
    # fmt: on
