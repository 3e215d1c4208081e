"""
Engine and session management for the stock ledger database.

PostgreSQL is the production backend.  It runs at READ COMMITTED, and GRN
approval takes explicit row locks (SELECT ... FOR UPDATE) on the GRN and its
purchase order lines.  A SQLite URL is accepted for tests and local runs.
SQLite ignores FOR UPDATE, so two approvers can both read a GRN as pending.
Each transition therefore writes its target state first, as an UPDATE
guarded by the GRN ``version_id_col``; the approver whose UPDATE matches no
row gets InvalidGRNTransitionError before any receipt check or ledger read.

Services commit and roll back their own work.  ``session_scope()`` is for
callers that batch several service calls or write outside a service.

``create_tables()`` is the one place the kernel reaches into the module
layer: it imports the module ORM registry so every table exists before the
ledger's immutability listeners are attached.
"""

from contextlib import contextmanager
from typing import Any, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from stock_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _engine_options(
    dialect: str,
    *,
    pool_size: int,
    max_overflow: int,
    pool_pre_ping: bool,
    pool_timeout: int,
    pool_recycle: int,
) -> dict[str, Any]:
    if dialect == "sqlite":
        # test sessions are handed between threads in the concurrency suite
        return {"connect_args": {"check_same_thread": False}}
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine and session factory.

    A second call replaces the first.  Pool settings apply to PostgreSQL
    only.  Sessions do not expire on commit, so DTOs can be built from a
    GRN after its approval has committed.
    """
    global _engine, _SessionFactory

    dialect = make_url(database_url).get_backend_name()
    _engine = create_engine(
        database_url,
        echo=echo,
        **_engine_options(
            dialect,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
        ),
    )
    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": dialect, "echo": echo})
    return _engine


def _initialized_factory() -> sessionmaker[Session]:
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    return _initialized_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """The factory itself, for callers that open one session per worker or user."""
    return _initialized_factory()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Commit on normal exit; roll back and re-raise on any exception.

        with session_scope() as session:
            InventoryService(session).check_in(...)
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every table, then attach the append-only listeners."""
    from stock_kernel.db.base import Base
    from stock_kernel.db.immutability import register_immutability_listeners
    from stock_modules._orm_registry import import_all_orm_models

    import_all_orm_models()
    Base.metadata.create_all(get_engine())
    protected = register_immutability_listeners()
    logger.info(
        "tables_created",
        extra={
            "table_count": len(Base.metadata.tables),
            "append_only_models": [model.__name__ for model in protected],
        },
    )


def drop_tables() -> None:
    """Drop every table. Test and local use only."""
    from stock_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory. FOR TESTING ONLY."""
    global _engine, _SessionFactory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None
