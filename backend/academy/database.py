"""Database engine and helpers.

This module configures the SQLModel/SQLAlchemy engine for the local
SQLite database file and provides the helpers used by the application
and tests: table creation, the per-request session dependency and the
scoped `transaction` primitive every write goes through.

SQLite is driven in the way the SQLAlchemy documentation recommends for
pysqlite: the driver's implicit transaction handling is switched off and
SQLAlchemy emits `BEGIN` itself, so one `Session` transaction is exactly
one SQLite transaction. Foreign keys are enforced per connection.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine

from . import errors, models  # noqa: F401  importing models registers the tables
from .config import settings

logger = logging.getLogger("academy.database")

_TX_DEPTH = "academy.tx_depth"


def make_engine(url: str, enforce_foreign_keys: bool = True):
    """Create an engine for `url` with the SQLite connection hooks attached."""
    eng = create_engine(url, echo=False, connect_args={"check_same_thread": False})

    @event.listens_for(eng, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA foreign_keys={'ON' if enforce_foreign_keys else 'OFF'}")
        cursor.close()

    @event.listens_for(eng, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return eng


settings.DATABASE_PATH.parent.mkdir(parents=True, exist_ok=True)
engine = make_engine(settings.DATABASE_URL, settings.ENFORCE_FOREIGN_KEYS)


def create_db_and_tables(bind=None):
    """Create database tables using SQLModel metadata.

    Existing tables are left alone; `_ensure_status_columns` patches
    database files created before the status columns existed.
    """
    bind = bind if bind is not None else engine
    SQLModel.metadata.create_all(bind)
    _ensure_status_columns(bind)


def _ensure_status_columns(bind):
    """Add the `status` columns to `students`/`payments` for older DB files."""
    wanted = {
        "students": "status TEXT",
        "payments": "status TEXT NOT NULL DEFAULT 'pending'",
    }
    with bind.begin() as conn:
        for table, column in wanted.items():
            existing = {row[1] for row in conn.exec_driver_sql(f"PRAGMA table_info({table})")}
            if "status" not in existing:
                logger.info("adding missing column %s.status", table)
                conn.exec_driver_sql(f"ALTER TABLE {table} ADD COLUMN {column}")


def get_session():
    """Yield a database `Session` for FastAPI dependency injection.

    The generator yields a session and ensures it is closed when the
    request scope finishes; anything left uncommitted is rolled back.
    """
    with Session(engine) as session:
        yield session


def _is_foreign_key_violation(exc: IntegrityError) -> bool:
    return "FOREIGN KEY" in str(exc.orig).upper()


@contextmanager
def transaction(session: Session):
    """Run a unit of work on `session` as a single all-or-nothing transaction.

    The outermost scope commits when its block exits normally and rolls
    back when the block raises anything. Inner scopes only track depth:
    they never commit, and an exception escaping them rolls back the
    whole unit once it reaches the outermost scope.

    Database errors are translated into `errors.ForeignKeyError` or
    `errors.StorageError`; other exceptions propagate unchanged.
    """
    depth = session.info.get(_TX_DEPTH, 0)
    session.info[_TX_DEPTH] = depth + 1
    outermost = depth == 0
    try:
        yield session
        if outermost:
            session.commit()
    except IntegrityError as exc:
        if outermost:
            session.rollback()
        if _is_foreign_key_violation(exc):
            raise errors.ForeignKeyError("referenced student does not exist") from exc
        logger.exception("transaction rolled back after integrity error")
        raise errors.StorageError("database error") from exc
    except SQLAlchemyError as exc:
        if outermost:
            session.rollback()
        logger.exception("transaction rolled back after database error")
        raise errors.StorageError("database error") from exc
    except BaseException:
        if outermost:
            session.rollback()
        raise
    finally:
        session.info[_TX_DEPTH] = depth
