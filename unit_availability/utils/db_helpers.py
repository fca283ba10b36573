"""
Database Helper Utilities for Concurrency Control

Provides:
- Database dialect detection (PostgreSQL vs SQLite)
- Dialect-native INSERT ... ON CONFLICT support
- Row locking for read-modify-write paths
- Classification of driver errors into engine errors
"""

import logging
from typing import Iterator, List, Optional, Sequence, TypeVar, Type
from sqlalchemy.orm import Session
from sqlalchemy.exc import DBAPIError, DisconnectionError, IntegrityError, InterfaceError, OperationalError

logger = logging.getLogger(__name__)

T = TypeVar('T')


def dialect_name(db: Session) -> str:
    try:
        return db.get_bind().dialect.name
    except Exception:
        return ""


def is_postgres(db: Session) -> bool:
    """Check if the database is PostgreSQL"""
    return dialect_name(db) == 'postgresql'


def is_sqlite(db: Session) -> bool:
    """Check if the database is SQLite"""
    return dialect_name(db) == 'sqlite'


def get_upsert_insert(db: Session):
    """
    Return the dialect's insert() construct that supports
    on_conflict_do_update, or None when the dialect has no such support.
    """
    if is_postgres(db):
        from sqlalchemy.dialects.postgresql import insert as pg_insert
        return pg_insert
    if is_sqlite(db):
        from sqlalchemy.dialects.sqlite import insert as sqlite_insert
        return sqlite_insert
    return None


def acquire_row_lock(
    db: Session,
    model: Type[T],
    *filter_conditions,
    nowait: bool = False
) -> Optional[T]:
    """
    Acquire a row-level lock on a database record.

    Locking is applied on PostgreSQL only; SQLite serializes writers at
    the database level.

    Example:
        row = acquire_row_lock(db, UnitAvailability,
                               UnitAvailability.unit_id == unit_id,
                               UnitAvailability.date == day)
    """
    query = db.query(model).filter(*filter_conditions)

    if is_postgres(db):
        query = query.with_for_update(nowait=nowait)

    return query.first()


def chunked(items: Sequence[T], size: int) -> Iterator[List[T]]:
    """Yield consecutive slices of at most `size` items"""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    for start in range(0, len(items), size):
        yield list(items[start:start + size])


def is_connection_error(exc: BaseException) -> bool:
    """
    True for transport failures (dropped connection, server gone,
    locked/unreachable database) as opposed to constraint violations.
    """
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False
