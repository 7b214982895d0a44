"""Database helpers: org scoping guard, dialect-aware upserts, locks, timeouts."""

from __future__ import annotations

import hashlib
import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, DisconnectionError, OperationalError
from sqlalchemy.orm import Session

from replenish.core.errors import InputValidationError, TransientStoreError
from replenish.core.metrics import errors_total, tenant_violations_total

logger = logging.getLogger(__name__)

# Keeps multi-row VALUES and IN lists under SQLite's bound-parameter limit
UPSERT_CHUNK_SIZE = 200
IN_CLAUSE_CHUNK_SIZE = 500


def chunked(items: Sequence[Any], size: int = IN_CLAUSE_CHUNK_SIZE) -> Iterator[list[Any]]:
    """Yield consecutive slices of at most size items."""
    items = list(items)
    for start in range(0, len(items), size):
        yield items[start : start + size]


def require_org_id(org_id: str | None) -> str:
    """Return org_id or fail when a scoped operation has none.

    Raises:
        InputValidationError: If org_id is missing or blank

    """
    if org_id is None or not str(org_id).strip():
        tenant_violations_total.labels(error_type="missing_org_id").inc()
        logger.error("scoped operation called without org_id")
        raise InputValidationError("org_id is required for scoped operations")
    return org_id


def dialect_name(db: Session) -> str:
    """Return the dialect name of the session's bind (sqlite, postgresql, ...)."""
    return db.get_bind().dialect.name


def upsert_rows(
    db: Session,
    model: type,
    rows: Sequence[dict[str, Any]],
    index_elements: Sequence[str],
    update_columns: Sequence[str] | None = None,
) -> int:
    """Insert rows or update them on natural-key conflict.

    Args:
        db: Database session
        model: ORM model class
        rows: Row dicts (all with the same keys)
        index_elements: Columns of the natural key (primary key or unique index)
        update_columns: Columns overwritten on conflict (default: all non-key columns)

    Returns:
        Number of rows written

    """
    if not rows:
        return 0

    name = dialect_name(db)
    if name == "postgresql":
        insert = postgresql.insert
    elif name == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"Upsert is not supported for dialect {name}")

    if update_columns is None:
        update_columns = [k for k in rows[0] if k not in index_elements]

    # ON CONFLICT cannot touch the same row twice in one statement; last wins
    by_key = {tuple(row[k] for k in index_elements): row for row in rows}
    rows = list(by_key.values())

    for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
        chunk = list(rows[start : start + UPSERT_CHUNK_SIZE])
        stmt = insert(model.__table__).values(chunk)
        set_ = {col: stmt.excluded[col] for col in update_columns}
        if "updated_at" in model.__table__.c and "updated_at" not in set_:
            set_["updated_at"] = text("CURRENT_TIMESTAMP")

        stmt = stmt.on_conflict_do_update(index_elements=list(index_elements), set_=set_)
        db.execute(stmt)

    return len(rows)


def advisory_xact_lock(db: Session, *key_parts: str) -> bool:
    """Take a transaction-scoped advisory lock on PostgreSQL.

    The lock is released at commit/rollback. Other dialects rely on the
    surrounding transaction only.

    Returns:
        True if a lock was taken

    """
    if dialect_name(db) != "postgresql":
        return False

    digest = hashlib.sha256("|".join(key_parts).encode("utf-8")).digest()
    lock_key = int.from_bytes(digest[:8], "big", signed=True)
    db.execute(text("SELECT pg_advisory_xact_lock(:k)"), {"k": lock_key})
    return True


def apply_read_timeout(db: Session, timeout_ms: int | None) -> None:
    """Bound the statements of the current transaction (PostgreSQL only)."""
    if not timeout_ms or timeout_ms <= 0:
        return
    if dialect_name(db) != "postgresql":
        return
    db.execute(text(f"SET LOCAL statement_timeout = {int(timeout_ms)}"))


def _is_transient(exc: DBAPIError) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return bool(getattr(exc, "connection_invalidated", False))


@contextmanager
def store_errors(db: Session, component: str) -> Iterator[None]:
    """Roll back and translate connectivity failures into TransientStoreError.

    Usage:
        >>> with store_errors(db, "buffer_engine"):
        ...     db.execute(stmt)
        ...     db.commit()

    """
    try:
        yield
    except DisconnectionError as e:
        db.rollback()
        errors_total.labels(error_type="transient_store", component=component).inc()
        logger.error(f"{component}: store disconnected: {e}")
        raise TransientStoreError(f"Store unavailable during {component}") from e
    except DBAPIError as e:
        db.rollback()
        if _is_transient(e):
            errors_total.labels(error_type="transient_store", component=component).inc()
            logger.error(f"{component}: transient store error: {e}")
            raise TransientStoreError(f"Store unavailable during {component}") from e
        errors_total.labels(error_type="store", component=component).inc()
        raise
    except Exception:
        db.rollback()
        raise
