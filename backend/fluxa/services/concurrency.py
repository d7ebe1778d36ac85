# Overview: Transaction boundary and locking helpers shared by every stock-affecting operation.

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..extensions import db
from .errors import PersistenceError

logger = logging.getLogger(__name__)

_DEPTH_KEY = "fluxa.unit_of_work_depth"


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    On SQLite the unit of work takes the database write lock instead.
    """
    return query.with_for_update()


def _begin_serialized(session: Session) -> None:
    """
    SQLite: take the RESERVED lock up front (BEGIN IMMEDIATE) so two writers
    cannot both read the same stock level before either writes.
    """
    if db.engine.dialect.name != "sqlite":
        return
    raw = session.connection().connection.driver_connection
    if not raw.in_transaction:
        session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def unit_of_work(action: str = "operation") -> Iterator[Session]:
    """
    One atomic, all-or-nothing group of storage operations.

    Normal exit commits; any exception (including cancellation) rolls back and
    propagates. SQLAlchemy failures are logged and re-raised as PersistenceError.
    A unit of work opened inside another joins the outer transaction; only the
    outermost one commits.

    Usage:
        with unit_of_work("create sale") as session:
            ...
    """
    session = db.session()
    depth = session.info.get(_DEPTH_KEY, 0)

    if depth:
        session.info[_DEPTH_KEY] = depth + 1
        try:
            yield session
        finally:
            session.info[_DEPTH_KEY] = depth
        return

    session.info[_DEPTH_KEY] = 1
    try:
        try:
            _begin_serialized(session)
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.exception("Storage failure during %s", action)
            raise PersistenceError(f"Could not complete {action} due to a storage error") from exc
        except BaseException:
            session.rollback()
            raise
    finally:
        session.info[_DEPTH_KEY] = 0
