# Overview: Locking helpers for the settlement transaction boundary.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import InvalidStateError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The optimistic version_id on Item covers SQLite.
    """
    return query.with_for_update()


@contextmanager
def atomic(conflict_message: str = "Record was modified concurrently", immediate: bool = False):
    """
    Run the enclosed writes as one transaction.

    Commits on success. On any exception the session is rolled back and the
    exception propagates; a lost optimistic-lock race (StaleDataError) is
    reported as InvalidStateError. No retries: callers re-trigger.

    immediate=True takes the SQLite write lock up front, so a second writer
    waits for the first to commit and then reads its result.
    """
    try:
        if immediate and db.engine.dialect.name == "sqlite":
            db.session.execute(text("BEGIN IMMEDIATE"))
        yield db.session
        db.session.commit()
    except StaleDataError:
        db.session.rollback()
        raise InvalidStateError(conflict_message)
    except Exception:
        db.session.rollback()
        raise
