# Overview: Transaction boundaries and row locking shared by every service.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..errors import PersistenceError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (its writer lock serializes
    instead), but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def unit_of_work():
    """
    Run a block of writes as one atomic transaction.

    Commits when the block exits cleanly, rolls back on any exception.
    Domain errors propagate unchanged; storage failures surface as
    PersistenceError. Nothing is retried: the caller resubmits the whole
    operation if it wants another attempt.

    IntegrityError is re-raised as-is so callers can translate constraint
    races (e.g. the one-open-session index) into domain errors.
    """
    try:
        yield db.session
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise PersistenceError("Database operation failed", details={"cause": exc.__class__.__name__}) from exc
    except Exception:
        db.session.rollback()
        raise
