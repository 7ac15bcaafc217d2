# Overview: Transaction and locking helpers shared by the ledger services.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Run the enclosed block as one transaction.

    Commits on success. Any exception rolls back every write made in the
    block; optimistic-lock failures surface as ConflictError. Nothing is
    retried: the caller resubmits.
    """
    try:
        yield db.session
        db.session.commit()
    except StaleDataError as exc:
        db.session.rollback()
        raise ConflictError(
            "Modification concurrente détectée, veuillez réessayer"
        ) from exc
    except BaseException:
        db.session.rollback()
        raise


def flush_or_raise(error_factory):
    """
    Flush pending writes, converting a unique-constraint violation into the
    business error built by ``error_factory``.
    """
    try:
        db.session.flush()
    except IntegrityError as exc:
        db.session.rollback()
        raise error_factory() from exc
