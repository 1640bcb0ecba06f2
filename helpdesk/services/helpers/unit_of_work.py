"""
Unit of work for multi-row writes.

Every service mutation that touches more than one row (ticket + field values
+ approval + event, approval decision + status change, ...) runs inside
``transaction()``. The block either commits as a whole or is rolled back as a
whole; there is no manual compensation anywhere in the services.

Usage:
    from helpdesk.services.helpers.unit_of_work import transaction

    with transaction():
        db.session.add(ticket)
        db.session.add(approval)

Error mapping:
    domain exceptions            → re-raised unchanged after rollback
    IntegrityError               → re-raised unchanged (callers map it to a
                                   domain conflict: duplicate name, idempotency replay)
    StaleDataError               → re-raised unchanged (lost optimistic-lock race)
    OperationalError / other DB  → PersistenceError (retryable)
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from helpdesk.core.exceptions import PersistenceError
from helpdesk.models import db

logger = logging.getLogger(__name__)


@contextmanager
def transaction():
    """Run the enclosed block as one atomic write on ``db.session``."""
    try:
        yield db.session
        db.session.commit()
    except (IntegrityError, StaleDataError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error; transaction rolled back")
        raise PersistenceError(f"Database write failed: {exc.__class__.__name__}") from exc
    except Exception:
        db.session.rollback()
        raise
