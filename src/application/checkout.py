# src/application/checkout.py

"""
Persist-then-pay helpers shared by booking and shop checkout.

The record is committed before any payment session exists, so a customer can
never pay for something that has no row to reconcile against.
"""

import logging
import os
from dataclasses import dataclass
from typing import Callable, TypeVar

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from src.domain.exceptions import PersistenceError
from src.infrastructure.payments.razorpay_gateway import HostedSession

logger = logging.getLogger(__name__)

T = TypeVar("T")

REFERENCE_ATTEMPTS = 5
DEFAULT_SITE_URL = "http://localhost:3000"


def site_url() -> str:
    return os.getenv("SITE_URL", DEFAULT_SITE_URL).rstrip("/")


def reference_prefix() -> str:
    return os.getenv("REFERENCE_PREFIX", "RFP")


@dataclass(frozen=True)
class CheckoutResult:
    reference: str
    session_id: str
    payment_url: str


def persist_with_unique_reference(
    db: Session,
    create: Callable[[], T],
    label: str,
) -> T:
    """
    Run ``create`` and commit. ``create`` draws a fresh random reference on
    every call, so a unique-constraint collision is retried.
    """
    for attempt in range(1, REFERENCE_ATTEMPTS + 1):
        try:
            record = create()
            db.commit()
            return record
        except IntegrityError:
            db.rollback()
            logger.warning(
                "Integrity error persisting %s (attempt %s/%s); retrying with a new reference.",
                label,
                attempt,
                REFERENCE_ATTEMPTS,
            )
        except SQLAlchemyError as exc:
            db.rollback()
            logger.exception("Failed to persist %s", label)
            raise PersistenceError(str(exc)) from exc

    logger.error("Could not persist %s after %s attempts", label, REFERENCE_ATTEMPTS)
    raise PersistenceError(f"Could not persist {label}")


def attach_session(db: Session, record, session: HostedSession, label: str) -> None:
    """Store the payment session id on the record. Failure is not fatal."""
    try:
        record.payment_session_id = session.id
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning(
            "Could not attach payment session %s to %s; reconciliation will use webhook metadata.",
            session.id,
            label,
            exc_info=True,
        )


def load_or_fail(db: Session, load: Callable[[], T], label: str) -> T:
    try:
        return load()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Unable to load %s", label)
        raise PersistenceError(str(exc)) from exc
