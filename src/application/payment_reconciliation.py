# src/application/payment_reconciliation.py

"""
Applies verified payment-provider webhooks to bookings and shop orders.

Signature verification happens before anything is read. Once the signature is
valid the event is always acknowledged, so the provider will not redeliver it.
A store failure is rolled back and logged with the event id; an operator
reconciles the record from that log entry.
"""

import logging
from dataclasses import dataclass
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.domain.exceptions import InvalidSignatureError
from src.domain.state_machine import (
    AdoptionStateMachine,
    AdoptionStatus,
    BookingStateMachine,
    BookingStatus,
    OrderStateMachine,
    OrderStatus,
    VoucherStateMachine,
    VoucherStatus,
)
from src.infrastructure.db.models import Booking, Order
from src.infrastructure.payments.razorpay_gateway import (
    EVENT_COMPLETED,
    EVENT_EXPIRED,
    EVENT_IGNORED,
    PaymentEvent,
)
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.order_repository import OrderRepository
from src.infrastructure.repositories.webhook_event_repository import WebhookEventRepository

logger = logging.getLogger(__name__)

RECORD_BOOKING = "booking"
RECORD_SHOP = "shop"

OUTCOME_PROCESSED = "processed"
OUTCOME_IGNORED = "ignored"
OUTCOME_DUPLICATE = "duplicate"
OUTCOME_FAILED = "failed"


@dataclass
class _Applied:
    record_type: str | None = None
    record_id: str | None = None
    notify: Callable[[], bool] | None = None


class PaymentReconciliationService:

    def __init__(self, db: Session, gateway, mailer=None):
        self.db = db
        self.gateway = gateway
        self.mailer = mailer
        self.booking_repository = BookingRepository(db)
        self.order_repository = OrderRepository(db)
        self.webhook_events = WebhookEventRepository(db)

    def handle(self, body: str, signature: str | None, event_id: str | None = None) -> str:
        try:
            self.gateway.verify_webhook(body, signature)
        except InvalidSignatureError as exc:
            logger.warning("Rejected payment webhook: %s", exc)
            raise

        event = self.gateway.parse_event(body, event_id)

        try:
            if event.event_id and self.webhook_events.get(self.gateway.provider, event.event_id):
                logger.warning("Duplicate webhook delivery %s (%s); skipping.", event.event_id, event.event_type)
                return OUTCOME_DUPLICATE

            if event.kind == EVENT_IGNORED:
                logger.info("Ignoring payment event %s", event.event_type)
                applied = _Applied()
            else:
                applied = self._apply(event)

            if event.event_id:
                self.webhook_events.record(
                    provider=self.gateway.provider,
                    event_id=event.event_id,
                    event_type=event.event_type,
                    record_type=applied.record_type,
                    record_id=applied.record_id,
                    body=body,
                    status="IGNORED" if event.kind == EVENT_IGNORED else "PROCESSED",
                )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "Failed to reconcile payment event %s (%s)",
                event.event_type,
                event.event_id,
            )
            return OUTCOME_FAILED

        if applied.notify is not None:
            self._send(applied.notify)

        return OUTCOME_IGNORED if event.kind == EVENT_IGNORED else OUTCOME_PROCESSED

    def _apply(self, event: PaymentEvent) -> _Applied:
        record_type = event.notes.get("type")
        if record_type == RECORD_BOOKING:
            return self._apply_booking(event)
        if record_type == RECORD_SHOP:
            return self._apply_order(event)

        logger.warning(
            "Payment event %s has no recognised record type in its metadata: %s",
            event.event_type,
            event.notes,
        )
        return _Applied()

    # -----------------------------
    # Bookings
    # -----------------------------
    def _find_booking(self, event: PaymentEvent) -> Booking | None:
        booking_id = event.notes.get("booking_id")
        booking = None
        if booking_id:
            booking = self.booking_repository.get_by_id(booking_id, for_update=True)
        if booking is None and event.notes.get("booking_reference"):
            booking = self.booking_repository.get_by_reference(
                event.notes["booking_reference"],
                for_update=True,
            )
        return booking

    def _apply_booking(self, event: PaymentEvent) -> _Applied:
        booking = self._find_booking(event)
        if booking is None:
            logger.error(
                "Booking %s from payment event %s not found",
                event.notes.get("booking_reference") or event.notes.get("booking_id"),
                event.event_type,
            )
            return _Applied(record_type=RECORD_BOOKING)

        applied = _Applied(record_type=RECORD_BOOKING, record_id=booking.id)
        reference = booking.booking_reference

        if booking.status != BookingStatus.PENDING:
            if event.kind == EVENT_COMPLETED and booking.status == BookingStatus.CANCELLED:
                logger.error(
                    "Payment %s received for cancelled booking %s; refund required.",
                    event.payment_id,
                    reference,
                )
            else:
                logger.info("Booking %s already %s; no action.", reference, booking.status.value)
            return applied

        if event.kind == EVENT_COMPLETED:
            BookingStateMachine.validate_transition(booking.status, BookingStatus.CONFIRMED)
            booking.status = BookingStatus.CONFIRMED
            booking.payment_confirmation_id = event.payment_id
            if not booking.payment_session_id and event.session_id:
                booking.payment_session_id = event.session_id
            logger.info("Booking %s confirmed (payment %s)", reference, event.payment_id)
            if self.mailer is not None:
                applied.notify = lambda: self.mailer.send_booking_confirmation(booking)

        elif event.kind == EVENT_EXPIRED:
            BookingStateMachine.validate_transition(booking.status, BookingStatus.CANCELLED)
            booking.status = BookingStatus.CANCELLED
            logger.info("Booking %s cancelled: payment session expired", reference)

        self.db.flush()
        return applied

    # -----------------------------
    # Shop orders
    # -----------------------------
    def _apply_order(self, event: PaymentEvent) -> _Applied:
        order_id = event.notes.get("order_id")
        order = self.order_repository.get_by_id(order_id, for_update=True) if order_id else None
        if order is None:
            logger.error(
                "Order %s from payment event %s not found",
                event.notes.get("order_reference") or order_id,
                event.event_type,
            )
            return _Applied(record_type=RECORD_SHOP)

        applied = _Applied(record_type=RECORD_SHOP, record_id=order.id)
        reference = order.order_reference

        if order.status != OrderStatus.PENDING:
            if event.kind == EVENT_COMPLETED and order.status == OrderStatus.CANCELLED:
                logger.error(
                    "Payment %s received for cancelled order %s; refund required.",
                    event.payment_id,
                    reference,
                )
            else:
                logger.info("Order %s already %s; no action.", reference, order.status.value)
            return applied

        vouchers = self.order_repository.pending_vouchers(order)
        adoptions = self.order_repository.pending_adoptions(order)

        if event.kind == EVENT_COMPLETED:
            OrderStateMachine.validate_transition(order.status, OrderStatus.PAID)
            order.status = OrderStatus.PAID
            order.payment_confirmation_id = event.payment_id
            if not order.payment_session_id and event.session_id:
                order.payment_session_id = event.session_id
            self._move_children(vouchers, adoptions, VoucherStatus.ACTIVE, AdoptionStatus.ACTIVE)
            logger.info(
                "Order %s paid (payment %s); activated %s vouchers and %s adoptions",
                reference,
                event.payment_id,
                len(vouchers),
                len(adoptions),
            )
            if self.mailer is not None:
                applied.notify = self._order_notification(order)

        elif event.kind == EVENT_EXPIRED:
            OrderStateMachine.validate_transition(order.status, OrderStatus.CANCELLED)
            order.status = OrderStatus.CANCELLED
            self._move_children(vouchers, adoptions, VoucherStatus.CANCELLED, AdoptionStatus.CANCELLED)
            logger.info("Order %s cancelled: payment session expired", reference)

        self.db.flush()
        return applied

    @staticmethod
    def _move_children(vouchers, adoptions, voucher_status, adoption_status) -> None:
        for voucher in vouchers:
            VoucherStateMachine.validate_transition(voucher.status, voucher_status)
            voucher.status = voucher_status
        for adoption in adoptions:
            AdoptionStateMachine.validate_transition(adoption.status, adoption_status)
            adoption.status = adoption_status

    def _order_notification(self, order: Order) -> Callable[[], bool]:
        def notify() -> bool:
            return self.mailer.send_order_confirmation(
                order,
                vouchers=self.order_repository.list_vouchers(order.id),
                adoptions=self.order_repository.list_adoptions(order.id),
            )

        return notify

    def _send(self, notify: Callable[[], bool]) -> None:
        try:
            if not notify():
                logger.warning("Confirmation email was not sent")
        except Exception:
            logger.exception("Confirmation email failed")
