import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.application.checkout import (
    CheckoutResult,
    attach_session,
    load_or_fail,
    persist_with_unique_reference,
    reference_prefix,
    site_url,
)
from src.domain.availability import DEFAULT_DAILY_CAPACITY, Availability, count_visitors
from src.domain.calendar import HolidayCalendar, is_past_date
from src.domain.exceptions import (
    BookingNotFoundError,
    ClosedDayError,
    DateFullyBookedError,
    PastDateError,
    PaymentSessionError,
    ValidationError,
)
from src.domain.pricing import PricingResolver, TicketSelection, pricing_tier, unit_price_for
from src.domain.references import booking_reference
from src.domain.state_machine import BookingStateMachine, BookingStatus
from src.infrastructure.db.models import Booking, TicketType
from src.infrastructure.payments.razorpay_gateway import SessionLine
from src.infrastructure.repositories.booking_repository import BookingRepository
from src.infrastructure.repositories.catalog_repository import (
    SettingsRepository,
    TicketTypeRepository,
)

logger = logging.getLogger(__name__)

REASON_PAST = "Cannot book a date in the past."
REASON_CLOSED = "The farm is closed on this date."
REASON_FULL = "This date is fully booked."


@dataclass(frozen=True)
class BookingRequest:
    visit_date: date | None
    tickets: List[TicketSelection] = field(default_factory=list)
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str | None = None
    special_requirements: str | None = None


@dataclass(frozen=True)
class AvailabilityCheck:
    available: bool
    remaining: int | None = None
    capacity: int | None = None
    reason: str | None = None


@dataclass(frozen=True)
class PricedTicketType:
    ticket_type: TicketType
    unit_price: int | None
    pricing_tier: str | None


class BookingService:
    """Application service coordinating the booking workflow."""

    def __init__(
        self,
        db: Session,
        calendar: HolidayCalendar,
        today: date,
        gateway=None,
    ):
        self.db = db
        self.calendar = calendar
        self.today = today
        self.gateway = gateway
        self.booking_repository = BookingRepository(db)
        self.ticket_type_repository = TicketTypeRepository(db)
        self.settings_repository = SettingsRepository(db)
        self.pricing = PricingResolver(calendar)

    # -----------------------------
    # Availability
    # -----------------------------
    def daily_availability(self, visit_date: date) -> Availability:
        """
        Count confirmed visitors for the date against the daily capacity.
        A store failure reports the date as available.
        """
        degraded = False
        try:
            capacity = self.settings_repository.daily_capacity()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning(
                "Site settings unavailable; using default capacity %s",
                DEFAULT_DAILY_CAPACITY,
                exc_info=True,
            )
            capacity = DEFAULT_DAILY_CAPACITY
            degraded = True

        try:
            bookings = self.booking_repository.list_confirmed_for_date(visit_date)
            booked = count_visitors(bookings)
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning(
                "Booking store unavailable while checking %s; reporting available.",
                visit_date,
                exc_info=True,
            )
            booked = 0
            degraded = True

        return Availability(capacity=capacity, booked=booked, degraded=degraded)

    def check_availability(self, visit_date: date) -> AvailabilityCheck:
        if is_past_date(visit_date, self.today):
            return AvailabilityCheck(available=False, reason=REASON_PAST)
        if self.calendar.is_closed_day(visit_date):
            return AvailabilityCheck(available=False, reason=REASON_CLOSED)

        availability = self.daily_availability(visit_date)
        return AvailabilityCheck(
            available=availability.available,
            remaining=availability.remaining,
            capacity=availability.capacity,
            reason=None if availability.available else REASON_FULL,
        )

    # -----------------------------
    # Catalog
    # -----------------------------
    def list_ticket_types(self, visit_date: date | None = None) -> list[PricedTicketType]:
        ticket_types = load_or_fail(
            self.db,
            self.ticket_type_repository.list_active,
            "ticket types",
        )
        tier = pricing_tier(self.calendar, visit_date) if visit_date else None
        return [
            PricedTicketType(
                ticket_type=ticket_type,
                unit_price=unit_price_for(ticket_type, tier) if tier else None,
                pricing_tier=tier,
            )
            for ticket_type in ticket_types
        ]

    # -----------------------------
    # Checkout
    # -----------------------------
    def initiate_booking(self, request: BookingRequest) -> CheckoutResult:
        if (
            request.visit_date is None
            or not request.tickets
            or not (request.customer_name or "").strip()
            or not (request.customer_email or "").strip()
        ):
            raise ValidationError("Missing required fields.")

        visit_date = request.visit_date
        if is_past_date(visit_date, self.today):
            raise PastDateError()
        if self.calendar.is_closed_day(visit_date):
            raise ClosedDayError()

        catalog = load_or_fail(self.db, self.ticket_type_repository.list_active, "ticket types")
        priced = self.pricing.resolve(visit_date, request.tickets, catalog)

        # Optimistic: nothing is reserved between this check and payment.
        if not self.daily_availability(visit_date).available:
            raise DateFullyBookedError()

        prefix = reference_prefix()

        def create() -> Booking:
            return self.booking_repository.create_booking(
                booking_reference=booking_reference(self.today, prefix),
                priced=priced,
                customer_name=request.customer_name.strip(),
                customer_email=request.customer_email.strip(),
                customer_phone=request.customer_phone,
                special_requirements=request.special_requirements,
            )

        booking = persist_with_unique_reference(self.db, create, "booking")
        reference = booking.booking_reference
        logger.info(
            "Created pending booking %s for %s (%s pence)",
            reference,
            visit_date.isoformat(),
            booking.total_amount,
        )

        tier_label = "Weekend/Holiday" if priced.holiday_pricing else "Weekday"
        base_url = site_url()
        try:
            session = self.gateway.create_hosted_session(
                amount=booking.total_amount,
                reference=reference,
                heading=f"{tier_label} admission for {visit_date.strftime('%d/%m/%Y')}",
                lines=[
                    SessionLine(
                        name=line.ticket_name,
                        unit_amount=line.unit_price,
                        quantity=line.quantity,
                    )
                    for line in priced.lines
                ],
                customer_name=booking.customer_name,
                customer_email=booking.customer_email,
                customer_phone=booking.customer_phone,
                notes={
                    "type": "booking",
                    "booking_id": booking.id,
                    "booking_reference": reference,
                    "date": visit_date.isoformat(),
                },
                success_url=f"{base_url}/booking/confirmation?ref={reference}",
                cancel_url=f"{base_url}/booking?cancelled=true",
            )
        except PaymentSessionError:
            logger.warning("Booking %s left pending: payment session was not created", reference)
            raise

        attach_session(self.db, booking, session, f"booking {reference}")

        return CheckoutResult(
            reference=reference,
            session_id=session.id,
            payment_url=session.url,
        )

    # -----------------------------
    # Lookup and administration
    # -----------------------------
    def get_booking(self, reference: str) -> Booking:
        booking = load_or_fail(
            self.db,
            lambda: self.booking_repository.get_by_reference(reference),
            f"booking {reference}",
        )
        if booking is None:
            raise BookingNotFoundError(reference)
        return booking

    def cancel_booking(self, reference: str) -> Booking:
        return self._administer(reference, BookingStatus.CANCELLED)

    def refund_booking(self, reference: str) -> Booking:
        return self._administer(reference, BookingStatus.REFUNDED)

    def cancel_orphaned_pending(
        self,
        older_than: timedelta,
        now: datetime | None = None,
    ) -> list[str]:
        """
        Cancel pending bookings whose payment session was never created.
        Bookings with a session are left for the provider's expiry event.
        """
        now = now or datetime.now(timezone.utc)
        cutoff = now - older_than
        orphans = self.booking_repository.list_orphaned_pending(cutoff)
        for booking in orphans:
            self._transition(booking, BookingStatus.CANCELLED)
        self.db.commit()

        references = [booking.booking_reference for booking in orphans]
        if references:
            logger.info("Cancelled %s orphaned pending bookings: %s", len(references), references)
        return references

    def _administer(self, reference: str, to_status: BookingStatus) -> Booking:
        booking = self.booking_repository.get_by_reference(reference, for_update=True)
        if booking is None:
            raise BookingNotFoundError(reference)
        self._transition(booking, to_status)
        self.db.commit()
        logger.info("Booking %s moved to %s", reference, to_status.value)
        return booking

    def _transition(self, booking: Booking, to_status: BookingStatus) -> None:
        BookingStateMachine.validate_transition(booking.status, to_status)
        self.booking_repository.update_status(booking, to_status)
