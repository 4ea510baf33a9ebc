# src/infrastructure/repositories/booking_repository.py

from datetime import date, datetime

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.domain.pricing import PricedSelection
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Booking, BookingTicketLine


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
        for_update: bool = False,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_reference(
        self,
        booking_reference: str,
        for_update: bool = False,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.booking_reference == booking_reference)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def list_confirmed_for_date(self, visit_date: date) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.visit_date == visit_date)
            .where(Booking.status == BookingStatus.CONFIRMED)
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_orphaned_pending(self, created_before: datetime) -> list[Booking]:
        """Pending bookings that never got a payment session attached."""
        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus.PENDING)
            .where(Booking.payment_session_id.is_(None))
            .where(Booking.created_at < created_before)
            .order_by(Booking.created_at)
            .with_for_update()
        )
        return list(self.db.execute(stmt).scalars().all())

    def create_booking(
        self,
        booking_reference: str,
        priced: PricedSelection,
        customer_name: str,
        customer_email: str,
        customer_phone: str | None,
        special_requirements: str | None,
    ) -> Booking:

        booking = Booking(
            booking_reference=booking_reference,
            visit_date=priced.visit_date,
            total_amount=priced.total_amount,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone or None,
            special_requirements=special_requirements or None,
            status=BookingStatus.PENDING,
            tickets=[
                BookingTicketLine(
                    position=position,
                    ticket_type_id=line.ticket_type_id,
                    ticket_name=line.ticket_name,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                    occupancy_multiplier=line.occupancy_multiplier,
                )
                for position, line in enumerate(priced.lines)
            ],
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def update_status(
        self,
        booking: Booking,
        new_status: BookingStatus,
    ) -> None:

        booking.status = new_status
