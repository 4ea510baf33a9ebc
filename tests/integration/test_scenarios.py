from datetime import date

from sqlalchemy import func, select

from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Booking, SiteSettings


def test_summer_tuesday_uses_weekend_price(client, db_session, ticket_types, razorpay_client):
    response = client.post(
        "/api/bookings/create-checkout",
        json={
            "date": "2026-08-04",
            "tickets": [{"ticketTypeId": ticket_types["adult"].id, "quantity": 2}],
            "customerName": "Jo Bloggs",
            "customerEmail": "jo@example.com",
        },
    )

    assert response.status_code == 200
    booking = db_session.execute(select(Booking)).scalar_one()
    assert booking.tickets[0].unit_price == 1400
    assert booking.total_amount == 2800
    assert razorpay_client.payment_link.created[0]["amount"] == 2800


def test_family_lines_count_four_visitors(client, db_session, ticket_types, make_booking):
    db_session.add(SiteSettings(id=1, booking_capacity_per_day=100))
    db_session.commit()
    make_booking(date(2026, 8, 4), [(ticket_types["family"], 2), (ticket_types["adult"], 3)])

    response = client.post("/api/bookings/check-availability", json={"date": "2026-08-04"})

    assert response.json() == {"available": True, "remaining": 89, "capacity": 100}


def test_booking_yesterday_creates_nothing(client, db_session, ticket_types):
    response = client.post(
        "/api/bookings/create-checkout",
        json={
            "date": "2026-06-30",
            "tickets": [{"ticketTypeId": ticket_types["adult"].id, "quantity": 1}],
            "customerName": "Jo Bloggs",
            "customerEmail": "jo@example.com",
        },
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Cannot book a past date."}
    assert db_session.execute(select(func.count()).select_from(Booking)).scalar_one() == 0


def test_expired_session_cancels_once(post_webhook, db_session, ticket_types, make_booking):
    booking = make_booking(
        date(2026, 8, 4),
        [(ticket_types["adult"], 2)],
        status=BookingStatus.PENDING,
        session_id="plink_test9",
    )
    notes = {"type": "booking", "booking_id": booking.id, "booking_reference": booking.booking_reference}

    first = post_webhook("payment_link.expired", notes, link_id="plink_test9")
    second = post_webhook("payment_link.expired", notes, link_id="plink_test9")

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json() == {"received": True}
    db_session.refresh(booking)
    assert booking.status == BookingStatus.CANCELLED
