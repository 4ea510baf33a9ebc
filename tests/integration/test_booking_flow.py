import re
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from src.domain.state_machine import BookingStatus
from src.infrastructure.db.models import Booking, SiteSettings
from src.infrastructure.repositories.booking_repository import BookingRepository

SUMMER_TUESDAY = "2026-08-04"
TERM_MONDAY = "2026-10-19"


def _checkout_payload(ticket_types, **overrides):
    payload = {
        "date": SUMMER_TUESDAY,
        "tickets": [{"ticketTypeId": ticket_types["adult"].id, "quantity": 2}],
        "customerName": "Jo Bloggs",
        "customerEmail": "jo@example.com",
        "customerPhone": "07700 900123",
    }
    payload.update(overrides)
    return payload


def _booking_count(db_session) -> int:
    return db_session.execute(select(func.count()).select_from(Booking)).scalar_one()


# ---------------------
# AVAILABILITY
# ---------------------

def test_check_availability_open_day(client, ticket_types):
    response = client.post("/api/bookings/check-availability", json={"date": SUMMER_TUESDAY})

    assert response.status_code == 200
    assert response.json() == {"available": True, "remaining": 100, "capacity": 100}


def test_check_availability_past_date(client):
    response = client.post("/api/bookings/check-availability", json={"date": "2026-06-30"})

    assert response.status_code == 200
    assert response.json() == {"available": False, "reason": "Cannot book a date in the past."}


def test_check_availability_closed_monday(client):
    response = client.post("/api/bookings/check-availability", json={"date": TERM_MONDAY})

    assert response.json() == {"available": False, "reason": "The farm is closed on this date."}


def test_check_availability_requires_date(client):
    response = client.post("/api/bookings/check-availability", json={})

    assert response.status_code == 400
    assert response.json() == {"error": "Date is required"}


def test_check_availability_rejects_malformed_date(client):
    response = client.post("/api/bookings/check-availability", json={"date": "next tuesday"})

    assert response.status_code == 400
    assert "error" in response.json()


def test_check_availability_fully_booked(client, db_session, ticket_types, make_booking):
    db_session.add(SiteSettings(id=1, booking_capacity_per_day=5))
    db_session.commit()
    make_booking(date(2026, 8, 4), [(ticket_types["family"], 1), (ticket_types["adult"], 1)])

    response = client.post("/api/bookings/check-availability", json={"date": SUMMER_TUESDAY})

    assert response.json() == {
        "available": False,
        "remaining": 0,
        "capacity": 5,
        "reason": "This date is fully booked.",
    }


def test_pending_and_cancelled_bookings_do_not_use_capacity(client, ticket_types, make_booking):
    make_booking(date(2026, 8, 4), [(ticket_types["adult"], 5)], status=BookingStatus.PENDING)
    make_booking(date(2026, 8, 4), [(ticket_types["adult"], 5)], status=BookingStatus.CANCELLED)

    response = client.post("/api/bookings/check-availability", json={"date": SUMMER_TUESDAY})

    assert response.json()["remaining"] == 100


def test_availability_fails_open_when_store_unavailable(client, ticket_types, monkeypatch):
    def broken(self, visit_date):
        raise OperationalError("SELECT bookings", {}, Exception("connection refused"))

    monkeypatch.setattr(BookingRepository, "list_confirmed_for_date", broken)

    response = client.post("/api/bookings/check-availability", json={"date": SUMMER_TUESDAY})

    assert response.status_code == 200
    assert response.json()["available"] is True


# ---------------------
# CATALOG
# ---------------------

def test_ticket_types_with_date_quote_the_tier_price(client, ticket_types):
    response = client.get("/api/ticket-types", params={"date": SUMMER_TUESDAY})

    assert response.status_code == 200
    body = response.json()
    assert [item["name"] for item in body] == ["Adult", "Child", "Family"]
    assert body[0]["unitPrice"] == 1400
    assert body[0]["pricingTier"] == "weekend_holiday"
    assert body[2]["maxPerBooking"] == 4


def test_ticket_types_without_date(client, ticket_types):
    body = client.get("/api/ticket-types").json()

    assert body[0]["weekdayPrice"] == 1000
    assert body[0]["unitPrice"] is None


# ---------------------
# CHECKOUT
# ---------------------

def test_booking_flow(client, db_session, ticket_types, razorpay_client):
    response = client.post("/api/bookings/create-checkout", json=_checkout_payload(ticket_types))

    assert response.status_code == 200
    body = response.json()
    reference = body["bookingReference"]
    assert re.fullmatch(r"RFP-260701-[A-Z0-9]{4}", reference)
    assert body["sessionId"] == "plink_test1"
    assert body["url"] == "https://rzp.io/i/test1"

    booking = db_session.execute(
        select(Booking).where(Booking.booking_reference == reference)
    ).scalar_one()
    assert booking.status == BookingStatus.PENDING
    assert booking.total_amount == 2800
    assert booking.payment_session_id == "plink_test1"
    assert booking.customer_phone == "07700 900123"

    link = razorpay_client.payment_link.created[0]
    assert link["amount"] == 2800
    assert link["currency"] == "GBP"
    assert link["reference_id"] == reference
    assert link["notes"]["type"] == "booking"
    assert link["notes"]["booking_id"] == booking.id
    assert link["notes"]["booking_reference"] == reference
    assert link["notes"]["cancel_url"] == "https://farm.test/booking?cancelled=true"
    assert link["callback_url"] == f"https://farm.test/booking/confirmation?ref={reference}"


def test_booking_lookup(client, ticket_types):
    reference = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(ticket_types),
    ).json()["bookingReference"]

    response = client.get(f"/api/bookings/{reference}")

    assert response.status_code == 200
    body = response.json()
    assert body["bookingReference"] == reference
    assert body["date"] == SUMMER_TUESDAY
    assert body["status"] == "pending"
    assert body["totalAmount"] == 2800
    assert body["tickets"] == [
        {"ticketName": "Adult", "quantity": 2, "unitPrice": 1400, "subtotal": 2800}
    ]


def test_booking_lookup_omits_customer_details(client, ticket_types):
    reference = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(ticket_types),
    ).json()["bookingReference"]

    body = client.get(f"/api/bookings/{reference}").json()

    assert not {"customerName", "customerEmail", "customerPhone"} & body.keys()
    assert "Jo Bloggs" not in str(body)


def test_booking_lookup_unknown_reference(client):
    response = client.get("/api/bookings/RFP-000000-NOPE")

    assert response.status_code == 404
    assert response.json() == {"error": "Booking not found"}


def test_checkout_rejects_closed_day(client, db_session, ticket_types):
    response = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(ticket_types, date=TERM_MONDAY),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "The farm is closed on this date."}
    assert _booking_count(db_session) == 0


def test_checkout_rejects_missing_fields(client, ticket_types):
    response = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(ticket_types, customerName="  "),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Missing required fields."}


def test_checkout_rejects_overlong_customer_name(client, db_session, ticket_types):
    response = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(ticket_types, customerName="J" * 129),
    )

    assert response.status_code == 400
    assert response.json()["error"].startswith("customerName:")
    assert _booking_count(db_session) == 0


def test_checkout_rejects_quantity_over_limit(client, db_session, ticket_types):
    response = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(
            ticket_types,
            tickets=[{"ticketTypeId": ticket_types["family"].id, "quantity": 5}],
        ),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Maximum 4 Family tickets per booking."}
    assert _booking_count(db_session) == 0


def test_checkout_rejects_inactive_ticket_type(client, ticket_types):
    retired_id = ticket_types["retired"].id
    response = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(
            ticket_types,
            tickets=[{"ticketTypeId": retired_id, "quantity": 1}],
        ),
    )

    assert response.status_code == 400
    assert response.json() == {"error": f"Invalid ticket type: {retired_id}"}


def test_checkout_rejects_all_zero_quantities(client, ticket_types):
    response = client.post(
        "/api/bookings/create-checkout",
        json=_checkout_payload(
            ticket_types,
            tickets=[{"ticketTypeId": ticket_types["adult"].id, "quantity": 0}],
        ),
    )

    assert response.status_code == 400
    assert response.json() == {"error": "Please select at least one ticket."}


def test_checkout_rejects_fully_booked_date(client, db_session, ticket_types, make_booking):
    db_session.add(SiteSettings(id=1, booking_capacity_per_day=4))
    db_session.commit()
    make_booking(date(2026, 8, 4), [(ticket_types["family"], 1)])

    response = client.post("/api/bookings/create-checkout", json=_checkout_payload(ticket_types))

    assert response.status_code == 400
    assert response.json() == {"error": "This date is fully booked."}


def test_payment_session_failure_leaves_booking_pending(client, db_session, ticket_types, razorpay_client):
    razorpay_client.payment_link.fail = True

    response = client.post("/api/bookings/create-checkout", json=_checkout_payload(ticket_types))

    assert response.status_code == 502
    assert response.json() == {"error": "Failed to create payment session. Please try again."}

    booking = db_session.execute(select(Booking)).scalar_one()
    assert booking.status == BookingStatus.PENDING
    assert booking.payment_session_id is None


def test_checkout_without_payment_keys(client, db_session, ticket_types, gateway):
    gateway.key_id = None

    response = client.post("/api/bookings/create-checkout", json=_checkout_payload(ticket_types))

    assert response.status_code == 502
    assert _booking_count(db_session) == 1
