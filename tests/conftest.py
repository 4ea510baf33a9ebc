import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SITE_URL"] = "https://farm.test"
os.environ["REFERENCE_PREFIX"] = "RFP"

import hashlib
import hmac
import json
from datetime import date
from uuid import uuid4

import pytest
import razorpay
from razorpay.errors import BadRequestError
from fastapi.testclient import TestClient

from src.api.routes.routes import (
    get_calendar,
    get_db,
    get_mailer,
    get_payment_gateway,
    get_today,
)
from src.infrastructure.calendar.holiday_provider import BUNDLED_CALENDAR_FILE, load_holiday_calendar
from src.infrastructure.db.models import (
    AdoptionTier,
    Animal,
    Booking,
    BookingTicketLine,
    Product,
    ProductVariant,
    SiteSettings,
    TicketType,
)
from src.domain.state_machine import BookingStatus
from src.infrastructure.db.session import Base, SessionLocal, engine
from src.infrastructure.payments.razorpay_gateway import (
    EVENT_ID_HEADER,
    SIGNATURE_HEADER,
    RazorpayPaymentGateway,
)
from src.main import app

TODAY = date(2026, 7, 1)
WEBHOOK_SECRET = "whsec_farm_park_test"


class FakePaymentLinks:
    def __init__(self):
        self.created = []
        self.fail = False

    def create(self, data):
        if self.fail:
            raise BadRequestError("Authentication failed")
        self.created.append(data)
        number = len(self.created)
        return {
            "id": f"plink_test{number}",
            "short_url": f"https://rzp.io/i/test{number}",
            "status": "created",
        }


class FakeRazorpayClient:
    """Payment links are faked; webhook signatures use the SDK's real verifier."""

    def __init__(self):
        self.payment_link = FakePaymentLinks()
        self.utility = razorpay.Client().utility


class FakeMailer:
    def __init__(self):
        self.bookings = []
        self.orders = []

    def send_booking_confirmation(self, booking) -> bool:
        self.bookings.append(booking.booking_reference)
        return True

    def send_order_confirmation(self, order, vouchers=(), adoptions=()) -> bool:
        self.orders.append((order.order_reference, len(list(vouchers)), len(list(adoptions))))
        return True


def sign(body: str, secret: str = WEBHOOK_SECRET) -> str:
    return hmac.new(secret.encode("utf-8"), body.encode("utf-8"), hashlib.sha256).hexdigest()


def payment_link_event(event: str, notes: dict, link_id: str = "plink_test1", payment_id: str = "pay_test1") -> str:
    payload = {
        "payment_link": {
            "entity": {"id": link_id, "status": event.split(".")[-1], "notes": notes},
        },
    }
    if event == "payment_link.paid":
        payload["payment"] = {"entity": {"id": payment_id, "status": "captured"}}
    return json.dumps({"entity": "event", "event": event, "payload": payload})


@pytest.fixture
def db_session():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def calendar():
    return load_holiday_calendar(BUNDLED_CALENDAR_FILE)


@pytest.fixture
def razorpay_client():
    return FakeRazorpayClient()


@pytest.fixture
def gateway(razorpay_client):
    return RazorpayPaymentGateway(
        key_id="rzp_test_key",
        key_secret="rzp_test_secret",
        webhook_secret=WEBHOOK_SECRET,
        currency="GBP",
        client=razorpay_client,
    )


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def ticket_types(db_session):
    adult = TicketType(name="Adult", weekday_price=1000, weekend_price=1400, display_order=1)
    child = TicketType(name="Child", weekday_price=800, weekend_price=1100, display_order=2)
    family = TicketType(
        name="Family",
        weekday_price=3200,
        weekend_price=4200,
        display_order=3,
        max_per_booking=4,
    )
    retired = TicketType(
        name="Season Pass",
        weekday_price=5000,
        weekend_price=5000,
        display_order=4,
        active=False,
    )
    db_session.add_all([adult, child, family, retired])
    db_session.commit()
    return {"adult": adult, "child": child, "family": family, "retired": retired}


@pytest.fixture
def shop_catalog(db_session):
    tote = Product(name="Farm Park Tote Bag", slug="tote", price=1200)
    tshirt = Product(
        name="Farm Park T-Shirt",
        slug="t-shirt",
        price=1500,
        variants=[ProductVariant(name="Child", price_override=1200)],
    )
    feed = Product(name="Animal Feed Bag", slug="feed", price=250, requires_shipping=False)
    sold_out = Product(name="Wellies", slug="wellies", price=2000, in_stock=False)
    bronze = AdoptionTier(name="Bronze", price=2500)
    alpaca = Animal(name="Bramble", species="Alpaca")
    db_session.add_all([tote, tshirt, feed, sold_out, bronze, alpaca, SiteSettings(id=1)])
    db_session.commit()
    return {
        "tote": tote,
        "tshirt": tshirt,
        "feed": feed,
        "sold_out": sold_out,
        "bronze": bronze,
        "alpaca": alpaca,
    }


@pytest.fixture
def client(db_session, gateway, mailer, calendar):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_calendar] = lambda: calendar
    app.dependency_overrides[get_today] = lambda: TODAY
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def post_webhook(client):
    def post(event: str, notes: dict, event_id: str | None = None, signature: str | None = None, **kwargs):
        body = payment_link_event(event, notes, **kwargs)
        headers = {"Content-Type": "application/json"}
        headers[SIGNATURE_HEADER] = signature if signature is not None else sign(body)
        if event_id:
            headers[EVENT_ID_HEADER] = event_id
        return client.post("/api/webhooks/payments", content=body, headers=headers)

    return post


@pytest.fixture
def make_booking(db_session):
    def make(visit_date, lines, status=BookingStatus.CONFIRMED, session_id=None, created_at=None):
        booking = Booking(
            booking_reference=f"RFP-TEST-{uuid4().hex[:6].upper()}",
            visit_date=visit_date,
            total_amount=sum(ticket_type.weekday_price * quantity for ticket_type, quantity in lines),
            customer_name="Existing Guest",
            customer_email="guest@example.com",
            status=status,
            payment_session_id=session_id,
            tickets=[
                BookingTicketLine(
                    position=position,
                    ticket_type_id=ticket_type.id,
                    ticket_name=ticket_type.name,
                    quantity=quantity,
                    unit_price=ticket_type.weekday_price,
                    occupancy_multiplier=ticket_type.occupancy_multiplier,
                )
                for position, (ticket_type, quantity) in enumerate(lines)
            ],
        )
        if created_at is not None:
            booking.created_at = created_at
        db_session.add(booking)
        db_session.commit()
        return booking

    return make
