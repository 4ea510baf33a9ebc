from datetime import date
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from src.infrastructure.db.session import SessionLocal
from src.application.booking_service import BookingRequest, BookingService
from src.application.payment_reconciliation import PaymentReconciliationService
from src.application.shop_service import ShopOrderRequest, ShopService
from src.api.schemas.schemas import (
    AvailabilityRequest,
    AvailabilityResponse,
    BookingCheckoutRequest,
    BookingCheckoutResponse,
    BookingLineResponse,
    BookingSummaryResponse,
    ShopCheckoutRequest,
    ShopCheckoutResponse,
    TicketTypeResponse,
    WebhookAck,
)
from src.domain.calendar import HolidayCalendar
from src.domain.exceptions import (
    BookingNotFoundError,
    BookingRuleError,
    FarmParkError,
    InfrastructureError,
    InvalidSignatureError,
    InvalidStateTransitionError,
    PaymentSessionError,
)
from src.domain.pricing import TicketSelection
from src.domain.shop_pricing import ShopItem
from src.infrastructure.calendar.holiday_provider import get_holiday_calendar, venue_today
from src.infrastructure.notifications.mailer import SmtpMailer
from src.infrastructure.payments.razorpay_gateway import (
    EVENT_ID_HEADER,
    SIGNATURE_HEADER,
    RazorpayPaymentGateway,
)


router = APIRouter(prefix="/api")
logger = logging.getLogger(__name__)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_payment_gateway() -> RazorpayPaymentGateway:
    return RazorpayPaymentGateway.from_env()


def get_mailer() -> SmtpMailer:
    return SmtpMailer.from_env()


def get_calendar() -> HolidayCalendar:
    return get_holiday_calendar()


def get_today() -> date:
    return venue_today()


def _http_error(exc: FarmParkError) -> HTTPException:
    if isinstance(exc, BookingNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Booking not found")
    if isinstance(exc, InvalidStateTransitionError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    if isinstance(exc, PaymentSessionError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=exc.public_message)
    if isinstance(exc, InfrastructureError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=exc.public_message)
    if isinstance(exc, (BookingRuleError, InvalidSignatureError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    logger.error("Unmapped domain error: %r", exc)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail="Something went wrong. Please try again.",
    )


@router.post(
    "/bookings/check-availability",
    response_model=AvailabilityResponse,
    response_model_exclude_none=True,
)
def check_availability(
    request: AvailabilityRequest,
    db: Session = Depends(get_db),
    calendar: HolidayCalendar = Depends(get_calendar),
    today: date = Depends(get_today),
):
    if request.visit_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Date is required",
        )

    service = BookingService(db, calendar=calendar, today=today)
    result = service.check_availability(request.visit_date)
    return AvailabilityResponse(
        available=result.available,
        remaining=result.remaining,
        capacity=result.capacity,
        reason=result.reason,
    )


@router.get("/ticket-types", response_model=list[TicketTypeResponse])
def list_ticket_types(
    visit_date: date | None = Query(default=None, alias="date"),
    db: Session = Depends(get_db),
    calendar: HolidayCalendar = Depends(get_calendar),
    today: date = Depends(get_today),
):
    service = BookingService(db, calendar=calendar, today=today)
    try:
        priced = service.list_ticket_types(visit_date)
    except FarmParkError as exc:
        raise _http_error(exc) from exc

    return [
        TicketTypeResponse(
            id=item.ticket_type.id,
            name=item.ticket_type.name,
            description=item.ticket_type.description,
            weekday_price=item.ticket_type.weekday_price,
            weekend_price=item.ticket_type.weekend_price,
            max_per_booking=item.ticket_type.max_per_booking,
            display_order=item.ticket_type.display_order,
            unit_price=item.unit_price,
            pricing_tier=item.pricing_tier,
        )
        for item in priced
    ]


@router.post("/bookings/create-checkout", response_model=BookingCheckoutResponse)
def create_booking_checkout(
    request: BookingCheckoutRequest,
    db: Session = Depends(get_db),
    calendar: HolidayCalendar = Depends(get_calendar),
    today: date = Depends(get_today),
    gateway: RazorpayPaymentGateway = Depends(get_payment_gateway),
):
    service = BookingService(db, calendar=calendar, today=today, gateway=gateway)
    booking_request = BookingRequest(
        visit_date=request.visit_date,
        tickets=[
            TicketSelection(ticket_type_id=line.ticket_type_id, quantity=line.quantity)
            for line in request.tickets
        ],
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
        special_requirements=request.special_requirements,
    )

    try:
        result = service.initiate_booking(booking_request)
    except FarmParkError as exc:
        raise _http_error(exc) from exc

    return BookingCheckoutResponse(
        session_id=result.session_id,
        url=result.payment_url,
        booking_reference=result.reference,
    )


@router.get("/bookings/{reference}", response_model=BookingSummaryResponse)
def get_booking(
    reference: str,
    db: Session = Depends(get_db),
    calendar: HolidayCalendar = Depends(get_calendar),
    today: date = Depends(get_today),
):
    service = BookingService(db, calendar=calendar, today=today)
    try:
        booking = service.get_booking(reference)
    except FarmParkError as exc:
        raise _http_error(exc) from exc

    return BookingSummaryResponse(
        booking_reference=booking.booking_reference,
        visit_date=booking.visit_date,
        status=booking.status.value,
        total_amount=booking.total_amount,
        tickets=[
            BookingLineResponse(
                ticket_name=line.ticket_name,
                quantity=line.quantity,
                unit_price=line.unit_price,
                subtotal=line.subtotal,
            )
            for line in booking.tickets
        ],
    )


@router.post("/shop/create-checkout", response_model=ShopCheckoutResponse)
def create_shop_checkout(
    request: ShopCheckoutRequest,
    db: Session = Depends(get_db),
    today: date = Depends(get_today),
    gateway: RazorpayPaymentGateway = Depends(get_payment_gateway),
):
    service = ShopService(db, today=today, gateway=gateway)
    order_request = ShopOrderRequest(
        items=[
            ShopItem(
                item_type=item.item_type,
                quantity=item.quantity,
                product_id=item.product_id,
                variant=item.variant,
                amount=item.amount,
                recipient_name=item.recipient_name,
                recipient_email=item.recipient_email,
                personal_message=item.personal_message,
                animal_id=item.animal_id,
                tier_id=item.tier_id,
                is_gift=item.is_gift,
                gift_recipient_name=item.gift_recipient_name,
            )
            for item in request.items
        ],
        delivery_method=request.delivery_method,
        shipping_address=(
            request.shipping_address.model_dump() if request.shipping_address else None
        ),
        customer_name=request.customer_name,
        customer_email=request.customer_email,
        customer_phone=request.customer_phone,
    )

    try:
        result = service.initiate_order(order_request)
    except FarmParkError as exc:
        raise _http_error(exc) from exc

    return ShopCheckoutResponse(
        session_id=result.session_id,
        url=result.payment_url,
        order_reference=result.reference,
    )


@router.post("/webhooks/payments", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway: RazorpayPaymentGateway = Depends(get_payment_gateway),
    mailer: SmtpMailer = Depends(get_mailer),
):
    body = (await request.body()).decode("utf-8")
    service = PaymentReconciliationService(db, gateway=gateway, mailer=mailer)

    try:
        await run_in_threadpool(
            service.handle,
            body,
            request.headers.get(SIGNATURE_HEADER),
            request.headers.get(EVENT_ID_HEADER),
        )
    except InvalidSignatureError as exc:
        raise _http_error(exc) from exc

    return WebhookAck(received=True)
