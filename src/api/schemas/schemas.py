from datetime import date
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from src.domain.shop_pricing import MAX_ITEM_QUANTITY

# Column widths of the customer fields in the bookings and orders tables.
NAME_MAX_LENGTH = 128
EMAIL_MAX_LENGTH = 255
PHONE_MAX_LENGTH = 32


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AvailabilityRequest(ApiModel):
    visit_date: date | None = Field(default=None, alias="date")


class AvailabilityResponse(ApiModel):
    available: bool
    remaining: int | None = None
    capacity: int | None = None
    reason: str | None = None


class TicketTypeResponse(ApiModel):
    id: str
    name: str
    description: str | None = None
    weekday_price: int
    weekend_price: int
    max_per_booking: int
    display_order: int
    unit_price: int | None = None
    pricing_tier: str | None = None


class TicketLineRequest(ApiModel):
    ticket_type_id: str
    quantity: int


class BookingCheckoutRequest(ApiModel):
    visit_date: date | None = Field(default=None, alias="date")
    tickets: list[TicketLineRequest] = Field(default_factory=list)
    customer_name: str = Field(default="", max_length=NAME_MAX_LENGTH)
    customer_email: str = Field(default="", max_length=EMAIL_MAX_LENGTH)
    customer_phone: str | None = Field(default=None, max_length=PHONE_MAX_LENGTH)
    special_requirements: str | None = None


class BookingCheckoutResponse(ApiModel):
    session_id: str
    url: str
    booking_reference: str


class BookingLineResponse(ApiModel):
    ticket_name: str
    quantity: int
    unit_price: int
    subtotal: int


class BookingSummaryResponse(ApiModel):
    booking_reference: str
    visit_date: date = Field(alias="date")
    status: str
    total_amount: int
    tickets: list[BookingLineResponse]


class ShippingAddress(ApiModel):
    line1: str = ""
    line2: str | None = None
    city: str = ""
    county: str | None = None
    postcode: str = ""
    country: str | None = "United Kingdom"


class ShopItemRequest(ApiModel):
    item_type: Literal["product", "voucher", "adoption"] = Field(alias="type")
    quantity: int = Field(default=1, le=MAX_ITEM_QUANTITY)
    product_id: str | None = None
    variant: str | None = None
    amount: int | None = None
    recipient_name: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)
    recipient_email: str | None = Field(default=None, max_length=EMAIL_MAX_LENGTH)
    personal_message: str | None = None
    animal_id: str | None = None
    tier_id: str | None = None
    is_gift: bool = False
    gift_recipient_name: str | None = Field(default=None, max_length=NAME_MAX_LENGTH)


class ShopCheckoutRequest(ApiModel):
    items: list[ShopItemRequest] = Field(default_factory=list)
    delivery_method: Literal["collection", "shipping"] = "collection"
    shipping_address: ShippingAddress | None = None
    customer_name: str = Field(default="", max_length=NAME_MAX_LENGTH)
    customer_email: str = Field(default="", max_length=EMAIL_MAX_LENGTH)
    customer_phone: str | None = Field(default=None, max_length=PHONE_MAX_LENGTH)


class ShopCheckoutResponse(ApiModel):
    session_id: str
    url: str
    order_reference: str


class WebhookAck(ApiModel):
    received: bool = True
