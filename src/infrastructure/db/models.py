# src/infrastructure/db/models.py

from sqlalchemy import (
    JSON,
    Boolean,
    String,
    Integer,
    Date,
    DateTime,
    Enum,
    Text,
    UniqueConstraint,
    CheckConstraint,
    ForeignKey,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from datetime import date, datetime
from uuid import uuid4

from src.infrastructure.db.session import Base
from src.domain.availability import DEFAULT_DAILY_CAPACITY
from src.domain.pricing import DEFAULT_MAX_PER_BOOKING
from src.domain.shop_pricing import (
    DEFAULT_FREE_SHIPPING_THRESHOLD,
    DEFAULT_STANDARD_SHIPPING_RATE,
    DEFAULT_VOUCHER_AMOUNTS,
)
from src.domain.state_machine import (
    AdoptionStatus,
    BookingStatus,
    OrderStatus,
    VoucherStatus,
)


def _uuid() -> str:
    return str(uuid4())


def _status_enum(enum_cls, name: str) -> Enum:
    # Persist the lowercase values the CMS and operational tooling use.
    return Enum(
        enum_cls,
        name=name,
        values_callable=lambda members: [member.value for member in members],
    )


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class TicketType(TimestampMixin, Base):
    __tablename__ = "ticket_types"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    weekday_price: Mapped[int] = mapped_column(Integer, nullable=False)
    weekend_price: Mapped[int] = mapped_column(Integer, nullable=False)
    max_per_booking: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_MAX_PER_BOOKING,
    )
    # Visitors admitted per ticket. NULL keeps the legacy name-based rule.
    occupancy_multiplier: Mapped[int | None] = mapped_column(Integer, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("weekday_price >= 0", name="ck_ticket_weekday_price_nonnegative"),
        CheckConstraint("weekend_price >= 0", name="ck_ticket_weekend_price_nonnegative"),
        CheckConstraint("max_per_booking > 0", name="ck_ticket_max_per_booking_positive"),
    )


class Booking(TimestampMixin, Base):
    """
    Venue-entry booking.
    Domain controls transitions; the row stores current state.
    """

    __tablename__ = "bookings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    booking_reference: Mapped[str] = mapped_column(String(32), nullable=False)
    visit_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    special_requirements: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_confirmation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[BookingStatus] = mapped_column(
        _status_enum(BookingStatus, "booking_status"),
        nullable=False,
        default=BookingStatus.PENDING,
    )

    tickets: Mapped[list["BookingTicketLine"]] = relationship(
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="BookingTicketLine.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("booking_reference", name="uq_booking_reference"),
        CheckConstraint("total_amount >= 0", name="ck_booking_total_nonnegative"),
    )


class BookingTicketLine(Base):
    __tablename__ = "booking_ticket_lines"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    booking_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("bookings.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    ticket_type_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("ticket_types.id"),
        nullable=False,
    )
    ticket_name: Mapped[str] = mapped_column(String(128), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)
    occupancy_multiplier: Mapped[int | None] = mapped_column(Integer, nullable=True)

    booking: Mapped[Booking] = relationship(back_populates="tickets")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_ticket_line_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_ticket_line_price_nonnegative"),
    )

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


class SiteSettings(Base):
    """Single-row global settings (id = 1)."""

    __tablename__ = "site_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=1)
    booking_capacity_per_day: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_DAILY_CAPACITY,
    )
    shipping_standard_rate: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_STANDARD_SHIPPING_RATE,
    )
    free_shipping_threshold: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_FREE_SHIPPING_THRESHOLD,
    )
    voucher_amounts: Mapped[list] = mapped_column(
        JSON,
        nullable=False,
        default=lambda: list(DEFAULT_VOUCHER_AMOUNTS),
    )

    __table_args__ = (
        CheckConstraint("booking_capacity_per_day >= 0", name="ck_capacity_nonnegative"),
    )


class Product(TimestampMixin, Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    slug: Mapped[str] = mapped_column(String(128), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    requires_shipping: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    in_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    variants: Mapped[list["ProductVariant"]] = relationship(
        back_populates="product",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("slug", name="uq_product_slug"),
        CheckConstraint("price >= 0", name="ck_product_price_nonnegative"),
    )


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    product_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    price_override: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sku: Mapped[str | None] = mapped_column(String(64), nullable=True)

    product: Mapped[Product] = relationship(back_populates="variants")


class Animal(Base):
    __tablename__ = "animals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    species: Mapped[str | None] = mapped_column(String(64), nullable=True)
    adoptable: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class AdoptionTier(Base):
    __tablename__ = "adoption_tiers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    price: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    display_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_adoption_tier_price_nonnegative"),
    )


class Order(TimestampMixin, Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_reference: Mapped[str] = mapped_column(String(32), nullable=False)
    delivery_method: Mapped[str] = mapped_column(String(16), nullable=False, default="collection")
    shipping_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    shipping_cost: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    subtotal: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[int] = mapped_column(Integer, nullable=False)
    customer_name: Mapped[str] = mapped_column(String(128), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payment_session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    payment_confirmation_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    status: Mapped[OrderStatus] = mapped_column(
        _status_enum(OrderStatus, "order_status"),
        nullable=False,
        default=OrderStatus.PENDING,
    )

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy="selectin",
    )

    __table_args__ = (
        UniqueConstraint("order_reference", name="uq_order_reference"),
        CheckConstraint("total_amount >= 0", name="ck_order_total_nonnegative"),
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    order_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    item_type: Mapped[str] = mapped_column(String(16), nullable=False)
    product_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("products.id"),
        nullable=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    variant: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_item_quantity_positive"),
    )


class GiftVoucher(TimestampMixin, Base):
    __tablename__ = "gift_vouchers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    code: Mapped[str] = mapped_column(String(32), nullable=False)
    order_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("orders.id"),
        nullable=True,
        index=True,
    )
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    remaining_balance: Mapped[int] = mapped_column(Integer, nullable=False)
    purchaser_name: Mapped[str] = mapped_column(String(128), nullable=False)
    purchaser_email: Mapped[str] = mapped_column(String(255), nullable=False)
    recipient_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    recipient_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    personal_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[VoucherStatus] = mapped_column(
        _status_enum(VoucherStatus, "voucher_status"),
        nullable=False,
        default=VoucherStatus.PENDING,
    )

    __table_args__ = (
        UniqueConstraint("code", name="uq_gift_voucher_code"),
        CheckConstraint("remaining_balance >= 0", name="ck_voucher_balance_nonnegative"),
    )


class Adoption(TimestampMixin, Base):
    __tablename__ = "adoptions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    adoption_reference: Mapped[str] = mapped_column(String(32), nullable=False)
    order_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("orders.id"),
        nullable=True,
        index=True,
    )
    animal_id: Mapped[str] = mapped_column(String(36), ForeignKey("animals.id"), nullable=False)
    tier_id: Mapped[str] = mapped_column(String(36), ForeignKey("adoption_tiers.id"), nullable=False)
    adopter_name: Mapped[str] = mapped_column(String(128), nullable=False)
    adopter_email: Mapped[str] = mapped_column(String(255), nullable=False)
    adopter_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    is_gift: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    gift_recipient_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    shipping_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    starts_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AdoptionStatus] = mapped_column(
        _status_enum(AdoptionStatus, "adoption_status"),
        nullable=False,
        default=AdoptionStatus.PENDING,
    )

    __table_args__ = (
        UniqueConstraint("adoption_reference", name="uq_adoption_reference"),
    )


class PaymentWebhookEvent(Base):
    __tablename__ = "payment_webhook_events"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    event_id: Mapped[str] = mapped_column(String(128), nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    record_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    record_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    payload_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PROCESSED")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("provider", "event_id", name="uq_webhook_provider_event_id"),
    )
