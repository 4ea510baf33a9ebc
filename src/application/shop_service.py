import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
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
from src.domain.exceptions import PaymentSessionError, ValidationError
from src.domain.references import adoption_reference, order_reference, voucher_code
from src.domain.shop_pricing import (
    DELIVERY_SHIPPING,
    ITEM_ADOPTION,
    ITEM_VOUCHER,
    PricedOrder,
    ShippingRates,
    ShopItem,
    price_order,
)
from src.infrastructure.db.models import Adoption, GiftVoucher, Order
from src.infrastructure.payments.razorpay_gateway import SessionLine
from src.infrastructure.repositories.catalog_repository import (
    SettingsRepository,
    ShopCatalogRepository,
)
from src.infrastructure.repositories.order_repository import OrderRepository

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("line1", "city", "postcode")


@dataclass(frozen=True)
class ShopOrderRequest:
    items: List[ShopItem] = field(default_factory=list)
    delivery_method: str | None = None
    shipping_address: dict | None = None
    customer_name: str = ""
    customer_email: str = ""
    customer_phone: str | None = None


def one_year_after(start: datetime) -> datetime:
    try:
        return start.replace(year=start.year + 1)
    except ValueError:
        # 29 February
        return start.replace(year=start.year + 1, day=28)


class ShopService:
    """Checkout for products, gift vouchers and animal adoptions."""

    def __init__(self, db: Session, today: date, gateway=None):
        self.db = db
        self.today = today
        self.gateway = gateway
        self.order_repository = OrderRepository(db)
        self.catalog_repository = ShopCatalogRepository(db)
        self.settings_repository = SettingsRepository(db)

    def _shipping_rates(self) -> ShippingRates:
        try:
            return self.settings_repository.shipping_rates()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("Shop settings unavailable; using default shipping rates.", exc_info=True)
            return ShippingRates()

    def price(self, request: ShopOrderRequest) -> PricedOrder:
        catalog = load_or_fail(
            self.db,
            lambda: self.catalog_repository.load(
                product_ids={item.product_id for item in request.items if item.product_id},
                tier_ids={item.tier_id for item in request.items if item.tier_id},
                animal_ids={item.animal_id for item in request.items if item.animal_id},
            ),
            "shop catalog",
        )
        return price_order(
            items=request.items,
            delivery_method=request.delivery_method,
            catalog=catalog,
            shipping=self._shipping_rates(),
        )

    def initiate_order(self, request: ShopOrderRequest) -> CheckoutResult:
        if (
            not request.items
            or not (request.customer_name or "").strip()
            or not (request.customer_email or "").strip()
        ):
            raise ValidationError("Missing required fields.")

        if request.delivery_method == DELIVERY_SHIPPING:
            address = request.shipping_address or {}
            if any(not (address.get(key) or "").strip() for key in REQUIRED_ADDRESS_FIELDS):
                raise ValidationError("Please provide a shipping address.")

        priced = self.price(request)
        shipping_address = request.shipping_address if priced.delivery_method == DELIVERY_SHIPPING else None
        customer_name = request.customer_name.strip()
        customer_email = request.customer_email.strip()
        prefix = reference_prefix()

        def create() -> Order:
            order = self.order_repository.create_order(
                order_reference=order_reference(self.today, prefix),
                priced=priced,
                shipping_address=shipping_address,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=request.customer_phone,
            )
            self._create_children(order, priced, prefix)
            return order

        order = persist_with_unique_reference(self.db, create, "order")
        reference = order.order_reference
        logger.info("Created pending order %s (%s pence)", reference, order.total_amount)

        lines = [
            SessionLine(
                name=f"{line.name} ({line.variant})" if line.variant else line.name,
                unit_amount=line.unit_price,
                quantity=line.quantity,
            )
            for line in priced.lines
        ]
        if priced.shipping_cost > 0:
            lines.append(SessionLine(name="Standard Shipping", unit_amount=priced.shipping_cost, quantity=1))

        base_url = site_url()
        try:
            session = self.gateway.create_hosted_session(
                amount=order.total_amount,
                reference=reference,
                heading="Rutland Farm Park shop order",
                lines=lines,
                customer_name=customer_name,
                customer_email=customer_email,
                customer_phone=order.customer_phone,
                notes={
                    "type": "shop",
                    "order_id": order.id,
                    "order_reference": reference,
                },
                success_url=f"{base_url}/checkout/confirmation?ref={reference}",
                cancel_url=f"{base_url}/checkout?cancelled=true",
            )
        except PaymentSessionError:
            logger.warning("Order %s left pending: payment session was not created", reference)
            raise

        attach_session(self.db, order, session, f"order {reference}")

        return CheckoutResult(
            reference=reference,
            session_id=session.id,
            payment_url=session.url,
        )

    def _create_children(self, order: Order, priced: PricedOrder, prefix: str) -> None:
        """One pending voucher or adoption per unit purchased, activated on payment."""
        now = datetime.now(timezone.utc)
        expires_at = one_year_after(now)

        for line in priced.lines:
            item = line.item
            for _ in range(item.quantity):
                if item.item_type == ITEM_VOUCHER:
                    self.order_repository.add_voucher(
                        GiftVoucher(
                            code=voucher_code(prefix),
                            order_id=order.id,
                            amount=line.unit_price,
                            remaining_balance=line.unit_price,
                            purchaser_name=order.customer_name,
                            purchaser_email=order.customer_email,
                            recipient_name=item.recipient_name or order.customer_name,
                            recipient_email=item.recipient_email or None,
                            personal_message=item.personal_message or None,
                            expires_at=expires_at,
                        )
                    )
                elif item.item_type == ITEM_ADOPTION:
                    self.order_repository.add_adoption(
                        Adoption(
                            adoption_reference=adoption_reference(prefix),
                            order_id=order.id,
                            animal_id=item.animal_id,
                            tier_id=item.tier_id,
                            adopter_name=order.customer_name,
                            adopter_email=order.customer_email,
                            adopter_phone=order.customer_phone,
                            is_gift=item.is_gift,
                            gift_recipient_name=item.gift_recipient_name or None,
                            shipping_address=order.shipping_address,
                            starts_at=now,
                            expires_at=expires_at,
                        )
                    )
        self.db.flush()
