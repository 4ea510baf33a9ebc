# src/domain/shop_pricing.py

from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from src.domain.exceptions import (
    EmptySelectionError,
    UnknownCatalogItemError,
    ValidationError,
)

ITEM_PRODUCT = "product"
ITEM_VOUCHER = "voucher"
ITEM_ADOPTION = "adoption"
ITEM_TYPES = (ITEM_PRODUCT, ITEM_VOUCHER, ITEM_ADOPTION)

DELIVERY_COLLECTION = "collection"
DELIVERY_SHIPPING = "shipping"
DELIVERY_METHODS = (DELIVERY_COLLECTION, DELIVERY_SHIPPING)

DEFAULT_STANDARD_SHIPPING_RATE = 395
DEFAULT_FREE_SHIPPING_THRESHOLD = 3000
DEFAULT_VOUCHER_AMOUNTS = (1000, 2500, 5000, 7500, 10000)
MAX_ITEM_QUANTITY = 10


@dataclass(frozen=True)
class ShopItem:
    item_type: str
    quantity: int
    product_id: str | None = None
    variant: str | None = None
    amount: int | None = None
    recipient_name: str | None = None
    recipient_email: str | None = None
    personal_message: str | None = None
    animal_id: str | None = None
    tier_id: str | None = None
    is_gift: bool = False
    gift_recipient_name: str | None = None


@dataclass(frozen=True)
class ShippingRates:
    standard_rate: int = DEFAULT_STANDARD_SHIPPING_RATE
    free_shipping_threshold: int = DEFAULT_FREE_SHIPPING_THRESHOLD

    def cost_for(self, subtotal: int) -> int:
        if subtotal >= self.free_shipping_threshold:
            return 0
        return self.standard_rate


@dataclass
class ShopCatalog:
    """Active catalog entries keyed by id, plus the preset voucher amounts."""

    products: Dict[str, object] = field(default_factory=dict)
    adoption_tiers: Dict[str, object] = field(default_factory=dict)
    animals: Dict[str, object] = field(default_factory=dict)
    voucher_amounts: Sequence[int] = DEFAULT_VOUCHER_AMOUNTS


@dataclass(frozen=True)
class PricedOrderLine:
    item: ShopItem
    name: str
    unit_price: int
    variant: str | None = None

    @property
    def item_type(self) -> str:
        return self.item.item_type

    @property
    def quantity(self) -> int:
        return self.item.quantity

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.item.quantity


@dataclass(frozen=True)
class PricedOrder:
    lines: List[PricedOrderLine]
    delivery_method: str
    shipping_cost: int

    @property
    def subtotal(self) -> int:
        return sum(line.subtotal for line in self.lines)

    @property
    def total_amount(self) -> int:
        return self.subtotal + self.shipping_cost


def _format_pounds(amount: int) -> str:
    return f"£{amount // 100}" if amount % 100 == 0 else f"£{amount / 100:.2f}"


def _price_product(item: ShopItem, catalog: ShopCatalog) -> PricedOrderLine:
    product = catalog.products.get(item.product_id or "")
    if product is None:
        raise UnknownCatalogItemError(ITEM_PRODUCT, item.product_id or "")
    if not product.in_stock:
        raise ValidationError(f"{product.name} is out of stock.")

    unit_price = product.price
    if item.variant:
        variant = next(
            (candidate for candidate in product.variants if candidate.name == item.variant),
            None,
        )
        if variant is None:
            raise UnknownCatalogItemError("product variant", item.variant)
        if variant.price_override is not None:
            unit_price = variant.price_override

    return PricedOrderLine(
        item=item,
        name=product.name,
        unit_price=unit_price,
        variant=item.variant,
    )


def _price_voucher(item: ShopItem, catalog: ShopCatalog) -> PricedOrderLine:
    if item.amount is None or item.amount not in catalog.voucher_amounts:
        raise ValidationError("Please choose one of the available voucher amounts.")
    return PricedOrderLine(
        item=item,
        name=f"{_format_pounds(item.amount)} Gift Voucher",
        unit_price=item.amount,
    )


def _price_adoption(item: ShopItem, catalog: ShopCatalog) -> PricedOrderLine:
    tier = catalog.adoption_tiers.get(item.tier_id or "")
    if tier is None:
        raise UnknownCatalogItemError("adoption tier", item.tier_id or "")
    animal = catalog.animals.get(item.animal_id or "")
    if animal is None:
        raise UnknownCatalogItemError("animal", item.animal_id or "")
    return PricedOrderLine(
        item=item,
        name=f"{animal.name} Adoption - {tier.name}",
        unit_price=tier.price,
        variant=tier.name,
    )


_PRICERS = {
    ITEM_PRODUCT: _price_product,
    ITEM_VOUCHER: _price_voucher,
    ITEM_ADOPTION: _price_adoption,
}


def is_physical(line: PricedOrderLine, catalog: ShopCatalog) -> bool:
    if line.item_type == ITEM_ADOPTION:
        return True
    if line.item_type == ITEM_PRODUCT:
        product = catalog.products[line.item.product_id]
        return bool(getattr(product, "requires_shipping", True))
    return False


def price_order(
    items: Sequence[ShopItem],
    delivery_method: str | None,
    catalog: ShopCatalog,
    shipping: ShippingRates,
) -> PricedOrder:
    """Price a cart server-side. Client-supplied prices are never trusted."""
    delivery_method = delivery_method or DELIVERY_COLLECTION
    if delivery_method not in DELIVERY_METHODS:
        raise ValidationError(f"Unknown delivery method: {delivery_method}")
    if not items:
        raise EmptySelectionError("Your basket is empty.")

    lines = []
    for item in items:
        if item.item_type not in _PRICERS:
            raise ValidationError(f"Unknown item type: {item.item_type}")
        if item.quantity < 1:
            raise ValidationError("Item quantities must be at least 1.")
        if item.quantity > MAX_ITEM_QUANTITY:
            raise ValidationError(f"You can order at most {MAX_ITEM_QUANTITY} of each item.")
        lines.append(_PRICERS[item.item_type](item, catalog))

    subtotal = sum(line.subtotal for line in lines)
    shipping_cost = 0
    if delivery_method == DELIVERY_SHIPPING and any(is_physical(line, catalog) for line in lines):
        shipping_cost = shipping.cost_for(subtotal)

    return PricedOrder(lines=lines, delivery_method=delivery_method, shipping_cost=shipping_cost)
