# tests/unit/test_shop_pricing.py

from dataclasses import dataclass, field

import pytest

from src.domain.exceptions import EmptySelectionError, UnknownCatalogItemError, ValidationError
from src.domain.shop_pricing import (
    DELIVERY_COLLECTION,
    DELIVERY_SHIPPING,
    MAX_ITEM_QUANTITY,
    ShippingRates,
    ShopCatalog,
    ShopItem,
    price_order,
)


@dataclass
class Variant:
    name: str
    price_override: int | None = None


@dataclass
class Product:
    name: str
    price: int
    requires_shipping: bool = True
    in_stock: bool = True
    variants: list = field(default_factory=list)


@dataclass
class Tier:
    name: str
    price: int


@dataclass
class Animal:
    name: str


@pytest.fixture
def catalog():
    return ShopCatalog(
        products={
            "tote": Product("Tote Bag", 1200),
            "tshirt": Product("T-Shirt", 1500, variants=[Variant("Child", 1200), Variant("Adult")]),
            "feed": Product("Feed Bag", 250, requires_shipping=False),
            "wellies": Product("Wellies", 2000, in_stock=False),
        },
        adoption_tiers={"bronze": Tier("Bronze", 2500)},
        animals={"bramble": Animal("Bramble")},
    )


def test_collection_never_charges_shipping(catalog):
    priced = price_order(
        [ShopItem("product", 1, product_id="tote")],
        DELIVERY_COLLECTION,
        catalog,
        ShippingRates(),
    )

    assert priced.shipping_cost == 0
    assert priced.total_amount == 1200


def test_shipping_below_threshold_charges_standard_rate(catalog):
    priced = price_order(
        [ShopItem("product", 2, product_id="tote")],
        DELIVERY_SHIPPING,
        catalog,
        ShippingRates(),
    )

    assert priced.subtotal == 2400
    assert priced.shipping_cost == 395
    assert priced.total_amount == 2795


def test_free_shipping_at_threshold(catalog):
    priced = price_order(
        [ShopItem("product", 2, product_id="tshirt")],
        DELIVERY_SHIPPING,
        catalog,
        ShippingRates(),
    )

    assert priced.subtotal == 3000
    assert priced.shipping_cost == 0


def test_vouchers_alone_never_ship(catalog):
    priced = price_order(
        [ShopItem("voucher", 1, amount=1000)],
        DELIVERY_SHIPPING,
        catalog,
        ShippingRates(),
    )

    assert priced.shipping_cost == 0
    assert priced.lines[0].name == "£10 Gift Voucher"


def test_non_shipping_product_alone_never_ships(catalog):
    priced = price_order(
        [ShopItem("product", 1, product_id="feed")],
        DELIVERY_SHIPPING,
        catalog,
        ShippingRates(),
    )

    assert priced.shipping_cost == 0


def test_adoption_is_physical(catalog):
    priced = price_order(
        [ShopItem("adoption", 1, animal_id="bramble", tier_id="bronze")],
        DELIVERY_SHIPPING,
        catalog,
        ShippingRates(standard_rate=500, free_shipping_threshold=5000),
    )

    line = priced.lines[0]
    assert line.name == "Bramble Adoption - Bronze"
    assert line.variant == "Bronze"
    assert priced.shipping_cost == 500
    assert priced.total_amount == 3000


def test_variant_price_override(catalog):
    priced = price_order(
        [
            ShopItem("product", 1, product_id="tshirt", variant="Child"),
            ShopItem("product", 1, product_id="tshirt", variant="Adult"),
        ],
        DELIVERY_COLLECTION,
        catalog,
        ShippingRates(),
    )

    assert [line.unit_price for line in priced.lines] == [1200, 1500]


def test_unknown_variant(catalog):
    with pytest.raises(UnknownCatalogItemError):
        price_order(
            [ShopItem("product", 1, product_id="tshirt", variant="XXL")],
            DELIVERY_COLLECTION,
            catalog,
            ShippingRates(),
        )


def test_unknown_product(catalog):
    with pytest.raises(UnknownCatalogItemError) as exc_info:
        price_order([ShopItem("product", 1, product_id="tractor")], DELIVERY_COLLECTION, catalog, ShippingRates())

    assert exc_info.value.item_id == "tractor"


def test_out_of_stock_product(catalog):
    with pytest.raises(ValidationError, match="out of stock"):
        price_order([ShopItem("product", 1, product_id="wellies")], DELIVERY_COLLECTION, catalog, ShippingRates())


def test_voucher_amount_must_be_preset(catalog):
    with pytest.raises(ValidationError):
        price_order([ShopItem("voucher", 1, amount=1234)], DELIVERY_COLLECTION, catalog, ShippingRates())


def test_unknown_animal(catalog):
    with pytest.raises(UnknownCatalogItemError):
        price_order(
            [ShopItem("adoption", 1, animal_id="unicorn", tier_id="bronze")],
            DELIVERY_COLLECTION,
            catalog,
            ShippingRates(),
        )


def test_quantity_below_one_rejected(catalog):
    with pytest.raises(ValidationError):
        price_order([ShopItem("product", 0, product_id="tote")], DELIVERY_COLLECTION, catalog, ShippingRates())


def test_quantity_above_cap_rejected(catalog):
    with pytest.raises(ValidationError, match="at most 10"):
        price_order(
            [ShopItem("voucher", MAX_ITEM_QUANTITY + 1, amount=1000)],
            DELIVERY_COLLECTION,
            catalog,
            ShippingRates(),
        )


def test_quantity_at_cap_allowed(catalog):
    order = price_order(
        [ShopItem("voucher", MAX_ITEM_QUANTITY, amount=1000)],
        DELIVERY_COLLECTION,
        catalog,
        ShippingRates(),
    )

    assert order.total_amount == 1000 * MAX_ITEM_QUANTITY


def test_empty_basket(catalog):
    with pytest.raises(EmptySelectionError):
        price_order([], DELIVERY_COLLECTION, catalog, ShippingRates())


def test_unknown_delivery_method(catalog):
    with pytest.raises(ValidationError):
        price_order([ShopItem("product", 1, product_id="tote")], "drone", catalog, ShippingRates())
