from sqlalchemy import select

from src.infrastructure.db.models import (
    AdoptionTier,
    Animal,
    Base,
    Product,
    ProductVariant,
    TicketType,
)
from src.infrastructure.db.session import SessionLocal, engine
from src.infrastructure.repositories.catalog_repository import SettingsRepository


TICKET_TYPES = [
    {"name": "Adult", "weekday_price": 1200, "weekend_price": 1400, "display_order": 1},
    {"name": "Child (2-15)", "weekday_price": 1000, "weekend_price": 1200, "display_order": 2},
    {"name": "Under 2s", "weekday_price": 0, "weekend_price": 0, "display_order": 3},
    {"name": "Senior", "weekday_price": 1000, "weekend_price": 1200, "display_order": 4},
    {
        "name": "Family (2 adults + 2 children)",
        "weekday_price": 4000,
        "weekend_price": 4800,
        "display_order": 5,
        "max_per_booking": 4,
        "occupancy_multiplier": 4,
    },
]

PRODUCTS = [
    {
        "name": "Farm Park Tote Bag",
        "slug": "farm-park-tote-bag",
        "price": 1200,
        "variants": [],
    },
    {
        "name": "Farm Park T-Shirt",
        "slug": "farm-park-t-shirt",
        "price": 1500,
        "variants": [
            {"name": "Child", "price_override": 1200, "sku": "TSHIRT-CHILD"},
            {"name": "Adult", "price_override": None, "sku": "TSHIRT-ADULT"},
        ],
    },
    {
        "name": "Animal Feed Bag",
        "slug": "animal-feed-bag",
        "price": 250,
        "requires_shipping": False,
        "variants": [],
    },
]

ADOPTION_TIERS = [
    {"name": "Bronze", "price": 2500, "display_order": 1, "description": "Certificate and photo"},
    {"name": "Silver", "price": 4000, "display_order": 2, "description": "Bronze plus a soft toy"},
    {"name": "Gold", "price": 6000, "display_order": 3, "description": "Silver plus a keeper meet"},
]

ANIMALS = [
    {"name": "Bramble", "species": "Alpaca"},
    {"name": "Clover", "species": "Highland Cow"},
    {"name": "Pip", "species": "Pygmy Goat"},
]


def seed_ticket_types(db) -> None:
    for item in TICKET_TYPES:
        existing = db.execute(
            select(TicketType).where(TicketType.name == item["name"])
        ).scalar_one_or_none()
        ticket_type = existing or TicketType(name=item["name"])
        for key, value in item.items():
            setattr(ticket_type, key, value)
        if existing is None:
            db.add(ticket_type)


def seed_products(db) -> None:
    for item in PRODUCTS:
        product = db.execute(
            select(Product).where(Product.slug == item["slug"])
        ).scalar_one_or_none()
        if product is None:
            product = Product(slug=item["slug"])
            db.add(product)
        product.name = item["name"]
        product.price = item["price"]
        product.requires_shipping = item.get("requires_shipping", True)
        product.variants = [ProductVariant(**variant) for variant in item["variants"]]


def seed_adoptions(db) -> None:
    for item in ADOPTION_TIERS:
        existing = db.execute(
            select(AdoptionTier).where(AdoptionTier.name == item["name"])
        ).scalar_one_or_none()
        if existing is None:
            db.add(AdoptionTier(**item))

    for item in ANIMALS:
        existing = db.execute(
            select(Animal).where(Animal.name == item["name"])
        ).scalar_one_or_none()
        if existing is None:
            db.add(Animal(**item))


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_ticket_types(db)
        seed_products(db)
        seed_adoptions(db)
        SettingsRepository(db).upsert(booking_capacity_per_day=100)
        db.commit()
        print("Demo data seeded: ticket types, shop products, adoption tiers and animals.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
