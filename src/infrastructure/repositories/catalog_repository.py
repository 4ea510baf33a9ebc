# src/infrastructure/repositories/catalog_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.domain.availability import DEFAULT_DAILY_CAPACITY
from src.domain.shop_pricing import ShippingRates, ShopCatalog
from src.infrastructure.db.models import (
    AdoptionTier,
    Animal,
    Product,
    SiteSettings,
    TicketType,
)

SITE_SETTINGS_ID = 1


class TicketTypeRepository:

    def __init__(self, db: Session):
        self.db = db

    def list_active(self) -> list[TicketType]:
        stmt = (
            select(TicketType)
            .where(TicketType.active.is_(True))
            .order_by(TicketType.display_order, TicketType.name)
        )
        return list(self.db.execute(stmt).scalars().all())


class SettingsRepository:

    def __init__(self, db: Session):
        self.db = db

    def get(self) -> SiteSettings | None:
        return self.db.get(SiteSettings, SITE_SETTINGS_ID)

    def daily_capacity(self) -> int:
        settings = self.get()
        if settings is None or settings.booking_capacity_per_day is None:
            return DEFAULT_DAILY_CAPACITY
        return settings.booking_capacity_per_day

    def shipping_rates(self) -> ShippingRates:
        settings = self.get()
        if settings is None:
            return ShippingRates()
        return ShippingRates(
            standard_rate=settings.shipping_standard_rate,
            free_shipping_threshold=settings.free_shipping_threshold,
        )

    def upsert(self, **values) -> SiteSettings:
        settings = self.get()
        if settings is None:
            settings = SiteSettings(id=SITE_SETTINGS_ID)
            self.db.add(settings)
        for key, value in values.items():
            setattr(settings, key, value)
        self.db.flush()
        return settings


class ShopCatalogRepository:

    def __init__(self, db: Session):
        self.db = db

    def load(
        self,
        product_ids: set[str],
        tier_ids: set[str],
        animal_ids: set[str],
    ) -> ShopCatalog:
        """Load only the catalog entries a cart refers to."""
        catalog = ShopCatalog()

        if product_ids:
            stmt = (
                select(Product)
                .where(Product.id.in_(product_ids))
                .where(Product.active.is_(True))
            )
            catalog.products = {item.id: item for item in self.db.execute(stmt).scalars()}

        if tier_ids:
            stmt = (
                select(AdoptionTier)
                .where(AdoptionTier.id.in_(tier_ids))
                .where(AdoptionTier.active.is_(True))
            )
            catalog.adoption_tiers = {item.id: item for item in self.db.execute(stmt).scalars()}

        if animal_ids:
            stmt = (
                select(Animal)
                .where(Animal.id.in_(animal_ids))
                .where(Animal.adoptable.is_(True))
            )
            catalog.animals = {item.id: item for item in self.db.execute(stmt).scalars()}

        settings = self.db.get(SiteSettings, SITE_SETTINGS_ID)
        if settings is not None and settings.voucher_amounts:
            catalog.voucher_amounts = tuple(int(amount) for amount in settings.voucher_amounts)

        return catalog
