# src/infrastructure/repositories/order_repository.py

from sqlalchemy.orm import Session
from sqlalchemy import select

from src.domain.shop_pricing import PricedOrder
from src.domain.state_machine import AdoptionStatus, VoucherStatus
from src.infrastructure.db.models import Adoption, GiftVoucher, Order, OrderItem


class OrderRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        order_id: str,
        for_update: bool = False,
    ) -> Order | None:

        stmt = select(Order).where(Order.id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalar_one_or_none()

    def create_order(
        self,
        order_reference: str,
        priced: PricedOrder,
        shipping_address: dict | None,
        customer_name: str,
        customer_email: str,
        customer_phone: str | None,
    ) -> Order:

        order = Order(
            order_reference=order_reference,
            delivery_method=priced.delivery_method,
            shipping_address=shipping_address,
            shipping_cost=priced.shipping_cost,
            subtotal=priced.subtotal,
            total_amount=priced.total_amount,
            customer_name=customer_name,
            customer_email=customer_email,
            customer_phone=customer_phone or None,
            items=[
                OrderItem(
                    position=position,
                    item_type=line.item_type,
                    product_id=line.item.product_id if line.item_type == "product" else None,
                    name=line.name,
                    variant=line.variant,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for position, line in enumerate(priced.lines)
            ],
        )
        self.db.add(order)
        self.db.flush()
        return order

    def add_voucher(self, voucher: GiftVoucher) -> GiftVoucher:
        self.db.add(voucher)
        return voucher

    def add_adoption(self, adoption: Adoption) -> Adoption:
        self.db.add(adoption)
        return adoption

    def pending_vouchers(self, order: Order) -> list[GiftVoucher]:
        stmt = (
            select(GiftVoucher)
            .where(GiftVoucher.order_id == order.id)
            .where(GiftVoucher.purchaser_email == order.customer_email)
            .where(GiftVoucher.status == VoucherStatus.PENDING)
            .with_for_update()
        )
        return list(self.db.execute(stmt).scalars().all())

    def pending_adoptions(self, order: Order) -> list[Adoption]:
        stmt = (
            select(Adoption)
            .where(Adoption.order_id == order.id)
            .where(Adoption.adopter_email == order.customer_email)
            .where(Adoption.status == AdoptionStatus.PENDING)
            .with_for_update()
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_vouchers(self, order_id: str) -> list[GiftVoucher]:
        stmt = select(GiftVoucher).where(GiftVoucher.order_id == order_id)
        return list(self.db.execute(stmt).scalars().all())

    def list_adoptions(self, order_id: str) -> list[Adoption]:
        stmt = select(Adoption).where(Adoption.order_id == order_id)
        return list(self.db.execute(stmt).scalars().all())
