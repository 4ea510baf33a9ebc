# src/domain/pricing.py

from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Sequence

from src.domain.calendar import HolidayCalendar
from src.domain.exceptions import (
    EmptySelectionError,
    QuantityExceedsLimitError,
    UnknownTicketTypeError,
    ValidationError,
)

DEFAULT_MAX_PER_BOOKING = 10

PRICING_TIER_WEEKDAY = "weekday"
PRICING_TIER_WEEKEND_HOLIDAY = "weekend_holiday"


@dataclass(frozen=True)
class TicketSelection:
    ticket_type_id: str
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    ticket_type_id: str
    ticket_name: str
    quantity: int
    unit_price: int
    occupancy_multiplier: int | None = None

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PricedSelection:
    visit_date: date
    pricing_tier: str
    lines: List[PricedLine]

    @property
    def total_amount(self) -> int:
        return sum(line.subtotal for line in self.lines)

    @property
    def holiday_pricing(self) -> bool:
        return self.pricing_tier == PRICING_TIER_WEEKEND_HOLIDAY


def max_per_booking(ticket_type) -> int:
    return ticket_type.max_per_booking or DEFAULT_MAX_PER_BOOKING


def pricing_tier(calendar: HolidayCalendar, visit_date: date) -> str:
    if calendar.is_holiday_pricing(visit_date):
        return PRICING_TIER_WEEKEND_HOLIDAY
    return PRICING_TIER_WEEKDAY


def unit_price_for(ticket_type, tier: str) -> int:
    if tier == PRICING_TIER_WEEKEND_HOLIDAY:
        return ticket_type.weekend_price
    return ticket_type.weekday_price


def _merge_selections(selections: Iterable[TicketSelection]) -> List[TicketSelection]:
    merged: dict[str, int] = {}
    for selection in selections:
        if selection.quantity < 0:
            raise ValidationError("Ticket quantities cannot be negative.")
        merged[selection.ticket_type_id] = (
            merged.get(selection.ticket_type_id, 0) + selection.quantity
        )
    return [
        TicketSelection(ticket_type_id=ticket_type_id, quantity=quantity)
        for ticket_type_id, quantity in merged.items()
    ]


class PricingResolver:
    """
    Prices a ticket selection for a visit date.

    The catalog holds the active ticket types; each needs ``id``, ``name``,
    ``weekday_price``, ``weekend_price``, ``max_per_booking`` and
    ``occupancy_multiplier``. All amounts are integer pence.
    """

    def __init__(self, calendar: HolidayCalendar):
        self.calendar = calendar

    def resolve(
        self,
        visit_date: date,
        selections: Sequence[TicketSelection],
        catalog: Sequence,
    ) -> PricedSelection:
        by_id = {str(ticket_type.id): ticket_type for ticket_type in catalog}
        requested = _merge_selections(selections)

        for selection in requested:
            if selection.ticket_type_id not in by_id:
                raise UnknownTicketTypeError(selection.ticket_type_id)

        for selection in requested:
            ticket_type = by_id[selection.ticket_type_id]
            limit = max_per_booking(ticket_type)
            if selection.quantity > limit:
                raise QuantityExceedsLimitError(
                    ticket_type_id=selection.ticket_type_id,
                    ticket_type_name=ticket_type.name,
                    limit=limit,
                )

        remaining = [selection for selection in requested if selection.quantity > 0]
        if not remaining:
            raise EmptySelectionError()

        tier = pricing_tier(self.calendar, visit_date)
        lines = []
        for selection in remaining:
            ticket_type = by_id[selection.ticket_type_id]
            lines.append(
                PricedLine(
                    ticket_type_id=selection.ticket_type_id,
                    ticket_name=ticket_type.name,
                    quantity=selection.quantity,
                    unit_price=unit_price_for(ticket_type, tier),
                    occupancy_multiplier=ticket_type.occupancy_multiplier,
                )
            )

        return PricedSelection(visit_date=visit_date, pricing_tier=tier, lines=lines)
