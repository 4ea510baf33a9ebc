# src/domain/availability.py

from dataclasses import dataclass
from typing import Iterable

DEFAULT_DAILY_CAPACITY = 100
FAMILY_OCCUPANCY = 4


def effective_occupancy(ticket_name: str | None, occupancy_multiplier: int | None) -> int:
    """
    Visitors admitted per ticket.

    An explicit multiplier wins. Without one, tickets named like a family
    ticket admit four, everything else admits one.
    """
    if occupancy_multiplier is not None:
        return occupancy_multiplier
    if "family" in (ticket_name or "").lower():
        return FAMILY_OCCUPANCY
    return 1


def line_visitors(line) -> int:
    quantity = line.quantity or 0
    return quantity * effective_occupancy(line.ticket_name, line.occupancy_multiplier)


def count_visitors(bookings: Iterable) -> int:
    """Sum visitors across every ticket line of the given bookings."""
    return sum(
        line_visitors(line)
        for booking in bookings
        for line in booking.tickets
    )


@dataclass(frozen=True)
class Availability:
    capacity: int
    booked: int
    degraded: bool = False

    @property
    def remaining(self) -> int:
        return max(0, self.capacity - self.booked)

    @property
    def available(self) -> bool:
        return self.remaining > 0


def compute_availability(capacity: int, confirmed_bookings: Iterable) -> Availability:
    return Availability(capacity=capacity, booked=count_visitors(confirmed_bookings))
