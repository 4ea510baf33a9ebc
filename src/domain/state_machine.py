# src/domain/state_machine.py

from enum import Enum
from typing import Dict, Set, Type

from src.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class VoucherStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    PARTIAL = "partial"
    REDEEMED = "redeemed"
    EXPIRED = "expired"
    CANCELLED = "cancelled"


class AdoptionStatus(str, Enum):
    PENDING = "pending"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class LifecycleStateMachine:
    """
    Central lifecycle controller.
    Subclasses declare the status enum and the legal transitions.
    """

    _STATUS_TYPE: Type[Enum]
    _ALLOWED_TRANSITIONS: Dict[Enum, Set[Enum]]

    @classmethod
    def can_transition(cls, from_status, to_status) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(cls, from_status, to_status) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_terminal(cls, status) -> bool:
        """
        Returns True if the state is terminal (no further transitions allowed).
        """
        cls._ensure_valid_status(status)
        return len(cls._ALLOWED_TRANSITIONS.get(status, set())) == 0

    @classmethod
    def get_allowed_transitions(cls, status) -> Set[Enum]:
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @classmethod
    def _ensure_valid_status(cls, status) -> None:
        if not isinstance(status, cls._STATUS_TYPE):
            raise TypeError(
                f"Expected {cls._STATUS_TYPE.__name__}, got {type(status)}"
            )


class BookingStateMachine(LifecycleStateMachine):
    _STATUS_TYPE = BookingStatus
    _ALLOWED_TRANSITIONS = {
        BookingStatus.PENDING: {
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELLED,
        },
        BookingStatus.CONFIRMED: {
            BookingStatus.REFUNDED,
        },
        BookingStatus.CANCELLED: set(),
        BookingStatus.REFUNDED: set(),
    }


class OrderStateMachine(LifecycleStateMachine):
    _STATUS_TYPE = OrderStatus
    _ALLOWED_TRANSITIONS = {
        OrderStatus.PENDING: {
            OrderStatus.PAID,
            OrderStatus.CANCELLED,
        },
        OrderStatus.PAID: {
            OrderStatus.PROCESSING,
            OrderStatus.READY,
            OrderStatus.REFUNDED,
        },
        OrderStatus.PROCESSING: {
            OrderStatus.SHIPPED,
            OrderStatus.READY,
        },
        OrderStatus.SHIPPED: {
            OrderStatus.COMPLETED,
        },
        OrderStatus.READY: {
            OrderStatus.COMPLETED,
        },
        OrderStatus.COMPLETED: {
            OrderStatus.REFUNDED,
        },
        OrderStatus.CANCELLED: set(),
        OrderStatus.REFUNDED: set(),
    }


class VoucherStateMachine(LifecycleStateMachine):
    _STATUS_TYPE = VoucherStatus
    _ALLOWED_TRANSITIONS = {
        VoucherStatus.PENDING: {
            VoucherStatus.ACTIVE,
            VoucherStatus.CANCELLED,
        },
        VoucherStatus.ACTIVE: {
            VoucherStatus.PARTIAL,
            VoucherStatus.REDEEMED,
            VoucherStatus.EXPIRED,
            VoucherStatus.CANCELLED,
        },
        VoucherStatus.PARTIAL: {
            VoucherStatus.REDEEMED,
            VoucherStatus.EXPIRED,
        },
        VoucherStatus.REDEEMED: set(),
        VoucherStatus.EXPIRED: set(),
        VoucherStatus.CANCELLED: set(),
    }


class AdoptionStateMachine(LifecycleStateMachine):
    _STATUS_TYPE = AdoptionStatus
    _ALLOWED_TRANSITIONS = {
        AdoptionStatus.PENDING: {
            AdoptionStatus.ACTIVE,
            AdoptionStatus.CANCELLED,
        },
        AdoptionStatus.ACTIVE: {
            AdoptionStatus.EXPIRED,
            AdoptionStatus.CANCELLED,
            AdoptionStatus.REFUNDED,
        },
        AdoptionStatus.EXPIRED: set(),
        AdoptionStatus.CANCELLED: set(),
        AdoptionStatus.REFUNDED: set(),
    }
