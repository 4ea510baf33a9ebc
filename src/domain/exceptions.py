

class FarmParkError(Exception):
    """
    Base exception for all domain-level errors
    inside the Farm Park booking engine.
    """


class InvalidStateTransitionError(FarmParkError):
    """
    Raised when an illegal lifecycle state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class BookingRuleError(FarmParkError):
    """
    Business-rule rejection. The message is safe to show to customers
    and tells them what to correct.
    """


class ValidationError(BookingRuleError):
    """Raised when required input is missing or malformed."""


class PastDateError(BookingRuleError):
    def __init__(self, message: str = "Cannot book a past date."):
        super().__init__(message)


class ClosedDayError(BookingRuleError):
    def __init__(self, message: str = "The farm is closed on this date."):
        super().__init__(message)


class DateFullyBookedError(BookingRuleError):
    def __init__(self, message: str = "This date is fully booked."):
        super().__init__(message)


class UnknownTicketTypeError(BookingRuleError):
    def __init__(self, ticket_type_id: str):
        self.ticket_type_id = ticket_type_id
        super().__init__(f"Invalid ticket type: {ticket_type_id}")


class QuantityExceedsLimitError(BookingRuleError):
    def __init__(self, ticket_type_id: str, ticket_type_name: str, limit: int):
        self.ticket_type_id = ticket_type_id
        self.ticket_type_name = ticket_type_name
        self.limit = limit
        super().__init__(f"Maximum {limit} {ticket_type_name} tickets per booking.")


class EmptySelectionError(BookingRuleError):
    def __init__(self, message: str = "Please select at least one ticket."):
        super().__init__(message)


class UnknownCatalogItemError(BookingRuleError):
    """Raised when a shop item points at a missing or inactive catalog entry."""

    def __init__(self, item_type: str, item_id: str):
        self.item_type = item_type
        self.item_id = item_id
        super().__init__(f"Invalid {item_type}: {item_id}")


class BookingNotFoundError(FarmParkError):
    def __init__(self, reference: str):
        self.reference = reference
        super().__init__(f"Booking {reference} not found")


class InfrastructureError(FarmParkError):
    """
    An upstream dependency failed. The original cause is chained and
    logged server-side; callers only ever see the generic message.
    """

    public_message = "Something went wrong. Please try again."


class PersistenceError(InfrastructureError):
    public_message = "We could not save your request. Please try again."


class PaymentSessionError(InfrastructureError):
    public_message = "Failed to create payment session. Please try again."


class InvalidSignatureError(FarmParkError):
    """Raised when a webhook fails provider signature verification."""
