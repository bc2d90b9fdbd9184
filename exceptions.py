# exceptions.py


class TicketingError(Exception):
    """Base for every failure the fulfillment core reports to its caller."""


class NotFound(TicketingError):
    def __init__(self, order_id):
        super().__init__(f"Order {order_id} not found.")
        self.order_id = order_id


class InvalidTransition(TicketingError):
    """
    Raised when an order is not in the state an action needs
    (approve/reject on a non-pending order, ticket fields on a non-approved one).
    Nothing is written when this is raised.
    """
    def __init__(self, order_id, action: str, current_status: str | None):
        super().__init__(
            f"Cannot {action} order {order_id}: status is {current_status!r}."
        )
        self.order_id = order_id
        self.action = action
        self.current_status = current_status


class DuplicateBookingRef(TicketingError):
    """Another order already holds this booking reference. Nothing was written."""
    def __init__(self, order_id, booking_ref: str):
        super().__init__(f"Booking reference {booking_ref} is already taken; order {order_id} not updated.")
        self.order_id = order_id
        self.booking_ref = booking_ref


class UploadFailure(TicketingError):
    """Storage backend could not take a ticket file. Scoped to that one file."""
    def __init__(
        self,
        filename: str,
        reason: str,
        *,
        http_status: int | None = None,
        raw_response_text: str | None = None,
    ):
        super().__init__(f"Upload of {filename!r} failed: {reason}")
        self.filename = filename
        self.reason = reason
        self.http_status = http_status
        self.raw_response_text = raw_response_text


class DispatchFailure(TicketingError):
    """Ticket email was not sent. Order state is untouched; safe to retry."""
    def __init__(self, order_id, reason: str):
        super().__init__(f"Ticket email for order {order_id} not sent: {reason}")
        self.order_id = order_id
        self.reason = reason
