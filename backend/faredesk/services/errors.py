"""Booking flow exceptions. Routers translate these into HTTP responses."""


class BookingError(Exception):
    """Base class for user-visible booking failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class UpstreamError(BookingError):
    """The booking API failed: network error, non-2xx status or an explicit error body."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class FareUnavailableError(UpstreamError):
    """The selected fare is gone at price/sell time."""


class OfferChangePending(BookingError):
    """Price and/or booking class changed; the caller must confirm before continuing."""

    def __init__(self, type_of_change: str, message: str):
        super().__init__(message)
        self.type_of_change = type_of_change


class BookingCancelled(BookingError):
    """The caller declined an offer or price change."""


class FormValidationError(BookingError):
    """Passenger/contact data or the assembled order request is incomplete."""
