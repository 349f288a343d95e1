from fastapi import Header, HTTPException

from faredesk.services.booking_flow import BookingService, booking_service
from faredesk.services.cache_service import CacheService, cache_service
from faredesk.services.errors import (
    BookingCancelled,
    BookingError,
    FareUnavailableError,
    FormValidationError,
    OfferChangePending,
)
from faredesk.services.markup_resolver import normalize_role


async def get_caller_role(x_user_role: str | None = Header(default=None)) -> str:
    """Caller role from the ``X-User-Role`` header. Unknown or missing roles are USER."""
    return normalize_role(x_user_role)


async def get_caller_id(x_user_email: str | None = Header(default=None)) -> str | None:
    return x_user_email or None


def get_booking_service() -> BookingService:
    return booking_service


def get_cache_service() -> CacheService:
    return cache_service


def http_error(exc: BookingError) -> HTTPException:
    """Map a booking failure to the HTTP error the front end expects."""
    if isinstance(exc, OfferChangePending):
        return HTTPException(status_code=409, detail={
            "type": "offer_changed",
            "change_type": exc.type_of_change,
            "message": exc.message,
        })
    if isinstance(exc, BookingCancelled):
        return HTTPException(status_code=409, detail={"type": "cancelled", "message": exc.message})
    if isinstance(exc, FareUnavailableError):
        return HTTPException(status_code=409, detail={"type": "fare_unavailable", "message": exc.message})
    if isinstance(exc, FormValidationError):
        return HTTPException(status_code=422, detail={"type": "validation", "message": exc.message})
    return HTTPException(status_code=502, detail={"type": "upstream", "message": exc.message})
