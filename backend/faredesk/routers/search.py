"""Search router — flight search and more offers for one airline."""

import logging

from fastapi import APIRouter, Depends

from faredesk.dependencies import get_booking_service, get_caller_role, http_error
from faredesk.schemas.booking import SearchResponse
from faredesk.schemas.search import FlightSearchParams, MoreOffersParams
from faredesk.services.booking_flow import BookingService
from faredesk.services.errors import BookingError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=SearchResponse)
async def search_flights(
    req: FlightSearchParams,
    role: str = Depends(get_caller_role),
    service: BookingService = Depends(get_booking_service),
):
    """Search flights, apply markup per offer, then filter and sort."""
    try:
        return await service.search(req, role)
    except BookingError as e:
        logger.warning(f"Search failed: {e.message}")
        raise http_error(e) from e


@router.post("/more", response_model=SearchResponse)
async def more_offers(
    req: MoreOffersParams,
    role: str = Depends(get_caller_role),
    service: BookingService = Depends(get_booking_service),
):
    """More fares from one airline for an existing search."""
    try:
        return await service.more_offers(req.trace_id, req.airline, req.source, role)
    except BookingError as e:
        logger.warning(f"GetMoreOffers failed for {req.airline}: {e.message}")
        raise http_error(e) from e
