"""Offers router — offer pricing and fare rules."""

import logging

from fastapi import APIRouter, Depends

from faredesk.dependencies import get_booking_service, get_caller_role, http_error
from faredesk.schemas.booking import PriceResponse
from faredesk.schemas.order import OfferPriceRequest, RuleRequest
from faredesk.services.booking_flow import BookingService
from faredesk.services.errors import BookingError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/price", response_model=PriceResponse)
async def price_offer(
    req: OfferPriceRequest,
    role: str = Depends(get_caller_role),
    service: BookingService = Depends(get_booking_service),
):
    """Re-price the selected offers.

    A price or booking-class change answers 409 ``offer_changed`` until the
    request is repeated with ``accept_changes`` set.
    """
    try:
        return await service.price(req.trace_id, req.offer_ids, req.accept_changes, role)
    except BookingError as e:
        logger.warning(f"OfferPrice failed for trace {req.trace_id}: {e.message}")
        raise http_error(e) from e


@router.post("/fare-rules")
async def fare_rules(
    req: RuleRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.fare_rules(req.trace_id, req.offer_id)
    except BookingError as e:
        raise http_error(e) from e


@router.post("/mini-rule")
async def mini_rule(
    req: RuleRequest,
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.mini_rule(req.trace_id, req.offer_id)
    except BookingError as e:
        raise http_error(e) from e
