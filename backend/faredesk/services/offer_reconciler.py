"""Offer reconciler — decides which offers a search/price response really contains.

Response shapes handled:
  * one offer                                   → SINGLE
  * several offers, one validating carrier      → COMBINED (the offer without
    an ``_OB``/``_IB`` suffix), or SPLIT when no combined offer exists
  * several offers, mixed carriers              → MULTI_CARRIER
  * no offersGroup, specialReturnOffersGroup    → PAIRED_ONEWAY (ob/ib kept apart)

At search time nothing is collapsed: every offer is a candidate (LISTING).
The trace id from the response root supersedes the previous one; a response
without one keeps the previous id.
"""

import logging
from enum import Enum

from faredesk.schemas.offer import Offer, OfferChange, OfferShape, ReconciledOffers
from faredesk.services.errors import (
    BookingCancelled,
    FareUnavailableError,
    OfferChangePending,
    UpstreamError,
)
from faredesk.services.offer_parser import parse_offer_group

logger = logging.getLogger(__name__)

FARE_UNAVAILABLE_MESSAGE = (
    "The selected fare is no longer available. Please go back and try another option."
)
CHANGE_DECLINED_MESSAGE = "Booking cancelled due to changes in flight details."

CHANGE_MESSAGES = {
    "Both": "Both price and booking class have changed. Do you want to continue?",
    "Price": "The price has changed. Do you want to continue?",
    "BookingClass": "The booking class has changed. Do you want to continue?",
}
DEFAULT_CHANGE_MESSAGE = "There have been changes to your selected flight. Do you want to continue?"


class Stage(str, Enum):
    SEARCH = "search"
    PRICE = "price"


def check_response(payload: dict, fallback_message: str = FARE_UNAVAILABLE_MESSAGE) -> None:
    """Raise for explicit failure bodies: ``success: false`` / ``info.error`` / ``error``."""
    info_error = (payload.get("info") or {}).get("error")
    if payload.get("success") is False or info_error:
        message = (
            (info_error or {}).get("errorMessage")
            or (payload.get("error") or {}).get("message")
            or payload.get("message")
            or fallback_message
        )
        raise FareUnavailableError(message)

    error = payload.get("error")
    if error:
        if isinstance(error, dict):
            message = error.get("errorMessage") or error.get("message") or "Server error"
        else:
            message = str(error)
        raise UpstreamError(message)


def detect_offer_change(response: dict) -> OfferChange | None:
    info = response.get("offerChangeInfo")
    if not info:
        return None
    type_of_change = "Unknown"
    if isinstance(info, dict):
        type_of_change = info.get("typeOfChange") or "Unknown"
    return OfferChange(
        type_of_change=type_of_change,
        message=CHANGE_MESSAGES.get(type_of_change, DEFAULT_CHANGE_MESSAGE),
    )


def _is_split_half(offer: Offer) -> bool:
    return offer.is_outbound_half or offer.is_inbound_half


def _resolve_shape(offers: list[Offer], stage: Stage) -> tuple[OfferShape, list[Offer]]:
    if not offers:
        return OfferShape.EMPTY, []
    if len(offers) == 1:
        return OfferShape.SINGLE, offers
    if stage == Stage.SEARCH:
        return OfferShape.LISTING, offers

    first_carrier = offers[0].validating_carrier
    if all(o.validating_carrier == first_carrier for o in offers):
        combined = next((o for o in offers if o.offer_id and not _is_split_half(o)), None)
        if combined is not None:
            return OfferShape.COMBINED, [combined]
        logger.warning(
            f"No combined offer among {len(offers)} offers from {first_carrier}; keeping all split offers"
        )
        return OfferShape.SPLIT, [o for o in offers if o.offer_id]

    return OfferShape.MULTI_CARRIER, [o for o in offers if o.offer_id]


def reconcile(
    payload: dict,
    previous_trace_id: str | None = None,
    stage: Stage = Stage.PRICE,
) -> ReconciledOffers:
    """Normalize a search or offer-price payload into a ReconciledOffers result.

    Raises FareUnavailableError / UpstreamError for explicit failure bodies.
    A change notice does not raise here; the result comes back with
    ``accepted=False`` and must go through ``confirm_offer_change``.
    """
    check_response(payload)
    response = payload.get("response") or {}

    trace_id = response.get("traceId") or previous_trace_id
    if response.get("traceId") and previous_trace_id and response["traceId"] != previous_trace_id:
        logger.info(f"Trace id rotated: {previous_trace_id} -> {response['traceId']}")

    offers = parse_offer_group(response.get("offersGroup"))
    shape, selected = _resolve_shape(offers, stage)

    outbound: list[Offer] = []
    inbound: list[Offer] = []
    special = response.get("specialReturnOffersGroup") or {}
    if not offers and special:
        outbound = parse_offer_group(special.get("ob"))
        inbound = parse_offer_group(special.get("ib"))
        if outbound or inbound:
            shape = OfferShape.PAIRED_ONEWAY
            selected = []

    offer_change = detect_offer_change(response)

    result = ReconciledOffers(
        shape=shape,
        offers=selected,
        outbound=outbound,
        inbound=inbound,
        trace_id=trace_id,
        offer_change=offer_change,
        accepted=offer_change is None,
        passport_required=bool(response.get("passportRequired")),
        available_ssr=list(response.get("availableSSR") or []),
        partial_payment_info=response.get("partialPaymentInfo"),
    )
    logger.info(
        f"Reconciled {stage.value} response: shape={shape.value} offers={len(selected)} "
        f"ob={len(outbound)} ib={len(inbound)} trace={trace_id}"
    )
    return result


def confirm_offer_change(result: ReconciledOffers, accept: bool | None) -> ReconciledOffers:
    """Apply the caller's answer to a pending change notice.

    ``None`` means the caller has not answered yet: OfferChangePending is raised.
    ``False`` declines: BookingCancelled is raised. ``True`` accepts.
    """
    if result.accepted:
        return result
    change = result.offer_change
    if accept is None:
        raise OfferChangePending(change.type_of_change, change.message)
    if not accept:
        raise BookingCancelled(CHANGE_DECLINED_MESSAGE)
    return result.model_copy(update={"accepted": True})


def require_accepted(result: ReconciledOffers) -> ReconciledOffers:
    if not result.accepted:
        change = result.offer_change
        raise OfferChangePending(change.type_of_change, change.message)
    return result
