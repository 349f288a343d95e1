"""Offer parser — maps the aggregator's offer JSON into normalized Offer models.

The aggregator nests every list item in a wrapper object
(``paxSegmentList: [{paxSegment: {...}}]``) and spells currency ``curreny``.
Missing pieces fall back to empty lists and zero amounts so a partially
malformed offer still renders.
"""

import logging

from faredesk.data.dates import parse_duration, parse_timestamp
from faredesk.data.money import to_int, to_money
from faredesk.schemas.offer import (
    Carrier,
    Endpoint,
    FareDetail,
    Money,
    Offer,
    PriceInfo,
    Segment,
    UpsellBrand,
)

logger = logging.getLogger(__name__)


def _unwrap(items: list | None, key: str) -> list[dict]:
    """``[{key: {...}}, ...]`` → ``[{...}, ...]``, skipping malformed entries."""
    result = []
    for item in items or []:
        if isinstance(item, dict):
            inner = item.get(key, item)
            if isinstance(inner, dict):
                result.append(inner)
    return result


def parse_money(raw: dict | None) -> Money:
    if not raw:
        return Money()
    return Money(
        total=to_money(raw.get("total")),
        currency=raw.get("curreny") or raw.get("currency") or "",
    )


def parse_price(raw: dict | None) -> PriceInfo:
    raw = raw or {}
    return PriceInfo(
        gross=parse_money(raw.get("gross")),
        total_payable=parse_money(raw.get("totalPayable")),
        discount=parse_money(raw["discount"]) if raw.get("discount") else None,
        total_vat=parse_money(raw["totalVAT"]) if raw.get("totalVAT") else None,
    )


def parse_fare_detail(raw: dict) -> FareDetail:
    return FareDetail(
        pax_type=raw.get("paxType") or "Adult",
        pax_count=max(to_int(raw.get("paxCount"), 1), 1),
        base_fare=to_money(raw.get("baseFare")),
        tax=to_money(raw.get("tax")),
        other_fee=to_money(raw.get("otherFee")),
        vat=to_money(raw.get("vat")),
        discount=to_money(raw.get("discount")),
        sub_total=to_money(raw.get("subTotal")),
        currency=raw.get("currency") or "",
    )


def _parse_endpoint(raw: dict | None) -> Endpoint:
    raw = raw or {}
    return Endpoint(
        location_code=raw.get("iatA_LocationCode") or "",
        scheduled_at=parse_timestamp(raw.get("aircraftScheduledDateTime")),
        terminal=raw.get("terminalName") or None,
    )


def _parse_carrier(raw: dict | None) -> Carrier:
    raw = raw or {}
    return Carrier(
        designator_code=raw.get("carrierDesigCode") or "",
        name=raw.get("carrierName") or "",
        flight_number=raw.get("marketingCarrierFlightNumber"),
    )


def parse_segment(raw: dict) -> Segment:
    return Segment(
        departure=_parse_endpoint(raw.get("departure")),
        arrival=_parse_endpoint(raw.get("arrival")),
        carrier=_parse_carrier(raw.get("marketingCarrierInfo")),
        operating_carrier=_parse_carrier(raw["operatingCarrierInfo"]) if raw.get("operatingCarrierInfo") else None,
        flight_number=str(raw.get("flightNumber") or ""),
        cabin_type=raw.get("cabinType") or "",
        rbd=raw.get("rbd") or "",
        aircraft_code=(raw.get("iatA_AircraftType") or {}).get("iatA_AircraftTypeCode"),
        duration_minutes=parse_duration(raw.get("duration")),
        segment_group=to_int(raw.get("segmentGroup"), None),
        return_journey=bool(raw.get("returnJourney")),
    )


def _parse_baggage(items: list | None) -> list[dict]:
    return _unwrap(items, "baggageAllowance")


def _parse_upsell(raw: dict) -> UpsellBrand:
    return UpsellBrand(
        offer_id=raw.get("offerId") or "",
        brand_name=raw.get("brandName") or "",
        refundable=bool(raw.get("refundable")),
        fare_details=[parse_fare_detail(f) for f in _unwrap(raw.get("fareDetailList"), "fareDetail")],
        price=parse_price(raw.get("price")),
        rbd=raw.get("rbd") or "",
        meal=bool(raw.get("meal")),
        refund_allowed=bool(raw.get("refundAllowed")),
        exchange_allowed=bool(raw.get("exchangeAllowed")),
        baggage_allowances=_parse_baggage(raw.get("baggageAllowanceList")),
    )


def parse_offer(raw: dict) -> Offer:
    """Parse one offer (or order item) body. Accepts the ``{offer: {...}}`` wrapper too."""
    if "offer" in raw and isinstance(raw["offer"], dict):
        raw = raw["offer"]

    offer_id = raw.get("offerId") or raw.get("orderItemId") or ""
    if not offer_id:
        logger.warning("Offer without offerId in response")

    seats = raw.get("seatsRemaining")
    return Offer(
        offer_id=offer_id,
        validating_carrier=raw.get("validatingCarrier") or "",
        segments=[parse_segment(s) for s in _unwrap(raw.get("paxSegmentList"), "paxSegment")],
        fare_details=[parse_fare_detail(f) for f in _unwrap(raw.get("fareDetailList"), "fareDetail")],
        price=parse_price(raw.get("price")),
        refundable=bool(raw.get("refundable")),
        fare_type=raw.get("fareType"),
        seats_remaining=str(seats) if seats is not None else None,
        source=raw.get("source"),
        upsell_brands=[_parse_upsell(u) for u in _unwrap(raw.get("upSellBrandList"), "upSellBrand")],
        baggage_allowances=_parse_baggage(raw.get("baggageAllowanceList")),
    )


def parse_offer_group(groups: list | None) -> list[Offer]:
    """Parse an ``offersGroup``-style list. Entries that are not dicts are skipped."""
    offers = []
    for group in groups or []:
        if not isinstance(group, dict):
            continue
        offers.append(parse_offer(group))
    return offers
