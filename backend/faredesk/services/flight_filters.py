"""Result-page filters and sorts for priced search results."""

import sys
from collections import defaultdict
from decimal import Decimal

from faredesk.schemas.offer import Offer, PricedOffer, Segment

NO_LAYOVER = sys.maxsize

STOPS_LABELS = {"0": "Non-stop", "1": "1 Stop", "2": "2 Stops", "3+": "3+ Stops"}


def leg_stops(offer: Offer) -> list[int]:
    """Stops per leg. Segments are grouped by segment_group, or by return_journey without one."""
    if not offer.segments:
        return [0]
    groups: dict[int, list[Segment]] = defaultdict(list)
    for segment in offer.segments:
        groups[segment.leg_index].append(segment)
    return [max(0, len(leg) - 1) for leg in groups.values()]


def _layovers(segments: list[Segment]) -> list[float]:
    timed = sorted(
        (s for s in segments if s.departure.scheduled_at and s.arrival.scheduled_at),
        key=lambda s: s.departure.scheduled_at,
    )
    return [
        (nxt.departure.scheduled_at - cur.arrival.scheduled_at).total_seconds() / 60
        for cur, nxt in zip(timed, timed[1:])
    ]


def layover_minutes(offer: Offer) -> list[float]:
    """All connection times in minutes, computed within each leg."""
    grouped = [s.segment_group for s in offer.segments if s.segment_group is not None]
    if not grouped:
        return _layovers(offer.segments)
    result = []
    for group in sorted(set(grouped)):
        result.extend(_layovers([s for s in offer.segments if s.segment_group == group]))
    return result


def _matches_stops(stops: list[int], stops_filter: str) -> bool:
    if stops_filter == "0":
        return all(s == 0 for s in stops)
    if stops_filter == "1":
        return any(s == 1 for s in stops) and all(s <= 1 for s in stops)
    if stops_filter == "2":
        return any(s == 2 for s in stops) and all(s <= 2 for s in stops)
    if stops_filter == "3+":
        return any(s >= 3 for s in stops)
    return True


def filter_by_stops(offers: list[PricedOffer], stops_filter: str | None) -> list[PricedOffer]:
    if not stops_filter:
        return list(offers)
    return [p for p in offers if _matches_stops(leg_stops(p.offer), stops_filter)]


def _departure_key(priced: PricedOffer) -> str:
    segments = priced.offer.segments
    if not segments or not segments[0].departure.scheduled_at:
        return ""
    return segments[0].departure.scheduled_at.isoformat()


def _layover_key(priced: PricedOffer, longest: bool) -> float:
    layovers = layover_minutes(priced.offer)
    if not layovers:
        return NO_LAYOVER
    return max(layovers) if longest else min(layovers)


def sort_offers(offers: list[PricedOffer], by: str | None, order: str | None = None) -> list[PricedOffer]:
    """Sort by departure/price (asc|desc) or layover (shortest|longest). Stable."""
    if not by or not order:
        return list(offers)

    if by == "departure":
        return sorted(offers, key=_departure_key, reverse=order == "desc")
    if by == "price":
        return sorted(offers, key=lambda p: p.total_payable, reverse=order == "desc")
    if by == "layover":
        longest = order == "longest"
        return sorted(offers, key=lambda p: _layover_key(p, longest), reverse=longest)
    return list(offers)


def first_marketing_carrier(offer: Offer) -> str:
    if not offer.segments:
        return ""
    return offer.segments[0].carrier.designator_code.upper()


def filter_by_airline(offers: list[PricedOffer], airline: str | None) -> list[PricedOffer]:
    if not airline:
        return list(offers)
    airline = airline.upper()
    return [p for p in offers if first_marketing_carrier(p.offer) == airline]


def stops_options(offers: list[Offer]) -> list[dict]:
    """Stops filter choices up to the largest stop count among the offers."""
    max_stops = max((max(0, len(o.segments) - 1) for o in offers), default=0)
    values = ["0", "1", "2", "3+"][: min(max_stops, 3) + 1]
    return [{"value": v, "label": STOPS_LABELS[v]} for v in values]


def cheapest(offers: list[PricedOffer]) -> Decimal | None:
    if not offers:
        return None
    return min(p.total_payable for p in offers)
