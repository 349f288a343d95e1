from decimal import Decimal

import pytest

from faredesk.services.cache_service import CacheService
from faredesk.services.markup_resolver import MarkupResolver, MarkupSource


def make_segment(origin, dest, dep, arr, carrier="BG", group=None, return_journey=False):
    seg = {
        "departure": {"iatA_LocationCode": origin, "aircraftScheduledDateTime": dep},
        "arrival": {"iatA_LocationCode": dest, "aircraftScheduledDateTime": arr},
        "marketingCarrierInfo": {"carrierDesigCode": carrier, "carrierName": carrier},
        "flightNumber": "147",
        "cabinType": "Economy",
        "rbd": "Y",
        "duration": "PT1H",
        "returnJourney": return_journey,
    }
    if group is not None:
        seg["segmentGroup"] = group
    return {"paxSegment": seg}


def make_fare(pax_type="Adult", base=6000, tax=400, other=0, vat=35, count=1, currency="BDT"):
    return {
        "fareDetail": {
            "paxType": pax_type,
            "paxCount": count,
            "baseFare": base,
            "tax": tax,
            "otherFee": other,
            "vat": vat,
            "discount": 0,
            "subTotal": base + tax + vat,
            "currency": currency,
        }
    }


def make_raw_offer(offer_id="OFF1", carrier="BG", fares=None, segments=None, gross=None):
    fares = fares if fares is not None else [make_fare()]
    segments = segments if segments is not None else [
        make_segment("DAC", "CXB", "2026-11-20T10:00:00", "2026-11-20T11:00:00", carrier),
    ]
    payable = sum(
        (f["fareDetail"]["baseFare"] + f["fareDetail"]["tax"] + f["fareDetail"]["vat"]) * f["fareDetail"]["paxCount"]
        for f in fares
    )
    return {
        "offer": {
            "offerId": offer_id,
            "validatingCarrier": carrier,
            "refundable": True,
            "fareType": "OnHold",
            "paxSegmentList": segments,
            "fareDetailList": fares,
            "price": {
                "gross": {"total": gross if gross is not None else payable, "curreny": "BDT"},
                "totalPayable": {"total": payable, "curreny": "BDT"},
            },
            "seatsRemaining": "9",
        }
    }


def make_payload(offers=None, trace_id="TRACE-1", **extra):
    response = {"offersGroup": offers or []}
    if trace_id:
        response["traceId"] = trace_id
    response.update(extra)
    return {"success": True, "response": response}


class FakeMarkupSource(MarkupSource):
    """In-memory rules keyed like the markups table."""

    def __init__(self, routes=None, airlines=None, fail=False):
        self.routes = routes or {}
        self.airlines = airlines or {}
        self.fail = fail
        self.calls = 0

    async def route_markup(self, airline_code, role, origin_code, destination_code):
        self.calls += 1
        if self.fail:
            raise RuntimeError("markup store offline")
        value = self.routes.get((airline_code, role, origin_code, destination_code))
        return Decimal(str(value)) if value is not None else None

    async def airline_markup(self, airline_code, role):
        self.calls += 1
        if self.fail:
            raise RuntimeError("markup store offline")
        value = self.airlines.get((airline_code, role))
        return Decimal(str(value)) if value is not None else None


class FakeCache(CacheService):
    """CacheService backed by a dict instead of Redis."""

    def __init__(self):
        super().__init__(url="redis://unused")
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ttl=0):
        self.store[key] = value
        return True

    async def delete(self, key):
        self.store.pop(key, None)
        return True

    async def invalidate_markups(self, airline, role):
        prefix = f"markup:{airline}:{role}:"
        keys = [k for k in self.store if k.startswith(prefix)]
        for k in keys:
            del self.store[k]
        return len(keys)


class FakeBookingClient:
    """Records calls and returns canned payloads per endpoint."""

    def __init__(self, **responses):
        self.responses = responses
        self.calls = []

    def _answer(self, name, *args):
        self.calls.append((name, args))
        answer = self.responses.get(name, {"success": True, "response": {}})
        if isinstance(answer, Exception):
            raise answer
        if isinstance(answer, list):
            return answer.pop(0)
        return answer

    async def search(self, body):
        return self._answer("search", body)

    async def get_more_offers(self, trace_id, airline, source=""):
        return self._answer("get_more_offers", trace_id, airline, source)

    async def fare_rules(self, trace_id, offer_id):
        return self._answer("fare_rules", trace_id, offer_id)

    async def mini_rule(self, trace_id, offer_id):
        return self._answer("mini_rule", trace_id, offer_id)

    async def offer_price(self, trace_id, offer_ids):
        return self._answer("offer_price", trace_id, offer_ids)

    async def order_sell(self, trace_id, offer_ids, request):
        return self._answer("order_sell", trace_id, offer_ids, request)

    async def order_create(self, trace_id, offer_ids, request):
        return self._answer("order_create", trace_id, offer_ids, request)

    async def order_retrieve(self, order_reference):
        return self._answer("order_retrieve", order_reference)

    async def order_cancel(self, order_reference):
        return self._answer("order_cancel", order_reference)

    async def reshop_price(self, order_reference):
        return self._answer("reshop_price", order_reference)

    async def order_change(self, order_reference, partial_payment=False):
        return self._answer("order_change", order_reference, partial_payment)

    def called(self, name):
        return [args for n, args in self.calls if n == name]


@pytest.fixture
def fake_cache():
    return FakeCache()


@pytest.fixture
def resolver():
    source = FakeMarkupSource(airlines={("BG", "USER"): 5, ("BG", "AGENT"): -10})
    return MarkupResolver(source)
