"""Builds AirShopping request bodies from search parameters."""

from faredesk.config import settings
from faredesk.schemas.search import FlightSearchParams, LegRequest
from faredesk.services.errors import FormValidationError

TRIP_TYPES = {
    "oneway": "Oneway",
    "return": "Return",
    "roundtrip": "Return",
    "circle": "Circle",
    "multicity": "Circle",
}

CABIN_CODES = {"economy": "Economy", "business": "Business", "first": "First"}


def api_trip_type(trip_type: str | None) -> str:
    """Map a trip type in any case to the API spelling. Unknown values mean one-way."""
    return TRIP_TYPES.get((trip_type or "").lower(), "Oneway")


def generate_passenger_ids(adults: int, children: int, infants: int) -> list[dict]:
    """PAX1..n: adults as ADT, then children as C05, then infants as INF."""
    pax = []
    pax_id = 1
    for ptc, count in (("ADT", adults), ("C05", children), ("INF", infants)):
        for _ in range(count):
            pax.append({"paxID": f"PAX{pax_id}", "ptc": ptc})
            pax_id += 1
    return pax


def _origin_dest(leg: LegRequest) -> dict:
    return {
        "originDepRequest": {
            "iatA_LocationCode": leg.origin.upper(),
            "date": leg.date.isoformat(),
        },
        "destArrivalRequest": {
            "iatA_LocationCode": leg.destination.upper(),
        },
    }


def build_search_request(params: FlightSearchParams) -> dict:
    trip_type = api_trip_type(params.trip_type)

    if trip_type == "Oneway":
        legs = params.legs[:1]
    elif trip_type == "Return":
        if len(params.legs) < 2:
            raise FormValidationError("Return flight details are required")
        legs = params.legs[:2]
    else:
        legs = params.legs

    if params.infants > params.adults:
        raise FormValidationError("Each infant must travel with an adult")

    criteria: dict = {
        "tripType": trip_type,
        "travelPreferences": {
            "vendorPref": params.vendor_pref,
            "cabinCode": CABIN_CODES.get(params.cabin.lower(), "Economy"),
        },
        "returnUPSellInfo": True,
    }
    if trip_type == "Oneway":
        criteria["preferCombine"] = True
    elif trip_type == "Return" and params.paired_oneway:
        criteria["preferCombine"] = False

    return {
        "pointOfSale": settings.point_of_sale,
        "request": {
            "originDest": [_origin_dest(leg) for leg in legs],
            "pax": generate_passenger_ids(params.adults, params.children, params.infants),
            "shoppingCriteria": criteria,
        },
    }
