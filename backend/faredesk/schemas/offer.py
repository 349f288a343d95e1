"""Normalized offer models shared by the reconciler, the normalizer and the routers."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, computed_field


class PaxType(str, Enum):
    ADULT = "Adult"
    CHILD = "Child"
    INFANT = "Infant"


class OfferShape(str, Enum):
    """How a search/price response resolved into selectable offers."""

    SINGLE = "single"
    COMBINED = "combined"
    SPLIT = "split"
    MULTI_CARRIER = "multi_carrier"
    PAIRED_ONEWAY = "paired_oneway"
    LISTING = "listing"
    EMPTY = "empty"


class Money(BaseModel):
    total: Decimal = Decimal("0")
    currency: str = ""

    model_config = {"frozen": True}


class PriceInfo(BaseModel):
    gross: Money = Money()
    total_payable: Money = Money()
    discount: Money | None = None
    total_vat: Money | None = None

    model_config = {"frozen": True}


class FareDetail(BaseModel):
    """Per passenger-type cost row. Amounts are per passenger of this type."""

    pax_type: str
    pax_count: int = 1
    base_fare: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    other_fee: Decimal = Decimal("0")
    vat: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    sub_total: Decimal = Decimal("0")
    currency: str = ""

    model_config = {"frozen": True}


class Endpoint(BaseModel):
    location_code: str = ""
    scheduled_at: datetime | None = None
    terminal: str | None = None

    model_config = {"frozen": True}


class Carrier(BaseModel):
    designator_code: str = ""
    name: str = ""
    flight_number: str | None = None

    model_config = {"frozen": True}


class Segment(BaseModel):
    departure: Endpoint = Endpoint()
    arrival: Endpoint = Endpoint()
    carrier: Carrier = Carrier()
    operating_carrier: Carrier | None = None
    flight_number: str = ""
    cabin_type: str = ""
    rbd: str = ""
    aircraft_code: str | None = None
    duration_minutes: int = 0
    segment_group: int | None = None
    return_journey: bool = False

    model_config = {"frozen": True}

    @property
    def leg_index(self) -> int:
        """0 for outbound, 1 for inbound."""
        if self.segment_group is not None:
            return self.segment_group
        return 1 if self.return_journey else 0


class UpsellBrand(BaseModel):
    offer_id: str
    brand_name: str = ""
    refundable: bool = False
    fare_details: list[FareDetail] = Field(default_factory=list)
    price: PriceInfo = PriceInfo()
    rbd: str = ""
    meal: bool = False
    refund_allowed: bool = False
    exchange_allowed: bool = False
    baggage_allowances: list[dict] = Field(default_factory=list)

    model_config = {"frozen": True}


class Offer(BaseModel):
    """One priced itinerary candidate, as quoted by the airline (pre-markup)."""

    offer_id: str
    validating_carrier: str = ""
    segments: list[Segment] = Field(default_factory=list)
    fare_details: list[FareDetail] = Field(default_factory=list)
    price: PriceInfo = PriceInfo()
    refundable: bool = False
    fare_type: str | None = None
    seats_remaining: str | None = None
    source: str | None = None
    upsell_brands: list[UpsellBrand] = Field(default_factory=list)
    baggage_allowances: list[dict] = Field(default_factory=list)

    model_config = {"frozen": True}

    @property
    def is_outbound_half(self) -> bool:
        return self.offer_id.endswith("_OB")

    @property
    def is_inbound_half(self) -> bool:
        return self.offer_id.endswith("_IB")

    @property
    def airline_code(self) -> str:
        """Validating carrier, falling back to the first segment's marketing carrier."""
        if self.validating_carrier:
            return self.validating_carrier
        if self.segments:
            return self.segments[0].carrier.designator_code
        return ""

    @property
    def origin(self) -> str | None:
        return self.segments[0].departure.location_code if self.segments else None

    @property
    def destination(self) -> str | None:
        return self.segments[-1].arrival.location_code if self.segments else None

    @property
    def currency(self) -> str:
        if self.fare_details and self.fare_details[0].currency:
            return self.fare_details[0].currency
        return self.price.total_payable.currency or self.price.gross.currency


class AdjustedFare(BaseModel):
    """A fare row before and after markup. ``original`` is never modified."""

    original: FareDetail
    adjusted: FareDetail
    applied: bool = False

    model_config = {"frozen": True}

    @property
    def original_base_fare(self) -> Decimal:
        return self.original.base_fare


class PricedOffer(BaseModel):
    """An offer with markup-adjusted fare rows and the derived payable total."""

    offer: Offer
    fares: list[AdjustedFare] = Field(default_factory=list)
    markup_percent: Decimal = Decimal("0")
    warnings: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}

    @computed_field
    @property
    def markup_applied(self) -> bool:
        return bool(self.fares) and all(f.applied for f in self.fares)

    @computed_field
    @property
    def total_payable(self) -> Decimal:
        return sum((f.adjusted.sub_total for f in self.fares), Decimal("0"))


class OfferChange(BaseModel):
    type_of_change: str
    message: str


class ReconciledOffers(BaseModel):
    """Tagged result of reconciling a search or price response."""

    shape: OfferShape
    offers: list[Offer] = Field(default_factory=list)
    outbound: list[Offer] = Field(default_factory=list)
    inbound: list[Offer] = Field(default_factory=list)
    trace_id: str | None = None
    offer_change: OfferChange | None = None
    accepted: bool = True
    passport_required: bool = False
    available_ssr: list[str] = Field(default_factory=list)
    partial_payment_info: dict | None = None

    @property
    def offer_ids(self) -> list[str]:
        return [o.offer_id for o in self.offers]

    @property
    def is_paired_oneway(self) -> bool:
        return self.shape == OfferShape.PAIRED_ONEWAY

    def all_offers(self) -> list[Offer]:
        return [*self.offers, *self.outbound, *self.inbound]
