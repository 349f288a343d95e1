from decimal import Decimal

from pydantic import BaseModel, Field

from faredesk.schemas.offer import Offer, OfferChange, OfferShape
from faredesk.schemas.order import PassengerSlot
from faredesk.services.fare_normalizer import FareRow


class OfferView(BaseModel):
    """An offer plus its markup-adjusted display figures."""

    offer: Offer
    markup_percent: Decimal
    gross: Decimal
    total: Decimal
    discount: Decimal
    currency: str
    total_display: str = ""
    fare_rows: list[FareRow] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class SearchResponse(BaseModel):
    trace_id: str | None = None
    shape: OfferShape
    offers: list[OfferView] = Field(default_factory=list)
    outbound: list[OfferView] = Field(default_factory=list)
    inbound: list[OfferView] = Field(default_factory=list)
    cheapest: Decimal | None = None
    stops_options: list[dict] = Field(default_factory=list)


class PriceResponse(BaseModel):
    trace_id: str | None = None
    shape: OfferShape
    offers: list[OfferView] = Field(default_factory=list)
    outbound: list[OfferView] = Field(default_factory=list)
    inbound: list[OfferView] = Field(default_factory=list)
    total: Decimal
    currency: str = ""
    offer_change: OfferChange | None = None
    passengers: list[PassengerSlot] = Field(default_factory=list)
    passport_required: bool = False
    domestic: bool = False
    available_ssr: list[str] = Field(default_factory=list)
    partial_payment_info: dict | None = None


class SellResponse(BaseModel):
    trace_id: str | None = None
    offer_ids: list[str]
    offer_change: OfferChange | None = None
    response: dict = Field(default_factory=dict)


class OrderView(BaseModel):
    order_reference: str | None = None
    order_status: str | None = None
    items: list[OfferView] = Field(default_factory=list)
    total: Decimal = Decimal("0")
    currency: str = ""
    partial_payment_info: dict | None = None
    response: dict = Field(default_factory=dict)


class VerifyPriceResponse(BaseModel):
    old_total: Decimal | None = None
    new_total: Decimal | None = None
    changed: bool = False
    order: OrderView
