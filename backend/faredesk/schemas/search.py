from datetime import date
from typing import Literal

from pydantic import BaseModel, Field


class LegRequest(BaseModel):
    origin: str
    destination: str
    date: date


class FlightSearchParams(BaseModel):
    trip_type: str = "oneway"
    legs: list[LegRequest] = Field(min_length=1)
    adults: int = Field(default=1, ge=1)
    children: int = Field(default=0, ge=0)
    infants: int = Field(default=0, ge=0)
    cabin: str = "Economy"
    paired_oneway: bool = False
    vendor_pref: list[str] = Field(default_factory=list)

    # Result shaping
    stops: Literal["0", "1", "2", "3+"] | None = None
    sort_by: Literal["departure", "price", "layover"] | None = None
    sort_order: Literal["asc", "desc", "shortest", "longest"] | None = None
    airline: str | None = None


class MoreOffersParams(BaseModel):
    trace_id: str
    airline: str
    source: str = ""
