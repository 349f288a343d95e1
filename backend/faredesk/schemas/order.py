from pydantic import BaseModel, Field

from faredesk.data.airports import DEFAULT_DIALING_CODE


class ContactForm(BaseModel):
    email: str = ""
    phone: str = ""
    country_dialing_code: str = DEFAULT_DIALING_CODE


class PassengerForm(BaseModel):
    given_name: str = ""
    surname: str = ""
    gender: str = ""
    birthdate: str = ""
    nationality: str = ""
    identity_doc_type: str = "Passport"
    identity_doc_id: str = ""
    expiry_date: str = ""
    ssr_code: str = ""
    ssr_remark: str = ""
    loyalty_airline: str = ""
    loyalty_account: str = ""


class PassengerSlot(BaseModel):
    """One traveller position derived from an offer's fare rows."""

    ptc: str
    index: int


class OfferPriceRequest(BaseModel):
    trace_id: str
    offer_ids: list[str] = Field(min_length=1)
    accept_changes: bool | None = None


class OrderSellRequest(BaseModel):
    trace_id: str
    offer_ids: list[str] = Field(default_factory=list)
    contact: ContactForm
    passengers: list[PassengerForm]
    accept_changes: bool | None = None


class OrderCreateRequest(BaseModel):
    trace_id: str
    offer_ids: list[str] = Field(default_factory=list)
    contact: ContactForm | None = None
    passengers: list[PassengerForm] | None = None
    created_by: str | None = None


class OrderReferenceRequest(BaseModel):
    order_reference: str


class VerifyPriceRequest(BaseModel):
    order_reference: str
    accept_changes: bool | None = None


class ConfirmOrderRequest(BaseModel):
    order_reference: str
    partial_payment: bool = False


class RuleRequest(BaseModel):
    trace_id: str
    offer_id: str
