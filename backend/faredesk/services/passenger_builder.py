"""Passenger/form builder — turns passenger and contact forms into the OrderSell/OrderCreate request body."""

import logging
from datetime import date, timedelta

from faredesk.data.airports import DEFAULT_NATIONALITY, is_domestic_route
from faredesk.data.dates import months_after, to_iso_date, years_before
from faredesk.schemas.offer import Offer, PaxType, Segment
from faredesk.schemas.order import ContactForm, PassengerForm, PassengerSlot
from faredesk.services.errors import FormValidationError

logger = logging.getLogger(__name__)

INVALID_DOB_MESSAGE = "Date of birth must be a valid date (YYYY-MM-DD)."


def passenger_list(offer: Offer) -> list[PassengerSlot]:
    """One slot per traveller, in fare-row order (rows expanded by pax_count)."""
    slots = []
    for fare in offer.fare_details:
        for i in range(fare.pax_count):
            slots.append(PassengerSlot(ptc=fare.pax_type, index=i))
    return slots


def is_domestic(segments: list[Segment]) -> bool:
    if not segments:
        return False
    return all(is_domestic_route(s.departure.location_code, s.arrival.location_code) for s in segments)


def last_arrival_date(segments: list[Segment]) -> date | None:
    arrivals = [s.arrival.scheduled_at for s in segments if s.arrival.scheduled_at]
    if not arrivals:
        return None
    return max(arrivals).date()


def domestic_defaults(
    slots: list[PassengerSlot],
    passengers: list[PassengerForm],
    today: date | None = None,
) -> list[PassengerForm]:
    """Pre-fill nationality, document and birthdate for domestic itineraries.

    Only fields the traveller left blank are filled.
    """
    today = today or date.today()
    expiry = months_after(today, 6).isoformat()
    filled = []
    for i, p in enumerate(passengers):
        ptc = slots[i].ptc if i < len(slots) else PaxType.ADULT.value
        birthdate = p.birthdate
        if not birthdate:
            if ptc == PaxType.ADULT.value:
                birthdate = years_before(today, 18).isoformat()
            elif ptc == PaxType.CHILD.value:
                birthdate = (years_before(today, 5) - timedelta(days=1)).isoformat()
            elif ptc == PaxType.INFANT.value:
                birthdate = (years_before(today, 1) - timedelta(days=1)).isoformat()
        filled.append(p.model_copy(update={
            "nationality": p.nationality or DEFAULT_NATIONALITY,
            "identity_doc_id": p.identity_doc_id or f"DOCSBD{27 + i}",
            "expiry_date": p.expiry_date or expiry,
            "birthdate": birthdate,
        }))
    return filled


def dob_constraints(ptc: str, last_arrival: date | None, today: date | None = None) -> tuple[date | None, date | None]:
    """(earliest, latest) allowed birthdate for a passenger type, judged at the last arrival."""
    if not last_arrival or not ptc:
        return None, None
    today = today or date.today()
    if ptc == PaxType.ADULT.value:
        return None, years_before(last_arrival, 12) - timedelta(days=1)
    if ptc == PaxType.CHILD.value:
        return years_before(last_arrival, 12), years_before(last_arrival, 2) - timedelta(days=1)
    if ptc == PaxType.INFANT.value:
        return years_before(last_arrival, 2), today
    return None, None


def validate_dob(dob: str, ptc: str, last_arrival: date | None, today: date | None = None) -> str | None:
    """Error message for an unreadable or out-of-range birthdate, or None."""
    if not dob:
        return None
    try:
        dob_date = date.fromisoformat(to_iso_date(dob))
    except ValueError:
        return INVALID_DOB_MESSAGE
    if not ptc or not last_arrival:
        return None

    earliest, latest = dob_constraints(ptc, last_arrival, today)
    if ptc == PaxType.ADULT.value and dob_date > latest:
        return f"Adult must be at least 12 years old. DOB must be on or before {latest.isoformat()}."
    if ptc == PaxType.CHILD.value and (dob_date > latest or dob_date < earliest):
        return (
            f"Child must be between 2 and 12 years. DOB must be between "
            f"{earliest.isoformat()} and {latest.isoformat()}."
        )
    if ptc == PaxType.INFANT.value:
        if dob_date < earliest:
            return f"Infant must be under 2 years old. DOB must be on or after {earliest.isoformat()}."
        if dob_date > latest:
            return "Date of birth cannot be in the future."
    return None


def validate_form(
    contact: ContactForm,
    passengers: list[PassengerForm],
    passport_required: bool,
) -> str | None:
    if not contact.email or not contact.phone or not contact.country_dialing_code:
        return "Please fill in all contact information."
    for i, p in enumerate(passengers):
        if not p.given_name or not p.surname or not p.gender or not p.birthdate:
            return f"Please fill in all required fields for passenger #{i + 1}."
        if passport_required and (not p.nationality or not p.identity_doc_id or not p.expiry_date):
            return f"Please fill in all required fields for passenger #{i + 1}."
    return None


def _infant_to_adult(slots: list[PassengerSlot]) -> dict[int, int]:
    """Pair the n-th infant with the n-th adult. Unpaired infants are left out."""
    adults = [i for i, s in enumerate(slots) if s.ptc == PaxType.ADULT.value]
    infants = [i for i, s in enumerate(slots) if s.ptc == PaxType.INFANT.value]
    if len(infants) > len(adults):
        logger.warning(
            f"{len(infants)} infants but only {len(adults)} adults; "
            f"{len(infants) - len(adults)} infant(s) sent without associatePax"
        )
    return {infant: adult for infant, adult in zip(infants, adults)}


def _sell_ssr(p: PassengerForm) -> list[dict] | None:
    fields = (p.ssr_code, p.ssr_remark, p.loyalty_airline, p.loyalty_account)
    if not any(f and f.strip() for f in fields):
        return None
    entry: dict = {}
    if p.ssr_code:
        entry["ssrCode"] = p.ssr_code
    if p.ssr_remark:
        entry["ssrRemark"] = p.ssr_remark
    if p.loyalty_airline or p.loyalty_account:
        account = {}
        if p.loyalty_airline:
            account["airlineDesigCode"] = p.loyalty_airline
        if p.loyalty_account:
            account["accountNumber"] = p.loyalty_account
        entry["loyaltyProgramAccount"] = account
    return [entry]


def build_order_request(
    slots: list[PassengerSlot],
    passengers: list[PassengerForm],
    contact: ContactForm,
) -> dict:
    """Assemble the ``request`` body shared by OrderSell and OrderCreate."""
    pairing = _infant_to_adult(slots)
    pax_list = []
    for idx, p in enumerate(passengers):
        ptc = slots[idx].ptc if idx < len(slots) else None
        individual = {
            "givenName": p.given_name,
            "surname": p.surname,
            "gender": p.gender,
            "birthdate": to_iso_date(p.birthdate),
            "nationality": p.nationality,
            "identityDoc": {
                "identityDocType": p.identity_doc_type,
                "identityDocID": p.identity_doc_id,
                "expiryDate": to_iso_date(p.expiry_date),
            },
        }
        if ptc == PaxType.INFANT.value and idx in pairing:
            adult = passengers[pairing[idx]]
            individual["associatePax"] = {"givenName": adult.given_name, "surname": adult.surname}

        entry = {"ptc": ptc, "individual": individual}
        sell_ssr = _sell_ssr(p)
        if sell_ssr:
            entry["sellSSR"] = sell_ssr
        pax_list.append(entry)

    return {
        "contactInfo": {
            "phone": {
                "phoneNumber": contact.phone,
                "countryDialingCode": contact.country_dialing_code,
            },
            "emailAddress": contact.email,
        },
        "paxList": pax_list,
    }


def validate_order_sell_request(
    trace_id: str | None,
    offer_ids: list[str],
    request: dict,
    passport_required: bool,
) -> str | None:
    if not trace_id:
        return "Missing traceId"
    if not offer_ids:
        return "Missing offerId"
    contact = request.get("contactInfo") or {}
    phone = contact.get("phone") or {}
    if not phone.get("phoneNumber") or not phone.get("countryDialingCode") or not contact.get("emailAddress"):
        return "Missing contact info"
    pax_list = request.get("paxList") or []
    if not pax_list:
        return "Missing passenger list"
    for i, pax in enumerate(pax_list):
        individual = pax.get("individual") or {}
        if not pax.get("ptc") or not all(
            individual.get(k) for k in ("givenName", "surname", "gender", "birthdate")
        ):
            return f"Missing required field for passenger #{i + 1}"
        if passport_required:
            doc = individual.get("identityDoc") or {}
            if not individual.get("nationality") or not all(
                doc.get(k) for k in ("identityDocType", "identityDocID", "expiryDate")
            ):
                return f"Missing required field for passenger #{i + 1}"
    return None


def prepare_order_request(
    trace_id: str | None,
    offer_ids: list[str],
    slots: list[PassengerSlot],
    passengers: list[PassengerForm],
    contact: ContactForm,
    passport_required: bool,
    last_arrival: date | None = None,
) -> dict:
    """Validate forms, build the request and re-check it. Raises FormValidationError."""
    if len(passengers) != len(slots):
        raise FormValidationError(
            f"Expected {len(slots)} passengers for this offer, got {len(passengers)}."
        )
    error = validate_form(contact, passengers, passport_required)
    if error:
        raise FormValidationError(error)
    for slot, p in zip(slots, passengers):
        error = validate_dob(p.birthdate, slot.ptc, last_arrival)
        if error:
            raise FormValidationError(error)
    request = build_order_request(slots, passengers, contact)
    error = validate_order_sell_request(trace_id, offer_ids, request, passport_required)
    if error:
        raise FormValidationError(error)
    return request
