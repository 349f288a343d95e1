from datetime import date

import pytest

from conftest import make_fare, make_raw_offer, make_segment
from faredesk.schemas.order import ContactForm, PassengerForm, PassengerSlot
from faredesk.services.errors import FormValidationError
from faredesk.services.offer_parser import parse_offer
from faredesk.services.passenger_builder import (
    INVALID_DOB_MESSAGE,
    build_order_request,
    domestic_defaults,
    is_domestic,
    last_arrival_date,
    passenger_list,
    prepare_order_request,
    validate_dob,
    validate_form,
    validate_order_sell_request,
)

CONTACT = ContactForm(email="rahim@example.com", phone="1711000000")


def passenger(given, surname, birthdate="1990-01-15", **extra):
    return PassengerForm(
        given_name=given,
        surname=surname,
        gender="Male",
        birthdate=birthdate,
        nationality="BD",
        identity_doc_id="A1234567",
        expiry_date="2030-01-01",
        **extra,
    )


def slots(*ptcs):
    return [PassengerSlot(ptc=p, index=i) for i, p in enumerate(ptcs)]


def test_passenger_list_expands_pax_count():
    offer = parse_offer(make_raw_offer(fares=[
        make_fare("Adult", count=2),
        make_fare("Infant", count=1),
    ]))
    assert [s.ptc for s in passenger_list(offer)] == ["Adult", "Adult", "Infant"]


def test_domestic_detection():
    domestic = parse_offer(make_raw_offer()).segments
    international = parse_offer(make_raw_offer(segments=[
        make_segment("DAC", "DXB", "2026-11-20T10:00:00", "2026-11-20T14:00:00"),
    ])).segments
    assert is_domestic(domestic)
    assert not is_domestic(international)
    assert not is_domestic([])


def test_last_arrival_date():
    segments = parse_offer(make_raw_offer(segments=[
        make_segment("DAC", "CXB", "2026-11-20T10:00:00", "2026-11-20T11:00:00", group=0),
        make_segment("CXB", "DAC", "2026-11-25T18:00:00", "2026-11-25T19:00:00", group=1),
    ])).segments
    assert last_arrival_date(segments) == date(2026, 11, 25)


def test_infant_is_associated_with_adult_by_position():
    request = build_order_request(
        slots("Adult", "Adult", "Infant"),
        [
            passenger("Rahim", "Uddin"),
            passenger("Karima", "Begum"),
            passenger("Baby", "Uddin", birthdate="2026-01-10"),
        ],
        CONTACT,
    )
    pax = request["paxList"]
    assert [p["ptc"] for p in pax] == ["Adult", "Adult", "Infant"]
    assert pax[2]["individual"]["associatePax"] == {"givenName": "Rahim", "surname": "Uddin"}
    assert "associatePax" not in pax[0]["individual"]
    assert request["contactInfo"] == {
        "phone": {"phoneNumber": "1711000000", "countryDialingCode": "880"},
        "emailAddress": "rahim@example.com",
    }


def test_excess_infants_are_not_associated(caplog):
    request = build_order_request(
        slots("Adult", "Infant", "Infant"),
        [
            passenger("Rahim", "Uddin"),
            passenger("Baby", "One", birthdate="2026-01-10"),
            passenger("Baby", "Two", birthdate="2026-01-10"),
        ],
        CONTACT,
    )
    pax = request["paxList"]
    assert pax[1]["individual"]["associatePax"]["givenName"] == "Rahim"
    assert "associatePax" not in pax[2]["individual"]
    assert "without associatePax" in caplog.text


def test_dates_are_normalized():
    request = build_order_request(
        slots("Adult"),
        [passenger("Rahim", "Uddin", birthdate="25/12/1990")],
        CONTACT,
    )
    individual = request["paxList"][0]["individual"]
    assert individual["birthdate"] == "1990-12-25"
    assert individual["identityDoc"]["expiryDate"] == "2030-01-01"


def test_sell_ssr_only_when_filled():
    request = build_order_request(
        slots("Adult", "Adult"),
        [
            passenger("Rahim", "Uddin", ssr_code="WCHR", loyalty_airline="BG", loyalty_account="123"),
            passenger("Karima", "Begum"),
        ],
        CONTACT,
    )
    first, second = request["paxList"]
    assert first["sellSSR"] == [{
        "ssrCode": "WCHR",
        "loyaltyProgramAccount": {"airlineDesigCode": "BG", "accountNumber": "123"},
    }]
    assert "sellSSR" not in second


def test_validate_form_requires_passport_fields():
    p = PassengerForm(given_name="Rahim", surname="Uddin", gender="Male", birthdate="1990-01-01")
    assert validate_form(CONTACT, [p], passport_required=False) is None
    assert validate_form(CONTACT, [p], passport_required=True) == (
        "Please fill in all required fields for passenger #1."
    )
    assert validate_form(ContactForm(), [p], False) == "Please fill in all contact information."


def test_validate_dob_bounds():
    last_arrival = date(2026, 11, 25)
    today = date(2026, 10, 19)
    assert validate_dob("2020-01-01", "Adult", last_arrival, today).startswith("Adult must be at least 12")
    assert validate_dob("1990-01-01", "Adult", last_arrival, today) is None
    assert validate_dob("2020-01-01", "Child", last_arrival, today) is None
    assert validate_dob("2025-01-01", "Child", last_arrival, today).startswith("Child must be between")
    assert validate_dob("2025-06-01", "Infant", last_arrival, today) is None
    assert validate_dob("2023-01-01", "Infant", last_arrival, today).startswith("Infant must be under 2")
    assert validate_dob("2026-11-01", "Infant", last_arrival, today) == "Date of birth cannot be in the future."


def test_unreadable_dob_is_rejected():
    assert validate_dob("ab-cd-efgh", "Adult", date(2026, 11, 25)) == INVALID_DOB_MESSAGE
    assert validate_dob("31-31-1990", "Adult", None) == INVALID_DOB_MESSAGE
    with pytest.raises(FormValidationError) as exc:
        prepare_order_request(
            "T1", ["O1"], slots("Adult"),
            [passenger("Rahim", "Uddin", birthdate="ab-cd-efgh")],
            CONTACT, False,
        )
    assert exc.value.message == INVALID_DOB_MESSAGE


def test_domestic_defaults_fill_blanks_only():
    today = date(2026, 10, 19)
    filled = domestic_defaults(
        slots("Adult", "Child"),
        [
            PassengerForm(given_name="Rahim", surname="Uddin", nationality="IN"),
            PassengerForm(given_name="Rafi", surname="Uddin"),
        ],
        today,
    )
    assert filled[0].nationality == "IN"
    assert filled[0].birthdate == "2008-10-19"
    assert filled[0].expiry_date == "2027-04-19"
    assert filled[1].nationality == "BD"
    assert filled[1].identity_doc_id == "DOCSBD28"
    assert filled[1].birthdate == "2021-10-18"


def test_validate_order_sell_request():
    request = build_order_request(slots("Adult"), [passenger("Rahim", "Uddin")], CONTACT)
    assert validate_order_sell_request("T1", ["O1"], request, True) is None
    assert validate_order_sell_request(None, ["O1"], request, True) == "Missing traceId"
    assert validate_order_sell_request("T1", [], request, True) == "Missing offerId"
    assert validate_order_sell_request("T1", ["O1"], {"contactInfo": {}}, True) == "Missing contact info"


def test_prepare_order_request_checks_passenger_count():
    with pytest.raises(FormValidationError) as exc:
        prepare_order_request("T1", ["O1"], slots("Adult", "Adult"), [passenger("Rahim", "Uddin")], CONTACT, False)
    assert "Expected 2 passengers" in exc.value.message


def test_prepare_order_request_checks_age():
    with pytest.raises(FormValidationError):
        prepare_order_request(
            "T1", ["O1"], slots("Adult"),
            [passenger("Rahim", "Uddin", birthdate="2020-01-01")],
            CONTACT, False, date(2026, 11, 25),
        )


def test_prepare_order_request_builds_request():
    request = prepare_order_request(
        "T1", ["O1"], slots("Adult"), [passenger("Rahim", "Uddin")], CONTACT, True, date(2026, 11, 25)
    )
    assert request["paxList"][0]["individual"]["givenName"] == "Rahim"
