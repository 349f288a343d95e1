import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from conftest import FakeBookingClient, FakeCache, FakeMarkupSource, make_payload, make_raw_offer
from faredesk.database import Base, get_db
from faredesk.dependencies import get_booking_service, get_cache_service
from faredesk.main import app
from faredesk.services.booking_flow import BookingService
from faredesk.services.errors import UpstreamError
from faredesk.services.markup_resolver import MarkupResolver


@pytest.fixture
async def setup():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_db():
        async with factory() as session:
            yield session

    cache = FakeCache()
    state = {"client": FakeBookingClient()}

    def override_service():
        source = FakeMarkupSource(airlines={("BG", "USER"): 5, ("BG", "AGENT"): -10})
        return BookingService(state["client"], MarkupResolver(source), cache)

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_booking_service] = override_service
    app.dependency_overrides[get_cache_service] = lambda: cache

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http, state, cache

    app.dependency_overrides.clear()
    await engine.dispose()


SEARCH_BODY = {"legs": [{"origin": "DAC", "destination": "CXB", "date": "2026-11-20"}]}


async def test_health(setup):
    http, _, _ = setup
    resp = await http.get("/api/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "service": "faredesk"}


async def test_search_uses_caller_role(setup):
    http, state, _ = setup
    state["client"] = FakeBookingClient(search=make_payload([make_raw_offer("A1")], trace_id="T1"))

    resp = await http.post("/api/search", json=SEARCH_BODY, headers={"X-User-Role": "agent"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["trace_id"] == "T1"
    assert data["offers"][0]["offer"]["offer_id"] == "A1"
    assert float(data["offers"][0]["total"]) == 5835


async def test_search_validation(setup):
    http, _, _ = setup
    body = {"trip_type": "return", "legs": SEARCH_BODY["legs"]}
    resp = await http.post("/api/search", json=body)
    assert resp.status_code == 422
    assert resp.json()["detail"]["type"] == "validation"


async def test_search_upstream_failure(setup):
    http, state, _ = setup
    state["client"] = FakeBookingClient(search=UpstreamError("Supplier timeout", 504))
    resp = await http.post("/api/search", json=SEARCH_BODY)
    assert resp.status_code == 502
    assert resp.json()["detail"] == {"type": "upstream", "message": "Supplier timeout"}


async def test_price_offer_change_answers_409(setup):
    http, state, _ = setup
    state["client"] = FakeBookingClient(
        offer_price=make_payload([make_raw_offer("A1")], offerChangeInfo={"typeOfChange": "Price"}),
    )
    resp = await http.post("/api/offers/price", json={"trace_id": "T1", "offer_ids": ["A1"]})
    assert resp.status_code == 409
    detail = resp.json()["detail"]
    assert detail["type"] == "offer_changed"
    assert detail["change_type"] == "Price"

    resp = await http.post(
        "/api/offers/price",
        json={"trace_id": "T1", "offer_ids": ["A1"], "accept_changes": False},
    )
    assert resp.status_code == 409
    assert resp.json()["detail"]["type"] == "cancelled"

    resp = await http.post(
        "/api/offers/price",
        json={"trace_id": "T1", "offer_ids": ["A1"], "accept_changes": True},
    )
    assert resp.status_code == 200
    assert resp.json()["passengers"] == [{"ptc": "Adult", "index": 0}]


async def test_price_fare_unavailable(setup):
    http, state, _ = setup
    state["client"] = FakeBookingClient(offer_price={"success": False, "message": "Sold out"})
    resp = await http.post("/api/offers/price", json={"trace_id": "T1", "offer_ids": ["A1"]})
    assert resp.status_code == 409
    assert resp.json()["detail"] == {"type": "fare_unavailable", "message": "Sold out"}


async def test_sell_without_pricing_context(setup):
    http, _, _ = setup
    body = {
        "trace_id": "T1",
        "contact": {"email": "rahim@example.com", "phone": "1711000000"},
        "passengers": [{"given_name": "Rahim", "surname": "Uddin"}],
    }
    resp = await http.post("/api/orders/sell", json=body)
    assert resp.status_code == 422
    assert resp.json()["detail"]["type"] == "validation"


async def test_confirm_failure(setup):
    http, state, _ = setup
    state["client"] = FakeBookingClient(order_change={"success": False, "error": {"message": "Insufficient balance"}})
    resp = await http.post("/api/orders/confirm", json={"order_reference": "ORD1"})
    assert resp.status_code == 502
    assert resp.json()["detail"]["message"] == "Insufficient balance"


async def test_list_orders_empty(setup):
    http, _, _ = setup
    resp = await http.get("/api/orders")
    assert resp.status_code == 200
    assert resp.json() == {"orders": []}


async def test_markup_crud(setup):
    http, _, cache = setup
    cache.store["markup:BG:USER:*:*"] = "5"

    resp = await http.post("/api/markups", json={"airline_code": "bg", "role": "user", "markup": 7.5})
    assert resp.status_code == 201
    created = resp.json()
    assert created["airline_code"] == "BG"
    assert created["from_airport"] == ""
    assert created["markup"] == 7.5
    assert cache.store == {}

    resp = await http.post("/api/markups", json={"airline_code": "BG", "role": "USER", "markup": 3})
    assert resp.status_code == 409

    resp = await http.post(
        "/api/markups",
        json={"airline_code": "BG", "role": "USER", "from_airport": "dac", "to_airport": "cxb", "markup": 2},
    )
    assert resp.status_code == 201

    resp = await http.get("/api/markups", params={"airline": "bg", "from": "DAC"})
    markups = resp.json()["markups"]
    assert [(m["from_airport"], m["to_airport"]) for m in markups] == [("DAC", "CXB")]

    resp = await http.put(f"/api/markups/{created['id']}", json={"markup": -4})
    assert resp.status_code == 200
    assert resp.json()["markup"] == -4

    resp = await http.delete(f"/api/markups/{created['id']}")
    assert resp.status_code == 204
    resp = await http.get("/api/markups", params={"airline": "BG"})
    assert len(resp.json()["markups"]) == 1


async def test_markup_validation(setup):
    http, _, _ = setup
    resp = await http.post("/api/markups", json={"airline_code": "BGX", "markup": 5})
    assert resp.status_code == 422
    resp = await http.post("/api/markups", json={"airline_code": "BG", "role": "ADMIN", "markup": 5})
    assert resp.status_code == 422
    resp = await http.post("/api/markups", json={"airline_code": "BG", "markup": 150})
    assert resp.status_code == 422


async def test_unknown_markup_is_404(setup):
    http, _, _ = setup
    resp = await http.delete("/api/markups/00000000-0000-0000-0000-000000000000")
    assert resp.status_code == 404


async def test_markup_update_cannot_duplicate_active_rule(setup):
    http, _, _ = setup
    route = {"airline_code": "BG", "role": "USER", "from_airport": "DAC"}
    resp = await http.post("/api/markups", json={**route, "to_airport": "CXB", "markup": 5})
    first = resp.json()
    resp = await http.post("/api/markups", json={**route, "to_airport": "CGP", "markup": -8})
    second = resp.json()

    resp = await http.put(f"/api/markups/{second['id']}", json={"to_airport": "CXB"})
    assert resp.status_code == 409

    resp = await http.get("/api/markups", params={"airline": "BG", "to": "CXB"})
    assert [m["markup"] for m in resp.json()["markups"]] == [5]

    # Re-activating a rule whose key is taken again is refused
    await http.delete(f"/api/markups/{first['id']}")
    resp = await http.post("/api/markups", json={**route, "to_airport": "CXB", "markup": 3})
    assert resp.status_code == 201
    resp = await http.put(f"/api/markups/{first['id']}", json={"is_active": True})
    assert resp.status_code == 409

    # Updating a rule without touching its key is fine
    resp = await http.put(f"/api/markups/{second['id']}", json={"markup": -6})
    assert resp.status_code == 200


async def test_markup_half_route_is_rejected(setup):
    http, _, _ = setup
    resp = await http.post("/api/markups", json={"airline_code": "BG", "from_airport": "DAC", "markup": 5})
    assert resp.status_code == 422

    resp = await http.post("/api/markups", json={"airline_code": "BG", "markup": 5})
    rule = resp.json()
    resp = await http.put(f"/api/markups/{rule['id']}", json={"to_airport": "CXB"})
    assert resp.status_code == 422
    resp = await http.put(f"/api/markups/{rule['id']}", json={"from_airport": "DAC", "to_airport": "CXB"})
    assert resp.status_code == 200
    assert resp.json()["to_airport"] == "CXB"
