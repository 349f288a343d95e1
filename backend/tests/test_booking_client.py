import json

import httpx
import pytest

from faredesk.services.booking_client import BookingApiClient
from faredesk.services.errors import UpstreamError


def make_client(handler, token="secret"):
    return BookingApiClient(
        base_url="http://booking.test/api",
        token=token,
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


async def test_posts_json_with_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "response": {"traceId": "T2"}})

    client = make_client(handler)
    data = await client.offer_price("T1", ["O1", "O2"])
    await client.close()

    assert data["response"]["traceId"] == "T2"
    assert seen["url"] == "http://booking.test/api/OfferPrice"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {"traceId": "T1", "offerId": ["O1", "O2"]}


async def test_no_token_no_authorization_header():
    seen = {}

    def handler(request):
        seen["auth"] = request.headers.get("Authorization")
        return httpx.Response(200, json={"success": True})

    client = make_client(handler, token="")
    await client.order_retrieve("ORD1")
    await client.close()
    assert seen["auth"] is None


async def test_order_change_body():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "response": {}})

    client = make_client(handler)
    await client.order_change("ORD1", partial_payment=True)
    await client.close()
    assert seen["path"] == "/api/OrderChange"
    assert seen["body"] == {"orderReference": "ORD1", "issueTicketViaPartialPayment": True}


async def test_get_more_offers_body():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "response": {}})

    client = make_client(handler)
    await client.get_more_offers("T1", "BG", "src")
    await client.close()
    assert seen["path"] == "/api/AirShopping/GetMoreOffers"
    assert seen["body"] == {"pointOfSale": "BD", "source": "src", "request": {"traceId": "T1", "airline": "BG"}}


async def test_http_error_raises_upstream_error():
    def handler(request):
        return httpx.Response(500, json={"error": {"errorMessage": "Supplier timeout"}})

    client = make_client(handler)
    with pytest.raises(UpstreamError) as exc:
        await client.search({"pointOfSale": "BD"})
    await client.close()
    assert exc.value.status_code == 500
    assert exc.value.message == "Supplier timeout"


async def test_network_error_raises_upstream_error():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    client = make_client(handler)
    with pytest.raises(UpstreamError):
        await client.order_cancel("ORD1")
    await client.close()


async def test_non_json_body_raises_upstream_error():
    def handler(request):
        return httpx.Response(200, text="<html>maintenance</html>")

    client = make_client(handler)
    with pytest.raises(UpstreamError):
        await client.reshop_price("ORD1")
    await client.close()
