"""Booking API client — adapter for the airline aggregator's NDC-style endpoints."""

import logging
from typing import Any

import httpx

from faredesk.config import settings
from faredesk.services.errors import UpstreamError

logger = logging.getLogger(__name__)

ENDPOINTS = {
    "air_shopping": "/AirShopping",
    "get_more_offers": "/AirShopping/GetMoreOffers",
    "fare_rules": "/FareRules",
    "mini_rule": "/MiniRule",
    "offer_price": "/OfferPrice",
    "order_sell": "/OrderSell",
    "order_create": "/OrderCreate",
    "order_retrieve": "/OrderRetrieve",
    "order_cancel": "/OrderCancel",
    "order_reshop_price": "/OrderReshopPrice",
    "order_change": "/OrderChange",
}


class BookingApiClient:
    """Posts JSON to the booking API. Calls are never retried."""

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url or settings.booking_api_base_url
        self._token = token if token is not None else settings.booking_api_token
        self._timeout = timeout or settings.booking_api_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self._token:
                headers["Authorization"] = f"Bearer {self._token}"
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                headers=headers,
                transport=self._transport,
            )
        return self._client

    async def _post(self, name: str, body: dict) -> dict[str, Any]:
        endpoint = ENDPOINTS[name]
        client = await self._get_client()
        try:
            resp = await client.post(endpoint, json=body)
        except httpx.RequestError as e:
            logger.error(f"Booking API request error on {endpoint}: {e}")
            raise UpstreamError(f"Could not reach the booking service ({endpoint})") from e

        if resp.status_code >= 400:
            logger.error(f"Booking API {endpoint} returned {resp.status_code}: {resp.text[:500]}")
            raise UpstreamError(_error_message(resp), status_code=resp.status_code)

        try:
            data = resp.json()
        except ValueError as e:
            logger.error(f"Booking API {endpoint} returned a non-JSON body")
            raise UpstreamError(f"Invalid response from the booking service ({endpoint})") from e

        if not isinstance(data, dict):
            raise UpstreamError(f"Unexpected response from the booking service ({endpoint})")
        logger.info(f"Booking API {endpoint} -> {resp.status_code}")
        return data

    # Shopping

    async def search(self, body: dict) -> dict:
        return await self._post("air_shopping", body)

    async def get_more_offers(self, trace_id: str, airline: str, source: str = "") -> dict:
        return await self._post("get_more_offers", {
            "pointOfSale": settings.point_of_sale,
            "source": source,
            "request": {"traceId": trace_id, "airline": airline},
        })

    async def fare_rules(self, trace_id: str, offer_id: str) -> dict:
        return await self._post("fare_rules", {"traceId": trace_id, "offerId": [offer_id]})

    async def mini_rule(self, trace_id: str, offer_id: str) -> dict:
        return await self._post("mini_rule", {"traceId": trace_id, "offerId": [offer_id]})

    async def offer_price(self, trace_id: str, offer_ids: list[str]) -> dict:
        return await self._post("offer_price", {"traceId": trace_id, "offerId": offer_ids})

    # Orders

    async def order_sell(self, trace_id: str, offer_ids: list[str], request: dict) -> dict:
        return await self._post("order_sell", {"traceId": trace_id, "offerId": offer_ids, "request": request})

    async def order_create(self, trace_id: str, offer_ids: list[str], request: dict) -> dict:
        return await self._post("order_create", {"traceId": trace_id, "offerId": offer_ids, "request": request})

    async def order_retrieve(self, order_reference: str) -> dict:
        return await self._post("order_retrieve", {"orderReference": order_reference})

    async def order_cancel(self, order_reference: str) -> dict:
        return await self._post("order_cancel", {"orderReference": order_reference})

    async def reshop_price(self, order_reference: str) -> dict:
        return await self._post("order_reshop_price", {"orderReference": order_reference})

    async def order_change(self, order_reference: str, partial_payment: bool = False) -> dict:
        return await self._post("order_change", {
            "orderReference": order_reference,
            "issueTicketViaPartialPayment": partial_payment,
        })

    async def close(self):
        if self._client:
            await self._client.aclose()
            self._client = None


def _error_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"Booking service error ({resp.status_code})"
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict):
            return error.get("errorMessage") or error.get("message") or str(error)
        if error:
            return str(error)
        if data.get("message"):
            return str(data["message"])
    return f"Booking service error ({resp.status_code})"


booking_client = BookingApiClient()
