"""Booking flow — search, price, sell, create and post-booking order operations.

Every step threads the aggregator trace id: a newer id from a response
replaces the one the caller sent. Markup is resolved per offer, concurrently,
and applied exactly once through the fare normalizer.
"""

import asyncio
import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from faredesk.config import settings
from faredesk.data.dates import parse_timestamp
from faredesk.data.money import ZERO, format_price, to_money
from faredesk.models.order import OrderRecord
from faredesk.schemas.booking import (
    OfferView,
    OrderView,
    PriceResponse,
    SearchResponse,
    SellResponse,
    VerifyPriceResponse,
)
from faredesk.schemas.offer import Offer, PaxType, PricedOffer, ReconciledOffers
from faredesk.schemas.order import ContactForm, PassengerForm, PassengerSlot
from faredesk.schemas.search import FlightSearchParams
from faredesk.services.booking_client import BookingApiClient, booking_client
from faredesk.services.cache_service import CacheService, cache_service
from faredesk.services.errors import (
    BookingCancelled,
    FormValidationError,
    OfferChangePending,
    UpstreamError,
)
from faredesk.services.fare_normalizer import apply_markup, fare_rows, offer_summary, paired_total
from faredesk.services.flight_filters import (
    cheapest,
    filter_by_airline,
    filter_by_stops,
    sort_offers,
    stops_options,
)
from faredesk.services.markup_resolver import ROLE_USER, MarkupResolver, markup_resolver
from faredesk.services.offer_parser import parse_offer
from faredesk.services.offer_reconciler import (
    Stage,
    check_response,
    confirm_offer_change,
    reconcile,
)
from faredesk.services.passenger_builder import (
    domestic_defaults,
    is_domestic,
    last_arrival_date,
    passenger_list,
    prepare_order_request,
)
from faredesk.services.search_request import build_search_request

logger = logging.getLogger(__name__)

PRICING_EXPIRED_MESSAGE = "Your pricing session has expired. Please select the flight again."
MISSING_PASSENGERS_MESSAGE = "Passenger details are missing. Please complete the booking form again."
NO_REFERENCE_MESSAGE = "Order created but no order reference returned."
PRICE_CHANGE_DECLINED_MESSAGE = "Order confirmation cancelled due to a price change."


class BookingSession:
    """Search generation and trace id for one booking conversation.

    Markup results are keyed by ``(generation, offer_id)``. Results computed
    for an older generation are discarded once a newer search has started.
    """

    def __init__(self, trace_id: str | None = None):
        self.trace_id = trace_id
        self.search_generation = 0
        self.priced: dict[tuple[int, str], PricedOffer] = {}

    def new_search(self) -> int:
        self.search_generation += 1
        self.priced = {}
        return self.search_generation

    def is_current(self, generation: int) -> bool:
        return generation == self.search_generation

    def update_trace(self, trace_id: str | None):
        if trace_id:
            self.trace_id = trace_id

    def record(self, generation: int, priced: PricedOffer) -> bool:
        if not self.is_current(generation):
            return False
        self.priced[(generation, priced.offer.offer_id)] = priced
        return True


def offer_view(priced: PricedOffer) -> OfferView:
    summary = offer_summary(priced)
    return OfferView(
        offer=priced.offer,
        markup_percent=summary.markup_percent,
        gross=summary.gross,
        total=summary.total,
        discount=summary.discount,
        currency=summary.currency,
        total_display=format_price(summary.total, summary.currency or settings.default_currency),
        fare_rows=fare_rows(priced),
        warnings=priced.warnings,
    )


def _segments(offers: list[Offer]):
    return [s for o in offers for s in o.segments]


def _shape_results(priced: list[PricedOffer], params: FlightSearchParams) -> list[PricedOffer]:
    priced = filter_by_stops(priced, params.stops)
    priced = sort_offers(priced, params.sort_by, params.sort_order)
    return filter_by_airline(priced, params.airline)


class BookingService:
    """Orchestrates the booking API, markup resolution and the order side store."""

    def __init__(
        self,
        client: BookingApiClient,
        resolver: MarkupResolver,
        cache: CacheService,
    ):
        self._client = client
        self._resolver = resolver
        self._cache = cache

    # Markup

    async def price_offers(
        self,
        offers: list[Offer],
        role: str | None = ROLE_USER,
        session: BookingSession | None = None,
    ) -> list[PricedOffer]:
        """Resolve markup for every offer concurrently and apply it once."""
        session = session or BookingSession()
        generation = session.search_generation
        percents = await asyncio.gather(*(
            self._resolver.resolve(o.airline_code, role, o.origin, o.destination)
            for o in offers
        ))
        results = []
        for offer, percent in zip(offers, percents):
            priced = apply_markup(offer, percent)
            if not session.record(generation, priced):
                logger.info(
                    f"Discarding markup for {offer.offer_id}: generation {generation} "
                    f"superseded by {session.search_generation}"
                )
                continue
            results.append(priced)
        return results

    async def _views(self, offers: list[Offer], role: str | None, session: BookingSession) -> list[PricedOffer]:
        if not offers:
            return []
        return await self.price_offers(offers, role, session)

    # Shopping

    async def search(
        self,
        params: FlightSearchParams,
        role: str | None = ROLE_USER,
        session: BookingSession | None = None,
    ) -> SearchResponse:
        session = session or BookingSession()
        session.new_search()
        body = build_search_request(params)
        payload = await self._client.search(body)
        result = reconcile(payload, session.trace_id, Stage.SEARCH)
        session.update_trace(result.trace_id)
        return await self._search_response(result, params, role, session)

    async def more_offers(
        self,
        trace_id: str,
        airline: str,
        source: str = "",
        role: str | None = ROLE_USER,
        session: BookingSession | None = None,
    ) -> SearchResponse:
        session = session or BookingSession(trace_id)
        session.new_search()
        payload = await self._client.get_more_offers(trace_id, airline, source)
        result = reconcile(payload, trace_id, Stage.SEARCH)
        session.update_trace(result.trace_id)
        return await self._search_response(result, None, role, session)

    async def _search_response(
        self,
        result: ReconciledOffers,
        params: FlightSearchParams | None,
        role: str | None,
        session: BookingSession,
    ) -> SearchResponse:
        offers, outbound, inbound = await asyncio.gather(
            self._views(result.offers, role, session),
            self._views(result.outbound, role, session),
            self._views(result.inbound, role, session),
        )
        if params is not None:
            offers = _shape_results(offers, params)
            outbound = _shape_results(outbound, params)
            inbound = _shape_results(inbound, params)

        return SearchResponse(
            trace_id=session.trace_id,
            shape=result.shape,
            offers=[offer_view(p) for p in offers],
            outbound=[offer_view(p) for p in outbound],
            inbound=[offer_view(p) for p in inbound],
            cheapest=cheapest(offers or outbound),
            stops_options=stops_options(result.all_offers()),
        )

    async def fare_rules(self, trace_id: str, offer_id: str) -> dict:
        payload = await self._client.fare_rules(trace_id, offer_id)
        check_response(payload, "Fare rules are not available for this offer.")
        return payload

    async def mini_rule(self, trace_id: str, offer_id: str) -> dict:
        payload = await self._client.mini_rule(trace_id, offer_id)
        check_response(payload, "Mini rules are not available for this offer.")
        return payload

    # Pricing

    async def price(
        self,
        trace_id: str,
        offer_ids: list[str],
        accept_changes: bool | None = None,
        role: str | None = ROLE_USER,
    ) -> PriceResponse:
        """OfferPrice → reconcile → change confirmation → markup.

        The pricing context needed by sell/create is cached under the
        resulting trace id.
        """
        session = BookingSession(trace_id)
        payload = await self._client.offer_price(trace_id, offer_ids)
        result = reconcile(payload, trace_id, Stage.PRICE)
        result = confirm_offer_change(result, accept_changes)
        session.update_trace(result.trace_id)

        offers, outbound, inbound = await asyncio.gather(
            self._views(result.offers, role, session),
            self._views(result.outbound, role, session),
            self._views(result.inbound, role, session),
        )
        if result.is_paired_oneway:
            total = paired_total(outbound[0] if outbound else None, inbound[0] if inbound else None)
            selected = outbound[:1] + inbound[:1]
        else:
            total = sum((p.total_payable for p in offers), ZERO)
            selected = offers

        all_offers = [p.offer for p in selected]
        if not all_offers:
            raise UpstreamError("The booking service returned no priced offer.")

        segments = _segments(all_offers)
        slots = passenger_list(all_offers[0])
        last_arrival = last_arrival_date(segments)
        domestic = is_domestic(segments)

        await self._cache.set_pricing(session.trace_id, {
            "offer_ids": [o.offer_id for o in all_offers],
            "passengers": [s.model_dump() for s in slots],
            "passport_required": result.passport_required,
            "domestic": domestic,
            "last_arrival": last_arrival.isoformat() if last_arrival else None,
            "route_from": segments[0].departure.location_code if segments else None,
            "route_to": segments[-1].arrival.location_code if segments else None,
            "airline": all_offers[0].airline_code,
            "fly_date": segments[0].departure.scheduled_at.isoformat()
            if segments and segments[0].departure.scheduled_at else None,
            "total": str(total),
            "currency": all_offers[0].currency,
        })

        return PriceResponse(
            trace_id=session.trace_id,
            shape=result.shape,
            offers=[offer_view(p) for p in offers],
            outbound=[offer_view(p) for p in outbound],
            inbound=[offer_view(p) for p in inbound],
            total=total,
            currency=all_offers[0].currency,
            offer_change=result.offer_change,
            passengers=slots,
            passport_required=result.passport_required,
            domestic=domestic,
            available_ssr=result.available_ssr,
            partial_payment_info=result.partial_payment_info,
        )

    async def _pricing_context(self, trace_id: str) -> dict:
        context = await self._cache.get_pricing(trace_id)
        if not context:
            raise FormValidationError(PRICING_EXPIRED_MESSAGE)
        return context

    def _order_request(
        self,
        trace_id: str,
        offer_ids: list[str],
        context: dict,
        contact: ContactForm,
        passengers: list[PassengerForm],
    ) -> tuple[dict, list[PassengerForm]]:
        slots = [PassengerSlot(**s) for s in context.get("passengers") or []]
        if context.get("domestic"):
            passengers = domestic_defaults(slots, passengers)
        last_arrival = date.fromisoformat(context["last_arrival"]) if context.get("last_arrival") else None
        request = prepare_order_request(
            trace_id,
            offer_ids,
            slots,
            passengers,
            contact,
            bool(context.get("passport_required")),
            last_arrival,
        )
        return request, passengers

    # Orders

    async def sell(
        self,
        trace_id: str,
        offer_ids: list[str],
        contact: ContactForm,
        passengers: list[PassengerForm],
        accept_changes: bool | None = None,
    ) -> SellResponse:
        context = await self._pricing_context(trace_id)
        offer_ids = offer_ids or context.get("offer_ids") or []
        request, passengers = self._order_request(trace_id, offer_ids, context, contact, passengers)

        payload = await self._client.order_sell(trace_id, offer_ids, request)
        result = reconcile(payload, trace_id, Stage.PRICE)
        result = confirm_offer_change(result, accept_changes)

        new_trace = result.trace_id or trace_id
        if new_trace != trace_id:
            await self._cache.set_pricing(new_trace, {**context, "offer_ids": offer_ids})
        await self._cache.set_draft(new_trace, {
            "contact": contact.model_dump(),
            "passengers": [p.model_dump() for p in passengers],
        })
        logger.info(f"OrderSell accepted for trace {new_trace} ({len(passengers)} passengers)")

        return SellResponse(
            trace_id=new_trace,
            offer_ids=offer_ids,
            offer_change=result.offer_change,
            response=payload.get("response") or {},
        )

    async def create(
        self,
        db: AsyncSession | None,
        trace_id: str,
        offer_ids: list[str],
        contact: ContactForm | None = None,
        passengers: list[PassengerForm] | None = None,
        created_by: str | None = None,
        role: str | None = ROLE_USER,
    ) -> OrderView:
        context = await self._pricing_context(trace_id)
        offer_ids = offer_ids or context.get("offer_ids") or []

        if contact is None or not passengers:
            draft = await self._cache.get_draft(trace_id)
            if not draft:
                raise FormValidationError(MISSING_PASSENGERS_MESSAGE)
            contact = contact or ContactForm(**draft["contact"])
            passengers = passengers or [PassengerForm(**p) for p in draft["passengers"]]

        request, passengers = self._order_request(trace_id, offer_ids, context, contact, passengers)
        payload = await self._client.order_create(trace_id, offer_ids, request)
        check_response(payload, "Failed to complete booking. Please try again.")

        response = payload.get("response") or {}
        reference = response.get("orderReference")
        if not reference:
            raise UpstreamError(NO_REFERENCE_MESSAGE)
        logger.info(f"Order {reference} created for trace {trace_id}")

        if db is not None and settings.order_records_enabled:
            await self._save_order_record(db, response, context, passengers, created_by)
        await self._cache.clear_draft(trace_id)

        return await self._order_view(response, role)

    async def _save_order_record(
        self,
        db: AsyncSession,
        response: dict,
        context: dict,
        passengers: list[PassengerForm],
        created_by: str | None,
    ):
        """Best-effort local copy of a created order. Failures are logged only."""
        try:
            items = response.get("orderItem") or []
            first_item = items[0] if items else {}
            segment_list = first_item.get("paxSegmentList") or []
            first_segment = (segment_list[0].get("paxSegment") or {}) if segment_list else {}
            slots = context.get("passengers") or []
            gross = ((first_item.get("price") or {}).get("gross") or {}).get("total")
            first = passengers[0] if passengers else PassengerForm()

            record = OrderRecord(
                reference=response["orderReference"],
                airline_pnr=first_segment.get("airlinePNR") or "N/A",
                given_name=first.given_name,
                surname=first.surname,
                adults=sum(1 for s in slots if s["ptc"] == PaxType.ADULT.value),
                children=sum(1 for s in slots if s["ptc"] == PaxType.CHILD.value),
                infants=sum(1 for s in slots if s["ptc"] == PaxType.INFANT.value),
                route_from=context.get("route_from") or "N/A",
                route_to=context.get("route_to") or "N/A",
                airline=first_item.get("validatingCarrier") or context.get("airline") or "N/A",
                amount=to_money(gross) if gross is not None else to_money(context.get("total")),
                currency=context.get("currency") or settings.default_currency,
                status=response.get("orderStatus") or "OnHold",
                created_by=created_by or "anonymous",
                fly_date=parse_timestamp(context.get("fly_date")),
            )
            db.add(record)
            await db.commit()
            logger.info(f"Order record saved for {record.reference}")
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to save order record for {response.get('orderReference')}: {e}")

    async def _sync_status(self, db: AsyncSession, reference: str | None, status: str | None):
        """Update the local record's status when the airline reports a different one."""
        if not reference or not status:
            return
        try:
            result = await db.execute(select(OrderRecord).where(OrderRecord.reference == reference))
            record = result.scalars().first()
            if record is not None and record.status != status:
                logger.info(f"Order {reference} status {record.status} -> {status}")
                record.status = status
                await db.commit()
        except Exception as e:
            await db.rollback()
            logger.error(f"Failed to sync status for order {reference}: {e}")

    async def _order_view(self, response: dict, role: str | None) -> OrderView:
        items = [parse_offer(item) for item in response.get("orderItem") or [] if isinstance(item, dict)]
        priced = await self._views(items, role, BookingSession())
        return OrderView(
            order_reference=response.get("orderReference"),
            order_status=response.get("orderStatus"),
            items=[offer_view(p) for p in priced],
            total=sum((p.total_payable for p in priced), ZERO),
            currency=items[0].currency if items else "",
            partial_payment_info=response.get("partialPaymentInfo"),
            response=response,
        )

    async def retrieve(
        self,
        db: AsyncSession | None,
        order_reference: str,
        role: str | None = ROLE_USER,
    ) -> OrderView:
        payload = await self._client.order_retrieve(order_reference)
        check_response(payload, "Failed to retrieve order.")
        response = payload.get("response") or {}
        if db is not None:
            await self._sync_status(db, response.get("orderReference"), response.get("orderStatus"))
        return await self._order_view(response, role)

    async def cancel(
        self,
        db: AsyncSession | None,
        order_reference: str,
        role: str | None = ROLE_USER,
    ) -> OrderView:
        payload = await self._client.order_cancel(order_reference)
        check_response(payload, "Failed to cancel order.")
        logger.info(f"Order {order_reference} cancelled")
        return await self.retrieve(db, order_reference, role)

    async def verify_price(
        self,
        db: AsyncSession | None,
        order_reference: str,
        accept_changes: bool | None = None,
        role: str | None = ROLE_USER,
    ) -> VerifyPriceResponse:
        """Reshop the order, compare the payable total and confirm it.

        A changed total needs the caller's answer the same way an offer
        change does.
        """
        current = await self._client.order_retrieve(order_reference)
        check_response(current, "Failed to retrieve order.")
        order = current.get("response") or {}

        reshop = await self._client.reshop_price(order_reference)
        check_response(reshop, "Reshop price failed")

        old_total = _first_item_payable(order)
        new_total = _first_item_payable(reshop.get("response") or {})
        changed = old_total != new_total

        if changed:
            logger.info(f"Order {order_reference} price changed: {old_total} -> {new_total}")
            if accept_changes is None:
                raise OfferChangePending(
                    "Price",
                    f"The price has changed from {old_total} to {new_total}. Do you want to proceed?",
                )
            if not accept_changes:
                raise BookingCancelled(PRICE_CHANGE_DECLINED_MESSAGE)

        partial = bool((order.get("partialPaymentInfo") or {}).get("isPartialPaymentEligible"))
        confirmed = await self.confirm(db, order_reference, partial, role)
        return VerifyPriceResponse(
            old_total=old_total,
            new_total=new_total,
            changed=changed,
            order=confirmed,
        )

    async def confirm(
        self,
        db: AsyncSession | None,
        order_reference: str,
        partial_payment: bool = False,
        role: str | None = ROLE_USER,
    ) -> OrderView:
        """OrderChange: issue the ticket, paying in full or partially."""
        payload = await self._client.order_change(order_reference, partial_payment)
        response = payload.get("response")
        if not payload.get("success") or not response:
            error = payload.get("error") or {}
            errors = payload.get("errors") or [{}]
            message = (
                (error.get("message") if isinstance(error, dict) else str(error))
                or errors[0].get("message")
                or "Failed to confirm order."
            )
            raise UpstreamError(message)
        logger.info(f"Order {order_reference} confirmed (partial={partial_payment})")
        if db is not None:
            await self._sync_status(db, response.get("orderReference"), response.get("orderStatus"))
        return await self._order_view(response, role)

    async def list_orders(self, db: AsyncSession, created_by: str | None = None, limit: int = 50) -> list[OrderRecord]:
        stmt = select(OrderRecord).order_by(OrderRecord.created_at.desc()).limit(limit)
        if created_by:
            stmt = stmt.where(OrderRecord.created_by == created_by)
        result = await db.execute(stmt)
        return list(result.scalars().all())


def _first_item_payable(response: dict) -> Decimal | None:
    items = response.get("orderItem") or []
    if not items:
        return None
    total = ((items[0].get("price") or {}).get("totalPayable") or {}).get("total")
    return to_money(total) if total is not None else None


booking_service = BookingService(booking_client, markup_resolver, cache_service)
