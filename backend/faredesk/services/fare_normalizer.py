"""Fare normalizer — applies a signed markup percentage to an offer's fare rows.

A positive markup raises the base fare (agent commission). A negative markup
lowers it (promotional discount). Either way ``discount`` carries the
commission magnitude for display. Each row is adjusted at most once: rows
already marked ``applied`` pass through untouched, which makes
``apply_markup`` idempotent.

The authoritative row total is ``base_fare + tax + vat``. ``other_fee`` is
shown separately and is part of the per-row display amount only.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

from faredesk.data.money import ZERO, round_unit, sign, to_money
from faredesk.schemas.offer import AdjustedFare, FareDetail, Offer, PricedOffer

logger = logging.getLogger(__name__)


@dataclass
class FareRow:
    """Display values for one passenger-type row."""

    pax_type: str
    pax_count: int
    base_fare: Decimal
    tax: Decimal
    other_fee: Decimal
    vat: Decimal
    discount: Decimal
    sub_total: Decimal
    amount: Decimal
    currency: str


@dataclass
class OfferSummary:
    """Offer-level display figures."""

    offer_id: str
    markup_percent: Decimal
    gross: Decimal
    total: Decimal
    discount: Decimal
    currency: str


def commission_for(original_base_fare: Decimal, markup_percent: Decimal) -> Decimal:
    return round_unit(abs(markup_percent) / Decimal("100") * original_base_fare)


def adjust_fare(fare: AdjustedFare, markup_percent: Decimal) -> AdjustedFare:
    """Apply markup to a single row unless it has been applied already."""
    if fare.applied:
        return fare

    original = fare.original
    commission = commission_for(original.base_fare, markup_percent)
    base_fare = original.base_fare + commission * sign(markup_percent)
    adjusted = original.model_copy(update={
        "base_fare": base_fare,
        "discount": commission,
        "sub_total": base_fare + original.tax + original.vat,
    })
    return AdjustedFare(original=original, adjusted=adjusted, applied=True)


def _currency_warnings(offer_id: str, fares: list[FareDetail]) -> list[str]:
    currencies = {f.currency for f in fares if f.currency}
    if len(currencies) <= 1:
        return []
    message = (
        f"Offer {offer_id}: fare rows carry mixed currencies "
        f"({', '.join(sorted(currencies))}); markup applied per row"
    )
    logger.warning(message)
    return [message]


def apply_markup(offer: Offer | PricedOffer, markup_percent: Decimal | float | int) -> PricedOffer:
    """Return a PricedOffer with markup applied to every not-yet-applied fare row.

    Passing a PricedOffer whose rows are already applied returns an equal
    object: the stored markup percentage and rows are kept as they were.
    """
    percent = to_money(markup_percent)

    if isinstance(offer, PricedOffer):
        priced = offer
    else:
        priced = PricedOffer(
            offer=offer,
            fares=[AdjustedFare(original=f, adjusted=f, applied=False) for f in offer.fare_details],
            markup_percent=percent,
        )

    if priced.markup_applied:
        return priced

    warnings = list(priced.warnings)
    if not warnings:
        warnings = _currency_warnings(priced.offer.offer_id, [f.original for f in priced.fares])

    fares = [adjust_fare(f, percent) for f in priced.fares]
    return PricedOffer(
        offer=priced.offer,
        fares=fares,
        markup_percent=percent,
        warnings=warnings,
    )


def fare_rows(priced: PricedOffer) -> list[FareRow]:
    """Per-row display values.

    ``base_fare`` shows the airline's original base fare. ``amount`` is
    ``(base + tax + other_fee + vat) × pax_count`` from the original row.
    """
    rows = []
    for fare in priced.fares:
        original = fare.original
        adjusted = fare.adjusted
        amount = (original.base_fare + original.tax + original.other_fee + original.vat) * original.pax_count
        rows.append(FareRow(
            pax_type=original.pax_type,
            pax_count=original.pax_count,
            base_fare=original.base_fare,
            tax=original.tax,
            other_fee=original.other_fee,
            vat=original.vat,
            discount=adjusted.discount,
            sub_total=adjusted.sub_total,
            amount=amount,
            currency=original.currency,
        ))
    return rows


def offer_summary(priced: PricedOffer) -> OfferSummary:
    """Offer total (Σ adjusted sub_total) and discount against the airline gross."""
    gross = priced.offer.price.gross.total
    total = priced.total_payable
    return OfferSummary(
        offer_id=priced.offer.offer_id,
        markup_percent=priced.markup_percent,
        gross=gross,
        total=total,
        discount=gross - total if gross else ZERO,
        currency=priced.offer.currency,
    )


def paired_total(outbound: PricedOffer | None, inbound: PricedOffer | None) -> Decimal:
    """Checkout total for a paired one-way selection: two independent fares, summed."""
    return sum(
        (p.total_payable for p in (outbound, inbound) if p is not None),
        ZERO,
    )
