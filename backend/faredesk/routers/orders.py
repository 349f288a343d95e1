"""Orders router — sell, create, retrieve, cancel and confirm bookings."""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from faredesk.database import get_db
from faredesk.dependencies import get_booking_service, get_caller_id, get_caller_role, http_error
from faredesk.schemas.booking import OrderView, SellResponse, VerifyPriceResponse
from faredesk.schemas.order import (
    ConfirmOrderRequest,
    OrderCreateRequest,
    OrderReferenceRequest,
    OrderSellRequest,
    VerifyPriceRequest,
)
from faredesk.services.booking_flow import BookingService
from faredesk.services.errors import BookingError

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/sell", response_model=SellResponse)
async def sell_order(
    req: OrderSellRequest,
    service: BookingService = Depends(get_booking_service),
):
    """Validate passenger forms and hold the seats (OrderSell)."""
    try:
        return await service.sell(
            req.trace_id, req.offer_ids, req.contact, req.passengers, req.accept_changes
        )
    except BookingError as e:
        logger.warning(f"OrderSell failed for trace {req.trace_id}: {e.message}")
        raise http_error(e) from e


@router.post("/create", response_model=OrderView, status_code=201)
async def create_order(
    req: OrderCreateRequest,
    db: AsyncSession = Depends(get_db),
    role: str = Depends(get_caller_role),
    caller: str | None = Depends(get_caller_id),
    service: BookingService = Depends(get_booking_service),
):
    """Create the order. Passenger data falls back to the draft saved at sell time."""
    try:
        return await service.create(
            db,
            req.trace_id,
            req.offer_ids,
            req.contact,
            req.passengers,
            req.created_by or caller,
            role,
        )
    except BookingError as e:
        logger.warning(f"OrderCreate failed for trace {req.trace_id}: {e.message}")
        raise http_error(e) from e


@router.post("/retrieve", response_model=OrderView)
async def retrieve_order(
    req: OrderReferenceRequest,
    db: AsyncSession = Depends(get_db),
    role: str = Depends(get_caller_role),
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.retrieve(db, req.order_reference, role)
    except BookingError as e:
        raise http_error(e) from e


@router.post("/cancel", response_model=OrderView)
async def cancel_order(
    req: OrderReferenceRequest,
    db: AsyncSession = Depends(get_db),
    role: str = Depends(get_caller_role),
    service: BookingService = Depends(get_booking_service),
):
    """Cancel the order and return it as re-retrieved afterwards."""
    try:
        return await service.cancel(db, req.order_reference, role)
    except BookingError as e:
        logger.warning(f"OrderCancel failed for {req.order_reference}: {e.message}")
        raise http_error(e) from e


@router.post("/verify-price", response_model=VerifyPriceResponse)
async def verify_price(
    req: VerifyPriceRequest,
    db: AsyncSession = Depends(get_db),
    role: str = Depends(get_caller_role),
    service: BookingService = Depends(get_booking_service),
):
    """Reshop, compare the payable total, then issue the ticket."""
    try:
        return await service.verify_price(db, req.order_reference, req.accept_changes, role)
    except BookingError as e:
        raise http_error(e) from e


@router.post("/confirm", response_model=OrderView)
async def confirm_order(
    req: ConfirmOrderRequest,
    db: AsyncSession = Depends(get_db),
    role: str = Depends(get_caller_role),
    service: BookingService = Depends(get_booking_service),
):
    try:
        return await service.confirm(db, req.order_reference, req.partial_payment, role)
    except BookingError as e:
        logger.warning(f"OrderChange failed for {req.order_reference}: {e.message}")
        raise http_error(e) from e


@router.get("")
async def list_orders(
    created_by: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    service: BookingService = Depends(get_booking_service),
):
    """Locally recorded orders, newest first."""
    records = await service.list_orders(db, created_by, limit)
    return {
        "orders": [
            {
                "id": str(r.id),
                "reference": r.reference,
                "airline_pnr": r.airline_pnr,
                "name": {"given_name": r.given_name, "surname": r.surname},
                "pax": {"adult": r.adults, "child": r.children, "infant": r.infants},
                "route": {"from": r.route_from, "to": r.route_to},
                "airline": r.airline,
                "amount": float(r.amount) if r.amount is not None else 0,
                "currency": r.currency,
                "status": r.status,
                "created_by": r.created_by,
                "fly_date": r.fly_date.isoformat() if r.fly_date else None,
                "created_at": r.created_at.isoformat() if r.created_at else None,
            }
            for r in records
        ]
    }
