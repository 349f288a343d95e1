"""Markup management router — admin CRUD for airline/route markup rules."""

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from faredesk.database import get_db
from faredesk.dependencies import get_cache_service
from faredesk.models.markup import MarkupRule
from faredesk.schemas.markup import MarkupCreate, MarkupUpdate, check_route
from faredesk.services.cache_service import CacheService

logger = logging.getLogger(__name__)

router = APIRouter()

DUPLICATE_MESSAGE = "A markup for this airline, role and route already exists"


def _serialize(rule: MarkupRule) -> dict:
    return {
        "id": str(rule.id),
        "airline_code": rule.airline_code,
        "role": rule.role,
        "from_airport": rule.from_airport or "",
        "to_airport": rule.to_airport or "",
        "markup": float(rule.markup),
        "is_active": rule.is_active,
        "created_at": rule.created_at.isoformat() if rule.created_at else None,
    }


async def _find_duplicate(
    db: AsyncSession,
    airline_code: str,
    role: str,
    from_airport: str | None,
    to_airport: str | None,
    exclude_id: uuid.UUID | None = None,
) -> MarkupRule | None:
    """Another active rule for the same airline, role and route, if any."""
    stmt = select(MarkupRule).where(
        MarkupRule.airline_code == airline_code,
        MarkupRule.role == role,
        MarkupRule.from_airport == (from_airport or ""),
        MarkupRule.to_airport == (to_airport or ""),
        MarkupRule.is_active == True,  # noqa: E712
    )
    if exclude_id is not None:
        stmt = stmt.where(MarkupRule.id != exclude_id)
    result = await db.execute(stmt)
    return result.scalars().first()


async def _get_rule(db: AsyncSession, markup_id: uuid.UUID) -> MarkupRule:
    result = await db.execute(select(MarkupRule).where(MarkupRule.id == markup_id))
    rule = result.scalar_one_or_none()
    if not rule:
        raise HTTPException(status_code=404, detail="Markup not found")
    return rule


@router.get("")
async def list_markups(
    airline: str | None = Query(None),
    role: str | None = Query(None),
    from_airport: str | None = Query(None, alias="from"),
    to_airport: str | None = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
):
    """List active markup rules, optionally filtered."""
    stmt = select(MarkupRule).where(MarkupRule.is_active == True)  # noqa: E712
    if airline:
        stmt = stmt.where(MarkupRule.airline_code == airline.upper())
    if role:
        stmt = stmt.where(MarkupRule.role == role.upper())
    if from_airport:
        stmt = stmt.where(MarkupRule.from_airport == from_airport.upper())
    if to_airport:
        stmt = stmt.where(MarkupRule.to_airport == to_airport.upper())
    result = await db.execute(
        stmt.order_by(MarkupRule.airline_code, MarkupRule.role, MarkupRule.from_airport)
    )
    return {"markups": [_serialize(r) for r in result.scalars().all()]}


@router.post("", status_code=201)
async def create_markup(
    req: MarkupCreate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    if await _find_duplicate(db, req.airline_code, req.role, req.from_airport, req.to_airport):
        raise HTTPException(status_code=409, detail=DUPLICATE_MESSAGE)

    rule = MarkupRule(
        airline_code=req.airline_code,
        role=req.role,
        from_airport=req.from_airport,
        to_airport=req.to_airport,
        markup=req.markup,
    )
    db.add(rule)
    await db.commit()
    await db.refresh(rule)
    await cache.invalidate_markups(rule.airline_code, rule.role)
    logger.info(f"Markup created: {rule.airline_code}/{rule.role} {rule.from_airport or '*'}-{rule.to_airport or '*'} = {rule.markup}%")
    return _serialize(rule)


@router.put("/{markup_id}")
async def update_markup(
    markup_id: uuid.UUID,
    req: MarkupUpdate,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    rule = await _get_rule(db, markup_id)
    old_role = rule.role

    update_data = {k: v for k, v in req.model_dump(exclude_unset=True).items() if v is not None}
    merged = {
        "role": rule.role,
        "from_airport": rule.from_airport,
        "to_airport": rule.to_airport,
        "is_active": rule.is_active,
        **update_data,
    }
    try:
        check_route(merged["from_airport"], merged["to_airport"])
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    if merged["is_active"] and await _find_duplicate(
        db, rule.airline_code, merged["role"], merged["from_airport"], merged["to_airport"], exclude_id=rule.id
    ):
        raise HTTPException(status_code=409, detail=DUPLICATE_MESSAGE)

    for field, value in update_data.items():
        setattr(rule, field, value)

    await db.commit()
    await db.refresh(rule)
    await cache.invalidate_markups(rule.airline_code, old_role)
    if rule.role != old_role:
        await cache.invalidate_markups(rule.airline_code, rule.role)
    return _serialize(rule)


@router.delete("/{markup_id}", status_code=204)
async def delete_markup(
    markup_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
    cache: CacheService = Depends(get_cache_service),
):
    """Soft delete a markup rule."""
    rule = await _get_rule(db, markup_id)
    rule.is_active = False
    await db.commit()
    await cache.invalidate_markups(rule.airline_code, rule.role)
