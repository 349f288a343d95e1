"""Markup resolver — signed markup percentage per airline, caller role and route.

Resolution order:
  1. exact (airline, role, origin, destination) rule, when both codes are given
  2. airline-wide (airline, role) rule with an empty route
  3. 0

Lookup failures never block pricing: any error from the source is logged
and the resolver answers 0 ("no markup").
"""

import logging
from abc import ABC, abstractmethod
from decimal import Decimal

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from faredesk.data.money import ZERO, to_money
from faredesk.database import async_session_factory
from faredesk.models.markup import MarkupRule
from faredesk.services.cache_service import CacheService, cache_service

logger = logging.getLogger(__name__)

ROLE_USER = "USER"
ROLE_AGENT = "AGENT"
ROLES = (ROLE_USER, ROLE_AGENT)


def normalize_role(role: str | None) -> str:
    """AGENT stays AGENT; anything else, including a missing role, is USER."""
    if role and role.strip().upper() == ROLE_AGENT:
        return ROLE_AGENT
    return ROLE_USER


class MarkupSource(ABC):
    @abstractmethod
    async def route_markup(
        self, airline_code: str, role: str, origin_code: str, destination_code: str
    ) -> Decimal | None:
        """Route-specific rule or None."""
        ...

    @abstractmethod
    async def airline_markup(self, airline_code: str, role: str) -> Decimal | None:
        """Airline-wide rule or None."""
        ...


class DatabaseMarkupSource(MarkupSource):
    """Reads active rows from the ``markups`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def _first(self, stmt) -> Decimal | None:
        async with self._session_factory() as db:
            result = await db.execute(stmt.limit(1))
            rule = result.scalars().first()
        return to_money(rule.markup) if rule is not None else None

    async def route_markup(self, airline_code, role, origin_code, destination_code):
        stmt = select(MarkupRule).where(
            MarkupRule.airline_code == airline_code,
            MarkupRule.role == role,
            MarkupRule.from_airport == origin_code,
            MarkupRule.to_airport == destination_code,
            MarkupRule.is_active == True,  # noqa: E712
        )
        return await self._first(stmt)

    async def airline_markup(self, airline_code, role):
        stmt = select(MarkupRule).where(
            MarkupRule.airline_code == airline_code,
            MarkupRule.role == role,
            or_(MarkupRule.from_airport == "", MarkupRule.from_airport.is_(None)),
            or_(MarkupRule.to_airport == "", MarkupRule.to_airport.is_(None)),
            MarkupRule.is_active == True,  # noqa: E712
        )
        return await self._first(stmt)


class MarkupResolver:
    """Pure lookup with optional Redis memoization."""

    def __init__(self, source: MarkupSource, cache: CacheService | None = None):
        self._source = source
        self._cache = cache

    async def resolve(
        self,
        airline_code: str | None,
        role: str | None = ROLE_USER,
        origin_code: str | None = None,
        destination_code: str | None = None,
    ) -> Decimal:
        if not airline_code:
            return ZERO

        airline_code = airline_code.upper()
        role = normalize_role(role)
        origin_code = origin_code.upper() if origin_code else None
        destination_code = destination_code.upper() if destination_code else None

        if self._cache is not None:
            cached = await self._cache.get_markup(airline_code, role, origin_code, destination_code)
            if cached is not None:
                return to_money(cached)

        try:
            percent = await self._lookup(airline_code, role, origin_code, destination_code)
        except Exception as e:
            logger.error(f"Markup lookup failed for {airline_code}/{role}, using 0: {e}")
            return ZERO

        if self._cache is not None:
            await self._cache.set_markup(airline_code, role, origin_code, destination_code, str(percent))
        return percent

    async def _lookup(
        self, airline_code: str, role: str, origin_code: str | None, destination_code: str | None
    ) -> Decimal:
        if origin_code and destination_code:
            route = await self._source.route_markup(airline_code, role, origin_code, destination_code)
            if route is not None:
                return route

        airline_wide = await self._source.airline_markup(airline_code, role)
        if airline_wide is not None:
            return airline_wide
        return ZERO


markup_resolver = MarkupResolver(DatabaseMarkupSource(async_session_factory), cache_service)
