import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Index, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from faredesk.database import Base


class MarkupRule(Base):
    """Signed markup percentage for an airline, caller role and optional route.

    Rows with empty ``from_airport``/``to_airport`` are airline-wide rules.
    """

    __tablename__ = "markups"
    __table_args__ = (
        Index("idx_markups_lookup", "airline_code", "role", "from_airport", "to_airport"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    airline_code: Mapped[str] = mapped_column(String(3), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="USER")
    from_airport: Mapped[str | None] = mapped_column(String(3), default="")
    to_airport: Mapped[str | None] = mapped_column(String(3), default="")
    markup: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
