import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, Index, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from faredesk.database import Base


class OrderRecord(Base):
    """Local copy of an order created through the booking API."""

    __tablename__ = "order_records"
    __table_args__ = (Index("idx_order_records_created_by", "created_by"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    reference: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    airline_pnr: Mapped[str] = mapped_column(String(20), default="N/A")
    given_name: Mapped[str] = mapped_column(String(100), default="")
    surname: Mapped[str] = mapped_column(String(100), default="")
    adults: Mapped[int] = mapped_column(Integer, default=0)
    children: Mapped[int] = mapped_column(Integer, default=0)
    infants: Mapped[int] = mapped_column(Integer, default=0)
    route_from: Mapped[str] = mapped_column(String(3), default="N/A")
    route_to: Mapped[str] = mapped_column(String(3), default="N/A")
    airline: Mapped[str] = mapped_column(String(3), default="N/A")
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    currency: Mapped[str] = mapped_column(String(3), default="BDT")
    status: Mapped[str] = mapped_column(String(30), default="OnHold")
    created_by: Mapped[str] = mapped_column(String(255), default="anonymous")
    fly_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
