from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from qrcontact.db.session import Base
from qrcontact.models.common import UUIDMixin, utcnow
from qrcontact.models.vehicle import Vehicle


class ScanRecord(Base, UUIDMixin):
    """Append-only audit entry for one contact request against a vehicle."""

    __tablename__ = "scan_records"
    __table_args__ = (UniqueConstraint("session_id", "attempt", name="uq_scan_records_session_attempt"),)

    vehicle_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("vehicles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    car_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    session_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    attempt: Mapped[int | None] = mapped_column(Integer, nullable=True)

    scanner_name: Mapped[str] = mapped_column(String(200), nullable=False)
    scanner_phone: Mapped[str] = mapped_column(String(30), nullable=False)
    reason: Mapped[str] = mapped_column(String(500), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    source_address: Mapped[str | None] = mapped_column(String(64), nullable=True)

    vehicle: Mapped[Vehicle] = relationship(back_populates="scans")
