from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from qrcontact.db.session import Base
from qrcontact.models.common import UUIDMixin, TimestampMixin

if TYPE_CHECKING:
    from qrcontact.models.scan_record import ScanRecord

class Vehicle(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "vehicles"
    car_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    plate_number: Mapped[str] = mapped_column(String(20), unique=True, nullable=False, index=True)
    owner_name: Mapped[str] = mapped_column(String(200), nullable=False)
    owner_phone: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    owner_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    qr_payload_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    qr_image: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    scans: Mapped[list["ScanRecord"]] = relationship(
        back_populates="vehicle",
        order_by="ScanRecord.timestamp",
        lazy="select",
    )
