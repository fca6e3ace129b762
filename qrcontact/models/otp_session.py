from sqlalchemy import String, Integer, DateTime, Index, text
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime, timedelta
from qrcontact.db.session import Base
from qrcontact.models.common import UUIDMixin, TimestampMixin, utcnow

DEFAULT_TTL = timedelta(minutes=5)

class OtpSession(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "otp_sessions"
    __table_args__ = (
        # One PENDING challenge per (car, scanner phone).
        Index(
            "uq_otp_sessions_pending_pair",
            "car_id",
            "scanner_phone",
            unique=True,
            postgresql_where=text("status = 'PENDING'"),
            sqlite_where=text("status = 'PENDING'"),
        ),
    )
    session_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    car_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    passcode_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    scanner_name: Mapped[str] = mapped_column(String(200), nullable=False)
    scanner_phone: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    reason: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    source_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="PENDING", index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: utcnow() + DEFAULT_TTL, index=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
