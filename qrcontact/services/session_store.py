"""Persistence of OTP sessions.

Every status change and attempt increment is a conditional ``UPDATE`` guarded by
the current status (and the attempt cap), with the affected row count deciding
the winner. Two concurrent verify calls against one session therefore serialize
in the database: attempts stay capped and at most one call reaches VERIFIED.
"""
from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from qrcontact.core.security import hash_passcode
from qrcontact.models.otp_session import OtpSession
from qrcontact.services.session_state import OtpStatus, mark_expired, require_transition

logger = logging.getLogger(__name__)

SESSION_ID_PREFIX = "otp_"


def new_session_id() -> str:
    return f"{SESSION_ID_PREFIX}{secrets.token_urlsafe(24)}"


def create_session(
    db: Session,
    *,
    car_id: str,
    scanner_name: str,
    scanner_phone: str,
    reason: str,
    passcode: str,
    now: datetime,
    ttl_seconds: int,
    source_address: str | None = None,
) -> OtpSession:
    row = OtpSession(
        session_id=new_session_id(),
        car_id=car_id,
        passcode_hash=hash_passcode(passcode),
        scanner_name=scanner_name,
        scanner_phone=scanner_phone,
        reason=reason,
        source_address=source_address,
        attempts=0,
        status=OtpStatus.PENDING.value,
        created_at=now,
        updated_at=now,
        expires_at=now + timedelta(seconds=max(int(ttl_seconds), 1)),
    )
    db.add(row)
    db.flush()
    return row


def get_session(db: Session, session_id: str) -> OtpSession | None:
    value = str(session_id or "").strip()
    if not value:
        return None
    return db.query(OtpSession).filter(OtpSession.session_id == value).first()


def supersede_pending(db: Session, *, car_id: str, scanner_phone: str, now: datetime) -> int:
    """Expire every PENDING session of the pair so a new challenge can take its place."""
    target = mark_expired(OtpStatus.PENDING)
    result = db.execute(
        update(OtpSession)
        .where(
            OtpSession.car_id == car_id,
            OtpSession.scanner_phone == scanner_phone,
            OtpSession.status == OtpStatus.PENDING.value,
        )
        .values(status=target.value, resolved_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


def transition(db: Session, row: OtpSession, to_status: OtpStatus, *, now: datetime) -> bool:
    """Move ``row`` out of PENDING. Returns False when another caller got there first."""
    target = require_transition(row.status, to_status)
    result = db.execute(
        update(OtpSession)
        .where(OtpSession.id == row.id, OtpSession.status == OtpStatus.PENDING.value)
        .values(status=target.value, resolved_at=now, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.refresh(row)
    won = int(result.rowcount or 0) == 1
    if not won:
        logger.info("otp_transition_lost session=%s wanted=%s actual=%s", row.session_id, target.value, row.status)
    return won


def consume_attempt(db: Session, row: OtpSession, *, max_attempts: int, now: datetime) -> int | None:
    """Atomically take one attempt slot. Returns the new count, or None if none was left."""
    result = db.execute(
        update(OtpSession)
        .where(
            OtpSession.id == row.id,
            OtpSession.status == OtpStatus.PENDING.value,
            OtpSession.attempts < int(max_attempts),
        )
        .values(attempts=OtpSession.attempts + 1, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    db.refresh(row)
    if int(result.rowcount or 0) != 1:
        return None
    return int(row.attempts)


def sweep_expired(db: Session, *, now: datetime) -> int:
    result = db.execute(
        delete(OtpSession)
        .where(OtpSession.expires_at < now)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)
