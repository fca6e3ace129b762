"""Passcode verification and contact disclosure.

Evaluation order for a verify call:

1. passcode format (``InvalidInput``);
2. active vehicle, known session of that vehicle, same scanner phone (``NotFound``);
3. terminal session (``Expired``, nothing changes);
4. wall-clock expiry, checked before any attempt is counted (``Expired``);
5. atomic attempt consumption;
6. match -> VERIFIED, verified scan record, owner contact;
   mismatch -> ``InvalidPasscode`` or, on the last slot, EXHAUSTED and ``AttemptsExceeded``.

Owner contact is only built after this call has won the VERIFIED transition.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.orm import Session

from qrcontact.core.config import settings
from qrcontact.core.security import verify_passcode
from qrcontact.models.common import as_utc
from qrcontact.models.otp_session import OtpSession
from qrcontact.models.vehicle import Vehicle
from qrcontact.services import scan_ledger
from qrcontact.services.errors import AttemptsExceeded, Expired, InvalidInput, InvalidPasscode, NotFound
from qrcontact.services.passcode_delivery import mask_phone
from qrcontact.services.passcode_issuer import normalize_reason, normalize_scanner_name, normalize_scanner_phone
from qrcontact.services.session_state import OtpStatus, parse_status
from qrcontact.services.session_store import consume_attempt, get_session, transition
from qrcontact.services.vehicle_directory import SqlVehicleDirectory, VehicleDirectory

logger = logging.getLogger(__name__)

PASSCODE_RE = re.compile(r"^[0-9]{6}$")

TERMINAL_MESSAGES = {
    OtpStatus.VERIFIED: "Passcode already used; request a new challenge",
    OtpStatus.EXPIRED: "Passcode has expired; request a new challenge",
    OtpStatus.EXHAUSTED: "Too many wrong passcodes; request a new challenge",
}


@dataclass(frozen=True)
class OwnerContact:
    name: str
    phone: str = field(repr=False)


def _max_attempts() -> int:
    return int(max(settings.OTP_MAX_ATTEMPTS, 1))


def _terminal_error(row: OtpSession) -> Expired:
    return Expired(TERMINAL_MESSAGES.get(parse_status(row.status), TERMINAL_MESSAGES[OtpStatus.EXPIRED]))


def _scan_event(
    row: OtpSession,
    *,
    verified: bool,
    attempt: int,
    scanner_name: str,
    reason: str,
    source_address: str | None,
    now: datetime,
) -> scan_ledger.ScanEvent:
    return scan_ledger.ScanEvent(
        scanner_name=scanner_name or row.scanner_name,
        scanner_phone=row.scanner_phone,
        reason=reason or row.reason,
        verified=verified,
        source_address=source_address or row.source_address,
        session_id=row.session_id,
        attempt=attempt,
        timestamp=now,
    )


def _load_session_or_404(db: Session, vehicle: Vehicle, session_id: str, scanner_phone: str) -> OtpSession:
    row = get_session(db, session_id)
    if row is None or row.car_id != vehicle.car_id:
        raise NotFound("Session not found")
    if scanner_phone and scanner_phone != row.scanner_phone:
        raise NotFound("Session not found")
    return row


def verify(
    db: Session,
    *,
    car_id: str,
    session_id: str,
    passcode: str,
    scanner_name: str | None = None,
    scanner_phone: str | None = None,
    reason: str | None = None,
    source_address: str | None = None,
    directory: VehicleDirectory | None = None,
    now: datetime | None = None,
) -> OwnerContact:
    code = str(passcode or "").strip()
    if not PASSCODE_RE.fullmatch(code):
        raise InvalidInput("Passcode must be exactly 6 digits")

    directory = directory or SqlVehicleDirectory(db)
    vehicle = directory.find_active(car_id)
    if vehicle is None:
        raise NotFound("Vehicle not found or inactive")

    row = _load_session_or_404(db, vehicle, session_id, normalize_scanner_phone(scanner_phone))
    if parse_status(row.status) != OtpStatus.PENDING:
        raise _terminal_error(row)

    current = as_utc(now)
    if current > as_utc(row.expires_at):
        transition(db, row, OtpStatus.EXPIRED, now=current)
        db.commit()
        logger.info("otp_expired car=%s session=%s", vehicle.car_id, row.session_id)
        raise Expired(TERMINAL_MESSAGES[OtpStatus.EXPIRED])

    max_attempts = _max_attempts()
    matched = verify_passcode(code, row.passcode_hash)
    attempt = consume_attempt(db, row, max_attempts=max_attempts, now=current)
    if attempt is None:
        still_pending = parse_status(row.status) == OtpStatus.PENDING
        error = AttemptsExceeded(TERMINAL_MESSAGES[OtpStatus.EXHAUSTED]) if still_pending else _terminal_error(row)
        db.rollback()
        raise error

    name = normalize_scanner_name(scanner_name)
    why = normalize_reason(reason)

    if matched:
        if not transition(db, row, OtpStatus.VERIFIED, now=current):
            db.rollback()
            raise _terminal_error(row)
        scan_ledger.record(
            db,
            vehicle.car_id,
            _scan_event(row, verified=True, attempt=attempt, scanner_name=name, reason=why, source_address=source_address, now=current),
            directory=directory,
        )
        contact = OwnerContact(name=vehicle.owner_name, phone=vehicle.owner_phone)
        db.commit()
        logger.info(
            "otp_verified car=%s session=%s attempt=%s scanner=%s",
            vehicle.car_id,
            row.session_id,
            attempt,
            mask_phone(row.scanner_phone),
        )
        return contact

    exhausted = attempt >= max_attempts
    if exhausted:
        transition(db, row, OtpStatus.EXHAUSTED, now=current)
    if settings.OTP_RECORD_FAILED_ATTEMPTS:
        scan_ledger.record(
            db,
            vehicle.car_id,
            _scan_event(row, verified=False, attempt=attempt, scanner_name=name, reason=why, source_address=source_address, now=current),
            directory=directory,
        )
    db.commit()
    logger.info(
        "otp_rejected car=%s session=%s attempt=%s/%s exhausted=%s",
        vehicle.car_id,
        row.session_id,
        attempt,
        max_attempts,
        exhausted,
    )
    if exhausted:
        raise AttemptsExceeded(TERMINAL_MESSAGES[OtpStatus.EXHAUSTED])
    left = max_attempts - attempt
    raise InvalidPasscode(f"Wrong passcode, {left} attempt(s) left")
