from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qrcontact.core.config import settings
from qrcontact.models.common import as_utc
from qrcontact.models.otp_session import OtpSession
from qrcontact.services.errors import DeliveryFailed, InvalidInput, NotFound
from qrcontact.services.passcode_delivery import (
    DeliveryResult,
    PasscodeDelivery,
    PasscodeDeliveryError,
    get_passcode_delivery,
    mask_phone,
)
from qrcontact.services.session_store import create_session, supersede_pending
from qrcontact.services.vehicle_directory import SqlVehicleDirectory, VehicleDirectory, normalize_car_id

logger = logging.getLogger(__name__)

PASSCODE_MIN = 100_000
PASSCODE_MAX = 999_999
MIN_PHONE_DIGITS = 5
MAX_NAME_LEN = 200
MAX_REASON_LEN = 500


@dataclass
class IssuedChallenge:
    session_id: str
    expires_at: datetime
    ttl_seconds: int
    delivery: DeliveryResult


def generate_passcode() -> str:
    return str(PASSCODE_MIN + secrets.randbelow(PASSCODE_MAX - PASSCODE_MIN + 1))


def normalize_scanner_phone(raw: str | None) -> str:
    value = str(raw or "").strip()
    if not value:
        return ""
    digits = "".join(ch for ch in value if ch.isdigit())
    if not digits:
        return ""
    return f"+{digits}" if value.startswith("+") else digits


def normalize_scanner_name(raw: str | None) -> str:
    return " ".join(str(raw or "").split())[:MAX_NAME_LEN]


def normalize_reason(raw: str | None) -> str:
    return str(raw or "").strip()[:MAX_REASON_LEN]


def _ttl_seconds() -> int:
    return int(max(settings.OTP_TTL_SECONDS, 1))


def _supersede_and_create(db: Session, *, car_id: str, scanner_phone: str, now: datetime, **fields) -> OtpSession:
    superseded = supersede_pending(db, car_id=car_id, scanner_phone=scanner_phone, now=now)
    if superseded:
        logger.info("otp_superseded car=%s scanner=%s count=%s", car_id, mask_phone(scanner_phone), superseded)
    return create_session(
        db,
        car_id=car_id,
        scanner_phone=scanner_phone,
        now=now,
        ttl_seconds=_ttl_seconds(),
        **fields,
    )


def _write_session(db: Session, *, car_id: str, scanner_phone: str, now: datetime, **fields) -> OtpSession:
    try:
        return _supersede_and_create(db, car_id=car_id, scanner_phone=scanner_phone, now=now, **fields)
    except IntegrityError:
        # A concurrent challenge for the same pair got in between supersede and insert.
        db.rollback()
        return _supersede_and_create(db, car_id=car_id, scanner_phone=scanner_phone, now=now, **fields)


def issue_challenge(
    db: Session,
    *,
    car_id: str,
    scanner_name: str,
    scanner_phone: str,
    reason: str | None = None,
    source_address: str | None = None,
    directory: VehicleDirectory | None = None,
    delivery: PasscodeDelivery | None = None,
    now: datetime | None = None,
) -> IssuedChallenge:
    """Open a PENDING OTP session for (car, scanner) and hand its passcode to the delivery channel.

    Any earlier PENDING session for the same car and scanner phone is expired first,
    so only the newest passcode can ever be verified.
    """
    car = normalize_car_id(car_id)
    name = normalize_scanner_name(scanner_name)
    phone = normalize_scanner_phone(scanner_phone)
    if not car:
        raise InvalidInput('Field "carId" is required')
    if not name:
        raise InvalidInput('Field "scannerName" is required')
    if not phone:
        raise InvalidInput('Field "scannerPhone" is required')
    if sum(ch.isdigit() for ch in phone) < MIN_PHONE_DIGITS:
        raise InvalidInput('Field "scannerPhone" is not a valid phone number')

    vehicle = (directory or SqlVehicleDirectory(db)).find_active(car)
    if vehicle is None:
        raise NotFound("Vehicle not found or inactive")

    try:
        channel = delivery or get_passcode_delivery()
    except PasscodeDeliveryError as exc:
        raise DeliveryFailed(f"Passcode delivery is not available: {exc}") from exc

    current = as_utc(now)
    passcode = generate_passcode()
    row = _write_session(
        db,
        car_id=vehicle.car_id,
        scanner_name=name,
        scanner_phone=phone,
        reason=normalize_reason(reason),
        passcode=passcode,
        now=current,
        source_address=source_address,
    )

    # Sent inside the open transaction: the superseded row stays locked until the
    # gateway answers, and a failed send rolls back both writes.
    try:
        result = channel.send(phone, passcode)
    except PasscodeDeliveryError as exc:
        db.rollback()
        logger.warning("otp_delivery_failed car=%s scanner=%s error=%s", vehicle.car_id, mask_phone(phone), exc)
        raise DeliveryFailed(f"Could not deliver the passcode: {exc}") from exc

    db.commit()
    db.refresh(row)
    logger.info(
        "otp_issued car=%s session=%s scanner=%s provider=%s",
        vehicle.car_id,
        row.session_id,
        mask_phone(phone),
        result.provider,
    )
    return IssuedChallenge(
        session_id=row.session_id,
        expires_at=as_utc(row.expires_at),
        ttl_seconds=_ttl_seconds(),
        delivery=result,
    )
