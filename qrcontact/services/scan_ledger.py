from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy.orm import Session

from qrcontact.models.common import as_utc, utcnow
from qrcontact.models.scan_record import ScanRecord
from qrcontact.models.vehicle import Vehicle
from qrcontact.services.errors import InvalidInput, NotFound
from qrcontact.services.passcode_delivery import mask_phone
from qrcontact.services.vehicle_directory import SqlVehicleDirectory, VehicleDirectory

logger = logging.getLogger(__name__)

DEFAULT_REASON = "Contact request"
MAX_REASON_LEN = 500
WEEK = timedelta(days=7)
_OWNER_PHONE_RE = re.compile(r"^\+[1-9]\d{1,14}$")


@dataclass(frozen=True)
class ScanEvent:
    scanner_name: str
    scanner_phone: str
    reason: str | None
    verified: bool
    source_address: str | None = None
    session_id: str | None = None
    attempt: int | None = None
    timestamp: datetime | None = None


def _clean_reason(raw: str | None) -> str:
    value = str(raw or "").strip()
    return value[:MAX_REASON_LEN] if value else DEFAULT_REASON


def record(db: Session, car_id: str, event: ScanEvent, *, directory: VehicleDirectory | None = None) -> ScanRecord | None:
    """Append one scan record. Returns None when this (session, attempt) is already recorded."""
    vehicle = (directory or SqlVehicleDirectory(db)).find(car_id)
    if vehicle is None:
        raise NotFound("Vehicle not found")

    if event.session_id and event.attempt is not None:
        existing = (
            db.query(ScanRecord.id)
            .filter(ScanRecord.session_id == event.session_id, ScanRecord.attempt == event.attempt)
            .first()
        )
        if existing is not None:
            logger.info("scan_record_duplicate car=%s session=%s attempt=%s", vehicle.car_id, event.session_id, event.attempt)
            return None

    row = ScanRecord(
        vehicle_id=vehicle.id,
        car_id=vehicle.car_id,
        session_id=event.session_id,
        attempt=event.attempt,
        scanner_name=str(event.scanner_name or "").strip(),
        scanner_phone=str(event.scanner_phone or "").strip(),
        reason=_clean_reason(event.reason),
        timestamp=event.timestamp or utcnow(),
        verified=bool(event.verified),
        source_address=str(event.source_address or "").strip() or None,
    )
    db.add(row)
    db.flush()
    logger.info(
        "scan_recorded car=%s session=%s verified=%s scanner=%s",
        vehicle.car_id,
        event.session_id or "-",
        row.verified,
        mask_phone(row.scanner_phone),
    )
    return row


def list_scans(db: Session, car_id: str) -> tuple[Vehicle, list[ScanRecord]]:
    vehicle = SqlVehicleDirectory(db).find(car_id)
    if vehicle is None:
        raise NotFound("Vehicle not found")
    rows = (
        db.query(ScanRecord)
        .filter(ScanRecord.vehicle_id == vehicle.id)
        .order_by(ScanRecord.timestamp.desc())
        .all()
    )
    return vehicle, rows


def serialize_scan(row: ScanRecord) -> dict[str, Any]:
    return {
        "scanner_name": row.scanner_name,
        "scanner_phone": row.scanner_phone,
        "reason": row.reason,
        "timestamp": as_utc(row.timestamp),
        "verified": bool(row.verified),
        "source_address": row.source_address,
    }


def _owner_vehicles_or_404(db: Session, owner_phone: str) -> list[Vehicle]:
    phone = str(owner_phone or "").strip()
    if not phone.startswith("+") or not _OWNER_PHONE_RE.fullmatch(phone):
        raise InvalidInput("Phone must include country code, e.g. +15550001111")
    vehicles = SqlVehicleDirectory(db).find_active_by_owner_phone(phone)
    if not vehicles:
        raise NotFound("No vehicles found for this phone number")
    return vehicles


def _scans_for(db: Session, vehicles: list[Vehicle]) -> list[ScanRecord]:
    ids = [vehicle.id for vehicle in vehicles]
    return (
        db.query(ScanRecord)
        .filter(ScanRecord.vehicle_id.in_(ids))
        .order_by(ScanRecord.timestamp.desc())
        .all()
    )


def owner_scan_logs(db: Session, owner_phone: str) -> dict[str, Any]:
    vehicles = _owner_vehicles_or_404(db, owner_phone)
    plates = {vehicle.id: vehicle.plate_number for vehicle in vehicles}
    entries = []
    for row in _scans_for(db, vehicles):
        item = serialize_scan(row)
        item["car_id"] = row.car_id
        item["plate_number"] = plates.get(row.vehicle_id, "")
        entries.append(item)
    return {"total_cars": len(vehicles), "total_scans": len(entries), "scans": entries}


def owner_scan_stats(db: Session, owner_phone: str, *, now: datetime | None = None) -> dict[str, Any]:
    vehicles = _owner_vehicles_or_404(db, owner_phone)
    current = as_utc(now)
    day_start = current.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = current - WEEK

    by_plate: dict[str, dict[str, int]] = {vehicle.plate_number: {"total": 0, "verified": 0} for vehicle in vehicles}
    plates = {vehicle.id: vehicle.plate_number for vehicle in vehicles}
    stats = {
        "total_cars": len(vehicles),
        "total_scans": 0,
        "verified_scans": 0,
        "today_scans": 0,
        "this_week_scans": 0,
        "scans_by_plate": by_plate,
    }
    for row in _scans_for(db, vehicles):
        plate_stats = by_plate[plates[row.vehicle_id]]
        stats["total_scans"] += 1
        plate_stats["total"] += 1
        if row.verified:
            stats["verified_scans"] += 1
            plate_stats["verified"] += 1
        ts = as_utc(row.timestamp)
        if ts >= day_start:
            stats["today_scans"] += 1
        if ts >= week_start:
            stats["this_week_scans"] += 1
    return stats
