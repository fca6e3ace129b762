from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass

from sqlalchemy.orm import Session

from qrcontact.models.vehicle import Vehicle
from qrcontact.services.errors import InvalidInput, NotFound
from qrcontact.services.qr_image import QrImageError, QrImageService, get_qr_image_service
from qrcontact.services.vehicle_directory import SqlVehicleDirectory

logger = logging.getLogger(__name__)

OWNER_PHONE_RE = re.compile(r"^\+[1-9]\d{1,14}$")
PLATE_RE = re.compile(r"^[A-Z0-9][A-Z0-9 -]{0,18}[A-Z0-9]$|^[A-Z0-9]$")
CAR_ID_PREFIX = "car_"


@dataclass
class RegisteredVehicle:
    car_id: str
    plate_number: str
    qr_image: str
    payload_url: str


def normalize_plate(raw: str | None) -> str:
    return " ".join(str(raw or "").upper().split())


def new_car_id() -> str:
    return f"{CAR_ID_PREFIX}{secrets.token_hex(8)}"


def register_vehicle(
    db: Session,
    *,
    owner_name: str,
    owner_phone: str,
    plate_number: str,
    owner_email: str | None = None,
    qr_service: QrImageService | None = None,
) -> RegisteredVehicle:
    name = " ".join(str(owner_name or "").split())
    phone = str(owner_phone or "").strip()
    plate = normalize_plate(plate_number)
    email = str(owner_email or "").strip().lower() or None
    if not name or not phone or not plate:
        raise InvalidInput("Owner name, owner phone and plate number are required")
    if not OWNER_PHONE_RE.fullmatch(phone):
        raise InvalidInput("Owner phone must be in international format, e.g. +15550001111")
    if not PLATE_RE.fullmatch(plate):
        raise InvalidInput("Plate number contains unsupported characters")

    exists = db.query(Vehicle.id).filter(Vehicle.plate_number == plate).first()
    if exists is not None:
        raise InvalidInput("Car with this plate number already registered")

    car_id = new_car_id()
    try:
        qr = (qr_service or get_qr_image_service()).generate(car_id)
    except QrImageError as exc:
        raise InvalidInput(str(exc)) from exc

    row = Vehicle(
        car_id=car_id,
        plate_number=plate,
        owner_name=name,
        owner_phone=phone,
        owner_email=email,
        qr_payload_url=qr.payload_url,
        qr_image=qr.image,
        is_active=True,
    )
    db.add(row)
    db.commit()
    logger.info("vehicle_registered car=%s plate=%s", car_id, plate)
    return RegisteredVehicle(car_id=car_id, plate_number=plate, qr_image=qr.image, payload_url=qr.payload_url)


def public_card(db: Session, car_id: str) -> dict[str, str]:
    """What a scanner sees before verification: no owner phone or email."""
    vehicle = SqlVehicleDirectory(db).find_active(car_id)
    if vehicle is None:
        raise NotFound("Car not found or inactive")
    return {
        "car_id": vehicle.car_id,
        "plate_number": vehicle.plate_number,
        "owner_name": vehicle.owner_name,
    }
