from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from qrcontact.db.session import get_db
from qrcontact.schemas.public import OwnerScanLogs, OwnerScanStats, VehicleCard, VehicleRegister, VehicleRegistered
from qrcontact.services import scan_ledger
from qrcontact.services.vehicle_registry import public_card, register_vehicle

router = APIRouter()


@router.post("/cars", status_code=201, response_model=VehicleRegistered)
def create_vehicle(payload: VehicleRegister, db: Session = Depends(get_db)):
    registered = register_vehicle(
        db,
        owner_name=payload.owner_name,
        owner_phone=payload.owner_phone,
        plate_number=payload.plate_number,
        owner_email=payload.owner_email,
    )
    return VehicleRegistered(
        car_id=registered.car_id,
        plate_number=registered.plate_number,
        qr_code=registered.qr_image,
        payload_url=registered.payload_url,
    )


@router.get("/cars/{car_id}", response_model=VehicleCard)
def get_vehicle_card(car_id: str, db: Session = Depends(get_db)):
    return VehicleCard(**public_card(db, car_id))


@router.get("/scan-logs/{owner_phone}", response_model=OwnerScanLogs)
def get_owner_scan_logs(owner_phone: str, db: Session = Depends(get_db)):
    return OwnerScanLogs(**scan_ledger.owner_scan_logs(db, owner_phone))


@router.get("/scan-stats/{owner_phone}", response_model=OwnerScanStats)
def get_owner_scan_stats(owner_phone: str, db: Session = Depends(get_db)):
    return OwnerScanStats(**scan_ledger.owner_scan_stats(db, owner_phone))
