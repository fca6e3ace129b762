from __future__ import annotations

from typing import Protocol

from sqlalchemy.orm import Session

from qrcontact.models.vehicle import Vehicle


class VehicleDirectory(Protocol):
    def find_active(self, car_id: str) -> Vehicle | None:
        ...

    def find(self, car_id: str) -> Vehicle | None:
        ...


class SqlVehicleDirectory:
    def __init__(self, db: Session):
        self.db = db

    def find(self, car_id: str) -> Vehicle | None:
        value = normalize_car_id(car_id)
        if not value:
            return None
        return self.db.query(Vehicle).filter(Vehicle.car_id == value).first()

    def find_active(self, car_id: str) -> Vehicle | None:
        value = normalize_car_id(car_id)
        if not value:
            return None
        return (
            self.db.query(Vehicle)
            .filter(Vehicle.car_id == value, Vehicle.is_active.is_(True))
            .first()
        )

    def find_active_by_owner_phone(self, owner_phone: str) -> list[Vehicle]:
        return (
            self.db.query(Vehicle)
            .filter(Vehicle.owner_phone == owner_phone, Vehicle.is_active.is_(True))
            .order_by(Vehicle.created_at.asc())
            .all()
        )


def normalize_car_id(raw: str | None) -> str:
    return str(raw or "").strip()
