from datetime import datetime
from typing import Optional, Dict, List

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChallengeCreate(CamelModel):
    car_id: str = Field(min_length=1, max_length=64)
    scanner_name: str = Field(max_length=200)
    scanner_phone: str = Field(max_length=30)
    reason: Optional[str] = Field(default=None, max_length=500)


class ChallengeIssued(CamelModel):
    session_id: str
    expires_at: datetime
    ttl_seconds: int
    delivery_status: str
    demo_passcode: Optional[str] = None


class VerifyRequest(CamelModel):
    car_id: str = Field(min_length=1, max_length=64)
    session_id: str = Field(min_length=1, max_length=64)
    passcode: str = Field(max_length=16)
    scanner_name: Optional[str] = Field(default=None, max_length=200)
    scanner_phone: Optional[str] = Field(default=None, max_length=30)
    reason: Optional[str] = Field(default=None, max_length=500)


class OwnerContactRead(CamelModel):
    owner_name: str
    owner_phone: str


class ScanRead(CamelModel):
    scanner_name: str
    scanner_phone: str
    reason: str
    timestamp: datetime
    verified: bool
    source_address: Optional[str] = None


class ScanHistory(CamelModel):
    car_id: str
    total_scans: int
    scans: List[ScanRead]


class OwnerScanRead(ScanRead):
    car_id: str
    plate_number: str


class OwnerScanLogs(CamelModel):
    total_cars: int
    total_scans: int
    scans: List[OwnerScanRead]


class PlateStats(CamelModel):
    total: int
    verified: int


class OwnerScanStats(CamelModel):
    total_cars: int
    total_scans: int
    verified_scans: int
    today_scans: int
    this_week_scans: int
    scans_by_plate: Dict[str, PlateStats]


class VehicleRegister(CamelModel):
    owner_name: str = Field(max_length=200)
    owner_phone: str = Field(max_length=20)
    plate_number: str = Field(max_length=20)
    owner_email: Optional[str] = Field(default=None, max_length=255)


class VehicleRegistered(CamelModel):
    car_id: str
    plate_number: str
    qr_code: str
    payload_url: str


class VehicleCard(CamelModel):
    car_id: str
    plate_number: str
    owner_name: str
