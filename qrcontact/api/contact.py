from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from qrcontact.core.config import settings
from qrcontact.core.deps import get_client_ip
from qrcontact.db.session import get_db
from qrcontact.schemas.public import (
    ChallengeCreate,
    ChallengeIssued,
    OwnerContactRead,
    ScanHistory,
    ScanRead,
    VerifyRequest,
)
from qrcontact.services import scan_ledger
from qrcontact.services.passcode_issuer import issue_challenge, normalize_scanner_phone
from qrcontact.services.passcode_verifier import verify
from qrcontact.services.rate_limit import ACTION_CHALLENGE, ACTION_VERIFY, enforce_rate_limit

router = APIRouter()


@router.post("/challenge", status_code=201, response_model=ChallengeIssued)
def create_challenge(
    payload: ChallengeCreate,
    client_ip: str = Depends(get_client_ip),
    db: Session = Depends(get_db),
):
    enforce_rate_limit(
        ACTION_CHALLENGE,
        client_ip=client_ip,
        scanner_phone=normalize_scanner_phone(payload.scanner_phone) or None,
    )
    issued = issue_challenge(
        db,
        car_id=payload.car_id,
        scanner_name=payload.scanner_name,
        scanner_phone=payload.scanner_phone,
        reason=payload.reason,
        source_address=client_ip,
    )
    demo_passcode = None
    if settings.OTP_DEMO_EXPOSE_PASSCODE and issued.delivery.mocked:
        demo_passcode = issued.delivery.debug_code
    return ChallengeIssued(
        session_id=issued.session_id,
        expires_at=issued.expires_at,
        ttl_seconds=issued.ttl_seconds,
        delivery_status=issued.delivery.status,
        demo_passcode=demo_passcode,
    )


@router.post("/verify", response_model=OwnerContactRead)
def verify_passcode(
    payload: VerifyRequest,
    client_ip: str = Depends(get_client_ip),
    db: Session = Depends(get_db),
):
    enforce_rate_limit(
        ACTION_VERIFY,
        client_ip=client_ip,
        scanner_phone=normalize_scanner_phone(payload.scanner_phone) or None,
    )
    contact = verify(
        db,
        car_id=payload.car_id,
        session_id=payload.session_id,
        passcode=payload.passcode,
        scanner_name=payload.scanner_name,
        scanner_phone=payload.scanner_phone,
        reason=payload.reason,
        source_address=client_ip,
    )
    return OwnerContactRead(owner_name=contact.name, owner_phone=contact.phone)


@router.get("/scans/{car_id}", response_model=ScanHistory)
def get_scans(car_id: str, db: Session = Depends(get_db)):
    vehicle, rows = scan_ledger.list_scans(db, car_id)
    scans = [ScanRead(**scan_ledger.serialize_scan(row)) for row in rows]
    return ScanHistory(car_id=vehicle.car_id, total_scans=len(scans), scans=scans)
