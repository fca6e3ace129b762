import os
import unittest
from datetime import datetime, timezone
from unittest.mock import patch

from fastapi.testclient import TestClient
from sqlalchemy import create_engine, delete
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure settings can be initialized in test environments
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("OTP_DELIVERY_PROVIDER", "dummy")

from qrcontact.db.session import get_db
from qrcontact.main import app
from qrcontact.models.otp_session import OtpSession
from qrcontact.models.scan_record import ScanRecord
from qrcontact.models.vehicle import Vehicle

OWNER_NAME = "Dana Owner"
OWNER_PHONE = "+15559990000"
SCANNER_PHONE = "+15550001111"


class ContactFlowBase(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.engine = create_engine(
            "sqlite+pysqlite:///:memory:",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        cls.SessionLocal = sessionmaker(bind=cls.engine, autocommit=False, autoflush=False)
        Vehicle.__table__.create(bind=cls.engine)
        ScanRecord.__table__.create(bind=cls.engine)
        OtpSession.__table__.create(bind=cls.engine)

    @classmethod
    def tearDownClass(cls):
        OtpSession.__table__.drop(bind=cls.engine)
        ScanRecord.__table__.drop(bind=cls.engine)
        Vehicle.__table__.drop(bind=cls.engine)
        cls.engine.dispose()

    def setUp(self):
        with self.SessionLocal() as db:
            db.execute(delete(OtpSession))
            db.execute(delete(ScanRecord))
            db.execute(delete(Vehicle))
            db.commit()
        self.seed_vehicle("C1", "ABC123")

        def override_get_db():
            db = self.SessionLocal()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides[get_db] = override_get_db
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()
        app.dependency_overrides.clear()

    def seed_vehicle(
        self,
        car_id: str,
        plate_number: str,
        *,
        owner_name: str = OWNER_NAME,
        owner_phone: str = OWNER_PHONE,
        is_active: bool = True,
    ) -> None:
        with self.SessionLocal() as db:
            db.add(
                Vehicle(
                    car_id=car_id,
                    plate_number=plate_number,
                    owner_name=owner_name,
                    owner_phone=owner_phone,
                    is_active=is_active,
                )
            )
            db.commit()

    def issue(self, code: str, *, car_id: str = "C1", scanner_phone: str = SCANNER_PHONE) -> str:
        with patch("qrcontact.services.passcode_issuer.generate_passcode", return_value=code):
            response = self.client.post(
                "/challenge",
                json={
                    "carId": car_id,
                    "scannerName": "Sam Scanner",
                    "scannerPhone": scanner_phone,
                    "reason": "Blocking my driveway",
                },
            )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["sessionId"]

    def submit(self, session_id: str, code: str, *, car_id: str = "C1", scanner_phone: str = SCANNER_PHONE):
        return self.client.post(
            "/verify",
            json={
                "carId": car_id,
                "sessionId": session_id,
                "passcode": code,
                "scannerName": "Sam Scanner",
                "scannerPhone": scanner_phone,
                "reason": "Blocking my driveway",
            },
        )

    def session_row(self, session_id: str) -> OtpSession:
        with self.SessionLocal() as db:
            row = db.query(OtpSession).filter(OtpSession.session_id == session_id).first()
            self.assertIsNotNone(row)
            db.expunge(row)
            return row

    def scan_rows(self, car_id: str = "C1") -> list[ScanRecord]:
        with self.SessionLocal() as db:
            rows = db.query(ScanRecord).filter(ScanRecord.car_id == car_id).order_by(ScanRecord.timestamp.asc()).all()
            for row in rows:
                db.expunge(row)
            return rows

    def expire_session(self, session_id: str) -> None:
        with self.SessionLocal() as db:
            row = db.query(OtpSession).filter(OtpSession.session_id == session_id).first()
            row.expires_at = datetime(2020, 1, 1, tzinfo=timezone.utc)
            db.commit()
