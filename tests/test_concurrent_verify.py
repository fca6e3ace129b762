import os
import tempfile
import threading
import unittest
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("OTP_DELIVERY_PROVIDER", "dummy")

from qrcontact.models.otp_session import OtpSession
from qrcontact.models.scan_record import ScanRecord
from qrcontact.models.vehicle import Vehicle
from qrcontact.services.errors import ContactFlowError, Expired
from qrcontact.services.passcode_delivery import DeliveryResult
from qrcontact.services.passcode_issuer import issue_challenge
from qrcontact.services.passcode_verifier import OwnerContact, verify
from qrcontact.services.session_state import OtpStatus
from qrcontact.services.session_store import get_session

SCANNER_PHONE = "+15550001111"
THREADS = 4


class _KeepCodeDelivery:
    def __init__(self):
        self.code = None

    def send(self, phone: str, code: str) -> DeliveryResult:
        self.code = code
        return DeliveryResult(provider="test", status="accepted", sent=True)


class ConcurrentVerifyTests(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        db_path = Path(self._tmp.name) / "contact.db"
        self.engine = create_engine(
            f"sqlite+pysqlite:///{db_path}",
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        self.SessionLocal = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        Vehicle.__table__.create(bind=self.engine)
        ScanRecord.__table__.create(bind=self.engine)
        OtpSession.__table__.create(bind=self.engine)
        with self.SessionLocal() as db:
            db.add(Vehicle(car_id="C1", plate_number="ABC123", owner_name="Dana Owner", owner_phone="+15559990000"))
            db.commit()

    def tearDown(self):
        self.engine.dispose()
        self._tmp.cleanup()

    def _issue(self) -> tuple[str, str]:
        delivery = _KeepCodeDelivery()
        with self.SessionLocal() as db:
            issued = issue_challenge(
                db,
                car_id="C1",
                scanner_name="Sam Scanner",
                scanner_phone=SCANNER_PHONE,
                reason="Lights on",
                delivery=delivery,
            )
        return issued.session_id, delivery.code

    def test_parallel_correct_passcodes_have_single_winner(self):
        session_id, code = self._issue()
        barrier = threading.Barrier(THREADS)
        outcomes: list = []
        lock = threading.Lock()

        def worker():
            barrier.wait()
            with self.SessionLocal() as db:
                try:
                    outcome = verify(
                        db,
                        car_id="C1",
                        session_id=session_id,
                        passcode=code,
                        scanner_name="Sam Scanner",
                        scanner_phone=SCANNER_PHONE,
                    )
                except ContactFlowError as exc:
                    outcome = exc
            with lock:
                outcomes.append(outcome)

        threads = [threading.Thread(target=worker) for _ in range(THREADS)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=60)

        self.assertEqual(len(outcomes), THREADS)
        winners = [item for item in outcomes if isinstance(item, OwnerContact)]
        losers = [item for item in outcomes if isinstance(item, Expired)]
        self.assertEqual(len(winners), 1, outcomes)
        self.assertEqual(len(losers), THREADS - 1, outcomes)
        self.assertEqual(winners[0].phone, "+15559990000")

        with self.SessionLocal() as db:
            row = get_session(db, session_id)
            self.assertEqual(row.status, OtpStatus.VERIFIED.value)
            self.assertLessEqual(row.attempts, 3)
            verified = db.query(ScanRecord).filter(ScanRecord.verified.is_(True)).count()
            self.assertEqual(verified, 1)
