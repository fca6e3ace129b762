import os
import unittest

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("OTP_DELIVERY_PROVIDER", "dummy")

from qrcontact.main import app


class HttpHardeningTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)

    def tearDown(self):
        self.client.close()

    def test_health_has_security_headers_and_request_id(self):
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["delivery"]["provider"], "dummy")

        self.assertEqual(response.headers.get("x-content-type-options"), "nosniff")
        self.assertEqual(response.headers.get("x-frame-options"), "DENY")
        self.assertEqual(response.headers.get("referrer-policy"), "no-referrer")
        self.assertEqual(response.headers.get("cache-control"), "no-store")

        request_id = response.headers.get("x-request-id")
        self.assertIsNotNone(request_id)
        self.assertRegex(str(request_id), r"^[A-Za-z0-9._-]{1,128}$")

    def test_valid_request_id_is_preserved(self):
        external_request_id = "release-check-2026_10_19"
        response = self.client.get("/health", headers={"X-Request-ID": external_request_id})
        self.assertEqual(response.headers.get("x-request-id"), external_request_id)

    def test_invalid_request_id_is_replaced(self):
        bad_request_id = "bad id with spaces"
        response = self.client.get("/health", headers={"X-Request-ID": bad_request_id})
        response_request_id = response.headers.get("x-request-id")
        self.assertNotEqual(response_request_id, bad_request_id)
        self.assertRegex(str(response_request_id), r"^[A-Za-z0-9._-]{1,128}$")

    def test_validation_error_is_invalid_input(self):
        response = self.client.post("/verify", json={"carId": "C1"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["kind"], "InvalidInput")
        self.assertTrue(bool(response.headers.get("x-request-id")))

    def test_storage_failure_is_generic_internal_error(self):
        failure = OperationalError("SELECT 1", {}, Exception("connection refused"))
        with (
            patch("qrcontact.api.contact.scan_ledger.list_scans", side_effect=failure),
            self.assertLogs("qrcontact.http", level="ERROR"),
        ):
            response = self.client.get("/scans/C1")
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"kind": "InternalError", "detail": "Internal server error"})
        self.assertNotIn("connection refused", response.text)
