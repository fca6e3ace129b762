import os
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("OTP_DELIVERY_PROVIDER", "dummy")

from qrcontact.core.config import settings
from qrcontact.services.rate_limit import InMemoryRateLimiter
from tests.base import SCANNER_PHONE, ContactFlowBase


class ContactRateLimitTests(ContactFlowBase):
    def setUp(self):
        super().setUp()
        self.limiter = InMemoryRateLimiter()

    def _limits(self, *, challenge: int = 10, verify: int = 10):
        return (
            patch.object(settings, "RATE_LIMIT_ENABLED", True),
            patch("qrcontact.services.rate_limit.get_rate_limiter", return_value=self.limiter),
            patch.object(settings, "RATE_LIMIT_WINDOW_SECONDS", 60),
            patch.object(settings, "CHALLENGE_RATE_LIMIT", challenge),
            patch.object(settings, "VERIFY_RATE_LIMIT", verify),
        )

    def test_challenge_is_limited_by_phone(self):
        enabled, limiter, window, challenge, verify = self._limits(challenge=1)
        with enabled, limiter, window, challenge, verify:
            first = self.client.post(
                "/challenge",
                json={"carId": "C1", "scannerName": "Sam", "scannerPhone": SCANNER_PHONE},
            )
            self.assertEqual(first.status_code, 201)

            second = self.client.post(
                "/challenge",
                json={"carId": "C1", "scannerName": "Sam", "scannerPhone": SCANNER_PHONE},
            )
            self.assertEqual(second.status_code, 429)
            self.assertEqual(second.json()["kind"], "RateLimited")
            self.assertTrue(second.headers.get("retry-after"))

    def test_challenge_is_limited_by_ip(self):
        enabled, limiter, window, challenge, verify = self._limits(challenge=1)
        with enabled, limiter, window, challenge, verify:
            first = self.client.post(
                "/challenge",
                json={"carId": "C1", "scannerName": "Sam", "scannerPhone": "+15550001112"},
            )
            self.assertEqual(first.status_code, 201)

            # Same IP (testclient), other phone => blocked by IP bucket.
            second = self.client.post(
                "/challenge",
                json={"carId": "C1", "scannerName": "Sam", "scannerPhone": "+15550001113"},
            )
            self.assertEqual(second.status_code, 429)

    def test_verify_is_limited_without_touching_session(self):
        session_id = self.issue("222222")
        enabled, limiter, window, challenge, verify = self._limits(verify=1)
        with enabled, limiter, window, challenge, verify:
            wrong = self.submit(session_id, "000000")
            self.assertEqual(wrong.status_code, 401)

            blocked = self.submit(session_id, "222222")
            self.assertEqual(blocked.status_code, 429)
            self.assertEqual(blocked.json()["kind"], "RateLimited")
        self.assertEqual(self.session_row(session_id).attempts, 1)

    def test_in_memory_window(self):
        limiter = InMemoryRateLimiter()
        first = limiter.hit("k", limit=2, window_seconds=60)
        second = limiter.hit("k", limit=2, window_seconds=60)
        third = limiter.hit("k", limit=2, window_seconds=60)
        self.assertTrue(first.allowed and second.allowed)
        self.assertFalse(third.allowed)
        self.assertEqual(third.current_value, 3)
        self.assertTrue(limiter.hit("other", limit=2, window_seconds=60).allowed)
