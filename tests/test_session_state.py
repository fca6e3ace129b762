import unittest

from qrcontact.services.session_state import (
    InvalidTransition,
    OtpStatus,
    is_terminal,
    mark_exhausted,
    mark_expired,
    mark_verified,
    parse_status,
    transition_allowed,
)


class SessionStateTests(unittest.TestCase):
    def test_pending_moves_to_every_terminal_status(self):
        self.assertEqual(mark_verified("PENDING"), OtpStatus.VERIFIED)
        self.assertEqual(mark_expired(OtpStatus.PENDING), OtpStatus.EXPIRED)
        self.assertEqual(mark_exhausted("pending"), OtpStatus.EXHAUSTED)

    def test_terminal_statuses_never_move(self):
        for status in (OtpStatus.VERIFIED, OtpStatus.EXPIRED, OtpStatus.EXHAUSTED):
            self.assertTrue(is_terminal(status))
            for target in OtpStatus:
                self.assertFalse(transition_allowed(status, target))
            with self.assertRaises(InvalidTransition):
                mark_verified(status)

    def test_pending_cannot_stay_pending(self):
        self.assertFalse(is_terminal("PENDING"))
        self.assertFalse(transition_allowed("PENDING", "PENDING"))

    def test_unknown_status_is_rejected(self):
        with self.assertRaises(ValueError):
            parse_status("USED")
