from __future__ import annotations

from enum import Enum


class OtpStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    EXPIRED = "EXPIRED"
    EXHAUSTED = "EXHAUSTED"


TERMINAL_STATUSES = frozenset({OtpStatus.VERIFIED, OtpStatus.EXPIRED, OtpStatus.EXHAUSTED})

ALLOWED_TRANSITIONS: dict[OtpStatus, frozenset[OtpStatus]] = {
    OtpStatus.PENDING: TERMINAL_STATUSES,
    OtpStatus.VERIFIED: frozenset(),
    OtpStatus.EXPIRED: frozenset(),
    OtpStatus.EXHAUSTED: frozenset(),
}


class InvalidTransition(RuntimeError):
    def __init__(self, from_status: OtpStatus, to_status: OtpStatus):
        super().__init__(f"OTP session cannot move from {from_status.value} to {to_status.value}")
        self.from_status = from_status
        self.to_status = to_status


def parse_status(raw: str | OtpStatus | None) -> OtpStatus:
    if isinstance(raw, OtpStatus):
        return raw
    value = str(raw or "").strip().upper()
    try:
        return OtpStatus(value)
    except ValueError as exc:
        raise ValueError(f"Unknown OTP session status: {raw!r}") from exc


def is_terminal(raw: str | OtpStatus | None) -> bool:
    return parse_status(raw) in TERMINAL_STATUSES


def transition_allowed(from_status: str | OtpStatus, to_status: str | OtpStatus) -> bool:
    return parse_status(to_status) in ALLOWED_TRANSITIONS[parse_status(from_status)]


def require_transition(from_status: str | OtpStatus, to_status: str | OtpStatus) -> OtpStatus:
    source = parse_status(from_status)
    target = parse_status(to_status)
    if target not in ALLOWED_TRANSITIONS[source]:
        raise InvalidTransition(source, target)
    return target


def mark_verified(from_status: str | OtpStatus) -> OtpStatus:
    return require_transition(from_status, OtpStatus.VERIFIED)


def mark_expired(from_status: str | OtpStatus) -> OtpStatus:
    return require_transition(from_status, OtpStatus.EXPIRED)


def mark_exhausted(from_status: str | OtpStatus) -> OtpStatus:
    return require_transition(from_status, OtpStatus.EXHAUSTED)
