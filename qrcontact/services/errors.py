from __future__ import annotations


class ContactFlowError(Exception):
    """Failure of a contact-workflow request, returned to the caller as ``{kind, detail}``."""

    kind = "ContactFlowError"
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail

    def as_payload(self) -> dict[str, str]:
        return {"kind": self.kind, "detail": self.detail}


class InvalidInput(ContactFlowError):
    kind = "InvalidInput"
    status_code = 400


class NotFound(ContactFlowError):
    kind = "NotFound"
    status_code = 404


class Expired(ContactFlowError):
    kind = "Expired"
    status_code = 410


class AttemptsExceeded(ContactFlowError):
    kind = "AttemptsExceeded"
    status_code = 429


class InvalidPasscode(ContactFlowError):
    kind = "InvalidPasscode"
    status_code = 401


class RateLimited(ContactFlowError):
    kind = "RateLimited"
    status_code = 429

    def __init__(self, detail: str, *, retry_after_seconds: int):
        super().__init__(detail)
        self.retry_after_seconds = retry_after_seconds


class DeliveryFailed(ContactFlowError):
    kind = "DeliveryFailed"
    status_code = 502
