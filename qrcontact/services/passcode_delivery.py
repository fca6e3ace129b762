from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from qrcontact.core.config import settings

logger = logging.getLogger("qrcontact.delivery")

MOCK_PROVIDERS = {"", "dummy", "mock", "console"}
WEBHOOK_PROVIDERS = {"webhook", "sms_gateway"}


class PasscodeDeliveryError(Exception):
    pass


@dataclass
class DeliveryResult:
    provider: str
    status: str
    sent: bool
    mocked: bool = False
    debug_code: str | None = None
    response: dict[str, Any] = field(default_factory=dict)


class PasscodeDelivery(Protocol):
    def send(self, phone: str, code: str) -> DeliveryResult:
        ...


def mask_phone(phone: str | None) -> str:
    value = str(phone or "").strip()
    if len(value) <= 4:
        return "***"
    return f"{value[:3]}***{value[-2:]}"


def build_passcode_message(code: str) -> str:
    template = str(settings.OTP_SMS_TEMPLATE or "").strip() or "Your vehicle contact code: {code}"
    try:
        return template.format(code=code)
    except (KeyError, IndexError, ValueError):
        return f"Your vehicle contact code: {code}"


class ConsoleDelivery:
    """Writes the passcode to the application log instead of sending it."""

    provider = "mock_sms"

    def send(self, phone: str, code: str) -> DeliveryResult:
        logger.warning("[OTP MOCK] phone=%s code=%s", mask_phone(phone), code)
        return DeliveryResult(
            provider=self.provider,
            status="accepted",
            sent=False,
            mocked=True,
            debug_code=str(code),
        )


class WebhookSmsDelivery:
    """Posts the passcode message to an HTTP SMS gateway."""

    provider = "webhook"

    def __init__(self, url: str, token: str = "", timeout_seconds: float = 5.0, client: httpx.Client | None = None):
        self.url = str(url or "").strip()
        self.token = str(token or "").strip()
        self.timeout_seconds = float(timeout_seconds)
        self._client = client

    def _post(self, payload: dict[str, Any]) -> httpx.Response:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        if self._client is not None:
            return self._client.post(self.url, json=payload, headers=headers, timeout=self.timeout_seconds)
        with httpx.Client(timeout=self.timeout_seconds) as client:
            return client.post(self.url, json=payload, headers=headers)

    def send(self, phone: str, code: str) -> DeliveryResult:
        if not self.url:
            raise PasscodeDeliveryError("SMS_GATEWAY_URL is not configured")
        payload = {"to": phone, "message": build_passcode_message(code)}
        try:
            response = self._post(payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PasscodeDeliveryError(f"SMS gateway rejected the message: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise PasscodeDeliveryError(f"SMS gateway is unreachable: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = {}
        logger.info("otp_delivered provider=%s phone=%s", self.provider, mask_phone(phone))
        return DeliveryResult(
            provider=self.provider,
            status="accepted",
            sent=True,
            response=body if isinstance(body, dict) else {"raw": body},
        )


def _provider_name() -> str:
    return str(settings.OTP_DELIVERY_PROVIDER or "dummy").strip().lower()


def get_passcode_delivery() -> PasscodeDelivery:
    provider = _provider_name()
    if provider in MOCK_PROVIDERS:
        return ConsoleDelivery()
    if provider in WEBHOOK_PROVIDERS:
        return WebhookSmsDelivery(
            settings.SMS_GATEWAY_URL,
            token=settings.SMS_GATEWAY_TOKEN,
            timeout_seconds=settings.SMS_GATEWAY_TIMEOUT_SECONDS,
        )
    raise PasscodeDeliveryError(f"Unknown OTP_DELIVERY_PROVIDER: {provider}")


def delivery_health() -> dict[str, Any]:
    provider = _provider_name()
    if provider in MOCK_PROVIDERS:
        return {"provider": "dummy", "status": "ok", "mode": "mock", "can_send": True, "issues": []}
    if provider in WEBHOOK_PROVIDERS:
        issues: list[str] = []
        if not str(settings.SMS_GATEWAY_URL or "").strip():
            issues.append("SMS_GATEWAY_URL is not configured")
        return {
            "provider": "webhook",
            "status": "ok" if not issues else "degraded",
            "mode": "real",
            "can_send": not issues,
            "issues": issues,
        }
    return {
        "provider": provider,
        "status": "error",
        "mode": "unknown",
        "can_send": False,
        "issues": [f"Unknown OTP_DELIVERY_PROVIDER: {provider}"],
    }
