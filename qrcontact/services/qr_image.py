from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol
from urllib.parse import urlencode

import segno

from qrcontact.core.config import settings


class QrImageError(Exception):
    pass


@dataclass(frozen=True)
class QrImage:
    image: str
    payload_url: str


class QrImageService(Protocol):
    def generate(self, car_id: str) -> QrImage:
        ...


def payload_url_for(car_id: str, base_url: str | None = None) -> str:
    base = str(base_url if base_url is not None else settings.PUBLIC_BASE_URL).strip().rstrip("/")
    return f"{base}/?{urlencode({'car': car_id})}"


class SegnoQrImageService:
    """Renders the scan URL of a car as a PNG data URI."""

    def __init__(self, base_url: str | None = None, scale: int | None = None):
        self.base_url = base_url
        self.scale = int(scale or settings.QR_IMAGE_SCALE)

    def generate(self, car_id: str) -> QrImage:
        url = payload_url_for(car_id, self.base_url)
        try:
            qr = segno.make(url, error="m")
            image = qr.png_data_uri(scale=self.scale, border=2, dark="#000000", light="#ffffff")
        except (segno.DataOverflowError, ValueError) as exc:
            raise QrImageError(f"Failed to generate QR code: {exc}") from exc
        return QrImage(image=image, payload_url=url)


def get_qr_image_service() -> QrImageService:
    return SegnoQrImageService()
