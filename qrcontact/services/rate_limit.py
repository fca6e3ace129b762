from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from threading import Lock
from typing import Protocol

import redis

from qrcontact.core.config import settings
from qrcontact.services.errors import RateLimited

_LOG = logging.getLogger("qrcontact.rate_limit")

ACTION_CHALLENGE = "challenge"
ACTION_VERIFY = "verify"


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    current_value: int


class RateLimiter(Protocol):
    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        ...


class InMemoryRateLimiter:
    """Fixed-window counters kept in process memory."""

    def __init__(self):
        self._windows: dict[str, tuple[int, datetime]] = {}
        self._lock = Lock()

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        now = datetime.now(timezone.utc)
        with self._lock:
            count, resets_at = self._windows.get(key, (0, now))
            if resets_at <= now:
                count = 0
                resets_at = now + timedelta(seconds=max(int(window_seconds), 1))
            count += 1
            self._windows[key] = (count, resets_at)
        retry_after = max(0, int((resets_at - now).total_seconds()))
        return RateLimitResult(allowed=count <= limit, retry_after_seconds=retry_after, current_value=count)


class RedisRateLimiter:
    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        window = int(max(window_seconds, 1))
        count = int(self.client.incr(key))
        if count == 1:
            self.client.expire(key, window)
        ttl = int(self.client.ttl(key))
        if ttl < 0:
            ttl = window
        return RateLimitResult(allowed=int(count) <= limit, retry_after_seconds=ttl, current_value=int(count))


_cached_limiter: RateLimiter | None = None


def _build_limiter() -> RateLimiter:
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisRateLimiter(client)
    except (redis.RedisError, ValueError):
        _LOG.warning("Redis limiter unavailable; fallback to in-memory limiter")
        return InMemoryRateLimiter()


def get_rate_limiter() -> RateLimiter:
    global _cached_limiter
    if _cached_limiter is None:
        _cached_limiter = _build_limiter()
    return _cached_limiter


def reset_rate_limiter_for_tests() -> None:
    global _cached_limiter
    _cached_limiter = None


def _hash_key_part(value: str | None) -> str:
    raw = str(value or "").strip()
    if not raw:
        return "-"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:20]


def _limit_for(action: str) -> int:
    if action == ACTION_CHALLENGE:
        return int(max(settings.CHALLENGE_RATE_LIMIT, 1))
    return int(max(settings.VERIFY_RATE_LIMIT, 1))


def enforce_rate_limit(action: str, *, client_ip: str | None, scanner_phone: str | None) -> None:
    """Count one ``action`` against the caller's IP and phone buckets; raise RateLimited over the limit."""
    if not settings.RATE_LIMIT_ENABLED:
        return
    limiter = get_rate_limiter()
    window = int(max(settings.RATE_LIMIT_WINDOW_SECONDS, 1))
    limit = _limit_for(action)
    keys = [f"contact:{action}:ip:{_hash_key_part(client_ip)}"]
    if scanner_phone:
        keys.append(f"contact:{action}:phone:{_hash_key_part(scanner_phone)}")

    for key in keys:
        result = limiter.hit(key, limit=limit, window_seconds=window)
        if not result.allowed:
            retry_after = max(result.retry_after_seconds, 1)
            _LOG.info("rate_limited action=%s key=%s retry_after=%s", action, key, retry_after)
            raise RateLimited(
                f"Too many {action} requests. Retry in {retry_after} s.",
                retry_after_seconds=retry_after,
            )
