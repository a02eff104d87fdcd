from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from math import ceil
from threading import Lock
import time
from typing import Callable, Deque, Dict

from joke_factory.config.loader import get_auth_login_rate_limit_settings
from joke_factory.services.errors import GameError


@dataclass(frozen=True)
class LoginRateLimitSettings:
    enabled: bool
    window_seconds: int
    max_failures_per_username: int
    max_failures_per_ip: int
    lockout_seconds: int


class TooManyAttempts(GameError):
    status_code = 429

    def __init__(self, retry_after: int) -> None:
        super().__init__(
            "TOO_MANY_ATTEMPTS",
            "Too many failed instructor logins. Try again shortly.",
            {"retry_after_seconds": retry_after},
        )
        self.retry_after = retry_after


def _name_key(display_name: str) -> str:
    return (display_name or "").strip().lower() or "unknown"


def _ip_key(ip: str) -> str:
    return (ip or "").strip() or "unknown"


class LoginRateLimiter:
    """In-process failed instructor-login limiter, keyed by display name and client IP."""

    def __init__(
        self,
        settings: LoginRateLimitSettings,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._lock = Lock()
        self._settings = settings
        self._clock = clock
        self._failures: Dict[str, Dict[str, Deque[float]]] = {"name": {}, "ip": {}}
        self._locked_until: Dict[str, Dict[str, float]] = {"name": {}, "ip": {}}

    def set_settings(self, settings: LoginRateLimitSettings) -> None:
        with self._lock:
            self._settings = settings
            self._clear()

    def reset(self) -> None:
        with self._lock:
            self._clear()

    def _clear(self) -> None:
        for bucket in (*self._failures.values(), *self._locked_until.values()):
            bucket.clear()

    def _recent(self, kind: str, key: str, now: float) -> Deque[float]:
        entries = self._failures[kind].setdefault(key, deque())
        window_start = now - self._settings.window_seconds
        while entries and entries[0] < window_start:
            entries.popleft()
        return entries

    def _lock_remaining(self, kind: str, key: str, now: float) -> float:
        expires_at = self._locked_until[kind].get(key)
        if expires_at is None:
            return 0.0
        if expires_at <= now:
            self._locked_until[kind].pop(key, None)
            return 0.0
        return expires_at - now

    def retry_after(self, *, display_name: str, ip: str) -> int:
        """Seconds until another attempt is allowed; 0 when not limited."""
        with self._lock:
            if not self._settings.enabled:
                return 0
            now = self._clock()
            remaining = max(
                self._lock_remaining("name", _name_key(display_name), now),
                self._lock_remaining("ip", _ip_key(ip), now),
            )
            if remaining <= 0:
                return 0
            return max(1, int(ceil(remaining)))

    def guard(self, *, display_name: str, ip: str) -> None:
        wait = self.retry_after(display_name=display_name, ip=ip)
        if wait:
            raise TooManyAttempts(wait)

    def record_failure(self, *, display_name: str, ip: str) -> None:
        with self._lock:
            if not self._settings.enabled:
                return
            now = self._clock()
            limits = {
                "name": (_name_key(display_name), self._settings.max_failures_per_username),
                "ip": (_ip_key(ip), self._settings.max_failures_per_ip),
            }
            for kind, (key, limit) in limits.items():
                entries = self._recent(kind, key, now)
                entries.append(now)
                if len(entries) >= limit:
                    self._locked_until[kind][key] = now + self._settings.lockout_seconds

    def record_success(self, *, display_name: str, ip: str) -> None:
        with self._lock:
            for kind, key in (("name", _name_key(display_name)), ("ip", _ip_key(ip))):
                self._failures[kind].pop(key, None)
                self._locked_until[kind].pop(key, None)


def load_settings() -> LoginRateLimitSettings:
    raw = get_auth_login_rate_limit_settings()
    return LoginRateLimitSettings(
        enabled=bool(raw.get("enabled", True)),
        window_seconds=int(raw.get("window_seconds", 60)),
        max_failures_per_username=int(raw.get("max_failures_per_username", 8)),
        max_failures_per_ip=int(raw.get("max_failures_per_ip", 40)),
        lockout_seconds=int(raw.get("lockout_seconds", 60)),
    )


login_rate_limiter = LoginRateLimiter(load_settings())
