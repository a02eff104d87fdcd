import pytest

from joke_factory.services.login_rate_limiter import (
    LoginRateLimiter,
    LoginRateLimitSettings,
    TooManyAttempts,
)


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def _limiter(clock, **overrides):
    settings = dict(
        enabled=True,
        window_seconds=60,
        max_failures_per_username=3,
        max_failures_per_ip=5,
        lockout_seconds=30,
    )
    settings.update(overrides)
    return LoginRateLimiter(LoginRateLimitSettings(**settings), clock=clock)


def test_locks_after_repeated_failures():
    clock = FakeClock()
    limiter = _limiter(clock)
    for _ in range(3):
        limiter.guard(display_name="Charles2026", ip="10.0.0.1")
        limiter.record_failure(display_name="Charles2026", ip="10.0.0.1")

    with pytest.raises(TooManyAttempts) as excinfo:
        limiter.guard(display_name="charles2026 ", ip="10.0.0.2")
    assert excinfo.value.retry_after == 30
    assert excinfo.value.code == "TOO_MANY_ATTEMPTS"
    assert excinfo.value.status_code == 429

    clock.now += 31
    limiter.guard(display_name="Charles2026", ip="10.0.0.1")


def test_failures_outside_the_window_are_forgotten():
    clock = FakeClock()
    limiter = _limiter(clock)
    limiter.record_failure(display_name="a", ip="1.1.1.1")
    limiter.record_failure(display_name="a", ip="1.1.1.1")
    clock.now += 61
    limiter.record_failure(display_name="a", ip="1.1.1.1")

    assert limiter.retry_after(display_name="a", ip="1.1.1.1") == 0


def test_ip_limit_spans_names():
    clock = FakeClock()
    limiter = _limiter(clock)
    for index in range(5):
        limiter.record_failure(display_name=f"name-{index}", ip="10.0.0.9")

    assert limiter.retry_after(display_name="someone-else", ip="10.0.0.9") == 30


def test_success_clears_history():
    clock = FakeClock()
    limiter = _limiter(clock)
    limiter.record_failure(display_name="a", ip="1.1.1.1")
    limiter.record_failure(display_name="a", ip="1.1.1.1")
    limiter.record_success(display_name="a", ip="1.1.1.1")
    limiter.record_failure(display_name="a", ip="1.1.1.1")

    assert limiter.retry_after(display_name="a", ip="1.1.1.1") == 0


def test_disabled_limiter_never_blocks():
    clock = FakeClock()
    limiter = _limiter(clock, enabled=False)
    for _ in range(10):
        limiter.record_failure(display_name="a", ip="1.1.1.1")

    limiter.guard(display_name="a", ip="1.1.1.1")
