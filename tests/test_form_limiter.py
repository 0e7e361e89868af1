"""
Tests for the advisory form limiter and lockout formatting.
"""
import pytest

from support_gate.config import RateLimitSettings
from support_gate.limiter import DEFAULT_FORM_POLICY, FormRateLimiter, LimiterPolicy, format_lockout_time

T0 = 1_700_000_000_000


@pytest.mark.unit
def test_default_policy():
    limiter = FormRateLimiter("login")

    assert limiter.policy == DEFAULT_FORM_POLICY
    assert limiter.policy.max_attempts == 5
    assert limiter.policy.window_ms == 60_000
    assert limiter.policy.lockout_ms == 300_000


@pytest.mark.unit
def test_known_action_uses_configured_policy():
    limiter = FormRateLimiter("password_reset")

    assert limiter.policy == LimiterPolicy(max_attempts=3, window_ms=60_000, lockout_ms=300_000)


@pytest.mark.unit
def test_configured_policy_overrides_apply_to_form():
    limits = RateLimitSettings(signup_max_attempts=2, signup_window_ms=30_000, signup_lockout_ms=30_000)
    limiter = FormRateLimiter("signup", limits=limits)

    assert limiter.policy == limits.policy("signup")
    assert limiter.record_attempt(T0) is True
    assert limiter.record_attempt(T0 + 1) is False
    assert limiter.remaining_seconds(T0 + 1) == 30


@pytest.mark.unit
def test_unknown_action_falls_back_to_default_policy():
    limits = RateLimitSettings(login_max_attempts=9)

    assert FormRateLimiter("contact_form", limits=limits).policy == DEFAULT_FORM_POLICY


@pytest.mark.unit
def test_explicit_policy_wins_over_settings():
    policy = LimiterPolicy(max_attempts=1, window_ms=1_000, lockout_ms=1_000)

    assert FormRateLimiter("login", policy).policy == policy


@pytest.mark.unit
def test_attempts_remaining_counts_down_then_locks():
    limiter = FormRateLimiter("login")

    assert limiter.attempts_remaining(T0) == 5

    for i in range(4):
        assert limiter.record_attempt(T0 + i * 1000) is True

    assert limiter.attempts_remaining(T0 + 4000) == 1
    assert limiter.record_attempt(T0 + 5000) is False
    assert limiter.is_locked(T0 + 5000) is True
    assert limiter.attempts_remaining(T0 + 5000) == 0


@pytest.mark.unit
def test_remaining_seconds_rounds_up():
    limiter = FormRateLimiter("signup", LimiterPolicy(max_attempts=2, window_ms=60_000, lockout_ms=90_000))
    limiter.record_attempt(T0)
    limiter.record_attempt(T0)

    assert limiter.remaining_seconds(T0 + 500) == 90
    assert limiter.remaining_seconds(T0 + 89_001) == 1
    assert limiter.remaining_seconds(T0 + 90_000) == 0
    assert limiter.is_locked(T0 + 90_000) is False


@pytest.mark.unit
def test_window_expiry_restores_attempts():
    limiter = FormRateLimiter("login")
    limiter.record_attempt(T0)
    limiter.record_attempt(T0 + 1)

    assert limiter.attempts_remaining(T0 + 2) == 3
    assert limiter.attempts_remaining(T0 + 60_000) == 5


@pytest.mark.unit
def test_reset_after_success():
    limiter = FormRateLimiter("password_reset", LimiterPolicy(max_attempts=3, window_ms=60_000, lockout_ms=300_000))
    for i in range(3):
        limiter.record_attempt(T0 + i)
    assert limiter.is_locked(T0 + 10)

    limiter.reset()

    assert limiter.is_locked(T0 + 11) is False
    assert limiter.attempts_remaining(T0 + 11) == 3


@pytest.mark.unit
def test_form_limiters_do_not_share_state():
    login = FormRateLimiter("login")
    signup = FormRateLimiter("login")

    for i in range(5):
        login.record_attempt(T0 + i)

    assert login.is_locked(T0 + 10)
    assert signup.is_locked(T0 + 10) is False


@pytest.mark.unit
@pytest.mark.parametrize("seconds,expected", [
    (0, "0 seconds"),
    (1, "1 second"),
    (45, "45 seconds"),
    (60, "1 minute"),
    (61, "2 minutes"),
    (300, "5 minutes"),
])
def test_format_lockout_time(seconds, expected):
    assert format_lockout_time(seconds) == expected
