import pytest

from src.adapter.services.limits_attempt_limiter import LimitsAttemptLimiter
from src.app.services.attempt_limiter import AttemptPolicy

POLICY = AttemptPolicy(name="login", limit="2 per 1 minute", error_code="RATE_LIMIT_LOGIN", message="slow down")


@pytest.fixture
def limiter():
    return LimitsAttemptLimiter()


def test_fresh_keys_may_try(limiter):
    assert limiter.retry_after(POLICY, ["ip:10.0.0.1"]) is None


def test_key_is_blocked_once_failures_reach_the_limit(limiter):
    limiter.record_failure(POLICY, ["ip:10.0.0.1"])
    assert limiter.retry_after(POLICY, ["ip:10.0.0.1"]) is None

    limiter.record_failure(POLICY, ["ip:10.0.0.1"])
    retry_after = limiter.retry_after(POLICY, ["ip:10.0.0.1"])

    assert retry_after is not None
    assert 1 <= retry_after <= 60


def test_any_exhausted_key_blocks_the_attempt(limiter):
    for _ in range(2):
        limiter.record_failure(POLICY, ["ip:10.0.0.1", "email:maya@example.com"])

    assert limiter.retry_after(POLICY, ["ip:10.0.0.2", "email:maya@example.com"]) is not None
    assert limiter.retry_after(POLICY, ["ip:10.0.0.2", "email:hari@example.com"]) is None


def test_policies_have_separate_budgets(limiter):
    other = AttemptPolicy(name="otp", limit="2 per 1 minute", error_code="RATE_LIMIT_OTP", message="slow down")
    for _ in range(2):
        limiter.record_failure(POLICY, ["ip:10.0.0.1"])

    assert limiter.retry_after(other, ["ip:10.0.0.1"]) is None


def test_reset_clears_every_budget(limiter):
    for _ in range(2):
        limiter.record_failure(POLICY, ["ip:10.0.0.1"])

    limiter.reset()

    assert limiter.retry_after(POLICY, ["ip:10.0.0.1"]) is None
