"""Tests for reconnect policy validation and backoff computation."""

import random

import pytest

from discord_mcp.core.connection import BackoffStrategy, ReconnectPolicy
from discord_mcp.core.connection.backoff import compute_backoff_ms


class TestReconnectPolicy:
    def test_defaults(self):
        policy = ReconnectPolicy()
        assert policy.max_attempts == 5
        assert policy.backoff_base_ms == 1000
        assert policy.strategy is BackoffStrategy.LINEAR

    def test_strategy_accepts_string(self):
        assert ReconnectPolicy(strategy="exponential").strategy is BackoffStrategy.EXPONENTIAL

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            ReconnectPolicy(strategy="fibonacci")

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_attempts": -1},
            {"backoff_base_ms": -5},
            {"max_backoff_ms": -1},
            {"jitter": 1.5},
        ],
    )
    def test_out_of_range_values_rejected(self, kwargs):
        with pytest.raises(ValueError):
            ReconnectPolicy(**kwargs)

    def test_exhausted(self):
        policy = ReconnectPolicy(max_attempts=2)
        assert not policy.exhausted(2)
        assert policy.exhausted(3)

    def test_zero_attempts_exhausts_on_first_retry(self):
        assert ReconnectPolicy(max_attempts=0).exhausted(1)

    def test_unlimited_never_exhausts(self):
        assert not ReconnectPolicy(max_attempts=None).exhausted(10_000)


class TestComputeBackoff:
    def test_linear(self):
        policy = ReconnectPolicy(backoff_base_ms=500, max_backoff_ms=None)
        assert [compute_backoff_ms(policy, n) for n in (1, 2, 3)] == [500, 1000, 1500]

    def test_exponential(self):
        policy = ReconnectPolicy(backoff_base_ms=100, strategy="exponential", max_backoff_ms=None)
        assert [compute_backoff_ms(policy, n) for n in (1, 2, 3, 4)] == [100, 200, 400, 800]

    def test_cap(self):
        policy = ReconnectPolicy(backoff_base_ms=1000, strategy="exponential", max_backoff_ms=3000)
        assert compute_backoff_ms(policy, 10) == 3000

    def test_attempt_below_one_treated_as_one(self):
        policy = ReconnectPolicy(backoff_base_ms=250)
        assert compute_backoff_ms(policy, 0) == 250

    def test_jitter_stays_in_band(self):
        policy = ReconnectPolicy(backoff_base_ms=1000, jitter=0.25, max_backoff_ms=None)
        rng = random.Random(7)
        delays = [compute_backoff_ms(policy, 1, rng) for _ in range(200)]
        assert all(750 <= delay <= 1250 for delay in delays)
        assert len(set(delays)) > 1

    def test_jitter_deterministic_with_seed(self):
        policy = ReconnectPolicy(backoff_base_ms=1000, jitter=0.5)
        first = compute_backoff_ms(policy, 2, random.Random(1))
        second = compute_backoff_ms(policy, 2, random.Random(1))
        assert first == second

    def test_exponential_deep_attempt_is_capped(self):
        policy = ReconnectPolicy(max_attempts=None, backoff_base_ms=1000, strategy="exponential", max_backoff_ms=60_000)
        assert compute_backoff_ms(policy, 1100) == 60_000

    def test_exponential_without_cap_stops_doubling(self):
        policy = ReconnectPolicy(max_attempts=None, backoff_base_ms=1, strategy="exponential", max_backoff_ms=None)
        assert compute_backoff_ms(policy, 5000) == compute_backoff_ms(policy, 63)
