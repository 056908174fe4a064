"""Tests for rate limiting utilities."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest

from tenant_operator.utils.rate_limit import _Throttle, rate_limit_aws, rate_limit_k8s


class TestRateLimitDecorators:
    """Test cases for the rate limiting decorators."""

    def test_rate_limit_k8s_decorator(self):
        """Test that the decorated function is called once and its result returned."""
        call_count = 0

        @rate_limit_k8s
        def test_func():
            nonlocal call_count
            call_count += 1
            return "success"

        assert test_func() == "success"
        assert call_count == 1

    def test_rate_limit_aws_with_args(self):
        """Test rate limiting with function arguments."""
        @rate_limit_aws
        def test_func(a, b, c=None):
            return f"{a}-{b}-{c}"

        assert test_func("x", "y", c="z") == "x-y-z"

    def test_errors_are_not_retried(self):
        """Test that a failing call is attempted exactly once."""
        calls = []

        @rate_limit_aws
        def test_func():
            calls.append(1)
            raise RuntimeError("throttled")

        with pytest.raises(RuntimeError):
            test_func()
        assert len(calls) == 1


class TestThrottle:
    """Test cases for the shared throttle."""

    def test_enforces_minimum_interval(self):
        """Test that calls are spaced by the minimum interval."""
        throttle = _Throttle(100.0)
        call_times = []

        for _ in range(3):
            throttle.wait()
            call_times.append(time.time())

        assert call_times[1] - call_times[0] >= 0.009
        assert call_times[2] - call_times[1] >= 0.009

    @patch("tenant_operator.utils.rate_limit.time.sleep")
    def test_no_sleep_after_idle(self, mock_sleep):
        throttle = _Throttle(1.0)
        throttle.last_call_time = time.time() - 10

        throttle.wait()

        mock_sleep.assert_not_called()
