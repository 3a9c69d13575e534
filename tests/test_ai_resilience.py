"""Tests for the AI resilience layer."""

from __future__ import annotations

import time
from unittest.mock import patch

import pytest

from ai_resilience import (
    CircuitBreaker,
    ProviderUnavailable,
    TransientLLMError,
    _call_with_retry,
    _is_transient,
    estimate_tokens,
    get_circuit_breaker,
    resilient_llm_call,
    track_call,
)


@pytest.fixture(autouse=True)
def clean_breaker():
    get_circuit_breaker().reset()
    yield
    get_circuit_breaker().reset()


# ── CircuitBreaker Tests ────────────────────────────────────


class TestCircuitBreaker:
    def test_starts_closed(self):
        cb = CircuitBreaker()
        assert not cb.is_open("claude")
        assert cb.get_state("claude") == "closed"

    def test_opens_after_threshold_failures(self):
        cb = CircuitBreaker()
        for _ in range(cb.FAILURE_THRESHOLD):
            cb.record_failure("gemini")
        assert cb.is_open("gemini")
        assert cb.get_state("gemini") == "open"

    def test_success_resets(self):
        cb = CircuitBreaker()
        cb.record_failure("claude")
        cb.record_failure("claude")
        cb.record_success("claude")
        assert not cb.is_open("claude")

    def test_recovery_timeout(self):
        cb = CircuitBreaker()
        cb.RECOVERY_TIMEOUT = 0.01
        for _ in range(cb.FAILURE_THRESHOLD):
            cb.record_failure("claude")
        assert cb.is_open("claude")
        time.sleep(0.02)
        assert not cb.is_open("claude")
        assert cb.get_state("claude") == "half_open"

    def test_independent_providers(self):
        cb = CircuitBreaker()
        for _ in range(cb.FAILURE_THRESHOLD):
            cb.record_failure("claude")
        assert cb.is_open("claude")
        assert not cb.is_open("gemini")


# ── Cost estimate ───────────────────────────────────────────


class TestCostEstimate:
    def test_estimate_tokens(self):
        assert estimate_tokens("") == 1
        assert estimate_tokens("12345678") == 2

    def test_track_call(self):
        result = track_call("gemini-2.0-flash", "Hello world", "Response text here", 150)
        assert result["model"] == "gemini-2.0-flash"
        assert result["latency_ms"] == 150
        assert result["cost_estimate_usd"] >= 0


# ── Transient detection & retry ─────────────────────────────


class TestRetry:
    @pytest.mark.parametrize("exc, expected", [
        (ConnectionError("reset"), True),
        (TimeoutError(), True),
        (RuntimeError("Error 529: overloaded"), True),
        (RuntimeError("rate limit exceeded"), True),
        (ValueError("invalid api key"), False),
    ])
    def test_is_transient(self, exc, expected):
        assert _is_transient(exc) is expected

    @patch("ai_resilience._do_call")
    def test_transient_error_retried(self, mock_call):
        mock_call.side_effect = [ConnectionError("reset"), "ok"]
        with patch.object(_call_with_retry.retry, "wait", lambda *a, **kw: 0):
            assert _call_with_retry("claude", "m", "k", "p", "") == "ok"
        assert mock_call.call_count == 2

    @patch("ai_resilience._do_call")
    def test_permanent_error_not_retried(self, mock_call):
        mock_call.side_effect = ValueError("invalid api key")
        with pytest.raises(ValueError):
            _call_with_retry("claude", "m", "k", "p", "")
        assert mock_call.call_count == 1

    @patch("ai_resilience._do_call")
    def test_gives_up_after_three_attempts(self, mock_call):
        mock_call.side_effect = ConnectionError("down")
        with patch.object(_call_with_retry.retry, "wait", lambda *a, **kw: 0):
            with pytest.raises(TransientLLMError):
                _call_with_retry("gemini", "m", "k", "p", "")
        assert mock_call.call_count == 3


# ── resilient_llm_call Tests ────────────────────────────────


class TestResilientLLMCall:
    @patch("ai_resilience._call_with_retry")
    def test_basic_call(self, mock_retry):
        mock_retry.return_value = '{"questions": []}'
        text, meta = resilient_llm_call("claude", "claude-sonnet-4-5-20250929", "Hello",
                                        system="sys", api_key="key")
        assert text == '{"questions": []}'
        assert meta["provider"] == "claude"
        assert meta["model"] == "claude-sonnet-4-5-20250929"
        mock_retry.assert_called_once_with("claude", "claude-sonnet-4-5-20250929", "key", "Hello", "sys")

    def test_open_circuit_blocks_call(self):
        cb = get_circuit_breaker()
        for _ in range(cb.FAILURE_THRESHOLD):
            cb.record_failure("gemini")
        with patch("ai_resilience._call_with_retry") as mock_retry:
            with pytest.raises(ProviderUnavailable):
                resilient_llm_call("gemini", "gemini-2.0-flash", "prompt")
        mock_retry.assert_not_called()

    @patch("ai_resilience._call_with_retry")
    def test_failure_recorded(self, mock_retry):
        mock_retry.side_effect = ValueError("Non-transient error")
        with pytest.raises(ValueError):
            resilient_llm_call("claude", "m", "prompt")
        assert get_circuit_breaker().get_state("claude") == "closed"
        for _ in range(2):
            with pytest.raises(ValueError):
                resilient_llm_call("claude", "m", "prompt")
        assert get_circuit_breaker().get_state("claude") == "open"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            resilient_llm_call("openai", "gpt", "prompt")
