"""AI resilience layer: retry, circuit breaker, cost estimate.

Provides a single resilient_llm_call() entry point that wraps every provider
call with tenacity retries on transient errors and a per-provider circuit
breaker.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

logger = logging.getLogger(__name__)


class ProviderUnavailable(RuntimeError):
    """The provider's circuit is open; no call was made."""


class TransientLLMError(Exception):
    """Wrapper for transient LLM errors that should be retried."""


# ── Circuit Breaker ─────────────────────────────────────────

@dataclass
class _ProviderState:
    failures: int = 0
    state: str = "closed"  # closed | open | half_open
    last_failure_time: float = 0.0


class CircuitBreaker:
    """Per-provider state machine: closed -> open -> half_open -> closed."""

    FAILURE_THRESHOLD = 3
    RECOVERY_TIMEOUT = 60  # seconds

    def __init__(self) -> None:
        self._providers: dict[str, _ProviderState] = {}
        self._lock = threading.Lock()

    def _get_state(self, provider: str) -> _ProviderState:
        if provider not in self._providers:
            self._providers[provider] = _ProviderState()
        return self._providers[provider]

    def record_success(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures = 0
            state.state = "closed"

    def record_failure(self, provider: str) -> None:
        with self._lock:
            state = self._get_state(provider)
            state.failures += 1
            state.last_failure_time = time.time()
            if state.failures >= self.FAILURE_THRESHOLD:
                state.state = "open"

    def is_open(self, provider: str) -> bool:
        with self._lock:
            state = self._get_state(provider)
            if state.state == "closed":
                return False
            if state.state == "open":
                if time.time() - state.last_failure_time >= self.RECOVERY_TIMEOUT:
                    state.state = "half_open"
                    return False  # allow one attempt
                return True
            return False

    def get_state(self, provider: str) -> str:
        with self._lock:
            return self._get_state(provider).state

    def reset(self) -> None:
        with self._lock:
            self._providers.clear()


_circuit_breaker = CircuitBreaker()


# ── Cost estimate ───────────────────────────────────────────

# Approximate pricing per 1M tokens (input + output averaged)
_MODEL_PRICING: dict[str, float] = {
    "gemini-2.0-flash": 0.075,
    "gemini-1.5-flash": 0.075,
    "claude-sonnet-4-5-20250929": 3.0,
    "claude-sonnet-4-20250514": 3.0,
}


def estimate_tokens(text: str) -> int:
    """Rough estimate: 1 token ~ 4 characters."""
    return max(1, len(text) // 4)


def track_call(model: str, input_text: str, output_text: str, latency_ms: int) -> dict:
    total_tokens = estimate_tokens(input_text) + estimate_tokens(output_text)
    cost_usd = (total_tokens / 1_000_000) * _MODEL_PRICING.get(model, 1.0)
    return {
        "total_tokens_est": total_tokens,
        "cost_estimate_usd": round(cost_usd, 6),
        "model": model,
        "latency_ms": latency_ms,
    }


# ── Transient error detection ───────────────────────────────

_TRANSIENT_ERRORS = (
    ConnectionError,
    TimeoutError,
)

_TRANSIENT_PATTERNS = (
    "rate limit",
    "429",
    "503",
    "502",
    "500",
    "overloaded",
    "temporarily unavailable",
    "timeout",
    "connection",
)


def _is_transient(exc: BaseException) -> bool:
    """Check if an exception is transient (worth retrying)."""
    if isinstance(exc, _TRANSIENT_ERRORS):
        return True
    msg = str(exc).lower()
    return any(p in msg for p in _TRANSIENT_PATTERNS)


# ── Provider calls ──────────────────────────────────────────

def _do_call(provider: str, model: str, api_key: str, prompt: str, system: str) -> str:
    """Execute the actual LLM API call (no retry)."""
    if provider == "gemini":
        import google.generativeai as genai
        genai.configure(api_key=api_key)
        m = genai.GenerativeModel(model)
        full_prompt = f"{system}\n\n{prompt}" if system else prompt
        response = m.generate_content(full_prompt)
        return response.text

    if provider == "claude":
        import anthropic
        client = anthropic.Anthropic(api_key=api_key)
        kwargs: dict = {
            "model": model,
            "max_tokens": 4096,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system
        response = client.messages.create(**kwargs)
        return response.content[0].text

    raise ValueError(f"Unknown provider: {provider}")


@retry(
    retry=retry_if_exception_type(TransientLLMError),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    stop=stop_after_attempt(3),
    reraise=True,
)
def _call_with_retry(provider: str, model: str, api_key: str, prompt: str, system: str) -> str:
    """Call LLM with tenacity retry on transient errors."""
    try:
        return _do_call(provider, model, api_key, prompt, system)
    except Exception as exc:
        if _is_transient(exc):
            raise TransientLLMError(str(exc)) from exc
        raise


def resilient_llm_call(
    provider: str,
    model: str,
    prompt: str,
    system: str = "",
    api_key: str = "",
) -> tuple[str, dict]:
    """Main entry point for resilient LLM calls.

    Args:
        provider: 'claude' or 'gemini'
        model: Model name string
        prompt: The prompt text
        system: System prompt (optional)
        api_key: Provider API key

    Returns:
        (response_text, metadata_dict) where metadata holds the token and
        cost estimate, latency, provider and model.

    Raises:
        ProviderUnavailable: the provider's circuit is open.
    """
    if _circuit_breaker.is_open(provider):
        raise ProviderUnavailable(f"Circuit breaker open for provider: {provider}")

    start = time.time()
    try:
        response_text = _call_with_retry(provider, model, api_key, prompt, system)
    except Exception:
        _circuit_breaker.record_failure(provider)
        raise

    latency_ms = int((time.time() - start) * 1000)
    _circuit_breaker.record_success(provider)

    metrics = track_call(model, system + prompt, response_text, latency_ms)
    metrics["provider"] = provider
    logger.info("llm call provider=%s model=%s latency=%dms", provider, model, latency_ms)
    return response_text, metrics


def get_circuit_breaker() -> CircuitBreaker:
    """Access the module-level circuit breaker singleton."""
    return _circuit_breaker
