"""LLM completion capability and its litellm adapter."""

from __future__ import annotations

import logging
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

import litellm
from circuitbreaker import (  # pyright: ignore[reportUnknownVariableType]
    CircuitBreaker,
    CircuitBreakerError,
)
from litellm.exceptions import RateLimitError as LitellmRateLimitError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from faultline.constants import (
    CB_LLM_FAILURE_THRESHOLD,
    CB_LLM_RECOVERY_TIMEOUT,
    RETRY_INITIAL_WAIT,
    RETRY_MAX_ATTEMPTS,
    RETRY_MAX_WAIT,
)
from faultline.resilience.errors import AdvisorError, TransportError, to_advisor_error

logger = logging.getLogger(__name__)

# litellm stubs have partially unknown types; typed alias
if TYPE_CHECKING:
    _acompletion: Callable[..., Coroutine[Any, Any, Any]]
else:
    _acompletion = litellm.acompletion


@runtime_checkable
class LLMBackend(Protocol):
    """Text-completion capability consumed by the advisor.

    Implementations raise ``TransportError`` or ``ServerError`` on
    failure and never return partial replies.
    """

    async def complete(
        self,
        model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str: ...

    def is_available(self) -> bool: ...


def _is_non_rate_limit_error(
    thrown_type: type, thrown_value: BaseException
) -> bool:
    """Return True if NOT a rate limit error (should count as CB failure).

    Rate limit errors are backpressure, not outages, so they do not
    trip the breaker.
    """
    return not issubclass(thrown_type, LitellmRateLimitError)


# Per-model circuit breaker registry; each model gets independent
# failure tracking.
_breaker_registry: dict[str, CircuitBreaker] = {}  # pyright: ignore[reportUnknownVariableType]


def _get_breaker(model: str) -> CircuitBreaker:  # pyright: ignore[reportUnknownParameterType]
    """Get or create a circuit breaker for the given model."""
    if model not in _breaker_registry:
        _breaker_registry[model] = CircuitBreaker(  # pyright: ignore[reportUnknownMemberType]
            failure_threshold=CB_LLM_FAILURE_THRESHOLD,
            recovery_timeout=CB_LLM_RECOVERY_TIMEOUT,
            expected_exception=_is_non_rate_limit_error,
            name=f"llm_{model}",
        )
    return _breaker_registry[model]


@retry(
    stop=stop_after_attempt(RETRY_MAX_ATTEMPTS),
    wait=wait_exponential_jitter(
        initial=RETRY_INITIAL_WAIT, max=RETRY_MAX_WAIT
    ),
    retry=retry_if_exception_type(LitellmRateLimitError),
    reraise=True,
)
async def guarded_completion(
    model: str,
    prompt: str,
    *,
    max_tokens: int,
    temperature: float,
    timeout: float,
    api_base: str = "",
) -> str:
    """Per-model circuit-breaker-protected completion with rate-limit retry.

    - Circuit breaker opens after 5 consecutive non-rate-limit
      failures and recovers after 30s.
    - Tenacity retries rate-limit errors (429) with jittered
      exponential backoff.
    """
    breaker = _get_breaker(model)
    if breaker.opened:  # pyright: ignore[reportUnknownMemberType]
        raise CircuitBreakerError(breaker)  # pyright: ignore[reportUnknownArgumentType]
    with breaker:  # pyright: ignore[reportUnknownMemberType]
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
            "timeout": timeout,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if api_base:
            kwargs["api_base"] = api_base
        response: Any = await _acompletion(**kwargs)

    return str(response.choices[0].message.content or "")


class LiteLLMBackend:
    """LLMBackend over ``litellm.acompletion``.

    Client exceptions are mapped onto ``TransportError`` and
    ``ServerError``; an open circuit reads as a transport failure and
    makes ``is_available`` report False until the breaker recovers.
    """

    def __init__(
        self,
        model: str,
        *,
        timeout_seconds: float,
        api_base: str = "",
    ) -> None:
        self._model = model
        self._timeout = timeout_seconds
        self._api_base = api_base

    def is_available(self) -> bool:
        if not self._model:
            return False
        breaker = _breaker_registry.get(self._model)
        return breaker is None or not breaker.opened  # pyright: ignore[reportUnknownMemberType]

    async def complete(
        self,
        model: str,
        prompt: str,
        max_tokens: int,
        temperature: float,
    ) -> str:
        try:
            return await guarded_completion(
                model,
                prompt,
                max_tokens=max_tokens,
                temperature=temperature,
                timeout=self._timeout,
                api_base=self._api_base,
            )
        except AdvisorError:
            raise
        except CircuitBreakerError as exc:
            raise TransportError(f"circuit open for {model}") from exc
        except Exception as exc:
            logger.debug(
                "event=llm_call_failed model=%s error_type=%s",
                model,
                type(exc).__name__,
            )
            raise to_advisor_error(exc) from exc
