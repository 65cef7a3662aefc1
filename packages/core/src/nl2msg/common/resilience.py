"""
Resilience Module: Circuit Breakers around the message transport.

Discovery and dispatch both go through an external transport that can be
slow or down. A breaker lets repeated transport failures fail fast instead of
hammering an unreachable process.

Breakers are created per compiler instance through `create_breaker` so tests
and concurrent compilers never share failure counters.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Type

import pybreaker

from nl2msg.common.logger import get_logger

logger = get_logger("resilience")


class ObservabilityListener(pybreaker.CircuitBreakerListener):
    """Listener that logs circuit breaker state changes and failures."""

    def state_change(self, cb, old_state, new_state):
        old_name = old_state.name if old_state else None
        logger.warning(
            "Circuit Breaker '%s' changed state: %s -> %s", cb.name, old_name, new_state.name
        )

    def failure(self, cb, exc):
        logger.error(
            "Circuit Breaker '%s' recorded failure: %s: %s", cb.name, type(exc).__name__, exc
        )


def create_breaker(
    name: str,
    fail_max: int = 5,
    reset_timeout: int = 30,
    exclude: Optional[List[Type[Exception]]] = None
) -> pybreaker.CircuitBreaker:
    """Factory to create a configured Circuit Breaker.

    The failure that trips the breaker re-raises the transport's own exception;
    only calls refused while open raise ``CircuitBreakerError``.
    """
    return pybreaker.CircuitBreaker(
        fail_max=fail_max,
        reset_timeout=reset_timeout,
        name=name,
        listeners=[ObservabilityListener()],
        exclude=exclude or [],
        throw_new_error_on_trip=False,
    )


def _settle(exc: Optional[BaseException] = None) -> None:
    if exc is not None:
        raise exc


def _trial_due(breaker: pybreaker.CircuitBreaker) -> bool:
    opened_at = breaker._state_storage.opened_at
    if opened_at is None:
        return True
    return datetime.now(timezone.utc) >= opened_at + timedelta(seconds=breaker.reset_timeout)


def _record_success(breaker: pybreaker.CircuitBreaker) -> None:
    try:
        breaker.call(_settle)
    except pybreaker.CircuitBreakerError:
        # Opened by a concurrent call while this one was in flight.
        pass


def _record_failure(breaker: pybreaker.CircuitBreaker, exc: Exception) -> None:
    try:
        breaker.call(_settle, exc)
    except pybreaker.CircuitBreakerError:
        pass
    except Exception as replayed:
        if replayed is not exc:
            raise


async def call_with_breaker(
    breaker: pybreaker.CircuitBreaker,
    func: Callable[..., Awaitable[Any]],
    *args: Any,
    **kwargs: Any,
) -> Any:
    """Awaits `func(*args, **kwargs)` under the breaker's failure accounting.

    pybreaker guards synchronous callables, so the awaited outcome is replayed
    through `breaker.call` afterwards: a success resets the failure counter and
    an exception counts as a failure. Once `reset_timeout` has elapsed on an
    open breaker it is moved to half-open and the real call is the trial: its
    outcome closes or re-opens the breaker.

    Raises:
        pybreaker.CircuitBreakerError: If the breaker is open and the reset timeout has not elapsed.
        Exception: Whatever the transport raised, including the failure that opens the breaker.
    """
    if breaker.current_state == pybreaker.STATE_OPEN:
        if not _trial_due(breaker):
            raise pybreaker.CircuitBreakerError("Timeout not elapsed yet, circuit breaker still open")
        breaker.half_open()

    try:
        result = await func(*args, **kwargs)
    except Exception as exc:
        _record_failure(breaker, exc)
        raise

    _record_success(breaker)
    return result
