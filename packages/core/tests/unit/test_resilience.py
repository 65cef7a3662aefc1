import asyncio
from unittest.mock import AsyncMock

import pybreaker
import pytest

from nl2msg.common.resilience import ObservabilityListener, call_with_breaker, create_breaker


class TestDispatchBreaker:

    def setup_method(self):
        self.breaker = create_breaker("test-dispatch", fail_max=2, reset_timeout=60)

    def test_success_passes_result_through(self):
        """A successful call returns the transport result and keeps the breaker closed."""
        func = AsyncMock(return_value={"ok": True})

        result = asyncio.run(call_with_breaker(self.breaker, func, "proc-1", tags=[]))

        assert result == {"ok": True}
        func.assert_awaited_once_with("proc-1", tags=[])
        assert self.breaker.current_state == pybreaker.STATE_CLOSED

    def test_failure_below_threshold_reraises_original(self):
        func = AsyncMock(side_effect=ConnectionError("refused"))

        with pytest.raises(ConnectionError):
            asyncio.run(call_with_breaker(self.breaker, func))

        assert self.breaker.fail_counter == 1
        assert self.breaker.current_state == pybreaker.STATE_CLOSED

    def test_success_resets_failure_count(self):
        failing = AsyncMock(side_effect=ConnectionError("refused"))
        with pytest.raises(ConnectionError):
            asyncio.run(call_with_breaker(self.breaker, failing))

        asyncio.run(call_with_breaker(self.breaker, AsyncMock(return_value=1)))

        assert self.breaker.fail_counter == 0

    def test_breaker_opens_and_fails_fast(self):
        """The tripping failure surfaces as-is; once open, the transport is no longer awaited."""
        func = AsyncMock(side_effect=ConnectionError("refused"))

        with pytest.raises(ConnectionError):
            asyncio.run(call_with_breaker(self.breaker, func))
        with pytest.raises(ConnectionError):
            asyncio.run(call_with_breaker(self.breaker, func))
        assert self.breaker.current_state == pybreaker.STATE_OPEN

        func.reset_mock()
        with pytest.raises(pybreaker.CircuitBreakerError):
            asyncio.run(call_with_breaker(self.breaker, func))
        func.assert_not_awaited()

    def test_breaker_has_observability_listener(self):
        assert any(isinstance(listener, ObservabilityListener) for listener in self.breaker.listeners)


class TestHalfOpenTrial:

    def setup_method(self):
        self.breaker = create_breaker("test-trial", fail_max=2, reset_timeout=0)
        self.states = []

    def trip(self):
        failing = AsyncMock(side_effect=ConnectionError("refused"))
        for _ in range(2):
            with pytest.raises(ConnectionError):
                asyncio.run(call_with_breaker(self.breaker, failing))
        assert self.breaker.current_state == pybreaker.STATE_OPEN

    def transport(self, outcome):
        async def call():
            self.states.append(self.breaker.current_state)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome

        return call

    def test_failed_trial_reopens(self):
        """The real call is the trial; the breaker stays half-open until it settles."""
        self.trip()

        with pytest.raises(ConnectionError):
            asyncio.run(call_with_breaker(self.breaker, self.transport(ConnectionError("still down"))))

        assert self.states == [pybreaker.STATE_HALF_OPEN]
        assert self.breaker.current_state == pybreaker.STATE_OPEN

    def test_successful_trial_closes(self):
        self.trip()

        result = asyncio.run(call_with_breaker(self.breaker, self.transport({"ok": True})))

        assert result == {"ok": True}
        assert self.states == [pybreaker.STATE_HALF_OPEN]
        assert self.breaker.current_state == pybreaker.STATE_CLOSED
        assert self.breaker.fail_counter == 0

    def test_injected_breaker_keeps_transport_error(self):
        """Breakers built without the factory still surface the tripping failure."""
        breaker = pybreaker.CircuitBreaker(fail_max=1, reset_timeout=60)

        with pytest.raises(ConnectionError):
            asyncio.run(call_with_breaker(breaker, AsyncMock(side_effect=ConnectionError("refused"))))

        assert breaker.current_state == pybreaker.STATE_OPEN
