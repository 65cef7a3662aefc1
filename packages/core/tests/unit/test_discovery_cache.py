import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from nl2msg.protocol.discovery import DISCOVERY_TAGS, ProtocolDiscoveryCache


class FakeClock:
    def __init__(self, now: float = 0.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestProtocolDiscoveryCache:

    def setup_method(self):
        self.transport = MagicMock()
        self.clock = FakeClock()

    def _cache(self, response, ttl_sec=60):
        self.transport.query_read_only = AsyncMock(return_value=response)
        return ProtocolDiscoveryCache(self.transport, ttl_sec=ttl_sec, clock=self.clock)

    def test_second_discover_hits_cache(self, token_payload):
        """Two discoveries within the TTL cost exactly one transport call."""
        cache = self._cache(token_payload)

        first = asyncio.run(cache.discover("proc-1"))
        second = asyncio.run(cache.discover("proc-1"))

        assert first is not None
        assert second is first
        assert self.transport.query_read_only.await_count == 1
        self.transport.query_read_only.assert_awaited_with("proc-1", DISCOVERY_TAGS)
        assert cache.get_cache_stats() == {"size": 1, "target_ids": ["proc-1"]}

    def test_entries_are_per_target(self, token_payload):
        cache = self._cache(json.dumps(token_payload))

        asyncio.run(cache.discover("proc-1"))
        asyncio.run(cache.discover("proc-2"))

        assert self.transport.query_read_only.await_count == 2
        assert cache.get_cache_stats()["target_ids"] == ["proc-1", "proc-2"]

    @pytest.mark.parametrize(
        "response",
        [
            None,
            "invalid json",
            {"protocolVersion": "2.0", "handlers": [{"action": "Info"}]},
            {"handlers": [{"action": "Info"}]},
            {"protocolVersion": "1.0"},
        ],
    )
    def test_legacy_targets_return_none_and_are_not_cached(self, response):
        """A target without a valid self-description is probed again next time."""
        cache = self._cache(response)

        assert asyncio.run(cache.discover("legacy")) is None
        assert asyncio.run(cache.discover("legacy")) is None

        assert self.transport.query_read_only.await_count == 2
        assert cache.get_cache_stats()["size"] == 0

    def test_transport_error_returns_none(self):
        self.transport.query_read_only = AsyncMock(side_effect=ConnectionError("unreachable"))
        cache = ProtocolDiscoveryCache(self.transport, ttl_sec=60, clock=self.clock)

        assert asyncio.run(cache.discover("proc-1")) is None

    def test_stale_entry_is_refetched(self, token_payload):
        """Entries older than the TTL are evicted on read."""
        cache = self._cache(token_payload, ttl_sec=10)

        asyncio.run(cache.discover("proc-1"))
        self.clock.now = 5
        asyncio.run(cache.discover("proc-1"))
        assert self.transport.query_read_only.await_count == 1

        self.clock.now = 11
        asyncio.run(cache.discover("proc-1"))
        assert self.transport.query_read_only.await_count == 2

    def test_zero_ttl_never_expires(self, token_payload):
        cache = self._cache(token_payload, ttl_sec=0)

        asyncio.run(cache.discover("proc-1"))
        self.clock.now = 10_000
        asyncio.run(cache.discover("proc-1"))

        assert self.transport.query_read_only.await_count == 1

    def test_force_refresh_replaces_entry(self, token_payload):
        """Re-discovery replaces the cached document rather than merging it."""
        cache = self._cache(token_payload)
        asyncio.run(cache.discover("proc-1"))

        self.transport.query_read_only = AsyncMock(
            return_value={"protocolVersion": "1.0", "handlers": [{"action": "Ping"}]}
        )
        refreshed = asyncio.run(cache.discover("proc-1", force_refresh=True))

        assert refreshed.actions == ["Ping"]
        assert cache.get_cached("proc-1").actions == ["Ping"]

    def test_clear_and_invalidate(self, token_payload):
        cache = self._cache(token_payload)
        asyncio.run(cache.discover("proc-1"))
        asyncio.run(cache.discover("proc-2"))

        assert cache.invalidate("proc-1") is True
        assert cache.invalidate("proc-1") is False
        assert cache.get_cache_stats() == {"size": 1, "target_ids": ["proc-2"]}

        cache.clear_cache()
        assert cache.get_cache_stats() == {"size": 0, "target_ids": []}

        asyncio.run(cache.discover("proc-2"))
        assert self.transport.query_read_only.await_count == 3

    def test_respects_configured_protocol_version(self, token_payload):
        self.transport.query_read_only = AsyncMock(return_value=token_payload)
        cache = ProtocolDiscoveryCache(self.transport, protocol_version="2.0", clock=self.clock)

        assert asyncio.run(cache.discover("proc-1")) is None
