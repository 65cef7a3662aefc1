from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from nl2msg.common.contracts import ProcessTransport
from nl2msg.common.logger import get_logger
from nl2msg.common.settings import settings
from nl2msg.protocol.models import ProtocolDocument
from nl2msg.protocol.parser import parse_protocol_document

logger = get_logger("discovery")

DISCOVERY_TAGS = [{"name": "Action", "value": "Info"}]


@dataclass(frozen=True)
class CachedDocument:
    document: ProtocolDocument
    captured_at: float


class ProtocolDiscoveryCache:
    """Fetches and caches each target's self-description.

    Entries are keyed by exactly one target id; re-discovery replaces the entry
    rather than merging it. A target without a valid self-description yields
    ``None`` and is not cached, so the next request probes again.

    Args:
        transport (ProcessTransport): Used for the read-only ``Info`` query.
        ttl_sec (Optional[float]): Freshness window; defaults to settings.
        protocol_version (Optional[str]): Accepted version; defaults to settings.
        clock (Callable[[], float]): Monotonic time source, injectable for tests.
    """

    def __init__(
        self,
        transport: ProcessTransport,
        ttl_sec: Optional[float] = None,
        protocol_version: Optional[str] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.transport = transport
        self.ttl_sec = settings.discovery_cache_ttl_sec if ttl_sec is None else ttl_sec
        self.protocol_version = protocol_version or settings.protocol_version
        self._clock = clock
        self._entries: Dict[str, CachedDocument] = {}
        self._lock = threading.Lock()

    async def discover(self, target_id: str, force_refresh: bool = False) -> Optional[ProtocolDocument]:
        """Returns the target's protocol document, querying the transport on a miss.

        Args:
            target_id (str): The target process id.
            force_refresh (bool): Skip the cache and re-query.

        Returns:
            Optional[ProtocolDocument]: The document, or None for a legacy target.
        """
        if not force_refresh:
            cached = self.get_cached(target_id)
            if cached is not None:
                logger.debug("Discovery cache hit for %s", target_id)
                return cached

        logger.debug("Discovery cache miss for %s; querying Info", target_id)
        try:
            response = await self.transport.query_read_only(target_id, list(DISCOVERY_TAGS))
        except Exception as exc:
            logger.warning("Discovery query for %s failed: %s", target_id, exc)
            return None

        if response is None:
            logger.info("Target %s returned no discovery response; using legacy path", target_id)
            return None

        document = parse_protocol_document(response, expected_version=self.protocol_version)
        if document is None:
            logger.info("Target %s is not self-describing; using legacy path", target_id)
            return None

        self.store(target_id, document)
        logger.info(
            "Discovered %d handlers for %s (protocol %s)",
            len(document.handlers),
            target_id,
            document.protocol_version,
        )
        return document

    def get_cached(self, target_id: str) -> Optional[ProtocolDocument]:
        with self._lock:
            entry = self._entries.get(target_id)
            if entry is None:
                return None
            if self._is_stale(entry):
                del self._entries[target_id]
                logger.debug("Evicted stale discovery entry for %s", target_id)
                return None
            return entry.document

    def store(self, target_id: str, document: ProtocolDocument) -> None:
        with self._lock:
            self._entries[target_id] = CachedDocument(document=document, captured_at=self._clock())

    def invalidate(self, target_id: str) -> bool:
        with self._lock:
            return self._entries.pop(target_id, None) is not None

    def clear_cache(self) -> None:
        with self._lock:
            self._entries.clear()

    def get_cache_stats(self) -> Dict[str, object]:
        """Returns ``{"size": int, "target_ids": [...]}`` for the live entries."""
        with self._lock:
            target_ids: List[str] = sorted(self._entries)
        return {"size": len(target_ids), "target_ids": target_ids}

    def _is_stale(self, entry: CachedDocument) -> bool:
        if self.ttl_sec is None or self.ttl_sec <= 0:
            return False
        return self._clock() - entry.captured_at > self.ttl_sec
