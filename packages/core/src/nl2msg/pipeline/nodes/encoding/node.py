from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from nl2msg.common.contracts import MessageTag
from nl2msg.common.logger import get_logger
from nl2msg.common.settings import settings
from nl2msg.protocol.models import HandlerMetadata
from nl2msg.protocol.parser import generate_message_tags, parameters_as_json

from .schemas import EncodedMessage, EncodingDecision, EncodingStrategy

logger = get_logger("encoding")

# Substring of a target id -> pinned strategy. First hit wins.
TARGET_HINTS: Tuple[Tuple[str, EncodingStrategy], ...] = (
    ("calculator", "tags"),
    ("math", "tags"),
    ("token", "data"),
    ("coin", "data"),
)
MATH_ACTIONS = ("add", "subtract", "multiply", "divide", "sum", "calculate", "math")
TRANSFER_ACTIONS = ("transfer", "send", "pay", "withdraw", "deposit")
MAX_TAG_PARAMETERS = 4
MAX_DISCRIMINANT_LENGTH = 64


class EncodingPreferenceCache:
    """Per-target encoding preferences with a freshness window.

    Safe to clear at any time; a miss only means the selector re-derives the
    strategy from the handler shape.
    """

    def __init__(self, ttl_sec: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = settings.encoding_cache_ttl_sec if ttl_sec is None else ttl_sec
        self._clock = clock
        self._entries: Dict[str, Tuple[EncodingStrategy, float]] = {}
        self._lock = threading.Lock()

    def get(self, target_id: str) -> Optional[EncodingStrategy]:
        with self._lock:
            entry = self._entries.get(target_id)
            if entry is None:
                return None
            strategy, stored_at = entry
            if self.ttl_sec > 0 and self._clock() - stored_at > self.ttl_sec:
                del self._entries[target_id]
                return None
            return strategy

    def remember(self, target_id: str, strategy: EncodingStrategy) -> None:
        with self._lock:
            self._entries[target_id] = (strategy, self._clock())

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            return {"size": len(self._entries), "preferences": {k: v[0] for k, v in self._entries.items()}}


def fits_in_tags(handler: HandlerMetadata) -> bool:
    """Whether a handler's declared parameters can all travel as tags.

    Handlers with fewer than ``MAX_TAG_PARAMETERS`` scalar parameters are sent
    exactly as declared; anything larger or structured goes through the
    strategy selector.
    """
    if len(handler.parameters) >= MAX_TAG_PARAMETERS:
        return False
    return all(spec.type != "json" for spec in handler.parameters)


class EncodingStrategySelector:
    """Chooses tags, data or hybrid encoding per target and handler.

    Rules, in order: a learned per-target preference, a target-id hint (which
    is then remembered), structured or wide handlers go to ``data``,
    arithmetic handlers go to ``tags``, value transfers with three or more
    parameters go to ``data``, and everything else is ``hybrid``.
    """

    def __init__(self, preference_cache: Optional[EncodingPreferenceCache] = None):
        self.preference_cache = preference_cache or EncodingPreferenceCache()

    def select_strategy(self, target_id: str, handler: HandlerMetadata) -> EncodingStrategy:
        return self.decide(target_id, handler).strategy

    def decide(self, target_id: str, handler: HandlerMetadata) -> EncodingDecision:
        cached = self.preference_cache.get(target_id)
        if cached is not None:
            return EncodingDecision(strategy=cached, source="cache", reason=f"Learned preference for {target_id}")

        lowered_target = target_id.lower()
        for fragment, strategy in TARGET_HINTS:
            if fragment in lowered_target:
                self.preference_cache.remember(target_id, strategy)
                logger.debug("Pinned %s to %s encoding (target id mentions '%s')", target_id, strategy, fragment)
                return EncodingDecision(
                    strategy=strategy, source="target_hint", reason=f"Target id mentions '{fragment}'"
                )

        decision = self._from_handler_shape(handler)
        logger.debug("Encoding for %s/%s: %s (%s)", target_id, handler.action, decision.strategy, decision.reason)
        return decision

    @staticmethod
    def _from_handler_shape(handler: HandlerMetadata) -> EncodingDecision:
        params = handler.parameters
        action = handler.action.lower()

        if len(params) >= MAX_TAG_PARAMETERS or any(spec.type == "json" for spec in params):
            return EncodingDecision(
                strategy="data", source="heuristic", reason="Many or structured parameters"
            )

        numeric = [spec for spec in params if spec.type == "number"]
        if any(fragment in action for fragment in MATH_ACTIONS) or (len(params) == 2 and len(numeric) == 2):
            return EncodingDecision(strategy="tags", source="heuristic", reason="Simple arithmetic operation")

        if any(fragment in action for fragment in TRANSFER_ACTIONS) and len(params) >= 3:
            return EncodingDecision(strategy="data", source="heuristic", reason="Value transfer with extra fields")

        return EncodingDecision(strategy="hybrid", source="heuristic", reason="Mixed parameter set")


def _is_discriminant(handler: HandlerMetadata, name: str, value: Any) -> bool:
    spec = handler.get_parameter(name)
    if spec is None or spec.type not in ("address", "boolean", "string"):
        return False
    return isinstance(value, bool) or len(str(value)) <= MAX_DISCRIMINANT_LENGTH


def encode_message(
    handler: HandlerMetadata, parameters: Mapping[str, Any], strategy: EncodingStrategy
) -> EncodedMessage:
    """Places ``parameters`` on the message according to ``strategy``.

    ``tags`` puts every parameter in a tag, ``data`` sends only the ``Action``
    tag plus a JSON payload, and ``hybrid`` keeps short scalar discriminants as
    tags and moves the rest into the payload.
    """
    present = {name: value for name, value in parameters.items() if value is not None}

    if strategy == "tags":
        return EncodedMessage(strategy=strategy, tags=generate_message_tags(handler, present))

    action_tag = [MessageTag(name="Action", value=handler.action)]
    if strategy == "data":
        return EncodedMessage(
            strategy=strategy,
            tags=action_tag,
            data=parameters_as_json(present) if present else None,
        )

    tagged = [name for name, value in present.items() if _is_discriminant(handler, name, value)]
    payload = {name: value for name, value in present.items() if name not in tagged}
    return EncodedMessage(
        strategy=strategy,
        tags=generate_message_tags(handler, present, include=tagged),
        data=parameters_as_json(payload) if payload else None,
    )
