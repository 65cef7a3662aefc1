from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from nl2msg.protocol.models import HandlerMetadata
from nl2msg.pipeline.nodes.extraction.strategies import NUMBER, plain_number
from .rules import ACTION_SYNONYMS, mentions

_WORD = re.compile(r"[a-z0-9][a-z0-9_-]*")


@dataclass
class HandlerMatch:
    """A scored candidate handler for a request."""

    handler: HandlerMetadata
    score: float
    signals: List[str] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        return min(self.score + 0.2, 1.0)


def _words(text: str) -> set:
    return {w for w in _WORD.findall(text.lower()) if len(w) > 2}


def score_handler(request_text: str, handler: HandlerMetadata) -> HandlerMatch:
    """Scores how well ``request_text`` addresses ``handler``.

    Signals: the action name (+0.6), an action synonym (+0.4), shared
    description words (+0.1 each), parameter names (+0.2 required, +0.1
    optional) and shared example words (+0.05 each). Capped at 1.0.
    """
    text = request_text.lower()
    request_words = _words(text)
    score = 0.0
    signals: List[str] = []

    action = handler.action.lower()
    if mentions(action, text):
        score += 0.6
        signals.append(f"action '{handler.action}'")

    for synonym in ACTION_SYNONYMS.get(action, ()):
        if mentions(synonym, text):
            score += 0.4
            signals.append(f"synonym '{synonym}'")
            break

    common = request_words & _words(handler.description)
    if common:
        score += 0.1 * len(common)
        signals.append(f"description words {sorted(common)}")

    for spec in handler.parameters:
        if mentions(spec.name.lower(), text):
            score += 0.2 if spec.required else 0.1
            signals.append(f"parameter '{spec.name}'")

    example_words = set()
    for example in handler.examples:
        example_words |= _words(example)
    shared = request_words & example_words
    if shared:
        score += 0.05 * len(shared)

    return HandlerMatch(handler=handler, score=min(score, 1.0), signals=signals)


def best_handler_match(
    request_text: str, handlers: Sequence[HandlerMetadata], threshold: float = 0.3
) -> Optional[HandlerMatch]:
    """Returns the highest-scoring handler above ``threshold``; earlier handlers win ties."""
    best: Optional[HandlerMatch] = None
    for handler in handlers:
        match = score_handler(request_text, handler)
        if match.score > threshold and (best is None or match.score > best.score):
            best = match
    return best


_RECIPIENT_NAMES = ("target", "recipient", "to", "address")
_AMOUNT_NAMES = ("amount", "quantity", "value")


def sketch_parameters(request_text: str, handler: HandlerMetadata) -> Dict[str, Any]:
    """Best-effort parameter guess used to annotate a detection result.

    This is a preview only; the extraction engine produces the values that
    are actually sent.
    """
    sketch: Dict[str, Any] = {}
    for spec in handler.parameters:
        name = re.escape(spec.name)
        explicit = re.search(rf"\b{name}\s*[=:]\s*[\"']?([^\"'\s,]+)", request_text, re.IGNORECASE)
        if explicit is None:
            explicit = re.search(rf"\b{name}\s+([^\s,]+)", request_text, re.IGNORECASE)
        if explicit:
            sketch[spec.name] = explicit.group(1)
            continue

        lowered = spec.name.lower()
        if lowered in _RECIPIENT_NAMES:
            found = re.search(r"\b(?:to|for)\s+([\w-]+)", request_text, re.IGNORECASE)
            if found:
                sketch[spec.name] = found.group(1)
        elif lowered in _AMOUNT_NAMES or spec.type == "number":
            found = re.search(NUMBER, request_text)
            if found:
                sketch[spec.name] = plain_number(found.group(1))
    return sketch
