"""Handler resolution for targets that do not describe themselves.

Handlers come from caller-supplied process documentation when given, else
from the built-in process templates. The resolved handler then goes through
the same extraction, validation, risk and dispatch stages as the protocol
path.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional

from nl2msg.common.logger import get_logger
from nl2msg.protocol.markdown import parse_process_markdown
from nl2msg.protocol.models import HandlerMetadata
from nl2msg.protocol.templates import BUILTIN_TEMPLATES, ProcessTemplate

logger = get_logger("legacy")

LEGACY_SYNONYMS: Dict[str, tuple] = {
    "balance": ("check", "get", "show"),
    "transfer": ("send", "give", "pay"),
}
LEGACY_MIN_CONFIDENCE = 0.6
DOCUMENTATION_REQUEST = (
    "Could not process request. Please provide process documentation (process_markdown) "
    "describing the available handlers, or rephrase using one of the suggested operations."
)


def legacy_score(request_text: str, handler: HandlerMetadata) -> float:
    """Simplified match score: action name +0.5, synonym +0.4, shared
    description words +0.1 each, parameter names +0.2 each. Capped at 1.0."""
    request = request_text.lower()
    action = handler.action.lower()
    score = 0.0

    if action in request:
        score += 0.5
    if any(synonym in request for synonym in LEGACY_SYNONYMS.get(action, ())):
        score += 0.4

    description_words = set(handler.description.lower().split())
    score += 0.1 * len(set(request.split()) & description_words)

    for spec in handler.parameters:
        if spec.name.lower() in request:
            score += 0.2
    return min(score, 1.0)


@dataclass
class LegacyResolution:
    """Outcome of resolving a handler without a protocol document."""

    source: str
    process_name: str
    process_type: str
    handlers: List[HandlerMetadata]
    handler: Optional[HandlerMetadata] = None
    confidence: float = 0.0
    suggested_operations: List[str] = field(default_factory=list)

    @property
    def resolved(self) -> bool:
        return self.handler is not None


class LegacyCompiler:
    """Resolves handlers for non-self-describing targets.

    Args:
        templates (Mapping[str, ProcessTemplate]): Built-in process families.
        min_confidence (float): Score a handler match must exceed.
    """

    def __init__(
        self,
        templates: Mapping[str, ProcessTemplate] = BUILTIN_TEMPLATES,
        min_confidence: float = LEGACY_MIN_CONFIDENCE,
    ):
        self.templates = dict(templates)
        self.min_confidence = min_confidence

    def resolve(
        self,
        request_text: str,
        process_markdown: Optional[str] = None,
        handler_name: Optional[str] = None,
    ) -> LegacyResolution:
        """Picks the handler a legacy request addresses.

        Args:
            request_text (str): The caller's instruction.
            process_markdown (Optional[str]): Caller-supplied process documentation.
            handler_name (Optional[str]): Explicit handler override.

        Returns:
            LegacyResolution: The handler (if any cleared the threshold) and suggestions.
        """
        if process_markdown:
            process_name, handlers = parse_process_markdown(process_markdown)
            resolution = LegacyResolution(
                source="markdown",
                process_name=process_name,
                process_type="custom",
                handlers=handlers,
                suggested_operations=[f"{h.action}: {h.description}".rstrip(": ") for h in handlers],
            )
            logger.debug("Parsed %d handlers from process documentation '%s'", len(handlers), process_name)
            return self._pick(resolution, request_text, handler_name)

        best: Optional[LegacyResolution] = None
        for template in self.templates.values():
            candidate = self._pick(
                LegacyResolution(
                    source="template",
                    process_name=template.name,
                    process_type=template.process_type,
                    handlers=list(template.handlers),
                    suggested_operations=list(template.suggested_operations),
                ),
                request_text,
                handler_name,
            )
            if best is None or candidate.confidence > best.confidence:
                best = candidate
        if best is None:
            return LegacyResolution(source="template", process_name="", process_type="custom", handlers=[])
        return best

    def _pick(
        self, resolution: LegacyResolution, request_text: str, handler_name: Optional[str]
    ) -> LegacyResolution:
        if handler_name:
            for handler in resolution.handlers:
                if handler.action.lower() == handler_name.lower():
                    resolution.handler = handler
                    resolution.confidence = 1.0
            return resolution

        for handler in resolution.handlers:
            score = legacy_score(request_text, handler)
            if score > resolution.confidence:
                resolution.confidence = score
                if score > self.min_confidence:
                    resolution.handler = handler
        logger.debug(
            "Legacy match from %s: %s (%.2f)",
            resolution.source,
            resolution.handler.action if resolution.handler else None,
            resolution.confidence,
        )
        return resolution
