from __future__ import annotations

from typing import Any, Iterable, List, Optional, Sequence

from pydantic import ValidationError

from nl2msg.common.contracts import max_risk
from nl2msg.common.logger import get_logger
from nl2msg.common.settings import settings
from nl2msg.protocol.models import HandlerMetadata

from .matching import best_handler_match, sketch_parameters
from .rules import INTENT_RULES, PATTERN_RULES, IntentRule, PatternRule, high_risk_verb
from .schemas import OperationDetectionResult

logger = get_logger("detection")

EXPLICIT_MODES = ("read", "write", "validate")
PATTERN_CONFIDENCE = 0.7
DEFAULT_CONFIDENCE = 0.3


class OperationTypeDetector:
    """Decides whether a request reads or writes, first matching layer wins.

    Layers, in order: input validation, explicit mode, protocol-metadata
    matching, natural-language verb strength, phrase patterns and finally a
    read default. Detection never raises.

    Attributes:
        protocol_threshold (float): Confidence a handler match must exceed.
        nlp_min_score (float): Minimum verb strength for the NLP layer.
        handler_threshold (float): Minimum raw score for a handler candidate.
    """

    def __init__(
        self,
        intent_rules: Sequence[IntentRule] = INTENT_RULES,
        pattern_rules: Sequence[PatternRule] = PATTERN_RULES,
        protocol_threshold: Optional[float] = None,
        nlp_min_score: Optional[float] = None,
        handler_threshold: Optional[float] = None,
    ):
        self.intent_rules = tuple(intent_rules)
        self.pattern_rules = tuple(pattern_rules)
        self.protocol_threshold = (
            settings.protocol_match_threshold if protocol_threshold is None else protocol_threshold
        )
        self.nlp_min_score = settings.nlp_min_score if nlp_min_score is None else nlp_min_score
        self.handler_threshold = (
            settings.handler_match_threshold if handler_threshold is None else handler_threshold
        )

    def detect(
        self,
        request_text: Any,
        handlers: Optional[Iterable[Any]] = None,
        explicit_mode: Optional[str] = None,
    ) -> OperationDetectionResult:
        """Detects the operation type of ``request_text``.

        Args:
            request_text (Any): The caller's instruction. Non-strings are rejected.
            handlers (Optional[Iterable[Any]]): Known handlers (models or raw dicts).
            explicit_mode (Optional[str]): "read", "write", "validate" or "auto".

        Returns:
            OperationDetectionResult: The decision with its reasoning trail.
        """
        if not isinstance(request_text, str) or not request_text.strip():
            return OperationDetectionResult(
                operation_type="unknown",
                confidence=0.0,
                detection_method="fallback",
                reasoning=["Invalid or empty request provided"],
            )

        if explicit_mode and explicit_mode != "auto":
            return self._from_explicit_mode(request_text, explicit_mode)

        reasoning: List[str] = []
        try:
            result = self._from_protocol(request_text, handlers, reasoning)
            if result is None:
                result = self._from_intent(request_text, reasoning)
            if result is None:
                result = self._from_patterns(request_text, reasoning)
            if result is None:
                reasoning.append("No layer matched; defaulting to read operation for safety")
                result = OperationDetectionResult(
                    operation_type="read",
                    confidence=DEFAULT_CONFIDENCE,
                    detection_method="fallback",
                    risk_level="low",
                    reasoning=reasoning,
                )
        except Exception as exc:
            logger.error("Operation detection failed: %s", exc)
            return OperationDetectionResult(
                operation_type="unknown",
                confidence=0.0,
                detection_method="fallback",
                risk_level="high",
                reasoning=reasoning + [f"Operation detection failed: {exc}"],
            )

        logger.debug(
            "Detected %s via %s (confidence %.2f)",
            result.operation_type,
            result.detection_method,
            result.confidence,
        )
        return result

    def _from_explicit_mode(self, request_text: str, mode: str) -> OperationDetectionResult:
        if mode not in EXPLICIT_MODES:
            return OperationDetectionResult(
                operation_type="unknown",
                confidence=0.5,
                detection_method="fallback",
                reasoning=[f"Invalid explicit mode '{mode}', expected: {', '.join(EXPLICIT_MODES)}"],
            )
        return OperationDetectionResult(
            operation_type=mode,
            confidence=1.0,
            detection_method="explicit",
            risk_level=self.risk_for(mode, request_text),
            reasoning=[f"Explicit mode specified: {mode}"],
        )

    def _from_protocol(
        self, request_text: str, handlers: Optional[Iterable[Any]], reasoning: List[str]
    ) -> Optional[OperationDetectionResult]:
        if not handlers:
            return None
        try:
            known = coerce_handlers(handlers)
            match = best_handler_match(request_text, known, self.handler_threshold)
        except Exception as exc:
            reasoning.append(f"Handler metadata unusable ({exc}); skipping protocol layer")
            return None

        if match is None:
            reasoning.append("No handler scored above the candidate threshold")
            return None
        if match.confidence <= self.protocol_threshold:
            reasoning.append(
                f"Best handler '{match.handler.action}' too weak ({match.confidence:.2f})"
            )
            return None

        handler = match.handler
        op_type = "write" if handler.is_write else "read"
        reasoning.append(
            f"Matched handler '{handler.action}' via {', '.join(match.signals) or 'weak signals'}"
        )
        return OperationDetectionResult(
            operation_type=op_type,
            confidence=match.confidence,
            detection_method="protocol",
            risk_level=self.risk_for(op_type, request_text, handler),
            reasoning=reasoning,
            suggested_parameters=sketch_parameters(request_text, handler),
            matched_handler=handler.action,
        )

    def _from_intent(self, request_text: str, reasoning: List[str]) -> Optional[OperationDetectionResult]:
        best = {"read": None, "write": None}
        for rule in self.intent_rules:
            if not rule.matches(request_text):
                continue
            current = best[rule.operation]
            if current is None or rule.strength > current.strength:
                best[rule.operation] = rule

        read_rule, write_rule = best["read"], best["write"]
        read_score = read_rule.strength if read_rule else 0.0
        write_score = write_rule.strength if write_rule else 0.0

        if read_score == write_score:
            if read_score:
                reasoning.append(f"Read and write verbs tie at {read_score:.2f}")
            return None

        winner = write_rule if write_score > read_score else read_rule
        if winner.strength <= self.nlp_min_score:
            reasoning.append(f"Verb '{winner.verb}' too weak ({winner.strength:.2f})")
            return None

        reasoning.append(f"Verb '{winner.verb}' signals a {winner.operation} ({winner.strength:.2f})")
        return OperationDetectionResult(
            operation_type=winner.operation,
            confidence=winner.strength,
            detection_method="nlp",
            risk_level=self.risk_for(winner.operation, request_text),
            reasoning=reasoning,
        )

    def _from_patterns(self, request_text: str, reasoning: List[str]) -> Optional[OperationDetectionResult]:
        for operation in ("write", "read"):
            for rule in self.pattern_rules:
                if rule.operation == operation and rule.matches(request_text):
                    reasoning.append(f"Pattern '{rule.label}' implies a {operation}")
                    return OperationDetectionResult(
                        operation_type=operation,
                        confidence=PATTERN_CONFIDENCE,
                        detection_method="pattern",
                        risk_level=self.risk_for(operation, request_text),
                        reasoning=reasoning,
                    )
        return None

    @staticmethod
    def risk_for(operation: str, request_text: str, handler: Optional[HandlerMetadata] = None) -> str:
        """Risk implied by an operation type, the request verbs and the handler."""
        if handler is not None and handler.is_write:
            operation = "write"
        if operation != "write":
            return "low"

        risk = "medium"
        if high_risk_verb(request_text) or (handler is not None and high_risk_verb(handler.action)):
            risk = max_risk(risk, "high")
        return risk


def coerce_handlers(handlers: Iterable[Any]) -> List[HandlerMetadata]:
    """Converts raw handler entries to models, dropping the ones that do not validate."""
    known: List[HandlerMetadata] = []
    for entry in handlers:
        if isinstance(entry, HandlerMetadata):
            known.append(entry)
            continue
        try:
            known.append(HandlerMetadata.model_validate(entry))
        except ValidationError as exc:
            logger.debug("Skipping malformed handler entry: %s", exc.errors()[:1])
    return known
