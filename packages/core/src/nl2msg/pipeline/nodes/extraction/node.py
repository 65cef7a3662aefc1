from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from nl2msg.common.logger import get_logger
from nl2msg.common.settings import settings
from nl2msg.protocol.models import HandlerMetadata
from nl2msg.pipeline.nodes.validator.coercion import CoercionError, coerce_value
from nl2msg.pipeline.nodes.validator.node import ParameterValidator, lookup_parameter

from .schemas import ExtractionResult, StrategyAttempt
from .strategies import (
    DEFAULT_STRATEGIES,
    EXPLICIT_STRATEGIES,
    find_ambiguous_phrasings,
    operand_parameters,
)

logger = get_logger("extraction")

Strategy = Callable[[str, HandlerMetadata], Dict[str, Any]]


def align_names(raw: Mapping[str, Any], handler: HandlerMetadata) -> Dict[str, Any]:
    """Renames keys to the handler's declared spelling; undeclared keys pass through."""
    aligned: Dict[str, Any] = {}
    for key, value in raw.items():
        spec = handler.get_parameter(key)
        aligned[spec.name if spec else key] = value
    return aligned


class ParameterExtractionEngine:
    """Pulls parameter values out of request text with ordered fallback strategies.

    Strategies run in order (direct assignment, JSON, domain operand phrasing,
    contextual patterns, single-parameter fallback) until one yields
    parameters that pass validation, bounded by ``max_attempts``.
    """

    def __init__(
        self,
        validator: Optional[ParameterValidator] = None,
        strategies: Sequence[Tuple[str, Strategy]] = DEFAULT_STRATEGIES,
        max_attempts: Optional[int] = None,
    ):
        self.validator = validator or ParameterValidator()
        self.strategies = tuple(strategies)
        self.max_attempts = settings.max_extraction_attempts if max_attempts is None else max_attempts

    def extract_with_retry(self, request_text: str, handler: HandlerMetadata) -> ExtractionResult:
        """Extracts parameters for ``handler`` from ``request_text``.

        The returned parameters are the first fully valid strategy result; if
        none validates, the first complete one (all required values present
        and typed) so the caller can report its validation errors; otherwise
        the most populated partial result.

        Args:
            request_text (str): The caller's instruction.
            handler (HandlerMetadata): The handler whose parameters are wanted.

        Returns:
            ExtractionResult: Parameters plus the attempt trail.
        """
        result = ExtractionResult()
        if not handler.parameters:
            result.complete = True
            result.valid = True
            return result

        result.ambiguous_phrasings = find_ambiguous_phrasings(request_text)
        # Ambiguous operands are only taken when named explicitly.
        guarded = bool(result.ambiguous_phrasings and operand_parameters(handler))
        first_complete: Optional[StrategyAttempt] = None
        best_partial: Optional[StrategyAttempt] = None

        for name, strategy in self.strategies[: self.max_attempts]:
            result.retry_attempts += 1
            result.strategies_used.append(name)
            if guarded and name not in EXPLICIT_STRATEGIES:
                attempt = StrategyAttempt(strategy=name, error="operand order is ambiguous; not bound")
            else:
                attempt = self._run_strategy(name, strategy, request_text, handler)
            result.attempts.append(attempt)

            if attempt.valid:
                result.parameters = attempt.parameters
                result.successful_strategy = name
                result.complete = True
                result.valid = True
                logger.debug(
                    "Extracted %s for %s with '%s' after %d attempt(s)",
                    sorted(attempt.parameters), handler.action, name, result.retry_attempts,
                )
                return result

            result.extraction_errors.append(f"{name}: {attempt.error}")
            if attempt.complete and first_complete is None:
                first_complete = attempt
            if attempt.parameters and (
                best_partial is None or len(attempt.parameters) > len(best_partial.parameters)
            ):
                best_partial = attempt

        if first_complete is not None:
            result.parameters = first_complete.parameters
            result.complete = True
        elif not handler.required_parameters:
            # Optional-only handlers are satisfied by nothing at all.
            empty = self.validator.validate(handler, best_partial.parameters if best_partial else {})
            result.parameters = empty.parameters if empty.valid else {}
            result.complete = True
            result.valid = True
        elif best_partial is not None:
            result.parameters = best_partial.parameters

        if result.ambiguous_phrasings:
            result.extraction_errors.append(
                "Ambiguous operand phrasing (" + ", ".join(result.ambiguous_phrasings)
                + "); name the parameters explicitly"
            )
        logger.debug(
            "Extraction for %s exhausted %d strategies: %s",
            handler.action, result.retry_attempts, result.extraction_errors,
        )
        return result

    def _run_strategy(
        self, name: str, strategy: Strategy, request_text: str, handler: HandlerMetadata
    ) -> StrategyAttempt:
        try:
            raw = strategy(request_text, handler)
        except Exception as exc:
            logger.warning("Extraction strategy '%s' raised: %s", name, exc)
            return StrategyAttempt(strategy=name, error=f"strategy raised {type(exc).__name__}: {exc}")

        if not raw:
            return StrategyAttempt(strategy=name, error="no parameter values found")

        values = align_names(raw, handler)
        missing, coercion_errors = self.completeness(handler, values)
        if missing or coercion_errors:
            problems = [f"missing {', '.join(missing)}"] if missing else []
            return StrategyAttempt(
                strategy=name,
                parameters=values,
                error="; ".join(problems + coercion_errors),
            )

        validation = self.validator.validate(handler, values)
        if not validation.valid:
            return StrategyAttempt(
                strategy=name,
                parameters=validation.parameters,
                complete=True,
                error="; ".join(validation.error_messages()),
            )
        return StrategyAttempt(
            strategy=name, parameters=validation.parameters, complete=True, valid=True
        )

    @staticmethod
    def completeness(handler: HandlerMetadata, values: Mapping[str, Any]) -> Tuple[List[str], List[str]]:
        """Returns ``(missing_required_names, coercion_errors)`` for ``values``."""
        missing: List[str] = []
        errors: List[str] = []
        for spec in handler.parameters:
            _, value = lookup_parameter(values, spec.name)
            if value is None:
                if spec.required:
                    missing.append(spec.name)
                continue
            try:
                coerce_value(value, spec.type)
            except CoercionError as exc:
                errors.append(f"{spec.name}: {exc}")
        return missing, errors
