from __future__ import annotations

import traceback
import uuid
from typing import Any, Dict, List, Optional, Tuple

import pybreaker

from nl2msg.common.contracts import DispatchMessage, ExecutionRequest, ProcessTransport
from nl2msg.common.errors import (
    DispatchCategory,
    ErrorCode,
    ErrorSeverity,
    PipelineError,
    classify_dispatch_error,
)
from nl2msg.common.logger import get_logger, request_context
from nl2msg.common.resilience import call_with_breaker, create_breaker
from nl2msg.common.settings import settings
from nl2msg.protocol.discovery import ProtocolDiscoveryCache
from nl2msg.protocol.models import HandlerMetadata, ProtocolDocument
from nl2msg.protocol.parser import handler_not_found_message
from nl2msg.pipeline.legacy import DOCUMENTATION_REQUEST, LegacyCompiler
from nl2msg.pipeline.nodes.detection.matching import best_handler_match
from nl2msg.pipeline.nodes.detection.node import OperationTypeDetector
from nl2msg.pipeline.nodes.detection.schemas import OperationDetectionResult
from nl2msg.pipeline.nodes.encoding.node import EncodingStrategySelector, encode_message, fits_in_tags
from nl2msg.pipeline.nodes.extraction.guidance import generate_guidance
from nl2msg.pipeline.nodes.extraction.node import ParameterExtractionEngine, align_names
from nl2msg.pipeline.nodes.risk.node import RiskAssessmentEngine
from nl2msg.pipeline.nodes.simulation.node import TransactionSimulator
from nl2msg.pipeline.nodes.validator.node import ParameterValidator
from nl2msg.pipeline.response import normalize_response
from nl2msg.pipeline.schemas import Approach, CompileOptions, CompileResult

logger = get_logger("compiler")


def _failure(
    stage: str,
    error_code: ErrorCode,
    reason: str,
    severity: ErrorSeverity = ErrorSeverity.ERROR,
    details: Optional[Any] = None,
    errors: Optional[List[PipelineError]] = None,
    **fields: Any,
) -> CompileResult:
    error = PipelineError(
        stage=stage, message=reason, severity=severity, error_code=error_code, details=details
    )
    return CompileResult(
        success=False,
        error=error.get_safe_message(),
        error_code=error_code,
        errors=list(errors or []) + [error],
        **fields,
    )


class RequestCompiler:
    """Turns a natural-language request into a validated message and dispatches it.

    Stages: discovery (cached), operation detection, handler resolution,
    parameter extraction with retry, validation, risk assessment, the
    confirmation gate, encoding selection and dispatch. Every stage returns a
    structured result; only the transport may raise, and those exceptions are
    translated into a failed CompileResult.

    Args:
        transport (ProcessTransport): Read-only and write message transport.
        discovery_cache (Optional[ProtocolDiscoveryCache]): Shared discovery cache.
        breaker (Optional[pybreaker.CircuitBreaker]): Dispatch circuit breaker.
    """

    def __init__(
        self,
        transport: ProcessTransport,
        discovery_cache: Optional[ProtocolDiscoveryCache] = None,
        detector: Optional[OperationTypeDetector] = None,
        extractor: Optional[ParameterExtractionEngine] = None,
        validator: Optional[ParameterValidator] = None,
        encoder: Optional[EncodingStrategySelector] = None,
        risk_engine: Optional[RiskAssessmentEngine] = None,
        simulator: Optional[TransactionSimulator] = None,
        legacy: Optional[LegacyCompiler] = None,
        breaker: Optional[pybreaker.CircuitBreaker] = None,
    ):
        self.transport = transport
        self.discovery_cache = discovery_cache or ProtocolDiscoveryCache(transport)
        self.validator = validator or ParameterValidator()
        self.detector = detector or OperationTypeDetector()
        self.extractor = extractor or ParameterExtractionEngine(validator=self.validator)
        self.encoder = encoder or EncodingStrategySelector()
        self.risk_engine = risk_engine or RiskAssessmentEngine()
        self.simulator = simulator or TransactionSimulator(self.validator, self.risk_engine)
        self.legacy = legacy or LegacyCompiler()
        self.breaker = breaker or create_breaker(
            "dispatch",
            fail_max=settings.dispatch_breaker_fail_max,
            reset_timeout=settings.dispatch_breaker_reset_sec,
        )

    async def compile_and_execute(
        self,
        target_id: str,
        request_text: str,
        credential: Any,
        options: Optional[CompileOptions] = None,
    ) -> CompileResult:
        """Compiles ``request_text`` for ``target_id`` and dispatches it.

        Args:
            target_id (str): The remote process addressed.
            request_text (str): The caller's natural-language instruction.
            credential (Any): Signing credential passed through to write dispatch.
            options (Optional[CompileOptions]): Mode, overrides and gate controls.

        Returns:
            CompileResult: The outcome; never raises.
        """
        options = options or CompileOptions()
        with request_context(str(uuid.uuid4()), target_id):
            try:
                return await self._compile(target_id, request_text, credential, options)
            except Exception as exc:
                logger.exception("Compiler crashed for %s", target_id)
                error = PipelineError(
                    stage="compiler",
                    message=f"{type(exc).__name__}: {exc}",
                    severity=ErrorSeverity.CRITICAL,
                    error_code=ErrorCode.COMPILER_CRASH,
                    stack_trace=traceback.format_exc(),
                )
                return CompileResult(
                    success=False,
                    error=error.get_safe_message(),
                    error_code=error.error_code,
                    errors=[error],
                )

    def clear_discovery_cache(self) -> None:
        self.discovery_cache.clear_cache()

    def get_discovery_cache_stats(self) -> Dict[str, object]:
        return self.discovery_cache.get_cache_stats()

    async def _compile(
        self, target_id: str, request_text: str, credential: Any, options: CompileOptions
    ) -> CompileResult:
        if not isinstance(request_text, str) or not (request_text.strip() or options.handler):
            return _failure("input", ErrorCode.INVALID_REQUEST, "Request text must be a non-empty string")

        document = await self.discovery_cache.discover(target_id)
        if document is None:
            return await self._compile_legacy(target_id, request_text, credential, options)

        detection = self.detector.detect(request_text, document.handlers, options.mode)
        handler, failure = self._resolve_handler(document, request_text, detection, options)
        if failure is not None:
            return failure

        return await self._compile_for_handler(
            "protocol", target_id, request_text, credential, options, handler, detection, detection.confidence
        )

    def _resolve_handler(
        self,
        document: ProtocolDocument,
        request_text: str,
        detection: OperationDetectionResult,
        options: CompileOptions,
    ) -> Tuple[Optional[HandlerMetadata], Optional[CompileResult]]:
        suggestions = [f"{h.action}: {h.description}" if h.description else h.action for h in document.handlers]

        if options.handler:
            handler = document.get_handler(options.handler)
            if handler is None:
                return None, _failure(
                    "handler_resolution",
                    ErrorCode.HANDLER_NOT_FOUND,
                    handler_not_found_message(document.actions, options.handler),
                    suggested_operations=suggestions,
                    reasoning=list(detection.reasoning),
                )
            return handler, None

        if detection.matched_handler:
            return document.get_handler(detection.matched_handler), None

        match = best_handler_match(request_text, document.handlers, self.detector.handler_threshold)
        if match is not None:
            detection.reasoning.append(
                f"Selected handler '{match.handler.action}' (score {match.score:.2f})"
            )
            return match.handler, None

        return None, _failure(
            "detection",
            ErrorCode.DETECTION_AMBIGUOUS,
            f"Could not match the request to a handler of {document.name or 'the target process'}",
            details={"operation_type": detection.operation_type, "confidence": detection.confidence},
            confidence=detection.confidence,
            operation_type=detection.operation_type,
            suggested_operations=suggestions,
            reasoning=list(detection.reasoning),
        )

    async def _compile_legacy(
        self, target_id: str, request_text: str, credential: Any, options: CompileOptions
    ) -> CompileResult:
        notice = PipelineError(
            stage="discovery",
            message=f"{target_id} does not describe itself; using legacy handler resolution",
            severity=ErrorSeverity.INFO,
            error_code=ErrorCode.DISCOVERY_UNAVAILABLE,
        )
        resolution = self.legacy.resolve(request_text, options.process_markdown, options.handler)
        if not resolution.resolved:
            return _failure(
                "legacy",
                ErrorCode.HANDLER_NOT_FOUND,
                DOCUMENTATION_REQUEST,
                errors=[notice],
                approach="legacy",
                confidence=resolution.confidence,
                suggested_operations=resolution.suggested_operations,
            )

        detection = self.detector.detect(request_text, [resolution.handler], options.mode)
        detection.reasoning.append(
            f"Legacy {resolution.source} '{resolution.process_name}' matched "
            f"'{resolution.handler.action}' ({resolution.confidence:.2f})"
        )
        result = await self._compile_for_handler(
            "legacy",
            target_id,
            request_text,
            credential,
            options,
            resolution.handler,
            detection,
            resolution.confidence,
        )
        result.errors.insert(0, notice)
        result.suggested_operations = resolution.suggested_operations
        return result

    async def _compile_for_handler(
        self,
        approach: Approach,
        target_id: str,
        request_text: str,
        credential: Any,
        options: CompileOptions,
        handler: HandlerMetadata,
        detection: OperationDetectionResult,
        confidence: float,
    ) -> CompileResult:
        if detection.detection_method == "explicit" and detection.operation_type in ("read", "write"):
            is_write = detection.is_write
        else:
            is_write = handler.is_write
        common: Dict[str, Any] = {
            "approach": approach,
            "handler_used": handler.action,
            "confidence": confidence,
            "operation_type": "write" if is_write else "read",
            "reasoning": list(detection.reasoning),
        }

        extraction = self.extractor.extract_with_retry(request_text, handler)
        merged = {**extraction.parameters, **align_names(options.parameters, handler)}
        validation = self.validator.validate(handler, merged)
        if not validation.valid:
            missing, coercion_errors = self.extractor.completeness(handler, merged)
            details = {
                "suggested_fixes": validation.suggested_fixes,
                "strategies_used": list(extraction.strategies_used),
                "extraction_errors": list(extraction.extraction_errors),
            }
            guidance = generate_guidance(request_text, handler, extraction)
            if missing or coercion_errors:
                message = (
                    f"Could not extract parameters for {handler.action} after "
                    f"{extraction.retry_attempts} attempt(s) ({', '.join(extraction.strategies_used)}): "
                    + "; ".join(validation.error_messages())
                )
                return _failure(
                    "extraction", ErrorCode.EXTRACTION_FAILED, message,
                    details=details, guidance=guidance, parameters_used=merged, **common,
                )
            message = "Parameter validation failed: " + "; ".join(validation.error_messages())
            return _failure(
                "validator", ErrorCode.VALIDATION_FAILED, message,
                details=details, guidance=guidance, parameters_used=validation.parameters, **common,
            )

        request = ExecutionRequest(
            target_id=target_id,
            request_text=request_text,
            mode=options.mode,
            handler=handler.action,
            parameters=validation.parameters,
            batch_context=options.batch_context,
            require_confirmation=options.require_confirmation,
            validate_only=options.dry_run,
        )
        common["parameters_used"] = request.parameters

        if options.dry_run:
            simulation = self.simulator.simulate(request, handler, detection)
            if simulation.valid:
                return CompileResult(
                    success=True, simulation=simulation, risk_assessment=simulation.risk_assessment, **common
                )
            crashed = any(e.field == "simulation" for e in simulation.potential_errors)
            return _failure(
                "simulation",
                ErrorCode.SIMULATION_FAILED if crashed else ErrorCode.VALIDATION_FAILED,
                "Simulation found blocking errors: " + "; ".join(e.message for e in simulation.potential_errors),
                simulation=simulation,
                risk_assessment=simulation.risk_assessment,
                **common,
            )

        risk = self.risk_engine.assess(request, detection, handler)
        if risk.confirmation_required and not options.confirmed:
            prompt = self.risk_engine.build_confirmation_prompt(request, risk, handler, common["operation_type"])
            logger.info("Confirmation required for %s on %s (%s risk)", handler.action, target_id, risk.level)
            gate = PipelineError(
                stage="risk",
                message=prompt.title,
                severity=ErrorSeverity.INFO,
                error_code=ErrorCode.CONFIRMATION_REQUIRED,
            )
            return CompileResult(
                success=False,
                risk_assessment=risk,
                confirmation_required=True,
                confirmation=prompt,
                errors=[gate],
                **common,
            )

        if not is_write or approach == "legacy" or fits_in_tags(handler):
            strategy = "tags"
        else:
            strategy = self.encoder.select_strategy(target_id, handler)
        encoded = encode_message(handler, request.parameters, strategy)
        message = DispatchMessage(target_id=target_id, tags=encoded.tags, data=encoded.data, is_write=is_write)
        common.update(encoding=strategy, message=message, risk_assessment=risk)

        try:
            raw = await self._dispatch(message, credential)
        except pybreaker.CircuitBreakerError as exc:
            logger.warning("Dispatch to %s skipped (circuit breaker open)", target_id)
            return _failure(
                "dispatch",
                ErrorCode.SERVICE_UNAVAILABLE,
                f"Dispatch skipped (circuit breaker open): {exc}",
                error_category=DispatchCategory.UNAVAILABLE.value,
                **common,
            )
        except Exception as exc:
            category = classify_dispatch_error(exc)
            logger.error("Dispatch to %s failed (%s): %s", target_id, category.value, exc)
            return _failure(
                "dispatch",
                ErrorCode.DISPATCH_FAILED,
                str(exc) or type(exc).__name__,
                details={"exception": type(exc).__name__},
                error_category=category.value,
                **common,
            )

        logger.info("Dispatched %s to %s via %s encoding", handler.action, target_id, strategy)
        return CompileResult(success=True, data=normalize_response(raw), **common)

    async def _dispatch(self, message: DispatchMessage, credential: Any) -> Any:
        if message.is_write:
            return await call_with_breaker(
                self.breaker,
                self.transport.query_write,
                credential,
                message.target_id,
                message.tag_dicts(),
                message.data,
            )
        return await call_with_breaker(
            self.breaker, self.transport.query_read_only, message.target_id, message.tag_dicts()
        )
