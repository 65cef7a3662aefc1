from __future__ import annotations

from typing import Any, Dict, List, Optional

from nl2msg.common.contracts import ExecutionRequest
from nl2msg.common.logger import get_logger
from nl2msg.protocol.models import HandlerMetadata
from nl2msg.pipeline.nodes.detection.node import OperationTypeDetector
from nl2msg.pipeline.nodes.detection.schemas import OperationDetectionResult
from nl2msg.pipeline.nodes.risk.node import RiskAssessmentEngine
from nl2msg.pipeline.nodes.risk.rules import (
    AMOUNT_PARAMETERS,
    RECIPIENT_PARAMETERS,
    action_category,
    as_number,
    estimate_cost,
    named_parameter,
)
from nl2msg.pipeline.nodes.risk.schemas import RiskAssessment
from nl2msg.pipeline.nodes.validator.node import ParameterValidator
from nl2msg.pipeline.nodes.validator.schemas import ValidationError

from .schemas import DryRunReport, ResourceRequirements, SimulationResult

logger = get_logger("simulation")

EXPECTED_RESPONSES: Dict[str, Dict[str, Any]] = {
    "balance_query": {"type": "balance_query", "fields": ["balance", "account", "ticker"]},
    "transfer": {
        "type": "transfer_confirmation",
        "fields": ["transactionId", "from", "to", "amount"],
        "state_changes": {"sender_balance": "decreased", "recipient_balance": "increased"},
    },
    "mint": {
        "type": "mint_confirmation",
        "fields": ["transactionId", "recipient", "amount"],
        "state_changes": {"recipient_balance": "increased", "total_supply": "increased"},
    },
    "burn": {
        "type": "burn_confirmation",
        "fields": ["transactionId", "amount"],
        "state_changes": {"sender_balance": "decreased", "total_supply": "decreased"},
    },
    "delete": {"type": "delete_confirmation", "fields": ["transactionId"], "state_changes": {"data": "removed"}},
    "info": {"type": "info_response", "fields": ["name", "ticker", "totalSupply", "owner"]},
}
EXPENSIVE_COST = 500
LARGE_PARAMETER_SET = 10
LARGE_BATCH = 5


class TransactionSimulator:
    """Side-effect-free dry run of a compiled request.

    Runs validation and risk assessment, estimates resource cost and
    describes the expected outcome. Never dispatches and never raises; a
    simulation that cannot complete reports ``valid=False`` with a high-risk
    assessment.
    """

    def __init__(
        self,
        validator: Optional[ParameterValidator] = None,
        risk_engine: Optional[RiskAssessmentEngine] = None,
    ):
        self.validator = validator or ParameterValidator()
        self.risk_engine = risk_engine or RiskAssessmentEngine()

    def simulate(
        self,
        request: ExecutionRequest,
        handler: Optional[HandlerMetadata] = None,
        detection: Optional[OperationDetectionResult] = None,
    ) -> SimulationResult:
        """Simulates ``request`` against ``handler``.

        Args:
            request (ExecutionRequest): Request carrying resolved parameters.
            handler (Optional[HandlerMetadata]): Handler to validate against.
            detection (Optional[OperationDetectionResult]): Detection output; derived
                from the handler and mode when omitted.

        Returns:
            SimulationResult: Findings, cost estimate, outcome and risk.
        """
        try:
            return self._simulate(request, handler, detection)
        except Exception as exc:
            logger.error("Simulation of %s failed: %s", request.target_id, exc)
            return SimulationResult(
                valid=False,
                potential_errors=[ValidationError(
                    field="simulation",
                    message=f"Simulation failed: {exc}",
                    suggestion="Check request parameters and try again",
                )],
                risk_assessment=RiskAssessment(
                    level="high",
                    factors=["Simulation failure indicates potential issues"],
                    warnings=["Transaction simulation could not be completed"],
                    confirmation_required=True,
                ),
            )

    def _simulate(
        self,
        request: ExecutionRequest,
        handler: Optional[HandlerMetadata],
        detection: Optional[OperationDetectionResult],
    ) -> SimulationResult:
        if detection is None:
            detection = self.derive_detection(request, handler)
        is_write = detection.is_write or (handler is not None and handler.is_write)

        findings: List[ValidationError] = []
        parameters = dict(request.parameters)
        if handler is not None:
            validation = self.validator.validate(handler, request.parameters)
            findings.extend(validation.errors)
            findings.extend(validation.warnings)
            parameters = validation.parameters or parameters
        findings.extend(self.execution_checks(parameters, handler, is_write))

        resolved = request.model_copy(update={"parameters": parameters})
        assessment = self.risk_engine.assess(resolved, detection, handler)
        errors = [f for f in findings if f.severity == "error"]
        warnings = [f for f in findings if f.severity == "warning"]

        _, token_requirement = named_parameter(parameters, ("amount", "quantity"))
        result = SimulationResult(
            valid=not errors,
            potential_errors=errors,
            warnings=warnings,
            resource_requirements=ResourceRequirements(
                estimated_cost=estimate_cost(is_write, len(parameters), request.batch_context is not None),
                permissions=["Valid wallet signature", "Write access to process"] if is_write
                else ["Valid wallet signature"],
                token_requirement="0" if token_requirement is None else str(token_requirement),
            ),
            estimated_outcome=self.estimated_outcome(request, handler, parameters, is_write),
            risk_assessment=assessment,
        )
        logger.debug(
            "Simulated %s on %s: valid=%s risk=%s",
            handler.action if handler else request.handler, request.target_id, result.valid, assessment.level,
        )
        return result

    def dry_run(self, request: ExecutionRequest, handler: Optional[HandlerMetadata] = None) -> DryRunReport:
        """Summarizes a simulation as can-proceed, cost, recommendations and warnings."""
        simulation = self.simulate(request, handler)
        recommendations = [e.suggestion or f"Fix error: {e.message}" for e in simulation.potential_errors]

        cost = simulation.resource_requirements.estimated_cost
        if cost > EXPENSIVE_COST:
            recommendations.append("Consider batching multiple operations to reduce cost")
        if len(request.parameters) > LARGE_PARAMETER_SET:
            recommendations.append("Consider simplifying the parameter set")
        if simulation.risk_assessment.level == "high":
            recommendations.append("Consider using simulation mode first to validate the transaction")
        if request.batch_context is not None and request.batch_context.total_operations > LARGE_BATCH:
            recommendations.append("Large batch operations may benefit from chunking into smaller batches")

        return DryRunReport(
            can_proceed=simulation.valid,
            estimated_cost=cost,
            recommendations=recommendations,
            warnings=[w.message for w in simulation.warnings] + simulation.risk_assessment.warnings,
        )

    @staticmethod
    def derive_detection(
        request: ExecutionRequest, handler: Optional[HandlerMetadata]
    ) -> OperationDetectionResult:
        if handler is not None:
            operation = "write" if handler.is_write else "read"
        else:
            operation = request.mode if request.mode in ("read", "write") else "read"
        return OperationDetectionResult(
            operation_type=operation,
            confidence=1.0,
            detection_method="explicit",
            risk_level=OperationTypeDetector.risk_for(operation, request.request_text, handler),
            reasoning=["Derived from handler metadata for simulation"],
        )

    @staticmethod
    def execution_checks(
        parameters: Dict[str, Any], handler: Optional[HandlerMetadata], is_write: bool
    ) -> List[ValidationError]:
        """Problems the remote process would reject at execution time."""
        if not is_write:
            return []
        findings: List[ValidationError] = []
        for key, value in parameters.items():
            if key.lower() not in AMOUNT_PARAMETERS:
                continue
            number = as_number(value)
            if number is not None and number <= 0:
                findings.append(ValidationError(
                    field=key,
                    message=f"{key} must be greater than zero",
                    suggestion=f"Specify a positive {key}",
                ))

        if handler is not None and action_category(handler.action) == "transfer":
            recipient, _ = named_parameter(parameters, RECIPIENT_PARAMETERS)
            if recipient is None:
                findings.append(ValidationError(
                    field="recipient",
                    message="Transfer operations require a recipient",
                    suggestion="Specify the recipient address",
                ))
        return findings

    @staticmethod
    def estimated_outcome(
        request: ExecutionRequest,
        handler: Optional[HandlerMetadata],
        parameters: Dict[str, Any],
        is_write: bool,
    ) -> Dict[str, Any]:
        category = action_category(handler.action if handler else request.handler)
        outcome: Dict[str, Any] = {
            "target_id": request.target_id,
            "handler": handler.action if handler else request.handler,
            "operation_type": "write" if is_write else "read",
            "category": category,
        }
        expected = EXPECTED_RESPONSES.get(category)
        if expected:
            outcome["expected_response"] = {"type": expected["type"], "fields": list(expected["fields"])}
            if "state_changes" in expected:
                outcome["state_changes"] = dict(expected["state_changes"])

        _, amount = named_parameter(parameters, ("amount", "quantity"))
        if amount is not None:
            outcome["amount_processed"] = amount
        _, target = named_parameter(parameters, RECIPIENT_PARAMETERS)
        if target is not None:
            outcome["target_account"] = target
        return outcome
