from __future__ import annotations

from typing import List, Optional

from nl2msg.common.contracts import ExecutionRequest, max_risk
from nl2msg.common.logger import get_logger
from nl2msg.common.settings import settings
from nl2msg.protocol.models import HandlerMetadata
from nl2msg.pipeline.nodes.detection.schemas import OperationDetectionResult

from .rules import (
    ADMIN_ACTIONS,
    ADMIN_PARAMETERS,
    BATCH_CONSEQUENCES,
    CONSEQUENCES,
    IRREVERSIBLE_ACTIONS,
    LARGE_AMOUNT,
    OUTCOMES,
    PERMANENCE_FLAGS,
    RECIPIENT_PARAMETERS,
    VALUE_TRANSFER_ACTIONS,
    VERY_LARGE_AMOUNT,
    action_category,
    amount_value,
    estimate_cost,
    has_fragment,
    is_truthy_flag,
    named_parameter,
)
from .schemas import ConfirmationOption, ConfirmationPrompt, ResourceCost, RiskAssessment, TransactionPreview

logger = get_logger("risk")

_TITLES = {
    "high": "High Risk Operation: {handler}",
    "medium": "Confirm Operation: {handler}",
    "low": "Confirm: {handler}",
}
_MESSAGES = {
    "high": (
        "This is a high-risk operation that may have significant consequences. "
        "Please review the details carefully before proceeding."
    ),
    "medium": "Please review the operation details and confirm you want to proceed.",
    "low": "Choose proceed to continue.",
}


def confirmation_options(level: str) -> List[ConfirmationOption]:
    """Options for a prompt at ``level``; exactly one is recommended."""
    if level == "high":
        return [
            ConfirmationOption(action="simulate", label="Simulate first (recommended)", recommended=True),
            ConfirmationOption(action="proceed", label="Proceed with transaction"),
            ConfirmationOption(action="cancel", label="Cancel transaction"),
            ConfirmationOption(action="modify", label="Modify parameters"),
        ]
    if level == "medium":
        return [
            ConfirmationOption(action="proceed", label="Proceed with transaction"),
            ConfirmationOption(action="cancel", label="Cancel transaction", recommended=True),
            ConfirmationOption(action="simulate", label="Simulate first"),
        ]
    return [
        ConfirmationOption(action="proceed", label="Proceed with transaction", recommended=True),
        ConfirmationOption(action="cancel", label="Cancel transaction"),
    ]


class RiskAssessmentEngine:
    """Scores how risky a pending operation is and builds the confirmation gate.

    Attributes:
        high_value_threshold (float): Amounts above this always require confirmation.
    """

    def __init__(self, high_value_threshold: Optional[float] = None):
        self.high_value_threshold = (
            settings.high_value_threshold if high_value_threshold is None else high_value_threshold
        )

    def assess(
        self,
        request: ExecutionRequest,
        detection: OperationDetectionResult,
        handler: Optional[HandlerMetadata] = None,
    ) -> RiskAssessment:
        """Accumulates risk factors for ``request``.

        The level starts at the detection's risk and is only ever raised by
        later factors.

        Args:
            request (ExecutionRequest): The request with its resolved parameters.
            detection (OperationDetectionResult): Output of operation detection.
            handler (Optional[HandlerMetadata]): The handler that will be invoked.

        Returns:
            RiskAssessment: Level, factors, warnings, consequences and the gate decision.
        """
        assessment = RiskAssessment(level=detection.risk_level)
        action = handler.action if handler is not None else request.handler
        parameters = request.parameters

        def raise_to(level: str, factor: str, warning: Optional[str] = None) -> None:
            assessment.level = max_risk(assessment.level, level)
            assessment.factors.append(factor)
            if warning and warning not in assessment.warnings:
                assessment.warnings.append(warning)

        is_write = detection.is_write or (handler is not None and handler.is_write)
        if is_write:
            raise_to("medium", "State-modifying operation")

        if has_fragment(action, IRREVERSIBLE_ACTIONS):
            raise_to("high", "Irreversible operation", f"{action} cannot be undone")
        if has_fragment(action, ADMIN_ACTIONS):
            raise_to("high", "Administrative operation", "This affects system permissions or ownership")
        if has_fragment(action, VALUE_TRANSFER_ACTIONS):
            raise_to("medium", "Value transfer operation")

        for key in parameters:
            if key.lower() in ADMIN_PARAMETERS:
                raise_to("medium", f"Administrative parameter '{key}'", "This affects system permissions or roles")

        amount = amount_value(parameters)
        if amount is not None and amount > VERY_LARGE_AMOUNT:
            raise_to("high", "Very large transaction amount", "This involves a significant amount of tokens")
        elif amount is not None and amount > LARGE_AMOUNT:
            raise_to("medium", "Large transaction amount", "Please verify the amount is correct")

        for key, value in parameters.items():
            if key.lower() in PERMANENCE_FLAGS and is_truthy_flag(value):
                raise_to("high", "Permanent action requested", "This action cannot be reversed")

        if request.batch_context is not None:
            raise_to(
                "medium",
                "Part of batch operation with cascading effects",
                "Failure may affect subsequent operations in batch",
            )

        assessment.consequences = self.consequences(request, action)
        high_value = amount is not None and amount > self.high_value_threshold
        assessment.confirmation_required = (
            assessment.level == "high" or request.require_confirmation or high_value
        )
        logger.debug(
            "Risk for %s on %s: %s (confirmation %s)",
            action, request.target_id, assessment.level, assessment.confirmation_required,
        )
        return assessment

    @staticmethod
    def consequences(request: ExecutionRequest, action: Optional[str]) -> List[str]:
        found = list(CONSEQUENCES.get(action_category(action), ()))
        if request.batch_context is not None:
            found.extend(BATCH_CONSEQUENCES)
        return found

    def build_confirmation_prompt(
        self,
        request: ExecutionRequest,
        assessment: RiskAssessment,
        handler: Optional[HandlerMetadata] = None,
        operation_type: str = "write",
    ) -> ConfirmationPrompt:
        """Builds the human-facing prompt returned instead of dispatching."""
        action = handler.action if handler is not None else (request.handler or "operation")
        preview = self.build_preview(request, action, operation_type)
        message = (
            f"You are about to execute a {operation_type} operation on process {request.target_id}. "
            + _MESSAGES[assessment.level]
        )
        return ConfirmationPrompt(
            title=_TITLES[assessment.level].format(handler=action),
            message=message,
            risk_level=assessment.level,
            required=assessment.confirmation_required,
            options=confirmation_options(assessment.level),
            consequences=list(assessment.consequences),
            warnings=list(assessment.warnings),
            preview=preview,
        )

    @staticmethod
    def build_preview(request: ExecutionRequest, action: Optional[str], operation_type: str) -> TransactionPreview:
        outcome, risks = OUTCOMES.get(action_category(action), ((), ()))
        estimated = list(outcome)
        _, amount = named_parameter(request.parameters, ("amount", "quantity"))
        if amount is not None:
            estimated.append(f"Amount processed: {amount}")
        _, recipient = named_parameter(request.parameters, RECIPIENT_PARAMETERS)
        if recipient is not None:
            estimated.append(f"Target account: {recipient}")

        _, token_requirement = named_parameter(request.parameters, ("amount", "quantity", "value"))
        return TransactionPreview(
            target_id=request.target_id,
            handler=action,
            operation=f"{operation_type.upper()} operation",
            parameters=dict(request.parameters),
            estimated_outcome=estimated,
            potential_risks=list(risks),
            reversible=not has_fragment(action, IRREVERSIBLE_ACTIONS),
            resource_cost=ResourceCost(
                estimate=estimate_cost(
                    operation_type == "write", len(request.parameters), request.batch_context is not None
                ),
                token_requirement=None if token_requirement is None else str(token_requirement),
            ),
        )
