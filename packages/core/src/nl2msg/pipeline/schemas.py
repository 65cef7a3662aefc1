from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from nl2msg.common.contracts import BatchContext, DispatchMessage, OperationMode
from nl2msg.common.errors import ErrorCode, PipelineError
from nl2msg.pipeline.nodes.encoding.schemas import EncodingStrategy
from nl2msg.pipeline.nodes.extraction.schemas import InteractiveGuidance
from nl2msg.pipeline.nodes.risk.schemas import ConfirmationPrompt, RiskAssessment
from nl2msg.pipeline.nodes.simulation.schemas import SimulationResult

Approach = Literal["protocol", "legacy"]


class CompileOptions(BaseModel):
    """
    Per-call knobs for compile_and_execute.
    """
    mode: OperationMode = Field("auto", description="auto, read, write or validate")
    handler: Optional[str] = Field(None, description="Explicit handler action, bypassing matching")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Explicit values merged over extracted ones"
    )
    require_confirmation: bool = False
    confirmed: bool = Field(False, description="The caller already accepted the confirmation prompt")
    validate_only: bool = Field(False, description="Simulate and return without dispatching")
    batch_context: Optional[BatchContext] = None
    process_markdown: Optional[str] = Field(
        None, description="Process documentation used when the target does not describe itself"
    )

    model_config = ConfigDict(extra="forbid")

    @property
    def dry_run(self) -> bool:
        return self.validate_only or self.mode == "validate"


class CompileResult(BaseModel):
    """
    Everything the caller learns from one compile_and_execute call.
    """
    success: bool
    approach: Approach = "protocol"
    handler_used: Optional[str] = None
    parameters_used: Dict[str, Any] = Field(default_factory=dict)
    confidence: Optional[float] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    error_category: Optional[str] = Field(None, description="network, authorization, transaction, unavailable or unknown")
    operation_type: Optional[str] = None
    data: Any = None
    message: Optional[DispatchMessage] = Field(None, description="The message handed to the transport")
    encoding: Optional[EncodingStrategy] = None
    risk_assessment: Optional[RiskAssessment] = None
    confirmation_required: bool = False
    confirmation: Optional[ConfirmationPrompt] = None
    simulation: Optional[SimulationResult] = None
    guidance: Optional[InteractiveGuidance] = None
    suggested_operations: List[str] = Field(default_factory=list)
    reasoning: List[str] = Field(default_factory=list)
    errors: List[PipelineError] = Field(default_factory=list)
