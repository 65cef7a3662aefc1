from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from nl2msg.common.contracts import OperationType, RiskLevel

DetectionMethod = Literal["explicit", "protocol", "nlp", "pattern", "fallback"]


class OperationDetectionResult(BaseModel):
    """
    Outcome of operation-type detection for one request.
    """
    operation_type: OperationType = Field(description="read, write, validate or unknown")
    confidence: float = Field(ge=0.0, le=1.0, description="How sure the winning layer is")
    detection_method: DetectionMethod = Field(description="The layer that decided")
    risk_level: RiskLevel = Field("low", description="Risk implied by the detected operation")
    reasoning: List[str] = Field(default_factory=list, description="Why each layer did or did not decide")
    suggested_parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Parameter sketch from a protocol match"
    )
    matched_handler: Optional[str] = Field(None, description="Action of the matched handler, if any")

    model_config = ConfigDict(extra="forbid")

    @property
    def is_write(self) -> bool:
        return self.operation_type == "write"
