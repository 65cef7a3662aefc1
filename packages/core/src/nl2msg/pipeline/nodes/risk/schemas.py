from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from nl2msg.common.contracts import RiskLevel


class RiskAssessment(BaseModel):
    """
    Risk profile of a pending operation. Factors only ever raise the level.
    """
    level: RiskLevel = "low"
    factors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    consequences: List[str] = Field(default_factory=list)
    confirmation_required: bool = False


class ConfirmationOption(BaseModel):
    action: Literal["proceed", "simulate", "modify", "cancel"]
    label: str
    recommended: bool = False


class ResourceCost(BaseModel):
    estimate: int
    token_requirement: Optional[str] = None


class TransactionPreview(BaseModel):
    """
    What the caller is about to send and what it is expected to do.
    """
    target_id: str
    handler: Optional[str] = None
    operation: str
    parameters: Dict[str, Any] = Field(default_factory=dict)
    estimated_outcome: List[str] = Field(default_factory=list)
    potential_risks: List[str] = Field(default_factory=list)
    reversible: bool = True
    resource_cost: ResourceCost


class ConfirmationPrompt(BaseModel):
    """
    Human-facing gate returned instead of dispatching a risky operation.
    """
    title: str
    message: str
    risk_level: RiskLevel
    required: bool = True
    options: List[ConfirmationOption] = Field(default_factory=list)
    consequences: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    preview: TransactionPreview

    @property
    def recommended_action(self) -> Optional[str]:
        return next((option.action for option in self.options if option.recommended), None)
