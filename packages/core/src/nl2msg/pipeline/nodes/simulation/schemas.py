from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from nl2msg.pipeline.nodes.risk.schemas import RiskAssessment
from nl2msg.pipeline.nodes.validator.schemas import ValidationError


class ResourceRequirements(BaseModel):
    estimated_cost: int = 0
    permissions: List[str] = Field(default_factory=list)
    token_requirement: Optional[str] = None


class SimulationResult(BaseModel):
    """
    Outcome of a side-effect-free dry run. Warnings never make it invalid.
    """
    valid: bool
    potential_errors: List[ValidationError] = Field(default_factory=list)
    warnings: List[ValidationError] = Field(default_factory=list)
    resource_requirements: ResourceRequirements = Field(default_factory=ResourceRequirements)
    estimated_outcome: Dict[str, Any] = Field(default_factory=dict)
    risk_assessment: RiskAssessment = Field(default_factory=RiskAssessment)


class DryRunReport(BaseModel):
    """
    Condensed go/no-go summary of a simulation.
    """
    can_proceed: bool
    estimated_cost: int
    recommendations: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
