from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class ValidationError(BaseModel):
    """
    One parameter validation finding.
    """
    field: str = Field(description="Parameter name the finding is about")
    message: str
    severity: Literal["warning", "error"] = "error"
    suggestion: Optional[str] = Field(None, description="Actionable fix naming the parameter")


class ValidationResult(BaseModel):
    """
    Aggregated outcome of validating one handler invocation.
    """
    valid: bool
    errors: List[ValidationError] = Field(default_factory=list)
    warnings: List[ValidationError] = Field(default_factory=list)
    suggested_fixes: List[str] = Field(default_factory=list)
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Parameters after type coercion"
    )

    def error_messages(self) -> List[str]:
        return [f"{e.field}: {e.message}" for e in self.errors]
