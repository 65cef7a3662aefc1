from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class StrategyAttempt(BaseModel):
    """
    What one extraction strategy produced.
    """
    strategy: str = Field(description="direct, json, domain, contextual, single or a custom name")
    parameters: Dict[str, Any] = Field(default_factory=dict)
    complete: bool = Field(False, description="Every required parameter was populated and coerced")
    valid: bool = Field(False, description="The parameters passed full validation")
    error: Optional[str] = None


class ExtractionResult(BaseModel):
    """
    Outcome of extract_with_retry. Always reports the attempt trail, even on failure.
    """
    parameters: Dict[str, Any] = Field(default_factory=dict)
    retry_attempts: int = Field(0, description="Number of strategies tried")
    strategies_used: List[str] = Field(default_factory=list)
    extraction_errors: List[str] = Field(default_factory=list)
    successful_strategy: Optional[str] = None
    complete: bool = Field(False, description="Required parameters are all present and typed")
    valid: bool = Field(False, description="The returned parameters passed full validation")
    ambiguous_phrasings: List[str] = Field(
        default_factory=list, description="Operand phrasings recognised but deliberately not bound"
    )
    attempts: List[StrategyAttempt] = Field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.valid


class InteractiveGuidance(BaseModel):
    """
    Caller-facing help for rephrasing a request that could not be compiled.
    """
    primary_suggestion: str
    alternatives: List[str] = Field(default_factory=list)
    troubleshooting: List[str] = Field(default_factory=list)
    examples: List[str] = Field(default_factory=list)
