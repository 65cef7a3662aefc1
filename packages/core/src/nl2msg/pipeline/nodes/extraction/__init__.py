from .node import ParameterExtractionEngine
from .guidance import generate_guidance
from .schemas import ExtractionResult, InteractiveGuidance, StrategyAttempt

__all__ = [
    "ParameterExtractionEngine",
    "generate_guidance",
    "ExtractionResult",
    "InteractiveGuidance",
    "StrategyAttempt",
]
