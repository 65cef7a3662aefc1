from .node import ParameterValidator
from .schemas import ValidationError, ValidationResult

__all__ = ["ParameterValidator", "ValidationError", "ValidationResult"]
