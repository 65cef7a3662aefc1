from .node import OperationTypeDetector
from .schemas import OperationDetectionResult

__all__ = ["OperationTypeDetector", "OperationDetectionResult"]
