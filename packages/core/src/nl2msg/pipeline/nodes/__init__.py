from .detection.node import OperationTypeDetector
from .extraction.node import ParameterExtractionEngine
from .validator.node import ParameterValidator
from .encoding.node import EncodingStrategySelector
from .risk.node import RiskAssessmentEngine
from .simulation.node import TransactionSimulator


__all__ = [
    "OperationTypeDetector",
    "ParameterExtractionEngine",
    "ParameterValidator",
    "EncodingStrategySelector",
    "RiskAssessmentEngine",
    "TransactionSimulator",
]
