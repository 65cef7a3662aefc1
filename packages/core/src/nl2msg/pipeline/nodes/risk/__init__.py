from .node import RiskAssessmentEngine
from .schemas import ConfirmationOption, ConfirmationPrompt, RiskAssessment, TransactionPreview

__all__ = [
    "RiskAssessmentEngine",
    "ConfirmationOption",
    "ConfirmationPrompt",
    "RiskAssessment",
    "TransactionPreview",
]
