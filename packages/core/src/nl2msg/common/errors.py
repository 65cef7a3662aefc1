from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, ConfigDict


class ErrorSeverity(str, Enum):
    """Severity levels for compiler errors."""
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCode(str, Enum):
    """Standardized error codes for the compiler pipeline."""
    INVALID_REQUEST = "INVALID_REQUEST"
    DISCOVERY_UNAVAILABLE = "DISCOVERY_UNAVAILABLE"
    DETECTION_AMBIGUOUS = "DETECTION_AMBIGUOUS"
    HANDLER_NOT_FOUND = "HANDLER_NOT_FOUND"
    EXTRACTION_FAILED = "EXTRACTION_FAILED"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    CONFIRMATION_REQUIRED = "CONFIRMATION_REQUIRED"
    SIMULATION_FAILED = "SIMULATION_FAILED"
    DISPATCH_FAILED = "DISPATCH_FAILED"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    COMPILER_CRASH = "COMPILER_CRASH"


class DispatchCategory(str, Enum):
    """Best guess at why the transport rejected a message."""
    NETWORK = "network"
    AUTHORIZATION = "authorization"
    TRANSACTION = "transaction"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


FATAL_ERRORS = {
    ErrorCode.INVALID_REQUEST,
    ErrorCode.HANDLER_NOT_FOUND,
    ErrorCode.CONFIRMATION_REQUIRED,
    ErrorCode.SERVICE_UNAVAILABLE,
}

SAFE_ERROR_MESSAGES = {
    ErrorCode.COMPILER_CRASH: "The request compiler encountered an unexpected error.",
    ErrorCode.SERVICE_UNAVAILABLE: "The target process is temporarily unreachable. Try again shortly.",
    ErrorCode.SIMULATION_FAILED: "The dry run could not be completed for this request.",
}

_CATEGORY_KEYWORDS = (
    (DispatchCategory.NETWORK, ("network", "timeout", "timed out", "connection", "fetch", "econn", "dns")),
    (DispatchCategory.AUTHORIZATION, ("unauthorized", "forbidden", "signature", "permission", "auth", "wallet")),
    (DispatchCategory.TRANSACTION, ("transaction", "insufficient", "balance", "rejected", "revert", "handler", "process error")),
)


def classify_dispatch_error(exc: BaseException) -> DispatchCategory:
    """Guesses a caller-facing category for a transport failure.

    Args:
        exc (BaseException): The exception raised by the transport.

    Returns:
        DispatchCategory: The first category whose keywords appear in the error.
    """
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return DispatchCategory.NETWORK
    if isinstance(exc, PermissionError):
        return DispatchCategory.AUTHORIZATION

    text = f"{type(exc).__name__} {exc}".lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return DispatchCategory.UNKNOWN


class PipelineError(BaseModel):
    """Represents a structured error raised by a compiler stage.

    Attributes:
        stage (str): The pipeline stage where the error occurred.
        message (str): A human-readable error message.
        severity (ErrorSeverity): The severity of the error.
        error_code (ErrorCode): The standardized error code.
        stack_trace (Optional[str]): Stack trace if applicable.
        details (Optional[Any]): Additional context or metadata.
    """
    model_config = ConfigDict(extra="ignore")

    stage: str
    message: str
    severity: ErrorSeverity
    error_code: ErrorCode
    stack_trace: Optional[str] = None
    details: Optional[Any] = None

    @property
    def is_retryable(self) -> bool:
        """Determines if the caller may resubmit the same request unchanged."""
        if self.severity == ErrorSeverity.CRITICAL:
            return False
        return self.error_code not in FATAL_ERRORS

    def get_safe_message(self) -> str:
        """Returns a sanitized error message safe for exposure to end users.

        If a safe mapping exists for the error code, it is returned.
        Otherwise, the original message is used.

        Returns:
            str: The sanitized error message.
        """
        return SAFE_ERROR_MESSAGES.get(self.error_code, self.message)
