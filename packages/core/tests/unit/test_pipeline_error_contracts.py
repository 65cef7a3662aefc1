import pytest

from nl2msg.common.errors import (
    DispatchCategory,
    ErrorCode,
    ErrorSeverity,
    PipelineError,
    classify_dispatch_error,
)


def test_pipeline_error_retryability_contract():
    # Validates retry logic because fatal errors must not trigger retries.
    # Arrange
    fatal = PipelineError(
        stage="handler_resolution",
        message="Handler 'Mint' not found",
        severity=ErrorSeverity.ERROR,
        error_code=ErrorCode.HANDLER_NOT_FOUND,
    )
    recoverable = PipelineError(
        stage="dispatch",
        message="connection reset",
        severity=ErrorSeverity.ERROR,
        error_code=ErrorCode.DISPATCH_FAILED,
    )
    critical = PipelineError(
        stage="compiler",
        message="boom",
        severity=ErrorSeverity.CRITICAL,
        error_code=ErrorCode.DISPATCH_FAILED,
    )

    # Act / Assert
    assert fatal.is_retryable is False
    assert recoverable.is_retryable is True
    assert critical.is_retryable is False


def test_safe_messages_hide_internal_details():
    # Arrange
    crash = PipelineError(
        stage="compiler",
        message="KeyError: 'handlers'",
        severity=ErrorSeverity.CRITICAL,
        error_code=ErrorCode.COMPILER_CRASH,
    )
    validation = PipelineError(
        stage="validator",
        message="B: Division by zero is not allowed",
        severity=ErrorSeverity.ERROR,
        error_code=ErrorCode.VALIDATION_FAILED,
    )

    # Act / Assert
    assert crash.get_safe_message() == "The request compiler encountered an unexpected error."
    assert validation.get_safe_message() == "B: Division by zero is not allowed"


@pytest.mark.parametrize(
    "exc, category",
    [
        (ConnectionError("refused"), DispatchCategory.NETWORK),
        (TimeoutError(), DispatchCategory.NETWORK),
        (RuntimeError("fetch failed"), DispatchCategory.NETWORK),
        (PermissionError("denied"), DispatchCategory.AUTHORIZATION),
        (RuntimeError("Invalid signature for wallet"), DispatchCategory.AUTHORIZATION),
        (RuntimeError("Insufficient balance"), DispatchCategory.TRANSACTION),
        (RuntimeError("something odd"), DispatchCategory.UNKNOWN),
    ],
)
def test_dispatch_error_classification(exc, category):
    assert classify_dispatch_error(exc) == category
