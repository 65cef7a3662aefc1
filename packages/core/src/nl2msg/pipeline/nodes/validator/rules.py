"""Operation-specific ("contract") checks layered over type validation.

Each rule decides whether it applies to a handler and returns findings for
the coerced parameters. Rules never raise for bad input; they report.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from nl2msg.protocol.models import HandlerMetadata, ParameterSpec
from .schemas import ValidationError

DIVIDE_ACTIONS: Tuple[str, ...] = ("divide", "division", "div")
DIVISOR_NAMES: Tuple[str, ...] = ("b", "divisor", "denominator", "y")
ADDRESS_NAMES: Tuple[str, ...] = ("target", "recipient", "address", "account", "to", "from")
SHORT_ADDRESS_LENGTH = 10


@dataclass(frozen=True)
class ContractRule:
    name: str
    applies: Callable[[HandlerMetadata], bool]
    check: Callable[[HandlerMetadata, Dict[str, Any]], List[ValidationError]]


def _is_divide(handler: HandlerMetadata) -> bool:
    action = handler.action.lower()
    return any(fragment in action for fragment in DIVIDE_ACTIONS)


def divisor_parameter(handler: HandlerMetadata) -> Optional[ParameterSpec]:
    """The divisor of a divide-like handler: a conventionally named parameter, else the second number."""
    for spec in handler.parameters:
        if spec.name.lower() in DIVISOR_NAMES:
            return spec
    numeric = [spec for spec in handler.parameters if spec.type == "number"]
    return numeric[1] if len(numeric) > 1 else None


def _check_division(handler: HandlerMetadata, parameters: Dict[str, Any]) -> List[ValidationError]:
    spec = divisor_parameter(handler)
    if spec is None or spec.name not in parameters:
        return []
    value = parameters[spec.name]
    try:
        is_zero = float(value) == 0
    except (TypeError, ValueError):
        return []
    if not is_zero:
        return []
    return [ValidationError(
        field=spec.name,
        message="Division by zero is not allowed",
        severity="error",
        suggestion=f"Ensure the divisor ({spec.name} parameter) is not zero",
    )]


def _is_address_like(spec: ParameterSpec) -> bool:
    return spec.type == "address" or spec.name.lower() in ADDRESS_NAMES


def _check_short_addresses(handler: HandlerMetadata, parameters: Dict[str, Any]) -> List[ValidationError]:
    findings = []
    for spec in handler.parameters:
        if not _is_address_like(spec) or spec.name not in parameters:
            continue
        value = str(parameters[spec.name])
        if 0 < len(value) < SHORT_ADDRESS_LENGTH:
            findings.append(ValidationError(
                field=spec.name,
                message=f"Address '{value}' is unusually short ({len(value)} characters)",
                severity="warning",
                suggestion=f"Double-check the {spec.name} address before sending",
            ))
    return findings


CONTRACT_RULES: Tuple[ContractRule, ...] = (
    ContractRule("division-by-zero", _is_divide, _check_division),
    ContractRule("short-address", lambda handler: any(map(_is_address_like, handler.parameters)), _check_short_addresses),
)
