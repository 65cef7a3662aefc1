from __future__ import annotations

import math
import re
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from nl2msg.common.logger import get_logger
from nl2msg.protocol.models import HandlerMetadata, ParameterSpec

from .coercion import CoercionError, coerce_value
from .rules import CONTRACT_RULES, ContractRule
from .schemas import ValidationError, ValidationResult

logger = get_logger("validator")

ADDRESS_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def lookup_parameter(parameters: Mapping[str, Any], name: str) -> Tuple[Optional[str], Any]:
    """Finds ``name`` in ``parameters`` exactly, then case-insensitively."""
    if name in parameters:
        return name, parameters[name]
    lowered = name.lower()
    for key, value in parameters.items():
        if key.lower() == lowered:
            return key, value
    return None, None


class ParameterValidator:
    """Type-checks, range-checks and contract-checks handler parameters.

    Checks run in order: presence, type coercion, declared format rules,
    numeric bounds, then contract rules. Validation never raises; every
    finding is reported in the returned ValidationResult.

    Attributes:
        address_max_length (int): Default upper length bound for addresses.
        max_magnitude (float): Largest absolute number accepted on the wire.
        precision_warning_threshold (float): Magnitude above which a warning is added.
        max_string_length (int): Longest string value accepted.
    """

    def __init__(
        self,
        contract_rules: Sequence[ContractRule] = CONTRACT_RULES,
        address_max_length: int = 43,
        max_magnitude: float = 1e15,
        precision_warning_threshold: float = 1e11,
        max_string_length: int = 10000,
    ):
        self.contract_rules = tuple(contract_rules)
        self.address_max_length = address_max_length
        self.max_magnitude = max_magnitude
        self.precision_warning_threshold = precision_warning_threshold
        self.max_string_length = max_string_length

    def validate(self, handler: HandlerMetadata, parameters: Mapping[str, Any]) -> ValidationResult:
        """Validates ``parameters`` against ``handler``'s declaration.

        Args:
            handler (HandlerMetadata): The handler being invoked.
            parameters (Mapping[str, Any]): Extracted or caller-supplied values.

        Returns:
            ValidationResult: Findings plus the coerced parameter values.
        """
        try:
            return self._validate(handler, parameters)
        except Exception as exc:
            logger.error("Validation of %s crashed: %s", getattr(handler, "action", "?"), exc)
            crash = ValidationError(
                field="*",
                message=f"Validation could not be completed: {exc}",
                severity="error",
                suggestion="Check the handler declaration and parameter values",
            )
            return ValidationResult(valid=False, errors=[crash], suggested_fixes=[crash.suggestion])

    def _validate(self, handler: HandlerMetadata, parameters: Mapping[str, Any]) -> ValidationResult:
        errors: List[ValidationError] = []
        warnings: List[ValidationError] = []
        coerced: Dict[str, Any] = {}
        consumed = set()

        for spec in handler.parameters:
            key, value = lookup_parameter(parameters, spec.name)
            if key is not None:
                consumed.add(key)

            if value is None:
                if spec.required:
                    errors.append(ValidationError(
                        field=spec.name,
                        message=f"Required parameter '{spec.name}' is missing",
                        suggestion=f"Provide {spec.name}, e.g. {spec.name}={example_value(spec)}",
                    ))
                continue

            try:
                value = coerce_value(value, spec.type)
            except CoercionError as exc:
                errors.append(ValidationError(
                    field=spec.name,
                    message=f"Cannot convert {spec.name} to {spec.type}: {exc}",
                    suggestion=f"Provide {spec.name} as a {spec.type}, e.g. {spec.name}={example_value(spec)}",
                ))
                continue

            coerced[spec.name] = value
            findings = self.check_value(spec, value)
            errors.extend(f for f in findings if f.severity == "error")
            warnings.extend(f for f in findings if f.severity == "warning")

        for key, value in parameters.items():
            if key in consumed:
                continue
            coerced[key] = value
            declared = ", ".join(p.name for p in handler.parameters) or "none"
            warnings.append(ValidationError(
                field=key,
                message=f"Unexpected parameter '{key}' is not declared by {handler.action}",
                severity="warning",
                suggestion=f"Remove {key} or use one of the declared parameters: {declared}",
            ))

        for rule in self.contract_rules:
            if not rule.applies(handler):
                continue
            for finding in rule.check(handler, coerced):
                (errors if finding.severity == "error" else warnings).append(finding)

        suggested_fixes = [f.suggestion for f in errors if f.suggestion]
        logger.debug(
            "Validated %s: %d errors, %d warnings", handler.action, len(errors), len(warnings)
        )
        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            suggested_fixes=suggested_fixes,
            parameters=coerced,
        )

    def check_value(self, spec: ParameterSpec, value: Any) -> List[ValidationError]:
        """Format and bounds findings for one already-coerced value."""
        findings: List[ValidationError] = []
        rules = spec.validation

        if spec.type == "number":
            findings.extend(self._check_number(spec, value))
        elif spec.type in ("string", "address"):
            findings.extend(self._check_text(spec, str(value)))

        if rules is None:
            return findings

        if rules.pattern:
            try:
                if re.search(rules.pattern, str(value)) is None:
                    findings.append(ValidationError(
                        field=spec.name,
                        message=f"{spec.name} '{value}' does not match pattern {rules.pattern}",
                        suggestion=f"Reformat {spec.name} to match {rules.pattern}",
                    ))
            except re.error:
                findings.append(ValidationError(
                    field=spec.name,
                    message=f"Declared pattern for {spec.name} is not a valid regex; skipped",
                    severity="warning",
                ))

        measured = value if spec.type == "number" else len(str(value))
        unit = "" if spec.type == "number" else " characters"
        if rules.min is not None and isinstance(measured, (int, float)) and measured < rules.min:
            findings.append(ValidationError(
                field=spec.name,
                message=f"{spec.name} must be at least {rules.min:g}{unit}",
                suggestion=f"Increase {spec.name} to {rules.min:g}{unit} or more",
            ))
        if rules.max is not None and isinstance(measured, (int, float)) and measured > rules.max:
            findings.append(ValidationError(
                field=spec.name,
                message=f"{spec.name} must be at most {rules.max:g}{unit}",
                suggestion=f"Reduce {spec.name} to {rules.max:g}{unit} or less",
            ))

        if rules.enum:
            allowed = [str(option) for option in rules.enum]
            if value not in rules.enum and str(value) not in allowed:
                findings.append(ValidationError(
                    field=spec.name,
                    message=f"{spec.name} must be one of: {', '.join(allowed)}",
                    suggestion=f"Set {spec.name} to one of: {', '.join(allowed)}",
                ))
        return findings

    def _check_number(self, spec: ParameterSpec, value: Any) -> List[ValidationError]:
        if not math.isfinite(value):
            return [ValidationError(
                field=spec.name,
                message=f"{spec.name} must be a finite number",
                suggestion=f"Provide a finite numeric value for {spec.name}",
            )]
        if abs(value) > self.max_magnitude:
            return [ValidationError(
                field=spec.name,
                message=f"{spec.name} exceeds the safe magnitude of {self.max_magnitude:g}",
                suggestion=f"Use a {spec.name} between -{self.max_magnitude:g} and {self.max_magnitude:g}",
            )]
        if abs(value) > self.precision_warning_threshold:
            return [ValidationError(
                field=spec.name,
                message=f"{spec.name} is very large and may lose precision on the wire",
                severity="warning",
                suggestion=f"Consider passing {spec.name} as a string",
            )]
        return []

    def _check_text(self, spec: ParameterSpec, value: str) -> List[ValidationError]:
        if spec.type == "address":
            if not 1 <= len(value) <= self.address_max_length:
                return [ValidationError(
                    field=spec.name,
                    message=(
                        f"{spec.name} must be 1-{self.address_max_length} characters "
                        f"(got {len(value)})"
                    ),
                    suggestion=f"Check that {spec.name} is a complete, untruncated address",
                )]
            if not (spec.validation and spec.validation.pattern) and not ADDRESS_PATTERN.match(value):
                return [ValidationError(
                    field=spec.name,
                    message=f"{spec.name} contains characters not allowed in an address",
                    suggestion=f"Use only letters, digits, '-' and '_' in {spec.name}",
                )]
            return []

        if not value:
            return [ValidationError(
                field=spec.name,
                message=f"{spec.name} must not be empty",
                suggestion=f"Provide a value for {spec.name}",
            )]
        if len(value) > self.max_string_length:
            return [ValidationError(
                field=spec.name,
                message=f"{spec.name} exceeds {self.max_string_length} characters",
                suggestion=f"Shorten {spec.name}",
            )]
        return []


_EXAMPLES_BY_TYPE = {
    "number": "10",
    "boolean": "true",
    "address": "<address>",
    "json": '{"key":"value"}',
    "string": '"text"',
}


def example_value(spec: ParameterSpec) -> str:
    """A plausible example value for ``spec``, preferring declared examples."""
    if spec.examples:
        return spec.examples[0]
    if spec.validation and spec.validation.enum:
        return str(spec.validation.enum[0])
    if spec.validation and spec.validation.min is not None and spec.type == "number":
        return f"{spec.validation.min:g}"
    return _EXAMPLES_BY_TYPE.get(spec.type, "value")
