"""Rephrasing help for requests whose parameters could not be extracted."""
import json
from typing import Dict, List, Optional, Tuple

from nl2msg.protocol.models import HandlerMetadata, ParameterSpec
from nl2msg.pipeline.nodes.validator.node import example_value

from .schemas import ExtractionResult, InteractiveGuidance

# Action fragment -> natural-language phrasings; {0}, {1} are example values.
PHRASINGS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("add", ("add {0} and {1}", "{0} plus {1}")),
    ("subtract", ("subtract {0} from {1}", "{1} minus {0}")),
    ("multiply", ("multiply {0} by {1}", "{0} times {1}")),
    ("divide", ("divide {0} by {1}", "{0} divided by {1}")),
    ("transfer", ("transfer {1} tokens to {0}", "send {1} to {0}")),
    ("balance", ("check balance of {0}", "get balance for {0}")),
    ("mint", ("mint {0} tokens",)),
    ("burn", ("burn {0} tokens",)),
)

STRATEGY_TIPS: Dict[str, str] = {
    "direct": "Name each value explicitly, e.g. Name=value",
    "json": "Pass structured values as JSON, e.g. key=[1,2] or {\"key\": 1}",
    "domain": "Use an unambiguous operand phrasing such as 'X plus Y' or 'subtract X from Y'",
    "contextual": "Mention the recipient after 'to' and the amount after the verb",
    "single": "Include the single value the operation needs",
}


def _typed_example(spec: ParameterSpec) -> str:
    value = example_value(spec)
    if spec.type == "string":
        return value.strip('"')
    return value


def direct_example(handler: HandlerMetadata) -> str:
    return " ".join(f"{spec.name}={example_value(spec)}" for spec in handler.parameters)


def json_example(handler: HandlerMetadata) -> str:
    payload = {}
    for spec in handler.parameters:
        raw = _typed_example(spec)
        try:
            payload[spec.name] = json.loads(raw) if spec.type in ("number", "boolean", "json") else raw
        except ValueError:
            payload[spec.name] = raw
    return json.dumps(payload)


def natural_phrasings(handler: HandlerMetadata) -> List[str]:
    values = [_typed_example(spec) for spec in handler.parameters] + ["<value>", "<value>"]
    action = handler.action.lower()
    for fragment, templates in PHRASINGS:
        if fragment in action:
            return [template.format(*values) for template in templates]
    return []


def generate_guidance(
    request_text: str, handler: HandlerMetadata, extraction: Optional[ExtractionResult] = None
) -> InteractiveGuidance:
    """Explains what went wrong and how to phrase the request instead.

    Args:
        request_text (str): The request that failed.
        handler (HandlerMetadata): The handler the request was matched to.
        extraction (Optional[ExtractionResult]): The attempt trail, if extraction ran.

    Returns:
        InteractiveGuidance: A primary suggestion, alternatives, troubleshooting and examples.
    """
    required = [spec.name for spec in handler.required_parameters]
    missing = required
    if extraction is not None:
        missing = [name for name in required if name not in extraction.parameters]

    if missing:
        primary = f"{handler.action} needs {', '.join(missing)}. Try: {handler.action} {direct_example(handler)}"
    else:
        primary = f"Check the values given to {handler.action}. Try: {handler.action} {direct_example(handler)}"

    alternatives = [f"{handler.action} {direct_example(handler)}", f"{handler.action} {json_example(handler)}"]
    alternatives.extend(natural_phrasings(handler))

    troubleshooting: List[str] = []
    if extraction is not None:
        for attempt in extraction.attempts:
            reason = attempt.error or "no usable values"
            tip = STRATEGY_TIPS.get(attempt.strategy)
            troubleshooting.append(f"{attempt.strategy}: {reason}. {tip}" if tip else f"{attempt.strategy}: {reason}")
        if extraction.ambiguous_phrasings:
            troubleshooting.append(
                f"'{request_text}' uses an operand order that is not fixed "
                f"({', '.join(extraction.ambiguous_phrasings)}); name the parameters instead"
            )
    for spec in handler.parameters:
        if spec.description:
            troubleshooting.append(f"{spec.name} ({spec.type}): {spec.description}")

    examples = list(handler.examples) or [f"{handler.action} {direct_example(handler)}"]
    return InteractiveGuidance(
        primary_suggestion=primary,
        alternatives=alternatives,
        troubleshooting=troubleshooting,
        examples=examples,
    )
