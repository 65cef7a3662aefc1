from __future__ import annotations

import json
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError

from nl2msg.common.contracts import MessageTag
from nl2msg.common.logger import get_logger
from nl2msg.protocol.models import HandlerMetadata, ProtocolDocument

logger = get_logger("protocol")

_ENVELOPE_KEYS = ("Data", "data")
_MAX_UNWRAP_DEPTH = 4


def unwrap_payload(raw: Any) -> Any:
    """Strips transport envelopes and decodes JSON strings.

    Accepts a bare value, ``{"data": ...}``, ``{"Data": "<json>"}`` or any
    nesting of those. Strings that are not valid JSON are returned unchanged.
    """
    value = raw
    for _ in range(_MAX_UNWRAP_DEPTH):
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or stripped[0] not in "[{\"":
                return value
            try:
                value = json.loads(stripped)
            except ValueError:
                return value
            continue

        if isinstance(value, Mapping):
            envelope_key = next((k for k in _ENVELOPE_KEYS if k in value), None)
            if envelope_key is not None and not _looks_like_document(value):
                value = value[envelope_key]
                continue
        return value
    return value


def _looks_like_document(value: Mapping) -> bool:
    return "protocolVersion" in value or "handlers" in value


def parse_protocol_document(raw: Any, expected_version: str = "1.0") -> Optional[ProtocolDocument]:
    """Parses a discovery response into a ProtocolDocument.

    Malformed JSON, a missing or different protocol version, and missing or
    structurally broken handler lists all yield ``None``; this never raises.

    Args:
        raw (Any): The transport payload (dict, JSON string, or envelope).
        expected_version (str): The only protocol version accepted.

    Returns:
        Optional[ProtocolDocument]: The parsed document, or None.
    """
    try:
        payload = unwrap_payload(raw)
    except (TypeError, ValueError) as exc:
        logger.debug("Discovery payload could not be unwrapped: %s", exc)
        return None

    if not isinstance(payload, Mapping):
        logger.debug("Discovery payload is not an object (%s)", type(payload).__name__)
        return None

    version = payload.get("protocolVersion", payload.get("protocol_version"))
    if version != expected_version:
        logger.debug("Rejecting protocol version %r (expected %r)", version, expected_version)
        return None

    handlers = payload.get("handlers")
    if not isinstance(handlers, list) or not handlers:
        logger.debug("Discovery payload declares no handlers")
        return None

    try:
        return ProtocolDocument.model_validate(dict(payload))
    except (ValidationError, TypeError, ValueError) as exc:
        logger.debug("Discovery payload failed validation: %s", exc)
        return None


def _tag_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def generate_message_tags(
    handler: HandlerMetadata, parameters: Mapping[str, Any], include: Optional[List[str]] = None
) -> List[MessageTag]:
    """Builds the wire tags for a handler invocation.

    ``Action`` always comes first, then declared parameters in declaration
    order, then any undeclared extras. ``None`` values are skipped. When
    ``include`` is given only those parameter names are emitted.
    """
    tags = [MessageTag(name="Action", value=handler.action)]
    emitted = set()

    ordered_names = [spec.name for spec in handler.parameters if spec.name in parameters]
    ordered_names += [name for name in parameters if name not in ordered_names]

    for name in ordered_names:
        if include is not None and name not in include:
            continue
        value = parameters[name]
        if value is None or name in emitted:
            continue
        tags.append(MessageTag(name=name, value=_tag_value(value)))
        emitted.add(name)
    return tags


def infer_process_type(document: ProtocolDocument) -> str:
    """Classifies a process as token, basic, dao or custom from its handlers."""
    actions = {action.lower() for action in document.actions}

    if {"balance", "transfer"} <= actions and document.ticker:
        return "token"
    if "ping" in actions:
        return "basic"
    if "propose" in actions or "vote" in actions:
        return "dao"
    return "custom"


def handler_not_found_message(document_actions: List[str], action: str) -> str:
    return f"Handler '{action}' not found. Available handlers: {', '.join(document_actions)}"


def parameters_as_json(parameters: Dict[str, Any]) -> str:
    return json.dumps(parameters, separators=(",", ":"), default=str)
