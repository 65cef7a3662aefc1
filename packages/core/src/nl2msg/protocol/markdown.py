"""Parses hand-written process documentation into handler metadata.

Legacy processes do not publish a protocol document, but callers can pass a
markdown description instead::

    # My Token

    ## Transfer
    Send tokens to another account
    - Recipient: address to send to
    - Quantity: number of tokens
    - Memo: free text (optional)
"""
import re
from typing import List, Optional, Tuple

from nl2msg.protocol.models import HandlerMetadata, ParameterSpec

_BOLD = re.compile(r"\*\*(.*?)\*\*")
_ITALIC = re.compile(r"\*(.*?)\*")


def _parameter_from_line(line: str) -> Optional[ParameterSpec]:
    name_part, sep, description = line.partition(":")
    if not sep:
        return None

    name = _ITALIC.sub(r"\1", _BOLD.sub(r"\1", name_part)).strip().strip("`")
    if not name or " " in name:
        return None

    description = description.strip()
    lowered = description.lower()
    if "number" in lowered or "amount" in lowered:
        param_type = "number"
    elif "boolean" in lowered:
        param_type = "boolean"
    elif "object" in lowered or "json" in lowered:
        param_type = "json"
    elif "address" in lowered:
        param_type = "address"
    else:
        param_type = "string"

    return ParameterSpec(
        name=name,
        type=param_type,
        required="optional" not in lowered,
        description=description,
    )


def parse_process_markdown(markdown: str) -> Tuple[str, List[HandlerMetadata]]:
    """Returns ``(process_name, handlers)`` parsed from markdown documentation."""
    process_name = "Unknown Process"
    handlers: List[HandlerMetadata] = []
    current: Optional[dict] = None
    in_examples = False

    def flush():
        if current and current["action"]:
            handlers.append(HandlerMetadata.model_validate(current))

    for raw_line in markdown.splitlines():
        line = raw_line.strip()
        if line.startswith("# "):
            process_name = line[2:].strip()
        elif line.startswith("## "):
            flush()
            current = {"action": line[3:].strip(), "description": "", "parameters": [], "examples": []}
            in_examples = False
        elif current is None or not line or line.startswith("#"):
            continue
        elif line.lower().rstrip(":") == "examples":
            in_examples = True
        elif line.startswith("- "):
            item = line[2:].strip()
            if in_examples:
                current["examples"].append(item)
                continue
            spec = _parameter_from_line(item)
            if spec is not None:
                current["parameters"].append(spec)
        else:
            current["description"] = f"{current['description']} {line}".strip()

    flush()
    return process_name, handlers
