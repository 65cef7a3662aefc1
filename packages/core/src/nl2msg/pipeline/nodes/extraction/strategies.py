"""Parameter extraction strategies.

Each strategy is a plain function ``(request_text, handler) -> dict`` that
returns raw (uncoerced) values keyed by parameter name, or an empty dict when
it finds nothing. The engine in ``node.py`` tries them in order.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern, Tuple

from nl2msg.protocol.models import HandlerMetadata, ParameterSpec
from nl2msg.pipeline.nodes.validator.coercion import strip_quotes

# Grouped amounts ("1,000", "2,000,000.5") are tried before plain digits.
AMOUNT = r"\d{1,3}(?:,\d{3})+(?:\.\d+)?|\d+(?:\.\d+)?"
NUMBER = rf"(?<![\w.,])(-?(?:{AMOUNT}))"
STOPWORDS = frozenset({"me", "my", "the", "a", "an", "all", "it", "this", "that", "and", "of"})
ADDRESS_LIKE = re.compile(r"[\d_-]|^\w{20,}$")
EXPLICIT_STRATEGIES = ("direct", "json")


# --- 1. direct assignment -------------------------------------------------

_ASSIGNMENT = re.compile(
    r"""(?P<key>[A-Za-z_][\w-]*)\s*(?:=|:)\s*"""
    r"""(?P<value>"[^"]*"|'[^']*'|\[[^\]]*\]|\{[^{}]*\}|[^\s,;]+)"""
)


def parse_direct_value(raw: str) -> Any:
    """Strips quotes; unquoted ``true``/``false`` become booleans, everything else stays text."""
    stripped = raw.strip()
    if stripped[:1] in ("'", '"'):
        return strip_quotes(stripped)
    if stripped.lower() == "true":
        return True
    if stripped.lower() == "false":
        return False
    return stripped


def parse_direct_assignments(text: str) -> Dict[str, Any]:
    """Parses ``Name=value`` / ``Name:value`` pairs separated by spaces, commas or semicolons."""
    values: Dict[str, Any] = {}
    for match in _ASSIGNMENT.finditer(text):
        values[match.group("key")] = parse_direct_value(match.group("value"))
    return values


def extract_direct(text: str, handler: HandlerMetadata) -> Dict[str, Any]:
    return parse_direct_assignments(text)


# --- 2. JSON ----------------------------------------------------------------

_STRUCTURED_ASSIGNMENT = re.compile(r"(?P<key>[A-Za-z_][\w-]*)\s*[=:]\s*(?=[\[{])")


def balanced_segment(text: str, start: int) -> Optional[str]:
    """Returns the bracketed JSON segment opening at ``text[start]``, honouring string literals."""
    opener = text[start]
    closer = {"{": "}", "[": "]"}.get(opener)
    if closer is None:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 0:
                return text[start:index + 1]
    return None


def parse_json_parameters(text: str) -> Dict[str, Any]:
    """Parses a whole-text JSON object, ``key=[..]``/``key={..}`` assignments, or an embedded object."""
    stripped = text.strip()
    if stripped.startswith("{"):
        try:
            whole = json.loads(stripped)
        except ValueError:
            whole = None
        if isinstance(whole, dict):
            return whole

    values: Dict[str, Any] = {}
    for match in _STRUCTURED_ASSIGNMENT.finditer(text):
        segment = balanced_segment(text, match.end())
        if segment is None:
            continue
        try:
            values[match.group("key")] = json.loads(segment)
        except ValueError:
            continue
    if values:
        return values

    brace = text.find("{")
    while brace != -1:
        segment = balanced_segment(text, brace)
        if segment:
            try:
                embedded = json.loads(segment)
            except ValueError:
                embedded = None
            if isinstance(embedded, dict):
                return embedded
        brace = text.find("{", brace + 1)
    return {}


def extract_json(text: str, handler: HandlerMetadata) -> Dict[str, Any]:
    return parse_json_parameters(text)


# --- 3. domain operand phrasing ---------------------------------------------

@dataclass(frozen=True)
class OperandPhrase:
    """A two-operand phrasing; ``first``/``second`` name the groups bound to the
    handler's first and second operand parameters."""

    label: str
    template: str
    first: str = "x"
    second: str = "y"
    regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        pattern = self.template.replace("{X}", NUMBER.replace("(-?", "(?P<x>-?", 1))
        pattern = pattern.replace("{Y}", NUMBER.replace("(-?", "(?P<y>-?", 1))
        object.__setattr__(self, "regex", re.compile(pattern, re.IGNORECASE))


# "subtract X from Y" binds X to the first operand (the subtrahend) and Y to
# the second (the minuend). "X - Y" and "X minus Y" bind left to right.
OPERAND_PHRASES: Tuple[OperandPhrase, ...] = (
    OperandPhrase("subtract-from", r"\bsubtract\s+{X}\s+from\s+{Y}"),
    OperandPhrase("add-and", r"\badd\s+{X}\s+(?:and|to|with)\s+{Y}"),
    OperandPhrase("sum-of", r"\bsum\s+of\s+{X}\s+and\s+{Y}"),
    OperandPhrase("multiply-by", r"\bmultiply\s+{X}\s+(?:by|and|with)\s+{Y}"),
    OperandPhrase("divide-by", r"\bdivide\s+{X}\s+by\s+{Y}"),
    OperandPhrase("divided-by", r"{X}\s+divided\s+by\s+{Y}"),
    OperandPhrase("minus", r"{X}\s+minus\s+{Y}"),
    OperandPhrase("plus", r"{X}\s*(?:\bplus\b|\+)\s*{Y}"),
    OperandPhrase("times", r"{X}\s*(?:\btimes\b|\*|×)\s*{Y}"),
    OperandPhrase("slash", r"{X}\s*(?:/|÷)\s*{Y}"),
    OperandPhrase("hyphen", r"{X}\s*-\s*{Y}"),
    OperandPhrase("and", r"{X}\s+and\s+{Y}"),
)

# Phrasings whose operand order has no fixed convention; they are reported,
# never bound.
AMBIGUOUS_PHRASES: Tuple[Tuple[str, Pattern], ...] = (
    ("difference-between", re.compile(rf"\bdifference\s+(?:between|of)\s+{NUMBER}\s+and\s+{NUMBER}", re.I)),
    ("take-from", re.compile(rf"\btake\s+{NUMBER}\s+(?:away\s+)?from\s+{NUMBER}", re.I)),
    ("bare-from", re.compile(rf"{NUMBER}\s+from\s+{NUMBER}", re.I)),
    ("divide-into", re.compile(rf"\bdivide\s+{NUMBER}\s+into\s+{NUMBER}", re.I)),
    ("over", re.compile(rf"{NUMBER}\s+over\s+{NUMBER}", re.I)),
)


def plain_number(value: str) -> str:
    """Drops digit-grouping commas: ``"2,000,000"`` -> ``"2000000"``."""
    return value.replace(",", "")


def operand_parameters(handler: HandlerMetadata) -> List[ParameterSpec]:
    """The two parameters operand phrasing binds to, in declaration order."""
    numeric = [spec for spec in handler.parameters if spec.type == "number"]
    return numeric[:2] if len(numeric) >= 2 else []


def find_ambiguous_phrasings(text: str) -> List[str]:
    if re.search(r"\bsubtract\b", text, re.IGNORECASE):
        candidates = [(label, rx) for label, rx in AMBIGUOUS_PHRASES if label != "bare-from"]
    else:
        candidates = list(AMBIGUOUS_PHRASES)
    return [label for label, regex in candidates if regex.search(text)]


def match_operands(text: str) -> Optional[Tuple[str, str, str]]:
    """Returns ``(label, first, second)`` operand strings for the first matching phrase."""
    for phrase in OPERAND_PHRASES:
        found = phrase.regex.search(text)
        if found:
            return phrase.label, found.group(phrase.first), found.group(phrase.second)
    return None


def extract_domain(text: str, handler: HandlerMetadata) -> Dict[str, Any]:
    targets = operand_parameters(handler)
    if len(targets) < 2 or find_ambiguous_phrasings(text):
        return {}
    operands = match_operands(text)
    if operands is None:
        return {}
    _, first, second = operands
    return {targets[0].name: plain_number(first), targets[1].name: plain_number(second)}


# --- 4. contextual ----------------------------------------------------------

@dataclass(frozen=True)
class ContextRole:
    role: str
    names: Tuple[str, ...]
    patterns: Tuple[Pattern, ...]


RECIPIENT_ROLE = ContextRole(
    "recipient",
    ("target", "recipient", "to", "address", "account", "destination", "user", "wallet"),
    tuple(re.compile(p, re.IGNORECASE) for p in (
        rf"\b(?:send|transfer|give|pay)\s+(?:{AMOUNT})\s+(?:tokens?\s+)?to\s+([\w-]+)",
        r"\brecipient[:\s]+([\w-]+)",
        r"\btarget[:\s]+([\w-]+)",
        r"\bto\s+([\w-]+)",
        r"\b(?:of|for)\s+([\w-]+)",
    )),
)

AMOUNT_ROLE = ContextRole(
    "amount",
    ("amount", "quantity", "qty", "value", "tokens", "count"),
    tuple(re.compile(p, re.IGNORECASE) for p in (
        rf"\b(?:send|transfer|mint|burn|stake|unstake|withdraw|deposit|pay)\s+{NUMBER}",
        rf"\bamount\s*[=:]?\s*{NUMBER}",
        rf"\bquantity[:\s]+{NUMBER}",
        rf"{NUMBER}\s+tokens?\b",
        rf"{NUMBER}\s+(?:to|for)\b",
        rf"{NUMBER}\b",
    )),
)

CONTEXT_ROLES: Tuple[ContextRole, ...] = (RECIPIENT_ROLE, AMOUNT_ROLE)


def role_for(spec: ParameterSpec) -> Optional[ContextRole]:
    lowered = spec.name.lower()
    for role in CONTEXT_ROLES:
        if lowered in role.names:
            return role
    if spec.type == "address":
        return RECIPIENT_ROLE
    if spec.type == "number":
        return AMOUNT_ROLE
    return None


def _named_value(text: str, spec: ParameterSpec) -> Optional[str]:
    found = re.search(
        rf"\b{re.escape(spec.name)}\s+(?:is|of|as)\s+(\"[^\"]*\"|'[^']*'|[^\s,]+)", text, re.IGNORECASE
    )
    return strip_quotes(found.group(1)) if found else None


def _role_value(text: str, role: ContextRole, used: set) -> Optional[Tuple[str, Tuple[int, int]]]:
    for pattern in role.patterns:
        for found in pattern.finditer(text):
            value, span = plain_number(found.group(1)), found.span(1)
            if span in used or value.lower() in STOPWORDS or not value.strip("."):
                continue
            return value.rstrip("."), span
    return None


def extract_contextual(text: str, handler: HandlerMetadata) -> Dict[str, Any]:
    """Fills parameters from their role in the sentence; each text span is bound at most once."""
    values: Dict[str, Any] = {}
    used: set = set()
    for spec in handler.parameters:
        named = _named_value(text, spec)
        if named is not None:
            values[spec.name] = named
            continue

        role = role_for(spec)
        found = _role_value(text, role, used) if role else None
        if found is not None:
            values[spec.name], span = found
            used.add(span)
    return values


# --- 5. single-parameter fallback -----------------------------------------

def extract_single(text: str, handler: HandlerMetadata) -> Dict[str, Any]:
    if len(handler.parameters) != 1:
        return {}
    spec = handler.parameters[0]

    if spec.type == "number":
        found = re.search(NUMBER, text)
        return {spec.name: plain_number(found.group(1))} if found else {}

    if spec.type == "boolean":
        found = re.search(r"\b(true|false|yes|no|on|off)\b", text, re.IGNORECASE)
        return {spec.name: found.group(1)} if found else {}

    quoted = re.search(r"\"([^\"]+)\"|'([^']+)'", text)
    if quoted:
        return {spec.name: quoted.group(1) or quoted.group(2)}

    action = handler.action.lower()
    tokens = [t for t in re.findall(r"[\w-]+", text) if t.lower() not in STOPWORDS and t.lower() != action]
    if spec.type == "address":
        # Plain words ("check", "show") are never taken for an address.
        tokens = [t for t in tokens if ADDRESS_LIKE.search(t)]
    return {spec.name: tokens[-1]} if tokens else {}


DEFAULT_STRATEGIES = (
    ("direct", extract_direct),
    ("json", extract_json),
    ("domain", extract_domain),
    ("contextual", extract_contextual),
    ("single", extract_single),
)
