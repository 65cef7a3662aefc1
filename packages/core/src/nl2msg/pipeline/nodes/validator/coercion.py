"""Type coercion from extracted text to declared parameter types."""
import json
import math
from typing import Any

TRUE_LITERALS = frozenset({"true", "yes", "1", "on"})
FALSE_LITERALS = frozenset({"false", "no", "0", "off"})


class CoercionError(ValueError):
    """Raised when a value cannot be converted to its declared type."""


def strip_quotes(raw: str) -> str:
    if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in ("'", '"'):
        return raw[1:-1]
    return raw


def format_number(value: float) -> str:
    """Renders integral floats without a trailing ``.0``."""
    if isinstance(value, float) and math.isfinite(value) and value.is_integer():
        return str(int(value))
    return str(value)


def coerce_number(value: Any) -> Any:
    if isinstance(value, bool):
        raise CoercionError(f"expected a number, got boolean {value}")
    if isinstance(value, (int, float)):
        return value
    text = strip_quotes(str(value).strip()).replace(",", "").replace("_", "")
    try:
        number = float(text)
    except ValueError:
        raise CoercionError(f"'{value}' is not a number") from None
    if math.isfinite(number) and number.is_integer() and "." not in text and "e" not in text.lower():
        return int(number)
    return number


def coerce_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = strip_quotes(str(value).strip()).lower()
    if text in TRUE_LITERALS:
        return True
    if text in FALSE_LITERALS:
        return False
    raise CoercionError(f"'{value}' is not a boolean (use true/false, yes/no, 1/0)")


def coerce_address(value: Any) -> str:
    text = strip_quotes(str(value).strip())
    if not text:
        raise CoercionError("address is empty")
    return text


def coerce_string(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return format_number(value)
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return strip_quotes(str(value))


def coerce_json(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return value
    text = str(value).strip()
    if not text.startswith(("{", "[")):
        text = strip_quotes(text)
    try:
        return json.loads(text)
    except ValueError:
        raise CoercionError(f"'{value}' is not valid JSON") from None


COERCERS = {
    "number": coerce_number,
    "boolean": coerce_boolean,
    "address": coerce_address,
    "string": coerce_string,
    "json": coerce_json,
}


def coerce_value(value: Any, param_type: str) -> Any:
    """Converts ``value`` to ``param_type``.

    Raises:
        CoercionError: If the value cannot represent the declared type.
    """
    coercer = COERCERS.get(param_type, coerce_string)
    return coercer(value)
