from typing import Any

from nl2msg.protocol.parser import unwrap_payload


def normalize_response(raw: Any) -> Any:
    """Turns a transport reply into plain data.

    ``{"Data": ...}``/``{"data": ...}`` envelopes are unwrapped and JSON
    strings decoded; scalars and non-JSON strings are returned unchanged.
    """
    if raw is None:
        return None
    return unwrap_payload(raw)
