"""Risk factor tables shared by risk assessment and simulation.

Each table maps a parameter name or an action-name fragment to what it
implies. Adding a domain means adding rows, not branches.
"""
from typing import Any, Dict, Mapping, Optional, Tuple

IRREVERSIBLE_ACTIONS: Tuple[str, ...] = ("delete", "burn", "destroy", "remove", "revoke")
ADMIN_ACTIONS: Tuple[str, ...] = ("transfer_ownership", "set_admin", "grant_permission", "revoke_permission")
VALUE_TRANSFER_ACTIONS: Tuple[str, ...] = ("transfer", "send", "withdraw", "mint")

ADMIN_PARAMETERS: Tuple[str, ...] = ("owner", "admin", "permission", "access", "role")
AMOUNT_PARAMETERS: Tuple[str, ...] = ("amount", "quantity", "value")
RECIPIENT_PARAMETERS: Tuple[str, ...] = ("recipient", "target")
PERMANENCE_FLAGS: Tuple[str, ...] = ("permanent", "irreversible", "final")

LARGE_AMOUNT = 10_000
VERY_LARGE_AMOUNT = 1_000_000

# Action category -> action-name fragments, checked in order.
ACTION_CATEGORIES: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("burn", ("burn",)),
    ("delete", ("delete", "remove", "destroy")),
    ("mint", ("mint",)),
    ("transfer", ("transfer", "send")),
    ("balance_query", ("balance",)),
    ("info", ("info",)),
)

CONSEQUENCES: Dict[str, Tuple[str, ...]] = {
    "transfer": (
        "Your token balance will decrease",
        "The transaction cannot be reversed without recipient cooperation",
    ),
    "burn": ("Tokens will be permanently destroyed", "This action cannot be undone"),
    "mint": ("New tokens will be created and added to circulation", "Total supply will increase"),
    "delete": ("Data will be permanently removed", "This action cannot be undone"),
}
BATCH_CONSEQUENCES: Tuple[str, ...] = (
    "This is part of a batch operation",
    "Failure may affect subsequent operations",
)

OUTCOMES: Dict[str, Tuple[Tuple[str, ...], Tuple[str, ...]]] = {
    "transfer": (
        ("Tokens will be transferred from your account", "Recipient balance will increase"),
        ("Insufficient balance", "Invalid recipient address"),
    ),
    "mint": (("New tokens will be created", "Total supply will increase"), ("Minting limits may be exceeded",)),
    "burn": (
        ("Tokens will be permanently destroyed", "Total supply will decrease"),
        ("Tokens cannot be recovered after burning",),
    ),
    "delete": (("Data will be permanently deleted",), ("Data cannot be recovered after deletion",)),
}


def action_category(action: Optional[str]) -> Optional[str]:
    """Semantic category of a handler action, or None when nothing matches."""
    if not action:
        return None
    lowered = action.lower()
    for category, fragments in ACTION_CATEGORIES:
        if any(fragment in lowered for fragment in fragments):
            return category
    return None


def has_fragment(action: Optional[str], fragments: Tuple[str, ...]) -> bool:
    return bool(action) and any(fragment in action.lower() for fragment in fragments)


def named_parameter(parameters: Mapping[str, Any], names: Tuple[str, ...]) -> Tuple[Optional[str], Any]:
    """First parameter whose lower-cased name is in ``names``, as ``(name, value)``."""
    for key, value in parameters.items():
        if key.lower() in names and value is not None:
            return key, value
    return None, None


def as_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def amount_value(parameters: Mapping[str, Any]) -> Optional[float]:
    """The numeric amount/quantity/value parameter, if any parses."""
    for key, value in parameters.items():
        if key.lower() in AMOUNT_PARAMETERS:
            number = as_number(value)
            if number is not None:
                return number
    return None


def is_truthy_flag(value: Any) -> bool:
    return value is True or str(value).lower() == "true"


def estimate_cost(is_write: bool, parameter_count: int, batched: bool) -> int:
    """Relative execution cost: base 100, +200 for writes, +10 per parameter, +50 in a batch."""
    cost = 100 + 10 * parameter_count
    if is_write:
        cost += 200
    if batched:
        cost += 50
    return cost
