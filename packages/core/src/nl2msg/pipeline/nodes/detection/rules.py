"""Rule tables for operation-type detection and handler matching.

Every heuristic the detector applies is a row in one of these tables. New
domains add rows tagged with their domain name; no code branches change.
"""
import re
from dataclasses import dataclass, field
from typing import Dict, Pattern, Tuple

_INFLECTIONS = r"(?:s|es|ed|d|ing)?"


@dataclass(frozen=True)
class IntentRule:
    """A verb signalling a read or write intent, with its strength."""

    verb: str
    operation: str
    strength: float
    domains: Tuple[str, ...] = ("generic",)
    regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(
            self, "regex", re.compile(rf"\b{re.escape(self.verb)}{_INFLECTIONS}\b", re.IGNORECASE)
        )

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None


@dataclass(frozen=True)
class PatternRule:
    """A phrase shape that implies an operation type."""

    label: str
    pattern: str
    operation: str
    regex: Pattern = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "regex", re.compile(self.pattern, re.IGNORECASE))

    def matches(self, text: str) -> bool:
        return self.regex.search(text) is not None


INTENT_RULES: Tuple[IntentRule, ...] = (
    # write
    IntentRule("add", "write", 0.7),
    IntentRule("approve", "write", 0.7, ("token", "dao")),
    IntentRule("burn", "write", 0.9, ("token",)),
    IntentRule("confirm", "write", 0.6),
    IntentRule("create", "write", 0.8),
    IntentRule("delete", "write", 0.9),
    IntentRule("deposit", "write", 0.8, ("token",)),
    IntentRule("destroy", "write", 0.9),
    IntentRule("execute", "write", 0.7),
    IntentRule("mint", "write", 0.9, ("token",)),
    IntentRule("propose", "write", 0.8, ("dao",)),
    IntentRule("register", "write", 0.7),
    IntentRule("reject", "write", 0.7, ("dao",)),
    IntentRule("remove", "write", 0.8),
    IntentRule("revoke", "write", 0.9),
    IntentRule("send", "write", 0.9, ("token",)),
    IntentRule("set", "write", 0.7),
    IntentRule("stake", "write", 0.8, ("token",)),
    IntentRule("submit", "write", 0.7),
    IntentRule("transfer", "write", 0.9, ("token",)),
    IntentRule("update", "write", 0.8),
    IntentRule("vote", "write", 0.8, ("dao",)),
    IntentRule("withdraw", "write", 0.8, ("token",)),
    # read
    IntentRule("balance", "read", 0.9, ("token",)),
    IntentRule("check", "read", 0.8),
    IntentRule("display", "read", 0.7),
    IntentRule("examine", "read", 0.7),
    IntentRule("fetch", "read", 0.8),
    IntentRule("find", "read", 0.8),
    IntentRule("get", "read", 0.8),
    IntentRule("info", "read", 0.8),
    IntentRule("list", "read", 0.8),
    IntentRule("lookup", "read", 0.7),
    IntentRule("query", "read", 0.8),
    IntentRule("read", "read", 0.9),
    IntentRule("search", "read", 0.7),
    IntentRule("show", "read", 0.8),
    IntentRule("status", "read", 0.8),
    IntentRule("view", "read", 0.8),
)

PATTERN_RULES: Tuple[PatternRule, ...] = (
    PatternRule("send-amount", r"\bsend\s+\d+", "write"),
    PatternRule("transfer-amount", r"\btransfer\s+\d+", "write"),
    PatternRule("amount-tokens-to", r"\d+(?:\.\d+)?\s+tokens?\s+to\s+[\w-]+", "write"),
    PatternRule("amount-to-address", r"\d+(?:\.\d+)?\s+to\s+[\w-]{8,}", "write"),
    PatternRule("mint-amount", r"\bmint\s+\d+", "write"),
    PatternRule("burn-amount", r"\bburn\s+\d+", "write"),
    PatternRule("create-noun", r"\bcreate\s+\w+", "write"),
    PatternRule("delete-noun", r"\bdelete\s+\w+", "write"),
    PatternRule("update-noun", r"\bupdate\s+\w+", "write"),
    PatternRule("set-to", r"\bset\s+\w+\s+to\s+\w+", "write"),
    PatternRule("get-noun", r"\bget\s+\w+", "read"),
    PatternRule("check-balance", r"\bcheck\s+(?:my\s+)?balance", "read"),
    PatternRule("show-noun", r"\bshow\s+\w+", "read"),
    PatternRule("what-is-balance", r"\bwhat(?:'s|\s+is)\s+my\s+balance", "read"),
    PatternRule("balance-of", r"\bbalance\s+(?:of|for)\s+[\w-]+", "read"),
    PatternRule("balance-noun", r"\bbalances?\b", "read"),
    PatternRule("info-noun", r"\binfo(?:rmation)?\b", "read"),
    PatternRule("status-noun", r"\bstatus\b", "read"),
)

# Verbs whose effects cannot be undone.
HIGH_RISK_VERBS: Tuple[str, ...] = ("burn", "destroy", "delete", "revoke", "remove")

# Action -> words a request may use instead of the action name.
ACTION_SYNONYMS: Dict[str, Tuple[str, ...]] = {
    "add": ("plus", "sum", "total", "combine", "calculate", "addition", "+"),
    "balance": ("check", "get", "show", "view"),
    "burn": ("destroy", "remove", "delete"),
    "divide": ("division", "divided", "/", "÷"),
    "info": ("details", "information", "about"),
    "mint": ("create", "generate", "issue"),
    "multiply": ("times", "multiplication", "multiplied", "*", "×"),
    "subtract": ("minus", "subtraction", "take", "difference", "-"),
    "transfer": ("send", "give", "pay", "move"),
}

SYMBOL_SYNONYMS = frozenset({"+", "-", "*", "/", "÷", "×"})


def mentions(term: str, text: str) -> bool:
    """Whether ``text`` mentions ``term`` as a word, or as an operator between operands."""
    if term in SYMBOL_SYNONYMS:
        return re.search(rf"(?<=[\s\d]){re.escape(term)}(?=[\s\d])", text) is not None
    return re.search(rf"\b{re.escape(term)}", text, re.IGNORECASE) is not None


def high_risk_verb(text: str) -> str:
    """Returns the first irreversible verb found in ``text``, or an empty string."""
    lowered = text.lower()
    for verb in HIGH_RISK_VERBS:
        if re.search(rf"\b{verb}", lowered):
            return verb
    return ""
