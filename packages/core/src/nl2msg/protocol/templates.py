"""Built-in handler templates for well-known process families.

Used on the legacy path when a target neither publishes a protocol document
nor comes with caller-supplied documentation. Adding a family means adding a
``ProcessTemplate`` entry to ``BUILTIN_TEMPLATES``.
"""
from typing import Dict, List

from pydantic import BaseModel, Field

from nl2msg.protocol.models import HandlerMetadata


class ProcessTemplate(BaseModel):
    process_type: str
    name: str
    handlers: List[HandlerMetadata]
    suggested_operations: List[str] = Field(default_factory=list)


TOKEN_TEMPLATE = ProcessTemplate(
    process_type="token",
    name="Token Process",
    handlers=[
        HandlerMetadata(
            action="Balance",
            description="Check token balance for an account",
            is_write=False,
            category="core",
            examples=["Check my balance", "Get balance for alice"],
            parameters=[
                {"name": "Target", "type": "address", "required": False,
                 "description": "Account to check, defaults to sender"},
            ],
        ),
        HandlerMetadata(
            action="Info",
            description="Get token information including name ticker and supply",
            is_write=False,
            category="core",
            examples=["Get token info", "Show token details"],
        ),
        HandlerMetadata(
            action="Transfer",
            description="Send tokens to another account",
            is_write=True,
            category="core",
            examples=["Send 100 tokens to alice", "Transfer 50 tokens to bob"],
            parameters=[
                {"name": "Recipient", "type": "address", "required": True,
                 "description": "Account to send tokens to"},
                {"name": "Quantity", "type": "string", "required": True,
                 "description": "Amount of tokens to send", "validation": {"pattern": r"^[0-9]+(\.[0-9]+)?$"}},
            ],
        ),
        HandlerMetadata(
            action="Balances",
            description="List all token balances",
            is_write=False,
            category="core",
            examples=["List all balances", "Show all token holders"],
        ),
    ],
    suggested_operations=[
        "Check balance: 'check my balance'",
        "Token info: 'get token info'",
        "Transfer: 'send 10 tokens to <address>'",
        "All balances: 'list all balances'",
    ],
)

BUILTIN_TEMPLATES: Dict[str, ProcessTemplate] = {
    TOKEN_TEMPLATE.process_type: TOKEN_TEMPLATE,
}
