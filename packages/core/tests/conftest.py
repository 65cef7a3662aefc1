import json
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock, MagicMock

import pytest

from nl2msg.protocol.models import HandlerMetadata
from nl2msg.protocol.parser import parse_protocol_document


def token_document_payload() -> Dict[str, Any]:
    return {
        "protocolVersion": "1.0",
        "Name": "Test Token",
        "Ticker": "TST",
        "capabilities": {"supportsHandlerRegistry": True, "supportsExamples": True},
        "handlers": [
            {
                "action": "Info",
                "description": "Get token information",
                "isWrite": False,
                "category": "core",
            },
            {
                "action": "Balance",
                "description": "Check the balance of an account",
                "isWrite": False,
                "category": "core",
                "parameters": [
                    {"name": "Target", "type": "address", "required": False,
                     "description": "Account to check"},
                ],
            },
            {
                "action": "Transfer",
                "description": "Transfer tokens to another account",
                "isWrite": True,
                "category": "core",
                "examples": ["transfer 100 tokens to alice-456"],
                "parameters": [
                    {"name": "Target", "type": "address", "required": True,
                     "description": "Recipient account", "examples": ["alice-456"]},
                    {"name": "Quantity", "type": "string", "required": True,
                     "description": "Amount of tokens", "examples": ["100"]},
                ],
            },
            {
                "action": "Burn",
                "description": "Burn tokens permanently",
                "isWrite": True,
                "category": "core",
                "parameters": [
                    {"name": "Quantity", "type": "string", "required": True,
                     "description": "Amount of tokens to burn"},
                ],
            },
        ],
    }


def calculator_document_payload() -> Dict[str, Any]:
    operands = [
        {"name": "A", "type": "number", "required": True, "description": "First operand"},
        {"name": "B", "type": "number", "required": True, "description": "Second operand"},
    ]
    return {
        "protocolVersion": "1.0",
        "Name": "Calculator",
        "handlers": [
            {"action": "Add", "description": "Add two numbers", "isWrite": True, "parameters": operands},
            {"action": "Subtract", "description": "Subtract one number from another",
             "isWrite": True, "parameters": operands},
            {"action": "Divide", "description": "Divide two numbers", "isWrite": True, "parameters": operands},
        ],
    }


def make_transport(
    discovery: Optional[Any] = None,
    read_response: Any = None,
    write_response: Any = None,
) -> MagicMock:
    """Transport double: the Info query returns ``discovery``, other reads ``read_response``."""
    transport = MagicMock()

    def read_only(target_id: str, tags: List[Dict[str, str]]):
        if tags and tags[0] == {"name": "Action", "value": "Info"}:
            return discovery
        return read_response

    transport.query_read_only = AsyncMock(side_effect=read_only)
    transport.query_write = AsyncMock(return_value=write_response)
    return transport


def handler(action: str, *params: Dict[str, Any], **fields: Any) -> HandlerMetadata:
    return HandlerMetadata.model_validate({"action": action, "parameters": list(params), **fields})


@pytest.fixture
def transport_factory():
    return make_transport


@pytest.fixture
def handler_factory():
    return handler


@pytest.fixture
def token_payload():
    return token_document_payload()


@pytest.fixture
def token_document():
    return parse_protocol_document(token_document_payload())


@pytest.fixture
def calculator_document():
    return parse_protocol_document(calculator_document_payload())


@pytest.fixture
def token_transport():
    return make_transport(
        discovery={"Data": json.dumps(token_document_payload())},
        write_response={"Data": json.dumps({"status": "ok"})},
    )


@pytest.fixture
def calculator_transport():
    return make_transport(discovery=calculator_document_payload(), write_response={"result": 8})


@pytest.fixture
def legacy_transport():
    return make_transport(discovery=None, read_response={"Data": json.dumps({"balance": "42"})})
