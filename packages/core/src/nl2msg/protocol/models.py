from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ParameterType = Literal["number", "string", "boolean", "address", "json"]
HandlerCategory = Literal["core", "utility", "custom"]

# Action-name fragments, checked in this order. A read match wins over a write
# match ("GetTransfers" is a read); anything unmatched is treated as a read.
READ_ACTION_FRAGMENTS = (
    "info", "balance", "get", "view", "check", "query", "list", "show",
    "ping", "pong", "status", "version", "details",
)
WRITE_ACTION_FRAGMENTS = (
    "transfer", "send", "mint", "burn", "create", "update", "delete", "set",
    "add", "subtract", "multiply", "divide", "calculate", "remove", "approve",
    "vote", "stake", "unstake", "deposit", "withdraw", "swap", "execute",
    "register", "propose", "revoke", "destroy",
)

_TYPE_ALIASES = {"object": "json", "array": "json", "int": "number", "float": "number", "bool": "boolean"}


def infer_is_write(action: str) -> bool:
    """Classifies a handler action name as state-changing or not."""
    action_lower = action.lower()
    if any(fragment in action_lower for fragment in READ_ACTION_FRAGMENTS):
        return False
    return any(fragment in action_lower for fragment in WRITE_ACTION_FRAGMENTS)


class ParameterValidation(BaseModel):
    """Declared format rules for one parameter."""

    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None
    enum: Optional[List[Any]] = None

    model_config = ConfigDict(extra="ignore", frozen=True)


class ParameterSpec(BaseModel):
    """One typed parameter of a handler."""

    name: str = Field(..., min_length=1)
    type: ParameterType = "string"
    required: bool = False
    description: str = ""
    examples: List[str] = Field(default_factory=list)
    validation: Optional[ParameterValidation] = None

    model_config = ConfigDict(extra="ignore", frozen=True)

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            lowered = value.lower()
            return _TYPE_ALIASES.get(lowered, lowered)
        return value

    @field_validator("examples", mode="before")
    @classmethod
    def _stringify_examples(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [str(item) for item in value]
        return value


class HandlerMetadata(BaseModel):
    """One operation a target process exposes.

    Attributes:
        action (str): The value sent in the ``Action`` tag.
        description (str): Free-text description used for request matching.
        parameters (List[ParameterSpec]): Declared parameters, in wire order.
        is_write (bool): Whether the handler changes process state. Inferred
            from the action name when the document omits it.
        category (HandlerCategory): core, utility or custom.
        examples (List[str]): Example natural-language requests.
    """

    action: str = Field(..., min_length=1)
    description: str = ""
    parameters: List[ParameterSpec] = Field(default_factory=list)
    is_write: bool = Field(False, alias="isWrite")
    category: HandlerCategory = "custom"
    examples: List[str] = Field(default_factory=list)
    pattern: List[str] = Field(default_factory=lambda: ["Action"])
    version: Optional[str] = None

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _infer_write_flag(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("action"), str):
            flag = data.get("isWrite", data.get("is_write"))
            if flag is None:
                data = {k: v for k, v in data.items() if k != "is_write"}
                data["isWrite"] = infer_is_write(data["action"])
        return data

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Any:
        if isinstance(value, str) and value.lower() in ("core", "utility", "custom"):
            return value.lower()
        return "custom"

    @property
    def required_parameters(self) -> List[ParameterSpec]:
        return [p for p in self.parameters if p.required]

    def get_parameter(self, name: str) -> Optional[ParameterSpec]:
        """Looks up a declared parameter by case-insensitive name."""
        lowered = name.lower()
        for spec in self.parameters:
            if spec.name.lower() == lowered:
                return spec
        return None


class ProtocolCapabilities(BaseModel):
    supports_handler_registry: bool = Field(False, alias="supportsHandlerRegistry")
    supports_examples: bool = Field(False, alias="supportsExamples")
    supports_parameter_validation: bool = Field(False, alias="supportsParameterValidation")
    supports_tag_validation: bool = Field(False, alias="supportsTagValidation")

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)


class ProtocolDocument(BaseModel):
    """A target process's full self-description.

    Unknown top-level fields (``Name``, ``Ticker``, ``Denomination``...) are
    preserved as extras so process-type inference can use them.
    """

    protocol_version: str = Field(..., alias="protocolVersion")
    handlers: List[HandlerMetadata] = Field(..., min_length=1)
    capabilities: ProtocolCapabilities = Field(default_factory=ProtocolCapabilities)
    last_updated: Optional[str] = Field(None, alias="lastUpdated")
    name: Optional[str] = Field(None, alias="Name")
    ticker: Optional[str] = Field(None, alias="Ticker")

    model_config = ConfigDict(extra="allow", frozen=True, populate_by_name=True)

    def get_handler(self, action: str) -> Optional[HandlerMetadata]:
        """Finds a handler by case-insensitive action name."""
        lowered = action.lower()
        for handler in self.handlers:
            if handler.action.lower() == lowered:
                return handler
        return None

    @property
    def actions(self) -> List[str]:
        return [h.action for h in self.handlers]

    def summary(self) -> Dict[str, Any]:
        return {
            "protocol_version": self.protocol_version,
            "handlers": self.actions,
            "name": self.name,
        }
