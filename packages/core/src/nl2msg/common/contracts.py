"""
Contract definitions for the transport boundary.

This module defines the Pydantic models exchanged between the compiler
pipeline and the external message transport, plus the structural protocol a
transport must satisfy. The transport itself (signing, networking, timeouts)
lives outside this package.
"""
from typing import Any, Dict, List, Literal, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

OperationMode = Literal["auto", "read", "write", "validate"]


class MessageTag(BaseModel):
    """One name/value tag on an outgoing message."""

    name: str = Field(..., description="Tag name, e.g. 'Action' or a parameter name.")
    value: str = Field(..., description="Tag value, always transmitted as a string.")

    model_config = ConfigDict(frozen=True)


class BatchContext(BaseModel):
    """Position of a request inside a multi-step batch."""

    batch_id: str = Field(..., description="Identifier shared by all requests of the batch.")
    sequence_number: int = Field(0, ge=0, description="Zero-based position within the batch.")
    total_operations: int = Field(1, ge=1, description="Number of operations in the batch.")
    rollback_on_error: bool = Field(
        False, description="Whether a failure should roll back earlier batch steps."
    )

    model_config = ConfigDict(extra="ignore")


class ExecutionRequest(BaseModel):
    """One caller instruction travelling through the compiler."""

    target_id: str = Field(..., description="The id of the remote process addressed.")
    request_text: str = Field("", description="The free-text natural-language instruction.")
    mode: OperationMode = Field("auto", description="Explicit operation mode override.")
    handler: Optional[str] = Field(None, description="Explicit handler action override.")
    parameters: Dict[str, Any] = Field(
        default_factory=dict, description="Resolved (or caller-supplied) parameter values."
    )
    batch_context: Optional[BatchContext] = Field(
        None, description="Batch membership, if the request is one step of a batch."
    )
    require_confirmation: bool = Field(
        False, description="Force the confirmation gate even for low-risk operations."
    )
    validate_only: bool = Field(False, description="Dry-run only; never dispatch.")

    model_config = ConfigDict(extra="ignore")


class DispatchMessage(BaseModel):
    """The fully compiled message handed to the transport."""

    target_id: str
    tags: List[MessageTag] = Field(default_factory=list)
    data: Optional[str] = Field(None, description="Serialized payload, if any.")
    is_write: bool = False

    def tag_dicts(self) -> List[Dict[str, str]]:
        return [tag.model_dump() for tag in self.tags]


@runtime_checkable
class ProcessTransport(Protocol):
    """Asynchronous message transport to remote processes.

    Tags are passed as a list of ``{"name": ..., "value": ...}`` dicts. Both
    calls may raise; the compiler translates dispatch exceptions into a
    structured failure.
    """

    async def query_read_only(
        self, target_id: str, tags: List[Dict[str, str]]
    ) -> Optional[Dict[str, Any]]:
        ...

    async def query_write(
        self,
        credential: Any,
        target_id: str,
        tags: List[Dict[str, str]],
        data: Optional[str],
    ) -> Any:
        ...


RiskLevel = Literal["low", "medium", "high"]
OperationType = Literal["read", "write", "validate", "unknown"]

RISK_ORDER: Dict[str, int] = {"low": 0, "medium": 1, "high": 2}


def max_risk(*levels: str) -> str:
    """Returns the highest of the given risk levels."""
    return max(levels, key=lambda level: RISK_ORDER[level])
