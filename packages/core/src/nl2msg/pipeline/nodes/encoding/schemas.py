from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from nl2msg.common.contracts import MessageTag

EncodingStrategy = Literal["tags", "data", "hybrid"]
DecisionSource = Literal["declared", "cache", "target_hint", "heuristic"]


class EncodingDecision(BaseModel):
    """
    Which encoding was chosen for a target/handler pair, and why.
    """
    strategy: EncodingStrategy
    source: DecisionSource = Field(description="What decided: a cached preference, a target hint or the handler shape")
    reason: str = ""


class EncodedMessage(BaseModel):
    """
    Tags and optional data payload ready for the transport.
    """
    strategy: EncodingStrategy
    tags: List[MessageTag] = Field(default_factory=list)
    data: Optional[str] = Field(None, description="JSON payload for data/hybrid encodings")
