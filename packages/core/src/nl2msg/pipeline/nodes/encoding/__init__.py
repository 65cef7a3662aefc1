from .node import EncodingPreferenceCache, EncodingStrategySelector, encode_message, fits_in_tags
from .schemas import EncodedMessage, EncodingDecision

__all__ = [
    "EncodingPreferenceCache",
    "EncodingStrategySelector",
    "encode_message",
    "fits_in_tags",
    "EncodedMessage",
    "EncodingDecision",
]
