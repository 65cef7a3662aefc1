from .models import (
    HandlerMetadata,
    ParameterSpec,
    ParameterValidation,
    ProtocolCapabilities,
    ProtocolDocument,
    infer_is_write,
)
from .parser import generate_message_tags, infer_process_type, parse_protocol_document, unwrap_payload
from .discovery import ProtocolDiscoveryCache
from .markdown import parse_process_markdown
from .templates import BUILTIN_TEMPLATES, ProcessTemplate

__all__ = [
    "HandlerMetadata",
    "ParameterSpec",
    "ParameterValidation",
    "ProtocolCapabilities",
    "ProtocolDocument",
    "infer_is_write",
    "generate_message_tags",
    "infer_process_type",
    "parse_protocol_document",
    "unwrap_payload",
    "ProtocolDiscoveryCache",
    "parse_process_markdown",
    "BUILTIN_TEMPLATES",
    "ProcessTemplate",
]
