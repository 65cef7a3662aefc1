# nl2msg package

from .public_api import NL2Msg
from .pipeline.compiler import RequestCompiler
from .pipeline.schemas import CompileOptions, CompileResult

# Also expose core models and enums
from .common.contracts import BatchContext, ExecutionRequest, MessageTag, ProcessTransport
from .common.errors import DispatchCategory, ErrorCode, ErrorSeverity, PipelineError
from .protocol.models import HandlerMetadata, ParameterSpec, ProtocolDocument

__all__ = [
    "NL2Msg",
    "RequestCompiler",
    "CompileOptions",
    "CompileResult",
    "BatchContext",
    "ExecutionRequest",
    "MessageTag",
    "ProcessTransport",
    "DispatchCategory",
    "ErrorCode",
    "ErrorSeverity",
    "PipelineError",
    "HandlerMetadata",
    "ParameterSpec",
    "ProtocolDocument",
]
