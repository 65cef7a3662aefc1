"""
Public API for the nl2msg core package

This module provides a small, stable interface over the request compiler.
Callers supply a transport; everything else (caches, breakers, stage
engines) is built and owned by the facade instance.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from nl2msg.common.contracts import ExecutionRequest, ProcessTransport
from nl2msg.pipeline.compiler import RequestCompiler
from nl2msg.pipeline.nodes.simulation.schemas import DryRunReport
from nl2msg.pipeline.schemas import CompileOptions, CompileResult
from nl2msg.protocol.models import ProtocolDocument


class NL2Msg:
    """
    Public API for the nl2msg request compiler.

    Wraps a RequestCompiler so that callers only deal with targets, request
    text and options.
    """

    def __init__(self, transport: ProcessTransport, compiler: Optional[RequestCompiler] = None):
        """
        Initialize the facade.

        Args:
            transport: Message transport used for discovery and dispatch
            compiler: Pre-built compiler (mainly for tests)
        """
        self._compiler = compiler or RequestCompiler(transport)

    @property
    def compiler(self) -> RequestCompiler:
        """Access to the underlying compiler (internal use only)."""
        return self._compiler

    async def run(
        self,
        target_id: str,
        request_text: str,
        credential: Any = None,
        options: Optional[CompileOptions] = None,
        **overrides: Any,
    ) -> CompileResult:
        """
        Compile and execute a natural language request against a target.

        Keyword overrides (mode, handler, parameters, confirmed...) are merged
        into ``options``.
        """
        if overrides:
            base = options.model_dump() if options else {}
            options = CompileOptions(**{**base, **overrides})
        return await self._compiler.compile_and_execute(target_id, request_text, credential, options)

    async def simulate(self, target_id: str, request_text: str, **overrides: Any) -> CompileResult:
        """
        Compile a request and return its dry run without dispatching.
        """
        return await self.run(target_id, request_text, None, validate_only=True, **overrides)

    async def describe(self, target_id: str, force_refresh: bool = False) -> Optional[ProtocolDocument]:
        """
        Fetch (or reuse) the target's protocol document.
        """
        return await self._compiler.discovery_cache.discover(target_id, force_refresh=force_refresh)

    def dry_run(self, request: ExecutionRequest, handler=None) -> DryRunReport:
        """
        Summarize a simulation for an already-resolved request.
        """
        return self._compiler.simulator.dry_run(request, handler)

    def clear_discovery_cache(self) -> None:
        """
        Drop every cached protocol document.
        """
        self._compiler.clear_discovery_cache()

    def get_discovery_cache_stats(self) -> Dict[str, object]:
        """
        Size and target ids of the discovery cache.
        """
        return self._compiler.get_discovery_cache_stats()
