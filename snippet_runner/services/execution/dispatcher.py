"""
Language dispatcher: resolves a request's language once and routes it to
the matching execution strategy.

Design principles:
- Always returns a result, never raises
- The result store shows "Running..." before any executor starts
- Slow paths (subprocess, containers) never block the event loop
"""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

from .js_sandbox import JsSandboxExecutor
from .models import ErrorKind, ExecutionRequest, ExecutionResult, Language
from .preview import PreviewRenderer
from .python_adapter import PythonAdapter
from .python_runtimes import load_python_runtime
from .result_store import ResultStore
from .runners import load_js_runner

logger = logging.getLogger(__name__)


def unsupported_result(language_tag: str) -> ExecutionResult:
    return ExecutionResult.console(
        f"Execution for {language_tag} is not supported in this preview.",
        is_error=False,
        error_kind=ErrorKind.UNSUPPORTED_LANGUAGE,
    )


class ExecutionEngine:
    """Routes ExecutionRequests to the JS sandbox, Python adapter or preview."""

    def __init__(
        self,
        js_executor: JsSandboxExecutor,
        python_adapter: PythonAdapter,
        preview_renderer: Optional[PreviewRenderer] = None,
    ):
        self.js_executor = js_executor
        self.python_adapter = python_adapter
        self.preview_renderer = preview_renderer or PreviewRenderer()

    @classmethod
    def from_settings(cls, settings) -> "ExecutionEngine":
        """Load the JS runner and the Python runtime once, at startup."""
        js_executor = JsSandboxExecutor(
            load_js_runner(settings),
            timeout_seconds=settings.js_timeout_seconds,
            max_output_chars=settings.max_output_chars,
        )
        python_adapter = PythonAdapter(
            load_python_runtime(settings),
            timeout_seconds=settings.python_timeout_seconds,
            max_output_chars=settings.max_output_chars,
        )
        return cls(js_executor, python_adapter, PreviewRenderer())

    async def dispatch(
        self,
        request: ExecutionRequest,
        store: Optional[ResultStore] = None,
    ) -> ExecutionResult:
        """
        Execute a request and publish its result.

        Args:
            request: code and language tag from a Run action
            store: optional result store receiving the placeholder and result

        Returns:
            The ExecutionResult, tagged with the request id
        """
        language = request.language
        if store is not None:
            store.start_run(request.request_id)

        logger.info(f"Dispatching request {request.request_id} ({language.value})")
        start_time = time.time()

        try:
            result = await self._execute(language, request)
        except Exception as e:
            logger.error(f"Execution engine failure for {request.request_id}: {e}", exc_info=True)
            result = ExecutionResult.console(
                f"Error: {e}",
                is_error=True,
                error_kind=ErrorKind.INTERNAL,
                execution_time=time.time() - start_time,
            )

        result = _with_request_id(result, request.request_id)
        if store is not None:
            store.complete(result, request.request_id)
        return result

    async def _execute(self, language: Language, request: ExecutionRequest) -> ExecutionResult:
        if language is Language.JAVASCRIPT:
            return await asyncio.to_thread(self.js_executor.run, request.code)
        if language is Language.PYTHON:
            return await self.python_adapter.run(request.code)
        if language is Language.HTML_CSS:
            return self.preview_renderer.run(request.code)
        return unsupported_result(request.language_tag)

    def health_check(self) -> Dict[str, Any]:
        return {
            "javascript": self.js_executor.health_check(),
            "python": self.python_adapter.health_check(),
            "html/css": {"status": "healthy"},
        }


def _with_request_id(result: ExecutionResult, request_id: str) -> ExecutionResult:
    if result.request_id == request_id:
        return result
    return ExecutionResult(
        kind=result.kind,
        content=result.content,
        is_error=result.is_error,
        error_kind=result.error_kind,
        request_id=request_id,
        execution_time=result.execution_time,
    )
