"""
Execution service for sandboxed snippet execution.
"""

from .dispatcher import ExecutionEngine
from .js_sandbox import JsSandboxExecutor
from .models import ErrorKind, ExecutionRequest, ExecutionResult, Language, ResultKind
from .preview import PreviewRenderer
from .python_adapter import PythonAdapter, PythonRuntime
from .result_store import ResultStore, ResultStoreRegistry, RunState
from .serializer import safe_serialize

__all__ = [
    "ErrorKind",
    "ExecutionEngine",
    "ExecutionRequest",
    "ExecutionResult",
    "JsSandboxExecutor",
    "Language",
    "PreviewRenderer",
    "PythonAdapter",
    "PythonRuntime",
    "ResultKind",
    "ResultStore",
    "ResultStoreRegistry",
    "RunState",
    "safe_serialize",
]
