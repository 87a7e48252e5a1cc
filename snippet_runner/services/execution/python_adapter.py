"""
Adapter between the dispatcher and an embedded Python interpreter runtime.

The runtime is an injected capability (see PythonRuntime) loaded once at
startup. Its absence is a configuration condition reported as a result,
never an exception.
"""

import asyncio
import logging
import time
from typing import Callable, List, Mapping, Optional, Protocol

from .exceptions import ExecutionTimeout, ModuleResolutionError
from .models import ErrorKind, ExecutionResult, truncate_output

logger = logging.getLogger(__name__)


SUCCESS_MESSAGE = "Code executed successfully."
NOT_LOADED_MESSAGE = (
    "Python execution environment not loaded. "
    "Please check the execution service configuration and try again."
)


class PythonRuntime(Protocol):
    """
    Capability implemented by interpreter backends.

    - ``configure`` installs the output sink and the module resolver
    - ``builtin_files`` maps importable module names to their sources
    - ``run_main`` runs a program body as ``__main__``
    """

    name: str
    builtin_files: Mapping[str, str]

    def configure(
        self,
        output: Callable[[str], None],
        read: Callable[[str], str],
        python3: bool = True,
    ) -> None:
        ...

    async def run_main(self, code: str) -> None:
        ...


class PythonAdapter:
    """Runs Python snippets on an injected runtime and collects their output."""

    def __init__(
        self,
        runtime: Optional[PythonRuntime],
        timeout_seconds: float = 10.0,
        max_output_chars: int = 20000,
    ):
        self.runtime = runtime
        self.timeout_seconds = timeout_seconds
        self.max_output_chars = max_output_chars

    async def run(self, code: str) -> ExecutionResult:
        runtime = self.runtime
        if runtime is None:
            logger.warning("Python run requested but no interpreter runtime is loaded")
            return ExecutionResult.console(
                NOT_LOADED_MESSAGE,
                is_error=True,
                error_kind=ErrorKind.CONFIGURATION,
            )

        output_buffer: List[str] = []

        def read(name: str) -> str:
            files = runtime.builtin_files
            if files is None or name not in files:
                raise ModuleResolutionError(name)
            return files[name]

        runtime.configure(output=output_buffer.append, read=read, python3=True)

        start_time = time.time()
        try:
            await asyncio.wait_for(runtime.run_main(code), timeout=self.timeout_seconds)
        except (asyncio.TimeoutError, ExecutionTimeout):
            execution_time = time.time() - start_time
            logger.warning(f"Python snippet timed out after {execution_time:.3f}s")
            return ExecutionResult.console(
                "Timeout Error: " + str(ExecutionTimeout(self.timeout_seconds)),
                is_error=True,
                error_kind=ErrorKind.TIMEOUT,
                execution_time=execution_time,
            )
        except Exception as e:
            # Partial output is dropped on interpreter errors
            execution_time = time.time() - start_time
            logger.info(f"Python snippet raised {type(e).__name__} after {execution_time:.3f}s")
            return ExecutionResult.console(
                str(e) or type(e).__name__,
                is_error=True,
                error_kind=ErrorKind.INTERPRETER,
                execution_time=execution_time,
            )

        content = truncate_output("".join(output_buffer) or SUCCESS_MESSAGE, self.max_output_chars)

        return ExecutionResult.console(
            content,
            execution_time=time.time() - start_time,
        )

    def health_check(self):
        if self.runtime is None:
            return {"status": "unavailable", "runtime": None}
        check = getattr(self.runtime, "health_check", None)
        if check is not None:
            return check()
        return {"status": "healthy", "runtime": getattr(self.runtime, "name", type(self.runtime).__name__)}
