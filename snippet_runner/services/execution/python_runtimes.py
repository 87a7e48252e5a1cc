"""
Concrete Python interpreter runtimes for the PythonAdapter.

Both runtimes run the snippet in a separate interpreter process started
through the ``python_child`` entry script. Imports are resolved lazily in
the child against the configured module list (the standard library minus
networking and process-control modules); a failed resolution is reported
through the adapter's resolver as "File not found".
"""

import asyncio
import logging
import math
import re
import sys
import tempfile
import time
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, List, Optional, Tuple

from . import python_child
from .container import ContainerSandbox, ProcessOutput
from .exceptions import ConfigurationError, ExecutionTimeout, InterpreterError
from .models import TRUNCATION_SUFFIX

logger = logging.getLogger(__name__)

_LINE_PATTERN = re.compile(r'File "(?:[^"]*/)?main\.py", line (\d+)')
_MISSING_MODULE_PATTERN = re.compile(r"^(?:ImportError|ModuleNotFoundError): File not found: '([^']+)'$")
_MEMORY_UNITS = {"b": 1, "k": 1024, "m": 1024 ** 2, "g": 1024 ** 3}

CHILD_SOURCE = Path(python_child.__file__).read_text(encoding="utf-8")

DEFAULT_MEMORY_BYTES = 256 * 1024 ** 2
DEFAULT_OUTPUT_LIMIT = 1024 ** 2
_READ_CHUNK = 64 * 1024


def stdlib_modules(denied: FrozenSet[str]) -> Dict[str, str]:
    """
    Importable standard library modules, keyed by top-level name.

    Private modules follow their public counterpart, so denying ``socket``
    also denies ``_socket``.
    """
    return {
        name: name
        for name in sys.stdlib_module_names
        if name.lstrip("_") not in denied
    }


def parse_memory_limit(limit: str) -> int:
    """Convert a Docker-style size ("128m", "1g", "65536") to bytes."""
    text = (limit or "").strip().lower()
    if not text:
        return 0
    unit = text[-1]
    if unit in _MEMORY_UNITS:
        return int(float(text[:-1]) * _MEMORY_UNITS[unit])
    return int(text)


def describe_failure(stderr: str, exit_code: int) -> str:
    """
    Condense an interpreter traceback into a one-line error message.

    "NameError: name 'x' is not defined" becomes
    "NameError: name 'x' is not defined on line 3" when the traceback points
    into the snippet.
    """
    lines = [line.strip() for line in (stderr or "").splitlines() if line.strip()]
    if not lines:
        return f"Process exited with code {exit_code}"

    message = lines[-1]
    line_numbers = _LINE_PATTERN.findall(stderr)
    if line_numbers:
        return f"{message} on line {line_numbers[-1]}"
    return message


def missing_module(stderr: str) -> Optional[str]:
    """Name of the module whose resolution failed, if that ended the run."""
    lines = [line.strip() for line in (stderr or "").splitlines() if line.strip()]
    if not lines:
        return None
    match = _MISSING_MODULE_PATTERN.match(lines[-1])
    return match.group(1) if match else None


async def read_bounded(stream: asyncio.StreamReader, limit: int, on_overflow: Callable[[], None]) -> Tuple[bytes, bool]:
    """
    Read ``stream`` to EOF keeping at most ``limit`` bytes.

    ``on_overflow`` is called once the limit is passed; reading continues
    until EOF so the writer is never blocked on a full pipe.
    """
    chunks: List[bytes] = []
    size = 0
    overflowed = False
    while True:
        chunk = await stream.read(_READ_CHUNK)
        if not chunk:
            return b"".join(chunks), overflowed
        if overflowed:
            continue
        room = limit - size
        if len(chunk) > room:
            chunks.append(chunk[:room])
            size = limit
            overflowed = True
            on_overflow()
        else:
            chunks.append(chunk)
            size += len(chunk)


class _BaseRuntime:
    """Shared configure/run flow; subclasses supply _execute()."""

    name = "base"

    def __init__(
        self,
        denied_modules: FrozenSet[str] = frozenset(),
        memory_bytes: int = DEFAULT_MEMORY_BYTES,
        cpu_seconds: int = 0,
    ):
        self.builtin_files = stdlib_modules(denied_modules)
        self.memory_bytes = memory_bytes
        self.cpu_seconds = cpu_seconds
        self._output: Optional[Callable[[str], None]] = None
        self._read: Optional[Callable[[str], str]] = None

    def configure(
        self,
        output: Callable[[str], None],
        read: Callable[[str], str],
        python3: bool = True,
    ) -> None:
        if not python3:
            raise ConfigurationError(f"The {self.name} runtime only supports Python 3")
        self._output = output
        self._read = read

    async def run_main(self, code: str) -> None:
        if self._output is None or self._read is None:
            raise ConfigurationError(f"The {self.name} runtime was used before configure()")

        result = await self._execute(code)

        if result.timed_out:
            raise ExecutionTimeout(result.execution_time)
        if result.stdout:
            self._output(result.stdout)
        if result.truncated:
            self._output(TRUNCATION_SUFFIX)
            return
        if result.exit_code != 0:
            name = missing_module(result.stderr)
            if name is not None:
                # Raises ModuleResolutionError for names the resolver does not know
                self._read(name)
            raise InterpreterError(describe_failure(result.stderr, result.exit_code))

    def _child_environment(self, code: str) -> Dict[str, str]:
        return {
            python_child.SOURCE_VAR: code,
            python_child.MODULES_VAR: ",".join(sorted(self.builtin_files or {})),
            python_child.MEMORY_VAR: str(self.memory_bytes),
            python_child.CPU_VAR: str(self.cpu_seconds),
        }

    async def _execute(self, code: str) -> ProcessOutput:
        raise NotImplementedError


class SubprocessPythonRuntime(_BaseRuntime):
    """
    Runs snippets in an isolated child interpreter (``python -I``).

    The child gets an empty working directory, no stdin and a minimal
    environment, caps its own memory and audits its own file, network and
    process access. Output past ``output_limit`` bytes kills the child.
    Cancellation kills the child.
    """

    name = "subprocess"

    def __init__(
        self,
        python_executable: Optional[str] = None,
        denied_modules: FrozenSet[str] = frozenset(),
        memory_bytes: int = DEFAULT_MEMORY_BYTES,
        cpu_seconds: int = 0,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
    ):
        super().__init__(denied_modules, memory_bytes, cpu_seconds)
        self.python_executable = python_executable or sys.executable
        self.output_limit = output_limit

    async def _execute(self, code: str) -> ProcessOutput:
        start_time = time.time()
        with tempfile.TemporaryDirectory(prefix="snippet_py_") as tmpdir:
            environment = self._child_environment(code)
            environment["TMPDIR"] = tmpdir

            try:
                proc = await asyncio.create_subprocess_exec(
                    self.python_executable, "-I", "-B", "-c", CHILD_SOURCE,
                    cwd=tmpdir,
                    env=environment,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.PIPE,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ConfigurationError(f"Python interpreter failed to start: {e}") from e

            def kill():
                if proc.returncode is None:
                    logger.warning(f"Python child exceeded {self.output_limit} bytes of output, killing it")
                    proc.kill()

            try:
                (stdout, stdout_overflow), (stderr, stderr_overflow) = await asyncio.gather(
                    read_bounded(proc.stdout, self.output_limit, kill),
                    read_bounded(proc.stderr, self.output_limit, kill),
                )
                await proc.wait()
            except asyncio.CancelledError:
                if proc.returncode is None:
                    proc.kill()
                await proc.wait()
                logger.warning("Python child process killed after cancellation")
                raise

        return ProcessOutput(
            stdout=stdout.decode("utf-8", errors="replace"),
            stderr=stderr.decode("utf-8", errors="replace"),
            exit_code=proc.returncode,
            execution_time=time.time() - start_time,
            truncated=stdout_overflow or stderr_overflow,
        )

    def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy",
            "runtime": self.name,
            "python_executable": self.python_executable,
            "memory_bytes": self.memory_bytes,
            "output_limit": self.output_limit,
        }


class DockerPythonRuntime(_BaseRuntime):
    """Runs snippets in a throwaway, network-less Python container."""

    name = "docker"

    def __init__(self, sandbox: ContainerSandbox, denied_modules: FrozenSet[str] = frozenset()):
        # The container enforces memory; the child only adds the import and audit guards
        super().__init__(denied_modules, memory_bytes=0)
        self.sandbox = sandbox

    @classmethod
    def from_settings(cls, settings) -> "DockerPythonRuntime":
        sandbox = ContainerSandbox(
            image_name=settings.python_image,
            memory_limit=settings.memory_limit,
            cpu_quota=settings.cpu_quota,
            timeout=settings.python_timeout_seconds,
        )
        return cls(sandbox, denied_modules=settings.denied_modules)

    async def _execute(self, code: str) -> ProcessOutput:
        environment = self._child_environment(code)
        environment["PYTHONUNBUFFERED"] = "1"
        return await asyncio.to_thread(
            self.sandbox.run,
            ["python", "-I", "-B", "-c", CHILD_SOURCE],
            environment,
        )

    def health_check(self) -> Dict[str, Any]:
        health = self.sandbox.health_check()
        health["runtime"] = self.name
        return health


def load_python_runtime(settings) -> Optional[_BaseRuntime]:
    """
    Build the interpreter runtime named by ``settings.python_runtime``.

    Returns None when the runtime is disabled or cannot be loaded; Python
    runs then report a configuration error instead of failing.
    """
    kind = (settings.python_runtime or "none").lower()
    if kind in ("none", "disabled", "off"):
        logger.info("Python runtime disabled by configuration")
        return None

    try:
        if kind == "subprocess":
            logger.warning("Python snippets run as local child processes; use PYTHON_RUNTIME=docker for full isolation")
            runtime = SubprocessPythonRuntime(
                denied_modules=settings.denied_modules,
                memory_bytes=parse_memory_limit(settings.memory_limit),
                cpu_seconds=math.ceil(settings.python_timeout_seconds) + 1,
                # UTF-8 needs up to four bytes per character
                output_limit=settings.max_output_chars * 4 + 1 if settings.max_output_chars else DEFAULT_OUTPUT_LIMIT,
            )
        elif kind == "docker":
            runtime = DockerPythonRuntime.from_settings(settings)
        else:
            logger.error(f"Unknown PYTHON_RUNTIME value: {kind!r}")
            return None
    except ConfigurationError as e:
        logger.error(f"Python runtime '{kind}' could not be loaded: {e}")
        return None

    logger.info(f"Python runtime loaded: {runtime.name}")
    return runtime
