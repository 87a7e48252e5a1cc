"""
Process runners for the JavaScript sandbox.

A runner takes a complete harness script and returns the raw process
output. NodeProcessRunner uses a local Node.js binary; DockerNodeRunner
runs the same script inside a hardened container.
"""

import logging
import shutil
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Dict, Optional

from .container import ContainerSandbox, ProcessOutput
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# String code generation stays off in the host context; node:vm is unaffected
NODE_FLAGS = ["--disallow-code-generation-from-strings", "--max-old-space-size=64"]

# Extra wall-clock time granted to the process on top of the in-script deadline
GRACE_SECONDS = 2.0


class NodeProcessRunner:
    """Runs harness scripts with the local ``node`` binary."""

    name = "node"

    def __init__(self, node_binary: Optional[str] = None, timeout: float = 5.0):
        self.node_path = node_binary or shutil.which("node")
        self.timeout = timeout + GRACE_SECONDS

    def available(self) -> bool:
        return bool(self.node_path)

    def run(self, script: str) -> ProcessOutput:
        if not self.node_path:
            raise ConfigurationError(
                "JavaScript execution environment (Node.js) not found. Install Node.js to run JavaScript snippets."
            )

        start_time = time.time()
        with tempfile.TemporaryDirectory(prefix="snippet_js_") as tmpdir:
            script_path = Path(tmpdir) / "harness.js"
            script_path.write_text(script, encoding="utf-8")

            try:
                proc = subprocess.run(
                    [self.node_path, *NODE_FLAGS, str(script_path)],
                    cwd=tmpdir,
                    env={},
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    text=True,
                    encoding="utf-8",
                    errors="replace",
                    timeout=self.timeout,
                )
            except subprocess.TimeoutExpired:
                execution_time = time.time() - start_time
                logger.warning(f"Node process killed after {execution_time:.3f}s")
                return ProcessOutput(
                    stdout="",
                    stderr="",
                    exit_code=-1,
                    execution_time=execution_time,
                    timed_out=True,
                )
            except OSError as e:
                logger.error(f"Failed to start Node.js at {self.node_path}: {e}")
                raise ConfigurationError(f"JavaScript execution environment failed to start: {e}") from e

        return ProcessOutput(
            stdout=proc.stdout or "",
            stderr=proc.stderr or "",
            exit_code=int(proc.returncode),
            execution_time=time.time() - start_time,
        )

    def health_check(self) -> Dict[str, Any]:
        return {
            "status": "healthy" if self.available() else "unavailable",
            "runner": self.name,
            "node_path": self.node_path,
            "timeout": self.timeout,
        }


class DockerNodeRunner:
    """Runs harness scripts inside a throwaway Node.js container."""

    name = "docker"

    def __init__(self, sandbox: ContainerSandbox):
        self.sandbox = sandbox

    @classmethod
    def from_settings(cls, settings) -> "DockerNodeRunner":
        return cls(
            ContainerSandbox(
                image_name=settings.node_image,
                memory_limit=settings.memory_limit,
                cpu_quota=settings.cpu_quota,
                timeout=settings.js_timeout_seconds + GRACE_SECONDS,
            )
        )

    def available(self) -> bool:
        return self.sandbox.health_check()["status"] == "healthy"

    def run(self, script: str) -> ProcessOutput:
        return self.sandbox.run(["node", *NODE_FLAGS, "-e", script])

    def health_check(self) -> Dict[str, Any]:
        health = self.sandbox.health_check()
        health["runner"] = self.name
        return health


class UnavailableRunner:
    """Stands in for a runner that failed to load; every run reports why."""

    name = "unavailable"

    def __init__(self, reason: str):
        self.reason = reason

    def available(self) -> bool:
        return False

    def run(self, script: str) -> ProcessOutput:
        raise ConfigurationError(self.reason)

    def health_check(self) -> Dict[str, Any]:
        return {"status": "unavailable", "runner": self.name, "error": self.reason}


def load_js_runner(settings):
    """Build the JavaScript runner named by ``settings.js_runner``."""
    kind = (settings.js_runner or "node").lower()
    if kind == "node":
        runner = NodeProcessRunner(settings.node_binary, timeout=settings.js_timeout_seconds)
        if not runner.available():
            logger.warning("Node.js not found on PATH; JavaScript runs will report a configuration error")
        return runner
    if kind == "docker":
        try:
            return DockerNodeRunner.from_settings(settings)
        except ConfigurationError as e:
            logger.error(f"Docker JavaScript runner could not be loaded: {e}")
            return UnavailableRunner(str(e))
    logger.error(f"Unknown JS_RUNNER value: {kind!r}")
    return UnavailableRunner(f"Unknown JavaScript runner '{kind}'")
