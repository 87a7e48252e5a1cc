import asyncio
import json
import shutil

import pytest

from snippet_runner.services.execution.container import ProcessOutput


requires_node = pytest.mark.skipif(shutil.which("node") is None, reason="Node.js is not installed")


class CannedRunner:
    """JS runner double returning a fixed harness payload."""

    name = "canned"

    def __init__(self, records=None, stdout=None, stderr="", exit_code=0, timed_out=False):
        if stdout is None:
            stdout = json.dumps({"records": records or []})
        self.output = ProcessOutput(
            stdout=stdout,
            stderr=stderr,
            exit_code=exit_code,
            execution_time=0.01,
            timed_out=timed_out,
        )
        self.scripts = []

    def available(self):
        return True

    def run(self, script):
        self.scripts.append(script)
        return self.output

    def health_check(self):
        return {"status": "healthy", "runner": self.name}


class FakePythonRuntime:
    """PythonRuntime double driven by a coroutine function."""

    name = "fake"

    def __init__(self, program=None, builtin_files=None):
        self.program = program
        self.builtin_files = builtin_files if builtin_files is not None else {"math": "math"}
        self.configure_calls = 0
        self.output = None
        self.read = None

    def configure(self, output, read, python3=True):
        self.configure_calls += 1
        self.output = output
        self.read = read

    async def run_main(self, code):
        if self.program is not None:
            await self.program(self, code)


def log_record(*parts):
    return {"level": "log", "parts": [{"t": "text", "v": p} for p in parts]}


@pytest.fixture
def run():
    return asyncio.run
