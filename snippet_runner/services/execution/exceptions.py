"""
Exception types raised inside the execution service.

None of these escape the engine: executors convert them into
ExecutionResult values carrying the matching ErrorKind.
"""


class SandboxError(Exception):
    """Base class for execution service failures"""


class ConfigurationError(SandboxError):
    """A runner or interpreter runtime is missing or misconfigured"""


class InterpreterError(SandboxError):
    """The embedded interpreter raised while running a snippet"""


class ModuleResolutionError(InterpreterError):
    """An import could not be resolved by the module resolver"""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"File not found: '{name}'")


class ExecutionTimeout(SandboxError):
    """A snippet exceeded its wall-clock deadline"""

    def __init__(self, seconds: float):
        self.seconds = seconds
        super().__init__(f"Execution exceeded {seconds:g} second time limit")
