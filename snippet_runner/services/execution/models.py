"""
Data model shared by the executors, the dispatcher and the result store.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class Language(str, Enum):
    """Closed set of execution strategies, resolved once per request"""
    JAVASCRIPT = "javascript"
    PYTHON = "python"
    HTML_CSS = "html/css"
    UNSUPPORTED = "unsupported"

    @classmethod
    def from_tag(cls, tag: Optional[str]) -> "Language":
        """Resolve a free-form, case-insensitive language tag."""
        return _ALIASES.get((tag or "").strip().lower(), cls.UNSUPPORTED)


_ALIASES = {
    "javascript": Language.JAVASCRIPT,
    "js": Language.JAVASCRIPT,
    "node": Language.JAVASCRIPT,
    "python": Language.PYTHON,
    "py": Language.PYTHON,
    "python3": Language.PYTHON,
    "html": Language.HTML_CSS,
    "htm": Language.HTML_CSS,
    "css": Language.HTML_CSS,
    "html/css": Language.HTML_CSS,
}


class ResultKind(str, Enum):
    CONSOLE = "console"
    PREVIEW = "preview"


class ErrorKind(str, Enum):
    CONFIGURATION = "configuration"
    SYNTAX = "syntax"
    RUNTIME = "runtime"
    INTERPRETER = "interpreter"
    UNSUPPORTED_LANGUAGE = "unsupported_language"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


RUNNING_MESSAGE = "Running..."


@dataclass(frozen=True)
class ExecutionRequest:
    """One Run click: a snippet and the tag of the fence it came from."""
    code: str
    language_tag: str
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def language(self) -> Language:
        return Language.from_tag(self.language_tag)


@dataclass(frozen=True)
class ExecutionResult:
    """
    Uniform outcome of any execution strategy.

    CONSOLE results hold newline-joined log text, PREVIEW results hold raw
    markup for an isolated rendering surface. Results are replaced, never
    mutated.
    """
    kind: ResultKind
    content: str
    is_error: bool = False
    error_kind: Optional[ErrorKind] = None
    request_id: Optional[str] = None
    execution_time: float = 0.0

    @classmethod
    def console(cls, content: str, **kwargs) -> "ExecutionResult":
        return cls(kind=ResultKind.CONSOLE, content=content, **kwargs)

    @classmethod
    def running(cls, request_id: Optional[str] = None) -> "ExecutionResult":
        return cls(kind=ResultKind.CONSOLE, content=RUNNING_MESSAGE, request_id=request_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "content": self.content,
            "is_error": self.is_error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "request_id": self.request_id,
            "execution_time": round(self.execution_time, 3),
        }


TRUNCATION_SUFFIX = "\n... (output truncated)"


def truncate_output(content: str, limit: int) -> str:
    """Cut console content at ``limit`` characters (0 disables the cap)."""
    if limit and len(content) > limit:
        return content[:limit] + TRUNCATION_SUFFIX
    return content
