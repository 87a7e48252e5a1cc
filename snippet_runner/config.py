"""
Runtime configuration for the snippet runner.

Values come from environment variables (a local .env file is honoured),
with defaults tuned for short AI-generated snippets.
"""

import os
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional

from dotenv import load_dotenv

load_dotenv()


DEFAULT_DENIED_MODULES = frozenset({
    "socket", "ssl", "http", "urllib", "ftplib", "smtplib", "poplib",
    "imaplib", "telnetlib", "xmlrpc", "subprocess",
    "multiprocessing", "ctypes", "importlib",
})


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if not raw:
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    return float(raw) if raw else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    return int(raw) if raw else default


@dataclass
class Settings:
    """Execution service settings"""

    # JavaScript sandbox
    js_runner: str = "node"                 # "node" or "docker"
    node_binary: Optional[str] = None       # resolved from PATH when unset
    node_image: str = "node:20-alpine"
    js_timeout_seconds: float = 5.0

    # Python interpreter runtime
    python_runtime: str = "docker"          # "docker", "subprocess" or "none"
    python_image: str = "python:3.10-alpine"
    python_timeout_seconds: float = 10.0
    denied_modules: FrozenSet[str] = DEFAULT_DENIED_MODULES

    # Resource limits (containers; memory also caps the subprocess runtime)
    memory_limit: str = "128m"
    cpu_quota: int = 50000  # 50% of one CPU core

    max_output_chars: int = 20000
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: List[str] = field(default_factory=lambda: ["http://localhost:5173"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            js_runner=os.getenv("JS_RUNNER", "node").lower(),
            node_binary=os.getenv("NODE_BINARY") or None,
            node_image=os.getenv("NODE_IMAGE", "node:20-alpine"),
            js_timeout_seconds=_env_float("JS_TIMEOUT_SECONDS", 5.0),
            python_runtime=os.getenv("PYTHON_RUNTIME", "docker").lower(),
            python_image=os.getenv("PYTHON_IMAGE", "python:3.10-alpine"),
            python_timeout_seconds=_env_float("PYTHON_TIMEOUT_SECONDS", 10.0),
            denied_modules=frozenset(_env_list("DENIED_MODULES", sorted(DEFAULT_DENIED_MODULES))),
            memory_limit=os.getenv("SANDBOX_MEMORY_LIMIT", "128m"),
            cpu_quota=_env_int("SANDBOX_CPU_QUOTA", 50000),
            max_output_chars=_env_int("MAX_OUTPUT_CHARS", 20000),
            host=os.getenv("HOST", "0.0.0.0"),
            port=_env_int("PORT", 8000),
            cors_origins=_env_list("CORS_ORIGINS", ["http://localhost:5173"]),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )


settings = Settings.from_env()
