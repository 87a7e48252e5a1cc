"""
HTML/CSS preview path.

Nothing is executed here: the markup is returned verbatim and later served
as a standalone document under a CSP sandbox, so its scripts run in an
opaque origin with no access to the host application.
"""

from typing import Dict, Tuple

from .models import ExecutionResult, ResultKind

# Scripts allowed; same-origin, forms, popups and top navigation are not
PREVIEW_SANDBOX_POLICY = "sandbox allow-scripts"


class PreviewRenderer:
    """Passes HTML/CSS snippets through to an isolated rendering surface."""

    def run(self, code: str) -> ExecutionResult:
        return ExecutionResult(kind=ResultKind.PREVIEW, content=code, is_error=False)

    def render_document(self, markup: str) -> Tuple[str, Dict[str, str]]:
        """Return the document body and the headers that isolate it."""
        headers = {
            "Content-Security-Policy": PREVIEW_SANDBOX_POLICY,
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "no-referrer",
            "Cache-Control": "no-store",
        }
        return markup, headers
