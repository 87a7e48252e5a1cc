"""
JavaScript sandbox executor.

Snippets run in a fresh node:vm context inside a separate process. The only
global injected into the context is a mock console; everything the console
records is shipped back as JSON and turned into display lines here, with
logged objects going through the safe serializer.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from .container import ProcessOutput
from .exceptions import ConfigurationError, ExecutionTimeout
from .js_values import decode_value
from .models import ErrorKind, ExecutionResult, truncate_output
from .serializer import safe_serialize

logger = logging.getLogger(__name__)


NO_OUTPUT_MESSAGE = "Code executed successfully (no output)."

LINE_PREFIXES = {
    "error": "Error: ",
    "warn": "Warning: ",
    "info": "Info: ",
    "syntax": "Syntax Error: ",
    "runtime": "Error: ",
}


# Evaluated inside the snippet's context. Defines the mock console and
# returns a function handing back everything it recorded.
CONSOLE_BOOTSTRAP = r"""
(function () {
  "use strict";
  var records = [];
  var ambient = globalThis;

  function coerce(value) {
    try {
      return String(value);
    } catch (e) {
      try {
        return Object.prototype.toString.call(value);
      } catch (ignored) {
        return "[object Object]";
      }
    }
  }

  function isElement(value) {
    return typeof Element !== "undefined" && value instanceof Element;
  }

  function encode(value) {
    var nodes = [];
    var ids = new Map();

    function ref(v) {
      if (v === null) return { t: "null" };
      switch (typeof v) {
        case "undefined": return { t: "undefined" };
        case "string": return { t: "str", v: v };
        case "number": return isFinite(v) ? { t: "num", v: v } : { t: "null" };
        case "boolean": return { t: "bool", v: v };
        case "bigint": return { t: "bigint", v: coerce(v) };
        case "symbol": return { t: "symbol", v: coerce(v) };
        case "function": return { t: "function", v: coerce(v) };
      }
      if (ids.has(v)) return { t: "ref", id: ids.get(v) };
      var id = nodes.length;
      var node = {};
      ids.set(v, id);
      nodes.push(node);
      fill(node, v);
      return { t: "ref", id: id };
    }

    function fill(node, v) {
      node.text = coerce(v);
      if (v === ambient) {
        node.t = "global";
        node.name = "window";
        return;
      }
      if (typeof document !== "undefined" && v === document) {
        node.t = "global";
        node.name = "document";
        return;
      }
      if (isElement(v)) {
        node.t = "element";
        node.html = coerce(v.outerHTML);
        return;
      }
      try {
        if (typeof v.toJSON === "function") {
          node.t = "json";
          node.value = ref(v.toJSON());
          return;
        }
        if (Array.isArray(v)) {
          node.t = "array";
          node.items = [];
          for (var i = 0; i < v.length; i++) node.items.push(ref(v[i]));
          return;
        }
        var keys = Object.keys(v);
        node.t = "object";
        node.entries = [];
        for (var k = 0; k < keys.length; k++) node.entries.push([keys[k], ref(v[keys[k]])]);
      } catch (e) {
        node.t = "unreadable";
        node.message = coerce(e && e.message);
      }
    }

    return { root: ref(value), nodes: nodes };
  }

  function joined(args) {
    var parts = [];
    for (var i = 0; i < args.length; i++) parts.push(coerce(args[i]));
    return parts.join(" ");
  }

  var mockConsole = {
    log: function () {
      var parts = [];
      for (var i = 0; i < arguments.length; i++) {
        var a = arguments[i];
        if (typeof a !== "object") {
          parts.push({ t: "text", v: coerce(a) });
          continue;
        }
        try {
          parts.push({ t: "value", value: encode(a), text: coerce(a) });
        } catch (e) {
          parts.push({ t: "text", v: coerce(a) });
        }
      }
      records.push({ level: "log", parts: parts });
    },
    error: function () { records.push({ level: "error", text: joined(arguments) }); },
    warn: function () { records.push({ level: "warn", text: joined(arguments) }); },
    info: function () { records.push({ level: "info", text: joined(arguments) }); }
  };

  Object.defineProperty(globalThis, "console", {
    value: mockConsole,
    writable: true,
    configurable: true
  });

  return function drain() { return records; };
})();
"""


HARNESS_TEMPLATE = r"""
"use strict";
const vm = require("vm");

const TIMEOUT_MS = __TIMEOUT_MS__;
const BOOTSTRAP = __BOOTSTRAP__;
const SOURCE = __SOURCE__;

function describe(e) {
  try {
    return String(e && e.message !== undefined ? e.message : e);
  } catch (ignored) {
    return "Unknown error";
  }
}

const context = vm.createContext({}, { codeGeneration: { strings: false, wasm: false } });
const drain = vm.runInContext(BOOTSTRAP, context);
const trailer = [];

let script = null;
try {
  script = new vm.Script(
    "(function () {\n" + SOURCE + "\n})();",
    { filename: "snippet.js" }
  );
} catch (e) {
  trailer.push({ level: "syntax", text: describe(e) });
}

if (script !== null) {
  try {
    script.runInContext(context, { timeout: TIMEOUT_MS });
  } catch (e) {
    if (e && e.code === "ERR_SCRIPT_EXECUTION_TIMEOUT") {
      trailer.push({ level: "timeout", text: describe(e) });
    } else {
      trailer.push({ level: "runtime", text: describe(e) });
    }
  }
}

const records = [];
const captured = drain();
for (let i = 0; i < captured.length; i++) records.push(captured[i]);
for (const record of trailer) records.push(record);

let payload;
try {
  payload = JSON.stringify({ records: records });
} catch (e) {
  payload = JSON.stringify({
    records: [{ level: "error", text: "Console output could not be captured: " + describe(e) }]
  });
}
process.stdout.write(payload);
"""


def build_harness(code: str, timeout_seconds: float) -> str:
    """Embed a snippet into the Node.js harness script."""
    # The snippet goes in last so its text is never scanned for placeholders
    return (
        HARNESS_TEMPLATE
        .replace("__TIMEOUT_MS__", str(max(1, int(timeout_seconds * 1000))))
        .replace("__BOOTSTRAP__", json.dumps(CONSOLE_BOOTSTRAP))
        .replace("__SOURCE__", json.dumps(code))
    )


def render_part(part: Dict[str, Any]) -> str:
    if part.get("t") != "value":
        return str(part.get("v", ""))
    try:
        value = decode_value(part.get("value") or {})
    except Exception as e:
        logger.warning(f"Could not decode logged value, using its string form: {e}")
        return str(part.get("text", ""))
    return safe_serialize(value)


def format_records(records: List[Dict[str, Any]]) -> Tuple[List[str], Optional[ErrorKind], bool]:
    """
    Turn console records into display lines.

    Returns the lines, the most significant error kind seen, and whether the
    run timed out.
    """
    lines: List[str] = []
    error_kind: Optional[ErrorKind] = None
    timed_out = False

    for record in records:
        level = record.get("level")
        if level == "log":
            lines.append(" ".join(render_part(part) for part in record.get("parts", [])))
        elif level == "timeout":
            timed_out = True
        elif level in LINE_PREFIXES:
            lines.append(LINE_PREFIXES[level] + str(record.get("text", "")))
            if level == "syntax":
                error_kind = ErrorKind.SYNTAX
            elif level == "runtime":
                error_kind = ErrorKind.RUNTIME
        else:
            logger.warning(f"Ignoring unknown console record level: {level!r}")

    return lines, error_kind, timed_out


class JsSandboxExecutor:
    """
    Runs JavaScript snippets with a mock console.

    Isolation:
    - Separate process (local Node.js or a container)
    - Fresh vm context; ``console`` is the only injected global
    - eval / new Function disabled in the snippet's context
    - Wall-clock deadline inside the context plus a process-level backstop
    """

    def __init__(self, runner, timeout_seconds: float = 5.0, max_output_chars: int = 20000):
        self.runner = runner
        self.timeout_seconds = timeout_seconds
        self.max_output_chars = max_output_chars

    def run(self, code: str) -> ExecutionResult:
        start_time = time.time()
        timeout_message = "Timeout Error: " + str(ExecutionTimeout(self.timeout_seconds))

        try:
            output = self.runner.run(build_harness(code, self.timeout_seconds))
        except ConfigurationError as e:
            logger.error(f"JavaScript runner unavailable: {e}")
            return ExecutionResult.console(
                str(e),
                is_error=True,
                error_kind=ErrorKind.CONFIGURATION,
                execution_time=time.time() - start_time,
            )

        if output.timed_out:
            return ExecutionResult.console(
                timeout_message,
                is_error=True,
                error_kind=ErrorKind.TIMEOUT,
                execution_time=output.execution_time,
            )

        records = self._parse_records(output)
        if records is None:
            detail = _last_line(output.stderr) or f"exit code {output.exit_code}"
            logger.error(f"JavaScript harness produced no records: {detail}")
            return ExecutionResult.console(
                f"Error: JavaScript sandbox failed ({detail})",
                is_error=True,
                error_kind=ErrorKind.INTERNAL,
                execution_time=output.execution_time,
            )

        lines, error_kind, timed_out = format_records(records)
        if timed_out:
            lines.append(timeout_message)
            error_kind = ErrorKind.TIMEOUT
        if not lines:
            lines.append(NO_OUTPUT_MESSAGE)

        logger.info(f"JavaScript snippet produced {len(lines)} line(s) in {output.execution_time:.3f}s")

        return ExecutionResult.console(
            truncate_output("\n".join(lines), self.max_output_chars),
            is_error=timed_out,
            error_kind=error_kind,
            execution_time=output.execution_time,
        )

    def _parse_records(self, output: ProcessOutput) -> Optional[List[Dict[str, Any]]]:
        try:
            payload = json.loads(output.stdout)
        except ValueError:
            return None
        records = payload.get("records") if isinstance(payload, dict) else None
        return records if isinstance(records, list) else None

    def health_check(self) -> Dict[str, Any]:
        return self.runner.health_check()


def _last_line(text: str) -> str:
    lines = [line for line in (text or "").splitlines() if line.strip()]
    return lines[-1].strip() if lines else ""
