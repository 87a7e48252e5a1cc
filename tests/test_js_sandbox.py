import json

import pytest

from snippet_runner.services.execution.js_sandbox import (
    NO_OUTPUT_MESSAGE,
    JsSandboxExecutor,
    build_harness,
    format_records,
)
from snippet_runner.services.execution.models import ErrorKind, ResultKind
from snippet_runner.services.execution.runners import NodeProcessRunner, UnavailableRunner

from .conftest import CannedRunner, log_record, requires_node


# --- Record formatting (no Node.js needed) ---

def test_log_lines_keep_call_order():
    runner = CannedRunner([log_record("first"), log_record("second", "2"), log_record("third")])
    result = JsSandboxExecutor(runner).run("ignored")

    assert result.kind == ResultKind.CONSOLE
    assert result.content == "first\nsecond 2\nthird"
    assert result.is_error is False


def test_console_levels_are_prefixed():
    lines, error_kind, timed_out = format_records([
        {"level": "error", "text": "bad"},
        {"level": "warn", "text": "careful"},
        {"level": "info", "text": "fyi"},
    ])
    assert lines == ["Error: bad", "Warning: careful", "Info: fyi"]
    assert error_kind is None
    assert timed_out is False


def test_logged_objects_go_through_serializer():
    encoded = {
        "root": {"t": "ref", "id": 0},
        "nodes": [{"t": "object", "text": "[object Object]", "entries": [["self", {"t": "ref", "id": 0}]]}],
    }
    runner = CannedRunner([{"level": "log", "parts": [{"t": "text", "v": "obj:"}, {"t": "value", "value": encoded}]}])

    result = JsSandboxExecutor(runner).run("ignored")

    assert result.content == 'obj: {\n  "self": "[Circular]"\n}'


def test_runtime_error_record():
    runner = CannedRunner([log_record("a"), {"level": "runtime", "text": "Cannot read properties of null (reading 'x')"}])
    result = JsSandboxExecutor(runner).run("console.log('a'); null.x;")

    assert result.content == "a\nError: Cannot read properties of null (reading 'x')"
    assert result.is_error is False
    assert result.error_kind == ErrorKind.RUNTIME


def test_undecodable_value_falls_back_to_its_text():
    broken = {"t": "value", "value": {"root": {"t": "ref", "id": 7}, "nodes": []}, "text": "[object Object]"}
    runner = CannedRunner([log_record("before"), {"level": "log", "parts": [{"t": "text", "v": "obj:"}, broken]}])

    result = JsSandboxExecutor(runner).run("ignored")

    assert result.content == "before\nobj: [object Object]"
    assert result.is_error is False


def test_no_output_sentinel():
    result = JsSandboxExecutor(CannedRunner([])).run("let x = 1;")
    assert result.content == NO_OUTPUT_MESSAGE
    assert result.is_error is False


def test_syntax_error_record():
    runner = CannedRunner([{"level": "syntax", "text": "Unexpected token ')'"}])
    result = JsSandboxExecutor(runner).run("console.log(1));")

    assert result.content == "Syntax Error: Unexpected token ')'"
    assert result.is_error is False
    assert result.error_kind == ErrorKind.SYNTAX


def test_in_script_timeout_keeps_earlier_lines():
    runner = CannedRunner([log_record("before"), {"level": "timeout", "text": "Script execution timed out"}])
    result = JsSandboxExecutor(runner, timeout_seconds=2).run("while (true) {}")

    assert result.content.splitlines() == [
        "before",
        "Timeout Error: Execution exceeded 2 second time limit",
    ]
    assert result.is_error is True
    assert result.error_kind == ErrorKind.TIMEOUT


def test_process_timeout():
    result = JsSandboxExecutor(CannedRunner(timed_out=True), timeout_seconds=1).run("for (;;) {}")
    assert result.is_error is True
    assert result.error_kind == ErrorKind.TIMEOUT


def test_unparseable_harness_output():
    runner = CannedRunner(stdout="", stderr="FATAL ERROR: heap out of memory\n", exit_code=134)
    result = JsSandboxExecutor(runner).run("const a = []; for (;;) a.push(a);")

    assert result.is_error is True
    assert result.error_kind == ErrorKind.INTERNAL
    assert "heap out of memory" in result.content


def test_missing_runner_is_a_configuration_error():
    result = JsSandboxExecutor(UnavailableRunner("Node.js missing")).run("console.log(1)")
    assert result.content == "Node.js missing"
    assert result.is_error is True
    assert result.error_kind == ErrorKind.CONFIGURATION


def test_output_is_truncated():
    runner = CannedRunner([log_record("x" * 50)])
    result = JsSandboxExecutor(runner, max_output_chars=10).run("ignored")
    assert result.content == "x" * 10 + "\n... (output truncated)"


def test_harness_embeds_snippet_as_json_literal():
    code = 'console.log("__TIMEOUT_MS__ and __SOURCE__");\n// "quotes" \\ backslash'
    script = build_harness(code, 1.5)

    assert json.dumps(code) in script
    assert "const TIMEOUT_MS = 1500;" in script


# --- Real Node.js process ---

def _node_executor(timeout_seconds=5.0):
    return JsSandboxExecutor(NodeProcessRunner(timeout=timeout_seconds), timeout_seconds=timeout_seconds)


@requires_node
def test_node_n_logs_give_n_lines():
    result = _node_executor().run("for (let i = 0; i < 4; i++) { console.log('line', i); }")
    assert result.content.splitlines() == ["line 0", "line 1", "line 2", "line 3"]


@requires_node
def test_node_no_output():
    assert _node_executor().run("const x = 1 + 1;").content == NO_OUTPUT_MESSAGE


@requires_node
def test_node_object_formatting_matches_json_stringify():
    result = _node_executor().run("console.log({ a: 1, b: [1, 'two'], c: undefined, d: null });")
    assert result.content == '{\n  "a": 1,\n  "b": [\n    1,\n    "two"\n  ],\n  "d": null\n}'


@requires_node
def test_node_primitives_use_string_coercion():
    result = _node_executor().run("console.log('a', 1, true, undefined, null, () => 2);")
    assert result.content == "a 1 true undefined null () => 2"


@requires_node
def test_node_circular_object():
    result = _node_executor().run("const o = { name: 'o' }; o.self = o; console.log(o);")
    assert result.content.count("[Circular]") == 1
    assert '"name": "o"' in result.content


@requires_node
def test_node_global_object_placeholder():
    assert _node_executor().run("console.log(globalThis);").content == "[window object]"


@requires_node
def test_node_syntax_error():
    result = _node_executor().run("console.log((1 + 2);")
    assert result.content.startswith("Syntax Error: ")
    assert result.error_kind == ErrorKind.SYNTAX


@requires_node
def test_node_runtime_error_keeps_earlier_lines():
    result = _node_executor().run("console.log('one'); console.log('two'); missingFunction(); console.log('never');")
    assert result.content.splitlines() == ["one", "two", "Error: missingFunction is not defined"]
    assert result.is_error is False
    assert result.error_kind == ErrorKind.RUNTIME


@requires_node
def test_node_console_levels():
    result = _node_executor().run("console.error('e', 1); console.warn('w'); console.info({a: 1});")
    assert result.content.splitlines() == ["Error: e 1", "Warning: w", "Info: [object Object]"]


@requires_node
def test_node_top_level_return_is_allowed():
    result = _node_executor().run("console.log('before'); return; console.log('after');")
    assert result.content == "before"


@pytest.mark.parametrize("expression", ["typeof require", "typeof process", "typeof module"])
@requires_node
def test_node_host_globals_are_not_exposed(expression):
    assert _node_executor().run(f"console.log({expression});").content == "undefined"


@requires_node
def test_node_code_generation_is_blocked():
    result = _node_executor().run("console.log(eval('1 + 1'));")
    assert result.content.startswith("Error: ")


@requires_node
def test_node_infinite_loop_times_out():
    result = _node_executor(timeout_seconds=0.5).run("console.log('start'); while (true) {}")
    assert result.content.splitlines()[0] == "start"
    assert result.error_kind == ErrorKind.TIMEOUT
    assert result.is_error is True


@requires_node
def test_node_caught_error_is_not_tagged():
    result = _node_executor().run("try { null.x; } catch (e) { console.error(e.message); }")
    assert result.content.startswith("Error: ")
    assert result.error_kind is None


@requires_node
def test_node_deeply_nested_object_is_logged():
    result = JsSandboxExecutor(NodeProcessRunner(timeout=5.0), max_output_chars=0).run(
        "let head = null;"
        "for (let i = 0; i < 2000; i++) head = { value: i, next: head };"
        "console.log('list');"
        "console.log(head);"
    )

    lines = result.content.splitlines()
    assert lines[0] == "list"
    assert lines[1] == "{"
    assert '"value": 0,' in result.content
    assert result.is_error is False
