from snippet_runner.services.execution.models import ExecutionResult, ResultKind
from snippet_runner.services.execution.result_store import (
    ResultStore,
    ResultStoreRegistry,
    RunState,
)


def test_new_store_is_idle():
    store = ResultStore()
    assert store.state == RunState.IDLE
    assert store.current is None


def test_start_run_sets_placeholder():
    store = ResultStore()
    store.complete(ExecutionResult.console("boom", is_error=True))

    placeholder = store.start_run("req-1")

    assert store.state == RunState.RUNNING
    assert store.current is placeholder
    assert placeholder.content == "Running..."
    assert placeholder.is_error is False


def test_complete_replaces_value():
    store = ResultStore()
    store.start_run("req-1")
    result = ExecutionResult(kind=ResultKind.PREVIEW, content="<i>x</i>")

    store.complete(result, "req-1")

    assert store.state == RunState.COMPLETED
    assert store.current is result


def test_clear_resets_to_idle():
    store = ResultStore()
    store.start_run("req-1")
    store.complete(ExecutionResult.console("done"), "req-1")

    store.clear()

    assert store.state == RunState.IDLE
    assert store.current is None
    assert store.snapshot() == {"state": "idle", "request_id": None, "result": None}


def test_last_write_wins_for_overlapping_runs():
    store = ResultStore()
    slow = ExecutionResult.console("slow python")
    fast = ExecutionResult.console("fast js")

    store.start_run("slow")
    store.start_run("fast")
    store.complete(fast, "fast")
    store.complete(slow, "slow")

    assert store.current is slow
    assert store.request_id == "slow"


def test_snapshot_serializes_current_result():
    store = ResultStore()
    store.start_run("req-9")
    snapshot = store.snapshot()

    assert snapshot["state"] == "running"
    assert snapshot["result"]["content"] == "Running..."
    assert snapshot["result"]["kind"] == "console"


def test_registry_returns_same_store_per_session():
    registry = ResultStoreRegistry()
    assert registry.get("a") is registry.get("a")
    assert registry.get("a") is not registry.get("b")
    assert registry.peek("missing") is None


def test_registry_evicts_least_recent_session():
    registry = ResultStoreRegistry(max_sessions=2)
    registry.get("a")
    registry.get("b")
    registry.get("a")
    registry.get("c")

    assert len(registry) == 2
    assert registry.peek("b") is None
    assert registry.peek("a") is not None
