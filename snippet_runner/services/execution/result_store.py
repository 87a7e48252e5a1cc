"""
Single-slot holder of the most recent execution outcome.

The store is a small state machine (IDLE -> RUNNING -> COMPLETED) with
no history: every transition discards what was held before. A new run does
not cancel a pending one, so whichever run completes last is displayed.
"""

import logging
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, Optional

from .models import ExecutionResult

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"


class ResultStore:
    """Holds one ExecutionResult, the "Running..." placeholder, or nothing."""

    def __init__(self):
        self._state = RunState.IDLE
        self._request_id: Optional[str] = None
        self._latest_request_id: Optional[str] = None
        self._value: Optional[ExecutionResult] = None

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def request_id(self) -> Optional[str]:
        return self._request_id

    @property
    def current(self) -> Optional[ExecutionResult]:
        return self._value

    def start_run(self, request_id: Optional[str] = None) -> ExecutionResult:
        placeholder = ExecutionResult.running(request_id)
        self._state = RunState.RUNNING
        self._request_id = request_id
        self._latest_request_id = request_id
        self._value = placeholder
        return placeholder

    def complete(self, result: ExecutionResult, request_id: Optional[str] = None) -> None:
        request_id = request_id or result.request_id
        if request_id and self._latest_request_id and request_id != self._latest_request_id:
            # Last write wins: a superseded run still replaces the display
            logger.warning(
                f"Run {request_id} completed after newer run {self._latest_request_id} started"
            )
        self._state = RunState.COMPLETED
        self._request_id = request_id
        self._value = result

    def clear(self) -> None:
        self._state = RunState.IDLE
        self._request_id = None
        self._latest_request_id = None
        self._value = None

    def snapshot(self) -> Dict[str, Any]:
        return {
            "state": self._state.value,
            "request_id": self._request_id,
            "result": self._value.to_dict() if self._value else None,
        }


class ResultStoreRegistry:
    """One ResultStore per session, oldest sessions evicted first."""

    def __init__(self, max_sessions: int = 1000):
        self.max_sessions = max_sessions
        self._stores: "OrderedDict[str, ResultStore]" = OrderedDict()

    def get(self, session_id: str) -> ResultStore:
        store = self._stores.get(session_id)
        if store is None:
            store = self._stores[session_id] = ResultStore()
            while len(self._stores) > self.max_sessions:
                evicted, _ = self._stores.popitem(last=False)
                logger.info(f"Evicted result store for session {evicted}")
        else:
            self._stores.move_to_end(session_id)
        return store

    def peek(self, session_id: str) -> Optional[ResultStore]:
        return self._stores.get(session_id)

    def __len__(self) -> int:
        return len(self._stores)
