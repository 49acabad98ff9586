"""Client-side optimistic task moves.

A move gesture renders the task in its target column straight away, sends the
move request, then replaces the optimistic list with a fresh fetch whether the
request succeeded or not. A background poller refetches the same list on a
fixed interval; whichever fetch completes last is what gets rendered.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

import httpx
import structlog

from .client import ApiError, TaskBoardClient

logger = structlog.get_logger(__name__)

POLL_INTERVAL_SECONDS = 5.0

# anything that means "the server did not confirm"
REQUEST_FAILURES = (ApiError, httpx.HTTPError)


class MoveState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


TRANSITIONS = {
    MoveState.IDLE: {MoveState.PENDING},
    MoveState.PENDING: {MoveState.CONFIRMED, MoveState.ROLLED_BACK},
    MoveState.CONFIRMED: {MoveState.IDLE},
    MoveState.ROLLED_BACK: {MoveState.IDLE},
}


class InvalidTransition(RuntimeError):
    pass


@dataclass
class MoveGesture:
    task_id: str
    from_column_id: str
    to_column_id: str
    state: MoveState = MoveState.IDLE
    outcome: Optional[MoveState] = None
    error: Optional[str] = None
    history: list[MoveState] = field(default_factory=lambda: [MoveState.IDLE])

    def transition(self, new_state: MoveState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"{self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        if new_state in (MoveState.CONFIRMED, MoveState.ROLLED_BACK):
            self.outcome = new_state
        logger.debug("Move gesture transition", task_id=self.task_id, state=new_state.value)


class MoveController:
    """Holds the rendered task list of one board and applies move gestures to it."""

    def __init__(
        self,
        client: TaskBoardClient,
        board_id: str,
        on_render: Optional[Callable[[list[dict[str, Any]]], None]] = None,
    ) -> None:
        self.client = client
        self.board_id = board_id
        self.on_render = on_render
        self._tasks: list[dict[str, Any]] = []
        self._lock = threading.Lock()

    @property
    def tasks(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._tasks)

    def column_of(self, task_id: str) -> Optional[str]:
        for task in self.tasks:
            if task["id"] == task_id:
                return task["columnId"]
        return None

    def _render(
        self,
        tasks: list[dict[str, Any]],
        expected: Optional[list[dict[str, Any]]] = None,
    ) -> bool:
        with self._lock:
            if expected is not None and self._tasks is not expected:
                return False
            self._tasks = tasks
        if self.on_render is not None:
            self.on_render(list(tasks))
        return True

    def refresh(self) -> list[dict[str, Any]]:
        """Fetch the canonical list and render it."""
        tasks = self.client.get_tasks(self.board_id)
        self._render(tasks)
        return tasks

    def move(self, task_id: str, to_column_id: str) -> Optional[MoveGesture]:
        """Run one move gesture to completion.

        Returns None when there is nothing to move: the task is unknown or is
        already in ``to_column_id``.
        """
        with self._lock:
            snapshot = self._tasks
        task = next((t for t in snapshot if t["id"] == task_id), None)
        if task is None or task["columnId"] == to_column_id:
            return None

        gesture = MoveGesture(task_id, task["columnId"], to_column_id)
        optimistic = [
            dict(t, columnId=to_column_id) if t["id"] == task_id else t
            for t in snapshot
        ]
        gesture.transition(MoveState.PENDING)
        self._render(optimistic)

        try:
            self.client.move_task(task_id, to_column_id)
        except REQUEST_FAILURES as exc:
            gesture.error = str(exc)
            gesture.transition(MoveState.ROLLED_BACK)
            logger.warning("Failed to move task, rolling back", task_id=task_id, error=str(exc))
        else:
            gesture.transition(MoveState.CONFIRMED)

        self._reconcile(gesture, optimistic, snapshot)
        gesture.transition(MoveState.IDLE)
        return gesture

    def _reconcile(
        self,
        gesture: MoveGesture,
        optimistic: list[dict[str, Any]],
        snapshot: list[dict[str, Any]],
    ) -> None:
        try:
            self.refresh()
            return
        except REQUEST_FAILURES as exc:
            logger.warning("Refetch after move failed", task_id=gesture.task_id, error=str(exc))

        # without a fresh list, a rejected move falls back to the last canonical
        # list; a confirmed one stays until the next poll
        if gesture.outcome is MoveState.ROLLED_BACK:
            self._render(snapshot, expected=optimistic)


class BackgroundPoller:
    """Calls ``controller.refresh()`` every ``interval`` seconds on a daemon thread."""

    def __init__(self, controller: MoveController, interval: float = POLL_INTERVAL_SECONDS) -> None:
        self.controller = controller
        self.interval = interval
        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def poll_once(self) -> bool:
        try:
            self.controller.refresh()
        except REQUEST_FAILURES as exc:
            logger.warning("Background poll failed", board_id=self.controller.board_id, error=str(exc))
            return False
        return True

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            self.poll_once()

    def start(self) -> None:
        if self._thread is not None:
            return
        self._stopped.clear()
        self._thread = threading.Thread(
            target=self._run,
            name=f"task-poller-{self.controller.board_id}",
            daemon=True,
        )
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self._stopped.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def __enter__(self) -> BackgroundPoller:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
