from __future__ import annotations


class TaskBoardError(Exception):
    """Base class for errors raised by the task board core."""


class NotFound(TaskBoardError):
    def __init__(self, kind: str, entity_id: str) -> None:
        super().__init__(f"{kind} {entity_id!r} not found")
        self.kind = kind
        self.entity_id = entity_id

    @property
    def code(self) -> str:
        return f"{self.kind}_not_found"


class IntegrityViolation(TaskBoardError):
    """A task would end up in a column that belongs to another board."""

    def __init__(self, task_id: str | None, column_id: str, board_id: str) -> None:
        super().__init__(
            f"column {column_id!r} does not belong to board {board_id!r}"
        )
        self.task_id = task_id
        self.column_id = column_id
        self.board_id = board_id


class CacheFault(TaskBoardError):
    """A cache operation failed; callers fall back instead of surfacing it."""

    def __init__(self, operation: str, key: str) -> None:
        super().__init__(f"cache {operation} failed for {key!r}")
        self.operation = operation
        self.key = key
