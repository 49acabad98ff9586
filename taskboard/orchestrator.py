from __future__ import annotations

from typing import Any

import structlog

from .cache import CacheStore, board_keys
from .errors import CacheFault, IntegrityViolation, NotFound
from .schemas import TaskCreate, created_task_view, moved_task_view
from .storage import Storage

logger = structlog.get_logger(__name__)


class MutationOrchestrator:
    """Writes tasks to storage and invalidates every view of the affected board.

    Invalidation runs after the write and is not retried: if a delete fails the
    stale entry lives until its TTL runs out, and the write still counts as done.
    """

    def __init__(
        self,
        storage: Storage,
        cache: CacheStore,
        enforce_column_board_integrity: bool = False,
    ) -> None:
        self.storage = storage
        self.cache = cache
        self.enforce_column_board_integrity = enforce_column_board_integrity

    def invalidate_board(self, board_id: str) -> None:
        for key in board_keys(board_id):
            try:
                self.cache.delete(key)
            except CacheFault as exc:
                logger.warning(
                    "Cache invalidation failed, entry expires by TTL",
                    key=key,
                    error=str(exc.__cause__ or exc),
                )

    def _check_column(self, column_id: str, board_id: str, task_id: str | None = None):
        column = self.storage.get_column(column_id)
        if column is None:
            raise NotFound("column", column_id)
        if self.enforce_column_board_integrity and column.board_id != board_id:
            raise IntegrityViolation(task_id, column_id, board_id)
        return column

    def create_task(self, payload: TaskCreate) -> dict[str, Any]:
        if not self.storage.board_exists(payload.boardId):
            raise NotFound("board", payload.boardId)
        self._check_column(payload.columnId, payload.boardId)

        task = self.storage.create_task(
            payload.boardId,
            payload.columnId,
            payload.title,
            payload.description,
        )
        self.invalidate_board(task.board_id)
        logger.info("Task created", task_id=task.id, board_id=task.board_id, column_id=task.column_id)
        return created_task_view(task)

    def move_task(self, task_id: str, to_column_id: str) -> dict[str, Any]:
        task = self.storage.get_task(task_id)
        if task is None:
            raise NotFound("task", task_id)
        self._check_column(to_column_id, task.board_id, task_id)

        moved = self.storage.move_task(task_id, to_column_id)
        if moved is None:
            # deleted between lookup and write
            raise NotFound("task", task_id)
        self.invalidate_board(moved.board_id)
        logger.info(
            "Task moved",
            task_id=task_id,
            board_id=moved.board_id,
            from_column_id=task.column_id,
            to_column_id=to_column_id,
        )
        return moved_task_view(moved)
