from __future__ import annotations

from typing import Any, Callable, Optional

import structlog

from .cache import DEFAULT_TTL_SECONDS, CacheStore, board_key, task_list_key
from .errors import CacheFault, NotFound
from .schemas import board_view, task_list_view
from .storage import Storage

logger = structlog.get_logger(__name__)


class ReadThroughCoordinator:
    """Serves one cache keyspace, repopulating it from storage on a miss.

    Concurrent misses for the same key are not coalesced; each one reads the
    store and overwrites the entry with an equivalent value.
    """

    def __init__(
        self,
        storage: Storage,
        cache: CacheStore,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
    ) -> None:
        self.storage = storage
        self.cache = cache
        self.ttl_seconds = ttl_seconds

    def _cached(self, key: str) -> Optional[Any]:
        try:
            return self.cache.get(key)
        except CacheFault as exc:
            logger.warning("Cache read failed, falling back to store", key=key, error=str(exc.__cause__ or exc))
            return None

    def _populate(self, key: str, value: Any) -> None:
        try:
            self.cache.set(key, value, self.ttl_seconds)
        except CacheFault as exc:
            logger.warning("Cache write failed", key=key, error=str(exc.__cause__ or exc))

    def read_through(self, key: str, load: Callable[[], Any]) -> Any:
        cached = self._cached(key)
        if cached is not None:
            logger.debug("Cache hit", key=key)
            return cached
        logger.debug("Cache miss", key=key)
        # load raises NotFound before anything is cached
        value = load()
        self._populate(key, value)
        return value


class BoardCoordinator(ReadThroughCoordinator):
    def get_board(self, board_id: str) -> dict[str, Any]:
        def load() -> dict[str, Any]:
            board = self.storage.get_board(board_id)
            if board is None:
                raise NotFound("board", board_id)
            return board_view(board)

        return self.read_through(board_key(board_id), load)


class TaskListCoordinator(ReadThroughCoordinator):
    def get_tasks(self, board_id: str) -> list[dict[str, Any]]:
        def load() -> list[dict[str, Any]]:
            if not self.storage.board_exists(board_id):
                raise NotFound("board", board_id)
            return task_list_view(self.storage.list_tasks(board_id))

        return self.read_through(task_list_key(board_id), load)
