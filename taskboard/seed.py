"""Seed a demo board with three columns and a few tasks.

Run with ``python -m taskboard.seed``; existing rows are left untouched.
"""

from __future__ import annotations

from typing import Optional

import structlog

from .cache import CacheStore, create_cache_store
from .config import load_settings
from .db import init_db, make_engine, make_session_factory
from .logging_config import configure_structlog
from .orchestrator import MutationOrchestrator
from .storage import Storage

logger = structlog.get_logger(__name__)

DEFAULT_BOARD_ID = "default-board"
DEFAULT_BOARD_NAME = "My Task Board"
DEFAULT_COLUMNS = [
    ("col-todo", "To Do"),
    ("col-in-progress", "In Progress"),
    ("col-done", "Done"),
]
DEFAULT_TASKS = [
    (
        "task-1",
        "Setup project repository",
        "Initialize the repository and configure the workspace",
        "col-done",
    ),
    (
        "task-2",
        "Implement authentication",
        "Add token authentication with a login endpoint",
        "col-in-progress",
    ),
    (
        "task-3",
        "Add drag and drop",
        "Let tasks be dragged between columns on the board",
        "col-todo",
    ),
]


def seed_default_board(storage: Storage, cache: Optional[CacheStore] = None) -> None:
    """Create the demo rows that are missing, then drop the board's cached views."""
    if not storage.board_exists(DEFAULT_BOARD_ID):
        storage.create_board(
            DEFAULT_BOARD_NAME,
            [name for _, name in DEFAULT_COLUMNS],
            board_id=DEFAULT_BOARD_ID,
            column_ids=[col_id for col_id, _ in DEFAULT_COLUMNS],
        )
        logger.info("Board created", board_id=DEFAULT_BOARD_ID, columns=len(DEFAULT_COLUMNS))

    for task_id, title, description, column_id in DEFAULT_TASKS:
        if storage.get_task(task_id) is not None:
            continue
        storage.create_task(DEFAULT_BOARD_ID, column_id, title, description, task_id=task_id)
        logger.info("Task created", task_id=task_id, column_id=column_id)

    if cache is not None:
        MutationOrchestrator(storage, cache).invalidate_board(DEFAULT_BOARD_ID)


def main() -> None:
    settings = load_settings()
    configure_structlog(settings.log_level)
    engine = make_engine(settings.database_url)
    cache = create_cache_store(settings.redis_url, settings.redis_socket_timeout)
    try:
        init_db(engine)
        seed_default_board(Storage(make_session_factory(engine)), cache)
        logger.info("Seed completed")
    finally:
        cache.close()
        engine.dispose()


if __name__ == "__main__":
    main()
