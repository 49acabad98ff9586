from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from taskboard.cache import InMemoryCacheStore
from taskboard.config import Settings
from taskboard.db import init_db, make_engine, make_session_factory
from taskboard.main import create_app
from taskboard.storage import Storage

T0 = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)


def parse_ts(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class FakeClock:
    """Drives both the storage timestamps and the cache expiry."""

    def __init__(self, start: datetime = T0) -> None:
        self.current = start
        self.seconds = 1000.0

    def now(self) -> datetime:
        return self.current

    def monotonic(self) -> float:
        return self.seconds

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)
        self.seconds += seconds


class CountingStorage(Storage):
    """Storage that records how often the read paths hit the database."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.fetches: Counter = Counter()

    def get_board(self, board_id):
        self.fetches["get_board"] += 1
        return super().get_board(board_id)

    def list_tasks(self, board_id):
        self.fetches["list_tasks"] += 1
        return super().list_tasks(board_id)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def storage(engine, clock):
    return CountingStorage(make_session_factory(engine), clock=clock.now)


@pytest.fixture
def cache(clock):
    return InMemoryCacheStore(clock=clock.monotonic)


@pytest.fixture
def board(storage):
    board = storage.create_board(
        "Sprint",
        ["To Do", "Doing", "Done"],
        board_id="bd1",
        column_ids=["todo", "doing", "done"],
    )
    storage.fetches.clear()
    return board


@pytest.fixture
def other_board(storage):
    board = storage.create_board(
        "Ops",
        ["Backlog"],
        board_id="bd2",
        column_ids=["ops-backlog"],
    )
    storage.fetches.clear()
    return board


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://", redis_url="memory://")


@pytest.fixture
def client(settings, storage, cache):
    app = create_app(settings, storage=storage, cache=cache)
    with TestClient(app) as client:
        yield client
