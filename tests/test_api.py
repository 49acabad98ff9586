from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from conftest import T0, parse_ts
from taskboard.cache import board_key, task_list_key
from taskboard.config import Settings
from taskboard import main as main_module
from taskboard.main import create_app


def test_list_boards_bypasses_cache(client, storage, cache, board):
    first = client.get("/boards").json()
    client.get("/boards")
    assert [b["id"] for b in first] == ["bd1"]
    assert [c["name"] for c in first[0]["columns"]] == ["To Do", "Doing", "Done"]
    assert cache.raw(board_key("bd1")) is None


def test_get_board_is_cached(client, storage, board):
    first = client.get("/boards/bd1")
    second = client.get("/boards/bd1")
    assert first.status_code == 200
    assert first.content == second.content
    assert storage.fetches["get_board"] == 1


def test_unknown_board_returns_404(client, cache):
    response = client.get("/boards/ghost")
    assert response.status_code == 404
    assert response.json() == {"detail": "board_not_found"}
    assert client.get("/tasks", params={"boardId": "ghost"}).status_code == 404
    assert cache.raw(board_key("ghost")) is None


def test_tasks_requires_board_id(client):
    assert client.get("/tasks").status_code == 422


def test_create_task_validates_body(client, board):
    response = client.post("/tasks", json={"title": "", "boardId": "bd1", "columnId": "todo"})
    assert response.status_code == 422
    response = client.post("/tasks", json={"title": "x", "boardId": "bd1"})
    assert response.status_code == 422


def test_create_task_invalidates_both_keys(client, cache, board):
    client.get("/boards/bd1")
    client.get("/tasks", params={"boardId": "bd1"})

    response = client.post("/tasks", json={"title": "New", "boardId": "bd1", "columnId": "todo"})

    assert response.status_code == 201
    assert cache.raw(board_key("bd1")) is None
    assert cache.raw(task_list_key("bd1")) is None
    listed = client.get("/tasks", params={"boardId": "bd1"}).json()
    assert [t["title"] for t in listed] == ["New"]


def test_move_unknown_task_returns_404(client, board):
    response = client.patch("/tasks/nope/move", json={"toColumnId": "doing"})
    assert response.status_code == 404
    assert response.json() == {"detail": "task_not_found"}


def test_move_requires_target_column(client, board):
    assert client.patch("/tasks/t1/move", json={}).status_code == 422


def test_board_scenario(client, storage, clock, board):
    created = client.post(
        "/tasks",
        json={"title": "t1", "description": "first task", "boardId": "bd1", "columnId": "todo"},
    ).json()
    assert created["enteredAt"] == created["createdAt"]
    assert parse_ts(created["enteredAt"]) == T0

    clock.advance(7)
    moved = client.patch(f"/tasks/{created['id']}/move", json={"toColumnId": "doing"})
    assert moved.status_code == 200
    moved = moved.json()
    assert moved["columnId"] == "doing"
    assert parse_ts(moved["enteredAt"]) == T0 + timedelta(seconds=7)

    storage.fetches.clear()
    first = client.get("/tasks", params={"boardId": "bd1"})
    clock.advance(20)
    second = client.get("/tasks", params={"boardId": "bd1"})
    assert first.content == second.content
    assert storage.fetches["list_tasks"] == 1
    (listed,) = first.json()
    assert listed["columnId"] == "doing"
    assert listed["enteredAt"] == moved["enteredAt"]

    clock.advance(11)
    client.get("/tasks", params={"boardId": "bd1"})
    assert storage.fetches["list_tasks"] == 2


def test_cross_board_move_conflict_when_enforced(storage, cache, board, other_board):
    settings = Settings(database_url="sqlite://", redis_url="memory://", enforce_column_board_integrity=True)
    with TestClient(create_app(settings, storage=storage, cache=cache)) as client:
        created = client.post("/tasks", json={"title": "x", "boardId": "bd1", "columnId": "todo"}).json()
        response = client.patch(f"/tasks/{created['id']}/move", json={"toColumnId": "ops-backlog"})
    assert response.status_code == 409
    assert response.json() == {"detail": "invalid_move"}


def test_api_prefix(storage, cache, board):
    settings = Settings(database_url="sqlite://", redis_url="memory://", api_prefix="/api")
    with TestClient(create_app(settings, storage=storage, cache=cache)) as client:
        assert client.get("/api/boards/bd1").status_code == 200
        assert client.get("/boards/bd1").status_code == 404


def test_storage_errors_surface_as_500(storage, cache, board, monkeypatch):
    def broken(board_id):
        raise RuntimeError("database is gone")

    monkeypatch.setattr(storage, "get_board", broken)
    app = create_app(Settings(database_url="sqlite://", redis_url="memory://"), storage=storage, cache=cache)
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.get("/boards/bd1")
    assert response.status_code == 500
    assert response.json() == {"detail": "internal_error"}


def test_app_builds_its_own_resources(monkeypatch, tmp_path):
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'board.db'}")
    monkeypatch.setenv("REDIS_URL", "memory://")
    monkeypatch.setenv("SEED_ON_STARTUP", "1")
    with TestClient(create_app()) as client:
        board = client.get("/boards/default-board").json()
        tasks = client.get("/tasks", params={"boardId": "default-board"}).json()
    assert [c["id"] for c in board["columns"]] == ["col-todo", "col-in-progress", "col-done"]
    assert {t["id"] for t in tasks} == {"task-1", "task-2", "task-3"}


def test_blank_title_is_rejected(client, board):
    response = client.post("/tasks", json={"title": "   ", "boardId": "bd1", "columnId": "todo"})
    assert response.status_code == 422


def test_title_is_stored_stripped(client, board):
    response = client.post("/tasks", json={"title": "  Ship it ", "boardId": "bd1", "columnId": "todo"})
    assert response.status_code == 201
    assert response.json()["title"] == "Ship it"


def test_failed_startup_releases_the_cache(monkeypatch):
    closed = []

    class RecordingCache:
        def close(self):
            closed.append(True)

    def broken_seed(storage, cache=None):
        raise RuntimeError("seed failed")

    monkeypatch.setattr(main_module, "create_cache_store", lambda url, timeout: RecordingCache())
    monkeypatch.setattr(main_module, "seed_default_board", broken_seed)
    settings = Settings(database_url="sqlite://", redis_url="memory://", seed_on_startup=True)

    with pytest.raises(RuntimeError):
        with TestClient(create_app(settings)):
            pass

    assert closed == [True]
