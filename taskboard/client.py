"""
HTTP client for the task board API.

Used by the move controller and by scripts; any ``httpx.Client`` (including
FastAPI's ``TestClient``) can be supplied in place of the default one.
"""

from __future__ import annotations

import os
from typing import Any, Optional

import httpx
import structlog

logger = structlog.get_logger(__name__)


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"HTTP {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class TaskBoardClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        http: Optional[httpx.Client] = None,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: API root including any prefix. Defaults to the
                TASKBOARD_API_URL env var. Ignored when ``http`` is given.
            http: Pre-configured client whose base URL already points at the API.
            timeout: Per-request timeout in seconds for the default client.
        """
        if http is None:
            base_url = base_url or os.getenv("TASKBOARD_API_URL", "http://localhost:8000")
            http = httpx.Client(base_url=base_url, timeout=timeout)
            self._owns_http = True
        else:
            self._owns_http = False
        self.http = http

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self.http.request(method, path, **kwargs)
        if response.is_error:
            detail: Any = response.reason_phrase
            try:
                payload = response.json()
            except ValueError:
                payload = None
            if isinstance(payload, dict):
                detail = payload.get("detail", detail)
            logger.warning("API request failed", method=method, path=path, status=response.status_code)
            raise ApiError(response.status_code, str(detail))
        return response.json()

    # Boards
    def get_boards(self) -> list[dict[str, Any]]:
        return self._request("GET", "/boards")

    def get_board(self, board_id: str) -> dict[str, Any]:
        return self._request("GET", f"/boards/{board_id}")

    # Tasks
    def get_tasks(self, board_id: str) -> list[dict[str, Any]]:
        return self._request("GET", "/tasks", params={"boardId": board_id})

    def create_task(
        self,
        board_id: str,
        column_id: str,
        title: str,
        description: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {"boardId": board_id, "columnId": column_id, "title": title}
        if description is not None:
            body["description"] = description
        return self._request("POST", "/tasks", json=body)

    def move_task(self, task_id: str, to_column_id: str) -> dict[str, Any]:
        return self._request("PATCH", f"/tasks/{task_id}/move", json={"toColumnId": to_column_id})

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> TaskBoardClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
