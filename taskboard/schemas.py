from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator

from .db import Board, ColumnModel, Task


# === API Schemas ===


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=8000)
    boardId: str = Field(min_length=1)
    columnId: str = Field(min_length=1)

    @field_validator("title", mode="before")
    @classmethod
    def strip_title(cls, value):
        # the length limits apply to the stored, stripped title
        return value.strip() if isinstance(value, str) else value


class TaskMove(BaseModel):
    toColumnId: str = Field(min_length=1)


class ColumnOut(BaseModel):
    id: str
    boardId: str
    name: str
    position: int
    createdAt: datetime
    updatedAt: datetime


class BoardOut(BaseModel):
    id: str
    name: str
    createdAt: datetime
    updatedAt: datetime
    columns: list[ColumnOut]


class TaskOut(BaseModel):
    id: str
    boardId: str
    columnId: str
    title: str
    description: Optional[str]
    createdAt: datetime
    updatedAt: datetime
    # time the task entered its current column, approximated from the last write
    enteredAt: datetime
    column: Optional[ColumnOut] = None


class Health(BaseModel):
    status: str = "ok"


# === View builders ===


def column_out(column: ColumnModel) -> ColumnOut:
    return ColumnOut(
        id=column.id,
        boardId=column.board_id,
        name=column.name,
        position=column.position,
        createdAt=column.created_at,
        updatedAt=column.updated_at,
    )


def board_out(board: Board) -> BoardOut:
    columns = sorted(board.columns, key=lambda c: c.position)
    return BoardOut(
        id=board.id,
        name=board.name,
        createdAt=board.created_at,
        updatedAt=board.updated_at,
        columns=[column_out(c) for c in columns],
    )


def task_out(task: Task, entered_at: datetime) -> TaskOut:
    return TaskOut(
        id=task.id,
        boardId=task.board_id,
        columnId=task.column_id,
        title=task.title,
        description=task.description,
        createdAt=task.created_at,
        updatedAt=task.updated_at,
        enteredAt=entered_at,
        column=column_out(task.column) if task.column is not None else None,
    )


def board_view(board: Board) -> dict[str, Any]:
    """JSON-ready board-with-columns view, identical whether cached or fresh."""
    return board_out(board).model_dump(mode="json")


def task_list_view(tasks: list[Task]) -> list[dict[str, Any]]:
    return [task_out(t, entered_at=t.updated_at).model_dump(mode="json") for t in tasks]


def created_task_view(task: Task) -> dict[str, Any]:
    return task_out(task, entered_at=task.created_at).model_dump(mode="json")


def moved_task_view(task: Task) -> dict[str, Any]:
    return task_out(task, entered_at=task.updated_at).model_dump(mode="json")
