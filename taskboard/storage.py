from __future__ import annotations

import uuid
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import selectinload, sessionmaker

from .db import Board, ColumnModel, Task, now_utc


class Storage:
    """Durable store for boards, columns and tasks.

    Every call runs in its own session and returns detached rows with the
    relationships the views need already loaded.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self.session_factory = session_factory
        self.clock = clock

    # === Board operations ===
    def create_board(
        self,
        name: str,
        column_names: Iterable[str] = (),
        board_id: Optional[str] = None,
        column_ids: Optional[Iterable[str]] = None,
    ) -> Board:
        now = self.clock()
        names = list(column_names)
        ids = list(column_ids) if column_ids is not None else [str(uuid.uuid4()) for _ in names]
        board = Board(
            id=board_id or str(uuid.uuid4()),
            name=name.strip(),
            created_at=now,
            updated_at=now,
        )
        board.columns = [
            ColumnModel(
                id=col_id,
                board_id=board.id,
                name=col_name.strip(),
                position=position,
                created_at=now,
                updated_at=now,
            )
            for position, (col_id, col_name) in enumerate(zip(ids, names))
        ]
        with self.session_factory() as session:
            session.add(board)
            session.commit()
        return board

    def list_boards(self) -> List[Board]:
        with self.session_factory() as session:
            stmt = select(Board).options(selectinload(Board.columns)).order_by(Board.created_at)
            return list(session.scalars(stmt))

    def get_board(self, board_id: str) -> Optional[Board]:
        with self.session_factory() as session:
            stmt = select(Board).options(selectinload(Board.columns)).where(Board.id == board_id)
            return session.scalars(stmt).first()

    def board_exists(self, board_id: str) -> bool:
        with self.session_factory() as session:
            return session.get(Board, board_id) is not None

    # === Column operations ===
    def get_column(self, column_id: str) -> Optional[ColumnModel]:
        with self.session_factory() as session:
            return session.get(ColumnModel, column_id)

    # === Task operations ===
    def list_tasks(self, board_id: str) -> List[Task]:
        with self.session_factory() as session:
            stmt = (
                select(Task)
                .options(selectinload(Task.column))
                .where(Task.board_id == board_id)
                .order_by(Task.created_at.desc(), Task.id)
            )
            return list(session.scalars(stmt))

    def get_task(self, task_id: str) -> Optional[Task]:
        with self.session_factory() as session:
            stmt = select(Task).options(selectinload(Task.column)).where(Task.id == task_id)
            return session.scalars(stmt).first()

    def create_task(
        self,
        board_id: str,
        column_id: str,
        title: str,
        description: Optional[str],
        task_id: Optional[str] = None,
    ) -> Task:
        now = self.clock()
        with self.session_factory() as session:
            task = Task(
                id=task_id or str(uuid.uuid4()),
                board_id=board_id,
                column_id=column_id,
                title=title.strip(),
                description=description.strip() if description else None,
                created_at=now,
                updated_at=now,
            )
            session.add(task)
            session.commit()
            session.refresh(task, attribute_names=["column"])
            return task

    def move_task(self, task_id: str, to_column_id: str) -> Optional[Task]:
        with self.session_factory() as session:
            task = session.get(Task, task_id)
            if task is None:
                return None
            task.column_id = to_column_id
            task.updated_at = self.clock()
            session.commit()
            session.refresh(task, attribute_names=["column"])
            return task
