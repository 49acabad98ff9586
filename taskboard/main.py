from __future__ import annotations

from contextlib import ExitStack, asynccontextmanager
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from . import __version__
from .cache import CacheStore, create_cache_store
from .config import Settings, load_settings
from .coordinators import BoardCoordinator, TaskListCoordinator
from .db import init_db, make_engine, make_session_factory
from .errors import IntegrityViolation, NotFound
from .logging_config import configure_structlog
from .orchestrator import MutationOrchestrator
from .schemas import BoardOut, Health, TaskCreate, TaskMove, TaskOut, board_out
from .seed import seed_default_board
from .storage import Storage

logger = structlog.get_logger(__name__)


# === Dependencies ===


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_board_coordinator(request: Request) -> BoardCoordinator:
    return request.app.state.board_coordinator


def get_task_list_coordinator(request: Request) -> TaskListCoordinator:
    return request.app.state.task_list_coordinator


def get_orchestrator(request: Request) -> MutationOrchestrator:
    return request.app.state.orchestrator


# === Routes ===

router = APIRouter()


@router.get("/health", response_model=Health)
def health() -> Health:
    return Health()


@router.get("/boards", response_model=list[BoardOut])
def list_boards(storage: Storage = Depends(get_storage)):
    return [board_out(b) for b in storage.list_boards()]


@router.get("/boards/{board_id}", response_model=BoardOut)
def get_board(board_id: str, boards: BoardCoordinator = Depends(get_board_coordinator)):
    return boards.get_board(board_id)


@router.get("/tasks", response_model=list[TaskOut])
def get_tasks(
    board_id: str = Query(..., alias="boardId", min_length=1),
    tasks: TaskListCoordinator = Depends(get_task_list_coordinator),
):
    return tasks.get_tasks(board_id)


@router.post("/tasks", response_model=TaskOut, status_code=201)
def create_task(payload: TaskCreate, orchestrator: MutationOrchestrator = Depends(get_orchestrator)):
    return orchestrator.create_task(payload)


@router.patch("/tasks/{task_id}/move", response_model=TaskOut)
def move_task(
    task_id: str,
    payload: TaskMove,
    orchestrator: MutationOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.move_task(task_id, payload.toColumnId)


# === Error mapping ===


async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"detail": exc.code})


async def integrity_handler(request: Request, exc: IntegrityViolation) -> JSONResponse:
    return JSONResponse(status_code=409, content={"detail": "invalid_move"})


async def internal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error", path=request.url.path)
    return JSONResponse(status_code=500, content={"detail": "internal_error"})


# === Application ===


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[Storage] = None,
    cache: Optional[CacheStore] = None,
) -> FastAPI:
    """Build the API.

    ``storage`` and ``cache`` may be supplied by the caller, who then owns
    them; anything not supplied is created at startup and released at
    shutdown.
    """
    settings = settings or load_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_structlog(settings.log_level)
        # released in reverse order on shutdown and on a failed startup alike
        with ExitStack() as owned:
            active_storage = storage
            if active_storage is None:
                engine = make_engine(settings.database_url)
                owned.callback(engine.dispose)
                init_db(engine)
                active_storage = Storage(make_session_factory(engine))
            active_cache = cache
            if active_cache is None:
                active_cache = create_cache_store(settings.redis_url, settings.redis_socket_timeout)
                owned.callback(active_cache.close)

            if settings.seed_on_startup:
                seed_default_board(active_storage, active_cache)

            app.state.storage = active_storage
            app.state.cache = active_cache
            app.state.board_coordinator = BoardCoordinator(
                active_storage, active_cache, settings.cache_ttl_seconds
            )
            app.state.task_list_coordinator = TaskListCoordinator(
                active_storage, active_cache, settings.cache_ttl_seconds
            )
            app.state.orchestrator = MutationOrchestrator(
                active_storage,
                active_cache,
                enforce_column_board_integrity=settings.enforce_column_board_integrity,
            )
            logger.info(
                "Task board API starting up",
                version=__version__,
                cache_ttl_seconds=settings.cache_ttl_seconds,
                integrity_check=settings.enforce_column_board_integrity,
            )
            try:
                yield
            finally:
                logger.info("Task board API shutting down")

    app = FastAPI(title="Task Board API", version=__version__, lifespan=lifespan)
    app.include_router(router, prefix=settings.api_prefix)
    app.add_exception_handler(NotFound, not_found_handler)
    app.add_exception_handler(IntegrityViolation, integrity_handler)
    app.add_exception_handler(Exception, internal_error_handler)
    return app


app = create_app()
