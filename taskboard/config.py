from __future__ import annotations

import os
from dataclasses import dataclass

TRUTHY = {"1", "true", "yes", "on"}


def env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in TRUTHY


def default_redis_url() -> str:
    host = os.getenv("REDIS_HOST", "localhost")
    port = int(os.getenv("REDIS_PORT", "6379"))
    return f"redis://{host}:{port}/0"


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./taskboard.db"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 0.5
    cache_ttl_seconds: int = 30
    enforce_column_board_integrity: bool = False
    api_prefix: str = ""
    log_level: str = "INFO"
    seed_on_startup: bool = False


def load_settings() -> Settings:
    """Read settings from the environment."""
    return Settings(
        database_url=os.getenv("DATABASE_URL", "sqlite:///./taskboard.db"),
        redis_url=os.getenv("REDIS_URL") or default_redis_url(),
        redis_socket_timeout=float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5")),
        cache_ttl_seconds=int(os.getenv("CACHE_TTL_SECONDS", "30")),
        enforce_column_board_integrity=env_flag("ENFORCE_COLUMN_BOARD_INTEGRITY"),
        api_prefix=os.getenv("API_PREFIX", "").rstrip("/"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        seed_on_startup=env_flag("SEED_ON_STARTUP"),
    )
