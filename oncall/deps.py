from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header

from .config import DB_PATH, EngineConfig, load_config
from .dates import Clock, _utcnow
from .db import SqliteScheduleStore
from .queries import ScheduleQueries


@lru_cache(maxsize=1)
def _get_config() -> EngineConfig:
    return load_config()


@lru_cache(maxsize=1)
def _get_store() -> SqliteScheduleStore:
    return SqliteScheduleStore(DB_PATH)


def _get_clock() -> Clock:
    return _utcnow


def _get_queries(
    store: SqliteScheduleStore = Depends(_get_store),
    config: EngineConfig = Depends(_get_config),
    clock: Clock = Depends(_get_clock),
) -> ScheduleQueries:
    return ScheduleQueries(store, config, clock)


def _get_actor(x_user_id: Optional[str] = Header(default=None, alias="X-User-Id")) -> str:
    # Authentication happens upstream; the caller id is only recorded as createdBy.
    return (x_user_id or "").strip() or "system"
