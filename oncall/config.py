import os
from typing import Mapping, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, field_validator

from .constants import (
    DEFAULT_DAYS_AHEAD,
    DEFAULT_SHIFT_END_HOUR,
    DEFAULT_SHIFT_START_HOUR,
    ON_CALL_TIMEZONE,
)

DB_PATH = os.environ.get("SCHEDULE_DB_PATH", "oncall.db")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
CORS_ALLOW_ORIGINS = os.environ.get("CORS_ALLOW_ORIGINS", "")
CORS_ALLOW_ORIGIN_REGEX = os.environ.get(
    "CORS_ALLOW_ORIGIN_REGEX", r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"
)


class EngineConfig(BaseModel):
    """Settings shared by the import pipeline, queries and calendar export.

    The engine runs in a single timezone. It is passed around explicitly
    rather than read from module state so tests can pin it.
    """

    timezone: str = ON_CALL_TIMEZONE
    shift_start_hour: int = DEFAULT_SHIFT_START_HOUR
    shift_end_hour: int = DEFAULT_SHIFT_END_HOUR
    default_days_ahead: int = DEFAULT_DAYS_AHEAD

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("shift_start_hour", "shift_end_hour")
    @classmethod
    def _check_hour(cls, value: int) -> int:
        if value < 0 or value > 23:
            raise ValueError("Shift hours must be between 0 and 23.")
        return value

    @field_validator("default_days_ahead")
    @classmethod
    def _clamp_days_ahead(cls, value: int) -> int:
        return max(0, value)

    @property
    def tzinfo(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def _int_from_env(env: Mapping[str, str], name: str, fallback: int) -> int:
    raw = env.get(name)
    if raw is None or not str(raw).strip():
        return fallback
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def load_config(environ: Optional[Mapping[str, str]] = None) -> EngineConfig:
    env = os.environ if environ is None else environ
    return EngineConfig(
        timezone=(env.get("ONCALL_TIMEZONE") or ON_CALL_TIMEZONE).strip(),
        shift_start_hour=_int_from_env(env, "ONCALL_SHIFT_START_HOUR", DEFAULT_SHIFT_START_HOUR),
        shift_end_hour=_int_from_env(env, "ONCALL_SHIFT_END_HOUR", DEFAULT_SHIFT_END_HOUR),
        default_days_ahead=_int_from_env(env, "ONCALL_DEFAULT_DAYS_AHEAD", DEFAULT_DAYS_AHEAD),
    )
