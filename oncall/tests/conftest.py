import io
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import openpyxl
import pytest
from fastapi.testclient import TestClient

from oncall.config import EngineConfig
from oncall.db import SqliteScheduleStore
from oncall.deps import _get_clock, _get_config, _get_store
from oncall.main import app
from oncall.models import DayRoster, PersonMatch, ShiftAssignment, StationAssignment
from oncall.dates import shift_bounds_utc, utc_midnight

# 2025-06-10 09:00 Asia/Jerusalem (UTC+3)
FIXED_NOW = datetime(2025, 6, 10, 6, 0, tzinfo=timezone.utc)


def make_shift(
    date_key: str,
    station_key: str = "icu",
    person_id: str = "u1",
    display_name: str = "Dr. Cohen",
) -> ShiftAssignment:
    start, end = shift_bounds_utc(date_key)
    return ShiftAssignment(
        id=f"{date_key}_{station_key}_{person_id}",
        dateKey=date_key,
        stationKey=station_key,
        personId=person_id,
        personDisplayName=display_name,
        startAt=start,
        endAt=end,
    )


def make_roster(date_key: str, stations: Dict[str, tuple]) -> DayRoster:
    return DayRoster(
        dateKey=date_key,
        date=utc_midnight(date_key),
        stations={
            key: StationAssignment(personId=person_id, personDisplayName=name)
            for key, (person_id, name) in stations.items()
        },
    )


class InMemoryStore:
    def __init__(
        self,
        rosters: Optional[List[DayRoster]] = None,
        shifts: Optional[List[ShiftAssignment]] = None,
    ):
        self.rosters = {r.dateKey: r for r in rosters or []}
        self.shifts = list(shifts or [])

    def load_day(self, date_key: str) -> Optional[DayRoster]:
        return self.rosters.get(date_key)

    def load_roster_range(self, start_key: str, end_key: Optional[str] = None) -> List[DayRoster]:
        # Deliberately unordered to check callers sort.
        return [
            r
            for key, r in sorted(self.rosters.items(), reverse=True)
            if key >= start_key and (end_key is None or key <= end_key)
        ]

    def load_shifts_for_person(self, person_id: str) -> List[ShiftAssignment]:
        return [s for s in self.shifts if s.personId == person_id]


def make_resolver(known: Dict[str, str]):
    def resolve(name: str) -> PersonMatch:
        person_id = known.get(name)
        if person_id is None:
            return PersonMatch()
        return PersonMatch(personId=person_id, displayName=name)

    return resolve


def make_workbook(rows: Sequence[Sequence[Any]]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


@pytest.fixture
def config() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def store(tmp_path) -> SqliteScheduleStore:
    return SqliteScheduleStore(str(tmp_path / "oncall.db"))


@pytest.fixture
def client(store, config):
    app.dependency_overrides[_get_store] = lambda: store
    app.dependency_overrides[_get_config] = lambda: config
    app.dependency_overrides[_get_clock] = lambda: (lambda: FIXED_NOW)
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
