import json
import logging
from datetime import date
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ValidationError

from .config import EngineConfig
from .conflicts import shifts_with_conflicts
from .constants import MAX_QUERY_DAYS
from .dates import _utcnow, from_date_key, shift_bounds_utc, utc_midnight
from .db import SqliteScheduleStore
from .deps import _get_actor, _get_config, _get_queries, _get_store
from .directory import DirectoryResolver
from .importer import (
    assignment_id,
    build_day_rosters,
    import_parsed_roster,
    parse_on_call_csv,
    parse_on_call_workbook,
    summarize_import,
)
from .models import (
    ConflictReport,
    DayRoster,
    ImportRequest,
    ImportSummary,
    ManualDayRequest,
    OnCallStats,
    Person,
    ShiftAssignment,
    StationAssignment,
    StationUpdateRequest,
    TeamMember,
)
from .queries import ScheduleQueries
from .stations import STATIONS, Station, is_station_key
from .templates import (
    CSV_MEDIA_TYPE,
    XLSX_MEDIA_TYPE,
    build_csv_template,
    build_workbook_template,
)

logger = logging.getLogger(__name__)

router = APIRouter()

_ZIP_MAGIC = b"PK\x03\x04"


class TodayResponse(BaseModel):
    dateKey: str
    roster: Optional[DayRoster] = None
    team: List[TeamMember] = []


def _parse_date_key(value: str) -> str:
    try:
        from_date_key(value)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid date.") from exc
    return value


def _require_station(station_key: str) -> str:
    if not is_station_key(station_key):
        raise HTTPException(status_code=404, detail="Unknown station.")
    return station_key


def _project_assignment(
    date_key: str,
    station_key: str,
    entry: StationAssignment,
    config: EngineConfig,
    created_by: str,
) -> ShiftAssignment:
    start, end = shift_bounds_utc(
        date_key, config.timezone, config.shift_start_hour, config.shift_end_hour
    )
    return ShiftAssignment(
        id=assignment_id(date_key, station_key, entry.personId),
        dateKey=date_key,
        stationKey=station_key,
        personId=entry.personId,
        personDisplayName=entry.personDisplayName,
        startAt=start,
        endAt=end,
        createdAt=_utcnow(),
        createdBy=created_by,
    )


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/v1/stations", response_model=List[Station])
def list_stations():
    return list(STATIONS)


@router.get("/v1/people", response_model=List[Person])
def list_people(store: SqliteScheduleStore = Depends(_get_store)):
    return store.list_people()


@router.post("/v1/people", response_model=Person)
def upsert_person(payload: Person, store: SqliteScheduleStore = Depends(_get_store)):
    store.upsert_person(payload)
    return payload


async def _read_import_body(request: Request) -> Tuple[str, bytes]:
    return request.headers.get("content-type") or "", await request.body()


def _is_workbook(content_type: str, raw: bytes) -> bool:
    return content_type.startswith(XLSX_MEDIA_TYPE) or raw.startswith(_ZIP_MAGIC)


def _month_start(queries: ScheduleQueries) -> date:
    return from_date_key(queries.today_key()).replace(day=1)


@router.post("/v1/on-call/import", response_model=ImportSummary)
def import_on_call(
    body: Tuple[str, bytes] = Depends(_read_import_body),
    dry_run: bool = Query(default=False, alias="dryRun"),
    x_dry_run: Optional[str] = Header(default=None, alias="x-dry-run"),
    store: SqliteScheduleStore = Depends(_get_store),
    config: EngineConfig = Depends(_get_config),
    actor: str = Depends(_get_actor),
):
    content_type, raw = body
    dry_run = dry_run or x_dry_run == "1"
    if not raw.strip():
        return JSONResponse(status_code=400, content={"imported": 0, "errors": ["empty file"]})

    if _is_workbook(content_type, raw):
        payload = ImportRequest(csv="")
        try:
            parsed = parse_on_call_workbook(raw)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Invalid workbook.") from exc
    else:
        if "application/json" in content_type:
            try:
                payload = ImportRequest.model_validate(json.loads(raw))
            except (ValueError, ValidationError) as exc:
                raise HTTPException(status_code=400, detail="Invalid import payload.") from exc
        else:
            payload = ImportRequest(csv=raw.decode("utf-8-sig", errors="replace"))
        if not payload.csv.strip():
            return JSONResponse(status_code=400, content={"imported": 0, "errors": ["empty file"]})
        parsed = parse_on_call_csv(payload.csv)

    resolver = DirectoryResolver(store.list_people(), store.list_aliases(), payload.resolutions)
    result = import_parsed_roster(parsed, resolver, actor, config=config)
    if not result.assignments and not result.unresolved:
        return JSONResponse(status_code=400, content={"imported": 0, "errors": ["no valid rows"]})

    if dry_run:
        return summarize_import(result, dry_run=True)

    if payload.saveAliases:
        for alias, entry in resolver.new_aliases().items():
            store.save_alias(alias, entry.personId, entry.personDisplayName)
    # The sheet is the source of truth for every day it covers.
    for date_key in result.dateKeys:
        store.delete_assignments(date_key)
    store.save_assignments(result.assignments)
    store.save_days(
        build_day_rosters(result.assignments, created_at=_utcnow(), date_keys=result.dateKeys)
    )
    logger.info(
        "Imported %d on-call assignments over %d days (%d unresolved) by %s",
        len(result.assignments),
        len(result.dateKeys),
        len(result.unresolved),
        actor,
    )
    return summarize_import(result)


@router.get("/v1/templates/on-call.csv")
def get_csv_template(queries: ScheduleQueries = Depends(_get_queries)):
    return Response(
        content=build_csv_template(_month_start(queries)),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": 'attachment; filename="on-call-template.csv"'},
    )


@router.get("/v1/templates/on-call-schedule.xlsx")
def get_workbook_template(queries: ScheduleQueries = Depends(_get_queries)):
    return Response(
        content=build_workbook_template(_month_start(queries)),
        media_type=XLSX_MEDIA_TYPE,
        headers={
            "Content-Disposition": 'attachment; filename="on-call-schedule-template.xlsx"'
        },
    )


@router.post("/v1/on-call/days", response_model=DayRoster)
def save_day(
    payload: ManualDayRequest,
    store: SqliteScheduleStore = Depends(_get_store),
    config: EngineConfig = Depends(_get_config),
    actor: str = Depends(_get_actor),
):
    roster = DayRoster(
        dateKey=payload.dateKey,
        date=utc_midnight(payload.dateKey),
        stations=payload.stations,
        createdAt=_utcnow(),
    )
    store.save_day(roster)
    store.delete_assignments(payload.dateKey)
    store.save_assignments(
        _project_assignment(payload.dateKey, key, entry, config, actor)
        for key, entry in payload.stations.items()
    )
    return roster


@router.get("/v1/on-call/days", response_model=List[DayRoster])
def list_days(
    start: str = Query(...),
    end: str = Query(...),
    queries: ScheduleQueries = Depends(_get_queries),
):
    return queries.by_date_range(_parse_date_key(start), _parse_date_key(end))


@router.get("/v1/on-call/days/{date_key}", response_model=DayRoster)
def get_day(date_key: str, queries: ScheduleQueries = Depends(_get_queries)):
    roster = queries.by_date(_parse_date_key(date_key))
    if roster is None:
        raise HTTPException(status_code=404, detail="No roster for this date.")
    return roster


@router.put("/v1/on-call/days/{date_key}/stations/{station_key}", response_model=DayRoster)
def set_station(
    date_key: str,
    station_key: str,
    payload: StationUpdateRequest,
    store: SqliteScheduleStore = Depends(_get_store),
    config: EngineConfig = Depends(_get_config),
    actor: str = Depends(_get_actor),
):
    _parse_date_key(date_key)
    _require_station(station_key)
    entry = StationAssignment(
        personId=payload.personId,
        personDisplayName=payload.personDisplayName or payload.personId,
    )
    roster = store.set_station(date_key, station_key, entry)
    store.delete_assignments(date_key, station_key)
    store.save_assignments([_project_assignment(date_key, station_key, entry, config, actor)])
    return roster


@router.delete("/v1/on-call/days/{date_key}/stations/{station_key}", response_model=DayRoster)
def clear_station(
    date_key: str,
    station_key: str,
    store: SqliteScheduleStore = Depends(_get_store),
):
    _parse_date_key(date_key)
    _require_station(station_key)
    roster = store.clear_station(date_key, station_key)
    if roster is None:
        raise HTTPException(status_code=404, detail="No roster for this date.")
    store.delete_assignments(date_key, station_key)
    return roster


@router.get("/v1/on-call/today", response_model=TodayResponse)
def get_today(queries: ScheduleQueries = Depends(_get_queries)):
    date_key = queries.today_key()
    return TodayResponse(
        dateKey=date_key,
        roster=queries.by_date(date_key),
        team=queries.team_for_date(date_key),
    )


@router.get("/v1/on-call/people/{person_id}/upcoming", response_model=List[ShiftAssignment])
def get_upcoming(person_id: str, queries: ScheduleQueries = Depends(_get_queries)):
    return queries.upcoming_by_person(person_id)


@router.get("/v1/on-call/people/{person_id}/next", response_model=Optional[ShiftAssignment])
def get_next(person_id: str, queries: ScheduleQueries = Depends(_get_queries)):
    return queries.next_shift(person_id)


@router.get("/v1/on-call/people/{person_id}/future", response_model=List[ShiftAssignment])
def get_future(
    person_id: str,
    days_ahead: Optional[int] = Query(default=None, alias="daysAhead", ge=0, le=MAX_QUERY_DAYS),
    queries: ScheduleQueries = Depends(_get_queries),
):
    return queries.future_by_person(person_id, days_ahead)


@router.get("/v1/on-call/people/{person_id}/stats", response_model=OnCallStats)
def get_stats(
    person_id: str,
    days_ahead: Optional[int] = Query(default=None, alias="daysAhead", ge=0, le=MAX_QUERY_DAYS),
    queries: ScheduleQueries = Depends(_get_queries),
):
    return queries.stats(person_id, days_ahead)


@router.get("/v1/on-call/people/{person_id}/conflicts", response_model=ConflictReport)
def get_conflicts(
    person_id: str,
    store: SqliteScheduleStore = Depends(_get_store),
):
    shifts = store.load_shifts_for_person(person_id)
    return ConflictReport(personId=person_id, conflicts=shifts_with_conflicts(shifts))
