import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Response

from .dates import first_of_previous_month
from .db import SqliteScheduleStore
from .deps import _get_queries, _get_store
from .ical import build_on_call_ics
from .queries import ScheduleQueries, shifts_from_rosters

logger = logging.getLogger(__name__)

router = APIRouter()

ICS_MEDIA_TYPE = "text/calendar; charset=utf-8"
BULK_FEED_MAX_AGE = 300


def _ics_response(body: str, filename: str, max_age: Optional[int] = None) -> Response:
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}
    if max_age is not None:
        headers["Cache-Control"] = f"private, max-age={max_age}"
    return Response(content=body, media_type=ICS_MEDIA_TYPE, headers=headers)


@router.get("/v1/ics/on-call.ics")
def get_on_call_feed(queries: ScheduleQueries = Depends(_get_queries)):
    start_key = first_of_previous_month(queries.today_key())
    rosters = queries.store.load_roster_range(start_key)
    shifts = shifts_from_rosters(rosters, queries.config)
    ics = build_on_call_ics(shifts, config=queries.config, dtstamp=queries.clock())
    logger.debug("Serving bulk on-call feed with %d shifts from %s", len(shifts), start_key)
    return _ics_response(ics, "on-call.ics", max_age=BULK_FEED_MAX_AGE)


@router.get("/v1/ics/on-call/{person_id}.ics")
def get_personal_on_call_feed(
    person_id: str,
    queries: ScheduleQueries = Depends(_get_queries),
    store: SqliteScheduleStore = Depends(_get_store),
):
    person = store.get_person(person_id)
    shifts = queries.upcoming_by_person(person_id)
    if person is None and not shifts:
        raise HTTPException(status_code=404, detail="Not found.")
    name = person.fullName if person else shifts[0].personDisplayName
    ics = build_on_call_ics(shifts, name, config=queries.config, dtstamp=queries.clock())
    return _ics_response(ics, "on-call-my-shifts.ics")
