"""API tests for the roster import, day editing, queries and calendar feeds."""

import inspect
from datetime import datetime

import pytest

from oncall.importer import parse_on_call_workbook
from oncall.roster_routes import import_on_call
from oncall.templates import XLSX_MEDIA_TYPE
from oncall.tests.conftest import make_workbook

SHEET = "\n".join(
    [
        "יום,תאריך,תורן טיפול נמרץ,ת.חדר ניתוח",
        "ג,10/06/2025,Dana Cohen,Dr. Unknown",
        "ד,11/06/2025,Dana Cohen,",
        ",,,",
    ]
)


def _post_csv(client, body: str, **params):
    return client.post(
        "/v1/on-call/import",
        content=body.encode("utf-8"),
        params=params,
        headers={"content-type": "text/csv; charset=utf-8", "X-User-Id": "admin"},
    )


@pytest.fixture
def people(client):
    client.post("/v1/people", json={"id": "u1", "fullName": "Dana Cohen"})
    client.post("/v1/people", json={"id": "u2", "fullName": "Avi Levi", "fullNameHe": "אבי לוי"})


def test_health_and_catalog(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}
    stations = client.get("/v1/stations").json()
    assert len(stations) == 18
    assert stations[0]["key"] == "or_main"


def test_people_round_trip(client, people) -> None:
    ids = [p["id"] for p in client.get("/v1/people").json()]
    assert ids == ["u1", "u2"]


def test_import_dry_run_writes_nothing(client, people, store) -> None:
    res = _post_csv(client, SHEET, dryRun="true")
    assert res.status_code == 200
    body = res.json()
    assert body["dryRun"] is True
    assert body["imported"] == 0
    assert body["skippedRows"] == 1
    assert [u["name"] for u in body["unresolved"]] == ["Dr. Unknown"]
    assert store.count_assignments() == 0

    res = client.post(
        "/v1/on-call/import",
        content=SHEET.encode("utf-8"),
        headers={"content-type": "text/csv", "x-dry-run": "1"},
    )
    assert res.json()["dryRun"] is True
    assert store.count_assignments() == 0


def test_import_commit_is_idempotent(client, people, store) -> None:
    body = _post_csv(client, SHEET).json()
    assert body["imported"] == 2
    assert store.count_assignments() == 2
    assert _post_csv(client, SHEET).json()["imported"] == 2
    assert store.count_assignments() == 2
    shifts = store.load_shifts_for_person("u1")
    assert {s.createdBy for s in shifts} == {"admin"}
    assert [s.dateKey for s in shifts] == ["2025-06-10", "2025-06-11"]


def test_import_with_operator_resolution_saves_alias(client, people, store) -> None:
    res = client.post(
        "/v1/on-call/import",
        json={"csv": SHEET, "resolutions": {"Dr. Unknown": "u2"}, "saveAliases": True},
    )
    body = res.json()
    assert body["imported"] == 3
    assert body["unresolved"] == []
    assert "dr. unknown" in store.list_aliases()

    # The saved alias resolves on the next import without an operator choice.
    assert _post_csv(client, SHEET).json()["unresolved"] == []


def test_import_rejects_empty_and_headerless_input(client) -> None:
    res = _post_csv(client, "   ")
    assert res.status_code == 400
    assert res.json() == {"imported": 0, "errors": ["empty file"]}

    res = _post_csv(client, "תאריך,תורן טיפול נמרץ\n")
    assert res.status_code == 400
    assert res.json()["errors"] == ["no valid rows"]

    res = client.post(
        "/v1/on-call/import", content=b"{not json", headers={"content-type": "application/json"}
    )
    assert res.status_code == 400


def test_day_queries(client, people) -> None:
    _post_csv(client, SHEET)
    day = client.get("/v1/on-call/days/2025-06-10").json()
    assert day["stations"]["icu"] == {"personId": "u1", "personDisplayName": "Dana Cohen"}
    assert "or_main" not in day["stations"]

    days = client.get("/v1/on-call/days", params={"start": "2025-06-01", "end": "2025-06-30"})
    assert [d["dateKey"] for d in days.json()] == ["2025-06-10", "2025-06-11"]

    assert client.get("/v1/on-call/days/2025-13-01").status_code == 400
    assert client.get("/v1/on-call/days/2025-06-20").status_code == 404
    assert client.get("/v1/on-call/days", params={"start": "x", "end": "y"}).status_code == 400


def test_station_edits_update_shifts(client, store) -> None:
    res = client.put(
        "/v1/on-call/days/2025-06-12/stations/pacu",
        json={"personId": "u2"},
        headers={"X-User-Id": "editor"},
    )
    assert res.status_code == 200
    assert res.json()["stations"]["pacu"]["personDisplayName"] == "u2"
    [shift] = store.load_shifts_for_person("u2")
    assert (shift.id, shift.createdBy) == ("2025-06-12_pacu_u2", "editor")

    assert client.put(
        "/v1/on-call/days/2025-06-12/stations/bogus", json={"personId": "u2"}
    ).status_code == 404

    res = client.delete("/v1/on-call/days/2025-06-12/stations/pacu")
    assert res.status_code == 200
    assert res.json()["stations"] == {}
    assert store.load_shifts_for_person("u2") == []
    assert client.delete("/v1/on-call/days/2025-06-13/stations/pacu").status_code == 404


def test_manual_day_replaces_assignments(client, people, store) -> None:
    _post_csv(client, SHEET)
    res = client.post(
        "/v1/on-call/days",
        json={
            "dateKey": "2025-06-10",
            "stations": {"pacu": {"personId": "u2", "personDisplayName": "Avi Levi"}},
        },
    )
    assert res.status_code == 200
    assert [s.dateKey for s in store.load_shifts_for_person("u1")] == ["2025-06-11"]
    assert store.load_shifts_for_person("u2")[0].stationKey == "pacu"
    assert client.post("/v1/on-call/days", json={"dateKey": "10/06/2025"}).status_code == 422


def test_today_and_person_views(client, people) -> None:
    _post_csv(client, SHEET)
    today = client.get("/v1/on-call/today").json()
    assert today["dateKey"] == "2025-06-10"
    assert today["team"] == [
        {"stationKey": "icu", "label": "ICU", "personId": "u1", "personDisplayName": "Dana Cohen"}
    ]

    upcoming = client.get("/v1/on-call/people/u1/upcoming").json()
    assert [s["dateKey"] for s in upcoming] == ["2025-06-10", "2025-06-11"]
    assert client.get("/v1/on-call/people/u1/next").json()["dateKey"] == "2025-06-10"
    assert client.get("/v1/on-call/people/u2/next").json() is None

    future = client.get("/v1/on-call/people/u1/future", params={"daysAhead": 0}).json()
    assert [s["dateKey"] for s in future] == ["2025-06-10"]
    assert client.get("/v1/on-call/people/u1/future", params={"daysAhead": -1}).status_code == 422

    stats = client.get("/v1/on-call/people/u1/stats").json()
    assert stats["totalShifts"] == 2
    assert stats["mostCommonStation"] == "icu"

    conflicts = client.get("/v1/on-call/people/u1/conflicts").json()["conflicts"]
    assert conflicts["2025-06-10"]["type"] == "back_to_back"
    assert conflicts["2025-06-11"]["dateKeys"] == ["2025-06-10", "2025-06-11"]


def test_calendar_feeds(client, people) -> None:
    _post_csv(client, SHEET)

    bulk = client.get("/v1/ics/on-call.ics")
    assert bulk.status_code == 200
    assert bulk.headers["content-type"].startswith("text/calendar")
    assert bulk.headers["cache-control"] == "private, max-age=300"
    assert 'filename="on-call.ics"' in bulk.headers["content-disposition"]
    assert bulk.text.count("BEGIN:VEVENT") == 2

    personal = client.get("/v1/ics/on-call/u1.ics")
    assert personal.status_code == 200
    assert "cache-control" not in personal.headers
    assert 'filename="on-call-my-shifts.ics"' in personal.headers["content-disposition"]
    assert "X-WR-CALNAME:Dana Cohen — On Call" in personal.text

    assert client.get("/v1/ics/on-call/ghost.ics").status_code == 404
    empty = client.get("/v1/ics/on-call/u2.ics")
    assert empty.status_code == 200
    assert "BEGIN:VEVENT" not in empty.text


def test_reimport_replaces_previous_holder(client, people, store) -> None:
    _post_csv(client, "תאריך,תורן טיפול נמרץ\n10/06/2025,Dana Cohen")
    assert [s.id for s in store.load_shifts_for_person("u1")] == ["2025-06-10_icu_u1"]

    body = _post_csv(client, "תאריך,תורן טיפול נמרץ\n10/06/2025,Avi Levi").json()
    assert body["imported"] == 1
    assert store.load_shifts_for_person("u1") == []
    assert [s.id for s in store.load_shifts_for_person("u2")] == ["2025-06-10_icu_u2"]
    assert client.get("/v1/on-call/days/2025-06-10").json()["stations"]["icu"]["personId"] == "u2"
    assert client.get("/v1/on-call/people/u1/upcoming").json() == []
    assert "BEGIN:VEVENT" not in client.get("/v1/ics/on-call/u1.ics").text


def test_reimport_with_only_unknown_names_clears_the_day(client, people, store) -> None:
    _post_csv(client, "תאריך,תורן טיפול נמרץ\n10/06/2025,Dana Cohen")
    body = _post_csv(client, "תאריך,תורן טיפול נמרץ\n10/06/2025,Dr. Nobody").json()
    assert body["imported"] == 0
    assert store.load_shifts_for_person("u1") == []
    assert client.get("/v1/on-call/days/2025-06-10").json()["stations"] == {}


def test_import_handler_runs_in_threadpool() -> None:
    assert not inspect.iscoroutinefunction(import_on_call)


def test_workbook_import(client, people, store) -> None:
    data = make_workbook(
        [
            ["לוח תורנויות"],
            ["יום", "תאריך", "תורן טיפול נמרץ", "ת.חדר ניתוח"],
            ["ג", datetime(2025, 6, 10), "Dana Cohen", "Avi Levi"],
            ["ד", datetime(2025, 6, 11), "Dr. Unknown", None],
        ]
    )
    res = client.post("/v1/on-call/import", content=data, headers={"content-type": XLSX_MEDIA_TYPE})
    assert res.status_code == 200
    body = res.json()
    assert body["imported"] == 2
    assert [u["name"] for u in body["unresolved"]] == ["Dr. Unknown"]
    assert store.count_assignments() == 2

    res = client.post(
        "/v1/on-call/import",
        content=b"PK\x03\x04broken",
        headers={"content-type": "application/octet-stream"},
    )
    assert res.status_code == 400


def test_templates(client) -> None:
    csv_res = client.get("/v1/templates/on-call.csv")
    assert csv_res.status_code == 200
    assert csv_res.headers["content-type"].startswith("text/csv")
    assert 'filename="on-call-template.csv"' in csv_res.headers["content-disposition"]
    assert csv_res.text.splitlines()[1].startswith("א,01/06/2025,")

    xlsx_res = client.get("/v1/templates/on-call-schedule.xlsx")
    assert xlsx_res.status_code == 200
    assert xlsx_res.headers["content-type"] == XLSX_MEDIA_TYPE
    parsed = parse_on_call_workbook(xlsx_res.content)
    assert parsed.rows[0].dateKey == "2025-06-01"
    assert len(parsed.rows) == 30
