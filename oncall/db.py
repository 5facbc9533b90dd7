import json
import logging
import sqlite3
from typing import Dict, Iterable, List, Optional

from .config import DB_PATH
from .dates import _utcnow, utc_midnight
from .models import DayRoster, Person, ShiftAssignment, StationAssignment

logger = logging.getLogger(__name__)


def _utcnow_iso() -> str:
    return _utcnow().isoformat()


def _ensure_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS on_call_days (
            date_key TEXT PRIMARY KEY,
            data TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS on_call_assignments (
            id TEXT PRIMARY KEY,
            person_id TEXT NOT NULL,
            date_key TEXT NOT NULL,
            station_key TEXT NOT NULL,
            start_at TEXT NOT NULL,
            end_at TEXT NOT NULL,
            data TEXT NOT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_on_call_assignments_person
        ON on_call_assignments (person_id, start_at)
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS people (
            id TEXT PRIMARY KEY,
            full_name TEXT NOT NULL,
            full_name_he TEXT NULL,
            email TEXT NULL
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS on_call_aliases (
            alias TEXT PRIMARY KEY,
            person_id TEXT NOT NULL,
            display_name TEXT NOT NULL
        )
        """
    )
    conn.commit()


class SqliteScheduleStore:
    """Scheduling store backed by a single SQLite file.

    Day rosters and shift assignments are kept as JSON documents keyed by
    their natural ids, so writes are idempotent upserts.
    """

    def __init__(self, path: str = DB_PATH):
        self.path = path
        self._schema_ready = False

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        if not self._schema_ready:
            _ensure_schema(conn)
            self._schema_ready = True
        return conn

    # Day rosters

    def load_day(self, date_key: str) -> Optional[DayRoster]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT data FROM on_call_days WHERE date_key = ?", (date_key,)
        ).fetchone()
        conn.close()
        if not row:
            return None
        return DayRoster.model_validate(json.loads(row["data"]))

    def load_roster_range(self, start_key: str, end_key: Optional[str] = None) -> List[DayRoster]:
        conn = self._get_connection()
        if end_key is None:
            rows = conn.execute(
                "SELECT data FROM on_call_days WHERE date_key >= ? ORDER BY date_key",
                (start_key,),
            ).fetchall()
        else:
            rows = conn.execute(
                """
                SELECT data FROM on_call_days
                WHERE date_key >= ? AND date_key <= ?
                ORDER BY date_key
                """,
                (start_key, end_key),
            ).fetchall()
        conn.close()
        return [DayRoster.model_validate(json.loads(row["data"])) for row in rows]

    def save_days(self, rosters: Iterable[DayRoster]) -> None:
        now = _utcnow_iso()
        conn = self._get_connection()
        conn.executemany(
            "INSERT OR REPLACE INTO on_call_days (date_key, data, updated_at) VALUES (?, ?, ?)",
            [
                (roster.dateKey, json.dumps(roster.model_dump(mode="json")), now)
                for roster in rosters
            ],
        )
        conn.commit()
        conn.close()

    def save_day(self, roster: DayRoster) -> None:
        self.save_days([roster])

    def set_station(
        self, date_key: str, station_key: str, assignment: StationAssignment
    ) -> DayRoster:
        roster = self.load_day(date_key)
        if roster is None:
            roster = DayRoster(dateKey=date_key, date=utc_midnight(date_key), createdAt=_utcnow())
        roster.stations[station_key] = assignment
        self.save_day(roster)
        return roster

    def clear_station(self, date_key: str, station_key: str) -> Optional[DayRoster]:
        roster = self.load_day(date_key)
        if roster is None:
            return None
        roster.stations.pop(station_key, None)
        self.save_day(roster)
        return roster

    # Shift assignments

    def save_assignments(self, assignments: Iterable[ShiftAssignment]) -> int:
        payload = [
            (
                a.id,
                a.personId,
                a.dateKey,
                a.stationKey,
                a.startAt.isoformat(),
                a.endAt.isoformat(),
                json.dumps(a.model_dump(mode="json")),
            )
            for a in assignments
        ]
        conn = self._get_connection()
        conn.executemany(
            """
            INSERT OR REPLACE INTO on_call_assignments
                (id, person_id, date_key, station_key, start_at, end_at, data)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            payload,
        )
        conn.commit()
        conn.close()
        return len(payload)

    def delete_assignments(self, date_key: str, station_key: Optional[str] = None) -> None:
        conn = self._get_connection()
        if station_key is None:
            conn.execute("DELETE FROM on_call_assignments WHERE date_key = ?", (date_key,))
        else:
            conn.execute(
                "DELETE FROM on_call_assignments WHERE date_key = ? AND station_key = ?",
                (date_key, station_key),
            )
        conn.commit()
        conn.close()

    def load_shifts_for_person(self, person_id: str) -> List[ShiftAssignment]:
        conn = self._get_connection()
        rows = conn.execute(
            "SELECT data FROM on_call_assignments WHERE person_id = ? ORDER BY start_at",
            (person_id,),
        ).fetchall()
        conn.close()
        return [ShiftAssignment.model_validate(json.loads(row["data"])) for row in rows]

    def count_assignments(self) -> int:
        conn = self._get_connection()
        row = conn.execute("SELECT COUNT(*) AS total FROM on_call_assignments").fetchone()
        conn.close()
        return int(row["total"])

    # People and aliases

    def upsert_person(self, person: Person) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT OR REPLACE INTO people (id, full_name, full_name_he, email)
            VALUES (?, ?, ?, ?)
            """,
            (person.id, person.fullName, person.fullNameHe, person.email),
        )
        conn.commit()
        conn.close()

    def list_people(self) -> List[Person]:
        conn = self._get_connection()
        rows = conn.execute(
            "SELECT id, full_name, full_name_he, email FROM people ORDER BY id"
        ).fetchall()
        conn.close()
        return [
            Person(
                id=row["id"],
                fullName=row["full_name"],
                fullNameHe=row["full_name_he"],
                email=row["email"],
            )
            for row in rows
        ]

    def get_person(self, person_id: str) -> Optional[Person]:
        conn = self._get_connection()
        row = conn.execute(
            "SELECT id, full_name, full_name_he, email FROM people WHERE id = ?",
            (person_id,),
        ).fetchone()
        conn.close()
        if not row:
            return None
        return Person(
            id=row["id"],
            fullName=row["full_name"],
            fullNameHe=row["full_name_he"],
            email=row["email"],
        )

    def list_aliases(self) -> Dict[str, StationAssignment]:
        conn = self._get_connection()
        rows = conn.execute(
            "SELECT alias, person_id, display_name FROM on_call_aliases"
        ).fetchall()
        conn.close()
        return {
            row["alias"]: StationAssignment(
                personId=row["person_id"], personDisplayName=row["display_name"]
            )
            for row in rows
        }

    def save_alias(self, alias: str, person_id: str, display_name: str) -> None:
        conn = self._get_connection()
        conn.execute(
            """
            INSERT OR IGNORE INTO on_call_aliases (alias, person_id, display_name)
            VALUES (?, ?, ?)
            """,
            (alias, person_id, display_name),
        )
        conn.commit()
        conn.close()
        logger.info("Saved on-call alias %r for %s", alias, person_id)
