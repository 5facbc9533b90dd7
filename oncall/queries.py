from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Protocol

from .config import EngineConfig
from .dates import Clock, _utcnow, date_range_keys, shift_bounds_utc, today_key
from .importer import assignment_id
from .models import DayRoster, OnCallStats, ShiftAssignment, TeamMember
from .stations import STATION_KEYS, station_label


class ScheduleStore(Protocol):
    def load_day(self, date_key: str) -> Optional[DayRoster]: ...

    def load_roster_range(
        self, start_key: str, end_key: Optional[str] = None
    ) -> List[DayRoster]: ...

    def load_shifts_for_person(self, person_id: str) -> List[ShiftAssignment]: ...


def shifts_from_rosters(
    rosters: Iterable[DayRoster],
    config: EngineConfig,
    person_id: Optional[str] = None,
) -> List[ShiftAssignment]:
    """Flatten day rosters into shifts, optionally for a single person.

    Days keep their order; stations within a day follow the catalog order.
    """
    shifts: List[ShiftAssignment] = []
    for roster in rosters:
        start, end = shift_bounds_utc(
            roster.dateKey, config.timezone, config.shift_start_hour, config.shift_end_hour
        )
        for station_key in STATION_KEYS:
            entry = roster.stations.get(station_key)
            if entry is None:
                continue
            if person_id is not None and entry.personId != person_id:
                continue
            shifts.append(
                ShiftAssignment(
                    id=assignment_id(roster.dateKey, station_key, entry.personId),
                    dateKey=roster.dateKey,
                    stationKey=station_key,
                    personId=entry.personId,
                    personDisplayName=entry.personDisplayName,
                    startAt=start,
                    endAt=end,
                )
            )
    return shifts


def compute_stats(shifts: List[ShiftAssignment]) -> OnCallStats:
    if not shifts:
        return OnCallStats()
    station_counts: Dict[str, int] = {}
    for shift in shifts:
        station_counts[shift.stationKey] = station_counts.get(shift.stationKey, 0) + 1
    most_common = None
    max_count = 0
    # Strict comparison: on a tie the station seen first keeps the lead.
    for station_key, count in station_counts.items():
        if count > max_count:
            max_count = count
            most_common = station_key
    return OnCallStats(
        totalShifts=len(shifts),
        mostCommonStation=most_common,
        stationCounts=station_counts,
        upcomingShifts=len(shifts),
    )


class ScheduleQueries:
    """Read-side helpers over the scheduling store.

    "Now" comes from an injected clock and dates are computed in the
    configured timezone, so results do not depend on the server's locale.
    """

    def __init__(
        self,
        store: ScheduleStore,
        config: Optional[EngineConfig] = None,
        clock: Clock = _utcnow,
    ):
        self.store = store
        self.config = config or EngineConfig()
        self.clock = clock

    def today_key(self) -> str:
        return today_key(self.config.timezone, self.clock())

    def by_date(self, date_key: str) -> Optional[DayRoster]:
        return self.store.load_day(date_key)

    def today(self) -> Optional[DayRoster]:
        return self.by_date(self.today_key())

    def by_date_range(self, start_key: str, end_key: str) -> List[DayRoster]:
        # Zero-padded keys sort lexicographically in date order.
        if end_key < start_key:
            return []
        rosters = self.store.load_roster_range(start_key, end_key)
        return sorted(
            (r for r in rosters if start_key <= r.dateKey <= end_key),
            key=lambda r: r.dateKey,
        )

    def upcoming_by_person(self, person_id: str) -> List[ShiftAssignment]:
        now = self.clock()
        shifts = [s for s in self.store.load_shifts_for_person(person_id) if s.endAt >= now]
        shifts.sort(key=lambda s: s.startAt)
        return shifts

    def next_shift(self, person_id: str) -> Optional[ShiftAssignment]:
        upcoming = self.upcoming_by_person(person_id)
        return upcoming[0] if upcoming else None

    def future_by_person(
        self, person_id: str, days_ahead: Optional[int] = None
    ) -> List[ShiftAssignment]:
        days = self.config.default_days_ahead if days_ahead is None else days_ahead
        start_key, end_key = date_range_keys(self.today_key(), days)
        rosters = self.by_date_range(start_key, end_key)
        return shifts_from_rosters(rosters, self.config, person_id=person_id)

    def stats(self, person_id: str, days_ahead: Optional[int] = None) -> OnCallStats:
        return compute_stats(self.future_by_person(person_id, days_ahead))

    def team_for_date(self, date_key: str) -> List[TeamMember]:
        roster = self.by_date(date_key)
        if roster is None:
            return []
        team: List[TeamMember] = []
        for station_key in STATION_KEYS:
            entry = roster.stations.get(station_key)
            if entry is None:
                continue
            team.append(
                TeamMember(
                    stationKey=station_key,
                    label=station_label(station_key),
                    personId=entry.personId,
                    personDisplayName=entry.personDisplayName,
                )
            )
        return team

