from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .dates import from_date_key
from .stations import StationKey

ConflictType = Literal["multiple_same_day", "back_to_back"]
Severity = Literal["warning", "info"]


class StationAssignment(BaseModel):
    personId: str
    personDisplayName: str


class DayRoster(BaseModel):
    dateKey: str
    date: datetime  # UTC midnight of dateKey
    # Absent key means the station is vacant for the day.
    stations: Dict[StationKey, StationAssignment] = Field(default_factory=dict)
    createdAt: Optional[datetime] = None


class ShiftAssignment(BaseModel):
    id: str
    dateKey: str
    stationKey: StationKey
    personId: str
    personDisplayName: str
    startAt: datetime
    endAt: datetime
    createdAt: Optional[datetime] = None
    createdBy: Optional[str] = None

    @model_validator(mode="after")
    def _check_interval(self) -> "ShiftAssignment":
        if self.endAt <= self.startAt:
            raise ValueError("endAt must be after startAt")
        return self


class PersonMatch(BaseModel):
    """What the identity collaborator returns for a free-text name."""

    personId: Optional[str] = None
    displayName: Optional[str] = None


class Person(BaseModel):
    id: str
    fullName: str
    fullNameHe: Optional[str] = None
    email: Optional[str] = None


class UnresolvedName(BaseModel):
    dateKey: str
    stationKey: StationKey
    name: str


class ParsedRosterRow(BaseModel):
    dateKey: str
    values: Dict[StationKey, str] = Field(default_factory=dict)


class ParsedRoster(BaseModel):
    header: List[str] = Field(default_factory=list)
    rows: List[ParsedRosterRow] = Field(default_factory=list)
    skippedRows: int = 0


class ImportResult(BaseModel):
    assignments: List[ShiftAssignment] = Field(default_factory=list)
    unresolved: List[UnresolvedName] = Field(default_factory=list)
    skippedRows: int = 0
    # Dates with at least one filled station cell; an import replaces these days.
    dateKeys: List[str] = Field(default_factory=list)


class ImportSummary(BaseModel):
    imported: int
    unresolved: List[UnresolvedName] = Field(default_factory=list)
    skippedRows: int = 0
    dryRun: bool = False
    errors: List[str] = Field(default_factory=list)


class ImportRequest(BaseModel):
    csv: str
    # raw name -> personId, chosen by an operator for names that did not resolve
    resolutions: Dict[str, str] = Field(default_factory=dict)
    saveAliases: bool = False


class ShiftConflict(BaseModel):
    type: ConflictType
    message: str
    severity: Severity
    dateKeys: List[str] = Field(default_factory=list)


class OnCallStats(BaseModel):
    totalShifts: int = 0
    mostCommonStation: Optional[StationKey] = None
    stationCounts: Dict[StationKey, int] = Field(default_factory=dict)
    upcomingShifts: int = 0


class CalendarEvent(BaseModel):
    uid: str
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    start: datetime
    end: datetime


class ManualDayRequest(BaseModel):
    dateKey: str
    stations: Dict[StationKey, StationAssignment] = Field(default_factory=dict)

    @field_validator("dateKey")
    @classmethod
    def _check_date_key(cls, value: str) -> str:
        from_date_key(value)
        return value


class StationUpdateRequest(BaseModel):
    personId: str
    personDisplayName: Optional[str] = None


class TeamMember(BaseModel):
    stationKey: StationKey
    label: str
    personId: str
    personDisplayName: str


class ConflictReport(BaseModel):
    personId: str
    conflicts: Dict[str, ShiftConflict] = Field(default_factory=dict)
