"""Roster import: spreadsheet rows -> dated station assignments.

Rosters arrive as CSV text or as an ``.xlsx`` workbook; both are reduced
to the same ``ParsedRosterRow`` list before names are resolved. The
pipeline is tolerant of messy sheets. Rows that are blank or carry an
unparseable date are skipped and counted; names the identity collaborator
cannot resolve are returned in ``unresolved`` so an operator can fix the
sheet and import again. Assignment ids depend only on date, station and
person, so a second import of the same sheet overwrites instead of
duplicating.
"""

import csv
import io
import logging
from datetime import date, datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union
from zipfile import BadZipFile

import openpyxl
from openpyxl.utils.datetime import from_excel
from openpyxl.utils.exceptions import InvalidFileException

from .config import EngineConfig
from .constants import ASSIGNMENT_ID_SEPARATOR, DATE_COLUMN_KEYS
from .dates import _utcnow, parse_ddmmyyyy, shift_bounds_utc, to_date_key, utc_midnight
from .models import (
    DayRoster,
    ImportResult,
    ImportSummary,
    ParsedRoster,
    ParsedRosterRow,
    PersonMatch,
    ShiftAssignment,
    StationAssignment,
    UnresolvedName,
)
from .stations import STATION_KEYS, header_to_key

logger = logging.getLogger(__name__)

NameResolver = Callable[[str], Union[PersonMatch, Dict[str, Any], None]]

_BOM = "\ufeff"


def assignment_id(date_key: str, station_key: str, person_id: str) -> str:
    return ASSIGNMENT_ID_SEPARATOR.join([date_key, station_key, person_id])


def _read_rows(csv_text: str) -> List[List[str]]:
    reader = csv.reader(io.StringIO(csv_text))
    rows = []
    for cells in reader:
        # Physically empty lines are not rows at all.
        if not cells or (len(cells) == 1 and not cells[0].strip()):
            continue
        rows.append(cells)
    return rows


def _as_match(value: Union[PersonMatch, Dict[str, Any], None]) -> PersonMatch:
    if isinstance(value, PersonMatch):
        return value
    if value is None:
        return PersonMatch()
    return PersonMatch.model_validate(value)


def _cell_text(value: Any) -> str:
    # Names are only ever text; numbers and dates in a station column are noise.
    return value.strip() if isinstance(value, str) else ""


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return from_excel(value).date()
        except (ValueError, OverflowError):
            return None
    if isinstance(value, str):
        return parse_ddmmyyyy(value)
    return None


def _date_cell(record: Dict[str, Any]) -> Any:
    for key in DATE_COLUMN_KEYS:
        value = record.get(key)
        if not _is_blank(value):
            return value
    return None


def _parse_table(
    header: List[str], numbered_rows: Iterable[Tuple[int, Sequence[Any]]]
) -> ParsedRoster:
    header_keys = [header_to_key(cell) for cell in header]
    parsed: List[ParsedRosterRow] = []
    skipped = 0
    for line_number, cells in numbered_rows:
        record: Dict[str, Any] = {}
        for index, key in enumerate(header_keys):
            record[key] = cells[index] if index < len(cells) else None
        if all(_is_blank(value) for value in record.values()):
            skipped += 1
            continue
        parsed_date = _coerce_date(_date_cell(record))
        if parsed_date is None:
            logger.debug("Skipping roster line %d: unparseable date", line_number)
            skipped += 1
            continue
        values = {
            key: _cell_text(record.get(key))
            for key in STATION_KEYS
            if _cell_text(record.get(key))
        }
        parsed.append(ParsedRosterRow(dateKey=to_date_key(parsed_date), values=values))
    return ParsedRoster(header=header, rows=parsed, skippedRows=skipped)


def parse_on_call_csv(csv_text: str) -> ParsedRoster:
    """Parse comma-separated roster text with localized headers.

    The first line is the header. Recognized headers map to station keys,
    anything else passes through unchanged and is ignored for assignments.
    """
    rows = _read_rows(csv_text or "")
    if not rows:
        return ParsedRoster()

    header = [cell.strip() for cell in rows[0]]
    if header and header[0].startswith(_BOM):
        header[0] = header[0][len(_BOM):].strip()
    return _parse_table(header, enumerate(rows[1:], start=2))


def parse_on_call_workbook(data: bytes) -> ParsedRoster:
    """Parse the first sheet of an ``.xlsx`` roster.

    The header is the first row with a date column, so a title row above
    it is tolerated. Date cells may be real dates, Excel serial numbers or
    ``DD/MM/YYYY`` text. Raises ``ValueError`` if the bytes are not a
    readable workbook.
    """
    try:
        wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, OSError) as exc:
        raise ValueError("Unreadable workbook.") from exc
    try:
        rows = [list(row) for row in wb.worksheets[0].iter_rows(values_only=True)]
    finally:
        wb.close()

    for index, cells in enumerate(rows):
        header = [cell.strip() if isinstance(cell, str) else "" for cell in cells]
        if any(header_to_key(cell) in DATE_COLUMN_KEYS for cell in header):
            numbered = [
                (line_number, row_cells)
                for line_number, row_cells in enumerate(rows[index + 1:], start=index + 2)
                if not all(_is_blank(value) for value in row_cells)
            ]
            return _parse_table(header, numbered)
    return ParsedRoster()


def build_assignments(
    rows: Iterable[ParsedRosterRow],
    resolve: NameResolver,
    created_by: str,
    *,
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> ImportResult:
    cfg = config or EngineConfig()
    created_at = now or _utcnow()
    assignments: List[ShiftAssignment] = []
    unresolved: List[UnresolvedName] = []
    date_keys: List[str] = []

    for row in rows:
        if row.values and row.dateKey not in date_keys:
            date_keys.append(row.dateKey)
        start, end = shift_bounds_utc(
            row.dateKey, cfg.timezone, cfg.shift_start_hour, cfg.shift_end_hour
        )
        for station_key, raw_name in row.values.items():
            name = (raw_name or "").strip()
            if not name:
                continue
            match = _as_match(resolve(name))
            if not match.personId:
                unresolved.append(
                    UnresolvedName(dateKey=row.dateKey, stationKey=station_key, name=name)
                )
                continue
            assignments.append(
                ShiftAssignment(
                    id=assignment_id(row.dateKey, station_key, match.personId),
                    dateKey=row.dateKey,
                    stationKey=station_key,
                    personId=match.personId,
                    personDisplayName=match.displayName or name,
                    startAt=start,
                    endAt=end,
                    createdAt=created_at,
                    createdBy=created_by,
                )
            )

    return ImportResult(assignments=assignments, unresolved=unresolved, dateKeys=date_keys)


def build_day_rosters(
    assignments: Iterable[ShiftAssignment],
    created_at: Optional[datetime] = None,
    date_keys: Iterable[str] = (),
) -> List[DayRoster]:
    """Group assignments into one roster document per date.

    Dates listed in ``date_keys`` get a document even when none of their
    names resolved, so an import always replaces the days it covers.
    """
    by_date: Dict[str, Dict[str, StationAssignment]] = {key: {} for key in date_keys}
    for assignment in assignments:
        stations = by_date.setdefault(assignment.dateKey, {})
        stations[assignment.stationKey] = StationAssignment(
            personId=assignment.personId,
            personDisplayName=assignment.personDisplayName,
        )
    return [
        DayRoster(
            dateKey=date_key,
            date=utc_midnight(date_key),
            stations=by_date[date_key],
            createdAt=created_at,
        )
        for date_key in sorted(by_date)
    ]


def import_parsed_roster(
    parsed: ParsedRoster,
    resolve: NameResolver,
    created_by: str,
    *,
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> ImportResult:
    result = build_assignments(
        parsed.rows, resolve, created_by, config=config, now=now
    )
    result.skippedRows = parsed.skippedRows
    logger.info(
        "Parsed roster: %d rows, %d assignments, %d unresolved, %d skipped",
        len(parsed.rows),
        len(result.assignments),
        len(result.unresolved),
        parsed.skippedRows,
    )
    return result


def summarize_import(result: ImportResult, dry_run: bool = False) -> ImportSummary:
    return ImportSummary(
        imported=0 if dry_run else len(result.assignments),
        unresolved=result.unresolved,
        skippedRows=result.skippedRows,
        dryRun=dry_run,
    )


def import_roster(
    csv_text: str,
    resolve: NameResolver,
    created_by: str,
    *,
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> ImportResult:
    return import_parsed_roster(
        parse_on_call_csv(csv_text), resolve, created_by, config=config, now=now
    )


def import_workbook(
    data: bytes,
    resolve: NameResolver,
    created_by: str,
    *,
    config: Optional[EngineConfig] = None,
    now: Optional[datetime] = None,
) -> ImportResult:
    return import_parsed_roster(
        parse_on_call_workbook(data), resolve, created_by, config=config, now=now
    )
