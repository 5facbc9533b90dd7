import csv
import io
from datetime import date, timedelta
from typing import List, Optional

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from .stations import STATIONS

CSV_MEDIA_TYPE = "text/csv; charset=utf-8"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

TEMPLATE_TITLE = "לוח תורנויות - תבנית"
TEMPLATE_SHEET_NAME = "תורנויות"
TEMPLATE_DAYS = 30

# Sunday first, as on the printed roster.
_HEBREW_DAY_NAMES = ("א", "ב", "ג", "ד", "ה", "ו", "ש")
_SAMPLE_NAMES = ('ד"ר כהן', 'ד"ר לוי', 'ד"ר מזרחי', 'ד"ר אברהם')

_THIN = Side(style="thin", color="CCCCCC")
_HEADER_FILL = PatternFill("solid", fgColor="E7E6E6")
_TITLE_FILL = PatternFill("solid", fgColor="CCCCCC")


def template_headers() -> List[str]:
    return ["יום", "תאריך"] + [station.headers[0] for station in STATIONS]


def hebrew_day_name(day: date) -> str:
    return _HEBREW_DAY_NAMES[(day.weekday() + 1) % 7]


def _sample_row(day: date, index: int) -> List[str]:
    names = [""] * len(STATIONS)
    if index < len(_SAMPLE_NAMES):
        names[index] = _SAMPLE_NAMES[index]
    return [hebrew_day_name(day), day.strftime("%d/%m/%Y")] + names


def build_csv_template(month_start: date, sample_days: int = 2) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(template_headers())
    for index in range(sample_days):
        writer.writerow(_sample_row(month_start + timedelta(days=index), index))
    return buffer.getvalue()


def build_workbook_template(month_start: date, days: Optional[int] = None) -> bytes:
    """Right-to-left roster sheet: a merged title row, the header row, then one dated row per day.

    The first few days carry example names so the expected layout is obvious.
    """
    headers = template_headers()
    total_days = TEMPLATE_DAYS if days is None else days

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = TEMPLATE_SHEET_NAME
    ws.sheet_view.rightToLeft = True

    ws.cell(row=1, column=1, value=TEMPLATE_TITLE)
    ws.merge_cells(start_row=1, start_column=1, end_row=1, end_column=len(headers))
    title = ws.cell(row=1, column=1)
    title.font = Font(bold=True, size=14)
    title.alignment = Alignment(horizontal="center", vertical="center")
    title.fill = _TITLE_FILL

    for column, header in enumerate(headers, start=1):
        cell = ws.cell(row=2, column=column, value=header)
        cell.font = Font(bold=True)
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)
        cell.fill = _HEADER_FILL
        cell.border = Border(top=_THIN, bottom=_THIN, left=_THIN, right=_THIN)
        ws.column_dimensions[get_column_letter(column)].width = 5 if column == 1 else 14

    for index in range(total_days):
        day = month_start + timedelta(days=index)
        row = 3 + index
        ws.cell(row=row, column=1, value=hebrew_day_name(day))
        date_cell = ws.cell(row=row, column=2, value=day)
        date_cell.number_format = "DD/MM/YYYY"
        if index < len(_SAMPLE_NAMES):
            ws.cell(row=row, column=3 + index, value=_SAMPLE_NAMES[index])

    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()
