ON_CALL_TIMEZONE = "Asia/Jerusalem"

# Overnight duty: 08:00 local on the roster date until 10:00 local the next day.
DEFAULT_SHIFT_START_HOUR = 8
DEFAULT_SHIFT_END_HOUR = 10

DEFAULT_DAYS_AHEAD = 40
MAX_QUERY_DAYS = 120

ICS_PRODID = "-//Tracker//On Call//EN"
ICS_UID_DOMAIN = "tracker"
ICS_FOLD_WIDTH = 70

ASSIGNMENT_ID_SEPARATOR = "_"

# Column headers that carry the roster date rather than a station.
DATE_COLUMN_KEYS = ("date", "dateKey")
