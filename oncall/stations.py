from __future__ import annotations

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel

StationKey = Literal[
    "or_main",
    "labor_delivery",
    "icu",
    "or_gyne",
    "pacu",
    "on_call_manager",
    "senior_or",
    "senior_or_half",
    "ortho_shatzi",
    "ortho_trauma",
    "ortho_joint",
    "surgery",
    "urology",
    "spine",
    "vascular_thoracic",
    "pain_service",
    "spine_injections",
    "weekly_day_off",
]

StationCategory = Literal[
    "critical_care",
    "operating_rooms",
    "obstetrics",
    "recovery",
    "management",
    "orthopedics",
    "specialty",
    "spine_pain",
    "other",
]


class Station(BaseModel):
    key: StationKey
    category: StationCategory
    labelEn: str
    labelHe: str
    color: str
    headers: Tuple[str, ...] = ()


STATIONS: Tuple[Station, ...] = (
    Station(key="or_main", category="operating_rooms", labelEn="OR Main",
            labelHe="חדר ניתוח", color="blue", headers=("ת.חדר ניתוח",)),
    Station(key="labor_delivery", category="obstetrics", labelEn="Labor & Delivery",
            labelHe="חדר לידה", color="purple", headers=("ת. חדר לידה",)),
    Station(key="icu", category="critical_care", labelEn="ICU",
            labelHe="טיפול נמרץ", color="red", headers=("תורן טיפול נמרץ",)),
    Station(key="or_gyne", category="operating_rooms", labelEn="OR Gynecology",
            labelHe="חדר ניתוח נשים", color="cyan", headers=("ת.חדר ניתוח נשים",)),
    Station(key="pacu", category="recovery", labelEn="PACU",
            labelHe="PACU", color="green", headers=("תורן PACU",)),
    Station(key="on_call_manager", category="management", labelEn="On-Call Manager",
            labelHe="מנהל תורן", color="amber", headers=("מנהל תורן",)),
    Station(key="senior_or", category="operating_rooms", labelEn="Senior OR",
            labelHe="חנ בכיר", color="indigo", headers=("תורן חנ בכיר",)),
    Station(key="senior_or_half", category="operating_rooms", labelEn="Senior OR (Half)",
            labelHe="חצי חנ בכיר", color="indigo", headers=("תורן חצי חנ בכיר",)),
    Station(key="ortho_shatzi", category="orthopedics", labelEn="Ortho Shatzi",
            labelHe="אורתו שצי", color="orange", headers=("אורתו שצי",)),
    Station(key="ortho_trauma", category="orthopedics", labelEn="Ortho Trauma",
            labelHe="אורתו טראומה", color="orange", headers=("אורתו טראומה",)),
    Station(key="ortho_joint", category="orthopedics", labelEn="Ortho Joint",
            labelHe="אורתו מפרק", color="orange", headers=("אורתו מפרק",)),
    Station(key="surgery", category="specialty", labelEn="Surgery",
            labelHe="כירורגיה", color="pink", headers=("SUR",)),
    Station(key="urology", category="specialty", labelEn="Urology",
            labelHe="אורולוגיה", color="fuchsia", headers=("Urol",)),
    Station(key="spine", category="spine_pain", labelEn="Spine",
            labelHe='עמ"ש', color="teal", headers=('עמ"ש',)),
    Station(key="vascular_thoracic", category="specialty", labelEn="Vascular/Thoracic",
            labelHe="כלי דם / חזה", color="violet", headers=("כלי דם / חזה",)),
    Station(key="pain_service", category="spine_pain", labelEn="Pain Service",
            labelHe="כאב", color="emerald", headers=("כאב",)),
    Station(key="spine_injections", category="spine_pain", labelEn="Spine Injections",
            labelHe='זריקות עמ"ש', color="teal", headers=('זריקות עמ"ש',)),
    Station(key="weekly_day_off", category="other", labelEn="Weekly Day Off",
            labelHe="יום מנוחה שבועי", color="gray", headers=("יום מנוחה שבועי",)),
)

STATION_KEYS: Tuple[str, ...] = tuple(station.key for station in STATIONS)
_STATION_BY_KEY: Dict[str, Station] = {station.key: station for station in STATIONS}

# Non-station columns of the roster spreadsheet.
_EXTRA_HEADERS = {
    "תאריך": "date",
    "יום": "day",
}

HEADER_TO_KEY: Dict[str, str] = {
    **{header: station.key for station in STATIONS for header in station.headers},
    **_EXTRA_HEADERS,
}


def header_to_key(header: str) -> str:
    """Map a localized column header to its canonical key.

    Unknown headers come back unchanged, so a sheet that already uses the
    canonical keys (``icu``, ``or_main`` ...) imports as-is.
    """
    cleaned = header.strip()
    return HEADER_TO_KEY.get(cleaned, cleaned)


def is_station_key(value: str) -> bool:
    return value in _STATION_BY_KEY


def get_station(key: str) -> Station:
    station = _STATION_BY_KEY.get(key)
    if station is None:
        raise ValueError(f"Unknown station key: {key}")
    return station


def station_label(key: str, locale: str = "en") -> str:
    station = _STATION_BY_KEY.get(key)
    if station is None:
        return key
    return station.labelHe if locale == "he" else station.labelEn


def stations_by_category() -> List[Tuple[str, List[Station]]]:
    grouped: Dict[str, List[Station]] = {}
    for station in STATIONS:
        grouped.setdefault(station.category, []).append(station)
    return list(grouped.items())


def station_order(key: str) -> Optional[int]:
    try:
        return STATION_KEYS.index(key)
    except ValueError:
        return None
