import re
from datetime import date, datetime

SPANISH_MONTHS = {
    "enero": 1, "febrero": 2, "marzo": 3, "abril": 4,
    "mayo": 5, "junio": 6, "julio": 7, "agosto": 8,
    "septiembre": 9, "setiembre": 9, "octubre": 10, "noviembre": 11, "diciembre": 12,
}

LOCALE_DATE_RE = re.compile(r"(\d{1,2})\s+(?:de\s+)?([a-záéíóúñ]+)\s*(?:de\s+|,\s*)?(\d{4})")


def normalize_time(time_str):
    """
    Normalize time strings to consistent HH:MM 24-hour format.
    Handles: "8:00", "8:30pm", "20:00:00", "19:00", "21.30", "21:00h"
    """
    if not time_str:
        return None

    time_str = time_str.strip().lower().replace(".", ":").rstrip("h").strip()

    if time_str.count(":") == 2:
        time_str = ":".join(time_str.split(":")[:2])

    is_pm = "pm" in time_str
    is_am = "am" in time_str
    time_str = time_str.replace("pm", "").replace("am", "").strip()

    parts = time_str.split(":")
    if len(parts) != 2:
        return None

    try:
        hours = int(parts[0])
        minutes = int(parts[1])
    except ValueError:
        return None

    if is_pm and hours < 12:
        hours += 12
    elif is_am and hours == 12:
        hours = 0

    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None

    return f"{hours:02d}:{minutes:02d}"


def parse_locale_date(date_text):
    """
    Convert a Spanish long-form date to ISO form.
    "15 de julio de 2025" -> "2025-07-15". Also accepts a leading weekday
    ("martes, 15 de julio de 2025") and "15 julio 2025".
    Returns None on anything it cannot read.
    """
    if not date_text or not isinstance(date_text, str):
        return None

    match = LOCALE_DATE_RE.search(" ".join(date_text.lower().split()))
    if not match:
        return None

    day, month_name, year = match.groups()
    month = SPANISH_MONTHS.get(month_name)
    if not month:
        return None

    try:
        return date(int(year), month, int(day)).isoformat()
    except ValueError:
        return None


def parse_event_date(value):
    """
    Coerce a candidate's date to a datetime.date.
    Accepts date/datetime objects, "YYYY-MM-DD", ISO datetimes and Spanish
    long-form dates. Returns None when unparseable.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    try:
        if len(text) == 10:
            return date.fromisoformat(text)
        return datetime.fromisoformat(text).date()
    except ValueError:
        pass

    iso = parse_locale_date(text)
    return date.fromisoformat(iso) if iso else None


def to_day(reference):
    """Truncate a datetime to its calendar date; dates pass through."""
    if isinstance(reference, datetime):
        return reference.date()
    return reference
