from collections.abc import Mapping

from duende.pipeline.records import (
    EventRecord,
    INVALID_DATE,
    MALFORMED,
    MISSING_FIELD,
    REQUIRED_FIELDS,
    Rejected,
    UNSPECIFIED,
)
from duende.utils.dates import normalize_time, parse_event_date
from duende.utils.events import generate_event_id, is_slug

TRUE_STRINGS = {"true", "yes", "1"}


def _text(value):
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return ""


def _verified(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUE_STRINGS
    return False


def normalize(raw):
    """
    Validate and coerce a raw candidate into an EventRecord.
    Returns Rejected when a required field is missing or the date is unreadable.
    Optional fields fall back to sentinels so every record has all fields.
    """
    if not isinstance(raw, Mapping):
        return Rejected(MALFORMED, raw)

    raw_date = raw.get("date")
    if raw_date is None or (isinstance(raw_date, str) and not raw_date.strip()):
        return Rejected(MISSING_FIELD, raw, "date")

    event_date = parse_event_date(raw_date)
    if event_date is None:
        return Rejected(INVALID_DATE, raw, "date")
    date_iso = event_date.isoformat()

    name = _text(raw.get("name"))
    artist = _text(raw.get("artist"))
    city = _text(raw.get("city"))

    event_id = _text(raw.get("id"))
    if not is_slug(event_id) and artist and city:
        event_id = generate_event_id(artist, city, date_iso)

    values = {"id": event_id, "name": name, "artist": artist, "date": date_iso, "city": city}
    for field in REQUIRED_FIELDS:
        if not values[field]:
            return Rejected(MISSING_FIELD, raw, field)

    return EventRecord(
        id=event_id,
        name=name,
        artist=artist,
        date=date_iso,
        city=city,
        description=_text(raw.get("description")),
        time=normalize_time(_text(raw.get("time"))) or UNSPECIFIED,
        venue=_text(raw.get("venue")) or UNSPECIFIED,
        country=_text(raw.get("country")) or UNSPECIFIED,
        verified=_verified(raw.get("verified")),
    )
