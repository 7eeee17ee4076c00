import re
import unicodedata

SLUG_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def slugify(text):
    text = unicodedata.normalize("NFKD", text or "")
    text = text.encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def is_slug(value):
    return isinstance(value, str) and bool(SLUG_RE.match(value))


def generate_event_id(artist, city, date_iso):
    """
    Derive a stable id for an event from artist, city and date.
    Format: artist-name-city-YYYY-MM-DD
    Accents and punctuation are folded so spelling variants like
    "Rocío Márquez" and "Rocio Marquez" converge on the same key.
    """
    slug_parts = [slugify(artist), slugify(city), date_iso]
    return "-".join(filter(None, slug_parts))
