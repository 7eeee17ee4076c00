import json
import os
from pathlib import Path
import pytz
from dotenv import load_dotenv

from duende.errors import ConfigError

load_dotenv()

REPO_ROOT = Path(__file__).resolve().parents[1]
DATA_DIR = REPO_ROOT / "data"
LOG_PATH = Path(os.environ.get("LOG_PATH", DATA_DIR / "worker-log.txt"))
STATUS_PATH = Path(os.environ.get("STATUS_PATH", DATA_DIR / "run-status.json"))
LOG_RETENTION_DAYS = 14

MONGO_URI = os.environ.get("MONGO_URI")
MONGO_DB = os.environ.get("MONGO_DB", "DuendeDB")
MONGO_COLLECTION = os.environ.get("MONGO_COLLECTION", "events")
RETENTION_ENABLED = os.environ.get("RETENTION_ENABLED", "false").lower() == "true"


def _seconds(name, default):
    """Read a delay in seconds. None when the value is not a number; check_config reports it."""
    try:
        return float(os.environ.get(name, default))
    except ValueError:
        return None


SOURCES = ["generative", "scrape"]
SOURCE = os.environ.get("SOURCE", "generative").lower()

GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY")
GEMINI_MODEL = os.environ.get("GEMINI_MODEL", "gemini-1.5-pro")
GEMINI_SEARCH = os.environ.get("GEMINI_SEARCH", "true").lower() == "true"
GEMINI_STRUCTURED = os.environ.get("GEMINI_STRUCTURED", "false").lower() == "true"

DEFAULT_ARTISTS = [
    "Eva Yerbabuena", "Marina Heredia", "Estrella Morente", "Sara Baras", "Argentina",
    "Rocío Márquez", "María Terremoto", "Farruquito", "Pedro El Granaíno", "Miguel Poveda",
    "Antonio Reyes", "Rancapino Chico", "Jesús Méndez", "Arcángel", "Israel Fernández",
]

SCRAPE_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "es-ES,es;q=0.9,en;q=0.8",
}
SCRAPE_DETAIL_DELAY = _seconds("SCRAPE_DETAIL_DELAY", "1.0")
SCRAPE_COUNTRY = os.environ.get("SCRAPE_COUNTRY", "España")

PACING_SECONDS = _seconds("PACING_SECONDS", "30")
SCHEDULE_CRON = os.environ.get("SCHEDULE_CRON", "0 3 * * *")
SCHEDULE_TIMEZONE = os.environ.get("SCHEDULE_TIMEZONE", "Europe/Madrid")


def _split_list(value):
    return [item.strip() for item in value.split(",") if item.strip()]


ARTISTS = _split_list(os.environ["ARTISTS"]) if os.environ.get("ARTISTS") else DEFAULT_ARTISTS
SCRAPE_URLS = _split_list(os.environ.get("SCRAPE_URLS", ""))


def load_selectors(raw=None):
    """
    Parse SCRAPE_SELECTORS (a JSON object) into a dict of CSS selectors.
    Returns None when unset so the scrape source falls back to its defaults.
    """
    raw = raw if raw is not None else os.environ.get("SCRAPE_SELECTORS")
    if not raw:
        return None
    try:
        selectors = json.loads(raw)
    except ValueError as e:
        raise ConfigError(f"SCRAPE_SELECTORS is not valid JSON: {e}") from e
    if not isinstance(selectors, dict):
        raise ConfigError("SCRAPE_SELECTORS must be a JSON object")
    return selectors


def daily_time_from_cron(expression):
    """
    Convert a daily cron expression ("M H * * *") to an "HH:MM" string.
    Anything more expressive than one fixed time per day is rejected.
    """
    fields = expression.split()
    if len(fields) != 5 or fields[2:] != ["*", "*", "*"]:
        raise ConfigError(f"SCHEDULE_CRON must be a daily expression 'M H * * *', got {expression!r}")

    try:
        minute, hour = int(fields[0]), int(fields[1])
    except ValueError:
        raise ConfigError(f"SCHEDULE_CRON minute and hour must be numbers, got {expression!r}") from None

    if not (0 <= minute <= 59 and 0 <= hour <= 23):
        raise ConfigError(f"SCHEDULE_CRON time out of range: {expression!r}")
    return f"{hour:02d}:{minute:02d}"


def check_config():
    """Raise ConfigError listing every setting the selected source needs but lacks."""
    if SOURCE not in SOURCES:
        raise ConfigError(f"SOURCE must be one of {', '.join(SOURCES)}, got {SOURCE!r}")

    missing = []
    if not MONGO_URI:
        missing.append("MONGO_URI")
    if SOURCE == "generative":
        if not GEMINI_API_KEY:
            missing.append("GEMINI_API_KEY")
        if not ARTISTS:
            missing.append("ARTISTS")
    elif not SCRAPE_URLS:
        missing.append("SCRAPE_URLS")

    if missing:
        raise ConfigError(f"Missing required configuration: {', '.join(missing)}")

    invalid = [name for name, value in [("PACING_SECONDS", PACING_SECONDS), ("SCRAPE_DETAIL_DELAY", SCRAPE_DETAIL_DELAY)]
               if value is None or value < 0]
    if invalid:
        raise ConfigError(f"Must be a non-negative number of seconds: {', '.join(invalid)}")

    daily_time_from_cron(SCHEDULE_CRON)
    try:
        pytz.timezone(SCHEDULE_TIMEZONE)
    except pytz.UnknownTimeZoneError:
        raise ConfigError(f"Unknown SCHEDULE_TIMEZONE: {SCHEDULE_TIMEZONE!r}") from None
    load_selectors()
