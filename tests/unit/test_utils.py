from datetime import date, datetime

import pytest

from duende import config
from duende.errors import ConfigError
from duende.utils.dates import normalize_time, parse_event_date, parse_locale_date, to_day
from duende.utils.events import generate_event_id, is_slug, slugify


def test_normalize_time():
    assert normalize_time("8:00pm") == "20:00"
    assert normalize_time("8:00") == "08:00"
    assert normalize_time("20:00:00") == "20:00"
    assert normalize_time("12:00am") == "00:00"
    assert normalize_time("12:00pm") == "12:00"
    assert normalize_time("21.30") == "21:30"
    assert normalize_time("21:00h") == "21:00"
    assert normalize_time("25:00") is None
    assert normalize_time("bad") is None


def test_parse_locale_date():
    assert parse_locale_date("15 de julio de 2025") == "2025-07-15"
    assert parse_locale_date("Martes, 3 de Febrero de 2026") == "2026-02-03"
    assert parse_locale_date("15 julio 2025") == "2025-07-15"
    assert parse_locale_date("1 de septiembre, 2025") == "2025-09-01"


def test_parse_locale_date_rejects_garbage():
    assert parse_locale_date("garbage") is None
    assert parse_locale_date("31 de febrero de 2025") is None
    assert parse_locale_date("15 de julember de 2025") is None
    assert parse_locale_date("") is None
    assert parse_locale_date(None) is None


def test_parse_event_date_formats():
    assert parse_event_date("2025-07-15") == date(2025, 7, 15)
    assert parse_event_date("2025-07-15T21:00:00") == date(2025, 7, 15)
    assert parse_event_date("15 de julio de 2025") == date(2025, 7, 15)
    assert parse_event_date(datetime(2025, 7, 15, 21, 0)) == date(2025, 7, 15)
    assert parse_event_date("2025-07-15 21:00") == date(2025, 7, 15)
    assert parse_event_date("2025-13-40") is None
    assert parse_event_date(20250715) is None


def test_to_day_truncates_datetimes():
    assert to_day(datetime(2025, 6, 10, 23, 59)) == date(2025, 6, 10)
    assert to_day(date(2025, 6, 10)) == date(2025, 6, 10)


def test_slugify_folds_accents():
    assert slugify("Rocío Márquez") == "rocio-marquez"
    assert slugify("  Pedro  El Granaíno! ") == "pedro-el-granaino"


def test_generate_event_id_is_deterministic():
    first = generate_event_id("Rocío Márquez", "Sevilla", "2025-07-15")
    second = generate_event_id("Rocio Marquez", "sevilla", "2025-07-15")
    assert first == second == "rocio-marquez-sevilla-2025-07-15"
    assert is_slug(first)


def test_is_slug():
    assert is_slug("sara-baras-madrid-2025")
    assert not is_slug("Sara Baras")
    assert not is_slug("")
    assert not is_slug(None)


def test_daily_time_from_cron():
    assert config.daily_time_from_cron("0 3 * * *") == "03:00"
    assert config.daily_time_from_cron("30 21 * * *") == "21:30"


@pytest.mark.parametrize("expression", ["0 3 * * 1", "*/5 * * * *", "0 25 * * *", "nonsense"])
def test_daily_time_from_cron_rejects_non_daily(expression):
    with pytest.raises(ConfigError):
        config.daily_time_from_cron(expression)


def test_parse_event_date_rejects_trailing_text():
    assert parse_event_date("2025-07-15garbage") is None
    assert parse_event_date("2025-07-15 (aplazado)") is None
    assert parse_event_date("15/07/2025") is None
