from datetime import date

from duende.utils.dates import to_day


def keep(record, reference):
    """
    True iff the event falls on or after the reference day.
    `reference` may be a date or a datetime; time of day is ignored.
    """
    return date.fromisoformat(record.date) >= to_day(reference)
