from dataclasses import asdict, dataclass

UNSPECIFIED = "unspecified"

RECORD_FIELDS = [
    "id", "name", "artist", "description", "date",
    "time", "venue", "city", "country", "verified",
]
REQUIRED_FIELDS = ["id", "name", "artist", "date", "city"]

MISSING_FIELD = "missing required field"
INVALID_DATE = "invalid date"
MALFORMED = "malformed candidate"


@dataclass(frozen=True)
class EventRecord:
    """A normalized event, the unit of persistence. `date` is ISO YYYY-MM-DD."""
    id: str
    name: str
    artist: str
    date: str
    city: str
    description: str = ""
    time: str = UNSPECIFIED
    venue: str = UNSPECIFIED
    country: str = UNSPECIFIED
    verified: bool = False

    def to_document(self):
        return asdict(self)


@dataclass(frozen=True)
class Rejected:
    """A candidate the normalizer refused, with the reason it was dropped."""
    reason: str
    candidate: object = None
    field: str = None
