class ConfigError(Exception):
    """Required settings are missing or malformed. Fatal at startup."""


class SourceFetchError(Exception):
    """An upstream source could not be queried for one item."""


class StoreError(Exception):
    """The event store is unreachable or rejected a write."""
