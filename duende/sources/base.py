class EventSource:
    """
    One upstream source of event candidates.

    fetch(query) returns a list of raw candidate dicts, [] when the source has
    nothing for the query. It raises SourceFetchError when the upstream
    cannot be reached; everything else is the normalizer's problem.
    """

    name = "source"

    def fetch(self, query):
        raise NotImplementedError
