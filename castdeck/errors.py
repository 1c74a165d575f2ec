class CastDeckError(Exception):
    """Base class for engine errors."""


class TransportError(CastDeckError):
    """A request to the upstream API could not complete."""

    def __init__(self, message, *, url=None, status_code=None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class PartialLoadError(CastDeckError):
    """One or more sources failed during an aggregate load.

    Recorded on the component that ran the load, never raised: the load
    itself completes with whatever subset succeeded.
    """

    def __init__(self, failed_source_ids, errors=None):
        self.failed_source_ids = list(failed_source_ids)
        self.errors = dict(errors or {})
        super().__init__(
            f"{len(self.failed_source_ids)} source(s) failed to load: "
            + ", ".join(str(s) for s in self.failed_source_ids)
        )


class NotFoundError(CastDeckError):
    """Lookup miss. Query methods return None instead of raising this."""


class StaleSelectionError(CastDeckError):
    """The selected channel no longer resolves after a catalog reload."""
