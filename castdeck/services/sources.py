import logging
import threading

from ..models import Source

logger = logging.getLogger("CastDeck")


class SourceRegistry:
    """Configured upstream sources for the current session."""

    def __init__(self, transport):
        self.transport = transport
        self._sources = []
        self._lock = threading.Lock()
        self.loaded = False

    def load_sources(self):
        """Fetch the source list.

        TransportError propagates and the previously loaded list stays in
        place.
        """
        raw_sources = self.transport.get_sources()
        sources = []
        seen = set()
        for raw in raw_sources:
            if not isinstance(raw, dict) or raw.get("id") is None:
                logger.warning(f"Skipping malformed source record: {raw!r}")
                continue
            source = Source.from_raw(raw)
            if source.id in seen:
                logger.warning(f"Duplicate source id {source.id}, keeping first")
                continue
            seen.add(source.id)
            sources.append(source)

        with self._lock:
            self._sources = sources
            self.loaded = True
        logger.info(
            f"Loaded {len(sources)} sources ({len(self.enabled_sources())} enabled)"
        )
        return list(sources)

    def sources(self):
        with self._lock:
            return list(self._sources)

    def enabled_sources(self, filter_type=None):
        if isinstance(filter_type, str):
            filter_type = (filter_type,)
        with self._lock:
            return [
                s
                for s in self._sources
                if s.enabled and (not filter_type or s.type in filter_type)
            ]

    def get(self, source_id):
        key = str(source_id)
        with self._lock:
            for source in self._sources:
                if source.id == key:
                    return source
        return None
