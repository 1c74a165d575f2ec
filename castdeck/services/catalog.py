import logging
import threading
import time

from ..errors import NotFoundError, PartialLoadError, TransportError
from ..events import Signal
from ..models import CHANNEL_SOURCE_TYPES, normalize_channels

logger = logging.getLogger("CastDeck")


class HiddenSet:
    """Union of per-source hidden channel/group keys."""

    def __init__(self, keys=None):
        self._keys = set(keys or ())

    @staticmethod
    def key(item_type, source_id, item_id):
        return (str(item_type), str(source_id), str(item_id))

    def add(self, item_type, source_id, item_id):
        self._keys.add(self.key(item_type, source_id, item_id))

    def update_from_records(self, source_id, records):
        for record in records or []:
            if not isinstance(record, dict):
                continue
            item_id = record.get("item_id")
            if item_id is None:
                continue
            self.add(
                record.get("item_type") or "channel",
                record.get("source_id", source_id),
                item_id,
            )

    def contains(self, item_type, source_id, item_id):
        return self.key(item_type, source_id, item_id) in self._keys

    def is_channel_hidden(self, channel):
        if self.contains("channel", channel.source_id, channel.raw_id):
            return True
        return self.is_group_hidden(channel)

    def is_group_hidden(self, channel):
        category_id = channel.group_id.rsplit("_", 1)[-1] if channel.group_id else ""
        return (
            bool(category_id) and self.contains("group", channel.source_id, category_id)
        ) or self.contains("group", channel.source_id, channel.group_title)

    def __len__(self):
        return len(self._keys)


class ChannelCatalog:
    """All channels of every enabled source, in load order."""

    def __init__(self, registry, transport):
        self.registry = registry
        self.transport = transport
        self.catalog_reloaded = Signal("catalog_reloaded")

        self._channels = []
        self._by_id = {}
        self._by_stream_id = {}
        self.hidden = HiddenSet()
        self.collapsed_groups = set()

        self._state_lock = threading.Lock()
        self._load_lock = threading.Lock()
        self.version = 0
        self.loading = False
        self.last_load_error = None
        self.last_loaded_at = None

    def __len__(self):
        with self._state_lock:
            return len(self._channels)

    @property
    def is_empty(self):
        return len(self) == 0

    def load_channels(self):
        """Rebuild the catalog from every enabled channel source.

        Returns the number of channels loaded, or None when another load was
        already running (the call waits for it instead of interleaving).
        """
        if not self._load_lock.acquire(blocking=False):
            logger.info("Channel load already in progress, waiting for it to finish")
            with self._load_lock:
                pass
            return None

        try:
            self.loading = True

            if not self.registry.loaded:
                self.registry.load_sources()

            sources = self.registry.enabled_sources(CHANNEL_SOURCE_TYPES)
            logger.info(f"Loading channels from {len(sources)} enabled sources...")

            channels = []
            hidden = HiddenSet()
            failures = {}
            for source in sources:
                try:
                    categories = self.transport.get_live_categories(source.id)
                    streams = self.transport.get_live_streams(source.id)
                    source_channels = normalize_channels(source, categories, streams)
                    channels.extend(source_channels)
                    logger.info(
                        f"Source {source.name}: {len(source_channels)} channels"
                    )
                except TransportError as e:
                    failures[source.id] = str(e)
                    logger.error(f"Error loading channels for source {source.name}: {e}")
                    continue

                try:
                    hidden.update_from_records(
                        source.id, self.transport.get_hidden_items(source.id)
                    )
                except TransportError as e:
                    logger.error(f"Error loading hidden items for source {source.name}: {e}")

            by_id = {}
            by_stream_id = {}
            for channel in channels:
                by_id.setdefault((channel.source_id, channel.id), channel)
                if channel.stream_id:
                    by_stream_id.setdefault((channel.source_id, channel.stream_id), channel)

            error = PartialLoadError(list(failures), failures) if failures else None
            # Stamps taken before this publish are stale.
            with self._state_lock:
                self.version += 1
                load_version = self.version
                self._channels = channels
                self._by_id = by_id
                self._by_stream_id = by_stream_id
                self.hidden = hidden
                self.last_load_error = error
                self.last_loaded_at = time.time()

            if error:
                logger.warning(f"Channel load finished with errors: {error}")
            logger.info(
                f"Catalog v{load_version} loaded: {len(channels)} channels, "
                f"{len(hidden)} hidden items"
            )
        finally:
            self.loading = False
            self._load_lock.release()

        self.catalog_reloaded.emit(self)
        return len(channels)

    def current_version(self):
        with self._state_lock:
            return self.version

    def find_channel(self, source_id, id_or_stream_id):
        key = (str(source_id), str(id_or_stream_id))
        with self._state_lock:
            channel = self._by_id.get(key)
            if channel is None:
                channel = self._by_stream_id.get(key)
            return channel

    def get_channel(self, source_id, id_or_stream_id):
        channel = self.find_channel(source_id, id_or_stream_id)
        if channel is None:
            raise NotFoundError(f"Channel {id_or_stream_id} not found in source {source_id}")
        return channel

    def channels(self):
        with self._state_lock:
            return list(self._channels)

    def is_hidden(self, channel):
        return self.hidden.is_channel_hidden(channel)

    def ordered_view(self, predicate=None, *, search=None, show_hidden=False, source_id=None):
        with self._state_lock:
            channels = list(self._channels)
            hidden = self.hidden

        term = (search or "").strip().lower()
        source_key = str(source_id) if source_id not in (None, "") else None

        view = []
        for channel in channels:
            if source_key is not None and channel.source_id != source_key:
                continue
            if not show_hidden and hidden.is_channel_hidden(channel):
                continue
            if term and term not in channel.name.lower() and term not in channel.group_title.lower():
                continue
            if predicate is not None and not predicate(channel):
                continue
            view.append(channel)
        return view

    def groups(self, show_hidden=False):
        counts = {}
        for channel in self.ordered_view(show_hidden=show_hidden):
            counts[channel.group_title] = counts.get(channel.group_title, 0) + 1
        return [
            {"name": name, "count": count, "collapsed": name in self.collapsed_groups}
            for name, count in sorted(counts.items(), key=lambda item: item[0].lower())
        ]

    def toggle_group_collapse(self, group_title):
        with self._state_lock:
            if group_title in self.collapsed_groups:
                self.collapsed_groups.discard(group_title)
                return False
            self.collapsed_groups.add(group_title)
            return True

    def is_collapsed(self, group_title):
        return group_title in self.collapsed_groups

    def expand_all(self):
        with self._state_lock:
            self.collapsed_groups.clear()

    def collapse_all(self):
        titles = {channel.group_title for channel in self.channels()}
        with self._state_lock:
            self.collapsed_groups.update(titles)
