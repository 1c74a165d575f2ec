import logging
import threading

from ..models import FavoriteEntry, ResolvedFavorite

logger = logging.getLogger("CastDeck")


class FavoritesReconciler:
    """Matches stored favorites against the live channel catalog."""

    def __init__(self, transport, catalog):
        self.transport = transport
        self.catalog = catalog
        self._flags = set()
        self._lock = threading.Lock()

    @staticmethod
    def _key(source_id, item_id):
        return (str(source_id), str(item_id))

    def load_favorites(self, item_type="channel"):
        records = self.transport.get_favorites(item_type)
        favorites = [
            FavoriteEntry.from_raw(r) for r in records if isinstance(r, dict)
        ]
        with self._lock:
            self._flags = {
                self._key(f.source_id, f.item_id)
                for f in favorites
                if f.item_type == "channel"
            }
        return favorites

    def resolve(self, favorites, catalog=None):
        """Live channels for ``favorites``, in input order.

        Unresolvable entries are dropped without a placeholder. An empty
        catalog is loaded first so a cold start does not report every
        favorite as missing.
        """
        catalog = catalog or self.catalog
        if catalog.is_empty:
            logger.info("Catalog empty, loading channels before resolving favorites")
            catalog.load_channels()

        resolved = []
        dropped = 0
        for favorite in favorites:
            if favorite.item_type != "channel":
                continue
            channel = catalog.find_channel(favorite.source_id, favorite.item_id)
            if channel is None:
                dropped += 1
                continue
            resolved.append(ResolvedFavorite(favorite.favorite_id, channel))
        if dropped:
            logger.debug(f"{dropped} favorites did not resolve against the catalog")
        return resolved

    def resolved(self):
        return self.resolve(self.load_favorites())

    def is_favorite(self, source_id, channel_id):
        with self._lock:
            return self._key(source_id, channel_id) in self._flags

    def toggle_favorite(self, source_id, channel_id):
        """Flip the favorite flag; reverted if upstream rejects the change."""
        key = self._key(source_id, channel_id)
        with self._lock:
            was_favorite = key in self._flags
            if was_favorite:
                self._flags.discard(key)
            else:
                self._flags.add(key)

        try:
            if was_favorite:
                self.transport.remove_favorite(source_id, channel_id, "channel")
            else:
                self.transport.add_favorite(source_id, channel_id, "channel")
        except Exception:
            with self._lock:
                if was_favorite:
                    self._flags.add(key)
                else:
                    self._flags.discard(key)
            raise
        return not was_favorite
