import logging
import threading

from ..errors import StaleSelectionError
from ..events import Signal
from ..models import Selection

logger = logging.getLogger("CastDeck")

NEXT_KEYS = ("ArrowDown",)
PREV_KEYS = ("ArrowUp",)


class SelectionController:
    """Current channel plus prev/next navigation over the catalog's view."""

    def __init__(self, catalog, *, arrow_keys_change_channel=True):
        self.catalog = catalog
        self.state = Selection()
        self.selection_changed = Signal("selection_changed")
        self.arrow_keys_change_channel = arrow_keys_change_channel
        self._view_filter = {"show_hidden": False}
        self._lock = threading.RLock()
        catalog.catalog_reloaded.connect(self._on_catalog_reloaded)

    @property
    def current(self):
        return self.state.channel

    def set_view_filter(self, predicate=None, *, search=None, show_hidden=False, source_id=None):
        with self._lock:
            self._view_filter = {
                "predicate": predicate,
                "search": search,
                "show_hidden": show_hidden,
                "source_id": source_id,
            }

    def _view(self):
        with self._lock:
            view_filter = dict(self._view_filter)
        predicate = view_filter.pop("predicate", None)
        return self.catalog.ordered_view(predicate, **view_filter)

    def select(self, source_id, id_or_stream_id):
        channel = self.catalog.find_channel(source_id, id_or_stream_id)
        with self._lock:
            if channel is None:
                logger.warning(f"Select ignored, channel {source_id}/{id_or_stream_id} not in catalog")
            else:
                self.state.channel = channel
            current = self.state.channel
        self.selection_changed.emit(current)
        return current

    def _step(self, delta):
        view = self._view()
        if not view:
            return None
        with self._lock:
            identity = self.state.identity
            index = None
            if identity is not None:
                for i, channel in enumerate(view):
                    if channel.identity == identity:
                        index = i
                        break
            if index is None:
                target = view[0] if delta > 0 else view[-1]
            else:
                target = view[(index + delta) % len(view)]
            self.state.channel = target
        self.selection_changed.emit(target)
        return target

    def select_next(self):
        return self._step(1)

    def select_prev(self):
        return self._step(-1)

    def handle_key(self, key):
        if not self.arrow_keys_change_channel:
            return None
        if key in NEXT_KEYS:
            return self.select_next()
        if key in PREV_KEYS:
            return self.select_prev()
        return None

    def _resolve_current(self):
        identity = self.state.identity
        if identity is None:
            return None
        channel = self.catalog.find_channel(*identity)
        if channel is None:
            raise StaleSelectionError(f"Selected channel {identity} no longer in catalog")
        return channel

    def _on_catalog_reloaded(self, catalog=None):
        with self._lock:
            try:
                self.state.channel = self._resolve_current()
                return
            except StaleSelectionError as e:
                logger.info(f"{e}, clearing selection")
                self.state.channel = None
        self.selection_changed.emit(None)
