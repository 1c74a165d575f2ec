import logging
import time

from .catalog import ChannelCatalog
from .favorites import FavoritesReconciler
from .programs import ProgramCache
from .selection import SelectionController
from .sources import SourceRegistry

logger = logging.getLogger("CastDeck")


class SyncEngine:
    """One session's worth of catalog, EPG, selection and favorites state."""

    def __init__(
        self,
        transport,
        *,
        display_batch_size=50,
        epg_max_age_hours=24,
        arrow_keys_change_channel=True,
        clock=time.time,
    ):
        self.transport = transport
        self.display_batch_size = display_batch_size
        self.epg_max_age_hours = epg_max_age_hours
        self.clock = clock

        self.registry = SourceRegistry(transport)
        self.catalog = ChannelCatalog(self.registry, transport)
        self.programs = ProgramCache(self.registry, transport, self.catalog, clock=clock)
        self.selection = SelectionController(
            self.catalog, arrow_keys_change_channel=arrow_keys_change_channel
        )
        self.favorites = FavoritesReconciler(transport, self.catalog)

        self.catalog_reloaded = self.catalog.catalog_reloaded
        self.epg_refreshed = self.programs.epg_refreshed
        self.selection_changed = self.selection.selection_changed

        self._display_task = None

    def refresh_catalog(self):
        """Reload sources, then channels. Registry failures propagate."""
        self.registry.load_sources()
        return self.catalog.load_channels()

    def refresh_epg(self, force=False):
        return self.programs.load_programs(
            self.catalog.channels(),
            force=force,
            max_age_hours=self.epg_max_age_hours,
        )

    def refresh_display_index(self, identities=None, *, background=True):
        if identities is None:
            identities = [c.identity for c in self.catalog.ordered_view(show_hidden=False)]
        if self._display_task is not None and not self._display_task.done:
            self._display_task.cancel()
        task = self.programs.refresh_display_index_incrementally(
            identities, batch_size=self.display_batch_size
        )
        self._display_task = task
        if background:
            task.start()
        else:
            task.run()
        return task

    def status(self):
        error = self.catalog.last_load_error
        last_updated = self.programs.last_updated
        current = self.selection.current
        return {
            "sources": len(self.registry.sources()),
            "enabled_sources": len(self.registry.enabled_sources()),
            "channels": len(self.catalog),
            "catalog_version": self.catalog.version,
            "catalog_loading": self.catalog.loading,
            "catalog_loaded_at": self.catalog.last_loaded_at,
            "failed_sources": error.failed_source_ids if error else [],
            "last_load_error": str(error) if error else None,
            "epg_last_updated": last_updated or None,
            "epg_age_seconds": (self.clock() - last_updated) if last_updated else None,
            "epg_error": self.programs.last_error,
            "selection": current.to_dict() if current else None,
        }
