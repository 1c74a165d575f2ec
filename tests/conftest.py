import pytest

from castdeck.errors import TransportError
from castdeck.services.engine import SyncEngine


class FakeUpstream:
    """In-memory stand-in for UpstreamClient."""

    def __init__(self, sources=None, streams=None, categories=None, epg=None,
                 favorites=None, hidden=None):
        self.sources = sources or []
        self.streams = streams or {}
        self.categories = categories or {}
        self.epg = epg or {}
        self.favorites = favorites or []
        self.hidden = hidden or {}
        self.fail_sources = False
        self.fail_channels = set()
        self.fail_epg = set()
        self.fail_favorite_writes = False
        self.calls = []

    def get_sources(self):
        self.calls.append(("sources",))
        if self.fail_sources:
            raise TransportError("sources unreachable")
        return list(self.sources)

    def get_live_categories(self, source_id):
        self.calls.append(("categories", source_id))
        if str(source_id) in self.fail_channels:
            raise TransportError(f"source {source_id} down")
        return list(self.categories.get(str(source_id), []))

    def get_live_streams(self, source_id):
        self.calls.append(("streams", source_id))
        if str(source_id) in self.fail_channels:
            raise TransportError(f"source {source_id} down")
        return list(self.streams.get(str(source_id), []))

    def get_epg(self, source_id, *, channel_ids=None, refresh=False, max_age_hours=24):
        self.calls.append(("epg", source_id, refresh))
        if str(source_id) in self.fail_epg:
            raise TransportError(f"epg {source_id} down")
        return self.epg.get(str(source_id), {"channels": [], "programmes": []})

    def get_favorites(self, item_type=None):
        self.calls.append(("favorites", item_type))
        return list(self.favorites)

    def add_favorite(self, source_id, item_id, item_type="channel"):
        self.calls.append(("add_favorite", source_id, item_id))
        if self.fail_favorite_writes:
            raise TransportError("write rejected")

    def remove_favorite(self, source_id, item_id, item_type="channel"):
        self.calls.append(("remove_favorite", source_id, item_id))
        if self.fail_favorite_writes:
            raise TransportError("write rejected")

    def get_hidden_items(self, source_id):
        self.calls.append(("hidden", source_id))
        return list(self.hidden.get(str(source_id), []))


def stream(stream_id, name, category_id="1", epg_id=""):
    return {
        "stream_id": stream_id,
        "name": name,
        "category_id": category_id,
        "epg_channel_id": epg_id,
        "stream_icon": f"http://logos/{stream_id}.png",
    }


@pytest.fixture
def upstream():
    return FakeUpstream(
        sources=[
            {"id": 1, "type": "xtream", "name": "Alpha", "enabled": True},
            {"id": 2, "type": "m3u", "name": "Beta", "enabled": True},
            {"id": 3, "type": "xtream", "name": "Off", "enabled": False},
        ],
        categories={
            "1": [{"category_id": "1", "category_name": "News"}],
            "2": [{"category_id": 7, "category_name": "Sports"}],
        },
        streams={
            "1": [stream("a", "Alpha News", epg_id="news.a"), stream("b", "Alpha Weather")],
            "2": [stream("a", "Beta Sport", category_id="7")],
            "3": [stream("x", "Disabled")],
        },
    )


@pytest.fixture
def engine(upstream):
    return SyncEngine(upstream, display_batch_size=2)


@pytest.fixture
def loaded_engine(engine):
    engine.refresh_catalog()
    return engine
