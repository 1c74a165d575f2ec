import threading

import pytest

from castdeck.errors import NotFoundError, PartialLoadError, TransportError
from castdeck.services.catalog import HiddenSet


def names(channels):
    return [c.name for c in channels]


def test_load_channels_only_enabled_sources_in_order(loaded_engine):
    catalog = loaded_engine.catalog
    assert names(catalog.ordered_view()) == ["Alpha News", "Alpha Weather", "Beta Sport"]
    assert [c.sort_order for c in catalog.ordered_view()] == [0, 1, 0]
    assert catalog.last_load_error is None


def test_channel_normalization(loaded_engine):
    channel = loaded_engine.catalog.find_channel(1, "a")
    assert channel.id == "xtream_1_a"
    assert channel.source_id == "1"
    assert channel.stream_id == "a"
    assert channel.group_title == "News"
    assert channel.tvg_id == "news.a"
    assert channel.logo_url == "http://logos/a.png"
    # numeric category id on the category, string on the stream
    assert loaded_engine.catalog.find_channel(2, "a").group_title == "Sports"


def test_missing_category_is_uncategorized(upstream, engine):
    upstream.streams["1"].append({"stream_id": "z", "name": "Lost", "category_id": "99"})
    engine.refresh_catalog()
    assert engine.catalog.find_channel(1, "z").group_title == "Uncategorized"


def test_partial_failure_yields_union_of_successful_sources(upstream, loaded_engine):
    catalog = loaded_engine.catalog
    upstream.fail_channels.add("1")

    total = catalog.load_channels()

    assert total == 1
    assert names(catalog.ordered_view()) == ["Beta Sport"]
    # nothing from source 1's earlier successful load survives
    assert catalog.find_channel(1, "a") is None
    assert isinstance(catalog.last_load_error, PartialLoadError)
    assert catalog.last_load_error.failed_source_ids == ["1"]


def test_all_sources_failing_still_completes(upstream, loaded_engine):
    upstream.fail_channels.update({"1", "2"})
    assert loaded_engine.catalog.load_channels() == 0
    assert loaded_engine.catalog.is_empty
    assert loaded_engine.catalog.last_load_error.failed_source_ids == ["1", "2"]


def test_registry_failure_leaves_catalog_unchanged(upstream, loaded_engine):
    upstream.fail_sources = True
    with pytest.raises(TransportError):
        loaded_engine.refresh_catalog()
    assert len(loaded_engine.catalog) == 3


def test_find_channel_by_id_or_stream_id(loaded_engine):
    catalog = loaded_engine.catalog
    by_id = catalog.find_channel("1", "xtream_1_b")
    by_stream = catalog.find_channel(1, "b")
    assert by_id is by_stream
    assert catalog.find_channel(1, "b") is by_stream
    assert catalog.find_channel(9, "b") is None
    assert catalog.find_channel(1, "missing") is None


def test_get_channel_raises_not_found(loaded_engine):
    with pytest.raises(NotFoundError):
        loaded_engine.catalog.get_channel(1, "missing")


def test_same_name_in_two_sources_kept_distinct(upstream, engine):
    upstream.streams["2"].append({"stream_id": "q", "name": "Alpha News", "category_id": "7"})
    engine.refresh_catalog()
    matches = engine.catalog.ordered_view(search="alpha news")
    assert [c.source_id for c in matches] == ["1", "2"]


def test_ordered_view_filters_do_not_mutate(loaded_engine):
    catalog = loaded_engine.catalog
    assert names(catalog.ordered_view(search="WEATHER")) == ["Alpha Weather"]
    assert names(catalog.ordered_view(search="sports")) == ["Beta Sport"]
    assert names(catalog.ordered_view(source_id=2)) == ["Beta Sport"]
    assert names(catalog.ordered_view(lambda c: c.stream_id == "a")) == ["Alpha News", "Beta Sport"]
    assert len(catalog) == 3


def test_hidden_channels_and_groups(upstream, engine):
    upstream.hidden = {
        "1": [{"item_type": "channel", "item_id": "b"}],
        "2": [{"item_type": "group", "item_id": "7"}],
    }
    engine.refresh_catalog()
    catalog = engine.catalog
    assert names(catalog.ordered_view()) == ["Alpha News"]
    assert names(catalog.ordered_view(show_hidden=False)) == ["Alpha News"]
    assert len(catalog.ordered_view(show_hidden=True)) == 3
    assert [g["name"] for g in catalog.groups()] == ["News"]


def test_hidden_set_matches_group_title():
    hidden = HiddenSet()
    hidden.add("group", 1, "News")
    assert hidden.contains("group", "1", "News")
    assert not hidden.contains("channel", "1", "News")


def test_group_collapse_state(loaded_engine):
    catalog = loaded_engine.catalog
    assert catalog.toggle_group_collapse("News") is True
    assert catalog.is_collapsed("News")
    assert catalog.toggle_group_collapse("News") is False
    catalog.collapse_all()
    assert catalog.collapsed_groups == {"News", "Sports"}
    catalog.expand_all()
    assert not catalog.collapsed_groups


def test_catalog_reloaded_notifies_and_bumps_version(engine):
    seen = []
    engine.catalog_reloaded.connect(lambda catalog: seen.append(len(catalog)))
    engine.refresh_catalog()
    engine.catalog.load_channels()
    assert seen == [3, 3]
    assert engine.catalog.version == 2


class ContendedLock:
    """Lock that reports when a non-blocking acquire fails."""

    def __init__(self):
        self._lock = threading.Lock()
        self.contended = threading.Event()

    def acquire(self, blocking=True):
        acquired = self._lock.acquire(blocking)
        if not acquired:
            self.contended.set()
        return acquired

    def release(self):
        self._lock.release()

    def __enter__(self):
        self._lock.acquire()
        return self

    def __exit__(self, *exc):
        self._lock.release()


def test_concurrent_load_waits_instead_of_interleaving(upstream, engine):
    engine.registry.load_sources()
    lock = ContendedLock()
    engine.catalog._load_lock = lock
    entered = threading.Event()
    release = threading.Event()
    original = upstream.get_live_streams

    def slow_streams(source_id):
        entered.set()
        release.wait(5)
        return original(source_id)

    upstream.get_live_streams = slow_streams
    results = {}
    first = threading.Thread(target=lambda: results.setdefault("first", engine.catalog.load_channels()))
    first.start()
    assert entered.wait(5)

    second = threading.Thread(target=lambda: results.setdefault("second", engine.catalog.load_channels()))
    second.start()
    assert lock.contended.wait(5)
    release.set()
    first.join(5)
    second.join(5)

    assert results == {"first": 3, "second": None}
    assert engine.catalog.version == 1
