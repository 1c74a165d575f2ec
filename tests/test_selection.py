import pytest

from castdeck.services.selection import SelectionController


@pytest.fixture
def example_engine(upstream, engine):
    # catalog order: {1,a}, {1,b}, {2,a}
    upstream.streams["2"] = [{"stream_id": "a", "name": "Two A", "category_id": "7"}]
    engine.refresh_catalog()
    return engine


def ident(channel):
    return (channel.source_id, channel.stream_id)


def test_select_next_walks_catalog_and_wraps(example_engine):
    selection = example_engine.selection
    assert selection.current is None
    steps = [ident(selection.select_next()) for _ in range(4)]
    assert steps == [("1", "a"), ("1", "b"), ("2", "a"), ("1", "a")]


def test_select_prev_from_unselected_starts_at_last_and_wraps(example_engine):
    selection = example_engine.selection
    assert ident(selection.select_prev()) == ("2", "a")
    assert ident(selection.select_prev()) == ("1", "b")
    assert ident(selection.select_prev()) == ("1", "a")
    assert ident(selection.select_prev()) == ("2", "a")


@pytest.mark.parametrize("start", [("1", "a"), ("1", "b"), ("2", "a")])
def test_select_next_is_cyclic(example_engine, start):
    selection = example_engine.selection
    selection.select(*start)
    view = example_engine.catalog.ordered_view()
    for _ in range(len(view)):
        selection.select_next()
    assert ident(selection.current) == start


def test_navigation_on_empty_catalog_is_noop(engine):
    events = []
    engine.selection_changed.connect(events.append)
    assert engine.selection.select_next() is None
    assert engine.selection.select_prev() is None
    assert engine.selection.current is None
    assert events == []


def test_select_unknown_channel_keeps_state_but_notifies(example_engine):
    selection = example_engine.selection
    events = []
    selection.selection_changed.connect(events.append)

    selection.select(1, "b")
    selection.select(9, "zzz")

    assert ident(selection.current) == ("1", "b")
    assert [ident(c) for c in events] == [("1", "b"), ("1", "b")]


def test_select_unknown_from_unselected_notifies_none(example_engine):
    events = []
    example_engine.selection_changed.connect(events.append)
    assert example_engine.selection.select(9, "zzz") is None
    assert events == [None]


def test_reload_keeps_resolvable_selection(example_engine):
    selection = example_engine.selection
    selection.select(1, "b")
    before = selection.current
    example_engine.catalog.load_channels()
    assert selection.current == before
    assert selection.current is example_engine.catalog.find_channel(1, "b")


def test_reload_clears_dangling_selection(upstream, example_engine):
    selection = example_engine.selection
    events = []
    selection.select(1, "b")
    selection.selection_changed.connect(events.append)

    upstream.streams["1"] = [s for s in upstream.streams["1"] if s["stream_id"] != "b"]
    example_engine.catalog.load_channels()

    assert selection.current is None
    assert not selection.state.is_selected
    assert events == [None]


def test_view_filter_limits_navigation(example_engine):
    selection = example_engine.selection
    selection.set_view_filter(source_id=1)
    assert ident(selection.select_next()) == ("1", "a")
    assert ident(selection.select_next()) == ("1", "b")
    assert ident(selection.select_next()) == ("1", "a")


def test_selection_outside_view_restarts_from_edge(example_engine):
    selection = example_engine.selection
    selection.select(2, "a")
    selection.set_view_filter(search="alpha")
    assert ident(selection.select_next()) == ("1", "a")


@pytest.fixture
def hidden_engine(upstream, engine):
    upstream.streams["1"].append({"stream_id": "c", "name": "Alpha Sport", "category_id": "1"})
    upstream.hidden = {
        "1": [{"item_type": "channel", "item_id": "b"}],
        "2": [{"item_type": "group", "item_id": "7"}],
    }
    engine.refresh_catalog()
    return engine


def test_navigation_skips_hidden_channels_and_groups(hidden_engine):
    selection = hidden_engine.selection
    selection.select(1, "a")
    assert ident(selection.select_next()) == ("1", "c")
    assert ident(selection.select_next()) == ("1", "a")
    assert ident(selection.select_prev()) == ("1", "c")
    assert ident(selection.select_prev()) == ("1", "a")


def test_show_hidden_filter_includes_hidden_channels(hidden_engine):
    selection = hidden_engine.selection
    selection.set_view_filter(show_hidden=True)
    selection.select(1, "a")
    assert ident(selection.select_next()) == ("1", "b")
    selection.set_view_filter()
    assert ident(selection.select_next()) == ("1", "a")


def test_arrow_keys(example_engine):
    selection = example_engine.selection
    assert ident(selection.handle_key("ArrowDown")) == ("1", "a")
    assert ident(selection.handle_key("ArrowUp")) == ("2", "a")
    assert selection.handle_key("Enter") is None
    assert ident(selection.current) == ("2", "a")


def test_arrow_keys_disabled(example_engine):
    selection = example_engine.selection
    selection.arrow_keys_change_channel = False
    assert selection.handle_key("ArrowDown") is None
    assert selection.current is None


def test_controllers_are_isolated(example_engine):
    other = SelectionController(example_engine.catalog)
    example_engine.selection.select(1, "b")
    assert other.current is None
