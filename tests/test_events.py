from castdeck.events import Signal


def test_emit_in_registration_order():
    signal = Signal("test")
    calls = []
    signal.connect(lambda value: calls.append(("first", value)))
    signal.connect(lambda value: calls.append(("second", value)))
    signal.emit(1)
    assert calls == [("first", 1), ("second", 1)]


def test_failing_listener_does_not_stop_others():
    signal = Signal("test")
    calls = []

    def broken(value):
        raise RuntimeError("boom")

    signal.connect(broken)
    signal.connect(calls.append)
    signal.emit("x")
    assert calls == ["x"]


def test_connect_is_idempotent_and_disconnect():
    signal = Signal("test")
    calls = []
    signal.connect(calls.append)
    signal.connect(calls.append)
    assert len(signal) == 1
    signal.disconnect(calls.append)
    signal.disconnect(calls.append)
    signal.emit(1)
    assert calls == []
