import logging

from ayursutra.lib.event_dispatcher import EventDispatcher


def test_handlers_run_in_registration_order():
    dispatcher = EventDispatcher()
    calls = []
    dispatcher.on("notification", lambda data: calls.append(("first", data)))
    dispatcher.on("notification", lambda data: calls.append(("second", data)))

    delivered = dispatcher.emit("notification", {"message": "hi"})

    assert delivered == 2
    assert calls == [("first", {"message": "hi"}), ("second", {"message": "hi"})]


def test_emit_without_handlers_is_noop():
    dispatcher = EventDispatcher()
    assert dispatcher.emit("nobody_listens", 1) == 0


def test_failing_handler_does_not_stop_siblings(caplog):
    dispatcher = EventDispatcher()
    calls = []

    def broken(data):
        raise RuntimeError("boom")

    dispatcher.on("booking_update", broken)
    dispatcher.on("booking_update", calls.append)

    with caplog.at_level(logging.ERROR):
        delivered = dispatcher.emit("booking_update", "payload")

    assert calls == ["payload"]
    assert delivered == 1
    assert "boom" in caplog.text
    # the failing handler stays registered
    assert dispatcher.listener_count("booking_update") == 2


def test_off_removes_specific_handler():
    dispatcher = EventDispatcher()
    first, second = [], []
    dispatcher.on("wellness_update", first.append)
    dispatcher.on("wellness_update", second.append)

    assert dispatcher.off("wellness_update", first.append) is True
    dispatcher.emit("wellness_update", 1)

    assert first == []
    assert second == [1]


def test_off_unknown_handler_returns_false():
    dispatcher = EventDispatcher()
    assert dispatcher.off("notification", print) is False
    dispatcher.on("notification", print)
    assert dispatcher.off("notification", len) is False


def test_handler_may_unsubscribe_during_emit():
    dispatcher = EventDispatcher()
    calls = []

    def once(data):
        calls.append(("once", data))
        dispatcher.off("tick", once)

    dispatcher.on("tick", once)
    dispatcher.on("tick", lambda data: calls.append(("always", data)))

    dispatcher.emit("tick", 1)
    dispatcher.emit("tick", 2)

    assert calls == [("once", 1), ("always", 1), ("always", 2)]


def test_bound_methods_can_be_removed():
    class Listener:
        def __init__(self):
            self.seen = []

        def handle(self, data):
            self.seen.append(data)

    dispatcher = EventDispatcher()
    listener = Listener()
    dispatcher.on("notification", listener.handle)
    assert dispatcher.off("notification", listener.handle) is True
    dispatcher.emit("notification", 1)
    assert listener.seen == []


def test_clear():
    dispatcher = EventDispatcher()
    dispatcher.on("a", print)
    dispatcher.on("b", print)

    dispatcher.clear("a")
    assert dispatcher.listener_count("a") == 0
    assert dispatcher.listener_count("b") == 1

    dispatcher.clear()
    assert dispatcher.listener_count("b") == 0
