import pytest

from nebula import Event, EventDispatcher


def test_assigned_handler_runs_before_listeners() -> None:
    calls: list[str] = []
    dispatcher = EventDispatcher()
    dispatcher.add_listener("load", lambda: calls.append("first listener"))
    dispatcher.add_listener(Event.LOAD, lambda: calls.append("second listener"))
    dispatcher.set_handler("load", lambda: calls.append("handler"))
    dispatcher.dispatch(Event.LOAD)
    assert calls == ["handler", "first listener", "second listener"]


def test_set_handler_replaces_previous_handler() -> None:
    calls: list[str] = []
    dispatcher = EventDispatcher()
    dispatcher.set_handler(Event.ERROR, lambda: calls.append("old"))
    dispatcher.set_handler(Event.ERROR, lambda: calls.append("new"))
    dispatcher.dispatch("error")
    dispatcher.set_handler(Event.ERROR, None)
    dispatcher.dispatch("error")
    assert calls == ["new"]


def test_remove_listener() -> None:
    calls: list[str] = []
    dispatcher = EventDispatcher()

    def listener() -> None:
        calls.append("called")

    dispatcher.add_listener(Event.ABORT, listener)
    dispatcher.remove_listener(Event.ABORT, listener)
    dispatcher.remove_listener(Event.ABORT, listener)
    dispatcher.dispatch(Event.ABORT)
    assert calls == []


def test_unknown_event_name_is_rejected() -> None:
    with pytest.raises(ValueError):
        EventDispatcher().dispatch("readystatechange")
