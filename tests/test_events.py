"""Ledger event bus."""

from crowdledger.services import INVESTMENT_CREATED, EventBus


def test_observers_receive_events_in_order():
    bus = EventBus()
    seen = []
    bus.subscribe(INVESTMENT_CREATED, lambda event: seen.append(("a", event.payload["n"])))
    bus.subscribe(INVESTMENT_CREATED, lambda event: seen.append(("b", event.payload["n"])))

    bus.publish(INVESTMENT_CREATED, {"n": 1})

    assert seen == [("a", 1), ("b", 1)]


def test_failing_observer_does_not_stop_delivery(caplog):
    bus = EventBus()
    seen = []

    def broken(event):
        raise RuntimeError("socket closed")

    bus.subscribe(INVESTMENT_CREATED, broken)
    bus.subscribe(INVESTMENT_CREATED, seen.append)

    event = bus.publish(INVESTMENT_CREATED, {"n": 1})

    assert seen == [event]
    assert "socket closed" in caplog.text


def test_unsubscribe_and_unknown_event():
    bus = EventBus()
    seen = []
    bus.subscribe(INVESTMENT_CREATED, seen.append)
    bus.unsubscribe(INVESTMENT_CREATED, seen.append)
    bus.unsubscribe("company.updated", seen.append)

    bus.publish(INVESTMENT_CREATED, {})
    bus.publish("nobody.listens", {})

    assert seen == []
