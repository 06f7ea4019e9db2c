"""Tests for the event bus."""

from desk_automation.core.bus import Event, EventBus, EventFilter


def make_event(event_type: str, rule_id=None) -> Event:
    return Event(type=event_type, source="test", rule_id=rule_id)


class TestEventFilter:
    def test_empty_filter_matches_everything(self):
        assert EventFilter().matches(make_event("engine.started"))

    def test_exact_type(self):
        event_filter = EventFilter(event_type="automation.executed")
        assert event_filter.matches(make_event("automation.executed"))
        assert not event_filter.matches(make_event("automation.failed"))

    def test_namespace_wildcard(self):
        event_filter = EventFilter(event_type="automation.*")
        assert event_filter.matches(make_event("automation.failed"))
        assert not event_filter.matches(make_event("engine.started"))

    def test_rule_id(self):
        event_filter = EventFilter(rule_id="abc")
        assert event_filter.matches(make_event("automation.executed", rule_id="abc"))
        assert not event_filter.matches(make_event("automation.executed", rule_id="xyz"))


class TestEventBus:
    def test_publish_to_matching_handlers(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append, EventFilter(event_type="engine.*"))

        bus.publish(make_event("engine.started"))
        bus.publish(make_event("automation.executed"))

        assert [e.type for e in received] == ["engine.started"]

    def test_failing_handler_does_not_block_others(self):
        """Test that an exception in one handler is contained."""
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.subscribe(broken)
        bus.subscribe(received.append)
        bus.publish(make_event("engine.stopped"))

        assert len(received) == 1

    def test_unsubscribe(self):
        bus = EventBus()
        received = []
        bus.subscribe(received.append)
        bus.unsubscribe(received.append)

        bus.publish(make_event("engine.started"))
        assert received == []
