"""Tests for the event bus."""

from initiative_sync.state import EventBus, EventType, TrackerEvent


class TestEventBus:
    def test_subscribe_and_emit(self):
        bus = EventBus()
        received = []
        bus.on(EventType.RECORDS_SYNCED, received.append)

        event = bus.emit(EventType.RECORDS_SYNCED, count=3, merged=False)

        assert received == [event]
        assert isinstance(event, TrackerEvent)
        assert event.data["count"] == 3

    def test_other_types_not_delivered(self):
        bus = EventBus()
        received = []
        bus.on(EventType.GROUP_CREATED, received.append)
        bus.emit(EventType.GROUP_DELETED, group_id="g1")
        assert received == []

    def test_double_subscribe_is_noop(self):
        bus = EventBus()
        handler = lambda e: None
        bus.on(EventType.COMBAT_STARTED, handler)
        bus.on(EventType.COMBAT_STARTED, handler)
        assert bus.listener_count(EventType.COMBAT_STARTED) == 1

    def test_off(self):
        bus = EventBus()
        received = []
        bus.on(EventType.COMBAT_ENDED, received.append)
        bus.off(EventType.COMBAT_ENDED, received.append)
        bus.emit(EventType.COMBAT_ENDED)
        assert received == []

    def test_failing_handler_does_not_stop_others(self):
        bus = EventBus()
        received = []

        def broken(event):
            raise RuntimeError("boom")

        bus.on(EventType.WRITE_FAILED, broken)
        bus.on(EventType.WRITE_FAILED, received.append)
        bus.emit(EventType.WRITE_FAILED, error="x")
        assert len(received) == 1

    def test_history_filter_and_limit(self):
        bus = EventBus(history_limit=3)
        for i in range(5):
            bus.emit(EventType.TURN_ADVANCED, round=i)
        bus.emit(EventType.COMBAT_ENDED)

        history = bus.get_history()
        assert len(history) == 3
        assert [e.data["round"] for e in bus.get_history(EventType.TURN_ADVANCED)] == [3, 4]

    def test_clear(self):
        bus = EventBus()
        bus.on(EventType.ORDER_CHANGED, lambda e: None)
        bus.clear()
        assert bus.listener_count(EventType.ORDER_CHANGED) == 0

    def test_str(self):
        event = TrackerEvent(type=EventType.GROUP_STAGED, data={"staged": True})
        assert str(event) == "[group.staged] {'staged': True}"
