"""
Tests for the in-process event bus.
"""

from overlay_assistant.utils.event_bus import EventBus, TOKEN_EVENT, DONE_EVENT


class TestEventBus:

    def test_publish_reaches_subscribers_in_order(self):
        bus = EventBus()
        seen = []
        bus.subscribe(TOKEN_EVENT, lambda p: seen.append(("a", p)))
        bus.subscribe(TOKEN_EVENT, lambda p: seen.append(("b", p)))

        delivered = bus.publish(TOKEN_EVENT, 1)
        bus.publish(TOKEN_EVENT, 2)

        assert delivered == 2
        assert seen == [("a", 1), ("b", 1), ("a", 2), ("b", 2)]

    def test_events_are_isolated_by_name(self):
        bus = EventBus()
        seen = []
        bus.subscribe(DONE_EVENT, seen.append)

        assert bus.publish(TOKEN_EVENT, "x") == 0
        assert seen == []

    def test_unsubscribe_is_idempotent(self):
        bus = EventBus()
        seen = []
        subscription = bus.subscribe(TOKEN_EVENT, seen.append)

        subscription.unsubscribe()
        subscription.unsubscribe()
        bus.publish(TOKEN_EVENT, "x")

        assert seen == []
        assert bus.subscriber_count(TOKEN_EVENT) == 0

    def test_handler_may_unsubscribe_during_publish(self):
        bus = EventBus()
        seen = []
        holder = {}

        def once(payload):
            seen.append(payload)
            holder["sub"].unsubscribe()

        holder["sub"] = bus.subscribe(TOKEN_EVENT, once)
        bus.publish(TOKEN_EVENT, 1)
        bus.publish(TOKEN_EVENT, 2)

        assert seen == [1]

    def test_failing_handler_does_not_block_others(self):
        bus = EventBus()
        seen = []

        def broken(_payload):
            raise RuntimeError("boom")

        bus.subscribe(TOKEN_EVENT, broken)
        bus.subscribe(TOKEN_EVENT, seen.append)

        delivered = bus.publish(TOKEN_EVENT, "x")

        assert seen == ["x"]
        assert delivered == 1
