"""Tests for the in-process room event fan-out."""

from othelloroom.realtime import GAME_STATE, Broadcaster


def test_publish_reaches_only_room_subscribers():
    broadcaster = Broadcaster()
    seen = []
    broadcaster.subscribe("a", lambda event, payload: seen.append(("a", event, payload)))
    broadcaster.subscribe("b", lambda event, payload: seen.append(("b", event, payload)))

    broadcaster.publish("a", GAME_STATE, {"turn": 1})
    assert seen == [("a", GAME_STATE, {"turn": 1})]


def test_failing_subscriber_does_not_block_others():
    broadcaster = Broadcaster()
    seen = []

    def broken(event, payload):
        raise RuntimeError("socket closed")

    broadcaster.subscribe("room", broken)
    broadcaster.subscribe("room", lambda event, payload: seen.append(event))
    broadcaster.publish("room", GAME_STATE, {})
    assert seen == [GAME_STATE]


def test_unsubscribe():
    broadcaster = Broadcaster()
    unsubscribe = broadcaster.subscribe("room", lambda event, payload: None)
    assert broadcaster.subscriber_count("room") == 1
    unsubscribe()
    unsubscribe()
    assert broadcaster.subscriber_count("room") == 0
