"""
tests/test_realtime_hub.py — Room Registry & Fan-out
=====================================================
"""

from __future__ import annotations

from conftest import run_async

from quizmize.realtime.hub import ONLINE_COUNT, RealtimeHub


class _Conn:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.frames: list[dict] = []

    async def send_json(self, data):
        if self.fail:
            raise ConnectionError("gone")
        self.frames.append(data)


class TestRooms:
    def test_online_count_is_distinct_accounts(self):
        hub = RealtimeHub()
        hub.connect(1, _Conn(), 10)
        hub.connect(1, _Conn(), 10)
        hub.connect("1", _Conn(), 11)
        assert hub.online_count(1) == 2
        assert len(hub.connections("1")) == 3

    def test_disconnect_returns_account_and_empties_room(self):
        hub = RealtimeHub()
        conn = _Conn()
        hub.connect(7, conn, 42)
        assert hub.disconnect(7, conn) == 42
        assert hub.online_count(7) == 0
        assert hub.disconnect(7, conn) is None


class TestPublish:
    def test_frames_reach_only_the_room(self):
        hub = RealtimeHub()
        inside, outside = _Conn(), _Conn()
        hub.connect(1, inside, 10)
        hub.connect(2, outside, 11)

        delivered = run_async(hub.publish(1, "new-post", {"id": "5"}))

        assert delivered == 1
        assert inside.frames == [{"event": "new-post", "data": {"id": "5"}}]
        assert outside.frames == []

    def test_failed_connection_is_dropped(self):
        hub = RealtimeHub()
        good, bad = _Conn(), _Conn(fail=True)
        hub.connect(1, good, 10)
        hub.connect(1, bad, 11)

        assert run_async(hub.publish(1, "chat-message", {})) == 1
        assert hub.connections(1) == [good]

    def test_publish_online_count(self):
        hub = RealtimeHub()
        conn = _Conn()
        hub.connect(3, conn, 10)
        run_async(hub.publish_online_count(3))
        assert conn.frames == [{"event": ONLINE_COUNT, "data": {"groupId": "3", "count": 1}}]

    def test_publish_to_empty_room(self):
        assert run_async(RealtimeHub().publish(99, "new-post", {})) == 0
