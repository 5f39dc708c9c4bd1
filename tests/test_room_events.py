from __future__ import annotations

import uuid

from app.services.room_events import listen, publish_event, subscribe, subscriber_count, unsubscribe


def test_publish_stamps_room_and_timestamp():
    room_id = str(uuid.uuid4())
    queue = subscribe(room_id)
    try:
        publish_event(room_id, {"type": "message_exchange"})
        event = queue.get_nowait()
    finally:
        unsubscribe(room_id, queue)

    assert event["roomId"] == room_id
    assert event["timestamp"]


def test_full_queue_drops_oldest_without_blocking():
    room_id = str(uuid.uuid4())
    queue = subscribe(room_id, maxsize=2)
    try:
        for i in range(4):
            publish_event(room_id, {"type": "tick", "n": i})
        received = [queue.get_nowait()["n"] for _ in range(queue.qsize())]
    finally:
        unsubscribe(room_id, queue)

    assert received == [2, 3]


def test_listen_yields_none_when_idle_and_unsubscribes_on_close():
    room_id = str(uuid.uuid4())
    events = listen(room_id, keepalive_s=0.01)

    assert next(events) is None
    assert subscriber_count(room_id) == 1

    publish_event(room_id, {"type": "context_refresh", "status": "scheduled"})
    assert next(events)["status"] == "scheduled"

    events.close()
    assert subscriber_count(room_id) == 0
