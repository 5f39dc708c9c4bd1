from __future__ import annotations

import logging
from datetime import datetime, timezone
from queue import Empty, Full, Queue
from threading import Lock
from typing import Any, Iterator

logger = logging.getLogger(__name__)

_subscribers: dict[str, list[Queue[dict[str, Any]]]] = {}
_lock = Lock()

DEFAULT_QUEUE_SIZE = 100


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _offer(queue: Queue[dict[str, Any]], event: dict[str, Any]) -> bool:
    """
    Put without blocking. A full queue (slow reader) loses its oldest event;
    returns False when anything was lost.
    """
    try:
        queue.put_nowait(event)
        return True
    except Full:
        pass
    try:
        queue.get_nowait()
    except Empty:
        pass
    try:
        queue.put_nowait(event)
    except Full:
        pass
    return False


def publish_event(room_id: str, event: dict[str, Any]) -> None:
    """
    Fan an event out to every current subscriber of the room.

    Publishing never blocks and never fails when nobody is listening.
    """
    event.setdefault("roomId", room_id)
    event.setdefault("timestamp", _utcnow_iso())
    with _lock:
        queues = list(_subscribers.get(room_id, []))
    dropped = sum(1 for queue in queues if not _offer(queue, event))
    if dropped:
        logger.warning("room events dropped room_id=%s subscribers=%s", room_id, dropped)


def subscribe(room_id: str, *, maxsize: int = DEFAULT_QUEUE_SIZE) -> Queue[dict[str, Any]]:
    queue: Queue[dict[str, Any]] = Queue(maxsize=max(1, maxsize))
    with _lock:
        _subscribers.setdefault(room_id, []).append(queue)
    return queue


def unsubscribe(room_id: str, queue: Queue[dict[str, Any]]) -> None:
    with _lock:
        queues = _subscribers.get(room_id, [])
        if queue in queues:
            queues.remove(queue)
        if not queues and room_id in _subscribers:
            _subscribers.pop(room_id, None)


def subscriber_count(room_id: str) -> int:
    with _lock:
        return len(_subscribers.get(room_id, []))


def listen(
    room_id: str,
    *,
    keepalive_s: float,
    maxsize: int = DEFAULT_QUEUE_SIZE,
) -> Iterator[dict[str, Any] | None]:
    """
    Yield the room's events as they arrive, or None after ``keepalive_s``
    of silence so the caller can write a keep-alive and notice a closed
    connection. The subscription is dropped when the generator is closed.
    """
    queue = subscribe(room_id, maxsize=maxsize)
    try:
        while True:
            try:
                yield queue.get(timeout=keepalive_s)
            except Empty:
                yield None
    finally:
        unsubscribe(room_id, queue)
