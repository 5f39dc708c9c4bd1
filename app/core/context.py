from __future__ import annotations

from contextvars import ContextVar
from typing import Optional

room_id_ctx: ContextVar[Optional[str]] = ContextVar("room_id", default=None)


def set_room_id(room_id: Optional[str]) -> None:
    room_id_ctx.set(room_id)


def get_room_id() -> Optional[str]:
    return room_id_ctx.get()
