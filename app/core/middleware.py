from __future__ import annotations

import re

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.context import set_room_id

# path params are not resolved yet when middleware runs
_ROOM_PATH = re.compile(r"/rooms/([0-9a-fA-F-]{36})(?:/|$)")


class RoomContextMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        """
        Sets room_id into contextvars for the lifetime of the request.

        Priority:
        1. Path segment: /rooms/{room_id}
        2. Header: X-Room-Id
        """
        room_id = None

        match = _ROOM_PATH.search(request.url.path)
        if match:
            room_id = match.group(1)

        if not room_id:
            room_id = request.headers.get("X-Room-Id")

        try:
            if room_id:
                set_room_id(str(room_id))
            response = await call_next(request)
            return response
        finally:
            set_room_id(None)
