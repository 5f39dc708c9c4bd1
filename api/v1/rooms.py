from __future__ import annotations

import json
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.responses import StreamingResponse

from api.schemas.rooms import (
    MessageCreateRequest,
    MessageCreateResponse,
    RoomContextRead,
    RoomCreateRequest,
    RoomDetailResponse,
    RoomPreferencesRequest,
    RoomRead,
    RoomUpdateRequest,
)
from app.chat.contracts import ChatMessage
from app.chat.factory import get_pipeline, get_room_store
from app.chat.pipeline import MessagePipeline
from app.config import get_settings
from app.services.room_events import listen
from app.services.room_store import RoomStore
from db.repos.messages_repo import PersistenceError
from db.repos.rooms_repo import RoomNotFoundError
from db.repos.users_repo import UserNotFoundError

router = APIRouter(prefix="/rooms", tags=["rooms"])


_SSE_KEEPALIVE = ": keep-alive\n\n"


def _sse_event(payload: dict) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=True, default=str)}\n\n"


def _require_room(store: RoomStore, room_id: UUID):
    room = store.get_room(room_id)
    if room is None:
        raise HTTPException(status_code=404, detail="Room not found")
    return room


@router.post("", response_model=RoomRead)
def create_room_endpoint(payload: RoomCreateRequest, store: RoomStore = Depends(get_room_store)) -> RoomRead:
    try:
        room = store.create_room(
            user_id=payload.user_id,
            title=payload.title,
            description=payload.description,
        )
    except UserNotFoundError:
        raise HTTPException(status_code=404, detail="User not found")
    return RoomRead.model_validate(room)


@router.get("", response_model=list[RoomRead])
def list_rooms_endpoint(
    user_id: UUID = Query(..., description="Owner of the rooms"),
    store: RoomStore = Depends(get_room_store),
) -> list[RoomRead]:
    return [RoomRead.model_validate(room) for room in store.list_rooms(user_id=user_id)]


@router.get("/{room_id}", response_model=RoomDetailResponse)
def get_room_endpoint(
    room_id: UUID,
    limit: int = Query(10, ge=1, le=100, description="Number of most recent messages"),
    store: RoomStore = Depends(get_room_store),
) -> RoomDetailResponse:
    room = _require_room(store, room_id)
    messages = store.find_recent_messages(room_id, limit=limit)
    return RoomDetailResponse(
        room=RoomRead.model_validate(room),
        context=RoomContextRead.model_validate(room.context) if room.context is not None else None,
        messages=[ChatMessage.model_validate(m) for m in messages],
    )


@router.patch("/{room_id}", response_model=RoomRead)
def update_room_endpoint(
    room_id: UUID,
    payload: RoomUpdateRequest,
    store: RoomStore = Depends(get_room_store),
) -> RoomRead:
    try:
        room = store.update_room(
            room_id=room_id,
            title=payload.title,
            description=payload.description,
            is_active=payload.is_active,
        )
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomRead.model_validate(room)


@router.patch("/{room_id}/preferences", response_model=RoomContextRead)
def update_preferences_endpoint(
    room_id: UUID,
    payload: RoomPreferencesRequest,
    store: RoomStore = Depends(get_room_store),
) -> RoomContextRead:
    try:
        context = store.update_preferences(
            room_id,
            user_preferences=payload.user_preferences,
            conversation_style=payload.conversation_style,
        )
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")
    return RoomContextRead.model_validate(context)


@router.delete("/{room_id}", status_code=204)
def delete_room_endpoint(room_id: UUID, store: RoomStore = Depends(get_room_store)) -> Response:
    try:
        store.delete_room(room_id)
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")
    return Response(status_code=204)


@router.post("/{room_id}/messages", response_model=MessageCreateResponse)
def send_message_endpoint(
    room_id: UUID,
    payload: MessageCreateRequest,
    pipeline: MessagePipeline = Depends(get_pipeline),
) -> MessageCreateResponse:
    if not payload.message:
        raise HTTPException(status_code=422, detail="message must not be empty")
    try:
        result = pipeline.handle(
            room_id=room_id,
            text=payload.message,
            wallet_address=payload.wallet_address,
            sender_id=payload.sender_id,
        )
    except RoomNotFoundError:
        raise HTTPException(status_code=404, detail="Room not found")
    except PersistenceError:
        raise HTTPException(status_code=503, detail="Message could not be saved, please retry")

    return MessageCreateResponse(
        room_id=result.room_id,
        intent=result.intent,
        message=result.assistant_message,
        user_message=result.user_message,
        message_count=result.message_count,
        refresh_scheduled=result.refresh_scheduled,
        data_status=result.data_status,
    )


@router.get("/{room_id}/messages", response_model=list[ChatMessage])
def list_messages_endpoint(
    room_id: UUID,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    store: RoomStore = Depends(get_room_store),
) -> list[ChatMessage]:
    _require_room(store, room_id)
    return [ChatMessage.model_validate(m) for m in store.list_messages(room_id, limit=limit, offset=offset)]


@router.get("/{room_id}/events")
def stream_room_events(room_id: UUID, store: RoomStore = Depends(get_room_store)) -> StreamingResponse:
    room = _require_room(store, room_id)
    context = room.context
    settings = get_settings()

    def event_stream():
        yield _sse_event(
            {
                "type": "room_snapshot",
                "roomId": str(room_id),
                "messageCount": store.count_messages(room_id),
                "keywords": list(context.keywords or []) if context is not None else [],
                "contextUpdated": context.last_updated.isoformat() if context is not None else None,
                "replay": True,
            }
        )

        events = listen(
            str(room_id),
            keepalive_s=settings.events_keepalive_s,
            maxsize=settings.events_queue_size,
        )
        try:
            for event in events:
                # a comment line on idle; a closed client fails the write
                yield _SSE_KEEPALIVE if event is None else _sse_event(event)
        finally:
            events.close()

    return StreamingResponse(event_stream(), media_type="text/event-stream")
