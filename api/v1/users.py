from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from api.schemas.users import UserCreateRequest, UserRead
from app.chat.factory import get_room_store
from app.services.room_store import RoomStore
from chain.chains import is_sui_address, normalize_sui_address
from db.repos.users_repo import UserAlreadyExistsError

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead)
def create_user_endpoint(payload: UserCreateRequest, store: RoomStore = Depends(get_room_store)) -> UserRead:
    if not is_sui_address(payload.sui_address):
        raise HTTPException(status_code=422, detail="sui_address must be 0x followed by up to 64 hex characters")
    try:
        user = store.create_user(
            sui_address=normalize_sui_address(payload.sui_address),
            name=payload.name,
        )
    except UserAlreadyExistsError:
        raise HTTPException(status_code=409, detail="User already exists")
    return UserRead.model_validate(user)


@router.get("/{user_id}", response_model=UserRead)
def get_user_endpoint(user_id: UUID, store: RoomStore = Depends(get_room_store)) -> UserRead:
    user = store.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")
    return UserRead.model_validate(user)
