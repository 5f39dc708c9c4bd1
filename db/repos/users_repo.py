from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from db.models.user import User


class UserNotFoundError(Exception):
    pass


class UserAlreadyExistsError(Exception):
    pass


def create_user(db: Session, *, sui_address: str, name: str | None = None) -> User:
    if get_user_by_address(db, sui_address) is not None:
        raise UserAlreadyExistsError(f"User already exists: {sui_address}")
    user = User(sui_address=sui_address, name=name, is_active=True)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def get_user(db: Session, user_id: uuid.UUID) -> User | None:
    return db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()


def get_user_by_address(db: Session, sui_address: str) -> User | None:
    return db.execute(
        select(User).where(User.sui_address == sui_address)
    ).scalar_one_or_none()
