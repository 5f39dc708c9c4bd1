from db.models.message import Message, MessageRole
from db.models.room import Room
from db.models.room_context import RoomContext
from db.models.user import User

__all__ = ["Message", "MessageRole", "Room", "RoomContext", "User"]
