from .crud_users import crud_users, CRUDUser
from .crud_chat import crud_chat, CRUDChat
from .crud_message import crud_message, CRUDMessage
from .crud_video import crud_video, CRUDVideo

__all__ = [
    "crud_users",
    "CRUDUser",
    "crud_chat",
    "CRUDChat",
    "crud_message",
    "CRUDMessage",
    "crud_video",
    "CRUDVideo",
]
