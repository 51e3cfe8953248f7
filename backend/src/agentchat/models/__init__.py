from .user import User
from .chat import Chat
from .message import Message
from .video import Video

__all__ = ["User", "Chat", "Message", "Video"]
