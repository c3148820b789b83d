from .base import Base, async_engine, async_session_factory, get_db
from .chat import ChatMessage, ChatSession, MessageRole
from .document_version import DocumentVersionRecord
from .user_document import UserDocument

__all__ = [
    "Base",
    "async_engine",
    "async_session_factory",
    "get_db",
    "ChatSession",
    "ChatMessage",
    "MessageRole",
    "DocumentVersionRecord",
    "UserDocument",
]
