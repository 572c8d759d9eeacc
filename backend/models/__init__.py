"""Data models for the Gemini chat backend."""
from .conversation import Conversation, Role, Turn
from .api import ChatRequest, ChatResponse, LogoutRequest, LogoutResponse, ErrorResponse

__all__ = [
    "Conversation",
    "Role",
    "Turn",
    "ChatRequest",
    "ChatResponse",
    "LogoutRequest",
    "LogoutResponse",
    "ErrorResponse",
]
