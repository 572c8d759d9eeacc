"""Services for the Gemini chat backend."""
from .llm_client import LLMClient, GenerationError, AdapterError
from .conversation_store import ConversationStore, StoreError
from .fallback import build_fallback
from .chat_service import ChatService, ChatResult, ValidationError

__all__ = ['LLMClient', 'GenerationError', 'AdapterError', 'ConversationStore', 'StoreError', 'build_fallback', 'ChatService', 'ChatResult', 'ValidationError']
