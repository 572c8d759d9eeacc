"""Chat request cycle: load history, generate (or fall back), persist."""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional

from models.conversation import Role, Turn
from services.conversation_store import ConversationStore
from services.fallback import build_fallback
from services.llm_client import LLMClient, AdapterError

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised when a required request field is missing or empty."""


@dataclass
class ChatResult:
    """Outcome of one chat request."""
    reply: str
    fallback_used: bool = False


class UserLocks:
    """Registry of per-user locks; entries are dropped once nobody holds or waits on them."""

    def __init__(self):
        self._guard = threading.Lock()
        self._entries: Dict[str, List] = {}  # user_id -> [lock, holders]

    @contextmanager
    def hold(self, user_id: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.setdefault(user_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._entries[user_id]

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


class ChatService:
    """Coordinates the history store and the LLM client for chat and logout."""

    def __init__(self, store: ConversationStore, llm_client: LLMClient):
        self.store = store
        self.llm_client = llm_client
        self.user_locks = UserLocks()

    def send_message(self, user_id: Optional[str], message: Optional[str]) -> ChatResult:
        """
        Run one chat cycle for ``user_id``.

        The user turn and the assistant turn are persisted together in a single
        write after generation. If the LLM call fails, a fallback reply takes
        the place of the generated one and is stored the same way.

        Args:
            user_id: Conversation owner
            message: New user message

        Returns:
            ChatResult with the reply text and whether the fallback was used

        Raises:
            ValidationError: If user_id or message is missing or empty
            StoreError: If history cannot be loaded or saved
        """
        if not user_id or not message:
            raise ValidationError("Missing userId or message")

        with self.user_locks.hold(user_id):
            conversation = self.store.load(user_id)
            user_turn = Turn(role=Role.USER, content=message)
            history = conversation.messages + [user_turn]
            logger.info(f"Chat request: user={user_id}, history_turns={len(history)}")

            fallback_used = False
            try:
                reply = self.llm_client.generate(history)
            except AdapterError as e:
                logger.warning(f"Using fallback reply for {user_id}: {e.error.code}")
                reply = build_fallback(message)
                fallback_used = True

            assistant_turn = Turn(role=Role.ASSISTANT, content=reply)
            self.store.append_and_save(user_id, [user_turn, assistant_turn], conversation=conversation)

        return ChatResult(reply=reply, fallback_used=fallback_used)

    def logout(self, user_id: Optional[str]) -> None:
        """
        Delete the user's whole chat history. Safe to call repeatedly.

        Raises:
            ValidationError: If user_id is missing or empty
            StoreError: If the delete fails
        """
        if not user_id:
            raise ValidationError("User ID required")

        with self.user_locks.hold(user_id):
            self.store.delete(user_id)
        logger.info(f"User {user_id} logged out, chat history cleared")
