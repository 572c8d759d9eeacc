"""Per-user chat history storage backed by a Supabase table."""
import logging
from typing import Optional, List
from supabase import create_client, Client

from models.conversation import Conversation, Turn
from config import SUPABASE_URL, SUPABASE_KEY, CHAT_HISTORY_TABLE

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when chat history cannot be read, written, or parsed."""


class ConversationStore:
    """
    Stores one ``{userId, messages}`` document per user.

    Every write rewrites the user's whole message list (read-modify-write);
    nothing is appended at the storage layer.
    """

    def __init__(self, client: Optional[Client] = None, table_name: str = CHAT_HISTORY_TABLE):
        """
        Initialize the store with a Supabase client.

        Args:
            client: Pre-built Supabase client (built from SUPABASE_URL/SUPABASE_KEY if omitted)
            table_name: Table holding the chat history documents
        """
        if client is None:
            if not SUPABASE_URL or not SUPABASE_KEY:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
            client = create_client(SUPABASE_URL, SUPABASE_KEY)

        self.client: Client = client
        self.table_name = table_name
        logger.info(f"ConversationStore initialized with Supabase table '{table_name}'")

    def load(self, user_id: str) -> Conversation:
        """
        Get the user's conversation, or a new empty one if none is stored.

        The new conversation is not persisted until it is saved.

        Raises:
            StoreError: If the query fails or the stored document is malformed
        """
        try:
            result = self.client.table(self.table_name).select("*").eq("userId", user_id).limit(1).execute()
        except Exception as e:
            logger.error(f"Error loading chat history for {user_id}: {e}")
            raise StoreError(f"Failed to load chat history: {e}") from e

        if not result.data:
            logger.debug(f"No chat history for {user_id}, starting a new conversation")
            return Conversation(user_id=user_id)

        try:
            conversation = Conversation.from_document(result.data[0])
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed chat history for {user_id}: {e}")
            raise StoreError(f"Malformed chat history: {e}") from e

        logger.info(f"Loaded chat history for {user_id} with {len(conversation.messages)} messages")
        return conversation

    def save(self, conversation: Conversation) -> None:
        """
        Persist the full conversation document, replacing any stored copy.

        Raises:
            StoreError: If the upsert fails
        """
        try:
            self.client.table(self.table_name).upsert(
                conversation.to_document(),
                on_conflict="userId"
            ).execute()
        except Exception as e:
            logger.error(f"Error saving chat history for {conversation.user_id}: {e}")
            raise StoreError(f"Failed to save chat history: {e}") from e

        logger.info(f"Saved chat history for {conversation.user_id} ({len(conversation.messages)} messages)")

    def append_and_save(
        self,
        user_id: str,
        turns: List[Turn],
        conversation: Optional[Conversation] = None
    ) -> Conversation:
        """
        Append turns to the user's conversation and persist the whole document.

        Args:
            user_id: Owner of the conversation
            turns: Turns to append, in chronological order
            conversation: Already loaded copy of the conversation; read from the table if omitted

        Returns:
            The updated conversation
        """
        if conversation is None:
            conversation = self.load(user_id)
        elif conversation.user_id != user_id:
            raise ValueError(f"Conversation belongs to {conversation.user_id}, not {user_id}")
        conversation.append(*turns)
        self.save(conversation)
        return conversation

    def delete(self, user_id: str) -> None:
        """
        Remove the user's conversation. Deleting a missing one is a no-op.

        Raises:
            StoreError: If the delete fails
        """
        try:
            self.client.table(self.table_name).delete().eq("userId", user_id).execute()
        except Exception as e:
            logger.error(f"Error deleting chat history for {user_id}: {e}")
            raise StoreError(f"Failed to delete chat history: {e}") from e

        logger.info(f"Deleted chat history for {user_id}")

    def close(self) -> None:
        """Release the HTTP session held by the database client."""
        session = getattr(getattr(self.client, "postgrest", None), "session", None)
        if session is not None:
            session.close()
        logger.info("ConversationStore closed")
