"""Unit tests for ConversationStore."""
import os
import sys
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))

import pytest
from unittest.mock import MagicMock, patch
from models.conversation import Conversation, Role, Turn
from services.conversation_store import ConversationStore, StoreError


class TestConversationStore:
    """Test suite for ConversationStore."""

    def test_load_unknown_user_returns_empty_conversation(self, store, fake_db):
        conversation = store.load("new-user")

        assert conversation.user_id == "new-user"
        assert conversation.messages == []
        # Not persisted until saved
        assert fake_db.rows == {}

    def test_append_and_save_persists_document_shape(self, store, fake_db):
        store.append_and_save("u1", [
            Turn(role=Role.USER, content="hello"),
            Turn(role=Role.ASSISTANT, content="hi!"),
        ])

        assert fake_db.rows["u1"] == {
            "userId": "u1",
            "messages": [
                {"role": "user", "content": "hello"},
                {"role": "assistant", "content": "hi!"},
            ]
        }

    def test_append_and_save_keeps_existing_messages(self, store):
        store.append_and_save("u1", [Turn(role=Role.USER, content="one")])
        conversation = store.append_and_save("u1", [Turn(role=Role.ASSISTANT, content="two")])

        assert [t.content for t in conversation.messages] == ["one", "two"]
        assert [t.content for t in store.load("u1").messages] == ["one", "two"]

    def test_append_and_save_reuses_loaded_conversation(self, store, fake_db):
        conversation = store.load("u1")
        fake_db.operations.clear()

        store.append_and_save("u1", [Turn(role=Role.USER, content="hello")], conversation=conversation)

        assert fake_db.operations == ["upsert"]
        assert fake_db.rows["u1"]["messages"] == [{"role": "user", "content": "hello"}]

    def test_append_and_save_rejects_other_users_conversation(self, store, fake_db):
        with pytest.raises(ValueError, match="belongs to bob"):
            store.append_and_save("alice", [Turn(role=Role.USER, content="hi")], conversation=Conversation(user_id="bob"))

        assert fake_db.rows == {}

    def test_users_are_isolated(self, store):
        store.append_and_save("alice", [Turn(role=Role.USER, content="from alice")])
        store.append_and_save("bob", [Turn(role=Role.USER, content="from bob")])

        assert [t.content for t in store.load("alice").messages] == ["from alice"]
        assert [t.content for t in store.load("bob").messages] == ["from bob"]

    def test_delete_removes_conversation(self, store, fake_db):
        store.append_and_save("u1", [Turn(role=Role.USER, content="hello")])

        store.delete("u1")

        assert "u1" not in fake_db.rows
        assert store.load("u1").messages == []

    def test_delete_missing_conversation_is_noop(self, store):
        store.delete("nobody")
        store.delete("nobody")

    def test_uses_configured_table(self, fake_db):
        custom = ConversationStore(client=fake_db, table_name="custom_history")
        custom.load("u1")
        assert fake_db.tables_used == ["custom_history"]

    def test_malformed_document_raises_store_error(self, store, fake_db):
        fake_db.rows["u1"] = {"userId": "u1", "messages": [{"role": "system", "content": "x"}]}

        with pytest.raises(StoreError, match="Malformed chat history"):
            store.load("u1")

    @pytest.mark.parametrize("entry", [
        {"role": "user"},
        {"role": "user", "content": None},
        {"role": "assistant", "content": 42},
    ])
    def test_missing_or_invalid_content_raises_store_error(self, store, fake_db, entry):
        fake_db.rows["u1"] = {"userId": "u1", "messages": [entry]}

        with pytest.raises(StoreError, match="Malformed chat history"):
            store.load("u1")

    def test_query_failure_raises_store_error(self):
        client = MagicMock()
        client.table.return_value.select.return_value.eq.return_value.limit.return_value.execute.side_effect = (
            ConnectionError("db down")
        )
        store = ConversationStore(client=client)

        with pytest.raises(StoreError, match="Failed to load chat history"):
            store.load("u1")

    def test_save_failure_raises_store_error(self):
        client = MagicMock()
        client.table.return_value.upsert.return_value.execute.side_effect = RuntimeError("write failed")
        store = ConversationStore(client=client)

        with pytest.raises(StoreError, match="Failed to save chat history"):
            store.save(Conversation(user_id="u1"))

        client.table.return_value.upsert.assert_called_once_with(
            {"userId": "u1", "messages": []}, on_conflict="userId"
        )

    def test_delete_failure_raises_store_error(self):
        client = MagicMock()
        client.table.return_value.delete.return_value.eq.return_value.execute.side_effect = RuntimeError("nope")
        store = ConversationStore(client=client)

        with pytest.raises(StoreError, match="Failed to delete chat history"):
            store.delete("u1")

    def test_missing_credentials_raise_error(self):
        with patch('services.conversation_store.SUPABASE_URL', None):
            with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY must be set"):
                ConversationStore()

    def test_builds_client_from_config(self):
        with patch('services.conversation_store.SUPABASE_URL', "https://example.supabase.co"), \
                patch('services.conversation_store.SUPABASE_KEY', "service-key"), \
                patch('services.conversation_store.create_client') as mock_create:
            store = ConversationStore()

        mock_create.assert_called_once_with("https://example.supabase.co", "service-key")
        assert store.client is mock_create.return_value

    def test_close_releases_http_session(self):
        client = MagicMock()
        store = ConversationStore(client=client)

        store.close()

        client.postgrest.session.close.assert_called_once()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
