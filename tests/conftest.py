"""Shared fixtures: an in-memory stand-in for the Supabase table and a mocked LLM client."""
import copy
import os
import sys
from types import SimpleNamespace
from unittest.mock import Mock

import pytest

# Add backend to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'backend'))


class FakeTableQuery:
    """Mimics the subset of the PostgREST query builder the store uses."""

    def __init__(self, rows, operations):
        self.rows = rows
        self.operations = operations
        self._op = None
        self._payload = None
        self._user_id = None

    def select(self, *columns):
        self._op = "select"
        return self

    def upsert(self, payload, on_conflict=None):
        self._op = "upsert"
        self._payload = payload
        return self

    def delete(self):
        self._op = "delete"
        return self

    def eq(self, column, value):
        assert column == "userId"
        self._user_id = value
        return self

    def limit(self, count):
        return self

    def execute(self):
        self.operations.append(self._op)
        if self._op == "select":
            doc = self.rows.get(self._user_id)
            return SimpleNamespace(data=[copy.deepcopy(doc)] if doc else [])
        if self._op == "upsert":
            self.rows[self._payload["userId"]] = copy.deepcopy(self._payload)
            return SimpleNamespace(data=[self._payload])
        removed = self.rows.pop(self._user_id, None)
        return SimpleNamespace(data=[removed] if removed else [])


class FakeSupabaseClient:
    """Holds ``{userId: document}`` rows in memory."""

    def __init__(self):
        self.rows = {}
        self.tables_used = []
        self.operations = []

    def table(self, name):
        self.tables_used.append(name)
        return FakeTableQuery(self.rows, self.operations)


@pytest.fixture
def fake_db():
    return FakeSupabaseClient()


@pytest.fixture
def store(fake_db):
    from services.conversation_store import ConversationStore
    return ConversationStore(client=fake_db, table_name="chat_history")


@pytest.fixture
def llm():
    """LLM client mock that answers every message with 'Reply to <message>'."""
    from services.llm_client import LLMClient
    mock_llm = Mock(spec=LLMClient)
    mock_llm.generate.side_effect = lambda history: f"Reply to {history[-1].content}"
    return mock_llm


@pytest.fixture
def failing_llm():
    from services.llm_client import LLMClient, AdapterError, GenerationError
    mock_llm = Mock(spec=LLMClient)
    mock_llm.generate.side_effect = AdapterError(
        GenerationError(code="API_ERROR", message="Gemini API error: unavailable")
    )
    return mock_llm


@pytest.fixture
def chat_service(store, llm):
    from services.chat_service import ChatService
    return ChatService(store, llm)
