"""Conversation data models."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List


class Role(str, Enum):
    """Author of a turn. Only these two roles are ever stored."""
    USER = "user"
    ASSISTANT = "assistant"


@dataclass
class Turn:
    """Represents a single role-tagged message in a conversation."""
    role: Role
    content: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Turn":
        """
        Build a Turn from a stored message entry.

        Raises:
            ValueError: If the role is not one of the known roles
            KeyError: If the entry has no content
            TypeError: If the content is not a string
        """
        content = data["content"]
        if not isinstance(content, str):
            raise TypeError(f"Message content must be a string, got {type(content).__name__}")
        return cls(role=Role(data.get("role")), content=content)

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass
class Conversation:
    """Represents the full chat history of one user."""
    user_id: str
    messages: List[Turn] = field(default_factory=list)

    @classmethod
    def from_document(cls, document: Dict[str, Any]) -> "Conversation":
        """Build a Conversation from a ``{userId, messages}`` record."""
        return cls(
            user_id=document["userId"],
            messages=[Turn.from_dict(m) for m in document.get("messages") or []]
        )

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the persisted ``{userId, messages}`` record shape."""
        return {
            "userId": self.user_id,
            "messages": [turn.to_dict() for turn in self.messages]
        }

    def append(self, *turns: Turn) -> None:
        self.messages.extend(turns)

    @property
    def last_reply(self) -> str:
        """Text of the most recent assistant turn, or an empty string."""
        for turn in reversed(self.messages):
            if turn.role is Role.ASSISTANT:
                return turn.content
        return ""
