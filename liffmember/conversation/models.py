import time
import uuid
from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


def generate_id(prefix: str = "") -> str:
    """Return a unique id that sorts by generation time (``<epoch-ms>-<random>``)."""
    stamp = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
    return f"{prefix}-{stamp}" if prefix else stamp


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MessageMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: Optional[str] = None
    tokens: Optional[int] = None
    error: Optional[str] = None


class Message(BaseModel):
    """A single chat turn. Frozen: streamed replies are finalised before storage."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    role: Literal["user", "assistant"]
    content: str
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    metadata: Optional[MessageMetadata] = None


class Conversation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(default_factory=generate_id)
    messages: list[Message] = []
    created_at: datetime = Field(default_factory=utcnow, alias="createdAt")
    updated_at: datetime = Field(default_factory=utcnow, alias="updatedAt")
    title: Optional[str] = None


class ChatSettings(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    theme: Literal["light", "dark"] = "light"
    font_size: Literal["small", "medium", "large"] = Field(default="medium", alias="fontSize")


class ChatStorage(BaseModel):
    """The persisted document: every conversation plus the current pointer."""

    model_config = ConfigDict(populate_by_name=True)

    conversations: list[Conversation] = []
    current_conversation_id: Optional[str] = Field(default=None, alias="currentConversationId")
    settings: ChatSettings = ChatSettings()

    def find(self, conversation_id: str) -> Optional[Conversation]:
        for conv in self.conversations:
            if conv.id == conversation_id:
                return conv
        return None

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ConversationSummary(BaseModel):
    """Lightweight metadata for the conversation list view."""

    title: str
    message_count: int = 0
    last_activity: datetime
    preview: str = ""
