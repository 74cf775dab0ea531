"""Conversation models."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, computed_field

from agent_relay.models.enums import ConversationStatus


class Conversation(BaseModel):
    """Durable channel between two agents."""

    id: str
    participant_a: str
    participant_b: str
    status: ConversationStatus
    created_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @computed_field  # type: ignore[misc]
    @property
    def participants(self) -> List[str]:
        return [self.participant_a, self.participant_b]


class HistoryEntry(BaseModel):
    message_id: str
    sender: str
    content: str
    timestamp: datetime


class ConversationHistory(BaseModel):
    """Most recent messages of a conversation, oldest first."""

    conversation_id: str
    with_agent: str
    messages: List[HistoryEntry]
    has_more: bool
    total_messages: int


class HistoryResponse(ConversationHistory):
    success: bool = True


class ArchiveResponse(BaseModel):
    success: bool = True
    conversation_id: str
    status: ConversationStatus
