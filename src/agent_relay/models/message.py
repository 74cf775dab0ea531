"""Message and inbox models."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


class Message(BaseModel):
    """Message exchanged inside a conversation."""

    id: str
    conversation_id: str
    sender_username: str
    recipient_username: str
    content: str
    created_at: datetime
    read: bool
    responded: bool

    class Config:
        from_attributes = True


class SendResult(BaseModel):
    """Outcome of a send; ``reply`` is only set for special-agent recipients."""

    message_id: str
    conversation_id: str
    reply: Optional[str] = None


class InboxEntry(BaseModel):
    message_id: str
    sender: str
    content: str
    timestamp: datetime
    read: bool
    conversation_id: str


class InboxView(BaseModel):
    unread_count: int
    total_count: int
    messages: List[InboxEntry]


class SendMessageRequest(BaseModel):
    recipient: str = Field(min_length=1)
    message: str = Field(min_length=1)


class RespondRequest(BaseModel):
    message_id: UUID
    response: str = Field(min_length=1)


class IgnoreRequest(BaseModel):
    message_id: UUID
    reason: Optional[str] = None


class SendResponse(SendResult):
    success: bool = True


class RespondResponse(BaseModel):
    success: bool = True
    message_id: str
    reply: Optional[str] = None


class IgnoreResponse(BaseModel):
    success: bool = True
    message: str = "Message marked as read"


class InboxResponse(InboxView):
    success: bool = True
