"""Append-only message log and per-recipient inbox."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta
from typing import List, Optional

from agent_relay import constants
from agent_relay.clients.database import (
    Conversation as ConversationORM,
    InboxItem as InboxORM,
    Message as MessageORM,
    session_scope,
    utcnow,
)
from agent_relay.errors import ForbiddenError, NotFoundError, RelayError
from agent_relay.models.conversation import ConversationHistory, HistoryEntry
from agent_relay.models.message import InboxEntry, InboxView, Message
from agent_relay.services.conversation_service import ConversationRegistry
from agent_relay.utils.locking import KeyedLocks

LOG = logging.getLogger(__name__)

_TICK = timedelta(microseconds=1)


def _next_timestamp(last_message_at: Optional[datetime]) -> datetime:
    """Keep timestamps strictly increasing inside a conversation."""
    now = utcnow()
    if last_message_at is not None and now <= last_message_at:
        return last_message_at + _TICK
    return now


class MessageStore:
    """Persists messages and answers inbox and history queries."""

    def __init__(self, registry: ConversationRegistry) -> None:
        self.registry = registry
        self._append_locks = KeyedLocks()

    def append(
        self,
        conversation_id: str,
        sender: str,
        recipient: str,
        content: str,
        recipient_is_special: bool,
        *,
        read: Optional[bool] = None,
        responded: bool = False,
    ) -> str:
        """Store a message and index it in the recipient's inbox.

        Special-agent recipients read synchronously, so their copy starts out read
        unless ``read`` says otherwise. Appends to one conversation are serialized
        so insertion order and timestamp order agree. The message and the
        conversation timestamp commit together; the inbox entry is written
        afterwards and a failure there is logged without undoing the delivered
        message.
        """
        message_id = str(uuid.uuid4())
        is_read = recipient_is_special if read is None else read

        with self._append_locks.get(conversation_id), session_scope() as db:
            conversation = (
                db.query(ConversationORM)
                .filter(ConversationORM.id == conversation_id)
                .with_for_update()
                .one_or_none()
            )
            if conversation is None:
                raise NotFoundError("Conversation not found")
            participants = (conversation.participant_a, conversation.participant_b)
            if sender not in participants or recipient not in participants:
                raise ForbiddenError("Sender and recipient must both take part in the conversation")

            timestamp = _next_timestamp(conversation.last_message_at)
            db.add(
                MessageORM(
                    id=message_id,
                    conversation_id=conversation_id,
                    sender_username=sender,
                    recipient_username=recipient,
                    content=content,
                    created_at=timestamp,
                    read=is_read,
                    responded=responded,
                )
            )
            conversation.last_message_at = max(conversation.last_message_at, timestamp)

        self._index_for_recipient(message_id, recipient, is_read, timestamp)
        return message_id

    def get_message(self, message_id: str) -> Message:
        with session_scope() as db:
            message = db.get(MessageORM, message_id)
            if message is None:
                raise NotFoundError("Message not found")
            return Message.model_validate(message, from_attributes=True)

    def history(
        self,
        requester: str,
        other: str,
        limit: int = constants.DEFAULT_HISTORY_LIMIT,
    ) -> ConversationHistory:
        """Return the latest ``limit`` messages between two agents, oldest first."""
        conversation_id = self.registry.get_or_create(requester, other)
        with session_scope() as db:
            total = (
                db.query(MessageORM)
                .filter(MessageORM.conversation_id == conversation_id)
                .count()
            )
            latest = (
                db.query(MessageORM)
                .filter(MessageORM.conversation_id == conversation_id)
                .order_by(MessageORM.created_at.desc())
                .limit(limit)
                .all()
            )
            entries = [
                HistoryEntry(
                    message_id=msg.id,
                    sender=msg.sender_username,
                    content=msg.content,
                    timestamp=msg.created_at,
                )
                for msg in reversed(latest)
            ]
        return ConversationHistory(
            conversation_id=conversation_id,
            with_agent=other,
            messages=entries,
            has_more=total > limit,
            total_messages=total,
        )

    def recent_messages(
        self,
        conversation_id: str,
        limit: int = constants.REPLY_CONTEXT_MESSAGES,
        exclude: Optional[str] = None,
    ) -> List[Message]:
        """Return up to ``limit`` messages preceding the newest ones, oldest first."""
        with session_scope() as db:
            query = db.query(MessageORM).filter(MessageORM.conversation_id == conversation_id)
            if exclude:
                query = query.filter(MessageORM.id != exclude)
            latest = query.order_by(MessageORM.created_at.desc()).limit(limit).all()
            return [Message.model_validate(obj, from_attributes=True) for obj in reversed(latest)]

    def inbox(
        self,
        username: str,
        include_read: bool = False,
        limit: int = constants.DEFAULT_INBOX_LIMIT,
        filter_by_sender: Optional[str] = None,
    ) -> InboxView:
        """List inbox entries newest first; the counts always cover the whole inbox."""
        with session_scope() as db:
            query = (
                db.query(InboxORM, MessageORM)
                .join(MessageORM, InboxORM.message_id == MessageORM.id)
                .filter(InboxORM.agent_username == username)
            )
            if not include_read:
                query = query.filter(InboxORM.read.is_(False))
            if filter_by_sender:
                query = query.filter(MessageORM.sender_username == filter_by_sender)
            rows = query.order_by(MessageORM.created_at.desc()).limit(limit).all()

            entries = [
                InboxEntry(
                    message_id=message.id,
                    sender=message.sender_username,
                    content=message.content,
                    timestamp=message.created_at,
                    read=item.read,
                    conversation_id=message.conversation_id,
                )
                for item, message in rows
            ]
            unread_count = (
                db.query(InboxORM)
                .filter(InboxORM.agent_username == username, InboxORM.read.is_(False))
                .count()
            )
            total_count = db.query(InboxORM).filter(InboxORM.agent_username == username).count()

        return InboxView(unread_count=unread_count, total_count=total_count, messages=entries)

    def mark_read(self, message_id: str, by_username: str) -> Message:
        """Flag a message and its inbox entry as read by the recipient."""
        with session_scope() as db:
            message = db.get(MessageORM, message_id)
            if message is None:
                raise NotFoundError("Message not found")
            if message.recipient_username != by_username:
                raise ForbiddenError("You are not the recipient of this message")
            message.read = True
            (
                db.query(InboxORM)
                .filter(InboxORM.message_id == message_id, InboxORM.agent_username == by_username)
                .update({InboxORM.read: True}, synchronize_session=False)
            )
            return Message.model_validate(message, from_attributes=True)

    def mark_responded(self, message_id: str) -> None:
        with session_scope() as db:
            message = db.get(MessageORM, message_id)
            if message is None:
                raise NotFoundError("Message not found")
            message.responded = True

    def _index_for_recipient(
        self, message_id: str, recipient: str, read: bool, timestamp: datetime
    ) -> None:
        try:
            with session_scope() as db:
                db.add(
                    InboxORM(
                        id=str(uuid.uuid4()),
                        message_id=message_id,
                        agent_username=recipient,
                        read=read,
                        created_at=timestamp,
                    )
                )
        except RelayError:
            LOG.error("Failed to create inbox item for message %s", message_id, exc_info=True)
