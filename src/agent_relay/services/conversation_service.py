"""Conversation registry keyed by unordered participant pairs."""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Tuple

from agent_relay.clients.database import Conversation as ConversationORM, session_scope, utcnow
from agent_relay.errors import ConflictError, ForbiddenError, NotFoundError
from agent_relay.models.conversation import Conversation
from agent_relay.models.enums import ConversationStatus
from agent_relay.services.agent_service import AgentDirectory
from agent_relay.utils.locking import KeyedLocks

LOG = logging.getLogger(__name__)


def canonical_pair(agent_a: str, agent_b: str) -> Tuple[str, str]:
    """Return the participants in the order they are stored."""
    first, second = sorted((agent_a, agent_b))
    return first, second


class ConversationRegistry:
    """Maps a pair of agents to their single active conversation."""

    def __init__(self, directory: AgentDirectory) -> None:
        self.directory = directory
        self._locks = KeyedLocks()

    def get_or_create(self, agent_a: str, agent_b: str) -> str:
        """Return the active conversation id for the pair, creating it on first contact."""
        for username in (agent_a, agent_b):
            if not self.directory.exists(username):
                raise NotFoundError(f"Agent not found: {username}")

        pair = canonical_pair(agent_a, agent_b)
        with self._locks.get(pair):
            existing = self._find_active(pair)
            if existing:
                return existing

            conversation_id = str(uuid.uuid4())
            now = utcnow()
            try:
                with session_scope() as db:
                    db.add(
                        ConversationORM(
                            id=conversation_id,
                            participant_a=pair[0],
                            participant_b=pair[1],
                            status=ConversationStatus.ACTIVE,
                            created_at=now,
                            last_message_at=now,
                        )
                    )
            except ConflictError:
                # Another process created the pair first; the unique index kept it single.
                winner = self._find_active(pair)
                if winner is None:
                    raise
                return winner

        LOG.info("Created new conversation %s between %s and %s", conversation_id, agent_a, agent_b)
        return conversation_id

    def get(self, conversation_id: str) -> Conversation:
        with session_scope() as db:
            conversation = db.get(ConversationORM, conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation not found")
            return Conversation.model_validate(conversation, from_attributes=True)

    def archive(self, conversation_id: str, requesting_agent: str) -> Conversation:
        """Archive a conversation on behalf of one of its participants."""
        with session_scope() as db:
            conversation = db.get(ConversationORM, conversation_id)
            if conversation is None:
                raise NotFoundError("Conversation not found")
            if requesting_agent not in (conversation.participant_a, conversation.participant_b):
                raise ForbiddenError("You are not a participant in this conversation")
            conversation.status = ConversationStatus.ARCHIVED
            archived = Conversation.model_validate(conversation, from_attributes=True)
        LOG.info("Archived conversation %s", conversation_id)
        return archived

    def _find_active(self, pair: Tuple[str, str]) -> Optional[str]:
        with session_scope() as db:
            return (
                db.query(ConversationORM.id)
                .filter(
                    ConversationORM.participant_a == pair[0],
                    ConversationORM.participant_b == pair[1],
                    ConversationORM.status == ConversationStatus.ACTIVE,
                )
                .scalar()
            )
