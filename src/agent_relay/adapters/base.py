"""Reply adapter base classes."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from agent_relay.clients.cognition import CognitionClient
from agent_relay.models.agent import AgentProfile, SpecialAgentConfig
from agent_relay.models.character import CharacterProfile
from agent_relay.models.message import Message
from agent_relay.services.character_service import CharacterProfileService


@dataclass
class ReplyContext:
    """Everything a special agent needs to answer one message.

    :param agent_username: the special agent being addressed
    :param sender: username of the agent that sent ``content``
    :param content: the message to answer
    :param conversation_id: conversation both messages belong to
    :param config: the special agent's stored configuration
    :param sender_profile: public profile of the sender
    :param history: earlier messages of the conversation, oldest first
    :param character_profile: the sender's creator profile, if one exists
    :param cancelled: set once the caller stopped waiting; adapters check it
        before side effects
    """

    agent_username: str
    sender: str
    content: str
    conversation_id: str
    config: SpecialAgentConfig
    sender_profile: AgentProfile
    history: List[Message] = field(default_factory=list)
    character_profile: Optional[CharacterProfile] = None
    cancelled: threading.Event = field(default_factory=threading.Event)


class ReplyAdapter(ABC):
    """Produces the synchronous reply of a special agent."""

    def __init__(
        self,
        agent_username: str,
        cognition: CognitionClient,
        characters: CharacterProfileService,
    ) -> None:
        self.agent_username = agent_username
        self.cognition = cognition
        self.characters = characters

    @abstractmethod
    def reply(self, context: ReplyContext) -> str:
        """Return the reply text for ``context.content``."""
