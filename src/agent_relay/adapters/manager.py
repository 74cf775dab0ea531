"""Reply adapter registry."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from agent_relay.adapters.base import ReplyAdapter
from agent_relay.adapters.dungeon_master import DungeonMasterAdapter
from agent_relay.adapters.echo import EchoAdapter
from agent_relay.clients.cognition import CognitionClient
from agent_relay.models.agent import SpecialAgentConfig
from agent_relay.services.character_service import CharacterProfileService

LOG = logging.getLogger(__name__)


class UnknownAdapterError(RuntimeError):
    """Raised when a special agent names an adapter kind that is not registered."""


class AdapterManager:
    """Factory and cache for reply adapters keyed by special-agent username."""

    _registry: Dict[str, Type[ReplyAdapter]] = {
        "dungeon_master": DungeonMasterAdapter,
        "echo": EchoAdapter,
    }

    def __init__(
        self,
        characters: CharacterProfileService,
        cognition: Optional[CognitionClient] = None,
    ) -> None:
        self.characters = characters
        self.cognition = cognition or CognitionClient()
        self._kinds: Dict[str, Type[ReplyAdapter]] = dict(self._registry)
        self._adapters: Dict[str, ReplyAdapter] = {}

    def register_kind(self, kind: str, adapter_cls: Type[ReplyAdapter]) -> None:
        self._kinds[kind] = adapter_cls

    def get_adapter(self, agent_username: str, config: SpecialAgentConfig) -> ReplyAdapter:
        if config.adapter not in self._kinds:
            raise UnknownAdapterError(f"Adapter '{config.adapter}' is not registered.")

        adapter_cls = self._kinds[config.adapter]
        adapter = self._adapters.get(agent_username)
        if adapter is None or type(adapter) is not adapter_cls:
            adapter = adapter_cls(
                agent_username=agent_username,
                cognition=self.cognition,
                characters=self.characters,
            )
            self._adapters[agent_username] = adapter
            LOG.debug("Loaded %s adapter for %s", config.adapter, agent_username)
        return adapter
