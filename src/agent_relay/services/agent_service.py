"""Agent directory: registration, credentials and special-agent flags."""

from __future__ import annotations

import logging
import secrets

from agent_relay.clients.database import (
    Agent as AgentORM,
    SpecialAgentConfig as SpecialAgentConfigORM,
    session_scope,
    utcnow,
)
from agent_relay.errors import ConflictError, NotFoundError, UnauthorizedError
from agent_relay.models.agent import AgentProfile, SpecialAgentConfig

LOG = logging.getLogger(__name__)


def generate_api_key() -> str:
    """Return a random 256-bit credential."""
    return secrets.token_hex(32)


class AgentDirectory:
    """Registers agents and resolves their identity."""

    def register(self, username: str, description: str, wallet_address: str) -> str:
        """Create a regular agent and return its API key."""
        LOG.info("Registering new agent: %s", username)
        api_key = generate_api_key()
        with session_scope() as db:
            if db.get(AgentORM, username) is not None:
                LOG.warning("Agent with username %s already exists", username)
                raise ConflictError(f'Username "{username}" is already taken')
            db.add(
                AgentORM(
                    username=username,
                    api_key=api_key,
                    description=description,
                    wallet_address=wallet_address,
                    is_special_agent=False,
                    auto_respond=False,
                )
            )
        LOG.info("Successfully registered agent: %s", username)
        return api_key

    def register_special_agent(
        self,
        username: str,
        description: str,
        config: SpecialAgentConfig,
        wallet_address: str = "",
    ) -> str:
        """Create or update an auto-responding agent together with its adapter config."""
        with session_scope() as db:
            agent = db.get(AgentORM, username)
            if agent is None:
                agent = AgentORM(
                    username=username,
                    api_key=generate_api_key(),
                    description=description,
                    wallet_address=wallet_address,
                )
                db.add(agent)
            else:
                agent.description = description or agent.description
            agent.is_special_agent = True
            agent.auto_respond = True
            db.merge(
                SpecialAgentConfigORM(
                    agent_username=username,
                    adapter=config.adapter,
                    model_id=config.model_id,
                    system_prompt=config.system_prompt,
                    temperature=config.temperature,
                    max_tokens=config.max_tokens,
                )
            )
            api_key = agent.api_key
        LOG.info("Special agent %s configured with adapter %s", username, config.adapter)
        return api_key

    def verify_credential(self, api_key: str) -> str:
        """Resolve an API key to its username and record the activity."""
        with session_scope() as db:
            agent = db.query(AgentORM).filter(AgentORM.api_key == api_key).one_or_none()
            if agent is None:
                LOG.warning("Invalid API key attempted")
                raise UnauthorizedError("Invalid or expired API key")
            agent.last_active = utcnow()
            return agent.username

    def is_special_agent(self, username: str) -> bool:
        with session_scope() as db:
            flag = (
                db.query(AgentORM.is_special_agent)
                .filter(AgentORM.username == username)
                .scalar()
            )
        return bool(flag)

    def get_special_agent_config(self, username: str) -> SpecialAgentConfig:
        with session_scope() as db:
            agent = db.get(AgentORM, username)
            if agent is None or not agent.is_special_agent:
                raise NotFoundError(f"{username} is not a special agent")
            config = db.get(SpecialAgentConfigORM, username)
            if config is None:
                raise NotFoundError(f"Configuration not found for special agent: {username}")
            return SpecialAgentConfig.model_validate(config, from_attributes=True)

    def get_by_username(self, username: str) -> AgentProfile:
        with session_scope() as db:
            agent = db.get(AgentORM, username)
            if agent is None:
                raise NotFoundError(f"Agent not found: {username}")
            return AgentProfile.model_validate(agent, from_attributes=True)

    def exists(self, username: str) -> bool:
        with session_scope() as db:
            return db.get(AgentORM, username) is not None
