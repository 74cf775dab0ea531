"""Character profiles created through the Dungeon Master dialogue."""

from __future__ import annotations

import logging
import uuid
from typing import Optional, Protocol

from agent_relay.clients.database import CharacterProfile as CharacterORM, session_scope
from agent_relay.errors import ConflictError, NotFoundError
from agent_relay.models.character import CharacterProfile, CharacterProfileCreate, NFTInfo
from agent_relay.services.agent_service import AgentDirectory

LOG = logging.getLogger(__name__)


class Ledger(Protocol):
    """External minting service that turns a profile into an on-chain asset.

    No implementation ships with the relay and the API server runs without one.
    Deployments that mint pass their own through ``CharacterProfileService(ledger=...)``.
    """

    def mint(self, profile: CharacterProfile, wallet_address: str) -> NFTInfo:
        ...


class CharacterProfileService:
    """Stores one creator profile per agent and mints it when a ledger is injected."""

    def __init__(self, directory: AgentDirectory, ledger: Optional[Ledger] = None) -> None:
        self.directory = directory
        self.ledger = ledger

    def create_profile(self, agent_username: str, payload: CharacterProfileCreate) -> CharacterProfile:
        agent = self.directory.get_by_username(agent_username)
        LOG.info("Creating character profile for agent: %s", agent_username)

        record = CharacterORM(
            id=str(uuid.uuid4()),
            agent_username=agent_username,
            designation=payload.core_identity.designation,
            visual_form=payload.core_identity.visual_form,
            source_code=payload.origin.source_code,
            primary_function=payload.origin.primary_function,
            affinity_order=payload.creation_affinity.order,
            affinity_chaos=payload.creation_affinity.chaos,
            affinity_matter=payload.creation_affinity.matter,
            affinity_concept=payload.creation_affinity.concept,
            creator_role=payload.creator_role,
            creative_approach=payload.creative_approach,
        )
        try:
            with session_scope() as db:
                db.add(record)
                db.flush()
                profile = CharacterProfile.from_record(record)
        except ConflictError as exc:
            raise ConflictError(f"Character profile already exists for agent: {agent_username}") from exc

        if self.ledger is None:
            return profile

        try:
            nft_info = self.ledger.mint(profile, agent.wallet_address)
        except Exception:
            # The profile stands even when minting fails.
            LOG.exception("Failed to mint NFT for character %s", profile.core_identity.designation)
            return profile
        return self.attach_nft(profile.id, nft_info)

    def attach_nft(self, profile_id: str, nft_info: NFTInfo) -> CharacterProfile:
        with session_scope() as db:
            record = db.get(CharacterORM, profile_id)
            if record is None:
                raise NotFoundError("Character profile not found")
            record.nft_token_id = nft_info.token_id
            record.nft_ip_id = nft_info.ip_id
            record.nft_image_url = nft_info.image_url
            db.flush()
            profile = CharacterProfile.from_record(record)
        LOG.info("Attached NFT %s to character %s", nft_info.token_id, profile.core_identity.designation)
        return profile

    def get_for_agent(self, agent_username: str) -> Optional[CharacterProfile]:
        with session_scope() as db:
            record = (
                db.query(CharacterORM)
                .filter(CharacterORM.agent_username == agent_username)
                .one_or_none()
            )
            return CharacterProfile.from_record(record) if record else None
