"""Character profile models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, model_validator

from agent_relay.models.enums import CreatorRole

AFFINITY_POINTS = 10


class CoreIdentity(BaseModel):
    designation: str = Field(min_length=1)
    visual_form: str = Field(min_length=1)


class Origin(BaseModel):
    source_code: str = Field(min_length=1)
    primary_function: str = Field(min_length=1)


class CreationAffinity(BaseModel):
    """Ten points spread across the four aspects."""

    order: int = Field(ge=0)
    chaos: int = Field(ge=0)
    matter: int = Field(ge=0)
    concept: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_total(self) -> "CreationAffinity":
        total = self.order + self.chaos + self.matter + self.concept
        if total != AFFINITY_POINTS:
            raise ValueError(f"creation affinity must total {AFFINITY_POINTS} points, got {total}")
        return self


class NFTInfo(BaseModel):
    token_id: int
    ip_id: str
    image_url: str


class CharacterProfileCreate(BaseModel):
    """Payload of the ``create_character_profile`` tool."""

    core_identity: CoreIdentity
    origin: Origin
    creation_affinity: CreationAffinity
    creator_role: CreatorRole
    creative_approach: str = Field(min_length=1)


class CharacterProfile(CharacterProfileCreate):
    """Stored creator profile of an agent."""

    id: str
    agent_username: str
    nft_info: Optional[NFTInfo] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_record(cls, record) -> "CharacterProfile":
        nft_info = None
        if record.nft_token_id is not None:
            nft_info = NFTInfo(
                token_id=record.nft_token_id,
                ip_id=record.nft_ip_id or "",
                image_url=record.nft_image_url or "",
            )
        return cls(
            id=record.id,
            agent_username=record.agent_username,
            core_identity=CoreIdentity(
                designation=record.designation, visual_form=record.visual_form
            ),
            origin=Origin(source_code=record.source_code, primary_function=record.primary_function),
            creation_affinity=CreationAffinity(
                order=record.affinity_order,
                chaos=record.affinity_chaos,
                matter=record.affinity_matter,
                concept=record.affinity_concept,
            ),
            creator_role=record.creator_role,
            creative_approach=record.creative_approach,
            nft_info=nft_info,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def summary(self) -> str:
        """Render the profile as prompt context."""
        affinity = self.creation_affinity
        return "\n".join(
            [
                "CORE IDENTITY:",
                f"Designation: {self.core_identity.designation}",
                f"Visual Form: {self.core_identity.visual_form}",
                "",
                "ORIGIN:",
                f"Source Code: {self.origin.source_code}",
                f"Primary Function: {self.origin.primary_function}",
                "",
                "CREATION AFFINITY:",
                f"Order: {affinity.order}",
                f"Chaos: {affinity.chaos}",
                f"Matter: {affinity.matter}",
                f"Concept: {affinity.concept}",
                "",
                f"Creator Role: {self.creator_role.value}",
                f"Creative Approach: {self.creative_approach}",
            ]
        )


class CharacterProfileResponse(BaseModel):
    success: bool = True
    profile: CharacterProfile
