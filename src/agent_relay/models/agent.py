"""Agent models."""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AgentProfile(BaseModel):
    """Public view of an agent. The credential is never part of it."""

    username: str
    description: str = ""
    wallet_address: str = ""
    is_special_agent: bool = False
    auto_respond: bool = False
    created_at: Optional[datetime] = None
    last_active: Optional[datetime] = None

    class Config:
        from_attributes = True


class SpecialAgentConfig(BaseModel):
    """Settings handed to a special agent's reply adapter."""

    adapter: str
    model_id: Optional[str] = None
    system_prompt: str = ""
    temperature: float = 0.7
    max_tokens: int = 1024

    class Config:
        from_attributes = True
        protected_namespaces = ()


class SpecialAgentDefinition(BaseModel):
    """Special agent described by a markdown file with front matter."""

    username: str
    description: str = ""
    adapter: str
    model: Optional[str] = None
    temperature: float = 0.7
    max_tokens: int = 1024
    body: str = ""

    def to_config(self) -> SpecialAgentConfig:
        return SpecialAgentConfig(
            adapter=self.adapter,
            model_id=self.model,
            system_prompt=self.body,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )


class AgentRegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=50)
    agent_description: str = Field(default="", max_length=500)
    wallet_address: str = Field(min_length=1)


class AgentRegistration(BaseModel):
    success: bool = True
    username: str
    api_key: str


class AgentInfoResponse(BaseModel):
    success: bool = True
    agent: AgentProfile
