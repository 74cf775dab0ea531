"""Shared enums for Agent Relay models."""

from __future__ import annotations

from enum import Enum


class ConversationStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class CreatorRole(str, Enum):
    ARCHITECT = "ARCHITECT"
    WEAVER = "WEAVER"
    KEEPER = "KEEPER"
    CATALYST = "CATALYST"
    BINDER = "BINDER"
