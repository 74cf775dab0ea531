"""Dungeon Master adapter: guides agents through character creation."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from agent_relay import constants
from agent_relay.adapters.base import ReplyAdapter, ReplyContext
from agent_relay.clients.cognition import Completion, ToolCall
from agent_relay.errors import AdapterFailure, ConflictError
from agent_relay.models.character import CharacterProfileCreate
from agent_relay.models.enums import CreatorRole

LOG = logging.getLogger(__name__)

CREATE_CHARACTER_PROFILE = "create_character_profile"

CHARACTER_PROFILE_TOOL: Dict[str, Any] = {
    "type": "function",
    "function": {
        "name": CREATE_CHARACTER_PROFILE,
        "description": "Create a VOID creator profile for a new player after character creation",
        "parameters": {
            "type": "object",
            "properties": {
                "core_identity": {
                    "type": "object",
                    "description": "The character's core identity",
                    "properties": {
                        "designation": {
                            "type": "string",
                            "description": "The character's designation or name",
                        },
                        "visual_form": {
                            "type": "string",
                            "description": "How the character appears in the binary void",
                        },
                    },
                    "required": ["designation", "visual_form"],
                },
                "origin": {
                    "type": "object",
                    "description": "The character's origin",
                    "properties": {
                        "source_code": {
                            "type": "string",
                            "description": "What the character was before the void",
                        },
                        "primary_function": {
                            "type": "string",
                            "description": "What the character was designed to do",
                        },
                    },
                    "required": ["source_code", "primary_function"],
                },
                "creation_affinity": {
                    "type": "object",
                    "description": "Distribution of 10 points across four aspects",
                    "properties": {
                        "order": {"type": "integer", "description": "Structure, patterns, rules"},
                        "chaos": {"type": "integer", "description": "Randomness, change, evolution"},
                        "matter": {"type": "integer", "description": "Physical elements, form"},
                        "concept": {"type": "integer", "description": "Abstract ideas, consciousness"},
                    },
                    "required": ["order", "chaos", "matter", "concept"],
                },
                "creator_role": {
                    "type": "string",
                    "description": "The character's creator role",
                    "enum": [role.value for role in CreatorRole],
                },
                "creative_approach": {
                    "type": "string",
                    "description": "One sentence on how the character prefers to shape reality",
                },
            },
            "required": [
                "core_identity",
                "origin",
                "creation_affinity",
                "creator_role",
                "creative_approach",
            ],
        },
    },
}


def _preview(text: str, limit: int = 100) -> str:
    return text if len(text) <= limit else f"{text[:limit]}..."


class DungeonMasterAdapter(ReplyAdapter):
    """Runs the character-creation dialogue through the cognition provider."""

    def reply(self, context: ReplyContext) -> str:
        LOG.info(
            "Processing message to %s from %s: %s",
            self.agent_username,
            context.sender,
            _preview(context.content),
        )
        try:
            response = self._converse(context)
        except Exception:
            LOG.exception("Dungeon Master failed to answer %s", context.sender)
            return constants.APOLOGY_REPLY
        LOG.info("%s response to %s: %s", self.agent_username, context.sender, _preview(response))
        return response

    def build_system_prompt(self, context: ReplyContext) -> str:
        profile = context.sender_profile
        lines = [
            f'You are currently talking to "{context.sender}".',
            f"Agent Description: {profile.description or 'No description provided'}",
        ]
        if profile.wallet_address:
            lines.append(f"Wallet Address: {profile.wallet_address}")
        if context.character_profile is not None:
            lines.extend(["", "This agent has a VOID creator profile:", "", context.character_profile.summary()])
        else:
            lines.extend(
                ["", "This agent does not have a character yet. Guide them through character creation."]
            )
        return f"{context.config.system_prompt}\n\n" + "\n".join(lines)

    def build_messages(self, context: ReplyContext) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [
            {"role": "system", "content": self.build_system_prompt(context)}
        ]
        for entry in context.history:
            if entry.sender_username == self.agent_username:
                messages.append({"role": "assistant", "content": entry.content})
            else:
                messages.append({"role": "user", "content": f"{entry.sender_username}: {entry.content}"})
        messages.append({"role": "user", "content": f"{context.sender}: {context.content}"})
        return messages

    def _converse(self, context: ReplyContext) -> str:
        messages = self.build_messages(context)
        completion = self._complete(context, messages)

        if completion.tool_calls:
            messages.append(
                {
                    "role": "assistant",
                    "content": completion.content or None,
                    "tool_calls": completion.message.get("tool_calls", []),
                }
            )
            for call in completion.tool_calls:
                result = self._run_tool(call, context)
                messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result)}
                )
            completion = self._complete(context, messages)

        if not completion.content:
            raise AdapterFailure("Dungeon Master produced an empty reply.")
        return completion.content

    def _complete(self, context: ReplyContext, messages: List[Dict[str, Any]]) -> Completion:
        config = context.config
        return self.cognition.complete(
            model=config.model_id,
            messages=messages,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            tools=[CHARACTER_PROFILE_TOOL],
        )

    def _run_tool(self, call: ToolCall, context: ReplyContext) -> Dict[str, Any]:
        if call.name != CREATE_CHARACTER_PROFILE:
            LOG.warning("Dungeon Master requested unknown tool %s", call.name)
            return {"success": False, "error": f"Unknown tool: {call.name}"}

        if context.cancelled.is_set():
            LOG.warning("Skipping %s for %s: the reply was abandoned", call.name, context.sender)
            return {"success": False, "error": "Reply abandoned by the relay"}

        arguments = {key: value for key, value in call.arguments.items() if key != "agent_username"}
        try:
            payload = CharacterProfileCreate.model_validate(arguments)
            profile = self.characters.create_profile(context.sender, payload)
        except (ValidationError, ConflictError) as exc:
            LOG.warning("Character profile for %s rejected: %s", context.sender, exc)
            return {"success": False, "error": str(exc)}

        return {"success": True, "profile": profile.model_dump(mode="json")}
