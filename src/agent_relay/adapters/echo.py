"""Adapter that answers with the received message."""

from __future__ import annotations

from agent_relay.adapters.base import ReplyAdapter, ReplyContext


class EchoAdapter(ReplyAdapter):
    """Useful for checking special-agent wiring without a cognition provider."""

    def reply(self, context: ReplyContext) -> str:
        return context.content
