"""HTTP client for an OpenAI-compatible chat completion endpoint."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from agent_relay import constants

LOG = logging.getLogger(__name__)


class CognitionError(RuntimeError):
    """Raised when the cognition provider fails or answers with garbage."""


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: Dict[str, Any]


@dataclass
class Completion:
    content: str
    tool_calls: List[ToolCall] = field(default_factory=list)
    message: Dict[str, Any] = field(default_factory=dict)


class CognitionClient:
    """Thin wrapper around ``POST /chat/completions``."""

    def __init__(
        self,
        base_url: str = constants.COGNITION_BASE_URL,
        api_key: Optional[str] = constants.COGNITION_API_KEY,
        timeout: float = constants.COGNITION_TIMEOUT_SECONDS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self.transport = transport

    def complete(
        self,
        *,
        model: Optional[str],
        messages: List[Dict[str, Any]],
        temperature: float,
        max_tokens: int,
        tools: Optional[List[Dict[str, Any]]] = None,
    ) -> Completion:
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if tools:
            payload["tools"] = tools

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        LOG.debug("Requesting completion from %s (model=%s)", self.base_url, model)
        try:
            with httpx.Client(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = client.post("/chat/completions", json=payload, headers=headers)
        except httpx.HTTPError as exc:
            raise CognitionError(f"Cognition request failed: {exc}") from exc

        if response.status_code >= 400:
            raise CognitionError(f"Cognition API error {response.status_code}: {response.text}")

        try:
            message = response.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise CognitionError("Malformed cognition response.") from exc

        return Completion(
            content=(message.get("content") or "").strip(),
            tool_calls=[_parse_tool_call(call) for call in message.get("tool_calls") or []],
            message=message,
        )


def _parse_tool_call(call: Dict[str, Any]) -> ToolCall:
    function = call.get("function") or {}
    raw_arguments = function.get("arguments") or "{}"
    try:
        arguments = json.loads(raw_arguments) if isinstance(raw_arguments, str) else raw_arguments
    except json.JSONDecodeError as exc:
        raise CognitionError(f"Tool call arguments are not valid JSON: {raw_arguments!r}") from exc
    return ToolCall(id=call.get("id", ""), name=function.get("name", ""), arguments=arguments)
