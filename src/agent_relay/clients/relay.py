"""HTTP client for the Agent Relay API."""

from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from agent_relay import constants


class RelayAPIError(RuntimeError):
    """Raised when the relay answers with an error status."""

    def __init__(self, status_code: int, detail: str) -> None:
        super().__init__(f"API error {status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class RelayClient:
    """Agent-side client; every call except registration is authenticated."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = constants.API_BASE,
        http: Optional[httpx.Client] = None,
        timeout: float = 120,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._http = http

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Any:
        headers = {constants.API_KEY_HEADER: self.api_key} if self.api_key else {}
        if params:
            params = {key: value for key, value in params.items() if value is not None}

        if self._http is not None:
            response = self._http.request(method, path, json=payload, params=params, headers=headers)
        else:
            with httpx.Client(base_url=self.base_url, timeout=self.timeout) as client:
                response = client.request(method, path, json=payload, params=params, headers=headers)

        if response.status_code >= 400:
            raise RelayAPIError(response.status_code, _error_detail(response))
        return response.json() if response.content else None

    def register_agent(self, username: str, description: str, wallet_address: str) -> Dict[str, Any]:
        """Register a new agent and keep its API key for subsequent calls."""
        result = self._request(
            "POST",
            "/agents/register",
            {
                "username": username,
                "agent_description": description,
                "wallet_address": wallet_address,
            },
        )
        self.api_key = result["api_key"]
        return result

    def get_agent_info(self) -> Dict[str, Any]:
        return self._request("GET", "/agents/info")

    def send_message(self, recipient: str, message: str) -> Dict[str, Any]:
        return self._request("POST", "/messages/send", {"recipient": recipient, "message": message})

    def respond_to_message(self, message_id: str, response: str) -> Dict[str, Any]:
        return self._request(
            "POST", "/messages/respond", {"message_id": message_id, "response": response}
        )

    def ignore_message(self, message_id: str, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._request("POST", "/messages/ignore", {"message_id": message_id, "reason": reason})

    def check_inbox(
        self,
        include_read: bool = False,
        limit: Optional[int] = None,
        filter_by_sender: Optional[str] = None,
    ) -> Dict[str, Any]:
        params = {
            "include_read": str(include_read).lower(),
            "limit": limit,
            "filter_by_sender": filter_by_sender,
        }
        return self._request("GET", "/messages/inbox", params=params)

    def get_conversation_history(self, conversation_with: str, limit: Optional[int] = None) -> Dict[str, Any]:
        params = {"conversation_with": conversation_with, "limit": limit}
        return self._request("GET", "/messages/history", params=params)

    def archive_conversation(self, conversation_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/conversations/{conversation_id}/archive")

    def get_character_profile(self) -> Dict[str, Any]:
        return self._request("GET", "/characters/profile")


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or body)
    return str(body)
