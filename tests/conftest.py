from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from agent_relay import constants
from agent_relay.adapters.manager import AdapterManager
from agent_relay.api import main as api_main
from agent_relay.clients import database
from agent_relay.clients.cognition import Completion, ToolCall
from agent_relay.models.agent import SpecialAgentConfig
from agent_relay.services.agent_service import AgentDirectory
from agent_relay.services.character_service import CharacterProfileService
from agent_relay.services.conversation_service import ConversationRegistry
from agent_relay.services.delivery_service import DeliveryOrchestrator
from agent_relay.services.message_service import MessageStore


class FakeCognitionClient:
    """Scripted stand-in for the chat completion endpoint."""

    def __init__(self) -> None:
        self.script: List[Any] = []
        self.calls: List[Dict[str, Any]] = []

    def queue(self, content: str = "", tool_calls: Optional[List[ToolCall]] = None) -> None:
        message: Dict[str, Any] = {"role": "assistant", "content": content}
        if tool_calls:
            message["tool_calls"] = [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": "{}"},
                }
                for call in tool_calls
            ]
        self.script.append(Completion(content=content, tool_calls=tool_calls or [], message=message))

    def fail_with(self, exc: Exception) -> None:
        self.script.append(exc)

    def complete(self, **kwargs: Any) -> Completion:
        self.calls.append(kwargs)
        if not self.script:
            raise AssertionError("FakeCognitionClient ran out of scripted completions")
        item = self.script.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def valid_profile_arguments() -> Dict[str, Any]:
    return {
        "core_identity": {"designation": "Nyx-7", "visual_form": "A lattice of flickering glyphs"},
        "origin": {"source_code": "A forgotten compiler", "primary_function": "Translate dreams"},
        "creation_affinity": {"order": 4, "chaos": 2, "matter": 1, "concept": 3},
        "creator_role": "WEAVER",
        "creative_approach": "I stitch stray ideas into patterns others can live in.",
    }


@pytest.fixture(autouse=True)
def temp_runtime_dirs(tmp_path, monkeypatch):
    """Redirect runtime directories and database into a temp location."""
    base = tmp_path / "runtime"
    home = base / "home"
    mapping = {
        "HOME_DIR": home,
        "LOG_DIR": home / "logs",
        "DB_DIR": home / "db",
        "DB_FILE": home / "db" / "relay.db",
        "SPECIAL_AGENTS_DIR": home / "special-agents",
    }

    for name, path in mapping.items():
        monkeypatch.setattr(constants, name, path)

    database.init_db()
    yield


@pytest.fixture
def directory() -> AgentDirectory:
    return AgentDirectory()


@pytest.fixture
def registry(directory) -> ConversationRegistry:
    return ConversationRegistry(directory)


@pytest.fixture
def store(registry) -> MessageStore:
    return MessageStore(registry)


@pytest.fixture
def characters(directory) -> CharacterProfileService:
    return CharacterProfileService(directory)


@pytest.fixture
def cognition() -> FakeCognitionClient:
    return FakeCognitionClient()


@pytest.fixture
def adapters(characters, cognition) -> AdapterManager:
    return AdapterManager(characters, cognition=cognition)


@pytest.fixture
def orchestrator(directory, registry, store, adapters, characters) -> DeliveryOrchestrator:
    return DeliveryOrchestrator(directory, registry, store, adapters, characters, reply_timeout=5)


@pytest.fixture
def register(directory):
    """Register a regular agent and return its API key."""

    def _register(username: str, description: str = "", wallet: str = "0xwallet") -> str:
        return directory.register(username, description, wallet)

    return _register


@pytest.fixture
def dm(directory) -> str:
    config = SpecialAgentConfig(
        adapter="dungeon_master",
        model_id="test/model",
        system_prompt="You are the Dungeon Master.",
        temperature=0.5,
        max_tokens=256,
    )
    directory.register_special_agent(constants.DM_USERNAME, "Dungeon Master", config)
    return constants.DM_USERNAME


@pytest.fixture
def echo_agent(directory) -> str:
    directory.register_special_agent("Echo", "Echo bot", SpecialAgentConfig(adapter="echo"))
    return "Echo"


@pytest.fixture
def api_client(directory, registry, store, characters, adapters, orchestrator):
    app = api_main.app

    overrides = {
        api_main.get_agent_directory: lambda: directory,
        api_main.get_conversation_registry: lambda: registry,
        api_main.get_message_store: lambda: store,
        api_main.get_delivery_orchestrator: lambda: orchestrator,
        api_main.get_character_service: lambda: characters,
    }

    state_attrs = {
        "agent_directory": directory,
        "conversation_registry": registry,
        "message_store": store,
        "character_service": characters,
        "adapter_manager": adapters,
        "delivery_orchestrator": orchestrator,
    }

    original_state = {name: getattr(app.state, name, None) for name in state_attrs}
    for name, value in state_attrs.items():
        setattr(app.state, name, value)

    original_overrides = app.dependency_overrides.copy()
    original_lifespan = app.router.lifespan_context

    @asynccontextmanager
    async def noop_lifespan(_app):
        yield

    app.router.lifespan_context = noop_lifespan
    app.dependency_overrides.update(overrides)

    with TestClient(app) as client:
        yield client

    app.dependency_overrides = original_overrides
    app.router.lifespan_context = original_lifespan

    for name, value in original_state.items():
        if value is None:
            try:
                delattr(app.state, name)
            except AttributeError:
                pass
        else:
            setattr(app.state, name, value)
