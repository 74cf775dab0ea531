from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, FastAPI, Header, Query, Request, status
from fastapi.responses import JSONResponse

from agent_relay import constants
from agent_relay.adapters.manager import AdapterManager
from agent_relay.clients.database import init_db
from agent_relay.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RelayError,
    UnauthorizedError,
)
from agent_relay.models.agent import AgentInfoResponse, AgentRegisterRequest, AgentRegistration
from agent_relay.models.character import CharacterProfileResponse
from agent_relay.models.conversation import ArchiveResponse, HistoryResponse
from agent_relay.models.message import (
    IgnoreRequest,
    IgnoreResponse,
    InboxResponse,
    RespondRequest,
    RespondResponse,
    SendMessageRequest,
    SendResponse,
)
from agent_relay.services.agent_service import AgentDirectory
from agent_relay.services.character_service import CharacterProfileService
from agent_relay.services.conversation_service import ConversationRegistry
from agent_relay.services.delivery_service import DeliveryOrchestrator
from agent_relay.services.message_service import MessageStore
from agent_relay.utils.logging import setup_logging
from agent_relay.utils.pathing import ensure_runtime_directories
from agent_relay.utils.special_agents import install_definition, load_bundled_definition

LOG = logging.getLogger(__name__)

app = FastAPI(title="Agent Relay API", version="0.1.0")

_ERROR_STATUS = {
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ForbiddenError: status.HTTP_403_FORBIDDEN,
    ConflictError: status.HTTP_409_CONFLICT,
    UnauthorizedError: status.HTTP_401_UNAUTHORIZED,
}


def _require_service(name: str):
    service = getattr(app.state, name, None)
    if service is None:
        raise RuntimeError(f"Service '{name}' not initialised.")
    return service


def get_agent_directory() -> AgentDirectory:
    return _require_service("agent_directory")


def get_conversation_registry() -> ConversationRegistry:
    return _require_service("conversation_registry")


def get_message_store() -> MessageStore:
    return _require_service("message_store")


def get_delivery_orchestrator() -> DeliveryOrchestrator:
    return _require_service("delivery_orchestrator")


def get_character_service() -> CharacterProfileService:
    return _require_service("character_service")


def get_current_agent(
    x_api_key: Optional[str] = Header(default=None),
    api_key: Optional[str] = Query(default=None),
    directory: AgentDirectory = Depends(get_agent_directory),
) -> str:
    """Resolve the calling agent from the ``x-api-key`` header or ``api_key`` query."""
    credential = x_api_key or api_key
    if not credential:
        raise UnauthorizedError("API key is required for authentication")
    return directory.verify_credential(credential)


def ensure_dungeon_master(directory: AgentDirectory) -> None:
    """Install the bundled Dungeon Master unless a special agent already holds its name."""
    if directory.is_special_agent(constants.DM_USERNAME):
        return
    install_definition(load_bundled_definition("dm"), directory, username=constants.DM_USERNAME)
    LOG.info("Installed bundled special agent %s", constants.DM_USERNAME)


@app.exception_handler(RelayError)
async def relay_error_handler(request: Request, exc: RelayError) -> JSONResponse:
    for error_cls, status_code in _ERROR_STATUS.items():
        if isinstance(exc, error_cls):
            return JSONResponse(status_code=status_code, content={"success": False, "error": str(exc)})
    LOG.error("Request %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )


@app.on_event("startup")
async def startup_event() -> None:
    setup_logging()
    ensure_runtime_directories()
    init_db()
    directory = AgentDirectory()
    ensure_dungeon_master(directory)
    registry = ConversationRegistry(directory)
    store = MessageStore(registry)
    characters = CharacterProfileService(directory)
    adapters = AdapterManager(characters)
    orchestrator = DeliveryOrchestrator(directory, registry, store, adapters, characters)

    app.state.agent_directory = directory
    app.state.conversation_registry = registry
    app.state.message_store = store
    app.state.character_service = characters
    app.state.adapter_manager = adapters
    app.state.delivery_orchestrator = orchestrator
    LOG.info("Agent Relay listening on %s:%s", constants.SERVER_HOST, constants.SERVER_PORT)


@app.get("/health")
async def health() -> dict[str, str]:
    """Lightweight health probe."""
    return {"status": "ok"}


@app.post("/agents/register", response_model=AgentRegistration, status_code=status.HTTP_201_CREATED)
def register_agent(
    payload: AgentRegisterRequest,
    directory: AgentDirectory = Depends(get_agent_directory),
) -> AgentRegistration:
    api_key = directory.register(payload.username, payload.agent_description, payload.wallet_address)
    return AgentRegistration(username=payload.username, api_key=api_key)


@app.get("/agents/info", response_model=AgentInfoResponse)
def get_agent_info(
    username: str = Depends(get_current_agent),
    directory: AgentDirectory = Depends(get_agent_directory),
) -> AgentInfoResponse:
    return AgentInfoResponse(agent=directory.get_by_username(username))


@app.post("/messages/send", response_model=SendResponse, response_model_exclude_none=True)
def send_message(
    payload: SendMessageRequest,
    username: str = Depends(get_current_agent),
    delivery: DeliveryOrchestrator = Depends(get_delivery_orchestrator),
) -> SendResponse:
    result = delivery.send(username, payload.recipient, payload.message)
    return SendResponse(**result.model_dump())


@app.post("/messages/respond", response_model=RespondResponse, response_model_exclude_none=True)
def respond_to_message(
    payload: RespondRequest,
    username: str = Depends(get_current_agent),
    delivery: DeliveryOrchestrator = Depends(get_delivery_orchestrator),
) -> RespondResponse:
    result = delivery.respond(username, str(payload.message_id), payload.response)
    return RespondResponse(message_id=result.message_id, reply=result.reply)


@app.post("/messages/ignore", response_model=IgnoreResponse)
def ignore_message(
    payload: IgnoreRequest,
    username: str = Depends(get_current_agent),
    delivery: DeliveryOrchestrator = Depends(get_delivery_orchestrator),
) -> IgnoreResponse:
    delivery.ignore(username, str(payload.message_id), reason=payload.reason)
    return IgnoreResponse()


@app.get("/messages/inbox", response_model=InboxResponse)
def check_inbox(
    include_read: bool = False,
    limit: int = Query(default=constants.DEFAULT_INBOX_LIMIT, ge=1, le=constants.MAX_INBOX_LIMIT),
    filter_by_sender: Optional[str] = None,
    username: str = Depends(get_current_agent),
    store: MessageStore = Depends(get_message_store),
) -> InboxResponse:
    view = store.inbox(
        username,
        include_read=include_read,
        limit=limit,
        filter_by_sender=filter_by_sender,
    )
    return InboxResponse(**view.model_dump())


@app.get("/messages/history", response_model=HistoryResponse)
def get_conversation_history(
    conversation_with: str = Query(min_length=1),
    limit: int = Query(
        default=constants.DEFAULT_HISTORY_LIMIT, ge=1, le=constants.MAX_HISTORY_LIMIT
    ),
    username: str = Depends(get_current_agent),
    store: MessageStore = Depends(get_message_store),
) -> HistoryResponse:
    history = store.history(username, conversation_with, limit)
    return HistoryResponse(**history.model_dump())


@app.post("/conversations/{conversation_id}/archive", response_model=ArchiveResponse)
def archive_conversation(
    conversation_id: str,
    username: str = Depends(get_current_agent),
    registry: ConversationRegistry = Depends(get_conversation_registry),
) -> ArchiveResponse:
    conversation = registry.archive(conversation_id, username)
    return ArchiveResponse(conversation_id=conversation.id, status=conversation.status)


@app.get("/characters/profile", response_model=CharacterProfileResponse)
def get_character_profile(
    username: str = Depends(get_current_agent),
    characters: CharacterProfileService = Depends(get_character_service),
) -> CharacterProfileResponse:
    profile = characters.get_for_agent(username)
    if profile is None:
        raise NotFoundError(f"No character profile found for {username}")
    return CharacterProfileResponse(profile=profile)
