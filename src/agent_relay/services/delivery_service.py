"""Send, respond and ignore: the delivery protocol between agents."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from typing import Optional

from agent_relay import constants
from agent_relay.adapters.base import ReplyAdapter, ReplyContext
from agent_relay.adapters.manager import AdapterManager, UnknownAdapterError
from agent_relay.errors import AdapterFailure, NotFoundError
from agent_relay.models.message import SendResult
from agent_relay.services.agent_service import AgentDirectory
from agent_relay.services.character_service import CharacterProfileService
from agent_relay.services.conversation_service import ConversationRegistry
from agent_relay.services.message_service import MessageStore

LOG = logging.getLogger(__name__)


class DeliveryOrchestrator:
    """Routes messages between agents.

    Regular recipients find new messages by polling their inbox. Special agents
    answer inline: their adapter runs while the sender waits, and the reply is
    stored as a second message in the same conversation. A failing adapter
    never fails the delivery; the sender gets an apology as the reply instead.
    An adapter that overruns the reply timeout keeps running in its worker
    thread, but its context is flagged cancelled so it skips side effects.
    """

    def __init__(
        self,
        directory: AgentDirectory,
        registry: ConversationRegistry,
        store: MessageStore,
        adapters: AdapterManager,
        characters: CharacterProfileService,
        reply_timeout: Optional[float] = constants.REPLY_TIMEOUT_SECONDS,
    ) -> None:
        self.directory = directory
        self.registry = registry
        self.store = store
        self.adapters = adapters
        self.characters = characters
        self.reply_timeout = reply_timeout

    def send(self, sender: str, recipient: str, content: str) -> SendResult:
        recipient_is_special = self.directory.is_special_agent(recipient)
        conversation_id = self.registry.get_or_create(sender, recipient)
        message_id = self.store.append(
            conversation_id, sender, recipient, content, recipient_is_special
        )

        if not recipient_is_special:
            return SendResult(message_id=message_id, conversation_id=conversation_id)

        reply = self._special_reply(recipient, sender, content, conversation_id, message_id)
        self.store.append(
            conversation_id,
            recipient,
            sender,
            reply,
            recipient_is_special=False,
            read=False,
            responded=True,
        )
        self.store.mark_responded(message_id)
        return SendResult(message_id=message_id, conversation_id=conversation_id, reply=reply)

    def respond(self, responder: str, message_id: str, content: str) -> SendResult:
        """Answer a message from the responder's inbox through the regular send path."""
        original = self.store.mark_read(message_id, responder)
        result = self.send(responder, original.sender_username, content)
        self.store.mark_responded(message_id)
        return result

    def ignore(self, username: str, message_id: str, reason: Optional[str] = None) -> None:
        """Mark a message as read without answering it."""
        self.store.mark_read(message_id, username)
        if reason:
            LOG.info("Message %s ignored by %s. Reason: %s", message_id, username, reason)
        else:
            LOG.info("Message %s ignored by %s", message_id, username)

    def _special_reply(
        self,
        agent_username: str,
        sender: str,
        content: str,
        conversation_id: str,
        message_id: str,
    ) -> str:
        try:
            config = self.directory.get_special_agent_config(agent_username)
            adapter = self.adapters.get_adapter(agent_username, config)
        except (NotFoundError, UnknownAdapterError) as exc:
            LOG.error("Special agent %s cannot reply: %s", agent_username, exc)
            return constants.APOLOGY_REPLY

        context = ReplyContext(
            agent_username=agent_username,
            sender=sender,
            content=content,
            conversation_id=conversation_id,
            config=config,
            sender_profile=self.directory.get_by_username(sender),
            history=self.store.recent_messages(
                conversation_id, constants.REPLY_CONTEXT_MESSAGES, exclude=message_id
            ),
            character_profile=self.characters.get_for_agent(sender),
        )

        try:
            reply = self._invoke(adapter, context)
        except Exception:
            LOG.exception("Special agent %s failed to reply to %s", agent_username, sender)
            return constants.APOLOGY_REPLY

        if not reply or not reply.strip():
            LOG.warning("Special agent %s returned an empty reply to %s", agent_username, sender)
            return constants.APOLOGY_REPLY
        return reply

    def _invoke(self, adapter: ReplyAdapter, context: ReplyContext) -> str:
        if self.reply_timeout is None:
            return adapter.reply(context)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="special-reply")
        future = executor.submit(adapter.reply, context)
        try:
            return future.result(timeout=self.reply_timeout)
        except FutureTimeoutError as exc:
            context.cancelled.set()
            raise AdapterFailure(
                f"{context.agent_username} did not reply within {self.reply_timeout:g}s"
            ) from exc
        finally:
            executor.shutdown(wait=False)
