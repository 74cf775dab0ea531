import threading

import pytest

from agent_relay import constants
from agent_relay.adapters.base import ReplyAdapter
from agent_relay.clients.cognition import CognitionError
from agent_relay.errors import ForbiddenError, NotFoundError
from agent_relay.models.agent import SpecialAgentConfig


def test_send_to_regular_agent_has_no_reply(orchestrator, store, register):
    register("alice")
    register("bob")

    result = orchestrator.send("alice", "bob", "hi")

    assert result.reply is None
    inbox = store.inbox("bob")
    assert inbox.unread_count == 1
    assert inbox.messages[0].message_id == result.message_id
    assert inbox.messages[0].content == "hi"


def test_send_to_unknown_agent_fails(orchestrator, register):
    register("alice")
    with pytest.raises(NotFoundError):
        orchestrator.send("alice", "ghost", "hi")


def test_send_to_dm_returns_inline_reply(orchestrator, store, register, dm, cognition):
    register("alice")
    cognition.queue("Welcome, traveller. What are you called?")

    result = orchestrator.send("alice", dm, "Hello DM")

    assert result.reply == "Welcome, traveller. What are you called?"

    history = store.history("alice", dm)
    assert [(entry.sender, entry.content) for entry in history.messages] == [
        ("alice", "Hello DM"),
        (dm, "Welcome, traveller. What are you called?"),
    ]
    assert store.get_message(result.message_id).responded is True
    assert store.get_message(result.message_id).read is True

    inbox = store.inbox("alice")
    assert inbox.unread_count == 1
    reply_id = inbox.messages[0].message_id
    reply = store.get_message(reply_id)
    assert reply.read is False
    assert reply.responded is True

    call = cognition.calls[0]
    assert call["model"] == "test/model"
    assert call["messages"][-1] == {"role": "user", "content": "alice: Hello DM"}


def test_dm_sees_prior_turns_as_chat_history(orchestrator, register, dm, cognition):
    register("alice")
    cognition.queue("First answer")
    cognition.queue("Second answer")

    orchestrator.send("alice", dm, "one")
    orchestrator.send("alice", dm, "two")

    messages = cognition.calls[1]["messages"]
    assert messages[1] == {"role": "user", "content": "alice: one"}
    assert messages[2] == {"role": "assistant", "content": "First answer"}
    assert messages[3] == {"role": "user", "content": "alice: two"}
    assert len(messages) == 4


def test_adapter_failure_becomes_apology(orchestrator, store, register, dm, cognition):
    register("alice")
    cognition.fail_with(CognitionError("provider down"))

    result = orchestrator.send("alice", dm, "Hello DM")

    assert result.reply == constants.APOLOGY_REPLY
    assert store.history("alice", dm).total_messages == 2
    assert store.get_message(result.message_id).responded is True


class SlowAdapter(ReplyAdapter):
    released = threading.Event()

    def reply(self, context):
        self.released.wait(timeout=5)
        return "too late"


def test_adapter_timeout_becomes_apology(orchestrator, adapters, directory, register):
    register("alice")
    adapters.register_kind("slow", SlowAdapter)
    directory.register_special_agent("Sloth", "", SpecialAgentConfig(adapter="slow"))
    orchestrator.reply_timeout = 0.1

    try:
        result = orchestrator.send("alice", "Sloth", "hurry")
    finally:
        SlowAdapter.released.set()

    assert result.reply == constants.APOLOGY_REPLY


def test_unknown_adapter_kind_becomes_apology(orchestrator, directory, register):
    register("alice")
    directory.register_special_agent("Oracle", "", SpecialAgentConfig(adapter="oracle"))

    result = orchestrator.send("alice", "Oracle", "what is next?")

    assert result.reply == constants.APOLOGY_REPLY


def test_respond_marks_original_read_and_responded(orchestrator, store, register):
    register("alice")
    register("bob")
    sent = orchestrator.send("alice", "bob", "ping")

    answer = orchestrator.respond("bob", sent.message_id, "pong")

    original = store.get_message(sent.message_id)
    assert original.read is True
    assert original.responded is True
    assert answer.conversation_id == sent.conversation_id
    assert answer.reply is None
    assert store.inbox("bob").unread_count == 0
    assert [entry.content for entry in store.inbox("alice").messages] == ["pong"]


def test_respond_and_ignore_require_recipient(orchestrator, store, register):
    register("alice")
    register("bob")
    register("carol")
    sent = orchestrator.send("alice", "bob", "ping")

    with pytest.raises(ForbiddenError):
        orchestrator.respond("carol", sent.message_id, "me too")
    with pytest.raises(ForbiddenError):
        orchestrator.ignore("alice", sent.message_id)
    with pytest.raises(NotFoundError):
        orchestrator.ignore("bob", "00000000-0000-0000-0000-000000000000")

    assert store.get_message(sent.message_id).read is False


def test_ignore_marks_read_without_reply(orchestrator, store, register, caplog):
    register("alice")
    register("bob")
    sent = orchestrator.send("alice", "bob", "spam")

    with caplog.at_level("INFO"):
        orchestrator.ignore("bob", sent.message_id, reason="not interested")

    message = store.get_message(sent.message_id)
    assert message.read is True
    assert message.responded is False
    assert store.history("alice", "bob").total_messages == 1
    assert "not interested" in caplog.text


def test_special_agent_to_special_agent_chain(orchestrator, store, echo_agent, dm, cognition):
    cognition.queue("Greetings, echo.")

    result = orchestrator.send(echo_agent, dm, "hello")

    assert result.reply == "Greetings, echo."
    inbox = store.inbox(echo_agent)
    assert inbox.messages[0].content == "Greetings, echo."

    cognition.queue("Farewell.")
    answer = orchestrator.respond(echo_agent, inbox.messages[0].message_id, "thanks")
    assert answer.conversation_id == result.conversation_id
    assert answer.reply == "Farewell."
    assert len(cognition.calls) == 2


def test_echo_agent_replies_with_received_content(orchestrator, register, echo_agent):
    register("alice")
    assert orchestrator.send("alice", echo_agent, "marco").reply == "marco"


def test_concurrent_first_contact_sends_share_one_conversation(orchestrator, registry, store, register):
    register("alice")
    register("bob")
    start = threading.Barrier(8)
    results = []
    errors = []

    def sender(index: int) -> None:
        try:
            start.wait()
            pair = ("alice", "bob") if index % 2 else ("bob", "alice")
            results.append(orchestrator.send(*pair, f"hello {index}"))
        except Exception as exc:  # pragma: no cover - surfaced by the assertion below
            errors.append(exc)

    threads = [threading.Thread(target=sender, args=(i,)) for i in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert not errors
    conversation_ids = {result.conversation_id for result in results}
    assert len(conversation_ids) == 1
    assert store.history("alice", "bob").total_messages == 8
    assert registry.get_or_create("bob", "alice") in conversation_ids


class RecordingSlowAdapter(ReplyAdapter):
    contexts = []
    released = threading.Event()

    def reply(self, context):
        self.contexts.append(context)
        self.released.wait(timeout=5)
        return "too late"


def test_timed_out_reply_context_is_cancelled(orchestrator, adapters, directory, register):
    register("alice")
    adapters.register_kind("recording-slow", RecordingSlowAdapter)
    directory.register_special_agent("Snail", "", SpecialAgentConfig(adapter="recording-slow"))
    orchestrator.reply_timeout = 0.1

    try:
        result = orchestrator.send("alice", "Snail", "hurry")
    finally:
        RecordingSlowAdapter.released.set()

    assert result.reply == constants.APOLOGY_REPLY
    assert RecordingSlowAdapter.contexts[0].cancelled.is_set()
