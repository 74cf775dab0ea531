import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from agent_relay.cli import main as cli_main
from agent_relay.cli.main import cli
from agent_relay.clients.relay import RelayClient


@pytest.fixture
def runner(api_client, monkeypatch):
    """CLI runner whose remote commands talk to the in-process API."""

    def in_process_client(ctx):
        return RelayClient(api_key=ctx.obj.get("api_key"), http=api_client)

    monkeypatch.setattr(cli_main, "_client", in_process_client)
    return CliRunner()


def test_init_creates_runtime(runner):
    result = runner.invoke(cli, ["init"])
    assert result.exit_code == 0, result.output
    assert "Agent Relay environment initialized." in result.output


def test_special_agents_lists_bundled_dm(runner):
    result = runner.invoke(cli, ["special-agents"])
    assert result.exit_code == 0, result.output
    assert "dm" in json.loads(result.output)["bundled"]


def test_install_bundled_dm(runner, directory):
    result = runner.invoke(cli, ["install-special-agent", "dm"])
    assert result.exit_code == 0, result.output

    data = json.loads(result.output)
    assert data["username"] == "DM"
    assert data["adapter"] == "dungeon_master"
    assert directory.is_special_agent("DM")
    assert "Dungeon Master" in directory.get_special_agent_config("DM").system_prompt


def test_install_local_definition_with_username_override(runner, directory):
    body = """---
username: parrot
adapter: echo
---
Repeat everything.
"""
    with runner.isolated_filesystem():
        Path("parrot.md").write_text(body)
        result = runner.invoke(cli, ["install-special-agent", "parrot.md", "--username", "Polly"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.output)["username"] == "Polly"
    assert directory.get_special_agent_config("Polly").adapter == "echo"


def test_install_unknown_source_fails(runner):
    result = runner.invoke(cli, ["install-special-agent", "nobody"])
    assert result.exit_code != 0
    assert "not found" in result.output


def test_register_send_and_inbox(runner):
    alice = json.loads(runner.invoke(cli, ["register", "alice", "--wallet", "0xa"]).output)
    bob = json.loads(runner.invoke(cli, ["register", "bob", "--wallet", "0xb"]).output)

    sent = runner.invoke(cli, ["--api-key", alice["api_key"], "send", "bob", "--message", "hello"])
    assert sent.exit_code == 0, sent.output

    inbox = runner.invoke(cli, ["--api-key", bob["api_key"], "inbox"])
    assert inbox.exit_code == 0, inbox.output
    data = json.loads(inbox.output)
    assert data["unread_count"] == 1
    message_id = data["messages"][0]["message_id"]

    responded = runner.invoke(
        cli, ["--api-key", bob["api_key"], "respond", message_id, "--message", "hey"]
    )
    assert responded.exit_code == 0, responded.output

    history = runner.invoke(cli, ["--api-key", alice["api_key"], "history", "bob"])
    contents = [entry["content"] for entry in json.loads(history.output)["messages"]]
    assert contents == ["hello", "hey"]


def test_api_errors_become_click_errors(runner):
    result = runner.invoke(cli, ["--api-key", "bogus", "whoami"])
    assert result.exit_code != 0
    assert "API error 401" in result.output
