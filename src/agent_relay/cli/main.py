from __future__ import annotations

import json
from typing import Any, Callable, Optional

import click

from agent_relay import constants
from agent_relay.clients.database import init_db
from agent_relay.clients.relay import RelayAPIError, RelayClient
from agent_relay.services.agent_service import AgentDirectory
from agent_relay.utils import special_agents
from agent_relay.utils.logging import setup_logging
from agent_relay.utils.pathing import ensure_runtime_directories


def _client(ctx: click.Context) -> RelayClient:
    return RelayClient(api_key=ctx.obj.get("api_key"), base_url=ctx.obj["api_url"])


def _call(func: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    try:
        return func(*args, **kwargs)
    except RelayAPIError as exc:
        raise click.ClickException(str(exc)) from exc


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, indent=2))


@click.group(help="Agent Relay command-line interface.")
@click.option(
    "--api-key",
    envvar=constants.API_KEY_ENV_VAR,
    help="Agent API key (defaults to $RELAY_API_KEY).",
)
@click.option("--api-url", default=constants.API_BASE, show_default=True, help="Relay API base URL.")
@click.pass_context
def cli(ctx: click.Context, api_key: Optional[str], api_url: str) -> None:
    """Root command for Agent Relay."""
    setup_logging(console=False)
    ctx.ensure_object(dict)
    ctx.obj["api_key"] = api_key
    ctx.obj["api_url"] = api_url


@cli.command()
def init() -> None:
    """Initialize local directories and database."""
    ensure_runtime_directories()
    init_db()
    click.echo("Agent Relay environment initialized.")


@cli.command()
@click.option("--host", default=constants.SERVER_HOST, show_default=True)
@click.option("--port", default=constants.SERVER_PORT, show_default=True, type=int)
def serve(host: str, port: int) -> None:
    """Run the relay API server."""
    import uvicorn

    uvicorn.run("agent_relay.api.main:app", host=host, port=port)


@cli.command("install-special-agent")
@click.argument("source")
@click.option("--username", help="Register under this username instead of the one in the definition.")
def install_special_agent(source: str, username: Optional[str]) -> None:
    """Register a special agent from a bundled definition or a local markdown file."""
    init_db()
    try:
        result = special_agents.install_special_agent(source, AgentDirectory(), username=username)
    except special_agents.SpecialAgentError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_json(result)


@cli.command("special-agents")
def list_special_agents() -> None:
    """List bundled special agent definitions."""
    _echo_json({"bundled": special_agents.bundled_special_agent_names()})


@cli.command()
@click.argument("username")
@click.option("--description", default="", help="Short description of the agent.")
@click.option("--wallet", "wallet_address", required=True, help="Wallet address for minted assets.")
@click.pass_context
def register(ctx: click.Context, username: str, description: str, wallet_address: str) -> None:
    """Register a new agent and print its API key."""
    _echo_json(_call(_client(ctx).register_agent, username, description, wallet_address))


@cli.command()
@click.pass_context
def whoami(ctx: click.Context) -> None:
    """Show the authenticated agent."""
    _echo_json(_call(_client(ctx).get_agent_info))


@cli.command()
@click.argument("recipient")
@click.option("--message", prompt=True, help="Message body.")
@click.pass_context
def send(ctx: click.Context, recipient: str, message: str) -> None:
    """Send a message to another agent."""
    _echo_json(_call(_client(ctx).send_message, recipient, message))


@cli.command()
@click.option("--include-read/--unread-only", default=False, show_default=True)
@click.option("--limit", type=click.IntRange(1, constants.MAX_INBOX_LIMIT), default=constants.DEFAULT_INBOX_LIMIT)
@click.option("--from", "filter_by_sender", help="Only show messages from this agent.")
@click.pass_context
def inbox(ctx: click.Context, include_read: bool, limit: int, filter_by_sender: Optional[str]) -> None:
    """List inbox messages."""
    _echo_json(
        _call(
            _client(ctx).check_inbox,
            include_read=include_read,
            limit=limit,
            filter_by_sender=filter_by_sender,
        )
    )


@cli.command()
@click.argument("message_id")
@click.option("--message", prompt=True, help="Response body.")
@click.pass_context
def respond(ctx: click.Context, message_id: str, message: str) -> None:
    """Respond to a message in the inbox."""
    _echo_json(_call(_client(ctx).respond_to_message, message_id, message))


@cli.command()
@click.argument("message_id")
@click.option("--reason", help="Why the message is being ignored.")
@click.pass_context
def ignore(ctx: click.Context, message_id: str, reason: Optional[str]) -> None:
    """Mark a message as read without responding."""
    _echo_json(_call(_client(ctx).ignore_message, message_id, reason))


@cli.command()
@click.argument("agent")
@click.option("--limit", type=click.IntRange(1, constants.MAX_HISTORY_LIMIT), default=constants.DEFAULT_HISTORY_LIMIT)
@click.pass_context
def history(ctx: click.Context, agent: str, limit: int) -> None:
    """Show the conversation with another agent."""
    _echo_json(_call(_client(ctx).get_conversation_history, agent, limit))


@cli.command()
@click.argument("conversation_id")
@click.pass_context
def archive(ctx: click.Context, conversation_id: str) -> None:
    """Archive a conversation."""
    _echo_json(_call(_client(ctx).archive_conversation, conversation_id))


@cli.command()
@click.pass_context
def profile(ctx: click.Context) -> None:
    """Show the authenticated agent's character profile."""
    _echo_json(_call(_client(ctx).get_character_profile))


if __name__ == "__main__":
    cli()
