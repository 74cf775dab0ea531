"""Special agent definition loading and installation helpers."""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional

import frontmatter
from pydantic import ValidationError

from agent_relay import constants
from agent_relay.models.agent import SpecialAgentDefinition
from agent_relay.services.agent_service import AgentDirectory


class SpecialAgentError(RuntimeError):
    """Raised when a special agent definition cannot be loaded or parsed."""


def _bundled_definitions_dir():
    return resources.files("agent_relay.special_agents")


def bundled_special_agent_names() -> List[str]:
    """Return the special agent definitions shipped with the package."""
    try:
        base = _bundled_definitions_dir()
    except (FileNotFoundError, ModuleNotFoundError):
        return []

    names = [path.name[:-3] for path in base.iterdir() if path.is_file() and path.name.endswith(".md")]
    return sorted(names)


def parse_definition_text(text: str) -> SpecialAgentDefinition:
    post = frontmatter.loads(text)
    metadata = dict(post.metadata)
    metadata["body"] = post.content.strip()
    try:
        return SpecialAgentDefinition(**metadata)
    except ValidationError as exc:
        raise SpecialAgentError(f"Invalid special agent definition: {exc}") from exc


def load_bundled_definition(name: str) -> SpecialAgentDefinition:
    """Load a definition shipped with the package, ignoring local files."""
    bundled_file = _bundled_definitions_dir() / f"{name}.md"
    if not bundled_file.is_file():
        raise SpecialAgentError(f"Bundled special agent '{name}' not found.")
    return parse_definition_text(bundled_file.read_text(encoding="utf-8"))


def load_special_agent_definition(source: str) -> SpecialAgentDefinition:
    """Load a definition from a file path, the user store, or the bundled store."""
    source_path = Path(source).expanduser()
    if source_path.is_file():
        return parse_definition_text(source_path.read_text(encoding="utf-8"))

    user_file = constants.SPECIAL_AGENTS_DIR / f"{source}.md"
    if user_file.is_file():
        return parse_definition_text(user_file.read_text(encoding="utf-8"))

    if source in bundled_special_agent_names():
        return load_bundled_definition(source)

    raise SpecialAgentError(
        f"Special agent source '{source}' not found as a file, installed or bundled definition."
    )


def install_special_agent(
    source: str,
    directory: AgentDirectory,
    *,
    username: Optional[str] = None,
) -> Dict[str, str]:
    """Register the special agent described by ``source`` and store its config."""
    return install_definition(load_special_agent_definition(source), directory, username=username)


def install_definition(
    definition: SpecialAgentDefinition,
    directory: AgentDirectory,
    *,
    username: Optional[str] = None,
) -> Dict[str, str]:
    target = username or definition.username
    api_key = directory.register_special_agent(
        target,
        definition.description,
        definition.to_config(),
    )
    return {
        "username": target,
        "adapter": definition.adapter,
        "model": definition.model or "",
        "api_key": api_key,
    }
