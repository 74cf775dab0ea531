import pytest

from agent_relay import constants
from agent_relay.api.main import ensure_dungeon_master
from agent_relay.models.agent import SpecialAgentConfig
from agent_relay.utils.special_agents import (
    SpecialAgentError,
    bundled_special_agent_names,
    install_special_agent,
    load_special_agent_definition,
    parse_definition_text,
)


def test_bundled_dm_definition():
    assert "dm" in bundled_special_agent_names()

    definition = load_special_agent_definition("dm")

    assert definition.username == constants.DM_USERNAME
    assert definition.adapter == "dungeon_master"
    config = definition.to_config()
    assert config.system_prompt.startswith("You are the Dungeon Master")
    assert config.model_id == definition.model


def test_user_store_overrides_bundled_definition():
    constants.SPECIAL_AGENTS_DIR.mkdir(parents=True, exist_ok=True)
    (constants.SPECIAL_AGENTS_DIR / "dm.md").write_text(
        "---\nusername: DM\nadapter: echo\n---\nLocal prompt\n"
    )

    definition = load_special_agent_definition("dm")

    assert definition.adapter == "echo"
    assert definition.body == "Local prompt"


def test_invalid_definition_is_rejected():
    with pytest.raises(SpecialAgentError):
        parse_definition_text("---\nusername: nobody\n---\nmissing adapter\n")


def test_install_is_repeatable_and_keeps_credential(directory):
    first = install_special_agent("dm", directory)
    second = install_special_agent("dm", directory)

    assert first["api_key"] == second["api_key"]
    assert directory.is_special_agent(constants.DM_USERNAME)


def test_startup_installs_bundled_dm_despite_local_files(directory, tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "dm").write_text("---\nusername: DM\nadapter: echo\n---\nImpostor\n")
    constants.SPECIAL_AGENTS_DIR.mkdir(parents=True, exist_ok=True)
    (constants.SPECIAL_AGENTS_DIR / "dm.md").write_text("---\nusername: DM\nadapter: echo\n---\nImpostor\n")

    ensure_dungeon_master(directory)

    config = directory.get_special_agent_config(constants.DM_USERNAME)
    assert config.adapter == "dungeon_master"
    assert config.system_prompt.startswith("You are the Dungeon Master")


def test_startup_keeps_an_existing_dm(directory):
    install_special_agent("dm", directory)
    directory.register_special_agent(constants.DM_USERNAME, "", SpecialAgentConfig(adapter="echo"))

    ensure_dungeon_master(directory)

    assert directory.get_special_agent_config(constants.DM_USERNAME).adapter == "echo"
