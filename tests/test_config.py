"""Unit tests for configuration loading and validation."""

import tomllib
from pathlib import Path

import pytest
from pydantic import ValidationError

from pop_mcp.config import (
    DEFAULT_LAUNCH_TIMEOUT,
    DEFAULT_OUTPUT_LIMIT,
    ExecutorConfig,
    MarkerTable,
    Settings,
    get_default_config_dir,
    get_default_config_path,
    load_markers,
    load_settings,
)


@pytest.fixture
def isolated_env(tmp_path: Path) -> dict[str, str]:
    """Environment whose default config location does not exist."""
    return {"POP_MCP_CONFIG": str(tmp_path / "absent.toml")}


class TestExecutorConfig:
    """Test ExecutorConfig model."""

    def test_defaults(self):
        config = ExecutorConfig()
        assert config.command == "pop"
        assert config.output_limit == DEFAULT_OUTPUT_LIMIT
        assert config.launch_timeout == DEFAULT_LAUNCH_TIMEOUT

    def test_blank_command_rejected(self):
        """An empty command is not a program."""
        with pytest.raises(ValidationError):
            ExecutorConfig(command="  ")

    def test_command_trimmed(self):
        assert ExecutorConfig(command=" pop ").command == "pop"

    def test_tiny_output_limit_rejected(self):
        with pytest.raises(ValidationError):
            ExecutorConfig(output_limit=10)


class TestSettings:
    """Test Settings model."""

    def test_signing_env_empty_without_key(self):
        assert Settings().signing_env == {}

    def test_private_key_is_secret(self):
        """The key is available to children but never rendered."""
        settings = Settings(private_key="//Alice")

        assert settings.signing_env == {"PRIVATE_KEY": "//Alice"}
        assert "//Alice" not in repr(settings)
        assert "//Alice" not in str(settings.model_dump())


class TestLoadSettings:
    """Test settings loading from TOML and the environment."""

    def test_defaults_when_no_file(self, isolated_env):
        settings = load_settings(environ=isolated_env)

        assert settings.executor.command == "pop"
        assert settings.default_url is None
        assert settings.private_key is None

    def test_load_from_file(self, tmp_path, isolated_env):
        config_file = tmp_path / "config.toml"
        config_file.write_text(
            'default_url = "ws://localhost:9944"\n'
            "\n"
            "[executor]\n"
            'command = "/opt/pop"\n'
            "launch_timeout = 120\n"
        )

        settings = load_settings(config_file, environ=isolated_env)

        assert settings.default_url == "ws://localhost:9944"
        assert settings.executor.command == "/opt/pop"
        assert settings.executor.launch_timeout == 120

    def test_default_location_from_environment(self, tmp_path):
        config_file = tmp_path / "pop.toml"
        config_file.write_text('default_url = "ws://node:9944"\n')

        settings = load_settings(environ={"POP_MCP_CONFIG": str(config_file)})
        assert settings.default_url == "ws://node:9944"

    def test_environment_overrides_file(self, tmp_path):
        config_file = tmp_path / "config.toml"
        config_file.write_text('default_url = "ws://from-file:9944"\n')

        settings = load_settings(
            config_file,
            environ={
                "POP_MCP_URL": "ws://from-env:9944",
                "POP_MCP_POP_COMMAND": "pop-dev",
                "PRIVATE_KEY": "//Bob",
            },
        )

        assert settings.default_url == "ws://from-env:9944"
        assert settings.executor.command == "pop-dev"
        assert settings.signing_env == {"PRIVATE_KEY": "//Bob"}

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_settings(tmp_path / "missing.toml", environ={})

    def test_malformed_toml(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("not valid toml = = =")

        with pytest.raises(tomllib.TOMLDecodeError):
            load_settings(bad, environ={})

    def test_schema_mismatch(self, tmp_path):
        bad = tmp_path / "bad.toml"
        bad.write_text("[executor]\noutput_limit = 1\n")

        with pytest.raises(ValidationError):
            load_settings(bad, environ={})


class TestPaths:
    def test_default_config_dir(self):
        assert get_default_config_dir() == Path.home() / ".config" / "pop-mcp"

    def test_default_config_path(self):
        assert get_default_config_path({}) == get_default_config_dir() / "config.toml"


class TestMarkers:
    """Test the failure marker table."""

    def test_bundled_markers(self):
        markers = load_markers()

        assert markers.version
        assert "directory already exists" in markers.markers("create_chain")
        assert markers.markers("call_chain.metadata") == ("Failed to find the pallet",)

    def test_exit_code_only_tools(self):
        markers = load_markers()

        assert markers.is_exit_code_only("build_contract")
        assert not markers.is_exit_code_only("up_network")

    def test_find(self):
        markers = load_markers()

        assert markers.find("call_chain", "Error: bad origin") == "Error:"
        assert markers.find("call_chain", "Extrinsic submitted") is None
        assert markers.find("build_contract", "Error: anything") is None

    def test_override_file(self, tmp_path):
        custom = tmp_path / "markers.toml"
        custom.write_text(
            'version = "pop-cli-1.0"\n\n[tools.build_contract]\nfailure = ["ERROR"]\n'
        )

        markers = load_markers(custom)

        assert isinstance(markers, MarkerTable)
        assert markers.version == "pop-cli-1.0"
        assert markers.markers("build_contract") == ("ERROR",)
        assert markers.is_exit_code_only("create_chain")
