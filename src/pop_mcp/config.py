"""Configuration models and loading for pop-mcp."""

import importlib.resources
import os
import tomllib
from collections.abc import Mapping
from pathlib import Path

from pydantic import BaseModel, Field, SecretStr, field_validator

# Byte ceiling for captured stdout+stderr of a single command
DEFAULT_OUTPUT_LIMIT = 10 * 1024 * 1024

# Seconds a network launch may take to become ready
DEFAULT_LAUNCH_TIMEOUT = 300

# Environment variables read at startup
ENV_PRIVATE_KEY = "PRIVATE_KEY"
ENV_DEFAULT_URL = "POP_MCP_URL"
ENV_POP_COMMAND = "POP_MCP_POP_COMMAND"
ENV_CONFIG_FILE = "POP_MCP_CONFIG"


class ExecutorConfig(BaseModel):
    """How the Pop CLI is invoked."""

    command: str = "pop"
    output_limit: int = Field(default=DEFAULT_OUTPUT_LIMIT, ge=1024)
    launch_timeout: int = Field(default=DEFAULT_LAUNCH_TIMEOUT, ge=1)

    @field_validator("command")
    @classmethod
    def validate_command(cls, v: str) -> str:
        """Ensure command is not empty."""
        if not v.strip():
            raise ValueError("Command cannot be empty")
        return v.strip()


class Settings(BaseModel):
    """Externally supplied values the tools read but do not manage."""

    executor: ExecutorConfig = Field(default_factory=ExecutorConfig)
    default_url: str | None = None  # RPC endpoint used when a call gives none
    private_key: SecretStr | None = None  # Signing key URI, forwarded via env only
    markers_file: Path | None = None  # Override for the bundled marker table

    @property
    def signing_env(self) -> dict[str, str]:
        """Environment carrying the signing key to child processes."""
        if self.private_key is None:
            return {}
        return {ENV_PRIVATE_KEY: self.private_key.get_secret_value()}


class MarkerSet(BaseModel):
    """Output substrings that turn a zero exit code into a failure."""

    failure: list[str] = Field(default_factory=list)


class MarkerTable(BaseModel):
    """Versioned table of failure markers, keyed by tool (or tool.mode).

    The markers track the wording of a specific Pop CLI release, so they
    live in data rather than code. A key without an entry means the tool
    is classified on its exit code alone.
    """

    version: str
    tools: dict[str, MarkerSet] = Field(default_factory=dict)

    def markers(self, key: str) -> tuple[str, ...]:
        """Failure markers for a key (empty = exit-code-only)."""
        entry = self.tools.get(key)
        if entry is None:
            return ()
        return tuple(entry.failure)

    def is_exit_code_only(self, key: str) -> bool:
        return not self.markers(key)

    def find(self, key: str, text: str) -> str | None:
        """Return the first marker for key present in text."""
        for marker in self.markers(key):
            if marker in text:
                return marker
        return None


def get_default_config_dir() -> Path:
    """Get the default configuration directory (~/.config/pop-mcp)."""
    return Path.home() / ".config" / "pop-mcp"


def get_default_config_path(environ: Mapping[str, str] | None = None) -> Path:
    """Config file location, honouring POP_MCP_CONFIG."""
    environ = os.environ if environ is None else environ
    override = environ.get(ENV_CONFIG_FILE)
    if override:
        return Path(override).expanduser()
    return get_default_config_dir() / "config.toml"


def load_settings(
    path: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Settings:
    """Load settings from TOML and overlay environment variables.

    An explicit path must exist; the default location is optional.

    Args:
        path: Path to a TOML config file
        environ: Environment to read (defaults to os.environ)

    Returns:
        Validated Settings

    Raises:
        FileNotFoundError: If an explicit config file doesn't exist
        tomllib.TOMLDecodeError: If TOML is malformed
        pydantic.ValidationError: If config doesn't match schema
    """
    environ = os.environ if environ is None else environ

    data: dict = {}
    if path is not None:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    else:
        default_path = get_default_config_path(environ)
        if default_path.exists():
            with open(default_path, "rb") as f:
                data = tomllib.load(f)

    if environ.get(ENV_PRIVATE_KEY):
        data["private_key"] = environ[ENV_PRIVATE_KEY]
    if environ.get(ENV_DEFAULT_URL):
        data["default_url"] = environ[ENV_DEFAULT_URL]
    if environ.get(ENV_POP_COMMAND):
        data.setdefault("executor", {})["command"] = environ[ENV_POP_COMMAND]

    return Settings.model_validate(data)


def load_markers(path: Path | None = None) -> MarkerTable:
    """Load the failure marker table.

    Args:
        path: Marker file to use instead of the bundled one

    Returns:
        Validated MarkerTable

    Raises:
        FileNotFoundError: If an explicit marker file doesn't exist
        tomllib.TOMLDecodeError: If TOML is malformed
        pydantic.ValidationError: If the table doesn't match schema
    """
    if path is not None:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    else:
        bundled = importlib.resources.files("pop_mcp.data").joinpath("markers.toml")
        data = tomllib.loads(bundled.read_text(encoding="utf-8"))
    return MarkerTable.model_validate(data)
