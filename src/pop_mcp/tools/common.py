"""Helpers shared by the tool definitions."""

from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel

from pop_mcp.config import Settings

from .base import (
    CommandSpec,
    ExecutionRecord,
    ExtractionError,
    InvalidInputError,
    LaunchWatch,
    Success,
)

T = TypeVar("T")


def pop_command(
    settings: Settings,
    *args: str,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    timeout: float | None = None,
    requires: tuple[str, ...] = (),
    launch: LaunchWatch | None = None,
) -> CommandSpec:
    """Build a CommandSpec invoking the configured Pop CLI."""
    return CommandSpec(
        program=settings.executor.command,
        args=tuple(args),
        cwd=Path(cwd) if cwd else None,
        env=env or {},
        timeout=timeout,
        requires=requires,
        launch=launch,
    )


def resolve_url(url: str | None, settings: Settings, tool_name: str) -> str:
    """The caller's URL, else the configured default endpoint."""
    if url:
        return url
    if settings.default_url:
        return settings.default_url
    raise InvalidInputError(
        "'url': no URL given and no default endpoint configured (set POP_MCP_URL)",
        tool_name=tool_name,
        fields=("url",),
    )


def signing_env(
    suri: str | None, execute: bool, settings: Settings, tool_name: str
) -> dict[str, str]:
    """Environment carrying the configured signing key, when one is needed.

    A caller-supplied key URI takes precedence and travels as an argument;
    otherwise submitting on-chain requires PRIVATE_KEY to be configured.
    """
    if not execute or suri:
        return {}
    if settings.private_key is None:
        raise InvalidInputError(
            "'suri': a signing key is required when execute=true; "
            "pass 'suri' or set the PRIVATE_KEY environment variable",
            tool_name=tool_name,
            fields=("suri",),
        )
    return settings.signing_env


def report(
    headline: str,
    record: ExecutionRecord,
    structured: BaseModel | None = None,
) -> Success:
    """A Success whose text is the headline followed by the captured output."""
    data: dict[str, Any] | None = None
    if structured is not None:
        data = structured.model_dump(exclude_none=True)
    return Success(text=f"{headline}\n\n{record.output}", structured=data)


def require(value: T | None, what: str) -> T:
    """Return a promised value or raise ExtractionError if it is missing."""
    if value is None or value == []:
        raise ExtractionError(f"Could not find {what} in the command output")
    return value
