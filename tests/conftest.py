"""Shared pytest fixtures and scripted executor for testing."""

import asyncio
from collections.abc import Callable
from typing import ClassVar

import pytest

from pop_mcp.config import ExecutorConfig, MarkerTable, Settings, load_markers
from pop_mcp.tools.base import CommandSpec, ExecutionRecord
from pop_mcp.tools.dispatcher import ToolDispatcher

# A well-known dev account (Alice)
ALICE = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"
ALICE_H160 = "0x9621dde636de098b43efb0fa9b61facfe328f99d"


class ScriptedExecutor:
    """Executor double that returns canned records instead of spawning.

    Every command it receives is logged so tests can check exactly what would
    have been run (or that nothing was).
    """

    # Class-level tracking of all specs for testing
    _call_log: ClassVar[list[CommandSpec]] = []

    def __init__(
        self,
        stdout: str = "",
        stderr: str = "",
        exit_code: int = 0,
        respond: Callable[[CommandSpec], ExecutionRecord] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        """Initialize the scripted executor.

        Args:
            stdout: Standard output of every run
            stderr: Standard error of every run
            exit_code: Exit status of every run
            respond: Builds the record per command (overrides the fixed output)
            gate: If set, each run waits for the event before returning
        """
        self._stdout = stdout
        self._stderr = stderr
        self._exit_code = exit_code
        self._respond = respond
        self._gate = gate
        self.specs: list[CommandSpec] = []

    async def run(self, spec: CommandSpec) -> ExecutionRecord:
        """Record the command and return the scripted outcome."""
        ScriptedExecutor._call_log.append(spec)
        self.specs.append(spec)

        if self._gate is not None:
            await self._gate.wait()

        if self._respond is not None:
            return self._respond(spec)
        return ExecutionRecord(
            stdout=self._stdout.encode(),
            stderr=self._stderr.encode(),
            exit_code=self._exit_code,
            command=spec.display(),
        )

    @classmethod
    def clear_call_log(cls) -> None:
        """Clear the call log (call between tests)."""
        cls._call_log = []

    @classmethod
    def get_call_log(cls) -> list[CommandSpec]:
        """Get all logged specs."""
        return cls._call_log.copy()


def create_scripted_executor(
    stdout: str = "",
    stderr: str = "",
    exit_code: int = 0,
    **kwargs,
) -> ScriptedExecutor:
    """Factory function to create a scripted executor.

    Args:
        stdout: Standard output of every run
        stderr: Standard error of every run
        exit_code: Exit status of every run
        **kwargs: Additional ScriptedExecutor arguments

    Returns:
        Configured ScriptedExecutor instance
    """
    return ScriptedExecutor(stdout=stdout, stderr=stderr, exit_code=exit_code, **kwargs)


# Fixtures


@pytest.fixture(autouse=True)
def clear_scripted_executor_log():
    """Clear the scripted executor call log before each test."""
    ScriptedExecutor.clear_call_log()
    yield
    ScriptedExecutor.clear_call_log()


@pytest.fixture
def settings() -> Settings:
    """Settings with a default endpoint and no signing key."""
    return Settings(
        executor=ExecutorConfig(command="pop"),
        default_url="ws://localhost:9944",
    )


@pytest.fixture
def signing_settings() -> Settings:
    """Settings carrying a signing key."""
    return Settings(
        executor=ExecutorConfig(command="pop"),
        default_url="ws://localhost:9944",
        private_key="//Alice",
    )


@pytest.fixture
def markers() -> MarkerTable:
    """The bundled failure marker table."""
    return load_markers()


@pytest.fixture
def scripted_executor() -> ScriptedExecutor:
    """Executor reporting a silent success."""
    return create_scripted_executor()


@pytest.fixture
def make_dispatcher(settings: Settings, markers: MarkerTable):
    """Build a dispatcher around a scripted executor."""

    def factory(
        executor: ScriptedExecutor | None = None,
        settings_override: Settings | None = None,
    ) -> ToolDispatcher:
        return ToolDispatcher(
            executor=executor or create_scripted_executor(),
            settings=settings_override or settings,
            markers=markers,
        )

    return factory
