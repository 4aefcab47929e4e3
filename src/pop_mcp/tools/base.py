"""Base types for the tool execution pipeline.

A tool call flows through these types in order:
ToolCall -> validated params -> CommandSpec -> ExecutionRecord -> ToolOutcome.
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel

if TYPE_CHECKING:
    from pop_mcp.config import Settings

# Message used when a command succeeds silently
EMPTY_OUTPUT_TEXT = "(Command succeeded but produced no output)"

# Flags whose following argument must never be rendered in logs
SECRET_FLAGS = frozenset({"--suri"})


class ErrorKind(str, Enum):
    """Failure classification returned to the calling agent."""

    INVALID_INPUT = "invalid_input"  # Schema/validation failure, nothing spawned
    UNKNOWN_TOOL = "unknown_tool"  # No such tool, nothing spawned
    EXECUTION_FAILED_TO_START = "execution_failed_to_start"  # Missing binary, permissions
    EXECUTION_FAILED = "execution_failed"  # Ran, but exit code or text says it failed
    OUTPUT_TRUNCATED = "output_truncated"  # Capture ceiling exceeded
    OUTPUT_UNPARSEABLE = "output_unparseable"  # Promised structured field not found


@dataclass(frozen=True)
class ToolCall:
    """A decoded request from the calling agent.

    Attributes:
        name: Tool name as supplied by the caller
        arguments: Field name to value mapping, exactly as received
    """

    name: str
    arguments: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LaunchWatch:
    """How to watch a long-running launch until it is ready.

    Attributes:
        ready: Called with the output captured so far; returns a ReadySignal
            once the launched program is serving, None while still starting
        abort_markers: Output substrings meaning the launch has failed
        poll_interval: Seconds between checks
    """

    ready: Callable[[str], "ReadySignal | None"]
    abort_markers: tuple[str, ...] = ()
    poll_interval: float = 0.2


@dataclass(frozen=True)
class ReadySignal:
    """Evidence that a launched program is ready.

    Attributes:
        source: Where the evidence was found (e.g., a file path)
        payload: The evidence itself (e.g., that file's contents)
    """

    source: str
    payload: str


@dataclass(frozen=True)
class CommandSpec:
    """A program plus argument vector to run, free of shell interpretation.

    Attributes:
        program: Executable name or path
        args: Argument vector; each caller value occupies exactly one slot
        cwd: Working directory for the child process
        env: Extra environment variables (may hold secrets, never rendered)
        timeout: Seconds before the child is killed (None = no limit)
        requires: Other programs that must be on PATH for this command to work
        launch: If set, run as a long-running launch watched for readiness
    """

    program: str
    args: tuple[str, ...] = ()
    cwd: Path | None = None
    env: Mapping[str, str] = field(default_factory=dict, repr=False)
    timeout: float | None = None
    requires: tuple[str, ...] = ()
    launch: LaunchWatch | None = None

    @property
    def argv(self) -> list[str]:
        """Full argument vector including the program."""
        return [self.program, *self.args]

    def display(self) -> str:
        """Render the command for logs and messages with secrets masked."""
        parts = [self.program]
        hide_next = False
        for arg in self.args:
            parts.append("***" if hide_next else arg)
            hide_next = arg in SECRET_FLAGS
        return " ".join(parts)


@dataclass(frozen=True)
class ExecutionRecord:
    """Raw outcome of running a CommandSpec.

    Attributes:
        stdout: Captured standard output (bounded)
        stderr: Captured standard error (bounded)
        exit_code: Process exit status, None if it never ran or is still running
        spawn_error: Why the process could not be started, if it wasn't
        truncated: Output exceeded the capture ceiling
        timed_out: The child was killed after its timeout elapsed
        pid: Process id of a detached launch
        detached: The child was left running after it became ready
        ready: Readiness evidence for a detached launch
        log_file: Output log a detached launch keeps writing to
        command: Display form of the command that ran
        duration_ms: Wall time spent in the executor
    """

    stdout: bytes = b""
    stderr: bytes = b""
    exit_code: int | None = None
    spawn_error: str | None = None
    truncated: bool = False
    timed_out: bool = False
    pid: int | None = None
    detached: bool = False
    ready: ReadySignal | None = None
    log_file: str | None = None
    command: str = ""
    duration_ms: float | None = None

    @classmethod
    def local(cls) -> "ExecutionRecord":
        """Record for a tool answered without spawning anything."""
        return cls(exit_code=0)

    @property
    def stdout_text(self) -> str:
        return self.stdout.decode("utf-8", errors="replace")

    @property
    def stderr_text(self) -> str:
        return self.stderr.decode("utf-8", errors="replace")

    @property
    def output(self) -> str:
        """Combined output, stderr first since Pop CLI reports progress there."""
        parts = [text for text in (self.stderr_text, self.stdout_text) if text]
        return "\n\n".join(parts) if parts else EMPTY_OUTPUT_TEXT


@dataclass(frozen=True)
class Success:
    """A successful tool outcome.

    Attributes:
        text: Human-readable result, always present
        structured: Structured fields when the tool declares an output model
    """

    text: str
    structured: dict[str, Any] | None = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    """A failed tool outcome.

    Attributes:
        text: Human-readable explanation including any captured output
        kind: Where in the pipeline the failure was decided
    """

    text: str
    kind: ErrorKind

    @property
    def ok(self) -> bool:
        return False


ToolOutcome = Success | Failure


@runtime_checkable
class Executor(Protocol):
    """Anything able to turn a CommandSpec into an ExecutionRecord."""

    async def run(self, spec: CommandSpec) -> ExecutionRecord:
        """Run the command and capture its outcome.

        Returns:
            ExecutionRecord; spawn failures are recorded, not raised
        """
        ...


Builder = Callable[[Any, "Settings"], CommandSpec | None]
Finisher = Callable[[Any, ExecutionRecord], Success]


@dataclass(frozen=True)
class ToolDescriptor:
    """Static schema and wiring for one tool.

    Attributes:
        name: Tool name exposed to the caller
        description: Human-readable description
        params: Pydantic model validating this tool's arguments
        build: Maps validated params to a CommandSpec (None = answered locally)
        finish: Turns a successful run into a Success, raising ExtractionError
            when a promised structured field cannot be found
        failure_label: Prefix for failure messages (e.g., "Build failed")
        output: Pydantic model describing structured results, if any
        marker_key: Picks the failure marker set for a call (default: tool name)
    """

    name: str
    description: str
    params: type[BaseModel]
    build: Builder
    finish: Finisher
    failure_label: str
    output: type[BaseModel] | None = None
    marker_key: Callable[[Any], str] | None = None

    def markers_for(self, params: BaseModel) -> str:
        """Key of the failure marker set that applies to these params."""
        if self.marker_key is None:
            return self.name
        return self.marker_key(params)

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's arguments."""
        return self.params.model_json_schema()

    def output_schema(self) -> dict[str, Any] | None:
        """JSON Schema for structured results, if the tool declares any."""
        if self.output is None:
            return None
        return self.output.model_json_schema()


class PopToolError(Exception):
    """Base exception for failures decided inside the pipeline."""

    kind = ErrorKind.EXECUTION_FAILED

    def __init__(self, message: str, tool_name: str | None = None) -> None:
        self.tool_name = tool_name
        super().__init__(message)


class InvalidInputError(PopToolError):
    """Raised when a call's arguments are rejected before anything runs."""

    kind = ErrorKind.INVALID_INPUT

    def __init__(
        self,
        message: str,
        tool_name: str | None = None,
        fields: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message, tool_name)
        self.fields = fields


class UnknownToolError(PopToolError):
    """Raised when no tool with the requested name exists."""

    kind = ErrorKind.UNKNOWN_TOOL

    def __init__(self, tool_name: str) -> None:
        super().__init__(f"Unknown tool: {tool_name}", tool_name)


class ExtractionError(PopToolError):
    """Raised when a promised structured field is missing from the output."""

    kind = ErrorKind.OUTPUT_UNPARSEABLE
