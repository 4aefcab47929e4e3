"""Tool dispatcher: validate, build, execute and classify one call.

The dispatcher is the single entry point for callers. Every tool-level
problem, from an unknown name to a missing address in the output, comes
back as a Failure outcome; nothing here raises for those.
"""

import logging
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from pop_mcp.config import MarkerTable, Settings, load_markers

from .base import (
    ErrorKind,
    ExecutionRecord,
    Executor,
    Failure,
    PopToolError,
    ToolCall,
    ToolDescriptor,
    ToolOutcome,
    UnknownToolError,
)
from .catalogue import CATALOGUE
from .classify import classify
from .executor import create_executor
from .schema import validate_params

logger = logging.getLogger(__name__)


class ToolDispatcher:
    """Runs tool calls against a catalogue.

    Holds no per-call state: concurrent dispatches share only the
    read-only catalogue, settings and marker table.
    """

    def __init__(
        self,
        executor: Executor | None = None,
        settings: Settings | None = None,
        markers: MarkerTable | None = None,
        catalogue: Mapping[str, ToolDescriptor] = CATALOGUE,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            executor: Runs commands (default: a ProcessExecutor)
            settings: Externally supplied values (default: built-in defaults)
            markers: Failure markers (default: loaded from settings or bundled)
            catalogue: Tools by name
        """
        self.settings = settings or Settings()
        self.executor = executor or create_executor(self.settings.executor.output_limit)
        self.markers = markers or load_markers(self.settings.markers_file)
        self._catalogue = catalogue

    def descriptors(self) -> list[ToolDescriptor]:
        """All tools, in listing order."""
        return list(self._catalogue.values())

    def get(self, name: str) -> ToolDescriptor:
        """Look up a tool.

        Raises:
            UnknownToolError: If no tool has this name
        """
        descriptor = self._catalogue.get(name)
        if descriptor is None:
            raise UnknownToolError(name)
        return descriptor

    async def call(self, tool_call: ToolCall) -> ToolOutcome:
        """Dispatch a decoded ToolCall."""
        return await self.dispatch(tool_call.name, tool_call.arguments)

    async def dispatch(
        self, name: str, arguments: Mapping[str, Any] | None = None
    ) -> ToolOutcome:
        """Run one tool call through the pipeline.

        Args:
            name: Tool name
            arguments: Raw arguments as received

        Returns:
            Success or Failure
        """
        try:
            outcome = await self._dispatch(name, arguments)
        except PopToolError as e:
            outcome = Failure(text=str(e), kind=e.kind)
        except Exception as e:
            logger.exception("Unexpected error in tool %s", name)
            outcome = Failure(
                text=f"Internal error running {name}: {e}",
                kind=ErrorKind.EXECUTION_FAILED,
            )

        if isinstance(outcome, Failure):
            logger.info("Tool %s failed (%s)", name, outcome.kind.value)
        else:
            logger.info("Tool %s succeeded", name)
        return outcome

    async def _dispatch(self, name: str, arguments: Mapping[str, Any] | None) -> ToolOutcome:
        descriptor = self.get(name)
        params = validate_params(descriptor, arguments)
        spec = descriptor.build(params, self.settings)

        if spec is None:
            record = ExecutionRecord.local()
        else:
            # Launches abort as soon as a failure marker shows up
            if spec.launch is not None and not spec.launch.abort_markers:
                abort_markers = self.markers.markers(descriptor.markers_for(params))
                spec = replace(spec, launch=replace(spec.launch, abort_markers=abort_markers))
            record = await self.executor.run(spec)

        return classify(descriptor, params, record, self.markers)


def create_dispatcher(
    settings: Settings | None = None,
    executor: Executor | None = None,
) -> ToolDispatcher:
    """Factory function to create a dispatcher.

    Args:
        settings: Loaded settings (default: built-in defaults)
        executor: Executor override, mainly for tests

    Returns:
        Configured ToolDispatcher
    """
    return ToolDispatcher(executor=executor, settings=settings)
