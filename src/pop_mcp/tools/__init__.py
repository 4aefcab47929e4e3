"""Tool execution core for driving the Pop CLI non-interactively.

A call passes through validation, command building, execution and
classification, and always ends in a Success or Failure outcome.

Example:
    from pop_mcp.tools import ToolDispatcher

    dispatcher = ToolDispatcher()
    outcome = await dispatcher.dispatch("build_contract", {"path": "./flipper"})
    print(outcome.text)
"""

from .base import (
    CommandSpec,
    ErrorKind,
    ExecutionRecord,
    Executor,
    ExtractionError,
    Failure,
    InvalidInputError,
    LaunchWatch,
    PopToolError,
    ReadySignal,
    Success,
    ToolCall,
    ToolDescriptor,
    ToolOutcome,
    UnknownToolError,
)
from .catalogue import CATALOGUE
from .dispatcher import ToolDispatcher, create_dispatcher
from .executor import ProcessExecutor, create_executor, terminate_process
from .schema import ToolParams, validate_params

__all__ = [
    # Pipeline types
    "ToolCall",
    "ToolDescriptor",
    "CommandSpec",
    "LaunchWatch",
    "ReadySignal",
    "ExecutionRecord",
    "Success",
    "Failure",
    "ToolOutcome",
    "ErrorKind",
    "Executor",
    # Exceptions
    "PopToolError",
    "InvalidInputError",
    "UnknownToolError",
    "ExtractionError",
    # Stages
    "ToolParams",
    "validate_params",
    "ProcessExecutor",
    "create_executor",
    "terminate_process",
    # Catalogue and dispatch
    "CATALOGUE",
    "ToolDispatcher",
    "create_dispatcher",
]
