"""Parameter models and validation for tool calls.

Every tool declares its arguments as a pydantic model deriving from
ToolParams. Validation is purely local: nothing here touches the
filesystem or spawns processes.
"""

import re
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .base import InvalidInputError, ToolDescriptor

_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")


class ToolParams(BaseModel):
    """Base model for tool arguments.

    Unknown fields are rejected rather than dropped, and types are not
    coerced: the string "true" is not a boolean and 5 is not a string.
    """

    model_config = ConfigDict(extra="forbid", strict=True, frozen=True)


def check_project_name(value: str, what: str = "Project") -> str:
    """Ensure a project name is non-empty alphanumeric/underscore."""
    if not value:
        raise ValueError(f"{what} name cannot be empty")
    if not _NAME_PATTERN.match(value):
        raise ValueError(
            f"{what} names can only contain alphanumeric characters and underscores"
        )
    return value


def check_path(value: str) -> str:
    """Ensure a path argument is not blank."""
    if not value.strip():
        raise ValueError("Path cannot be empty")
    return value


def validate_params(descriptor: ToolDescriptor, arguments: Mapping[str, Any] | None) -> BaseModel:
    """Validate raw call arguments against a tool's parameter model.

    Args:
        descriptor: The tool being called
        arguments: Field values as received from the caller

    Returns:
        An instance of the tool's params model with defaults applied

    Raises:
        InvalidInputError: If any field is missing, mistyped, not an allowed
            value, or not declared by the tool
    """
    if arguments is None:
        arguments = {}
    if not isinstance(arguments, Mapping):
        raise InvalidInputError(
            f"Arguments for {descriptor.name} must be an object",
            tool_name=descriptor.name,
        )

    try:
        return descriptor.params.model_validate(dict(arguments))
    except ValidationError as e:
        problems, fields = _describe_errors(e)
        raise InvalidInputError(
            f"Invalid arguments for {descriptor.name}: " + "; ".join(problems),
            tool_name=descriptor.name,
            fields=fields,
        ) from None


def _describe_errors(error: ValidationError) -> tuple[list[str], tuple[str, ...]]:
    """Turn a pydantic ValidationError into readable per-field messages."""
    problems: list[str] = []
    fields: list[str] = []

    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"])
        kind = item["type"]

        if kind == "missing":
            message = "field required"
        elif kind == "extra_forbidden":
            message = "unknown field"
        elif kind == "literal_error":
            allowed = item.get("ctx", {}).get("expected", "")
            message = f"must be one of {allowed}"
        else:
            message = item["msg"]
            if message.startswith("Value error, "):
                message = message[len("Value error, ") :]

        if location:
            problems.append(f"'{location}': {message}")
            top = str(item["loc"][0])
            if top not in fields:
                fields.append(top)
        else:
            problems.append(message)

    return problems, tuple(fields)


class ProjectParams(ToolParams):
    """Arguments of tools that operate on an existing project directory."""

    path: str = Field(description="Path to the project directory")

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return check_path(v)
