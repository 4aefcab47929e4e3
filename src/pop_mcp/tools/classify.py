"""Classification of execution records into tool outcomes.

Exit status is the primary signal, but some Pop CLI commands report logical
failure on stdout/stderr while still exiting 0. Those are caught by the
versioned failure markers in MarkerTable.
"""

from pydantic import BaseModel

from pop_mcp.config import MarkerTable

from .base import (
    ErrorKind,
    ExecutionRecord,
    ExtractionError,
    Failure,
    ToolDescriptor,
    ToolOutcome,
)


def classify(
    descriptor: ToolDescriptor,
    params: BaseModel,
    record: ExecutionRecord,
    markers: MarkerTable,
) -> ToolOutcome:
    """Decide success or failure for a finished execution.

    Args:
        descriptor: The tool that ran
        params: Validated params of the call
        record: What the executor captured
        markers: Failure marker table

    Returns:
        Success built by the tool's finisher, or a Failure carrying the
        captured output
    """
    label = descriptor.failure_label

    if record.spawn_error is not None:
        return Failure(
            text=f"{label}: {record.spawn_error}",
            kind=ErrorKind.EXECUTION_FAILED_TO_START,
        )

    output = record.output

    if record.truncated:
        return Failure(
            text=(
                f"{label}: output exceeded the capture limit and was cut off. "
                f"Partial output:\n\n{output}"
            ),
            kind=ErrorKind.OUTPUT_TRUNCATED,
        )

    if record.timed_out:
        return Failure(
            text=f"{label}: command timed out and was stopped.\n\n{output}",
            kind=ErrorKind.EXECUTION_FAILED,
        )

    if not record.detached and record.exit_code != 0:
        return Failure(
            text=f"{label} (exit code {record.exit_code}):\n\n{output}",
            kind=ErrorKind.EXECUTION_FAILED,
        )

    marker = markers.find(descriptor.markers_for(params), output)
    if marker is not None:
        return Failure(
            text=f"{label}:\n\n{output}",
            kind=ErrorKind.EXECUTION_FAILED,
        )

    try:
        return descriptor.finish(params, record)
    except ExtractionError as e:
        return Failure(
            text=f"{label}: {e}\n\n{output}",
            kind=ErrorKind.OUTPUT_UNPARSEABLE,
        )
