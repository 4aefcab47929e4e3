"""CLI interface for pop-mcp."""

import asyncio
import json
from pathlib import Path
from typing import Annotated, Any

import typer
from rich.console import Console
from rich.table import Table

from pop_mcp import __version__
from pop_mcp.config import MarkerTable, Settings, load_markers, load_settings
from pop_mcp.logs import configure_logging
from pop_mcp.resources import ResourceNotFoundError, list_resources, read_resource
from pop_mcp.tools.base import Failure, ToolDescriptor
from pop_mcp.tools.dispatcher import ToolDispatcher

app = typer.Typer(
    name="pop-mcp",
    help="Drive the Pop CLI from an agent over the Model Context Protocol.",
    no_args_is_help=True,
)

docs_app = typer.Typer(help="Browse the bundled documentation resources.")

app.add_typer(docs_app, name="docs")

console = Console()

ConfigOption = Annotated[
    Path | None,
    typer.Option(
        "--config", "-c", help="Path to config file (default: ~/.config/pop-mcp/config.toml)"
    ),
]
LogLevelOption = Annotated[
    str,
    typer.Option("--log-level", "-l", help="Log level for stderr output"),
]


def _load_settings(config_path: Path | None) -> Settings:
    try:
        return load_settings(config_path)
    except FileNotFoundError:
        console.print(f"[red]Config file not found: {config_path}[/red]")
        raise typer.Exit(1) from None
    except Exception as e:
        console.print(f"[red]Failed to load config: {e}[/red]")
        raise typer.Exit(1) from None


def _load_markers(settings: Settings) -> MarkerTable:
    try:
        return load_markers(settings.markers_file)
    except Exception as e:
        console.print(f"[red]Failed to load failure markers: {e}[/red]")
        raise typer.Exit(1) from None


def _failure_detection(descriptor: ToolDescriptor, markers: MarkerTable) -> str:
    """Describe how failures of a tool are detected."""
    keys = [
        key
        for key in markers.tools
        if key == descriptor.name or key.startswith(f"{descriptor.name}.")
    ]
    if any(markers.markers(key) for key in keys):
        return f"exit code + markers ({markers.version})"
    return "exit-code-only"


def _parse_assignments(assignments: list[str]) -> dict[str, Any]:
    """Parse key=value pairs; values are decoded as JSON when they parse."""
    arguments: dict[str, Any] = {}
    for assignment in assignments:
        key, sep, raw = assignment.partition("=")
        if not sep or not key:
            console.print(f"[red]Expected key=value, got: {assignment}[/red]")
            raise typer.Exit(1)
        try:
            arguments[key] = json.loads(raw)
        except json.JSONDecodeError:
            arguments[key] = raw
    return arguments


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"pop-mcp {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option("--version", "-v", callback=version_callback, is_eager=True),
    ] = None,
) -> None:
    """pop-mcp: Pop CLI tools for agents."""
    pass


@app.command()
def serve(
    config: ConfigOption = None,
    log_level: LogLevelOption = "INFO",
) -> None:
    """Run the MCP server over stdio."""
    from pop_mcp.server import serve as serve_stdio

    configure_logging(log_level)
    settings = _load_settings(config)
    dispatcher = ToolDispatcher(settings=settings, markers=_load_markers(settings))
    asyncio.run(serve_stdio(dispatcher))


@app.command()
def tools(
    config: ConfigOption = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print tool schemas as JSON"),
    ] = False,
) -> None:
    """List the available tools."""
    settings = _load_settings(config)
    markers = _load_markers(settings)
    dispatcher = ToolDispatcher(settings=settings, markers=markers)
    descriptors = dispatcher.descriptors()

    if as_json:
        console.print_json(
            data=[
                {
                    "name": descriptor.name,
                    "description": descriptor.description,
                    "input_schema": descriptor.input_schema(),
                    "output_schema": descriptor.output_schema(),
                    "failure_detection": _failure_detection(descriptor, markers),
                }
                for descriptor in descriptors
            ]
        )
        return

    table = Table(title="Pop CLI Tools")
    table.add_column("Name", style="cyan")
    table.add_column("Parameters")
    table.add_column("Failure detection")

    for descriptor in descriptors:
        required = set(descriptor.input_schema().get("required", []))
        params = [
            name if name in required else f"[dim]{name}?[/dim]"
            for name in descriptor.params.model_fields
        ]
        table.add_row(
            descriptor.name,
            ", ".join(params) or "[dim]none[/dim]",
            _failure_detection(descriptor, markers),
        )

    console.print(table)


@app.command()
def call(
    tool: Annotated[str, typer.Argument(help="Tool name (see 'pop-mcp tools')")],
    arg: Annotated[
        list[str] | None,
        typer.Option(
            "--arg", "-a", help="Argument as key=value (value parsed as JSON if possible)"
        ),
    ] = None,
    args_json: Annotated[
        str | None,
        typer.Option("--args-json", help="All arguments as a JSON object"),
    ] = None,
    config: ConfigOption = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the outcome as JSON"),
    ] = False,
    log_level: LogLevelOption = "WARNING",
) -> None:
    """Run a single tool call and print its outcome."""
    configure_logging(log_level)

    arguments: dict[str, Any] = {}
    if args_json:
        try:
            decoded = json.loads(args_json)
        except json.JSONDecodeError as e:
            console.print(f"[red]Invalid --args-json: {e}[/red]")
            raise typer.Exit(1) from None
        if not isinstance(decoded, dict):
            console.print("[red]--args-json must be a JSON object[/red]")
            raise typer.Exit(1)
        arguments.update(decoded)
    arguments.update(_parse_assignments(arg or []))

    settings = _load_settings(config)
    dispatcher = ToolDispatcher(settings=settings, markers=_load_markers(settings))
    outcome = asyncio.run(dispatcher.dispatch(tool, arguments))

    if as_json:
        payload: dict[str, Any] = {"ok": outcome.ok, "text": outcome.text}
        if isinstance(outcome, Failure):
            payload["kind"] = outcome.kind.value
        elif outcome.structured is not None:
            payload["structured"] = outcome.structured
        console.print_json(data=payload)
    elif isinstance(outcome, Failure):
        console.print(f"[red]{outcome.kind.value}[/red]")
        console.print(outcome.text, markup=False, highlight=False, soft_wrap=True)
    else:
        console.print(outcome.text, markup=False, highlight=False, soft_wrap=True)

    if not outcome.ok:
        raise typer.Exit(1)


@docs_app.command("list")
def docs_list() -> None:
    """List documentation resources."""
    table = Table(title="Documentation")
    table.add_column("URI", style="cyan")
    table.add_column("Title")
    table.add_column("Description")

    for resource in list_resources():
        table.add_row(resource.uri, resource.title, resource.description)

    console.print(table)


@docs_app.command("show")
def docs_show(
    uri: Annotated[str, typer.Argument(help="Resource URI (e.g., pop://docs/type-hints)")],
) -> None:
    """Print a documentation resource."""
    try:
        text = read_resource(uri)
    except ResourceNotFoundError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None
    console.print(text, markup=False, highlight=False, soft_wrap=True)


if __name__ == "__main__":
    app()
