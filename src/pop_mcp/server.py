"""MCP server exposing the tool catalogue and documentation over stdio."""

import logging
from typing import Any

import mcp.types as types
from mcp.server.lowlevel import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server

from pop_mcp import __version__
from pop_mcp.resources import Resource, list_resources, read_resource
from pop_mcp.tools.base import Success, ToolDescriptor, ToolOutcome
from pop_mcp.tools.dispatcher import ToolDispatcher

logger = logging.getLogger(__name__)

SERVER_NAME = "pop-mcp"

INSTRUCTIONS = (
    "Tools for Polkadot development with Pop CLI: create, build, test, deploy "
    "and call ink! contracts; create, build and call parachains; launch local "
    "nodes and networks. Run check_pop_installation first. Read "
    "pop://docs/type-hints before passing arguments to call_chain."
)


def to_mcp_tool(descriptor: ToolDescriptor) -> types.Tool:
    """Describe a tool in MCP terms."""
    return types.Tool(
        name=descriptor.name,
        description=descriptor.description,
        inputSchema=descriptor.input_schema(),
        outputSchema=descriptor.output_schema(),
    )


def to_mcp_resource(resource: Resource) -> types.Resource:
    """Describe a documentation resource in MCP terms."""
    return types.Resource(
        uri=resource.uri,
        name=resource.name,
        title=resource.title,
        description=resource.description,
        mimeType=resource.mime_type,
    )


def to_call_result(outcome: ToolOutcome) -> types.CallToolResult:
    """Render an outcome as an MCP tool result."""
    content = [types.TextContent(type="text", text=outcome.text)]
    if isinstance(outcome, Success):
        return types.CallToolResult(
            content=content,
            structuredContent=outcome.structured,
            isError=False,
        )
    return types.CallToolResult(content=content, isError=True)


def create_server(dispatcher: ToolDispatcher) -> Server:
    """Build an MCP server backed by a dispatcher.

    Args:
        dispatcher: Runs the tool calls

    Returns:
        Server with tool and resource handlers registered
    """
    server: Server = Server(SERVER_NAME, version=__version__, instructions=INSTRUCTIONS)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        return [to_mcp_tool(descriptor) for descriptor in dispatcher.descriptors()]

    # Arguments are validated by the dispatcher, which reports problems as
    # tool results rather than protocol errors
    @server.call_tool(validate_input=False)
    async def handle_call_tool(name: str, arguments: dict[str, Any]) -> types.CallToolResult:
        outcome = await dispatcher.dispatch(name, arguments)
        return to_call_result(outcome)

    @server.list_resources()
    async def handle_list_resources() -> list[types.Resource]:
        return [to_mcp_resource(resource) for resource in list_resources()]

    @server.read_resource()
    async def handle_read_resource(uri: Any) -> list[ReadResourceContents]:
        text = read_resource(str(uri))
        return [ReadResourceContents(content=text, mime_type="text/plain")]

    return server


async def serve(dispatcher: ToolDispatcher) -> None:
    """Serve the dispatcher's tools over stdio until the client disconnects."""
    server = create_server(dispatcher)
    logger.info("Serving %d tools over stdio", len(dispatcher.descriptors()))
    async with stdio_server() as (read_stream, write_stream):
        await server.run(
            read_stream,
            write_stream,
            server.create_initialization_options(),
        )
