"""MCP server — advertises registered tools and routes tools/call through the executor."""
import logging
from typing import Any, Dict, List

import mcp.types as types
from mcp.server.lowlevel import Server

from .config import settings
from .session import current_session
from .tools import all_tools, execute_tool

logger = logging.getLogger(__name__)


class ToolCallError(Exception):
    """An error-flagged tool result. The MCP server reports it as CallToolResult(isError=True)."""


def create_server() -> Server:
    server = Server(settings.server_name, version=settings.server_version)

    @server.list_tools()
    async def list_tools() -> List[types.Tool]:
        return [
            types.Tool(name=tool.name, description=tool.description, inputSchema=tool.input_schema())
            for tool in all_tools().values()
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: Dict[str, Any]) -> List[types.TextContent]:
        result = await execute_tool(name, arguments, session=current_session.get())
        if result.is_error:
            raise ToolCallError(result.text)
        return [types.TextContent(type="text", text=result.text)]

    return server
