"""Docker tool provider: MCP tool calls -> CommandDispatcher.

Flow:
  1. MCP Server -> DockerToolProvider.call_tool(name, arguments)
  2. The dispatcher resolves ``name`` (operation, alias or workflow; any
     spelling), normalizes ``arguments``, builds and runs the command.
  3. The envelope is returned as the single text content block.

Nothing escapes ``call_tool``: unexpected exceptions are logged and turned
into an error envelope.
"""

from __future__ import annotations

import logging
import time

from typing import Any

from mcp import types

from docker_mcp_cli.dispatcher import CommandDispatcher
from docker_mcp_cli.mcp_utils.debug_logger import DebugLogger
from docker_mcp_cli.mcp_utils.schema_util import SchemaUtil
from docker_mcp_cli.responses import format_response

logger = logging.getLogger(__name__)


class DockerToolProvider:
    """Advertises every docker operation and workflow as an MCP tool."""

    def __init__(self, dispatcher: CommandDispatcher | None = None) -> None:
        self.dispatcher: CommandDispatcher = dispatcher or CommandDispatcher()

    def list_tools(self) -> list[types.Tool]:
        table = self.dispatcher.table
        tools = [
            types.Tool(
                name=op.name,
                description=op.description,
                inputSchema=SchemaUtil.operation_schema(op),
            )
            for op in table.operations.values()
        ]
        tools.extend(
            types.Tool(
                name=wf.alias,
                description=f"{wf.description}. Usage: {wf.usage}",
                inputSchema=SchemaUtil.operation_schema(wf.as_operation()),
            )
            for wf in table.workflows.values()
        )
        return tools

    def tool_names(self) -> list[str]:
        return [tool.name for tool in self.list_tools()]

    async def call_tool(
        self,
        name: str,
        arguments: dict[str, Any] | None,
    ) -> list[types.TextContent]:
        started = time.monotonic()
        DebugLogger.debug_tool_execution(self, name, "CALL")
        try:
            result = await self.dispatcher.dispatch(name, arguments or {})
            envelope = result.envelope
        except Exception as e:
            logger.error(f"Tool {name} error: {e.__class__.__name__}: {e}")
            envelope = format_response(name, e, started)
        return [types.TextContent(type="text", text=envelope.to_json())]
