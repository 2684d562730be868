"""MCP server for docker command execution."""

from .server import DockerMcpServer, ServerConfig
from .tool_providers import DockerToolProvider

__all__ = [
    "DockerMcpServer",
    "DockerToolProvider",
    "ServerConfig",
]
