"""MCP server exposing the docker tools over stdio or streamable HTTP."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
import time

from collections.abc import AsyncIterator
from typing import Any

import httpx
import uvicorn

from fastapi import FastAPI
from mcp import types
from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.server.streamable_http_manager import StreamableHTTPSessionManager
from pydantic import BaseModel

from docker_mcp_cli import __version__
from docker_mcp_cli.dispatcher import CommandDispatcher
from docker_mcp_cli.mcp_server.tool_providers import DockerToolProvider
from docker_mcp_cli.mcp_utils.debug_logger import DebugLogger

logger = logging.getLogger(__name__)


class ServerConfig(BaseModel):
    """Bind address and identity of the docker MCP server."""

    name: str = "docker-mcp"
    version: str = __version__
    host: str = "127.0.0.1"
    port: int = 8080
    message_path: str = "/mcp/message"
    startup_timeout: float = 10.0

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


class DockerMcpServer:
    """MCP server wrapping :class:`DockerToolProvider`.

    ``run_stdio`` serves a single client on stdin/stdout; ``start`` serves
    streamable HTTP at ``config.message_path`` from a background uvicorn thread.
    """

    def __init__(
        self,
        config: ServerConfig | None = None,
        dispatcher: CommandDispatcher | None = None,
    ) -> None:
        self.config: ServerConfig = config or ServerConfig()
        self.tool_provider = DockerToolProvider(dispatcher)
        self.mcp_server: Server = self._build_mcp_server()
        self._session_manager = StreamableHTTPSessionManager(app=self.mcp_server, json_response=True)
        self.app: FastAPI = self._build_app()

        self._uvicorn: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None

    def _build_mcp_server(self) -> Server:
        server = Server(name=self.config.name, version=self.config.version)
        provider = self.tool_provider

        @server.list_tools()
        async def list_tools() -> list[types.Tool]:
            return provider.list_tools()

        # Alias names and any key spelling are accepted, so the normalizer
        # validates instead of the advertised schema.
        @server.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: dict[str, Any]) -> list[types.TextContent]:
            return await provider.call_tool(name, arguments)

        return server

    def _build_app(self) -> FastAPI:
        session_manager = self._session_manager

        @contextlib.asynccontextmanager
        async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
            async with session_manager.run():
                yield

        app = FastAPI(title=self.config.name, version=self.config.version, lifespan=lifespan)
        app.mount(self.config.message_path, session_manager.handle_request)

        @app.get("/health")
        async def health() -> dict[str, Any]:
            table = self.tool_provider.dispatcher.table
            return {
                "status": "healthy" if self._uvicorn is not None and self._uvicorn.started else "starting",
                "server": self.config.name,
                "version": self.config.version,
                "tools": len(self.tool_provider.list_tools()),
                "aliases": len(table.aliases),
                "workflows": len(table.workflows),
            }

        return app

    async def run_stdio(self) -> None:
        """Serve MCP over stdin/stdout until the client disconnects."""
        DebugLogger.debug_tool_execution(self, "server_startup", "START", "stdio transport")
        async with stdio_server() as (read_stream, write_stream):
            await self.mcp_server.run(read_stream, write_stream, self.mcp_server.create_initialization_options())

    def start(self) -> int:
        """Start the HTTP server in a background thread and wait for /health.

        Returns the bound port.
        """
        if self._thread is not None and self._thread.is_alive():
            logger.warning("Server is already running")
            return self.config.port

        DebugLogger.debug_tool_execution(self, "server_startup", "START", self.config.base_url)
        self._uvicorn = uvicorn.Server(
            uvicorn.Config(app=self.app, host=self.config.host, port=self.config.port, log_level="info"),
        )
        self._thread = threading.Thread(target=self._serve, name="docker-mcp-http", daemon=True)
        self._thread.start()

        deadline = time.monotonic() + self.config.startup_timeout
        while not self._health_ok():
            if time.monotonic() > deadline or not self._thread.is_alive():
                self.stop()
                raise RuntimeError(f"Server did not become healthy on {self.config.base_url}")
            time.sleep(0.1)

        logger.info(f"MCP server listening on {self.config.base_url}{self.config.message_path}")
        return self.config.port

    def _serve(self) -> None:
        assert self._uvicorn is not None
        try:
            asyncio.run(self._uvicorn.serve())
        except Exception as e:
            logger.error(f"Server error: {e.__class__.__name__}: {e}")

    def _health_ok(self) -> bool:
        try:
            response = httpx.get(f"{self.config.base_url}/health", timeout=1.0)
        except httpx.HTTPError:
            return False
        return response.status_code == 200 and response.json().get("status") == "healthy"

    def stop(self) -> None:
        """Ask uvicorn to exit and wait for the serving thread."""
        if self._uvicorn is None:
            return
        logger.info("Stopping MCP server...")
        self._uvicorn.should_exit = True
        if self._thread is not None:
            self._thread.join(timeout=5.0)
        self._uvicorn = None
        self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and self._health_ok()
