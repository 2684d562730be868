#!/usr/bin/env python3
"""docker MCP server - main entry point.

Serves the docker tools over stdio (default) for MCP clients, or over
streamable HTTP with ``--transport streamable-http``.

Usage: claude mcp add docker -- mcp-docker [--config PATH] [--verbose]
"""

from __future__ import annotations

import argparse
import json
import logging
import signal
import sys
import time

from pathlib import Path
from typing import TYPE_CHECKING, Any, TextIO

from docker_mcp_cli import __version__
from docker_mcp_cli.config import ConfigManager
from docker_mcp_cli.dispatcher import CommandDispatcher
from docker_mcp_cli.executor import DockerExecutor, handle_command_error, run_async
from docker_mcp_cli.mcp_server.server import DockerMcpServer, ServerConfig

if TYPE_CHECKING:
    from types import FrameType

logger = logging.getLogger(__name__)


class StderrFilter:
    """Wraps stderr writes in JSON-RPC notification messages.

    Every complete line becomes ``{"jsonrpc":"2.0","method":"_log",...}`` so
    MCP clients reading the stdio stream never see bare text.
    """

    def __init__(self, real_stderr: TextIO):
        self.real_stderr: TextIO = real_stderr
        self._buffer: str = ""
        self._closed: bool = False

    def write(self, s: str) -> int:
        if self._closed or not s:
            return 0

        self._buffer += s
        if "\n" in self._buffer or len(self._buffer) > 4096:
            lines: list[str] = self._buffer.split("\n")
            self._buffer = lines[-1]
            for line in lines[:-1]:
                if line.strip():
                    self._write_jsonrpc_log(line)
            if len(self._buffer) > 4096:
                if self._buffer.strip():
                    self._write_jsonrpc_log(self._buffer)
                self._buffer = ""
        return len(s)

    def _write_jsonrpc_log(self, message: str) -> None:
        notification = {"jsonrpc": "2.0", "method": "_log", "params": {"message": message}}
        self.real_stderr.write(json.dumps(notification, separators=(",", ":")) + "\n")
        self.real_stderr.flush()

    def flush(self) -> None:
        if self._buffer:
            if self._buffer.strip():
                self._write_jsonrpc_log(self._buffer)
            self._buffer = ""
        self.real_stderr.flush()

    def close(self) -> None:
        """Close the filter (but not the underlying stream)."""
        if not self._closed:
            self.flush()
            self._closed = True

    def __getattr__(self, name: str) -> Any:
        return getattr(self.real_stderr, name)


def setup_signal_handlers(server: DockerMcpServer | None = None) -> None:
    """Exit cleanly on SIGINT/SIGTERM (and SIGHUP where available)."""

    def signal_handler(sig: int, frame: FrameType | None) -> None:
        sys.stderr.write(f"\nReceived signal {sig}, shutting down gracefully...\n")
        if server is not None:
            server.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)
    if hasattr(signal, "SIGHUP"):
        signal.signal(signal.SIGHUP, signal_handler)


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
        force=True,
    )


def main() -> None:
    """Main entry point for the docker MCP server."""
    parser = argparse.ArgumentParser(
        description="docker MCP server - docker operations as MCP tools",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to JSON configuration file",
        required=False,
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "streamable-http"],
        default="stdio",
        help="MCP transport",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        metavar="HOST",
        help="HTTP bind host (default: 127.0.0.1 or DOCKER_MCP_HOST)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        metavar="PORT",
        help="HTTP bind port (default: 8080 or DOCKER_MCP_PORT)",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging",
        default=False,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    args = parser.parse_args()

    if args.config and not args.config.exists():
        sys.stderr.write(f"Error: Configuration file not found: {args.config}\n")
        sys.exit(1)

    if args.transport == "stdio":
        # Keep the stdio JSON-RPC stream clean: everything on stderr becomes _log notifications.
        sys.stderr = StderrFilter(sys.stderr)  # type: ignore[assignment]
    configure_logging(args.verbose)

    config = ConfigManager(config_file=args.config)
    if args.verbose:
        config.set_debug_mode(True)
    if args.host:
        config.set_server_host(args.host)
    if args.port is not None:
        try:
            config.set_server_port(args.port)
        except ValueError as e:
            sys.stderr.write(f"Error: {e}\n")
            sys.exit(1)

    dispatcher = CommandDispatcher(executor=DockerExecutor(config))
    server = DockerMcpServer(
        ServerConfig(host=config.get_server_host(), port=config.get_server_port()),
        dispatcher=dispatcher,
    )

    if args.transport == "stdio":
        setup_signal_handlers()
        try:
            run_async(server.run_stdio())
        except KeyboardInterrupt:
            sys.stderr.write("\nShutdown complete\n")
            sys.exit(0)
        except Exception as e:
            handle_command_error(e)
            sys.exit(1)
        return

    setup_signal_handlers(server)
    try:
        port = server.start()
    except RuntimeError as e:
        handle_command_error(e)
        sys.exit(1)
    sys.stderr.write(f"docker MCP server listening on http://{config.get_server_host()}:{port}/mcp/message\n")
    try:
        while server.is_running():
            time.sleep(1.0)
    except KeyboardInterrupt:
        server.stop()
        sys.stderr.write("\nShutdown complete\n")


if __name__ == "__main__":
    main()
