"""Opt-in debug tracing for the docker tool pipeline.

Enabled by ``DOCKER_MCP_DEBUG`` or ``--verbose``; silent otherwise. Lines are
tagged so they can be grepped out of the MCP ``_log`` stream:

    [DEBUG] free-form message
    [DEBUG-TOOL] dstop - START: args=['-t', '0', 'web']
    [DEBUG-PERF] docker-stop took 412ms
"""

from __future__ import annotations

import contextlib
import logging
import time

from collections.abc import Iterator
from typing import Any

logger = logging.getLogger(__name__)


class DebugLogger:
    """Static switchable tracer; every method is a no-op while disabled."""

    _debug_enabled: bool = False

    @staticmethod
    def set_debug_enabled(enabled: bool) -> None:
        DebugLogger._debug_enabled = enabled

    @staticmethod
    def is_debug_enabled() -> bool:
        return DebugLogger._debug_enabled

    @staticmethod
    def debug(source: Any, message: str) -> None:
        if DebugLogger._debug_enabled:
            logger.info(f"[DEBUG] {type(source).__name__}: {message}")

    @staticmethod
    def debug_performance(source: Any, operation: str, duration_ms: int) -> None:
        if DebugLogger._debug_enabled:
            logger.info(f"[DEBUG-PERF] {operation} took {duration_ms}ms")

    @staticmethod
    def debug_tool_execution(source: Any, tool_name: str, status: str, details: str | None = None) -> None:
        """Trace one pipeline stage.

        Args:
            source: Object doing the work (dispatcher, provider, server)
            tool_name: Operation, alias or workflow step
            status: START, SUCCESS, ERROR, SKIPPED ...
            details: Optional extra text
        """
        if not DebugLogger._debug_enabled:
            return
        suffix = f": {details}" if details else ""
        logger.info(f"[DEBUG-TOOL] {tool_name} - {status}{suffix}")

    @staticmethod
    @contextlib.contextmanager
    def time_operation(source: Any, operation_name: str) -> Iterator[None]:
        """Trace START, then SUCCESS or ERROR with the elapsed time.

        Exceptions are re-raised unchanged.

        Example:
            with DebugLogger.time_operation(self, "docker-build"):
                result = await executor.execute(spec)
        """
        started = time.monotonic()
        DebugLogger.debug_tool_execution(source, operation_name, "START")
        try:
            yield
        except BaseException as e:
            DebugLogger.debug_performance(source, operation_name, int((time.monotonic() - started) * 1000))
            DebugLogger.debug_tool_execution(source, operation_name, "ERROR", f"{e.__class__.__name__}: {e}")
            raise
        DebugLogger.debug_performance(source, operation_name, int((time.monotonic() - started) * 1000))
        DebugLogger.debug_tool_execution(source, operation_name, "SUCCESS")
