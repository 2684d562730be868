"""Execution wrapper and shared CLI output helpers.

All subprocess work flows through :meth:`DockerExecutor.execute`:

  1. allow-list check on ``argv[0]`` (nothing else is ever spawned)
  2. optional ``docker version`` liveness probe for daemon-bound commands
  3. argv spawn without a shell, under the command's timeout
  4. stderr classification into an :class:`~docker_mcp_cli.errors.ErrorKind`

There is no retry anywhere in this module.
"""

from __future__ import annotations

import asyncio
import json as _json
import logging
import os
import re
import sys
import time

from dataclasses import dataclass
from typing import Any

from docker_mcp_cli.builder import CommandSpec
from docker_mcp_cli.config import ConfigManager
from docker_mcp_cli.errors import DockerMcpError, ErrorKind, ExecutionError

logger = logging.getLogger(__name__)

ALLOWED_BINARIES = frozenset({"docker", "docker-compose"})
DAEMON_PROBE_ARGV: tuple[str, ...] = ("docker", "version")

# Ordered: the first matching pattern wins, most specific first.
_FAILURE_PATTERNS: tuple[tuple[re.Pattern[str], ErrorKind], ...] = (
    (re.compile(r"Cannot connect to the Docker daemon", re.IGNORECASE), ErrorKind.DAEMON_UNAVAILABLE),
    (re.compile(r"permission denied", re.IGNORECASE), ErrorKind.PERMISSION_DENIED),
    (re.compile(r"No such container", re.IGNORECASE), ErrorKind.CONTAINER_NOT_FOUND),
    (re.compile(r"No such image", re.IGNORECASE), ErrorKind.IMAGE_NOT_FOUND),
    (re.compile(r"port is already allocated", re.IGNORECASE), ErrorKind.PORT_CONFLICT),
    (re.compile(r"network\s+(?:\S+\s+)?not found", re.IGNORECASE), ErrorKind.NETWORK_NOT_FOUND),
    (re.compile(r"volume\s+(?:\S+\s+)?not found|no such volume", re.IGNORECASE), ErrorKind.VOLUME_NOT_FOUND),
)


@dataclass(frozen=True)
class ExecutionResult:
    """Captured output of a successful subprocess run."""

    stdout: str
    stderr: str
    exit_code: int = 0


def classify_failure(stderr: str) -> ErrorKind:
    """Map captured stderr to an error kind; unmatched text is CommandFailed."""
    for pattern, kind in _FAILURE_PATTERNS:
        if pattern.search(stderr or ""):
            return kind
    return ErrorKind.COMMAND_FAILED


def _failure_message(stderr: str, exit_code: int | None) -> str:
    for line in (stderr or "").splitlines():
        line = line.strip()
        if line:
            return line
    return f"Command exited with status {exit_code}"


def _subprocess_env() -> dict[str, str]:
    return {**os.environ, "LANG": "en_US.UTF-8", "LC_ALL": "en_US.UTF-8"}


async def _terminate(proc: asyncio.subprocess.Process) -> None:
    if proc.returncode is not None:
        return
    try:
        proc.kill()
    except ProcessLookupError:
        pass
    await proc.wait()


class DockerExecutor:
    """Runs built :class:`CommandSpec` objects as docker subprocesses."""

    def __init__(self, config: ConfigManager | None = None) -> None:
        self.config = config or ConfigManager()

    @property
    def daemon_check_enabled(self) -> bool:
        return self.config.is_daemon_check_enabled()

    async def execute(self, spec: CommandSpec) -> ExecutionResult:
        """Execute *spec* and return its output.

        Raises:
        ------
            ExecutionError: rejected binary, daemon unavailable, timeout or a
                non-zero exit (classified from stderr).
        """
        if not spec.argv or spec.argv[0] not in ALLOWED_BINARIES:
            binary = spec.argv[0] if spec.argv else "<empty>"
            raise ExecutionError(ErrorKind.COMMAND_FAILED, f"Refusing to execute non-docker binary '{binary}'")

        if spec.requires_daemon and self.daemon_check_enabled:
            probe_started = time.monotonic()
            try:
                await self.ensure_daemon()
            except ExecutionError:
                self._log(spec, probe_started, "daemon-unavailable")
                raise

        started = time.monotonic()
        try:
            result = await self._spawn(spec.argv, spec.input_data, spec.timeout)
        except asyncio.TimeoutError:
            self._log(spec, started, "timeout")
            raise ExecutionError(ErrorKind.TIMEOUT, f"Command '{spec.label}' timed out after {spec.timeout:g}s") from None
        except asyncio.CancelledError:
            self._log(spec, started, "cancelled")
            raise
        except FileNotFoundError as e:
            self._log(spec, started, "not-found")
            raise ExecutionError(
                ErrorKind.COMMAND_FAILED,
                f"Executable not found: {spec.argv[0]}",
                raw_stderr=str(e),
                exit_code=127,
            ) from e

        if result.exit_code != 0:
            kind = classify_failure(result.stderr)
            self._log(spec, started, f"exit {result.exit_code} ({kind.value})")
            logger.warning(f"[DOCKER-ERROR] {spec.label}: {kind.value}: {result.stderr.strip()}")
            raise ExecutionError(
                kind,
                _failure_message(result.stderr, result.exit_code),
                raw_stderr=result.stderr,
                exit_code=result.exit_code,
            )

        self._log(spec, started, "ok")
        return result

    async def ensure_daemon(self) -> None:
        """Raise DaemonUnavailable unless ``docker version`` succeeds quickly."""
        timeout = self.config.get_daemon_probe_timeout_seconds()
        try:
            result = await self._spawn(DAEMON_PROBE_ARGV, None, timeout)
        except asyncio.TimeoutError:
            logger.warning(f"[DOCKER-ERROR] daemon probe timed out after {timeout:g}s")
            raise ExecutionError(ErrorKind.DAEMON_UNAVAILABLE, f"Docker daemon did not answer within {timeout:g}s") from None
        except OSError as e:
            logger.warning(f"[DOCKER-ERROR] daemon probe could not start: {e}")
            raise ExecutionError(
                ErrorKind.DAEMON_UNAVAILABLE,
                "Docker CLI not found on PATH",
                raw_stderr=str(e),
            ) from e
        if result.exit_code != 0:
            logger.warning(f"[DOCKER-ERROR] daemon probe failed: {result.stderr.strip()}")
            raise ExecutionError(
                ErrorKind.DAEMON_UNAVAILABLE,
                _failure_message(result.stderr, result.exit_code),
                raw_stderr=result.stderr,
                exit_code=result.exit_code,
            )

    async def _spawn(self, argv: tuple[str, ...], input_data: str | None, timeout: float) -> ExecutionResult:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if input_data is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=_subprocess_env(),
        )
        payload = input_data.encode("utf-8") if input_data is not None else None
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(payload), timeout=timeout)
        except BaseException:
            # Timeout or cancellation: the child never outlives the call.
            await _terminate(proc)
            raise
        return ExecutionResult(
            stdout=(stdout or b"").decode("utf-8", errors="replace"),
            stderr=(stderr or b"").decode("utf-8", errors="replace"),
            exit_code=proc.returncode if proc.returncode is not None else 0,
        )

    @staticmethod
    def _log(spec: CommandSpec, started: float, outcome: str) -> None:
        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(f"[DOCKER-CMD] {spec.display()} | {duration_ms}ms | {outcome}")


# ---------------------------------------------------------------------------
# CLI output helpers
# ---------------------------------------------------------------------------


def format_output(data: Any, fmt: str) -> str:
    """Format data for human-readable output.

    fmt: 'text' (default) | 'json'
    """
    normalized = (fmt or "text").strip().lower()

    if normalized == "json":
        return _json.dumps(data, indent=2)

    if isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    if isinstance(data, list):
        return "\n".join(f"- {item}" for item in data)
    return str(data)


def run_async(coro: Any) -> Any:
    """Run an async coroutine."""
    return asyncio.run(coro)


def handle_command_error(error: BaseException) -> None:
    """Write a user-friendly message for an unexpected CLI error to stderr."""
    if isinstance(error, DockerMcpError):
        sys.stderr.write(f"Error [{error.kind.value}]: {error}\nHint: {error.hint}\n")
        return
    if isinstance(error, asyncio.CancelledError):
        sys.stderr.write("Error: Operation cancelled\n")
        return
    sys.stderr.write(f"Error: {error.__class__.__name__}: {error}\n")
