"""Test helper utilities for docker-mcp-cli unit tests.

Provides common functionality used across multiple test modules:
- Fake executor and fake subprocesses (no docker daemon needed)
- Envelope and MCP response validation
"""

from __future__ import annotations

import asyncio
import json

from collections.abc import Iterable, Sequence
from typing import Any

from docker_mcp_cli.builder import CommandSpec, ComposeBinaryProbe
from docker_mcp_cli.dispatcher import CommandDispatcher
from docker_mcp_cli.errors import ExecutionError
from docker_mcp_cli.executor import ExecutionResult
from docker_mcp_cli.models import ResponseEnvelope


class FakeExecutor:
    """Stands in for DockerExecutor: records specs, replays queued outcomes.

    Outcomes are ExecutionResult or ExecutionError instances, consumed in
    order; once the queue is empty every call succeeds with empty output.
    """

    def __init__(self, outcomes: Iterable[ExecutionResult | ExecutionError] = ()) -> None:
        self.outcomes: list[ExecutionResult | ExecutionError] = list(outcomes)
        self.calls: list[CommandSpec] = []

    async def execute(self, spec: CommandSpec) -> ExecutionResult:
        self.calls.append(spec)
        if not self.outcomes:
            return ExecutionResult(stdout="", stderr="")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, ExecutionError):
            raise outcome
        return outcome

    @property
    def argvs(self) -> list[tuple[str, ...]]:
        return [spec.argv for spec in self.calls]


def plugin_probe() -> ComposeBinaryProbe:
    """Compose probe that always resolves to ``docker compose``."""

    def runner(*args: Any, **kwargs: Any) -> Any:
        raise FileNotFoundError("docker-compose")

    return ComposeBinaryProbe(runner=runner)


def make_dispatcher(outcomes: Iterable[ExecutionResult | ExecutionError] = ()) -> tuple[CommandDispatcher, FakeExecutor]:
    executor = FakeExecutor(outcomes)
    return CommandDispatcher(executor=executor, probe=plugin_probe()), executor  # type: ignore[arg-type]


class FakeProcess:
    """Minimal asyncio.subprocess.Process double."""

    def __init__(self, stdout: bytes = b"", stderr: bytes = b"", returncode: int = 0, delay: float = 0.0) -> None:
        self._stdout = stdout
        self._stderr = stderr
        self._final_returncode = returncode
        self._delay = delay
        self.returncode: int | None = None
        self.killed = False
        self.stdin_data: bytes | None = None

    async def communicate(self, input: bytes | None = None) -> tuple[bytes, bytes]:
        self.stdin_data = input
        if self._delay:
            await asyncio.sleep(self._delay)
        self.returncode = self._final_returncode
        return self._stdout, self._stderr

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    async def wait(self) -> int:
        return self.returncode if self.returncode is not None else 0


class SpawnRecorder:
    """Replacement for asyncio.create_subprocess_exec that counts spawns.

    ``processes`` maps the first two argv elements (e.g. ``("docker", "version")``)
    to the FakeProcess to return; anything else gets a successful empty process.
    """

    def __init__(self, processes: dict[tuple[str, ...], FakeProcess] | None = None) -> None:
        self.processes = processes or {}
        self.spawned: list[tuple[str, ...]] = []
        self.kwargs: list[dict[str, Any]] = []

    async def __call__(self, *argv: str, **kwargs: Any) -> FakeProcess:
        self.spawned.append(tuple(argv))
        self.kwargs.append(kwargs)
        return self.processes.get(tuple(argv[:2]), FakeProcess())


def assert_string_invariants(value: str, *, expected: str | None = None, must_contain: Sequence[str] | None = None) -> None:
    assert isinstance(value, str)
    assert value == value.strip()
    assert "\n" not in value
    assert len(value) > 0
    if expected is not None:
        assert value == expected
    for part in must_contain or ():
        assert part in value, f"{part!r} not in {value!r}"


def assert_text_block_invariants(value: str, *, must_contain: Sequence[str] | None = None) -> None:
    assert isinstance(value, str)
    assert value.strip() != ""
    assert not value.startswith("\n")
    assert "\0" not in value
    for part in must_contain or ():
        assert part in value, f"{part!r} not in {value!r}"


def assert_envelope_invariants(envelope: ResponseEnvelope, *, is_error: bool | None = None, operation: str | None = None) -> dict[str, Any]:
    """Check the envelope shape and return its wire dict."""
    data = envelope.to_dict()
    assert set(data) >= {"content", "isError", "metadata"}
    assert isinstance(data["content"], str)
    assert data["content"].strip() != ""
    metadata = data["metadata"]
    assert set(metadata) == {"operation", "duration", "timestamp", "workingDirectory"}
    assert isinstance(metadata["duration"], int)
    assert metadata["duration"] >= 0
    assert metadata["timestamp"].endswith("Z")
    if is_error is not None:
        assert data["isError"] is is_error
    if data["isError"]:
        assert data["content"].startswith("Error [") or data["content"].startswith("Workflow ")
        assert "error" in data
        assert data["error"]["hint"]
    else:
        assert "error" not in data
    if operation is not None:
        assert metadata["operation"] == operation
    return data


def assert_tool_schema_invariants(tool: Any, *, expected_name: str | None = None) -> None:
    assert tool is not None
    assert isinstance(tool.name, str)
    assert tool.name.strip() == tool.name
    assert tool.name.lower() == tool.name
    if expected_name is not None:
        assert tool.name == expected_name
    assert isinstance(tool.inputSchema, dict)
    assert tool.inputSchema.get("type") == "object"
    assert isinstance(tool.inputSchema["properties"], dict)
    for key, prop in tool.inputSchema["properties"].items():
        assert key.strip() == key
        assert "type" in prop, f"{tool.name}.{key} has no type"
    for required in tool.inputSchema.get("required", ()):
        assert required in tool.inputSchema["properties"]


def parse_single_text_content_json(response: list[Any]) -> dict[str, Any]:
    assert isinstance(response, list)
    assert len(response) == 1
    first = response[0]
    assert first.type == "text"
    assert first.text.strip().startswith("{")
    data = json.loads(first.text)
    assert isinstance(data, dict)
    return data
