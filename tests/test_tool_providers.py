"""Unit tests for DockerToolProvider (MCP tool listing and calls)."""

from __future__ import annotations

import pytest

from docker_mcp_cli.errors import ErrorKind, ExecutionError
from docker_mcp_cli.mcp_server.tool_providers import DockerToolProvider
from docker_mcp_cli.registry import OPERATIONS, WORKFLOWS
from tests.helpers import assert_tool_schema_invariants, make_dispatcher, parse_single_text_content_json

pytestmark = pytest.mark.unit


def _provider(outcomes=()):
    dispatcher, executor = make_dispatcher(outcomes)
    return DockerToolProvider(dispatcher), executor


class _ExplodingDispatcher:
    table = None

    async def dispatch(self, name, raw_args=None):
        raise RuntimeError("boom")


class TestListTools:
    def test_every_operation_and_workflow_is_advertised(self):
        provider, _executor = _provider()
        names = provider.tool_names()
        assert names == [op.name for op in OPERATIONS] + [wf.alias for wf in WORKFLOWS]
        assert len(names) == len(set(names))

    def test_schemas_are_well_formed(self):
        provider, _executor = _provider()
        for tool in provider.list_tools():
            assert_tool_schema_invariants(tool)
            assert tool.description

    def test_run_schema(self):
        provider, _executor = _provider()
        tool = next(t for t in provider.list_tools() if t.name == "docker-run")
        props = tool.inputSchema["properties"]
        assert tool.inputSchema["required"] == ["imageName"]
        assert props["detach"]["type"] == "boolean"
        assert props["ports"]["type"] == "array"
        assert props["environment"]["additionalProperties"] == {"type": "string"}
        assert "timeout" in props
        assert "longRunning" in props

    def test_workflow_schema_has_choices_and_execution_overrides(self):
        provider, _executor = _provider()
        tool = next(t for t in provider.list_tools() if t.name == "dclean")
        props = tool.inputSchema["properties"]
        assert props["level"]["enum"] == ["light", "medium", "deep", "all"]
        assert props["timeout"]["type"] == "number"
        assert props["longRunning"]["type"] == "boolean"
        assert tool.inputSchema["required"] == ["level"]
        assert "Usage: dclean" in tool.description

    def test_every_workflow_advertises_timeout(self):
        provider, _executor = _provider()
        tools = {t.name: t for t in provider.list_tools()}
        for wf in WORKFLOWS:
            assert "timeout" in tools[wf.alias].inputSchema["properties"], wf.alias
            assert "longRunning" in tools[wf.alias].inputSchema["properties"], wf.alias
        assert "timeout" not in tools["docker-list"].inputSchema["properties"]


class TestCallTool:
    @pytest.mark.asyncio
    async def test_success_returns_one_json_block(self):
        provider, executor = _provider()
        response = await provider.call_tool("docker-images", {})
        data = parse_single_text_content_json(response)
        assert data["isError"] is False
        assert data["content"] == "No Docker images found."
        assert data["metadata"]["operation"] == "docker-images"
        assert len(executor.calls) == 1

    @pytest.mark.asyncio
    async def test_alias_names_are_accepted(self):
        provider, executor = _provider()
        await provider.call_tool("dstop", {"containers": ["web"], "time": 0})
        assert executor.argvs[0] == ("docker", "stop", "-t", "0", "web")

    @pytest.mark.asyncio
    async def test_none_arguments(self):
        provider, _executor = _provider()
        data = parse_single_text_content_json(await provider.call_tool("docker-containers", None))
        assert data["isError"] is False

    @pytest.mark.asyncio
    async def test_validation_error_envelope(self):
        provider, executor = _provider()
        data = parse_single_text_content_json(await provider.call_tool("docker-pull", {}))
        assert data["isError"] is True
        assert data["error"]["kind"] == "MissingRequiredField"
        assert data["error"]["field"] == "imageName"
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_execution_error_envelope(self):
        failure = ExecutionError(ErrorKind.DAEMON_UNAVAILABLE, "Cannot connect to the Docker daemon", raw_stderr="Cannot connect to the Docker daemon")
        provider, _executor = _provider([failure])
        data = parse_single_text_content_json(await provider.call_tool("docker-images", {}))
        assert data["error"]["kind"] == "DaemonUnavailable"
        assert "Cannot connect" in data["content"]

    @pytest.mark.asyncio
    async def test_unknown_tool(self):
        provider, _executor = _provider()
        data = parse_single_text_content_json(await provider.call_tool("docker-teleport", {}))
        assert data["error"]["kind"] == "UnknownOperation"

    @pytest.mark.asyncio
    async def test_unexpected_exception_becomes_envelope(self):
        provider = DockerToolProvider(_ExplodingDispatcher())  # type: ignore[arg-type]
        data = parse_single_text_content_json(await provider.call_tool("docker-images", {}))
        assert data["isError"] is True
        assert data["error"]["kind"] == "CommandFailed"
        assert "RuntimeError: boom" in data["content"]
