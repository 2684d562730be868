"""CLI tests for the click group, alias commands and exit codes.

A fake executor is injected through ``ctx.obj`` so no docker binary runs.
"""

from __future__ import annotations

import json

import pytest

from click.testing import CliRunner

from docker_mcp_cli import __version__
from docker_mcp_cli.cli import ALIAS_COMMANDS, dps, dstop, main
from docker_mcp_cli.errors import ErrorKind, ExecutionError
from docker_mcp_cli.executor import ExecutionResult
from docker_mcp_cli.registry import build_alias_table
from tests.helpers import assert_text_block_invariants, make_dispatcher

pytestmark = pytest.mark.unit


def _invoke(args: list[str], outcomes=(), command=main):
    dispatcher, executor = make_dispatcher(outcomes)
    result = CliRunner().invoke(command, args, obj={"dispatcher": dispatcher})
    return result, executor


class TestCliCommandRegistration:
    def test_main_help(self):
        result = CliRunner().invoke(main, ["--help"])
        assert result.exit_code == 0, result.output
        assert_text_block_invariants(result.output, must_contain=["Commands:", "call", "tool", "tool-seq", "dps", "dclean"])

    def test_version(self):
        result = CliRunner().invoke(main, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_every_alias_and_workflow_is_registered(self):
        table = build_alias_table()
        registered = {cmd.name for cmd in ALIAS_COMMANDS}
        assert registered == set(table.aliases) | set(table.workflows)
        for name in registered:
            assert name in main.commands

    def test_alias_help_shows_usage(self):
        result = CliRunner().invoke(main, ["dstop", "--help"])
        assert result.exit_code == 0, result.output
        assert "Stop running containers" in result.output
        assert "<container...>" in result.output


class TestAliasExitCodes:
    def test_success_exit_zero(self):
        result, executor = _invoke(["dps"])
        assert result.exit_code == 0, result.output
        assert "No running Docker containers found." in result.output
        assert executor.argvs[0][:2] == ("docker", "ps")

    def test_validation_error_exit_one(self):
        result, executor = _invoke(["dstop", "-t", "abc"])
        assert result.exit_code == 1
        assert "Error [InvalidEnum]" in result.output
        assert "Hint:" in result.output
        assert executor.calls == []

    def test_missing_argument_exit_one(self):
        result, _executor = _invoke(["dpull"])
        assert result.exit_code == 1
        assert "Error [MissingRequiredField]" in result.output

    def test_execution_error_propagates_exit_code(self):
        failure = ExecutionError(ErrorKind.PORT_CONFLICT, "port is already allocated", raw_stderr="port is already allocated", exit_code=125)
        result, _executor = _invoke(["drun", "-d", "-p", "80:80", "nginx"], [failure])
        assert result.exit_code == 125
        assert "Error [PortConflict]" in result.output

    def test_unknown_options_reach_the_normalizer(self):
        result, executor = _invoke(["dlogs", "web", "--tail", "5", "-ft"])
        assert result.exit_code == 0, result.output
        assert executor.argvs[0] == ("docker", "logs", "--tail", "5", "-f", "-t", "web")

    def test_passthrough_command(self):
        result, executor = _invoke(["dexec", "-it", "web", "sh", "-c", "ls -la"])
        assert result.exit_code == 0, result.output
        assert executor.argvs[0][-3:] == ("sh", "-c", "ls -la")

    def test_standalone_console_script(self):
        result, executor = _invoke(["-t", "0", "web"], command=dstop)
        assert result.exit_code == 0, result.output
        assert executor.argvs[0] == ("docker", "stop", "-t", "0", "web")

    def test_dstop_all(self):
        result, executor = _invoke(["dstop", "all"], [ExecutionResult(stdout="abc\n", stderr="")])
        assert result.exit_code == 0, result.output
        assert executor.argvs == [("docker", "ps", "-q"), ("docker", "stop", "abc")]

    def test_drun_interactive_with_rm(self):
        result, executor = _invoke(["drun", "--rm", "-it", "ubuntu:20.04", "bash"])
        assert result.exit_code == 0, result.output
        assert executor.argvs[0] == ("docker", "run", "-i", "-t", "--rm", "ubuntu:20.04", "bash")

    def test_standalone_dps(self):
        result, _executor = _invoke([], [ExecutionResult(stdout="CONTAINER ID\nabc\n", stderr="")], command=dps)
        assert result.exit_code == 0
        assert "Docker Containers:" in result.output

    def test_json_format(self):
        result, _executor = _invoke(["-f", "json", "dps"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["isError"] is False
        assert data["metadata"]["operation"] == "docker-containers"

    def test_workflow_failure_exit_code(self):
        failure = ExecutionError(ErrorKind.IMAGE_NOT_FOUND, "No such image: app", raw_stderr="No such image: app", exit_code=1)
        result, executor = _invoke(["dpublish", "app", "reg/app:1"], [failure])
        assert result.exit_code == 1
        assert "stopped at step 1/2" in result.output
        assert len(executor.calls) == 1


class TestGenericCommands:
    def test_call(self):
        result, executor = _invoke(["call", "docker-stop", "-t", "0", "web"])
        assert result.exit_code == 0, result.output
        assert executor.argvs[0] == ("docker", "stop", "-t", "0", "web")

    def test_tool_with_json_arguments(self):
        result, executor = _invoke(["tool", "docker-run", '{"image_name": "nginx", "detach": true}'])
        assert result.exit_code == 0, result.output
        assert executor.argvs[0] == ("docker", "run", "-d", "nginx")

    def test_tool_list(self):
        result, _executor = _invoke(["tool", "--list-tools"])
        assert result.exit_code == 0
        assert result.output.startswith("Valid tool names:")
        assert "  docker-images" in result.output
        assert "  dreset" in result.output

    def test_tool_rejects_non_object(self):
        result, executor = _invoke(["tool", "docker-pull", "[1, 2]"])
        assert result.exit_code == 1
        assert "Arguments must be a JSON object." in result.output
        assert executor.calls == []

    def test_tool_rejects_bad_json(self):
        result, _executor = _invoke(["tool", "docker-pull", "{nope"])
        assert result.exit_code == 1
        assert "Invalid JSON arguments" in result.output

    def test_tool_seq_stops_on_error(self):
        steps = json.dumps(
            [
                {"name": "dpull", "arguments": {"imageName": "redis"}},
                {"name": "dstop", "arguments": ["-t", "abc"]},
                {"name": "dps", "arguments": {}},
            ],
        )
        result, executor = _invoke(["-f", "json", "tool-seq", steps])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert [s["success"] for s in data["steps"]] == [True, False]
        assert data["steps"][1]["result"]["error"]["kind"] == "InvalidEnum"
        assert len(executor.calls) == 1

    def test_tool_seq_continue_on_error(self):
        steps = json.dumps([{"name": "dfoo"}, {"name": "dps"}])
        result, executor = _invoke(["-f", "json", "tool-seq", steps, "--continue-on-error"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert [s["index"] for s in data["steps"]] == [1, 2]
        assert len(executor.calls) == 1

    def test_tool_seq_validates_shape(self):
        result, _executor = _invoke(["tool-seq", '{"name": "dps"}'])
        assert result.exit_code == 1
        assert "Steps must be a JSON array of objects." in result.output

    def test_list(self):
        result, executor = _invoke(["list", "--category", "advanced"])
        assert result.exit_code == 0
        assert "Advanced operations:" in result.output
        assert executor.calls == []
