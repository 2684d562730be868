"""Unit tests for envelope rendering."""

from __future__ import annotations

import json
import time

import pytest

from docker_mcp_cli.errors import ErrorKind, ExecutionError, NormalizationError, UnknownOperationError
from docker_mcp_cli.executor import ExecutionResult
from docker_mcp_cli.registry import build_alias_table
from docker_mcp_cli.responses import (
    StepOutcome,
    format_response,
    format_workflow_response,
    render_catalog,
    render_error,
    render_success,
)
from tests.helpers import assert_envelope_invariants, assert_text_block_invariants

pytestmark = pytest.mark.unit


def _ok(stdout: str = "", stderr: str = "") -> ExecutionResult:
    return ExecutionResult(stdout=stdout, stderr=stderr)


class TestSuccessRendering:
    def test_no_running_containers(self):
        assert render_success("docker-containers", {}, _ok()) == "No running Docker containers found."

    def test_no_containers_with_all(self):
        assert render_success("docker-containers", {"all": True}, _ok()) == "No Docker containers found."

    def test_containers_table(self):
        text = render_success("docker-containers", {}, _ok("CONTAINER ID   IMAGE\nabc   nginx\n"))
        assert text.startswith("Docker Containers:\n\n")
        assert "abc   nginx" in text

    def test_images(self):
        assert render_success("docker-images", {}, _ok()) == "No Docker images found."
        assert render_success("docker-images", {}, _ok("REPOSITORY\nnginx\n")).startswith("Docker Images:")

    def test_detached_run(self):
        text = render_success("docker-run", {"imageName": "nginx", "detach": True}, _ok("f00d\n"))
        assert text == "Successfully started container from image: nginx\n\nContainer ID: f00d"

    def test_logs_include_stderr_stream(self):
        text = render_success("docker-logs", {"containerId": "web"}, _ok("out line\n", "err line\n"))
        assert "out line" in text
        assert "err line" in text

    def test_lifecycle(self):
        assert render_success("docker-stop", {"containers": ["a", "b"]}, _ok("a\nb\n")) == "Stopped 2 container(s): a, b"

    def test_prune_heading(self):
        text = render_success("docker-prune", {"objectType": "system"}, _ok("Total reclaimed space: 1GB\n"))
        assert text.startswith("System-wide cleanup completed")

    def test_login_status_not_logged_in(self):
        text = render_success("docker-login", {}, _ok("\n"))
        assert_text_block_invariants(text, must_contain=["Registry: docker.io", "Status: Not logged in"])

    def test_login_status_logged_in(self):
        text = render_success("docker-login", {"registry": "ghcr.io"}, _ok("octocat\n"))
        assert "Current User: octocat" in text
        assert "Registry: ghcr.io" in text

    def test_login_with_token(self):
        text = render_success("docker-login", {"token": "t"}, _ok("Login Succeeded\n"))
        assert "using token authentication" in text

    def test_output_has_no_emoji(self):
        for op, params in (
            ("docker-images", {}),
            ("docker-containers", {}),
            ("docker-prune", {}),
            ("docker-login", {}),
        ):
            text = render_success(op, params, _ok())
            assert text.isascii(), op


class TestErrorRendering:
    def test_execution_error_keeps_stderr(self):
        err = ExecutionError(
            ErrorKind.CONTAINER_NOT_FOUND,
            "Error response from daemon: No such container: web",
            raw_stderr="Error response from daemon: No such container: web\nextra detail\n",
            exit_code=1,
        )
        text = render_error(err)
        assert text.startswith("Error [ContainerNotFound]: Error response from daemon: No such container: web")
        assert "extra detail" in text
        assert "Hint: Check the container name with 'dpsa'." in text

    def test_validation_error(self):
        text = render_error(NormalizationError.missing("docker-pull", "imageName"))
        assert text.startswith("Error [MissingRequiredField]: Required parameter 'imageName'")

    def test_unexpected_exception_is_command_failed(self):
        assert render_error(RuntimeError("boom")).startswith("Error [CommandFailed]: RuntimeError: boom")


class TestEnvelope:
    def test_success_envelope(self):
        env = format_response("docker-containers", _ok(), time.monotonic(), {})
        data = assert_envelope_invariants(env, is_error=False, operation="docker-containers")
        assert data["content"] == "No running Docker containers found."

    def test_error_envelope_carries_exit_code_and_kind(self):
        err = ExecutionError(ErrorKind.PORT_CONFLICT, "port is already allocated", raw_stderr="port is already allocated", exit_code=125)
        data = assert_envelope_invariants(format_response("docker-run", err, time.monotonic()), is_error=True)
        assert data["error"]["kind"] == "PortConflict"
        assert data["error"]["exitCode"] == 125
        assert "field" not in data["error"]

    def test_validation_envelope_names_field(self):
        err = NormalizationError.invalid("docker-stop", "time", "Parameter 'time' must be an integer, got 'abc'")
        data = format_response("docker-stop", err, time.monotonic()).to_dict()
        assert data["error"]["field"] == "time"
        assert data["error"]["kind"] == "InvalidEnum"

    def test_unknown_operation_envelope(self):
        data = format_response("dfoo", UnknownOperationError("dfoo"), time.monotonic()).to_dict()
        assert data["isError"] is True
        assert data["error"]["kind"] == "UnknownOperation"

    def test_local_text(self):
        env = format_response("docker-list", "catalog text\n", time.monotonic())
        assert env.content == "catalog text\n"
        assert env.is_error is False

    def test_json_uses_camel_case_aliases(self):
        env = format_response("docker-images", _ok(), time.monotonic())
        data = json.loads(env.to_json())
        assert "isError" in data
        assert "workingDirectory" in data["metadata"]
        assert "is_error" not in data


class TestWorkflowEnvelope:
    def test_failed_step_is_reported(self):
        err = ExecutionError(ErrorKind.IMAGE_NOT_FOUND, "No such image: app", raw_stderr="No such image: app", exit_code=1)
        outcomes = [
            StepOutcome(operation="docker-tag", status="failed", command="docker tag app reg/app", error=err),
            StepOutcome(operation="docker-push", status="not-run"),
        ]
        env = format_workflow_response("dpublish", outcomes, time.monotonic())
        data = assert_envelope_invariants(env, is_error=True, operation="dpublish")
        assert data["failedStep"] == 1
        assert [s["status"] for s in data["steps"]] == ["failed", "not-run"]
        assert data["steps"][0]["exitCode"] == 1
        assert data["content"].startswith("Workflow dpublish stopped at step 1/2")

    def test_completed_workflow(self):
        outcomes = [
            StepOutcome(operation="docker-containers", status="ok", params={"quiet": True}, command="docker ps -q", result=_ok()),
            StepOutcome(operation="docker-stop", status="skipped"),
        ]
        env = format_workflow_response("dreset", outcomes, time.monotonic())
        data = assert_envelope_invariants(env, is_error=False)
        assert "failedStep" not in data
        assert data["content"].startswith("Workflow dreset completed (2 steps)")
        assert "Step 2/2 docker-stop: skipped" in data["content"]


class TestCatalog:
    def test_all_categories(self):
        text = render_catalog(build_alias_table())
        assert_text_block_invariants(text, must_contain=["Basic operations:", "Advanced operations:", "Workflows", "dps", "dclean"])

    def test_basic_only(self):
        text = render_catalog(build_alias_table(), "basic")
        assert "docker-images" in text
        assert "docker-bridge" not in text
        assert "Workflows" not in text
