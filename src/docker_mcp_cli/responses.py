"""Response formatting: execution outcome -> :class:`ResponseEnvelope`.

This is the one place where CLI and protocol callers' output shapes are made
identical.  Success text gets a short per-operation heading; errors become
``Error [Kind]: message`` plus the captured stderr and a hint.
"""

from __future__ import annotations

import os
import time

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from docker_mcp_cli.errors import DockerMcpError, ERROR_HINTS, ErrorKind, ExecutionError, NormalizationError
from docker_mcp_cli.executor import ExecutionResult
from docker_mcp_cli.models import EnvelopeMetadata, ErrorInfo, ResponseEnvelope, StepReport
from docker_mcp_cli.registry import CATEGORY_ADVANCED, CATEGORY_BASIC, AliasTable

Params = Mapping[str, Any]
_Renderer = Callable[[Params, ExecutionResult], str]

_RENDERERS: dict[str, _Renderer] = {}

DEFAULT_REGISTRY = "docker.io"


def _renderer(operation: str) -> Callable[[_Renderer], _Renderer]:
    def register(fn: _Renderer) -> _Renderer:
        _RENDERERS[operation] = fn
        return fn

    return register


def _body(result: ExecutionResult, fallback: str) -> str:
    return result.stdout.strip() or result.stderr.strip() or fallback


# ---------------------------------------------------------------------------
# Success renderers
# ---------------------------------------------------------------------------


@_renderer("docker-images")
def _images(p: Params, r: ExecutionResult) -> str:
    if not r.stdout.strip():
        return "No Docker images found."
    return f"Docker Images:\n\n{r.stdout.rstrip()}"


@_renderer("docker-containers")
def _containers(p: Params, r: ExecutionResult) -> str:
    if not r.stdout.strip():
        return "No Docker containers found." if p.get("all") else "No running Docker containers found."
    return f"Docker Containers:\n\n{r.stdout.rstrip()}"


@_renderer("docker-pull")
def _pull(p: Params, r: ExecutionResult) -> str:
    return f"Successfully pulled image: {p['imageName']}\n\n{_body(r, '')}".rstrip()


@_renderer("docker-push")
def _push(p: Params, r: ExecutionResult) -> str:
    return f"Successfully pushed image: {p['imageName']}\n\n{_body(r, '')}".rstrip()


@_renderer("docker-tag")
def _tag(p: Params, r: ExecutionResult) -> str:
    return f"Tagged {p['sourceImage']} as {p['targetImage']}"


@_renderer("docker-run")
def _run(p: Params, r: ExecutionResult) -> str:
    if p.get("detach"):
        return f"Successfully started container from image: {p['imageName']}\n\nContainer ID: {r.stdout.strip()}"
    return f"Container from image {p['imageName']} exited:\n\n{_body(r, 'No output')}"


@_renderer("docker-logs")
def _logs(p: Params, r: ExecutionResult) -> str:
    # docker logs replays the container's stderr on stderr.
    output = "\n".join(s for s in (r.stdout.rstrip(), r.stderr.rstrip()) if s)
    return f"Logs for container {p['containerId']}:\n\n{output or 'No logs found'}"


@_renderer("docker-exec")
def _exec(p: Params, r: ExecutionResult) -> str:
    command = " ".join(p["command"])
    return f"Command executed in container {p['containerId']}:\n\nCommand: {command}\nOutput:\n{_body(r, 'No output')}"


@_renderer("docker-build")
def _build(p: Params, r: ExecutionResult) -> str:
    tags = ", ".join(p.get("tag", ()))
    heading = f"Successfully built Docker image {tags}".rstrip()
    return f"{heading}\n\n{_body(r, '')}".rstrip()


@_renderer("docker-compose")
def _compose(p: Params, r: ExecutionResult) -> str:
    command = " ".join(p["command"])
    return f"Docker Compose {command} completed:\n\n{_body(r, 'Command executed successfully')}"


def _managed(kind: str, name_field: str, p: Params, r: ExecutionResult) -> str:
    action = p.get("action", "list")
    name = p.get(name_field, "")
    if action == "list":
        return f"Docker {kind.title()}s:\n\n{r.stdout.rstrip()}"
    if action == "create":
        return f"Successfully created {kind}: {name}\n\n{r.stdout.strip()}".rstrip()
    if action == "remove":
        return f"Successfully removed {kind}: {name}"
    return f"{kind.title()} details for {name}:\n\n{r.stdout.rstrip()}"


@_renderer("docker-network")
def _network(p: Params, r: ExecutionResult) -> str:
    return _managed("network", "networkName", p, r)


@_renderer("docker-volume")
def _volume(p: Params, r: ExecutionResult) -> str:
    return _managed("volume", "volumeName", p, r)


@_renderer("docker-bridge")
def _bridge(p: Params, r: ExecutionResult) -> str:
    action = p["action"]
    bridge = p.get("bridgeName", "")
    if action == "list":
        return f"Docker Bridge Networks:\n\n{r.stdout.rstrip()}"
    if action == "connect":
        return f"Connected {p['containerName']} to bridge {bridge}"
    if action == "disconnect":
        return f"Disconnected {p['containerName']} from bridge {bridge}"
    if action == "prune":
        return f"Unused networks cleanup completed\n\n{_body(r, 'Cleanup completed successfully')}"
    return _managed("bridge", "bridgeName", p, r)


@_renderer("docker-inspect")
def _inspect(p: Params, r: ExecutionResult) -> str:
    return f"Inspection details for {p['objectType']} {p['objectId']}:\n\n{r.stdout.rstrip()}"


_PRUNE_HEADINGS = {
    "system": "System-wide cleanup completed",
    "images": "Unused images cleanup completed",
    "containers": "Stopped containers cleanup completed",
    "networks": "Unused networks cleanup completed",
    "volumes": "Unused volumes cleanup completed",
}


@_renderer("docker-prune")
def _prune(p: Params, r: ExecutionResult) -> str:
    heading = _PRUNE_HEADINGS[p.get("objectType", "system")]
    return f"{heading}\n\n{_body(r, 'Cleanup completed successfully')}"


@_renderer("docker-login")
def _login(p: Params, r: ExecutionResult) -> str:
    registry = p.get("registry", DEFAULT_REGISTRY)
    if p.get("username") or p.get("password") or p.get("token"):
        who = "using token authentication" if p.get("token") else f"as {p['username']}"
        return f"Successfully logged in to {registry} {who}\n\n{r.stdout.strip()}".rstrip()

    lines = ["Docker Registry Login Status", "=" * 40, "", f"Registry: {registry}"]
    user = r.stdout.strip()
    if user:
        lines += [f"Current User: {user}", "Status: Logged in"]
    else:
        lines += [
            "Status: Not logged in",
            "",
            "To login:",
            "   dlogin --username <user> --password <pass>",
            "   dlogin <registry-url> --username <user> --token <token>",
        ]
    return "\n".join(lines)


@_renderer("docker-logout")
def _logout(p: Params, r: ExecutionResult) -> str:
    return f"Logged out of {p.get('registry', DEFAULT_REGISTRY)}\n\n{r.stdout.strip()}".rstrip()


def _lifecycle(verb: str) -> _Renderer:
    def render(p: Params, r: ExecutionResult) -> str:
        names = r.stdout.split() or p["containers"]
        return f"{verb} {len(names)} container(s): {', '.join(names)}"

    return render


_RENDERERS["docker-stop"] = _lifecycle("Stopped")
_RENDERERS["docker-start"] = _lifecycle("Started")
_RENDERERS["docker-restart"] = _lifecycle("Restarted")
_RENDERERS["docker-rm"] = _lifecycle("Removed")


def render_success(operation: str, params: Params, result: ExecutionResult) -> str:
    renderer = _RENDERERS.get(operation)
    if renderer is None:
        return f"{operation} completed:\n\n{_body(result, 'Command executed successfully')}"
    return renderer(params, result)


# ---------------------------------------------------------------------------
# docker-list
# ---------------------------------------------------------------------------


def render_catalog(table: AliasTable, category: str = "all") -> str:
    """Plain-text overview of operations, aliases and workflows."""
    categories = (CATEGORY_BASIC, CATEGORY_ADVANCED) if category == "all" else (category,)
    lines = ["Docker MCP - Available Tools & CLI Aliases", ""]
    for cat in categories:
        ops = [op for op in table.operations.values() if op.category == cat]
        names = {op.name for op in ops}
        lines.append(f"{cat.title()} operations:")
        for op in ops:
            lines.append(f"  {op.name:<20} {op.description}")
        lines.append("")
        lines.append(f"{cat.title()} aliases:")
        for entry in table.aliases.values():
            if entry.operation in names:
                lines.append(f"  {entry.alias:<10} {entry.usage:<50} {entry.description}")
        lines.append("")
    if category in ("all", CATEGORY_ADVANCED):
        lines.append("Workflows (stop at the first failed step):")
        for wf in table.workflows.values():
            lines.append(f"  {wf.alias:<10} {wf.usage:<50} {wf.description}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


def error_kind(error: BaseException) -> ErrorKind:
    return error.kind if isinstance(error, DockerMcpError) else ErrorKind.COMMAND_FAILED


def error_message(error: BaseException) -> str:
    if isinstance(error, DockerMcpError):
        return str(error)
    return f"{error.__class__.__name__}: {error}"


def render_error(error: BaseException) -> str:
    kind = error_kind(error)
    message = error_message(error)
    parts = [f"Error [{kind.value}]: {message}"]
    if isinstance(error, ExecutionError):
        details = error.raw_stderr.strip()
        if details and details != message:
            parts.append(details)
    parts.append(f"Hint: {ERROR_HINTS[kind]}")
    return "\n\n".join(parts)


def error_info(error: BaseException) -> ErrorInfo:
    kind = error_kind(error)
    return ErrorInfo(
        kind=kind.value,
        message=error_message(error),
        hint=ERROR_HINTS[kind],
        exit_code=error.exit_code if isinstance(error, ExecutionError) else None,
        field=error.field if isinstance(error, NormalizationError) else None,
    )


# ---------------------------------------------------------------------------
# Envelopes
# ---------------------------------------------------------------------------


def _metadata(operation: str, started_at: float) -> EnvelopeMetadata:
    now = datetime.now(timezone.utc)
    return EnvelopeMetadata(
        operation=operation,
        duration=max(0, int((time.monotonic() - started_at) * 1000)),
        timestamp=now.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        working_directory=os.getcwd(),
    )


def format_response(
    operation: str,
    outcome: ExecutionResult | BaseException | str,
    started_at: float,
    params: Params | None = None,
) -> ResponseEnvelope:
    """Wrap one outcome into the envelope.

    ``outcome`` is an :class:`ExecutionResult`, an exception (validation or
    execution), or text already rendered locally (docker-list).
    ``started_at`` is a :func:`time.monotonic` reading.
    """
    metadata = _metadata(operation, started_at)
    if isinstance(outcome, BaseException):
        return ResponseEnvelope(content=render_error(outcome), is_error=True, metadata=metadata, error=error_info(outcome))
    if isinstance(outcome, ExecutionResult):
        content = render_success(operation, params or {}, outcome)
    else:
        content = outcome
    return ResponseEnvelope(content=content, is_error=False, metadata=metadata)


@dataclass
class StepOutcome:
    """What happened to one workflow step; filled in by the dispatcher."""

    operation: str
    status: str
    params: Params | None = None
    command: str | None = None
    result: ExecutionResult | None = None
    error: BaseException | None = None


def format_workflow_response(
    workflow: str,
    outcomes: Sequence[StepOutcome],
    started_at: float,
) -> ResponseEnvelope:
    """Envelope for a workflow: one section per step, stopping at the failure."""
    metadata = _metadata(workflow, started_at)
    total = len(outcomes)
    sections: list[str] = []
    reports: list[StepReport] = []
    failed: tuple[int, BaseException] | None = None

    for index, outcome in enumerate(outcomes, start=1):
        heading = f"Step {index}/{total} {outcome.operation}: {outcome.status}"
        if outcome.status == "ok" and outcome.result is not None:
            sections.append(f"{heading}\n{render_success(outcome.operation, outcome.params or {}, outcome.result)}")
        elif outcome.status == "failed" and outcome.error is not None:
            failed = (index, outcome.error)
            sections.append(f"{heading}\n{render_error(outcome.error)}")
        else:
            sections.append(heading)
        reports.append(
            StepReport(
                index=index,
                operation=outcome.operation,
                status=outcome.status,
                command=outcome.command,
                exit_code=outcome.error.exit_code if isinstance(outcome.error, ExecutionError) else None,
            ),
        )

    if failed is None:
        sections.insert(0, f"Workflow {workflow} completed ({total} steps)")
        return ResponseEnvelope(content="\n\n".join(sections), is_error=False, metadata=metadata, steps=reports)

    index, error = failed
    sections.insert(0, f"Workflow {workflow} stopped at step {index}/{total}")
    return ResponseEnvelope(
        content="\n\n".join(sections),
        is_error=True,
        metadata=metadata,
        error=error_info(error),
        steps=reports,
        failed_step=index,
    )
