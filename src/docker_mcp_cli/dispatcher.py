"""Dispatch: name + raw arguments -> envelope.

``CommandDispatcher`` owns the full pipeline for one call::

    AliasTable.resolve -> normalize -> build -> DockerExecutor.execute -> format_response

Both the click CLI and the MCP tool provider go through :meth:`CommandDispatcher.dispatch`,
so they always see the same envelope and exit code for the same input.
"""

from __future__ import annotations

import asyncio
import logging
import time

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from docker_mcp_cli.builder import CommandSpec, ComposeBinaryProbe, build, compose_probe
from docker_mcp_cli.errors import ExecutionError, NormalizationError, UnknownOperationError
from docker_mcp_cli.executor import DockerExecutor, ExecutionResult
from docker_mcp_cli.mcp_utils.debug_logger import DebugLogger
from docker_mcp_cli.models import ResponseEnvelope
from docker_mcp_cli.normalizer import CanonicalParameters, ExecutionOptions, RawArgs, normalize, split_execution_options
from docker_mcp_cli.registry import AliasTable, OperationSpec, Resolution, WorkflowEntry, build_alias_table
from docker_mcp_cli.responses import StepOutcome, format_response, format_workflow_response, render_catalog

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_VALIDATION = 1


@dataclass(frozen=True)
class CallResult:
    """Envelope plus the process exit code a CLI caller should use."""

    envelope: ResponseEnvelope
    exit_code: int

    @property
    def ok(self) -> bool:
        return not self.envelope.is_error


@dataclass(frozen=True)
class PreparedCall:
    """A validated call that has not been executed."""

    resolution: Resolution
    params: CanonicalParameters
    options: ExecutionOptions
    command: CommandSpec | None = None


def _execution_exit_code(error: ExecutionError) -> int:
    return error.exit_code if error.exit_code else 1


# operation -> (path field, message) for local paths docker will read.
_PATH_PRECONDITIONS: dict[str, tuple[str, str]] = {
    "docker-build": ("contextPath", "Context path does not exist"),
    "docker-compose": ("filePath", "Compose file does not exist"),
}


def _is_remote_context(value: str) -> bool:
    return value == "-" or "://" in value or value.startswith("git@")


def check_preconditions(operation: str, params: CanonicalParameters) -> None:
    """Reject a local path argument that does not exist, before anything is spawned.

    Raises:
    ------
        NormalizationError: InvalidEnum on the offending field.
    """
    rule = _PATH_PRECONDITIONS.get(operation)
    if rule is None:
        return
    field_name, message = rule
    value = params.get(field_name)
    if value is None or _is_remote_context(value):
        return
    if not Path(value).exists():
        raise NormalizationError.invalid(operation, field_name, f"{message}: {value}")


class CommandDispatcher:
    """Runs operations, aliases and workflows against one immutable table."""

    def __init__(
        self,
        table: AliasTable | None = None,
        executor: DockerExecutor | None = None,
        probe: ComposeBinaryProbe | None = None,
    ) -> None:
        self.table = table or build_alias_table()
        self.executor = executor or DockerExecutor()
        self.probe = probe or compose_probe

    def resolve(self, name: str) -> Resolution:
        return self.table.resolve(name)

    async def _command_for(self, op: OperationSpec, params: CanonicalParameters, options: ExecutionOptions) -> CommandSpec:
        compose_binary = None
        if op.name == "docker-compose":
            # Blocking subprocess probe; first call only.
            compose_binary = self.probe.get() if self.probe.resolved else await asyncio.to_thread(self.probe.get)
        return build(
            op.name,
            params,
            compose_binary=compose_binary,
            timeout=options.timeout,
            long_running=options.long_running,
            requires_daemon=op.requires_daemon,
        )

    async def prepare(self, name: str, raw_args: RawArgs = None) -> PreparedCall:
        """Resolve, normalize and build without executing.

        Raises:
        ------
            UnknownOperationError, NormalizationError
        """
        resolution = self.resolve(name)
        target = resolution.target
        raw, options = split_execution_options(target.name, raw_args)
        params = normalize(target, raw, resolution.fixed_parameters)
        check_preconditions(target.name, params)
        command = None
        if not resolution.is_workflow and not target.local:
            command = await self._command_for(target, params, options)
        return PreparedCall(resolution=resolution, params=params, options=options, command=command)

    async def dispatch(self, name: str, raw_args: RawArgs = None) -> CallResult:
        """Run *name* with *raw_args* and return its envelope.

        Never raises for validation or execution failures; those become
        error envelopes with exit code 1 or the binary's exit code.
        """
        started = time.monotonic()
        DebugLogger.debug_tool_execution(self, name, "START", f"args={_redact(raw_args)}")
        try:
            resolution = self.resolve(name)
        except UnknownOperationError as e:
            DebugLogger.debug_tool_execution(self, name, "ERROR", str(e))
            return CallResult(format_response(name, e, started), EXIT_VALIDATION)

        if resolution.workflow is not None:
            return await self._run_workflow(resolution.workflow, raw_args, started)

        op = resolution.target
        try:
            raw, options = split_execution_options(op.name, raw_args)
            params = normalize(op, raw, resolution.fixed_parameters)
            check_preconditions(op.name, params)
        except NormalizationError as e:
            DebugLogger.debug_tool_execution(self, op.name, "ERROR", str(e))
            return CallResult(format_response(op.name, e, started), EXIT_VALIDATION)

        if op.local:
            content = render_catalog(self.table, params.get("category", "all"))
            return CallResult(format_response(op.name, content, started, params), EXIT_OK)

        command = await self._command_for(op, params, options)
        try:
            with DebugLogger.time_operation(self, op.name):
                result = await self.executor.execute(command)
        except ExecutionError as e:
            return CallResult(format_response(op.name, e, started, params), _execution_exit_code(e))
        return CallResult(format_response(op.name, result, started, params), EXIT_OK)

    async def _run_workflow(self, workflow: WorkflowEntry, raw_args: RawArgs, started: float) -> CallResult:
        try:
            raw, options = split_execution_options(workflow.alias, raw_args)
            inputs = normalize(workflow.as_operation(), raw)
            steps = workflow.plan(inputs)
        except NormalizationError as e:
            return CallResult(format_response(workflow.alias, e, started), EXIT_VALIDATION)

        outcomes: list[StepOutcome] = []
        previous: ExecutionResult | None = None
        exit_code = EXIT_OK

        for index, step in enumerate(steps, start=1):
            op = self.table.get_operation(step.operation)
            raw_step: dict[str, Any] = dict(step.fixed)
            for field_name, source in step.bind.items():
                raw_step[field_name] = inputs.get(source)
            if step.from_previous is not None:
                tokens = previous.stdout.split() if previous is not None else []
                if not tokens and step.skip_if_empty:
                    DebugLogger.debug_tool_execution(self, workflow.alias, "SKIPPED", f"step {index} {op.name}: nothing to act on")
                    outcomes.append(StepOutcome(operation=op.name, status="skipped"))
                    previous = None
                    continue
                raw_step[step.from_previous] = tokens

            params: CanonicalParameters | None = None
            command: CommandSpec | None = None
            try:
                params = normalize(op, raw_step)
                check_preconditions(op.name, params)
                command = await self._command_for(op, params, options)
                with DebugLogger.time_operation(self, f"{workflow.alias}[{index}] {op.name}"):
                    previous = await self.executor.execute(command)
            except (NormalizationError, ExecutionError) as e:
                logger.warning(f"Workflow {workflow.alias} stopped at step {index} ({op.name}): {e}")
                outcomes.append(
                    StepOutcome(
                        operation=op.name,
                        status="failed",
                        params=params,
                        command=command.display() if command else None,
                        error=e,
                    ),
                )
                exit_code = _execution_exit_code(e) if isinstance(e, ExecutionError) else EXIT_VALIDATION
                break
            outcomes.append(StepOutcome(operation=op.name, status="ok", params=params, command=command.display(), result=previous))

        # No rollback: steps after a failure are reported but never run.
        for step in steps[len(outcomes) :]:
            outcomes.append(StepOutcome(operation=step.operation, status="not-run"))

        return CallResult(format_workflow_response(workflow.alias, outcomes, started), exit_code)


_SECRET_KEYS = frozenset({"password", "token"})


def _redact(raw_args: RawArgs) -> Any:
    """Copy of raw arguments safe for debug logs."""
    if isinstance(raw_args, Mapping):
        return {k: ("***" if str(k).lower() in _SECRET_KEYS else v) for k, v in raw_args.items()}
    if raw_args is None:
        return None
    redacted: list[str] = []
    hide_next = False
    for token in raw_args:
        token = str(token)
        if hide_next:
            redacted.append("***")
            hide_next = False
            continue
        flag, eq, _value = token.partition("=")
        if flag in ("-p", "--password", "--token"):
            if eq:
                redacted.append(f"{flag}=***")
            else:
                redacted.append(token)
                hide_next = True
            continue
        redacted.append(token)
    return redacted
