"""Command-line interface for docker operations.

Every alias is both a subcommand of ``docker-mcp-cli`` and its own console
script, and both forward raw tokens untouched to the normalizer.

Usage:
  dps                                  # running containers
  dpsa                                 # all containers
  drun -d -p 8080:80 --name web nginx
  dlogs web --tail 50
  dexec -it web sh -c "ls -la"
  dstop -t 0 web
  dup -d                               # docker compose up -d
  ddev . myapp:dev                     # build then run
  dclean medium

  docker-mcp-cli call docker-containers -a
  docker-mcp-cli tool docker-run '{"imageName": "nginx", "ports": ["8080:80"]}'
  docker-mcp-cli tool-seq '[{"name": "dpull", "arguments": {"imageName": "redis"}}]'
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

from collections.abc import Coroutine
from pathlib import Path
from typing import Any

import click

from docker_mcp_cli import __version__
from docker_mcp_cli.config import ConfigManager
from docker_mcp_cli.dispatcher import CallResult, CommandDispatcher
from docker_mcp_cli.executor import DockerExecutor, format_output, handle_command_error, run_async
from docker_mcp_cli.registry import LIST_CATEGORIES, build_alias_table

_ALIAS_CONTEXT = {
    "ignore_unknown_options": True,
    "allow_extra_args": True,
    "help_option_names": ["--help"],
}


def _get_opts(ctx: click.Context | None) -> dict[str, Any]:
    """Global options from context (set by main group)."""
    if ctx is None:
        return {}
    root = ctx.find_root()
    if root.obj is None:
        root.obj = {}
    return root.obj


def _fmt(ctx: click.Context) -> str:
    return _get_opts(ctx).get("format", "text")


def _dispatcher(ctx: click.Context) -> CommandDispatcher:
    opts = _get_opts(ctx)
    dispatcher = opts.get("dispatcher")
    if dispatcher is None:
        config = ConfigManager(config_file=opts.get("config"))
        if opts.get("verbose"):
            config.set_debug_mode(True)
        dispatcher = CommandDispatcher(executor=DockerExecutor(config))
        opts["dispatcher"] = dispatcher
    return dispatcher


def _run_async(coro: Coroutine[Any, Any, Any]) -> Any:
    try:
        return run_async(coro)
    except (asyncio.CancelledError, Exception) as e:
        handle_command_error(e)
        sys.exit(1)


def _emit(result: CallResult, fmt: str) -> None:
    envelope = result.envelope
    if fmt == "json":
        click.echo(envelope.to_json(indent=2))
    elif envelope.is_error:
        click.secho(envelope.content, fg="red", err=True)
    else:
        click.echo(envelope.content.rstrip("\n"))


def _call(ctx: click.Context, name: str, raw_args: list[str] | dict[str, Any]) -> None:
    """Dispatch one call, print it and exit with its exit code."""
    result: CallResult = _run_async(_dispatcher(ctx).dispatch(name, raw_args))
    _emit(result, _fmt(ctx))
    if result.exit_code:
        sys.exit(result.exit_code)


def _parse_tool_payload(arguments: str) -> dict[str, Any]:
    """Parse CLI JSON argument payload for generic tool commands."""
    # PowerShell may pass the surrounding quotes through.
    arguments = arguments.strip()
    if arguments and arguments[0] in ('"', "'") and arguments[-1] == arguments[0]:
        arguments = arguments[1:-1]

    try:
        payload = json.loads(arguments) if arguments else {}
    except json.JSONDecodeError as e:
        click.echo(f"Invalid JSON arguments: {e}", err=True)
        sys.exit(1)

    if not isinstance(payload, dict):
        click.echo("Arguments must be a JSON object.", err=True)
        sys.exit(1)
    return payload


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# ---------------------------------------------------------------------------
# Main group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "-f",
    "--format",
    type=click.Choice(["text", "json"]),
    default="text",
    help="Output format",
)
@click.option("--config", type=click.Path(dir_okay=False, path_type=Path), default=None, help="Path to JSON configuration file")
@click.option("--verbose", is_flag=True, help="Enable verbose logging")
@click.version_option(__version__, "--version", "-V")
@click.pass_context
def main(ctx: click.Context, format: str, config: Path | None, verbose: bool) -> None:
    """docker command aliases and tool calls with one uniform result shape."""
    opts = _get_opts(ctx)
    opts.update({"format": format, "config": config, "verbose": verbose})
    _configure_logging(verbose)


@main.command(
    "call",
    context_settings=_ALIAS_CONTEXT,
    help="Call an operation, alias or workflow with CLI-style arguments. Example: call docker-stop -t 0 web",
)
@click.argument("name", required=True)
@click.argument("tokens", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def call_cmd(ctx: click.Context, name: str, tokens: tuple[str, ...]) -> None:
    _call(ctx, name, list(tokens))


@main.command(
    "tool",
    help='Call an operation, alias or workflow with JSON arguments. Example: tool docker-run \'{"imageName":"nginx","detach":true}\'',
)
@click.argument("name", required=False)
@click.argument("arguments", required=False, default="{}")
@click.option("--list-tools", is_flag=True, help="List valid tool names and exit")
@click.pass_context
def tool_cmd(ctx: click.Context, name: str | None, arguments: str, list_tools: bool) -> None:
    """Invoke any tool by name; arguments as a JSON object (any key spelling)."""
    table = _dispatcher(ctx).table
    if list_tools:
        click.echo("Valid tool names:")
        for tool_name in table.names():
            click.echo(f"  {tool_name}")
        return
    if not name:
        raise click.UsageError("Missing argument 'NAME'.")
    _call(ctx, name, _parse_tool_payload(arguments))


@main.command(
    "tool-seq",
    help='Run a sequence of tool calls from JSON. Format: [{"name":"docker-pull","arguments":{...}}, ...]',
)
@click.argument("steps", required=True)
@click.option("--continue-on-error", is_flag=True, help="Continue remaining steps after a failure")
@click.pass_context
def tool_seq_cmd(ctx: click.Context, steps: str, continue_on_error: bool) -> None:
    """Invoke a sequence of tools without ad-hoc scripts."""
    try:
        parsed_steps = json.loads(steps)
    except json.JSONDecodeError as exc:
        click.echo(f"Invalid JSON for steps: {exc}", err=True)
        sys.exit(1)

    if not isinstance(parsed_steps, list) or not all(isinstance(s, dict) for s in parsed_steps):
        click.echo("Steps must be a JSON array of objects.", err=True)
        sys.exit(1)

    dispatcher = _dispatcher(ctx)

    async def _run_sequence() -> tuple[bool, list[dict[str, Any]]]:
        results: list[dict[str, Any]] = []
        success = True
        for index, step in enumerate(parsed_steps, start=1):
            name = step.get("name")
            arguments = step.get("arguments", {})

            if not isinstance(name, str) or not name.strip():
                click.echo(f"Step {index}: missing or invalid 'name'", err=True)
                sys.exit(1)
            if not isinstance(arguments, (dict, list)):
                click.echo(f"Step {index}: 'arguments' must be a JSON object or array of tokens", err=True)
                sys.exit(1)

            result = await dispatcher.dispatch(name, arguments)
            results.append(
                {
                    "index": index,
                    "name": name,
                    "success": result.ok,
                    "result": result.envelope.to_dict(),
                },
            )
            if not result.ok:
                success = False
                if not continue_on_error:
                    break
        return success, results

    success, results = _run_async(_run_sequence())
    click.echo(format_output({"success": success, "steps": results}, _fmt(ctx)))
    if not success:
        sys.exit(1)


@main.command("list", help="List available operations, aliases and workflows")
@click.option("--category", type=click.Choice(list(LIST_CATEGORIES)), default="all", show_default=True)
@click.pass_context
def list_cmd(ctx: click.Context, category: str) -> None:
    _call(ctx, "docker-list", {"category": category})


# ---------------------------------------------------------------------------
# Alias commands (also console scripts)
# ---------------------------------------------------------------------------


def _alias_command(name: str) -> click.Command:
    table = build_alias_table()
    entry = table.aliases.get(name)
    workflow = table.workflows.get(name)
    if entry is not None:
        help_text = f"{entry.description} ({entry.operation}). Usage: {entry.usage}"
    elif workflow is not None:
        help_text = f"{workflow.description}. Usage: {workflow.usage}"
    else:
        raise ValueError(f"No alias or workflow named '{name}'")

    @click.command(name, help=help_text, context_settings=_ALIAS_CONTEXT)
    @click.argument("tokens", nargs=-1, type=click.UNPROCESSED)
    @click.pass_context
    def command(ctx: click.Context, tokens: tuple[str, ...]) -> None:
        _call(ctx, name, list(tokens))

    return command


dimages = _alias_command("dimages")
dps = _alias_command("dps")
dpsa = _alias_command("dpsa")
dpull = _alias_command("dpull")
dpush = _alias_command("dpush")
dtag = _alias_command("dtag")
drun = _alias_command("drun")
dlogs = _alias_command("dlogs")
dexec = _alias_command("dexec")
dbuild = _alias_command("dbuild")
dcompose = _alias_command("dcompose")
dup = _alias_command("dup")
ddown = _alias_command("ddown")
dnetwork = _alias_command("dnetwork")
dvolume = _alias_command("dvolume")
dinspect = _alias_command("dinspect")
dprune = _alias_command("dprune")
dlogin = _alias_command("dlogin")
dlogout = _alias_command("dlogout")
dbridge = _alias_command("dbridge")
dlist = _alias_command("dlist")
dstop = _alias_command("dstop")
dstart = _alias_command("dstart")
drestart = _alias_command("drestart")
drm = _alias_command("drm")
ddev = _alias_command("ddev")
dpublish = _alias_command("dpublish")
dclean = _alias_command("dclean")
dreset = _alias_command("dreset")

ALIAS_COMMANDS: tuple[click.Command, ...] = (
    dimages, dps, dpsa, dpull, dpush, dtag, drun, dlogs, dexec, dbuild,
    dcompose, dup, ddown, dnetwork, dvolume, dinspect, dprune, dlogin, dlogout,
    dbridge, dlist, dstop, dstart, drestart, drm, ddev, dpublish, dclean, dreset,
)

for _command in ALIAS_COMMANDS:
    main.add_command(_command, _command.name)


if __name__ == "__main__":
    main()
