"""Command building: canonical parameters -> argv.

Every operation has exactly one rule registered with :func:`_rule`.  Rules emit
argv lists only; user values always travel as their own argv element and no
command line is ever assembled as a string.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
import threading

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 60.0
OPERATION_TIMEOUTS: dict[str, float] = {
    "docker-pull": 300.0,
    "docker-push": 300.0,
    "docker-compose": 300.0,
    "docker-build": 600.0,
}

COMPOSE_PROBE_TIMEOUT = 10.0

# Go templates for ``--format``; docker expands the two-character ``\t``.
IMAGE_TABLE_FORMAT = r"table {{.Repository}}\t{{.Tag}}\t{{.ID}}\t{{.CreatedSince}}\t{{.Size}}"
CONTAINER_TABLE_FORMAT = r"table {{.ID}}\t{{.Image}}\t{{.Command}}\t{{.CreatedAt}}\t{{.Status}}\t{{.Ports}}\t{{.Names}}"
NETWORK_TABLE_FORMAT = r"table {{.ID}}\t{{.Name}}\t{{.Driver}}\t{{.Scope}}"
VOLUME_TABLE_FORMAT = r"table {{.Driver}}\t{{.Name}}"
LOGIN_STATUS_FORMAT = "{{.Username}}"

# ``docker inspect`` object type -> management command.
_INSPECT_COMMANDS = {"image": "image", "container": "container", "network": "network", "volume": "volume"}
# ``docker-prune`` object type -> management command.
_PRUNE_COMMANDS = {"system": "system", "images": "image", "containers": "container", "networks": "network", "volumes": "volume"}


@dataclass(frozen=True)
class CommandSpec:
    """Ready-to-execute argv plus timeout and a label for logs and envelopes."""

    argv: tuple[str, ...]
    timeout: float
    label: str
    requires_daemon: bool = True
    # Written to stdin then closed; kept out of repr so it never reaches logs.
    input_data: str | None = field(default=None, repr=False)

    def display(self) -> str:
        """Shell-quoted argv, for humans only."""
        return shlex.join(self.argv)


@dataclass
class _Command:
    argv: list[str]
    input_data: str | None = None


Params = Mapping[str, Any]
_Rule = Callable[[Params, tuple[str, ...]], "list[str] | _Command"]

_RULES: dict[str, _Rule] = {}


def _rule(operation: str) -> Callable[[_Rule], _Rule]:
    def register(fn: _Rule) -> _Rule:
        if operation in _RULES:
            raise ValueError(f"Duplicate command rule for '{operation}'")
        _RULES[operation] = fn
        return fn

    return register


def has_rule(operation: str) -> bool:
    return operation in _RULES


# ---------------------------------------------------------------------------
# Compose binary capability probe
# ---------------------------------------------------------------------------


class ComposeBinaryProbe:
    """Pick the compose binary once per process.

    Tries ``docker-compose --version``; any failure falls back silently to the
    ``docker compose`` plugin form.  Concurrent first calls compute it once.
    """

    STANDALONE: tuple[str, ...] = ("docker-compose",)
    PLUGIN: tuple[str, ...] = ("docker", "compose")

    def __init__(
        self,
        runner: Callable[..., Any] = subprocess.run,
        timeout: float = COMPOSE_PROBE_TIMEOUT,
    ) -> None:
        self._runner = runner
        self._timeout = timeout
        self._lock = threading.Lock()
        self._binary: tuple[str, ...] | None = None
        self.probe_count = 0

    @property
    def resolved(self) -> bool:
        return self._binary is not None

    def get(self) -> tuple[str, ...]:
        binary = self._binary
        if binary is None:
            with self._lock:
                if self._binary is None:
                    self._binary = self._probe()
                binary = self._binary
        return binary

    def _probe(self) -> tuple[str, ...]:
        self.probe_count += 1
        try:
            result = self._runner(
                [*self.STANDALONE, "--version"],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug(f"docker-compose probe failed ({e.__class__.__name__}: {e}); using 'docker compose'")
            return self.PLUGIN
        if result.returncode == 0:
            logger.debug("Using standalone docker-compose binary")
            return self.STANDALONE
        logger.debug(f"docker-compose --version exited {result.returncode}; using 'docker compose'")
        return self.PLUGIN


compose_probe = ComposeBinaryProbe()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _flag(argv: list[str], params: Params, name: str, flag: str) -> None:
    if params.get(name):
        argv.append(flag)


def _option(argv: list[str], params: Params, name: str, flag: str) -> None:
    value = params.get(name)
    if value is not None and value != "":
        argv.extend((flag, str(value)))


def _repeat(argv: list[str], params: Params, name: str, flag: str) -> None:
    for value in params.get(name, ()):
        argv.extend((flag, value))


def _pairs(argv: list[str], params: Params, name: str, flag: str) -> None:
    for key, value in params.get(name, {}).items():
        argv.extend((flag, f"{key}={value}"))


def _filter_value(value: str, key: str) -> str:
    """Bare values become ``key=value``; explicit ``k=v`` filters pass through."""
    return value if "=" in value else f"{key}={value}"


# ---------------------------------------------------------------------------
# Rules
# ---------------------------------------------------------------------------


@_rule("docker-images")
def _images(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "images", "--format", IMAGE_TABLE_FORMAT]
    _flag(argv, p, "all", "-a")
    if "filter" in p:
        argv.extend(("--filter", _filter_value(p["filter"], "reference")))
    return argv


@_rule("docker-containers")
def _containers(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "ps"]
    if not p.get("quiet"):
        argv.extend(("--format", CONTAINER_TABLE_FORMAT))
    _flag(argv, p, "all", "-a")
    _flag(argv, p, "quiet", "-q")
    if "filter" in p:
        argv.extend(("--filter", _filter_value(p["filter"], "name")))
    return argv


@_rule("docker-pull")
def _pull(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "pull"]
    _flag(argv, p, "allTags", "-a")
    _flag(argv, p, "quiet", "-q")
    _option(argv, p, "platform", "--platform")
    argv.append(p["imageName"])
    return argv


@_rule("docker-push")
def _push(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "push"]
    _flag(argv, p, "allTags", "-a")
    _flag(argv, p, "quiet", "-q")
    argv.append(p["imageName"])
    return argv


@_rule("docker-tag")
def _tag(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return ["docker", "tag", p["sourceImage"], p["targetImage"]]


@_rule("docker-run")
def _run(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "run"]
    _flag(argv, p, "detach", "-d")
    _flag(argv, p, "interactive", "-i")
    _flag(argv, p, "tty", "-t")
    _flag(argv, p, "remove", "--rm")
    _option(argv, p, "name", "--name")
    _repeat(argv, p, "ports", "-p")
    _flag(argv, p, "publishAll", "-P")
    _repeat(argv, p, "volumes", "-v")
    _pairs(argv, p, "environment", "-e")
    _repeat(argv, p, "envFile", "--env-file")
    _option(argv, p, "network", "--network")
    _option(argv, p, "hostname", "--hostname")
    _option(argv, p, "user", "-u")
    _option(argv, p, "workdir", "-w")
    _option(argv, p, "restart", "--restart")
    _option(argv, p, "memory", "-m")
    _option(argv, p, "cpus", "--cpus")
    _flag(argv, p, "privileged", "--privileged")
    _option(argv, p, "entrypoint", "--entrypoint")
    _repeat(argv, p, "label", "--label")
    argv.append(p["imageName"])
    argv.extend(p.get("containerCommand", ()))
    return argv


@_rule("docker-logs")
def _logs(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "logs"]
    _option(argv, p, "tail", "--tail")
    _flag(argv, p, "follow", "-f")
    _flag(argv, p, "timestamps", "-t")
    _option(argv, p, "since", "--since")
    argv.append(p["containerId"])
    return argv


@_rule("docker-exec")
def _exec(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "exec"]
    _flag(argv, p, "interactive", "-i")
    _flag(argv, p, "tty", "-t")
    _flag(argv, p, "detach", "-d")
    _option(argv, p, "user", "-u")
    _option(argv, p, "workdir", "-w")
    _pairs(argv, p, "environment", "-e")
    argv.append(p["containerId"])
    argv.extend(p["command"])
    return argv


@_rule("docker-build")
def _build(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "build"]
    _option(argv, p, "dockerfilePath", "-f")
    _repeat(argv, p, "tag", "-t")
    _pairs(argv, p, "buildArgs", "--build-arg")
    _option(argv, p, "target", "--target")
    _option(argv, p, "platform", "--platform")
    _flag(argv, p, "noCache", "--no-cache")
    _flag(argv, p, "pull", "--pull")
    _flag(argv, p, "quiet", "-q")
    argv.append(p.get("contextPath", "."))
    return argv


@_rule("docker-compose")
def _compose_command(p: Params, compose: tuple[str, ...]) -> list[str]:
    argv = list(compose)
    _option(argv, p, "filePath", "-f")
    _option(argv, p, "projectName", "-p")
    argv.extend(p["command"])
    return argv


def _manage(kind: str, table_format: str, p: Params, name_field: str) -> list[str]:
    action = p.get("action", "list")
    if action == "list":
        return ["docker", kind, "ls", "--format", table_format]
    argv = ["docker", kind]
    if action == "create":
        argv.append("create")
        _option(argv, p, "driver", "--driver")
    elif action == "remove":
        argv.append("rm")
    else:
        argv.append(action)
    argv.append(p[name_field])
    return argv


@_rule("docker-network")
def _network(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return _manage("network", NETWORK_TABLE_FORMAT, p, "networkName")


@_rule("docker-volume")
def _volume(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return _manage("volume", VOLUME_TABLE_FORMAT, p, "volumeName")


@_rule("docker-bridge")
def _bridge(p: Params, _compose: tuple[str, ...]) -> list[str]:
    action = p["action"]
    if action == "list":
        return ["docker", "network", "ls", "--filter", "driver=bridge", "--format", NETWORK_TABLE_FORMAT]
    if action == "prune":
        argv = ["docker", "network", "prune"]
        _flag(argv, p, "force", "-f")
        return argv
    if action == "create":
        argv = ["docker", "network", "create", "--driver", "bridge"]
        _option(argv, p, "subnet", "--subnet")
        _option(argv, p, "gateway", "--gateway")
        _option(argv, p, "ipRange", "--ip-range")
        argv.append(p["bridgeName"])
        return argv
    if action == "connect":
        argv = ["docker", "network", "connect"]
        _option(argv, p, "ip", "--ip")
        argv.extend((p["bridgeName"], p["containerName"]))
        return argv
    if action == "disconnect":
        argv = ["docker", "network", "disconnect"]
        _flag(argv, p, "force", "-f")
        argv.extend((p["bridgeName"], p["containerName"]))
        return argv
    verb = "rm" if action == "remove" else action
    return ["docker", "network", verb, p["bridgeName"]]


@_rule("docker-inspect")
def _inspect(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return ["docker", _INSPECT_COMMANDS[p["objectType"]], "inspect", p["objectId"]]


@_rule("docker-prune")
def _prune(p: Params, _compose: tuple[str, ...]) -> list[str]:
    object_type = p.get("objectType", "system")
    argv = ["docker", _PRUNE_COMMANDS[object_type], "prune"]
    if object_type in ("system", "images"):
        _flag(argv, p, "all", "-a")
    if object_type == "system":
        _flag(argv, p, "volumes", "--volumes")
    _repeat(argv, p, "filter", "--filter")
    _flag(argv, p, "force", "-f")
    return argv


@_rule("docker-login")
def _login(p: Params, _compose: tuple[str, ...]) -> list[str] | _Command:
    username = p.get("username")
    token = p.get("token")
    password = p.get("password")
    if not (username or token or password):
        # Status probe: report who is logged in, without credentials.
        return ["docker", "system", "info", "--format", LOGIN_STATUS_FORMAT]

    argv = ["docker", "login"]
    if "registry" in p:
        argv.append(p["registry"])
    argv.extend(("-u", username or "token", "--password-stdin"))
    return _Command(argv, input_data=token or password)


@_rule("docker-logout")
def _logout(p: Params, _compose: tuple[str, ...]) -> list[str]:
    argv = ["docker", "logout"]
    if "registry" in p:
        argv.append(p["registry"])
    return argv


def _lifecycle(verb: str, p: Params) -> list[str]:
    argv = ["docker", verb]
    if verb in ("stop", "restart"):
        _option(argv, p, "time", "-t")
    elif verb == "start":
        _flag(argv, p, "attach", "-a")
        _flag(argv, p, "interactive", "-i")
    else:
        _flag(argv, p, "force", "-f")
        _flag(argv, p, "volumes", "-v")
        _flag(argv, p, "link", "-l")
    argv.extend(p["containers"])
    return argv


@_rule("docker-stop")
def _stop(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return _lifecycle("stop", p)


@_rule("docker-start")
def _start(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return _lifecycle("start", p)


@_rule("docker-restart")
def _restart(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return _lifecycle("restart", p)


@_rule("docker-rm")
def _rm(p: Params, _compose: tuple[str, ...]) -> list[str]:
    return _lifecycle("rm", p)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def resolve_timeout(operation: str, requested: float | None = None, long_running: bool = False) -> float:
    """Operation default, lowered by *requested*; raised only when long-running."""
    default = OPERATION_TIMEOUTS.get(operation, DEFAULT_TIMEOUT)
    if requested is None:
        return default
    if requested > default and not long_running:
        logger.warning(f"Timeout {requested}s for {operation} exceeds the {default}s default; pass longRunning to allow it")
        return default
    return float(requested)


def build(
    operation: str,
    params: Params,
    *,
    compose_binary: tuple[str, ...] | None = None,
    timeout: float | None = None,
    long_running: bool = False,
    requires_daemon: bool = True,
) -> CommandSpec:
    """Build the command for *operation* from canonical *params*.

    Pure for a given ``compose_binary``; when omitted for docker-compose the
    process-wide probe result is used.

    Raises:
    ------
        ValueError: when *operation* has no command rule.
    """
    rule = _RULES.get(operation)
    if rule is None:
        raise ValueError(f"No command rule for operation '{operation}'")

    if operation == "docker-compose" and compose_binary is None:
        compose_binary = compose_probe.get()
    out = rule(params, compose_binary or ComposeBinaryProbe.PLUGIN)
    command = out if isinstance(out, _Command) else _Command(out)

    return CommandSpec(
        argv=tuple(command.argv),
        timeout=resolve_timeout(operation, timeout, long_running),
        label=operation,
        requires_daemon=requires_daemon,
        input_data=command.input_data,
    )
