"""Operation catalog and alias dispatch table.

Single source of truth for:
  - every supported docker operation and the fields its normalizer accepts
  - the short CLI aliases (``dps``, ``dpsa``, ``drun`` ...) with pre-bound parameters
  - workflow aliases that chain several operations (``ddev``, ``dclean`` ...)

The table is assembled once by :func:`build_alias_table` into read-only
mappings and handed to the dispatcher by reference; nothing here is mutated
after import.
"""

from __future__ import annotations

import re

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Any

from docker_mcp_cli.errors import NormalizationError, UnknownOperationError

# ---------------------------------------------------------------------------
# Field kinds
# ---------------------------------------------------------------------------

STRING = "string"
BOOLEAN = "boolean"
INTEGER = "integer"
LIST = "list"
MAP = "map"
COMMAND = "command"

FIELD_KINDS = frozenset({STRING, BOOLEAN, INTEGER, LIST, MAP, COMMAND})

CATEGORY_BASIC = "basic"
CATEGORY_ADVANCED = "advanced"

_EMPTY: Mapping[str, Any] = MappingProxyType({})


def normalize_identifier(s: str) -> str:
    """Canonical key: lowercase ASCII letters only.

    ``imageName``, ``image_name`` and ``image-name`` all become ``imagename``.
    """
    return re.sub(r"[^a-z]", "", s.lower().strip())


def to_snake_case(name: str) -> str:
    """Convert camelCase or kebab-case to snake_case."""
    s = name.replace("-", "_")
    s = re.sub(r"([a-z0-9])([A-Z])", r"\1_\2", s)
    return s.lower()


def to_kebab_case(name: str) -> str:
    """Convert camelCase to kebab-case (``imageName`` -> ``image-name``)."""
    return to_snake_case(name).replace("_", "-")


@dataclass(frozen=True)
class FieldSpec:
    """One logical parameter of an operation.

    ``flags`` are the CLI spellings (``-t``, ``--time``); ``synonyms`` are extra
    structured keys accepted from protocol callers.  ``required_when`` makes the
    field required only when another field holds one of the listed values.
    ``comma_separated`` lists also split every item on commas (identifiers only;
    volume, label and filter values may contain commas).
    """

    name: str
    kind: str = STRING
    description: str = ""
    flags: tuple[str, ...] = ()
    positional: bool = False
    required: bool = False
    required_when: tuple[str, tuple[str, ...]] | None = None
    choices: tuple[str, ...] | None = None
    default: Any = None
    synonyms: tuple[str, ...] = ()
    comma_separated: bool = False

    def __post_init__(self) -> None:
        if self.kind not in FIELD_KINDS:
            raise ValueError(f"Unknown field kind '{self.kind}' for field '{self.name}'")

    @property
    def takes_value(self) -> bool:
        return self.kind != BOOLEAN

    @property
    def repeatable(self) -> bool:
        return self.kind in (LIST, MAP, COMMAND)


@dataclass(frozen=True)
class OperationSpec:
    """A supported docker operation.

    ``passthrough`` names the COMMAND field that swallows trailing tokens.  When
    ``passthrough_after`` is set the passthrough starts once that positional is
    filled (exec/run); otherwise the first token that is not a known option
    starts it (compose).
    """

    name: str
    description: str
    category: str = CATEGORY_ADVANCED
    fields: tuple[FieldSpec, ...] = ()
    passthrough: str | None = None
    passthrough_after: str | None = None
    requires_daemon: bool = True
    local: bool = False

    def field(self, name: str) -> FieldSpec | None:
        for spec in self.fields:
            if spec.name == name:
                return spec
        return None

    @property
    def positional_fields(self) -> tuple[FieldSpec, ...]:
        return tuple(f for f in self.fields if f.positional)

    @property
    def required_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields if f.required)


@dataclass(frozen=True)
class AliasEntry:
    """Short name bound to an operation plus optional pre-bound parameters."""

    alias: str
    operation: str
    description: str
    fixed_parameters: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    usage: str = ""


@dataclass(frozen=True)
class WorkflowStep:
    """One step of a workflow alias.

    Parameters are ``fixed`` literals, plus ``bind`` (step field <- workflow
    input) and ``from_previous`` (step field <- whitespace-split stdout of the
    previous step).  With ``skip_if_empty`` a step whose ``from_previous``
    source produced nothing is skipped instead of failing validation.
    """

    operation: str
    fixed: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    bind: Mapping[str, str] = field(default_factory=lambda: _EMPTY)
    from_previous: str | None = None
    skip_if_empty: bool = False


@dataclass(frozen=True)
class WorkflowEntry:
    """Compound alias executed as ordered steps, stopping at the first failure.

    Steps come from ``steps``, from ``variants[inputs[selector]]``, or from
    ``planner(inputs)`` when the plan depends on more than one input.  A planner
    lists every operation it can emit in ``uses``.
    """

    alias: str
    description: str
    inputs: tuple[FieldSpec, ...] = ()
    steps: tuple[WorkflowStep, ...] = ()
    selector: str | None = None
    variants: Mapping[str, tuple[WorkflowStep, ...]] = field(default_factory=lambda: _EMPTY)
    usage: str = ""
    planner: Callable[[Mapping[str, Any]], tuple[WorkflowStep, ...]] | None = None
    uses: tuple[str, ...] = ()

    def as_operation(self) -> OperationSpec:
        """View the workflow inputs as an operation so the normalizer can parse them.

        Not local: every step spawns, so ``timeout``/``longRunning`` apply.
        """
        return OperationSpec(
            name=self.alias,
            description=self.description,
            fields=self.inputs,
            requires_daemon=False,
        )

    def operations(self) -> tuple[str, ...]:
        """Every operation this workflow can run."""
        names = [step.operation for steps in (self.steps, *self.variants.values()) for step in steps]
        return tuple(dict.fromkeys([*names, *self.uses]))

    def plan(self, inputs: Mapping[str, Any]) -> tuple[WorkflowStep, ...]:
        if self.planner is not None:
            return self.planner(inputs)
        if self.selector is None:
            return self.steps
        return self.variants[inputs[self.selector]]


@dataclass(frozen=True)
class Resolution:
    """Result of resolving a caller-supplied name."""

    name: str
    operation: OperationSpec | None = None
    fixed_parameters: Mapping[str, Any] = field(default_factory=lambda: _EMPTY)
    workflow: WorkflowEntry | None = None

    @property
    def is_workflow(self) -> bool:
        return self.workflow is not None

    @property
    def target(self) -> OperationSpec:
        """Operation whose fields parse the caller's arguments."""
        if self.workflow is not None:
            return self.workflow.as_operation()
        assert self.operation is not None
        return self.operation


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def _string(name: str, description: str, *flags: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name=name, kind=STRING, description=description, flags=flags, **kwargs)


def _flag(name: str, description: str, *flags: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name=name, kind=BOOLEAN, description=description, flags=flags, **kwargs)


def _int(name: str, description: str, *flags: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name=name, kind=INTEGER, description=description, flags=flags, **kwargs)


def _list(name: str, description: str, *flags: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name=name, kind=LIST, description=description, flags=flags, **kwargs)


def _map(name: str, description: str, *flags: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name=name, kind=MAP, description=description, flags=flags, **kwargs)


def _command(name: str, description: str, **kwargs: Any) -> FieldSpec:
    return FieldSpec(name=name, kind=COMMAND, description=description, **kwargs)


def _containers(description: str) -> FieldSpec:
    return _list(
        "containers",
        description,
        positional=True,
        required=True,
        synonyms=("container", "containerId", "containerName", "containerIds", "names"),
        comma_separated=True,
    )


NETWORK_ACTIONS = ("list", "create", "remove", "inspect")
VOLUME_ACTIONS = ("list", "create", "remove", "inspect")
BRIDGE_ACTIONS = ("list", "inspect", "create", "remove", "connect", "disconnect", "prune")
INSPECT_OBJECT_TYPES = ("image", "container", "network", "volume")
PRUNE_OBJECT_TYPES = ("system", "images", "containers", "networks", "volumes")
LIST_CATEGORIES = (CATEGORY_BASIC, CATEGORY_ADVANCED, "all")
CLEAN_LEVELS = ("light", "medium", "deep", "all")
RESET_SCOPES = ("containers", "images", "networks", "volumes", "all")


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

OPERATIONS: tuple[OperationSpec, ...] = (
    OperationSpec(
        name="docker-images",
        description="List Docker images on the host system",
        category=CATEGORY_BASIC,
        fields=(
            _string("filter", "Filter image names (reference pattern)", "--filter", positional=True, synonyms=("repository", "reference")),
            _flag("all", "Show all images, including intermediate layers", "-a", "--all"),
        ),
    ),
    OperationSpec(
        name="docker-containers",
        description="List Docker containers on the host system",
        category=CATEGORY_BASIC,
        fields=(
            _string("filter", "Filter container names", "--filter", positional=True, synonyms=("containerFilter", "name")),
            _flag("all", "Show all containers (default shows only running)", "-a", "--all"),
            _flag("quiet", "Only display container IDs", "-q", "--quiet"),
        ),
    ),
    OperationSpec(
        name="docker-pull",
        description="Pull a Docker image from a registry",
        category=CATEGORY_BASIC,
        fields=(
            _string("imageName", "Name of the Docker image to pull", positional=True, required=True, synonyms=("image",)),
            _flag("allTags", "Download all tagged images in the repository", "-a", "--all-tags"),
            _flag("quiet", "Suppress verbose output", "-q", "--quiet"),
            _string("platform", "Set platform if server is multi-platform capable", "--platform"),
        ),
    ),
    OperationSpec(
        name="docker-push",
        description="Push an image to a registry",
        fields=(
            _string("imageName", "Name of the Docker image to push", positional=True, required=True, synonyms=("image",)),
            _flag("allTags", "Push all tags of the repository", "-a", "--all-tags"),
            _flag("quiet", "Suppress verbose output", "-q", "--quiet"),
        ),
    ),
    OperationSpec(
        name="docker-tag",
        description="Create a tag TARGET_IMAGE that refers to SOURCE_IMAGE",
        fields=(
            _string("sourceImage", "Source image (name[:tag] or ID)", positional=True, required=True, synonyms=("source",)),
            _string("targetImage", "Target image name[:tag]", positional=True, required=True, synonyms=("target",)),
        ),
    ),
    OperationSpec(
        name="docker-run",
        description="Run a Docker container with specified options",
        category=CATEGORY_BASIC,
        fields=(
            _string("imageName", "Name of the Docker image to run", positional=True, required=True, synonyms=("image",)),
            _flag("detach", "Run container in background", "-d", "--detach"),
            _flag("interactive", "Keep STDIN open even if not attached", "-i", "--interactive"),
            _flag("tty", "Allocate a pseudo-TTY", "-t", "--tty"),
            _flag("remove", "Automatically remove the container when it exits", "--rm", synonyms=("rm",)),
            _string("name", "Container name", "--name"),
            _list("ports", "Port mappings, e.g. 8080:80", "-p", "--publish", synonyms=("port", "publish")),
            _flag("publishAll", "Publish all exposed ports to random host ports", "-P", "--publish-all"),
            _list("volumes", "Volume mappings, e.g. /host:/container", "-v", "--volume", synonyms=("volume",)),
            _map("environment", "Environment variables (KEY=VALUE)", "-e", "--env", synonyms=("env",)),
            _list("envFile", "Read environment variables from a file", "--env-file", synonyms=("envFiles",)),
            _string("network", "Connect the container to a network", "--network", synonyms=("net",)),
            _string("hostname", "Container host name", "--hostname"),
            _string("user", "Username or UID", "-u", "--user"),
            _string("workdir", "Working directory inside the container", "-w", "--workdir"),
            _string("restart", "Restart policy (no, always, on-failure[:N], unless-stopped)", "--restart", synonyms=("restartPolicy",)),
            _string("memory", "Memory limit", "-m", "--memory"),
            _string("cpus", "Number of CPUs", "--cpus"),
            _flag("privileged", "Give extended privileges to this container", "--privileged"),
            _string("entrypoint", "Overwrite the default ENTRYPOINT of the image", "--entrypoint"),
            _list("label", "Set metadata on the container", "-l", "--label", synonyms=("labels",)),
            _command("containerCommand", "Command to run inside the container", synonyms=("cmd",)),
        ),
        passthrough="containerCommand",
        passthrough_after="imageName",
    ),
    OperationSpec(
        name="docker-logs",
        description="Fetch logs for a specific Docker container",
        category=CATEGORY_BASIC,
        fields=(
            _string("containerId", "ID or name of the Docker container", positional=True, required=True, synonyms=("container", "containerName")),
            _int("tail", "Number of lines to show from the end of the logs", "-n", "--tail"),
            _flag("follow", "Follow log output", "-f", "--follow"),
            _flag("timestamps", "Show timestamps", "-t", "--timestamps"),
            _string("since", "Show logs since timestamp or relative duration", "--since"),
        ),
    ),
    OperationSpec(
        name="docker-exec",
        description="Execute a command in a running Docker container",
        category=CATEGORY_BASIC,
        fields=(
            _string("containerId", "ID or name of the Docker container", positional=True, required=True, synonyms=("container", "containerName")),
            _command("command", "Command to execute inside the container", required=True, synonyms=("cmd",)),
            _flag("interactive", "Keep STDIN open", "-i", "--interactive"),
            _flag("tty", "Allocate a pseudo-TTY", "-t", "--tty"),
            _flag("detach", "Run command in the background", "-d", "--detach"),
            _string("user", "Username or UID", "-u", "--user"),
            _string("workdir", "Working directory inside the container", "-w", "--workdir"),
            _map("environment", "Environment variables (KEY=VALUE)", "-e", "--env", synonyms=("env",)),
        ),
        passthrough="command",
        passthrough_after="containerId",
    ),
    OperationSpec(
        name="docker-build",
        description="Build a Docker image from a Dockerfile",
        category=CATEGORY_BASIC,
        fields=(
            _string("contextPath", "Path to the build context", positional=True, default=".", synonyms=("context", "path")),
            _list("tag", "Name and optionally a tag (name:tag)", "-t", "--tag", synonyms=("tags",), comma_separated=True),
            _string("dockerfilePath", "Path to the Dockerfile", "-f", "--file", synonyms=("dockerfile", "file")),
            _map("buildArgs", "Build-time variables (KEY=VALUE)", "--build-arg", synonyms=("buildArg",)),
            _string("target", "Target build stage", "--target"),
            _string("platform", "Target platform", "--platform"),
            _flag("noCache", "Do not use cache when building", "--no-cache"),
            _flag("pull", "Always attempt to pull newer base images", "--pull"),
            _flag("quiet", "Suppress build output and print image ID", "-q", "--quiet"),
        ),
    ),
    OperationSpec(
        name="docker-compose",
        description="Run Docker Compose commands",
        fields=(
            _command("command", "Docker Compose command to run (e.g. 'up -d', 'down')", required=True, synonyms=("subcommand", "args")),
            _string("filePath", "Path to the Docker Compose file", "-f", "--file", synonyms=("file", "composeFile")),
            _string("projectName", "Project name for Docker Compose", "-p", "--project-name", synonyms=("project",)),
        ),
        passthrough="command",
    ),
    OperationSpec(
        name="docker-network",
        description="Manage Docker networks",
        fields=(
            _string("action", "Action to perform", positional=True, choices=NETWORK_ACTIONS, default="list"),
            _string(
                "networkName",
                "Name of the Docker network",
                positional=True,
                required_when=("action", ("create", "remove", "inspect")),
                synonyms=("network", "name"),
            ),
            _string("driver", "Network driver (create only)", "-d", "--driver"),
        ),
    ),
    OperationSpec(
        name="docker-volume",
        description="Manage Docker volumes",
        fields=(
            _string("action", "Action to perform", positional=True, choices=VOLUME_ACTIONS, default="list"),
            _string(
                "volumeName",
                "Name of the Docker volume",
                positional=True,
                required_when=("action", ("create", "remove", "inspect")),
                synonyms=("volume", "name"),
            ),
            _string("driver", "Volume driver (create only)", "-d", "--driver"),
        ),
    ),
    OperationSpec(
        name="docker-bridge",
        description="Manage Docker bridge networks and connections",
        fields=(
            _string("action", "Action to perform", positional=True, required=True, choices=BRIDGE_ACTIONS),
            _string(
                "bridgeName",
                "Name of the bridge network",
                positional=True,
                required_when=("action", ("inspect", "create", "remove", "connect", "disconnect")),
                synonyms=("network", "networkName", "name"),
            ),
            _string(
                "containerName",
                "Container to connect or disconnect",
                positional=True,
                required_when=("action", ("connect", "disconnect")),
                synonyms=("container", "containerId"),
            ),
            _string("subnet", "Subnet in CIDR format (create only)", "--subnet"),
            _string("gateway", "Gateway IP (create only)", "--gateway"),
            _string("ipRange", "Allocate container IPs from a sub-range (create only)", "--ip-range"),
            _string("ip", "IPv4 address for the container (connect only)", "--ip"),
            _flag("force", "Do not prompt for confirmation (prune only)", "-f", "--force"),
        ),
    ),
    OperationSpec(
        name="docker-inspect",
        description="Inspect Docker objects (images, containers, networks, volumes)",
        fields=(
            _string("objectType", "Type of object to inspect", positional=True, required=True, choices=INSPECT_OBJECT_TYPES, synonyms=("type",)),
            _string("objectId", "ID or name of the object", positional=True, required=True, synonyms=("id", "name", "object")),
        ),
    ),
    OperationSpec(
        name="docker-prune",
        description="Remove unused Docker objects (images, containers, networks, volumes)",
        fields=(
            _string("objectType", "Type of object to prune", positional=True, choices=PRUNE_OBJECT_TYPES, default="system", synonyms=("type",)),
            _flag("force", "Do not prompt for confirmation", "-f", "--force"),
            _flag("all", "Remove all unused images, not just dangling ones", "-a", "--all"),
            _flag("volumes", "Prune anonymous volumes too (system only)", "-v", "--volumes"),
            _list("filter", "Provide filter values (e.g. until=24h)", "--filter", synonyms=("filters",)),
        ),
    ),
    OperationSpec(
        name="docker-login",
        description="Log in to a Docker registry",
        fields=(
            _string("registry", "Registry server (defaults to Docker Hub)", positional=True, synonyms=("registryUrl", "server")),
            _string("username", "Registry username", "-u", "--username", synonyms=("user",)),
            _string("password", "Registry password (sent on stdin)", "-p", "--password"),
            _string("token", "Access token (sent on stdin)", "--token"),
        ),
    ),
    OperationSpec(
        name="docker-logout",
        description="Log out from a Docker registry",
        fields=(_string("registry", "Registry server (defaults to Docker Hub)", positional=True, synonyms=("registryUrl", "server")),),
    ),
    OperationSpec(
        name="docker-stop",
        description="Stop one or more running containers",
        fields=(
            _containers("Containers to stop"),
            _int("time", "Seconds to wait before killing the container", "-t", "--time", "--timeout", synonyms=("timeoutSeconds", "seconds")),
        ),
    ),
    OperationSpec(
        name="docker-start",
        description="Start one or more stopped containers",
        fields=(
            _containers("Containers to start"),
            _flag("attach", "Attach STDOUT/STDERR", "-a", "--attach"),
            _flag("interactive", "Attach container's STDIN", "-i", "--interactive"),
        ),
    ),
    OperationSpec(
        name="docker-restart",
        description="Restart one or more containers",
        fields=(
            _containers("Containers to restart"),
            _int("time", "Seconds to wait before killing the container", "-t", "--time", "--timeout", synonyms=("timeoutSeconds", "seconds")),
        ),
    ),
    OperationSpec(
        name="docker-rm",
        description="Remove one or more containers",
        fields=(
            _containers("Containers to remove"),
            _flag("force", "Force the removal of a running container", "-f", "--force"),
            _flag("volumes", "Remove anonymous volumes associated with the container", "-v", "--volumes"),
            _flag("link", "Remove the specified link", "-l", "--link"),
        ),
    ),
    OperationSpec(
        name="docker-list",
        description="List all available Docker tools and CLI aliases with usage examples",
        fields=(_string("category", "Category filter", positional=True, choices=LIST_CATEGORIES, default="all"),),
        requires_daemon=False,
        local=True,
    ),
)


# ---------------------------------------------------------------------------
# Aliases
# ---------------------------------------------------------------------------


def _alias(alias: str, operation: str, description: str, usage: str = "", **fixed: Any) -> AliasEntry:
    return AliasEntry(
        alias=alias,
        operation=operation,
        description=description,
        fixed_parameters=MappingProxyType(dict(fixed)),
        usage=usage or alias,
    )


ALIASES: tuple[AliasEntry, ...] = (
    _alias("dimages", "docker-images", "List Docker images", "dimages [filter]"),
    _alias("dps", "docker-containers", "List running containers", "dps [filter]"),
    _alias("dpsa", "docker-containers", "List all containers (including stopped)", "dpsa [filter]", all=True),
    _alias("dpull", "docker-pull", "Pull Docker image", "dpull <image>"),
    _alias("dpush", "docker-push", "Push Docker image", "dpush <image>"),
    _alias("dtag", "docker-tag", "Tag Docker image", "dtag <source> <target>"),
    _alias("drun", "docker-run", "Run Docker container", "drun [options] <image> [command...]"),
    _alias("dlogs", "docker-logs", "Show container logs", "dlogs <container> [--tail N] [-f]"),
    _alias("dexec", "docker-exec", "Execute command in container", "dexec [options] <container> <command...>"),
    _alias("dbuild", "docker-build", "Build Docker image", "dbuild [path] [-t tag]"),
    _alias("dcompose", "docker-compose", "Docker Compose operations", "dcompose [-f file] <command...>"),
    _alias("dup", "docker-compose", "Docker Compose up", "dup [-f file] [-d]", command=("up",)),
    _alias("ddown", "docker-compose", "Docker Compose down", "ddown [-f file] [-v]", command=("down",)),
    _alias("dnetwork", "docker-network", "Manage Docker networks", "dnetwork <action> [name]"),
    _alias("dvolume", "docker-volume", "Manage Docker volumes", "dvolume <action> [name]"),
    _alias("dinspect", "docker-inspect", "Inspect Docker objects", "dinspect <type> <id>"),
    _alias("dprune", "docker-prune", "Remove unused Docker objects", "dprune [type] [-f]"),
    _alias("dlogin", "docker-login", "Login to Docker registry", "dlogin [registry] -u <user> (-p <pass> | --token <token>)"),
    _alias("dlogout", "docker-logout", "Logout from Docker registry", "dlogout [registry]"),
    _alias("dbridge", "docker-bridge", "Manage Docker bridge networks", "dbridge <action> [bridge] [container]"),
    _alias("dlist", "docker-list", "List all available tools and aliases", "dlist [category]"),
    _alias("dstart", "docker-start", "Start stopped containers", "dstart [-a] [-i] <container...>"),
    _alias("drestart", "docker-restart", "Restart containers", "drestart [-t seconds] <container...>"),
    _alias("drm", "docker-rm", "Remove containers", "drm [-fvl] <container...>"),
)


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


def _step(operation: str, *, bind: Mapping[str, str] | None = None, from_previous: str | None = None, skip_if_empty: bool = False, **fixed: Any) -> WorkflowStep:
    return WorkflowStep(
        operation=operation,
        fixed=MappingProxyType(dict(fixed)),
        bind=MappingProxyType(dict(bind or {})),
        from_previous=from_previous,
        skip_if_empty=skip_if_empty,
    )


def _prune(object_type: str, **extra: Any) -> WorkflowStep:
    return _step("docker-prune", objectType=object_type, force=True, **extra)


_STOP_RUNNING: tuple[WorkflowStep, ...] = (
    _step("docker-containers", quiet=True),
    _step("docker-stop", from_previous="containers", skip_if_empty=True),
)

STOP_ALL = "all"


def _plan_stop(inputs: Mapping[str, Any]) -> tuple[WorkflowStep, ...]:
    """``dstop web db``, ``dstop all`` or ``dstop --pattern web``."""
    stop_listed = _step("docker-stop", bind={"time": "time"}, from_previous="containers", skip_if_empty=True)
    if "pattern" in inputs:
        return (_step("docker-containers", bind={"filter": "pattern"}, quiet=True), stop_listed)
    containers = list(inputs.get("containers", ()))
    if containers == [STOP_ALL]:
        return (_step("docker-containers", quiet=True), stop_listed)
    if not containers:
        raise NormalizationError.missing("dstop", "containers", "Parameter 'containers' is required unless 'pattern' is given (use 'all' to stop every running container)")
    return (_step("docker-stop", bind={"containers": "containers", "time": "time"}),)


WORKFLOWS: tuple[WorkflowEntry, ...] = (
    WorkflowEntry(
        alias="ddev",
        description="Development workflow: build an image then run it detached",
        inputs=(
            _string("contextPath", "Build context directory", positional=True, required=True, synonyms=("context", "path")),
            _string("imageName", "Image name to tag and run", positional=True, required=True, synonyms=("image", "tag")),
        ),
        steps=(
            _step("docker-build", bind={"contextPath": "contextPath", "tag": "imageName"}),
            _step("docker-run", bind={"imageName": "imageName"}, detach=True),
        ),
        usage="ddev <context-path> <image-name>",
    ),
    WorkflowEntry(
        alias="dpublish",
        description="Publish workflow: tag an image then push it",
        inputs=(
            _string("sourceImage", "Local image to publish", positional=True, required=True, synonyms=("source",)),
            _string("targetImage", "Registry reference to push", positional=True, required=True, synonyms=("target",)),
        ),
        steps=(
            _step("docker-tag", bind={"sourceImage": "sourceImage", "targetImage": "targetImage"}),
            _step("docker-push", bind={"imageName": "targetImage"}),
        ),
        usage="dpublish <source-image> <registry/name:tag>",
    ),
    WorkflowEntry(
        alias="dclean",
        description="Clean up unused Docker resources at the chosen level",
        inputs=(_string("level", "Cleanup level", positional=True, required=True, choices=CLEAN_LEVELS),),
        selector="level",
        variants=MappingProxyType(
            {
                "light": (_prune("containers"),),
                "medium": (_prune("containers"), _prune("images")),
                "deep": (_prune("system"),),
                "all": (_prune("system", all=True, volumes=True),),
            },
        ),
        usage="dclean <light|medium|deep|all>",
    ),
    WorkflowEntry(
        alias="dreset",
        description="Reset the Docker environment: stop running containers and prune the chosen scope",
        inputs=(_string("scope", "Reset scope", positional=True, required=True, choices=RESET_SCOPES),),
        selector="scope",
        variants=MappingProxyType(
            {
                "containers": (*_STOP_RUNNING, _prune("containers")),
                "images": (_prune("images", all=True),),
                "networks": (_prune("networks"),),
                "volumes": (_prune("volumes"),),
                "all": (*_STOP_RUNNING, _prune("system", all=True, volumes=True)),
            },
        ),
        usage="dreset <containers|images|networks|volumes|all>",
    ),
    WorkflowEntry(
        alias="dstop",
        description="Stop running containers by name or name pattern ('all' stops every one)",
        inputs=(
            _list("containers", "Containers to stop, or 'all'", positional=True, comma_separated=True, synonyms=("container", "containerId", "containerName", "names", "target")),
            _string("pattern", "Stop every running container whose name matches", "--pattern", synonyms=("filter",)),
            _int("time", "Seconds to wait before killing the container", "-t", "--time", "--timeout", synonyms=("timeoutSeconds", "seconds")),
        ),
        planner=_plan_stop,
        uses=("docker-containers", "docker-stop"),
        usage="dstop [-t seconds] (<container...> | all | --pattern P)",
    ),
)


# ---------------------------------------------------------------------------
# Dispatch table
# ---------------------------------------------------------------------------


class AliasTable:
    """Immutable name -> (operation, fixed parameters) lookup.

    Lookups accept any spelling that normalizes to the same letters
    (``docker-images``, ``docker_images``, ``DockerImages``).
    """

    def __init__(
        self,
        operations: Iterable[OperationSpec],
        aliases: Iterable[AliasEntry] = (),
        workflows: Iterable[WorkflowEntry] = (),
    ) -> None:
        ops = {op.name: op for op in operations}
        alias_map = {a.alias: a for a in aliases}
        workflow_map = {w.alias: w for w in workflows}

        index: dict[str, Resolution] = {}
        for op in ops.values():
            index[normalize_identifier(op.name)] = Resolution(name=op.name, operation=op)
        for entry in alias_map.values():
            if entry.operation not in ops:
                raise ValueError(f"Alias '{entry.alias}' points at unknown operation '{entry.operation}'")
            self._claim(index, entry.alias, Resolution(name=entry.alias, operation=ops[entry.operation], fixed_parameters=entry.fixed_parameters))
        for wf in workflow_map.values():
            for operation in wf.operations():
                if operation not in ops:
                    raise ValueError(f"Workflow '{wf.alias}' references unknown operation '{operation}'")
            self._claim(index, wf.alias, Resolution(name=wf.alias, workflow=wf))

        self._operations: Mapping[str, OperationSpec] = MappingProxyType(ops)
        self._aliases: Mapping[str, AliasEntry] = MappingProxyType(alias_map)
        self._workflows: Mapping[str, WorkflowEntry] = MappingProxyType(workflow_map)
        self._index: Mapping[str, Resolution] = MappingProxyType(index)

    @staticmethod
    def _claim(index: dict[str, Resolution], name: str, resolution: Resolution) -> None:
        key = normalize_identifier(name)
        if key in index:
            raise ValueError(f"Duplicate dispatch name '{name}'")
        index[key] = resolution

    @property
    def operations(self) -> Mapping[str, OperationSpec]:
        return self._operations

    @property
    def aliases(self) -> Mapping[str, AliasEntry]:
        return self._aliases

    @property
    def workflows(self) -> Mapping[str, WorkflowEntry]:
        return self._workflows

    def names(self) -> list[str]:
        """All dispatchable names: operations, aliases, workflows."""
        return [*self._operations, *self._aliases, *self._workflows]

    def get_operation(self, name: str) -> OperationSpec:
        op = self._operations.get(name)
        if op is None:
            raise UnknownOperationError(name)
        return op

    def is_known(self, name: str) -> bool:
        return normalize_identifier(name) in self._index if name else False

    def resolve(self, name: str) -> Resolution:
        """Resolve an operation, alias or workflow name.

        Raises:
        ------
            UnknownOperationError: when nothing matches.
        """
        resolution = self._index.get(normalize_identifier(name or ""))
        if resolution is None:
            raise UnknownOperationError(name)
        return resolution


@lru_cache(maxsize=None)
def build_alias_table() -> AliasTable:
    """Build the process-wide dispatch table (computed once)."""
    return AliasTable(OPERATIONS, ALIASES, WORKFLOWS)
