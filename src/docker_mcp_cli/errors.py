"""Error taxonomy for docker command translation and execution.

Validation-class errors (``MissingRequiredField``, ``InvalidEnum``,
``UnknownOperation``) are raised before anything is spawned.  Execution-class
errors are produced only by :mod:`docker_mcp_cli.executor` from the stderr
classification table and always keep the original stderr.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Closed set of failure kinds surfaced to callers."""

    MISSING_REQUIRED_FIELD = "MissingRequiredField"
    INVALID_ENUM = "InvalidEnum"
    UNKNOWN_OPERATION = "UnknownOperation"
    DAEMON_UNAVAILABLE = "DaemonUnavailable"
    PERMISSION_DENIED = "PermissionDenied"
    CONTAINER_NOT_FOUND = "ContainerNotFound"
    IMAGE_NOT_FOUND = "ImageNotFound"
    NETWORK_NOT_FOUND = "NetworkNotFound"
    VOLUME_NOT_FOUND = "VolumeNotFound"
    PORT_CONFLICT = "PortConflict"
    TIMEOUT = "Timeout"
    COMMAND_FAILED = "CommandFailed"

    @property
    def is_validation(self) -> bool:
        return self in _VALIDATION_KINDS


_VALIDATION_KINDS = frozenset(
    {
        ErrorKind.MISSING_REQUIRED_FIELD,
        ErrorKind.INVALID_ENUM,
        ErrorKind.UNKNOWN_OPERATION,
    },
)

# Short hints shown under CLI errors and appended to envelope content.
ERROR_HINTS: dict[ErrorKind, str] = {
    ErrorKind.MISSING_REQUIRED_FIELD: "Run the command with --help to see required arguments.",
    ErrorKind.INVALID_ENUM: "Check the allowed values with --help.",
    ErrorKind.UNKNOWN_OPERATION: "Run 'dlist' to see available operations and aliases.",
    ErrorKind.DAEMON_UNAVAILABLE: "Start Docker and make sure 'docker version' succeeds.",
    ErrorKind.PERMISSION_DENIED: "Add your user to the docker group or run with appropriate privileges.",
    ErrorKind.CONTAINER_NOT_FOUND: "Check the container name with 'dpsa'.",
    ErrorKind.IMAGE_NOT_FOUND: "Check the image name with 'dimages' or pull it first with 'dpull'.",
    ErrorKind.NETWORK_NOT_FOUND: "List networks with 'dnetwork list' or create it first.",
    ErrorKind.VOLUME_NOT_FOUND: "List volumes with 'dvolume list' or create it first.",
    ErrorKind.PORT_CONFLICT: "Choose a different host port or stop the container holding it.",
    ErrorKind.TIMEOUT: "Retry with a smaller scope, or pass longRunning with a larger timeout.",
    ErrorKind.COMMAND_FAILED: "See the docker output above for details.",
}


class DockerMcpError(Exception):
    """Base class for all errors raised by this package."""

    kind: ErrorKind = ErrorKind.COMMAND_FAILED

    @property
    def hint(self) -> str:
        return ERROR_HINTS[self.kind]


class NormalizationError(DockerMcpError, ValueError):
    """Raised when raw arguments cannot be mapped to canonical parameters."""

    def __init__(self, kind: ErrorKind, operation: str, field: str | None, message: str) -> None:
        if kind not in (ErrorKind.MISSING_REQUIRED_FIELD, ErrorKind.INVALID_ENUM):
            raise ValueError(f"Not a normalization error kind: {kind}")
        super().__init__(message)
        self.kind = kind
        self.operation = operation
        self.field = field
        self.message = message

    @classmethod
    def missing(cls, operation: str, field: str, message: str | None = None) -> NormalizationError:
        return cls(
            ErrorKind.MISSING_REQUIRED_FIELD,
            operation,
            field,
            message or f"Required parameter '{field}' is missing for operation '{operation}'",
        )

    @classmethod
    def invalid(cls, operation: str, field: str | None, message: str) -> NormalizationError:
        return cls(ErrorKind.INVALID_ENUM, operation, field, message)


class UnknownOperationError(DockerMcpError, ValueError):
    """Raised when a name is neither an operation, an alias nor a workflow."""

    kind = ErrorKind.UNKNOWN_OPERATION

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown operation or alias: {name}")
        self.name = name
        self.message = str(self)


class ExecutionError(DockerMcpError):
    """Classified failure of a spawned docker command."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        raw_stderr: str = "",
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.raw_stderr = raw_stderr
        self.exit_code = exit_code
