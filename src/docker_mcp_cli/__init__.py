"""docker-mcp-cli - docker command translation and execution for CLIs and MCP.

Short aliases (``dps``, ``drun``, ``dcompose`` ...) and MCP tool calls share one
pipeline: alias table -> normalizer -> command builder -> executor -> envelope.
"""

__version__ = "1.0.0"

from docker_mcp_cli.errors import (
    DockerMcpError,
    ErrorKind,
    ExecutionError,
    NormalizationError,
    UnknownOperationError,
)
from docker_mcp_cli.registry import (
    ALIASES,
    OPERATIONS,
    WORKFLOWS,
    AliasTable,
    build_alias_table,
    normalize_identifier,
)
from docker_mcp_cli.normalizer import normalize
from docker_mcp_cli.builder import CommandSpec, build
from docker_mcp_cli.executor import DockerExecutor, ExecutionResult, classify_failure
from docker_mcp_cli.models import ResponseEnvelope
from docker_mcp_cli.responses import format_response
from docker_mcp_cli.dispatcher import CallResult, CommandDispatcher

__all__ = [
    "ALIASES",
    "OPERATIONS",
    "WORKFLOWS",
    "AliasTable",
    "CallResult",
    "CommandDispatcher",
    "CommandSpec",
    "DockerExecutor",
    "DockerMcpError",
    "ErrorKind",
    "ExecutionError",
    "ExecutionResult",
    "NormalizationError",
    "ResponseEnvelope",
    "UnknownOperationError",
    "__version__",
    "build",
    "build_alias_table",
    "classify_failure",
    "format_response",
    "normalize",
    "normalize_identifier",
]
