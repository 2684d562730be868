"""MCP utilities shared by the server and CLI."""

from .debug_logger import DebugLogger
from .schema_util import SchemaUtil

__all__ = [
    "DebugLogger",
    "SchemaUtil",
]
