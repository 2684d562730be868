"""Configuration management for the docker MCP server and CLI."""

from .config_manager import ConfigChangeListener, ConfigManager

__all__ = [
    "ConfigChangeListener",
    "ConfigManager",
]
