"""Configuration for the docker MCP server and CLI.

Values are layered: class defaults, then an optional JSON file, then
``DOCKER_MCP_*`` environment variables. The JSON file groups options by
category::

    {
      "Server Options": {"Server Port": 9000},
      "Execution Options": {"Daemon Check Enabled": false}
    }
"""

from __future__ import annotations

import json
import logging
import os

from collections.abc import Callable
from pathlib import Path
from typing import Any

from docker_mcp_cli.mcp_utils.debug_logger import DebugLogger

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes", "on")


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() in _TRUTHY


class ConfigChangeListener:
    """Receives (category, name, old, new) after every change."""

    def on_config_changed(self, category: str, name: str, old_value: Any, new_value: Any) -> None:
        pass


class ConfigManager:
    """Server bind address, debug switch and daemon-probe settings."""

    SERVER_OPTIONS = "Server Options"
    EXECUTION_OPTIONS = "Execution Options"

    SERVER_PORT = "Server Port"
    SERVER_HOST = "Server Host"
    DEBUG_MODE = "Debug Mode"
    DAEMON_CHECK_ENABLED = "Daemon Check Enabled"
    DAEMON_PROBE_TIMEOUT_SECONDS = "Daemon Probe Timeout Seconds"

    DEFAULT_PORT = 8080
    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_DEBUG_MODE = False
    DEFAULT_DAEMON_CHECK_ENABLED = True
    DEFAULT_DAEMON_PROBE_TIMEOUT_SECONDS = 10.0

    def __init__(self, config_file: Path | None = None):
        self.config_file = config_file
        self._listeners: set[ConfigChangeListener] = set()
        self._config: dict[str, dict[str, Any]] = self._read_file()
        self._apply_env_overrides()

    # -- layering -----------------------------------------------------------

    def _read_file(self) -> dict[str, dict[str, Any]]:
        config: dict[str, dict[str, Any]] = {}
        if self.config_file is not None and self.config_file.exists():
            try:
                loaded = json.loads(self.config_file.read_text(encoding="utf-8"))
                if not isinstance(loaded, dict):
                    raise ValueError("top-level JSON value must be an object")
                config = {str(k): dict(v) for k, v in loaded.items() if isinstance(v, dict)}
                DebugLogger.debug(self, f"Loaded configuration from {self.config_file}")
            except (OSError, ValueError) as e:
                logger.warning(f"Failed to load config file {self.config_file}: {e}")
                config = {}
        config.setdefault(self.SERVER_OPTIONS, {})
        config.setdefault(self.EXECUTION_OPTIONS, {})
        return config

    def _env_overrides(self) -> list[tuple[str, Callable[[str], None]]]:
        return [
            ("DOCKER_MCP_PORT", lambda raw: self.set_server_port(int(raw))),
            ("DOCKER_MCP_HOST", self.set_server_host),
            ("DOCKER_MCP_DEBUG", lambda raw: self.set_debug_mode(_env_flag(raw))),
            ("DOCKER_MCP_SKIP_DAEMON_CHECK", lambda raw: self.set_daemon_check_enabled(not _env_flag(raw))),
            ("DOCKER_MCP_PROBE_TIMEOUT", lambda raw: self.set_daemon_probe_timeout_seconds(float(raw))),
        ]

    def _apply_env_overrides(self) -> None:
        for var, apply in self._env_overrides():
            raw = os.environ.get(var)
            if raw is None:
                continue
            try:
                apply(raw)
            except ValueError:
                logger.warning(f"Invalid {var} value: {raw!r}")

    def save_config(self) -> None:
        if self.config_file is None:
            return
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            self.config_file.write_text(json.dumps(self._config, indent=2), encoding="utf-8")
            DebugLogger.debug(self, f"Saved configuration to {self.config_file}")
        except OSError as e:
            logger.error(f"Failed to save config file {self.config_file}: {e}")

    # -- listeners ----------------------------------------------------------

    def add_change_listener(self, listener: ConfigChangeListener) -> None:
        self._listeners.add(listener)

    def remove_change_listener(self, listener: ConfigChangeListener) -> None:
        self._listeners.discard(listener)

    def _notify(self, category: str, name: str, old_value: Any, new_value: Any) -> None:
        for listener in list(self._listeners):
            try:
                listener.on_config_changed(category, name, old_value, new_value)
            except Exception as e:
                logger.error(f"Config listener {listener!r} failed: {e}")

    def _get(self, category: str, name: str, default: Any) -> Any:
        return self._config.get(category, {}).get(name, default)

    def _set(self, category: str, name: str, value: Any) -> None:
        options = self._config.setdefault(category, {})
        old_value = options.get(name)
        options[name] = value
        self._notify(category, name, old_value, value)

    # -- server -------------------------------------------------------------

    def get_server_port(self) -> int:
        return self._get(self.SERVER_OPTIONS, self.SERVER_PORT, self.DEFAULT_PORT)

    def set_server_port(self, port: int) -> None:
        if not 1 <= port <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {port}")
        self._set(self.SERVER_OPTIONS, self.SERVER_PORT, port)

    def get_server_host(self) -> str:
        return self._get(self.SERVER_OPTIONS, self.SERVER_HOST, self.DEFAULT_HOST)

    def set_server_host(self, host: str) -> None:
        host = host.strip()
        if not host:
            raise ValueError("Host cannot be empty")
        self._set(self.SERVER_OPTIONS, self.SERVER_HOST, host)

    def is_debug_mode(self) -> bool:
        return self._get(self.SERVER_OPTIONS, self.DEBUG_MODE, self.DEFAULT_DEBUG_MODE)

    def set_debug_mode(self, enabled: bool) -> None:
        """Also switches DebugLogger on or off."""
        self._set(self.SERVER_OPTIONS, self.DEBUG_MODE, bool(enabled))
        DebugLogger.set_debug_enabled(bool(enabled))

    # -- execution ----------------------------------------------------------

    def is_daemon_check_enabled(self) -> bool:
        """Whether ``docker version`` is probed before daemon-bound commands."""
        return self._get(self.EXECUTION_OPTIONS, self.DAEMON_CHECK_ENABLED, self.DEFAULT_DAEMON_CHECK_ENABLED)

    def set_daemon_check_enabled(self, enabled: bool) -> None:
        self._set(self.EXECUTION_OPTIONS, self.DAEMON_CHECK_ENABLED, bool(enabled))

    def get_daemon_probe_timeout_seconds(self) -> float:
        return self._get(self.EXECUTION_OPTIONS, self.DAEMON_PROBE_TIMEOUT_SECONDS, self.DEFAULT_DAEMON_PROBE_TIMEOUT_SECONDS)

    def set_daemon_probe_timeout_seconds(self, timeout: float) -> None:
        if timeout <= 0:
            raise ValueError(f"Probe timeout must be positive, got {timeout}")
        self._set(self.EXECUTION_OPTIONS, self.DAEMON_PROBE_TIMEOUT_SECONDS, float(timeout))

    def get_all_options(self) -> dict[str, dict[str, Any]]:
        return {category: dict(options) for category, options in self._config.items()}

    def reset_to_defaults(self) -> None:
        old_config = self.get_all_options()
        self._config = {self.SERVER_OPTIONS: {}, self.EXECUTION_OPTIONS: {}}
        self._notify("*", "*", old_config, self.get_all_options())

    def __repr__(self) -> str:
        return f"ConfigManager(config_file={self.config_file!s})"
