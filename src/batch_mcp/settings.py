from __future__ import annotations

import math
import os
import tomllib
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Mapping

from .execution.config import DEFAULT_INTERPRETER, DEFAULT_TIMEOUT_SECONDS, profile_for

ENV_CONFIG = "BATCH_MCP_CONFIG"
ENV_INTERPRETER = "BATCH_MCP_INTERPRETER"
ENV_TIMEOUT = "BATCH_MCP_TIMEOUT"
ENV_LOG_LEVEL = "BATCH_MCP_LOG_LEVEL"
ENV_STAGING_DIR = "BATCH_MCP_STAGING_DIR"

TRANSPORTS = {"stdio", "http"}
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
HTTP_PATH = "/mcp"


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read a settings TOML file and return the `[server]` table (or the top level).

    Example:
        ```python
        raw = _read_settings_toml(Path("/etc/batch-mcp.toml"))
        ```
    """
    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise ValueError(f"Settings file not found: {path}") from None
    except tomllib.TOMLDecodeError as exc:
        raise ValueError(f"Settings file {path} is not valid TOML: {exc}") from exc
    table = raw.get("server", raw)
    if not isinstance(table, dict):
        raise ValueError("Settings config must be a TOML table")
    return table


def _optional_str(value: Any, field_name: str) -> str | None:
    """Validate and normalize an optional string setting.

    Example:
        ```python
        path = _optional_str("/opt/matlab/bin/matlab", "interpreter_path")
        ```
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{field_name}' must be a string")
    cleaned = value.strip()
    return cleaned or None


def _parse_timeout(value: Any, source: str) -> float:
    """Parse a timeout given as a number or numeric string.

    Example:
        ```python
        seconds = _parse_timeout("120", "BATCH_MCP_TIMEOUT")
        ```
    """
    if isinstance(value, bool):
        raise ValueError(f"'{source}' must be a number of seconds")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{source}' must be a number of seconds, got {value!r}") from None


@dataclass(slots=True)
class ServerSettings:
    """Runtime configuration for the batch-mcp server and CLI.

    Example:
        ```python
        settings = ServerSettings(interpreter="octave", default_timeout_seconds=60)
        ```
    """

    interpreter: str = DEFAULT_INTERPRETER
    interpreter_path: str | None = None
    default_timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    transport: str = "stdio"
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    staging_dir: str | None = None
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate and normalize fields after dataclass initialization.

        Example:
            ```python
            ServerSettings(transport="http", port=9000)
            ```
        """
        self.interpreter = profile_for(self.interpreter).name
        self.interpreter_path = _optional_str(self.interpreter_path, "interpreter_path")
        self.staging_dir = _optional_str(self.staging_dir, "staging_dir")
        timeout = self.default_timeout_seconds
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)):
            raise ValueError("'default_timeout_seconds' must be a number")
        if not math.isfinite(timeout) or timeout <= 0:
            raise ValueError("'default_timeout_seconds' must be positive")
        if self.transport not in TRANSPORTS:
            raise ValueError("transport must be 'stdio' or 'http'")
        if isinstance(self.port, bool) or not isinstance(self.port, int) or not 0 < self.port < 65536:
            raise ValueError("port must be an integer between 1 and 65535")
        self.log_level = str(self.log_level).upper()
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(LOG_LEVELS))}")

    @property
    def executable(self) -> str:
        """Return the interpreter executable, falling back to the bare command name.

        Example:
            ```python
            assert ServerSettings().executable == "matlab"
            ```
        """
        return self.interpreter_path or profile_for(self.interpreter).command_name

    @classmethod
    def from_file(cls, config_path: str) -> "ServerSettings":
        """Create settings from a TOML file.

        Example:
            ```python
            settings = ServerSettings.from_file("/etc/batch-mcp.toml")
            ```
        """
        raw = _read_settings_toml(Path(config_path))
        defaults = cls()
        return cls(
            interpreter=str(raw.get("interpreter", defaults.interpreter)),
            interpreter_path=raw.get("interpreter_path"),
            default_timeout_seconds=_parse_timeout(
                raw.get("timeout_seconds", defaults.default_timeout_seconds),
                "timeout_seconds",
            ),
            transport=str(raw.get("transport", defaults.transport)),
            host=str(raw.get("host", defaults.host)),
            port=raw.get("port", defaults.port),
            log_level=str(raw.get("log_level", defaults.log_level)),
            staging_dir=raw.get("staging_dir"),
            config_path=config_path,
        )

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        base: "ServerSettings | None" = None,
    ) -> "ServerSettings":
        """Overlay environment variables on `base` (or on the file named by BATCH_MCP_CONFIG).

        The interpreter path is read from the selected profile's variable,
        `MATLAB_PATH` for MATLAB and `OCTAVE_PATH` for Octave.

        Example:
            ```python
            settings = ServerSettings.from_env({"MATLAB_PATH": "/opt/matlab/bin/matlab"})
            ```
        """
        env = os.environ if environ is None else environ
        if base is None:
            config_path = _optional_str(env.get(ENV_CONFIG), ENV_CONFIG)
            base = cls.from_file(config_path) if config_path else cls()

        overrides: dict[str, Any] = {}
        interpreter = _optional_str(env.get(ENV_INTERPRETER), ENV_INTERPRETER)
        if interpreter:
            overrides["interpreter"] = interpreter
        profile = profile_for(interpreter or base.interpreter)
        interpreter_path = _optional_str(env.get(profile.path_env_var), profile.path_env_var)
        if interpreter_path:
            overrides["interpreter_path"] = interpreter_path
        elif interpreter and profile.name != base.interpreter:
            overrides["interpreter_path"] = None
        timeout = _optional_str(env.get(ENV_TIMEOUT), ENV_TIMEOUT)
        if timeout:
            overrides["default_timeout_seconds"] = _parse_timeout(timeout, ENV_TIMEOUT)
        log_level = _optional_str(env.get(ENV_LOG_LEVEL), ENV_LOG_LEVEL)
        if log_level:
            overrides["log_level"] = log_level
        staging_dir = _optional_str(env.get(ENV_STAGING_DIR), ENV_STAGING_DIR)
        if staging_dir:
            overrides["staging_dir"] = staging_dir
        return replace(base, **overrides) if overrides else base
