"""Configuration loading for license_gate.

Settings live in a TOML file::

    [upstream]
    service_index = "https://api.nuget.org/v3/index.json"
    timeout = 30

    [policy]
    blocked_license_expressions = ["AGPL-3.0"]
    blocked_license_url_patterns = ["*gnu.org*"]

Every section and key is optional. SettingsSource re-reads the file when it
changes, so the block lists can be edited without restarting the server.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from license_gate.policy import MirrorPolicyConfig
from license_gate.upstream.http import DEFAULT_TIMEOUT
from license_gate.upstream.v3 import DEFAULT_SERVICE_INDEX

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_NAME = "license-gate.toml"


@dataclass(frozen=True)
class UpstreamSettings:
    """Connection settings for the remote feed.

    Attributes:
        service_index: URL of the feed's V3 service index.
        timeout: Total timeout in seconds for each request.
    """

    service_index: str = DEFAULT_SERVICE_INDEX
    timeout: float = DEFAULT_TIMEOUT


@dataclass(frozen=True)
class Settings:
    """All license_gate settings."""

    upstream: UpstreamSettings = field(default_factory=UpstreamSettings)
    policy: MirrorPolicyConfig = field(default_factory=MirrorPolicyConfig)


def _section(data: dict[str, Any], name: str, path: Path) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ValueError(f"[{name}] in {path} must be a table")
    return section


def _string_list(section: dict[str, Any], key: str, path: Path) -> list[str]:
    value = section.get(key, [])
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValueError(f"'{key}' in {path} must be a list of strings")
    return value


def parse_settings(data: dict[str, Any], path: Path) -> Settings:
    """Build Settings from a decoded TOML document.

    Raises:
        ValueError: If a section or key has the wrong type.
    """
    upstream = _section(data, "upstream", path)
    policy = _section(data, "policy", path)

    service_index = upstream.get("service_index", DEFAULT_SERVICE_INDEX)
    if not isinstance(service_index, str) or not service_index.strip():
        raise ValueError(f"'service_index' in {path} must be a non-empty string")

    timeout = upstream.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError(f"'timeout' in {path} must be a positive number")

    return Settings(
        upstream=UpstreamSettings(
            service_index=service_index.strip(),
            timeout=float(timeout),
        ),
        policy=MirrorPolicyConfig(
            blocked_license_expressions=_string_list(
                policy, "blocked_license_expressions", path
            ),
            blocked_license_url_patterns=_string_list(
                policy, "blocked_license_url_patterns", path
            ),
        ),
    )


def load_settings(path: Path) -> Settings:
    """Load settings from a TOML file.

    Args:
        path: Path to the configuration file.

    Returns:
        The parsed Settings.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid TOML or has invalid values.
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in {path}: {e}") from e

    return parse_settings(data, path)


class SettingsSource:
    """Settings backed by a file, reloaded when the file changes.

    The file's modification time is checked on every current() call. If a
    reload fails, the error is logged and the last good settings stay in
    effect.

    Attributes:
        path: Path to the configuration file.
    """

    def __init__(self, path: Path) -> None:
        """Load the initial settings.

        Args:
            path: Path to the configuration file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the initial file is invalid.
        """
        self.path = path
        self._mtime: Optional[int] = None
        self._settings = load_settings(path)
        self._mtime = self._stat()

    def _stat(self) -> Optional[int]:
        try:
            return os.stat(self.path).st_mtime_ns
        except OSError:
            return None

    def current(self) -> Settings:
        """Return the current settings, reloading the file if it changed."""
        mtime = self._stat()
        if mtime is None or mtime == self._mtime:
            return self._settings

        try:
            self._settings = load_settings(self.path)
            logger.info("Reloaded settings from %s", self.path)
        except (OSError, ValueError) as e:
            logger.error("Failed to reload settings from %s, keeping previous: %s", self.path, e)
        self._mtime = mtime
        return self._settings
