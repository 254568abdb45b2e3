"""Unified configuration for VaultSync.

Configuration is stored in ~/.vaultsync/config.toml
The local store lives next to it in ~/.vaultsync/<database>
"""

from __future__ import annotations

import json
import logging
import os
import re
import tempfile
import tomllib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

# Database file name: no path separators
_DB_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_\-\.]+$")

DEFAULT_BASE_URL = "http://localhost:3000/api"


def get_vaultsync_dir() -> Path:
    """Get VaultSync data directory.

    Priority:
    1. VAULTSYNC_DIR environment variable
    2. ~/.vaultsync/
    """
    env_dir = os.environ.get("VAULTSYNC_DIR")
    if env_dir:
        return Path(env_dir)
    return Path.home() / ".vaultsync"


def _toml_bool(value: bool) -> str:
    return "true" if value else "false"


def _toml_str(value: str) -> str:
    # JSON string escapes are valid TOML basic-string escapes.
    return json.dumps(value)


@dataclass(frozen=True)
class RemoteConfig:
    """Remote API settings."""

    base_url: str = DEFAULT_BASE_URL
    timeout: float = 30.0
    health_path: str = "/health"
    api_token: str = ""
    email: str = ""

    @property
    def health_url(self) -> str:
        return f"{self.base_url.rstrip('/')}{self.health_path}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "health_path": self.health_path,
            "api_token": self.api_token,
            "email": self.email,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RemoteConfig:
        try:
            timeout = max(1.0, min(float(data.get("timeout", 30.0)), 600.0))
        except (ValueError, TypeError):
            timeout = 30.0
        health_path = str(data.get("health_path", "/health")) or "/health"
        if not health_path.startswith("/"):
            health_path = "/" + health_path
        return cls(
            base_url=str(data.get("base_url", DEFAULT_BASE_URL)).rstrip("/") or DEFAULT_BASE_URL,
            timeout=timeout,
            health_path=health_path,
            api_token=str(data.get("api_token", "")),
            email=str(data.get("email", "")),
        )


@dataclass(frozen=True)
class SyncConfig:
    """Drain-cycle and connectivity settings."""

    reconnect_delay: float = 1.0
    poll_interval: float = 15.0
    max_attempts: int | None = None
    purge_deleted: bool = False

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "reconnect_delay": self.reconnect_delay,
            "poll_interval": self.poll_interval,
            "purge_deleted": self.purge_deleted,
        }
        if self.max_attempts is not None:
            result["max_attempts"] = self.max_attempts
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncConfig:
        try:
            reconnect_delay = max(0.0, float(data.get("reconnect_delay", 1.0)))
        except (ValueError, TypeError):
            reconnect_delay = 1.0
        try:
            poll_interval = max(1.0, float(data.get("poll_interval", 15.0)))
        except (ValueError, TypeError):
            poll_interval = 15.0
        raw_max = data.get("max_attempts")
        try:
            max_attempts = max(1, int(raw_max)) if raw_max is not None else None
        except (ValueError, TypeError):
            max_attempts = None
        return cls(
            reconnect_delay=reconnect_delay,
            poll_interval=poll_interval,
            max_attempts=max_attempts,
            purge_deleted=bool(data.get("purge_deleted", False)),
        )


@dataclass
class UnifiedConfig:
    """Unified configuration for VaultSync.

    Storage location: ~/.vaultsync/config.toml
    Database location: ~/.vaultsync/vault.db
    """

    # Base directory for all VaultSync data
    data_dir: Path = field(default_factory=get_vaultsync_dir)

    # Local store file name under data_dir
    database: str = "vault.db"

    # Remote API settings
    remote: RemoteConfig = field(default_factory=RemoteConfig)

    # Drain-cycle settings
    sync: SyncConfig = field(default_factory=SyncConfig)

    # Metadata
    version: str = "1.0"

    @classmethod
    def load(cls, config_path: Path | None = None) -> UnifiedConfig:
        """Load configuration from file, or create default if doesn't exist."""
        if config_path is None:
            data_dir = get_vaultsync_dir()
            config_path = data_dir / "config.toml"
        else:
            data_dir = config_path.parent

        if not config_path.exists():
            config = cls(data_dir=data_dir)
            config.save()
            logger.info("Created default config at %s", config_path)
            return config

        with open(config_path, "rb") as f:
            data = tomllib.load(f)

        database = str(data.get("database", "vault.db"))
        if not _DB_NAME_PATTERN.match(database):
            logger.warning("Ignoring invalid database name in %s", config_path)
            database = "vault.db"

        return cls(
            data_dir=data_dir,
            database=database,
            remote=RemoteConfig.from_dict(data.get("remote", {})),
            sync=SyncConfig.from_dict(data.get("sync", {})),
            version=data.get("version", "1.0"),
        )

    def save(self) -> None:
        """Save configuration to TOML file (atomic write via temp+rename)."""
        self.data_dir.mkdir(parents=True, exist_ok=True)
        config_path = self.config_path

        if not _DB_NAME_PATTERN.match(self.database):
            raise ValueError("Invalid database name for config save")

        lines = [
            "# VaultSync Configuration",
            "",
            f"version = {_toml_str(self.version)}",
            f"database = {_toml_str(self.database)}",
            "",
            "# Remote API settings",
            "[remote]",
            f"base_url = {_toml_str(self.remote.base_url)}",
            f"timeout = {float(self.remote.timeout)}",
            f"health_path = {_toml_str(self.remote.health_path)}",
            f"api_token = {_toml_str(self.remote.api_token)}",
            f"email = {_toml_str(self.remote.email)}",
            "",
            "# Drain-cycle settings",
            "[sync]",
            f"reconnect_delay = {float(self.sync.reconnect_delay)}",
            f"poll_interval = {float(self.sync.poll_interval)}",
            f"purge_deleted = {_toml_bool(self.sync.purge_deleted)}",
        ]

        if self.sync.max_attempts is not None:
            lines.append(f"max_attempts = {self.sync.max_attempts}")

        # Atomic write: write to temp file, then rename
        content = "\n".join(lines) + "\n"
        fd, tmp_path = tempfile.mkstemp(dir=str(self.data_dir), suffix=".toml.tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            Path(tmp_path).replace(config_path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    @property
    def config_path(self) -> Path:
        """Get path to config file."""
        return self.data_dir / "config.toml"

    @property
    def db_path(self) -> Path:
        """Get path to the local SQLite store."""
        return self.data_dir / self.database

    def effective_remote(self) -> RemoteConfig:
        """Remote settings with environment overrides applied.

        VAULTSYNC_API_URL and VAULTSYNC_API_TOKEN take precedence over the
        file and are never written back by ``save()``.
        """
        remote = self.remote
        env_url = os.environ.get("VAULTSYNC_API_URL")
        if env_url:
            remote = replace(remote, base_url=env_url.rstrip("/"))
        env_token = os.environ.get("VAULTSYNC_API_TOKEN")
        if env_token:
            remote = replace(remote, api_token=env_token)
        return remote

    def to_dict(self) -> dict[str, Any]:
        remote = self.effective_remote().to_dict()
        if remote["api_token"]:
            remote["api_token"] = "***"
        return {
            "version": self.version,
            "data_dir": str(self.data_dir),
            "database": self.database,
            "remote": remote,
            "sync": self.sync.to_dict(),
        }

