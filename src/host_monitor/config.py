#!/usr/bin/env python3
"""
Configuration dataclasses for host-monitor.

Provides typed configuration classes that represent config.yaml and
secret.yaml structure.
"""

from dataclasses import dataclass, field
from pathlib import Path

import host_monitor.spec.models as models


@dataclass
class DataConfig:
    """Data/cache directory configuration."""

    cache: str

    @classmethod
    def parse(cls, data: dict) -> "DataConfig":
        """Parse from dictionary."""
        return cls(cache=data["cache"])

    def get_cache_dir(self, base_dir: Path) -> Path:
        """Get absolute path to cache directory."""
        path = Path(self.cache)
        if not path.is_absolute():
            path = base_dir / path
        return path


@dataclass
class SessionConfig:
    """SSH session settings shared by every host."""

    connect_timeout: float = 10.0
    command_timeout: float | None = 30.0
    log_lines: int = 100
    strict_host_key: bool = False

    @classmethod
    def parse(cls, data: dict) -> "SessionConfig":
        """Parse from dictionary."""
        return cls(
            connect_timeout=data.get("connect_timeout", 10.0),
            command_timeout=data.get("command_timeout", 30.0),
            log_lines=data.get("log_lines", 100),
            strict_host_key=data.get("strict_host_key", False),
        )


@dataclass
class WebhookConfig:
    """Inbound webhook settings."""

    secret: str | None = None
    require_signature: bool = False

    @classmethod
    def parse(cls, data: dict) -> "WebhookConfig":
        """Parse from dictionary."""
        return cls(
            secret=data.get("secret"),
            require_signature=data.get("require_signature", False),
        )


@dataclass
class CollectorConfig:
    """Periodic telemetry polling."""

    enabled: bool = False
    interval_sec: int = 300
    max_workers: int = 8

    @classmethod
    def parse(cls, data: dict) -> "CollectorConfig":
        return cls(
            enabled=data.get("enabled", False),
            interval_sec=data.get("interval_sec", 300),
            max_workers=data.get("max_workers", 8),
        )


@dataclass
class Config:
    """Main configuration class representing config.yaml."""

    data: DataConfig
    session: SessionConfig = field(default_factory=SessionConfig)
    webhook: WebhookConfig = field(default_factory=WebhookConfig)
    collector: CollectorConfig = field(default_factory=CollectorConfig)

    @classmethod
    def parse(cls, data: dict) -> "Config":
        """Parse from dictionary (parsed YAML)."""
        return cls(
            data=DataConfig.parse(data["data"]),
            session=SessionConfig.parse(data.get("session", {})),
            webhook=WebhookConfig.parse(data.get("webhook", {})),
            collector=CollectorConfig.parse(data.get("collector", {})),
        )

    @classmethod
    def load(cls, config_path: Path, schema_path: Path) -> "Config":
        """Load config from YAML file with schema validation."""
        import my_lib.config

        data = my_lib.config.load(config_path, schema_path)
        return cls.parse(data)


@dataclass
class SshAuth:
    """SSH credentials for one host (secret.yaml ``ssh_auth`` entry)."""

    username: str
    port: int | None = None
    password: str | None = None
    private_key: str | None = None
    private_key_path: str | None = None
    passphrase: str | None = None

    @classmethod
    def parse(cls, data: dict) -> "SshAuth":
        """Parse from dictionary."""
        return cls(
            username=data["username"],
            port=data.get("port"),
            password=data.get("password"),
            private_key=data.get("private_key"),
            private_key_path=data.get("private_key_path"),
            passphrase=data.get("passphrase"),
        )

    def credential(self) -> models.Credential:
        """Select the credential: a private key wins over a password.

        Raises:
            ValueError: neither a key nor a password is configured
        """
        if self.private_key:
            return models.PrivateKey(self.private_key, self.passphrase)
        if self.private_key_path:
            key_text = Path(self.private_key_path).expanduser().read_text(encoding="utf-8")
            return models.PrivateKey(key_text, self.passphrase)
        if self.password is not None:
            return models.Password(self.password)
        raise ValueError(f"No password or private key configured for {self.username}")


@dataclass
class Secret:
    """Main secret class representing secret.yaml."""

    ssh_auth: dict[str, SshAuth] = field(default_factory=dict)

    @classmethod
    def parse(cls, data: dict) -> "Secret":
        """Parse from dictionary (parsed YAML)."""
        return cls(
            ssh_auth={name: SshAuth.parse(auth) for name, auth in data.get("ssh_auth", {}).items()},
        )

    def get_auth(self, host: models.Host) -> SshAuth | None:
        """Find credentials by host name, then by hostname, then by IP address."""
        for key in (host.name, host.hostname, host.ip_address):
            if key in self.ssh_auth:
                return self.ssh_auth[key]
        return None

    def connection_config(self, host: models.Host) -> models.ConnectionConfig | None:
        auth = self.get_auth(host)
        if auth is None:
            return None
        return models.ConnectionConfig(
            hostname=host.hostname,
            port=auth.port or host.port,
            username=auth.username,
            credential=auth.credential(),
        )
