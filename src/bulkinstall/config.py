"""Credentials/connection configuration for bulk installs."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from bulkinstall.models import BulkInstallError

logger = logging.getLogger(__name__)

DEFAULT_CREDENTIALS_FILE = "bulk_install.json"
DEFAULT_SSH_USER = "root"
DEFAULT_SSH_PORT = 22

_KNOWN_KEYS = {
    "username",
    "password",
    "sudo_password",
    "ssh_key",
    "port",
    "ssh_options",
    "master",
    "arguments",
}


class ConfigError(BulkInstallError):
    """Credentials file is present but malformed."""

    pass


class ConfigMissingError(ConfigError):
    """Credentials file does not exist."""

    pass


def _freeze_arguments(raw: Any) -> Mapping[str, Mapping[str, Any]]:
    if raw is None:
        return MappingProxyType({})
    if not isinstance(raw, dict):
        raise ConfigError("'arguments' must be a mapping, got %s" % type(raw).__name__)
    frozen = {}
    for key, sub in raw.items():
        if not isinstance(sub, dict):
            raise ConfigError(
                "'arguments.%s' must be a mapping of subkey to value, got %s"
                % (key, type(sub).__name__)
            )
        frozen[str(key)] = MappingProxyType({str(k): v for k, v in sub.items()})
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class ConnectionConfig:
    """Immutable connection settings shared by every worker.

    ``arguments`` holds extra script arguments as
    ``{key: {subkey: value}}``, e.g.
    ``{"custom_attributes": {"challengePassword": "S3cr3t"}}``.
    """

    master: str
    username: str = DEFAULT_SSH_USER
    password: str | None = field(default=None, repr=False)
    sudo_password: str | None = field(default=None, repr=False)
    ssh_key: str | None = None
    ssh_port: int = DEFAULT_SSH_PORT
    ssh_options: tuple[str, ...] = ()
    arguments: Mapping[str, Mapping[str, Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    def __post_init__(self):
        if not self.master:
            raise ConfigError("Configuration must name a 'master' address")
        # frozen: normalize through object.__setattr__
        object.__setattr__(self, "ssh_options", tuple(self.ssh_options))
        if not isinstance(self.arguments, MappingProxyType):
            object.__setattr__(self, "arguments", _freeze_arguments(dict(self.arguments)))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ConnectionConfig:
        """Build a config from a parsed credentials mapping."""
        unknown = set(data) - _KNOWN_KEYS
        if unknown:
            logger.debug("Ignoring unknown credentials keys: %s", ", ".join(sorted(unknown)))

        ssh_key = data.get("ssh_key")
        options = data.get("ssh_options") or ()
        if isinstance(options, str):
            options = options.split()

        try:
            port = int(data.get("port", DEFAULT_SSH_PORT))
        except (TypeError, ValueError):
            raise ConfigError("'port' must be an integer, got %r" % data.get("port"))

        return cls(
            master=str(data.get("master") or ""),
            username=str(data.get("username") or DEFAULT_SSH_USER),
            password=data.get("password"),
            sudo_password=data.get("sudo_password"),
            ssh_key=os.path.expanduser(ssh_key) if ssh_key else None,
            ssh_port=port,
            ssh_options=tuple(options),
            arguments=_freeze_arguments(data.get("arguments")),
        )

    @property
    def is_root(self) -> bool:
        return self.username == "root"

    @property
    def ssh_kwargs(self) -> dict:
        """Keyword arguments for :func:`bulkinstall.orchestration.ssh.build_ssh_cmd`."""
        return {
            "ssh_user": self.username,
            "ssh_key": self.ssh_key,
            "ssh_port": self.ssh_port,
            "ssh_options": list(self.ssh_options),
        }


def load_credentials(path: str | Path | None = None) -> ConnectionConfig:
    """Load a JSON (or YAML) credentials file.

    Raises:
        ConfigMissingError: if the file does not exist.
        ConfigError: if the content is not a mapping or lacks ``master``.
    """
    config_path = Path(path or DEFAULT_CREDENTIALS_FILE)
    if not config_path.exists():
        raise ConfigMissingError("Configuration file missing: %s" % config_path)

    text = config_path.read_text()
    # JSON first: YAML rejects the tab indentation that JSON allows
    try:
        raw = json.loads(text)
    except ValueError:
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigError("Could not parse %s: %s" % (config_path, e)) from e

    if not isinstance(raw, dict):
        raise ConfigError("Configuration file %s must contain a mapping" % config_path)

    config = ConnectionConfig.from_dict(raw)
    logger.debug(
        "Credentials file: %s (user=%s, master=%s, sudo_password=%s)",
        config_path, config.username, config.master,
        "set" if config.sudo_password else "unset",
    )
    return config
