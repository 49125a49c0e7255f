# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/hostprep/config/loader.py

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

import yaml
from pydantic import ValidationError

from hostprep.errors import ConfigError
from .models import HostConfig

log = logging.getLogger("hostprep")

# environment variable -> config field
ENV_KEYS: Dict[str, str] = {
    "SSH_USER": "ssh_user",
    "SSH_PUB_KEY": "ssh_pub_key",
    "SSH_PORT": "ssh_port",
    "INTERFACE": "interface",
    "FIXED_IP": "fixed_ip",
    "GATEWAY": "gateway",
    "DNS_SERVERS": "dns_servers",
}


def _merge(base: dict, override: Mapping) -> dict:
    """
    Merge *override* into *base* (mutates base).
    Only overwrites when the override value is non-empty.
    """
    for key, value in override.items():
        if value not in (None, ""):
            base[key] = value
    return base


def _load_yaml(path: Path) -> dict:
    """Load a YAML file, expanding ${ENV_VAR} references."""
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    raw = path.read_text()
    try:
        data = yaml.safe_load(os.path.expandvars(raw)) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping, got {type(data).__name__}")
    return data


def _from_env(environ: Mapping[str, str]) -> dict:
    data = {field: environ.get(key) for key, field in ENV_KEYS.items()}

    key_file = environ.get("SSH_PUB_KEY_FILE")
    if key_file and not data.get("ssh_pub_key"):
        p = Path(key_file).expanduser()
        if not p.is_file():
            raise ConfigError(f"SSH_PUB_KEY_FILE={key_file} does not exist")
        data["ssh_pub_key"] = p.read_text().strip()
    return data


def load_config(
    path: Optional[Path] = None,
    *,
    overrides: Optional[Mapping] = None,
    environ: Optional[Mapping[str, str]] = None,
    prompt: Optional[Callable[[str], str]] = None,
) -> HostConfig:
    """
    Build the run configuration.

    Precedence, lowest first: model defaults, YAML file (``path`` or
    ``HOSTPREP_CONFIG``), environment, ``overrides`` (CLI options).
    If no target user results, ``SUDO_USER`` is used, then ``prompt``.
    """
    environ = os.environ if environ is None else environ

    data: dict = {}
    if path is None and environ.get("HOSTPREP_CONFIG"):
        path = Path(environ["HOSTPREP_CONFIG"])
    if path is not None:
        _merge(data, _load_yaml(Path(path)))
        log.debug("loaded config file %s", path)

    _merge(data, _from_env(environ))
    _merge(data, overrides or {})

    if not data.get("ssh_user"):
        if environ.get("SUDO_USER") and environ["SUDO_USER"] != "root":
            data["ssh_user"] = environ["SUDO_USER"]
        elif prompt is not None:
            data["ssh_user"] = prompt("Target user").strip()
        else:
            raise ConfigError("No target user: set SSH_USER or pass --user")

    try:
        return HostConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration:\n{e}") from e
