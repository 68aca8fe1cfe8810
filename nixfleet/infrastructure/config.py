"""
Configuration Module

Architectural Intent:
- Centralized configuration loading from a JSON file
- Provides typed access to all nixfleet settings
- Falls back to sensible defaults when config file is absent
- Environment variables override file-based config

Design Decisions:
- Config is a frozen dataclass for immutability after load
- Nested config sections map to sub-dataclasses
- CLI flags are applied on top by the presentation layer
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional
import dataclasses
import json
import logging
import os

logger = logging.getLogger(__name__)

_TOP_LEVEL_KEYS = ("log_level",)


@dataclass(frozen=True)
class FlakeConfig:
    """Where the NixOS configurations come from and where they are built."""
    path: str = "."
    build_host: str = "localhost"


@dataclass(frozen=True)
class SSHConfig:
    """Remote execution settings."""
    user: str = "root"
    connect_timeout: float = 2.0


@dataclass(frozen=True)
class DeployConfig:
    """Orchestration defaults."""
    mode: str = "sequential"
    action: str = "switch"
    max_parallel: int = 5
    batch_size: int = 2
    batch_delay: float = 0.0
    log_dir: str = "./logs"
    disk_warning_percent: int = 90
    health_check_script: str = ""


@dataclass(frozen=True)
class TelemetryConfig:
    """OpenTelemetry configuration."""
    endpoint: str = ""
    insecure: bool = False


@dataclass(frozen=True)
class NixfleetConfig:
    """Root configuration for nixfleet."""
    flake: FlakeConfig = field(default_factory=FlakeConfig)
    ssh: SSHConfig = field(default_factory=SSHConfig)
    deploy: DeployConfig = field(default_factory=DeployConfig)
    telemetry: TelemetryConfig = field(default_factory=TelemetryConfig)
    log_level: str = "WARNING"


def _env_override(data: dict, prefix: str = "NIXFLEET") -> dict:
    """Override config values with environment variables.

    Environment variables follow the pattern NIXFLEET_SECTION_KEY.
    For example: NIXFLEET_DEPLOY_MAX_PARALLEL=10, NIXFLEET_SSH_USER=deploy
    """
    for key, value in os.environ.items():
        if not key.startswith(f"{prefix}_"):
            continue
        name = key[len(prefix) + 1:].lower()
        if name in _TOP_LEVEL_KEYS:
            data[name] = value
            continue
        parts = name.split("_", 1)
        if len(parts) == 2:
            section, field_name = parts
            if section not in data:
                data[section] = {}
            data[section][field_name] = value
        elif len(parts) == 1:
            data[parts[0]] = value
    return data


def _parse_config_file(path: Path) -> dict:
    """Parse a JSON config file. Returns empty dict on failure."""
    try:
        with open(path) as f:
            return json.load(f)
    except FileNotFoundError:
        logger.debug("Config file not found: %s", path)
        return {}
    except json.JSONDecodeError as e:
        logger.warning("Invalid config file %s: %s", path, e)
        return {}


def _build_sub_config(cls, data: dict):
    """Build a sub-config dataclass from a dict, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}

    # Environment values arrive as strings
    for f in dataclasses.fields(cls):
        if f.name in filtered and isinstance(filtered[f.name], str):
            if f.type == "int":
                filtered[f.name] = int(filtered[f.name])
            elif f.type == "float":
                filtered[f.name] = float(filtered[f.name])
            elif f.type == "bool":
                filtered[f.name] = filtered[f.name].lower() in ("true", "1", "yes")

    return cls(**filtered)


def load_config(
    path: Optional[str] = None,
    env_prefix: str = "NIXFLEET",
) -> NixfleetConfig:
    """Load configuration from file and environment variables.

    Priority (highest to lowest):
    1. Environment variables (NIXFLEET_SECTION_KEY)
    2. Config file values
    3. Defaults

    Args:
        path: Path to config file (JSON). Defaults to nixfleet.json in CWD.
        env_prefix: Environment variable prefix. Defaults to NIXFLEET.
    """
    config_path = Path(path) if path else Path("nixfleet.json")
    data = _parse_config_file(config_path)
    data = _env_override(data, env_prefix)

    return NixfleetConfig(
        flake=_build_sub_config(FlakeConfig, data.get("flake", {})),
        ssh=_build_sub_config(SSHConfig, data.get("ssh", {})),
        deploy=_build_sub_config(DeployConfig, data.get("deploy", {})),
        telemetry=_build_sub_config(TelemetryConfig, data.get("telemetry", {})),
        log_level=data.get("log_level", "WARNING"),
    )
