"""CLI configuration management.

Handles persistent CLI settings stored in ~/.config/threeport/tptctl.yaml.
Supports environment variable overrides and CLI flag precedence.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .shared.paths import config_dir

# Default values
DEFAULT_SETTLE_SECONDS = 200
DEFAULT_WAIT_FOR_HEALTH = False
DEFAULT_AWS_REGION = "us-east-1"
DEFAULT_INSTANCE_TYPE = "t3.medium"

SETTINGS_FILENAME = "tptctl.yaml"
REGISTRY_FILENAME = "config.yaml"

# Environment variable mappings
ENV_VARS = {
    "registry_file": "THREEPORT_CONFIG",
    "settle_seconds": "THREEPORT_SETTLE_SECONDS",
    "wait_for_health": "THREEPORT_WAIT_FOR_HEALTH",
    "aws_region": "AWS_DEFAULT_REGION",
    "instance_type": "THREEPORT_INSTANCE_TYPE",
}

SETTABLE_KEYS = ["settle_seconds", "wait_for_health", "aws_region", "instance_type"]


@dataclass
class CLIConfig:
    """CLI configuration."""

    config_dir: Path = field(default_factory=config_dir)
    registry_file: Path | None = None
    settle_seconds: int = DEFAULT_SETTLE_SECONDS
    wait_for_health: bool = DEFAULT_WAIT_FOR_HEALTH
    aws_region: str = DEFAULT_AWS_REGION
    instance_type: str = DEFAULT_INSTANCE_TYPE

    # Track where each value came from
    _sources: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.registry_file is None:
            self.registry_file = self.config_dir / REGISTRY_FILENAME

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def as_dict(self) -> dict[str, Any]:
        return {
            "config_dir": str(self.config_dir),
            "registry_file": str(self.registry_file),
            "settle_seconds": self.settle_seconds,
            "wait_for_health": self.wait_for_health,
            "aws_region": self.aws_region,
            "instance_type": self.instance_type,
        }


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


_CONVERTERS = {
    "settle_seconds": int,
    "wait_for_health": _parse_bool,
    "aws_region": str,
    "instance_type": str,
}


def get_config_path(base: Path | None = None) -> Path:
    """Get the CLI settings file path.

    Returns:
        Path to <config dir>/tptctl.yaml
    """
    return (base or config_dir()) / SETTINGS_FILENAME


def load_config(registry_file: str | Path | None = None) -> CLIConfig:
    """Load CLI configuration.

    Precedence (highest to lowest):
    1. CLI flags (registry_file)
    2. Environment variables
    3. Settings file (<config dir>/tptctl.yaml)
    4. Defaults

    Returns:
        CLIConfig with values and sources
    """
    config = CLIConfig()
    sources: dict[str, str] = {"config_dir": "default", "registry_file": "default"}
    if os.environ.get("THREEPORT_CONFIG_DIR"):
        sources["config_dir"] = "environment"

    for key in SETTABLE_KEYS:
        sources[key] = "default"

    # Load from settings file
    settings_path = get_config_path(config.config_dir)
    if settings_path.exists():
        try:
            with open(settings_path) as f:
                file_config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            file_config = {}  # Unreadable settings fall back to defaults

        for key in SETTABLE_KEYS:
            if key in file_config:
                try:
                    setattr(config, key, _CONVERTERS[key](file_config[key]))
                    sources[key] = "config file"
                except (TypeError, ValueError):
                    pass

    # Override with environment variables
    for key in SETTABLE_KEYS:
        env_value = os.environ.get(ENV_VARS[key])
        if env_value:
            try:
                setattr(config, key, _CONVERTERS[key](env_value))
                sources[key] = "environment"
            except ValueError:
                pass

    if registry_file:
        config.registry_file = Path(registry_file).expanduser()
        sources["registry_file"] = "flag"
    elif os.environ.get(ENV_VARS["registry_file"]):
        config.registry_file = Path(os.environ[ENV_VARS["registry_file"]]).expanduser()
        sources["registry_file"] = "environment"

    config._sources = sources
    return config


def save_config(key: str, value: Any, base: Path | None = None) -> None:
    """Save a config value to the settings file.

    Args:
        key: Config key (one of SETTABLE_KEYS)
        value: Value to save

    Raises:
        ValueError: If the key is unknown or the value does not convert.
    """
    if key not in SETTABLE_KEYS:
        raise ValueError(f"Unknown config key: {key}")
    converted = _CONVERTERS[key](value)

    config_path = get_config_path(base)

    # Load existing config
    existing: dict[str, Any] = {}
    if config_path.exists():
        try:
            with open(config_path) as f:
                existing = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError):
            existing = {}

    existing[key] = converted

    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w") as f:
        yaml.dump(existing, f, default_flow_style=False)


def unset_config(key: str, base: Path | None = None) -> bool:
    """Remove a config value from the settings file.

    Args:
        key: Config key to remove

    Returns:
        True if key was removed, False if not found
    """
    config_path = get_config_path(base)
    if not config_path.exists():
        return False

    try:
        with open(config_path) as f:
            existing = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return False

    if key not in existing:
        return False

    del existing[key]

    with open(config_path, "w") as f:
        yaml.dump(existing, f, default_flow_style=False)

    return True
