"""Path management for tptctl.

Manages the ~/.config/threeport/ directory that holds the instance registry,
per-instance kubeconfigs and cloud resource inventories.
"""

import os
from pathlib import Path

# Base directory for all threeport data
THREEPORT_DIR = Path.home() / ".config" / "threeport"


def config_dir() -> Path:
    """Resolve the provider config directory.

    THREEPORT_CONFIG_DIR overrides the default so tests and CI runs
    can keep kubeconfigs and inventories out of the user's home.
    """
    override = os.environ.get("THREEPORT_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return THREEPORT_DIR


def ensure_dirs(base: Path | None = None) -> Path:
    """Create the config directory if missing.

    Mode 0o700: kubeconfigs in here carry cluster-admin credentials.

    Returns:
        The directory that was ensured.
    """
    target = base or config_dir()
    target.mkdir(mode=0o700, parents=True, exist_ok=True)
    return target
