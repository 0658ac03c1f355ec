"""Shared modules for tptctl.

This module provides functionality used across all commands:
- Paths (config directory layout)
- Logging (structlog setup)
"""

from .logging import configure_logging, get_logger, level_for_verbosity
from .paths import THREEPORT_DIR, config_dir, ensure_dirs

__all__ = [
    # Paths
    "THREEPORT_DIR",
    "config_dir",
    "ensure_dirs",
    # Logging
    "configure_logging",
    "get_logger",
    "level_for_verbosity",
]
