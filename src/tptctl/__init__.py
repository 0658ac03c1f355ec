"""tptctl - install and manage Threeport control planes."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tptctl")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for source checkouts without metadata

__all__ = ["__version__"]
