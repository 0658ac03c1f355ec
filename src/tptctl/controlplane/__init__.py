"""Control plane lifecycle: providers, installer, registrar and orchestrator."""

from .control_plane import ControlPlane
from .orchestrator import LifecycleOrchestrator

__all__ = ["ControlPlane", "LifecycleOrchestrator"]
