"""Error hierarchy for tptctl.

Every failure of a lifecycle operation surfaces as a TptctlError subclass
carrying a human-readable message and, where there is one, the triggering
cause. The CLI prints these and exits non-zero; nothing is retried.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path


class TptctlError(Exception):
    """Base exception for all tptctl errors."""

    def __init__(self, message: str, cause: BaseException | None = None):
        self.message = message
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


# -----------------------------------------------------------------------------
# Validation
# -----------------------------------------------------------------------------


class ValidationError(TptctlError):
    """Raised before any side effect when inputs are invalid."""


class DuplicateInstanceError(ValidationError):
    """Raised when creating an instance whose name is already registered."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(
            f"instance of Threeport with name {name} already exists "
            "(use --force-overwrite-config to overwrite the existing config)"
        )


class InstanceNotFoundError(TptctlError):
    """Raised when an instance name is not present in the registry."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"config for threeport instance with name {name} not found")


class ToolNotInstalledError(TptctlError):
    """Raised when a required tool (kind, kubectl, aws) is not installed."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(f"{tool_name} is not installed (or not in your PATH)")


# -----------------------------------------------------------------------------
# Provisioning
# -----------------------------------------------------------------------------


class ResourcesState(Enum):
    """How much external infrastructure a failed provisioning step left behind."""

    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"
    UNKNOWN = "unknown"


_RESOURCES_NOTE = {
    ResourcesState.NONE: "no external resources remain",
    ResourcesState.PARTIAL: "some external resources were created",
    ResourcesState.FULL: "the cluster was created and is left running",
    ResourcesState.UNKNOWN: "external resources may have been created",
}


class ProvisioningError(TptctlError):
    """Raised when a provider fails to create or delete its cluster."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        resources: ResourcesState = ResourcesState.UNKNOWN,
    ):
        self.resources = resources
        super().__init__(f"{message} ({_RESOURCES_NOTE[resources]})", cause)


class CompensationError(ProvisioningError):
    """Raised when creation failed and the compensating deletion failed too.

    The inventory file is left on disk so a later delete can still find the
    leftover resources.
    """

    def __init__(
        self,
        create_error: BaseException,
        delete_error: BaseException,
        inventory_path: Path | None = None,
    ):
        self.create_error = create_error
        self.delete_error = delete_error
        self.inventory_path = inventory_path
        message = (
            f"error creating resources: {create_error}; "
            f"error deleting resources: {delete_error}"
        )
        if inventory_path is not None:
            message += f"; inventory kept at {inventory_path}"
        super().__init__(message, None, ResourcesState.PARTIAL)


# -----------------------------------------------------------------------------
# Post-provisioning
# -----------------------------------------------------------------------------


class CredentialError(TptctlError):
    """Raised when credentials cannot be extracted from a kubeconfig."""


class ClusterNotFoundError(CredentialError):
    """No kubeconfig cluster entry matches the current context."""

    def __init__(self, context: str):
        self.context = context
        super().__init__(
            f"failed to get Kubernetes cluster CA and endpoint: "
            f"cluster config {context!r} not found in kubeconfig"
        )


class ClusterCANotFoundError(CredentialError):
    """The matching cluster entry carries no certificate authority."""

    def __init__(self, context: str):
        self.context = context
        super().__init__(
            f"failed to get Kubernetes cluster CA: "
            f"cluster config {context!r} has no certificate authority data"
        )


class UserCredentialsNotFoundError(CredentialError):
    """No kubeconfig user entry with client credentials matches the current context."""

    def __init__(self, context: str, detail: str = "not found"):
        self.context = context
        super().__init__(
            f"failed to get user credentials to Kubernetes cluster: "
            f"kubeconfig user {context!r} {detail}"
        )


class InstallError(TptctlError):
    """Raised when applying or deleting a manifest set fails."""

    def __init__(self, step: str, cause: BaseException | str | None = None):
        self.step = step
        if isinstance(cause, str):
            super().__init__(f"failed to install {step}: {cause}")
        else:
            super().__init__(f"failed to install {step}", cause)


class RegistrationError(TptctlError):
    """Raised when the control-plane API rejects a registration call."""

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        status_code: int | None = None,
    ):
        self.status_code = status_code
        super().__init__(message, cause)


# -----------------------------------------------------------------------------
# Local I/O
# -----------------------------------------------------------------------------


class LocalIOError(TptctlError):
    """Raised when a registry, inventory or kubeconfig file cannot be read or written."""

    def __init__(self, message: str, path: Path | str, cause: BaseException | None = None):
        self.path = Path(path)
        super().__init__(f"{message} ({self.path})", cause)
