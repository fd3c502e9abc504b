"""Custom exceptions for the image builder workflow and registry monitoring."""

from __future__ import annotations

from typing import Any


class DashboardError(Exception):
    """Base exception for client-side failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationFailure(DashboardError):
    """Raised when user input is rejected before anything is sent to the network."""

    def __init__(self, message: str, title: str = "Invalid Selection"):
        super().__init__(message)
        self.title = title


class ComparisonModeConflict(ValidationFailure):
    """Raised when a control of the inactive comparison mode is used."""


class UnbuildableServiceError(ValidationFailure):
    """Raised when selecting a changed service that has no Dockerfile."""


class NetworkFailure(DashboardError):
    """Raised when a request or channel could not complete."""


class BackendRejection(NetworkFailure):
    """
    Raised for non-2xx responses.

    `message` is the backend's own error text when the body carried one,
    otherwise the per-operation fallback.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
        payload: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.payload = payload


class ProtocolFailure(DashboardError):
    """Raised when a payload or frame does not have the expected shape."""


class RegistryOffline(ValidationFailure):
    """Raised when an image action targets a registry whose monitor is not connected."""

    def __init__(self, registry_id: int):
        super().__init__(f"Registry {registry_id} is not connected", title="Registry is offline")
        self.registry_id = registry_id
