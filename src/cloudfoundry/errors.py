"""
Cloud Foundry errors - Exception hierarchy shared by the client and reconcilers.

NotFoundError is the only class the reconcilers convert into state (a missing
record); every other error is fatal for the operation that raised it.
"""

from typing import Optional


class CloudFoundryError(Exception):
    """Base class for all buildpack management errors."""


class NotFoundError(CloudFoundryError):
    """No remote record matched the requested name or GUID."""


class TransportError(CloudFoundryError):
    """A remote call failed (network, auth, validation or server error)."""

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.status = status
        self.error_code = error_code


class LocalResolutionError(CloudFoundryError):
    """A local artifact path could not be resolved, read or packaged."""
