"""
Cloud Foundry client package.

Provides the buildpack record type, the abstract client interface used by
reconcilers and the error hierarchy. The aiohttp-backed implementation lives
in cloudfoundry.api.
"""

from cloudfoundry.client import BuildpackClient
from cloudfoundry.errors import (
    CloudFoundryError,
    LocalResolutionError,
    NotFoundError,
    TransportError,
)
from cloudfoundry.models import Buildpack

__all__ = [
    "Buildpack",
    "BuildpackClient",
    "CloudFoundryError",
    "LocalResolutionError",
    "NotFoundError",
    "TransportError",
]
