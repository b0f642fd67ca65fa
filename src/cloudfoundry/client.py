"""
Buildpack Client - Abstract interface to the remote buildpack collection.

Reconcilers only talk to the platform through this interface, so tests and
alternative transports can provide their own implementation.
"""

from abc import ABC, abstractmethod
from typing import BinaryIO, List, Tuple

from cloudfoundry.models import Buildpack


class BuildpackClient(ABC):
    """
    Abstract base class for buildpack API clients.

    Implementations raise NotFoundError when a lookup matches nothing,
    TransportError for any other remote failure and LocalResolutionError
    when a local artifact cannot be packaged.
    """

    @property
    @abstractmethod
    def identity(self) -> str:
        """Stable key identifying the endpoint and credentials in use."""
        pass

    @abstractmethod
    async def list(self) -> List[Buildpack]:
        """
        Fetch the full buildpack collection.

        Returns:
            Every buildpack visible to the client.
        """
        pass

    @abstractmethod
    async def find_by_name(self, name: str) -> Buildpack:
        """
        Look up a buildpack by name.

        Args:
            name: The buildpack name

        Returns:
            The matching buildpack.

        Raises:
            NotFoundError: If no buildpack has this name.
        """
        pass

    @abstractmethod
    async def create(
        self, name: str, position: int, enabled: bool, locked: bool
    ) -> Buildpack:
        """
        Create a buildpack without bits.

        Returns:
            The created buildpack, including its GUID.
        """
        pass

    @abstractmethod
    async def update(self, buildpack: Buildpack) -> Buildpack:
        """
        Replace the mutable fields of an existing buildpack.

        Args:
            buildpack: Full desired record; guid selects the target.

        Returns:
            The buildpack as stored remotely.
        """
        pass

    @abstractmethod
    async def delete(self, guid: str) -> None:
        """Delete the buildpack with the given GUID."""
        pass

    @abstractmethod
    async def package_artifact(self, path: str) -> Tuple[BinaryIO, int]:
        """
        Package a local path or URL into an uploadable archive.

        Args:
            path: Directory, zip file or web URL

        Returns:
            Tuple of (open binary file, size in bytes). The caller closes it.
        """
        pass

    @abstractmethod
    async def upload(
        self, buildpack: Buildpack, artifact: BinaryIO, filename: str
    ) -> None:
        """
        Upload buildpack bits.

        Args:
            buildpack: Target buildpack (guid must be set)
            artifact: Open binary file from package_artifact()
            filename: Filename to record remotely
        """
        pass
