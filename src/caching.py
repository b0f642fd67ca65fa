"""
Buildpack Cache - Per-client snapshot of the remote buildpack collection.

Lookups by GUID or name are served from a single full list() call per client
identity. Entries are not refreshed when reconcilers write; callers that know
they changed the collection call invalidate(), and an optional TTL bounds how
long a snapshot is served.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Dict, List, Optional

from cloudfoundry.client import BuildpackClient
from cloudfoundry.models import Buildpack

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached collection snapshot."""

    buildpacks: List[Buildpack]
    fetched_at: float


class BuildpackCache:
    """
    Cache of buildpack collections keyed by client identity.

    Safe for concurrent use from multiple coroutines: fetches for the same
    identity are serialized so only one list() call populates an entry.
    """

    def __init__(self, ttl: Optional[float] = None):
        self.ttl = ttl
        self._entries: Dict[str, CacheEntry] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get_buildpacks(self, client: BuildpackClient) -> List[Buildpack]:
        """
        Get the buildpack collection for a client, listing it on a miss.

        Args:
            client: The client whose identity keys the entry

        Returns:
            The cached (possibly stale) buildpack list.
        """
        identity = client.identity
        lock = self._locks.setdefault(identity, asyncio.Lock())

        async with lock:
            entry = self._entries.get(identity)
            if entry is not None and not self._expired(entry):
                logger.debug(f"Buildpack cache hit for {identity}")
                return entry.buildpacks

            buildpacks = await client.list()
            self._entries[identity] = CacheEntry(
                buildpacks=buildpacks, fetched_at=time.monotonic()
            )
            logger.debug(
                f"Cached {len(buildpacks)} buildpacks for {identity}"
            )
            return buildpacks

    async def find_by_guid(
        self, client: BuildpackClient, guid: str
    ) -> Optional[Buildpack]:
        """Return the cached buildpack with this GUID, or None."""
        for buildpack in await self.get_buildpacks(client):
            if buildpack.guid == guid:
                return buildpack
        return None

    async def find_by_name(
        self, client: BuildpackClient, name: str
    ) -> Optional[Buildpack]:
        """Return the cached buildpack with this name, or None."""
        for buildpack in await self.get_buildpacks(client):
            if buildpack.name == name:
                return buildpack
        return None

    def invalidate(self, identity: Optional[str] = None) -> None:
        """
        Drop cached snapshots.

        Args:
            identity: Client identity to drop; None drops every entry.
        """
        if identity is None:
            self._entries.clear()
            logger.debug("Buildpack cache cleared")
        elif self._entries.pop(identity, None) is not None:
            logger.debug(f"Buildpack cache invalidated for {identity}")

    def _expired(self, entry: CacheEntry) -> bool:
        if self.ttl is None:
            return False
        return time.monotonic() - entry.fetched_at >= self.ttl
