"""
Buildpack Reconciler - Converges Cloud Foundry buildpacks onto desired state.

Creates buildpacks that are missing, adopts ones that already exist under the
same name, updates changed fields with a single full-record update and
re-uploads the bits whenever the filename derived from the desired path
differs from the one the Cloud Controller reports.
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import BinaryIO, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from artifacts import generate_filename
from caching import BuildpackCache
from cloudfoundry.client import BuildpackClient
from cloudfoundry.errors import NotFoundError
from cloudfoundry.models import Buildpack
from reconcilers.base import ReconcileAction, ResourceReconciler, ResourceState

logger = logging.getLogger(__name__)

# Fields compared between observed and desired records.
TRACKED_FIELDS = ("locked", "enabled", "name", "position")


class BuildpackSpec(BaseModel):
    """Desired state of a buildpack."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Buildpack name (cannot be changed in place)")
    path: str = Field(
        default="", description="Directory, zip file or URL of the buildpack bits"
    )
    position: int = Field(default=1, ge=0, description="Detection order")
    enabled: bool = Field(default=True, description="Use during staging")
    locked: bool = Field(default=False, description="Prevent bit updates")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


class CreateOutcome(Enum):
    """How create() obtained its remote record."""

    CREATED = "created"
    ADOPTED = "adopted"


@dataclass
class BuildpackDiff:
    """Differences between an observed and a desired buildpack."""

    fields_changed: List[str] = field(default_factory=list)
    artifact_changed: bool = False

    @property
    def has_changes(self) -> bool:
        return bool(self.fields_changed) or self.artifact_changed


@dataclass
class BuildpackPlan:
    """What a reconcile pass would do, computed without remote writes."""

    action: str
    name: str
    guid: str = ""
    diff: BuildpackDiff = field(default_factory=BuildpackDiff)


def compute_diff(observed: Buildpack, desired: Buildpack) -> BuildpackDiff:
    """
    Compare an observed buildpack against the desired one.

    Optional fields are compared by value, so None only equals None.
    An empty desired filename disables artifact comparison.
    """
    fields_changed = [
        name
        for name in TRACKED_FIELDS
        if getattr(observed, name) != getattr(desired, name)
    ]
    artifact_changed = bool(desired.filename) and desired.filename != observed.filename
    return BuildpackDiff(fields_changed=fields_changed, artifact_changed=artifact_changed)


class BuildpackReconciler(ResourceReconciler):
    """
    Reconciler for Cloud Foundry buildpacks.

    Lookups by GUID go through the shared BuildpackCache; the cache is not
    invalidated here, callers that wrote decide when to refresh it.
    """

    def __init__(self, client: BuildpackClient, cache: BuildpackCache):
        self.client = client
        self.cache = cache

    @property
    def resource_type(self) -> str:
        return "buildpack"

    async def exists(self, spec: BuildpackSpec, state: ResourceState) -> bool:
        return await self._find_existing(spec.name, state) is not None

    async def create(
        self, spec: BuildpackSpec, state: ResourceState
    ) -> ReconcileAction:
        desired = self._desired_record(spec, state)

        observed = await self._find_existing(spec.name, state)
        packaged = None
        if observed is None and desired.filename:
            # Bits must resolve before the record exists remotely.
            packaged = await self.client.package_artifact(spec.path)

        try:
            if observed is not None:
                logger.info(
                    f"Skipping creation of buildpack {spec.name} because it "
                    f"already exists on {self.client.identity}"
                )
                cached = await self.cache.find_by_guid(self.client, state.id)
                if cached is not None:
                    observed = cached
                outcome = CreateOutcome.ADOPTED
            else:
                observed = await self.client.create(
                    desired.name, desired.position, desired.enabled, desired.locked
                )
                state.id = observed.guid
                outcome = CreateOutcome.CREATED

            desired.guid = observed.guid
            await self.converge(observed, desired, spec.path, packaged)
        finally:
            if packaged is not None:
                packaged[0].close()
        self._write_state(spec, desired, state)

        if outcome == CreateOutcome.ADOPTED:
            return ReconcileAction.ADOPTED
        return ReconcileAction.CREATED

    async def read(self, spec: BuildpackSpec, state: ResourceState) -> None:
        observed = await self.cache.find_by_guid(self.client, state.id)
        if observed is None:
            self._forget(spec, state)
            return

        state.attributes.update(
            {
                "name": observed.name,
                "path": spec.path,
                "filename": observed.filename if spec.path else "",
                "position": observed.position,
                "enabled": observed.enabled,
                "locked": observed.locked,
            }
        )

    async def update(
        self, spec: BuildpackSpec, state: ResourceState
    ) -> ReconcileAction:
        desired = self._desired_record(spec, state)

        observed = await self.cache.find_by_guid(self.client, state.id)
        if observed is None:
            self._forget(spec, state)
            return ReconcileAction.UNCHANGED

        diff = await self.converge(observed, desired, spec.path)
        self._write_state(spec, desired, state)
        if diff.has_changes:
            return ReconcileAction.UPDATED
        return ReconcileAction.UNCHANGED

    async def delete(self, state: ResourceState) -> None:
        await self.client.delete(state.id)

    def requires_replacement(self, spec: BuildpackSpec, state: ResourceState) -> bool:
        recorded = state.attributes.get("name")
        return recorded is not None and recorded != spec.name

    async def converge(
        self,
        observed: Buildpack,
        desired: Buildpack,
        path: str,
        packaged: Optional[Tuple[BinaryIO, int]] = None,
    ) -> BuildpackDiff:
        """
        Write the minimal changes that turn observed into desired.

        Any changed tracked field triggers one update carrying the whole
        desired record. A changed filename triggers packaging of path and an
        upload bound to desired.guid.

        Args:
            observed: Record as the Cloud Controller reports it
            desired: Record to converge onto
            path: Buildpack path packaged when the artifact changed
            packaged: Already packaged (file, size) to upload instead of path

        Returns:
            The diff that was applied.
        """
        diff = compute_diff(observed, desired)

        if diff.fields_changed:
            logger.info(
                f"Updating buildpack {desired.name}: "
                f"{', '.join(diff.fields_changed)} changed"
            )
            await self.client.update(desired)

        if diff.artifact_changed:
            logger.info(
                f"Uploading {desired.filename} to buildpack {desired.name} "
                f"(was {observed.filename or 'empty'})"
            )
            if packaged is None:
                packaged = await self.client.package_artifact(path)
            artifact, size = packaged
            with artifact:
                logger.debug(f"Packaged {path} ({size} bytes)")
                await self.client.upload(desired, artifact, desired.filename)

        return diff

    async def plan(self, spec: BuildpackSpec, state: ResourceState) -> BuildpackPlan:
        """
        Compute what reconcile() would do without writing anything.

        The passed state is left untouched.
        """
        scratch = copy.deepcopy(state)
        desired = self._desired_record(spec, scratch)

        if scratch.id:
            observed = await self.cache.find_by_guid(self.client, scratch.id)
            if observed is not None:
                desired.guid = observed.guid
                if self.requires_replacement(spec, scratch):
                    return BuildpackPlan(
                        action="replace",
                        name=spec.name,
                        guid=observed.guid,
                        diff=compute_diff(observed, desired),
                    )
                diff = compute_diff(observed, desired)
                return BuildpackPlan(
                    action="update" if diff.has_changes else "none",
                    name=spec.name,
                    guid=observed.guid,
                    diff=diff,
                )
            scratch.clear()

        existing = await self._find_existing(spec.name, scratch)
        if existing is not None:
            desired.guid = existing.guid
            return BuildpackPlan(
                action="adopt",
                name=spec.name,
                guid=existing.guid,
                diff=compute_diff(existing, desired),
            )

        return BuildpackPlan(
            action="create",
            name=spec.name,
            diff=compute_diff(Buildpack(), desired),
        )

    # Private helper methods

    def _desired_record(self, spec: BuildpackSpec, state: ResourceState) -> Buildpack:
        """Build the desired record, resolving the artifact filename first."""
        filename = generate_filename(spec.path) if spec.path else ""
        return Buildpack(
            guid=state.id,
            name=spec.name,
            filename=filename,
            position=spec.position,
            enabled=spec.enabled,
            locked=spec.locked,
        )

    async def _find_existing(
        self, name: str, state: ResourceState
    ) -> Optional[Buildpack]:
        """Look up a buildpack by name, recording its GUID on a match."""
        try:
            buildpack = await self.client.find_by_name(name)
        except NotFoundError:
            return None
        state.id = buildpack.guid
        return buildpack

    def _write_state(
        self, spec: BuildpackSpec, desired: Buildpack, state: ResourceState
    ) -> None:
        state.attributes = {
            "name": desired.name,
            "path": spec.path,
            "filename": desired.filename,
            "position": desired.position,
            "enabled": desired.enabled,
            "locked": desired.locked,
        }

    def _forget(self, spec: BuildpackSpec, state: ResourceState) -> None:
        logger.warning(
            f"Removing buildpack {spec.name} from state because it no longer "
            f"exists on {self.client.identity}"
        )
        state.clear()
