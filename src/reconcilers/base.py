"""
Reconciler Base - Lifecycle contract for declaratively managed resources.

A reconciler implements exists/create/read/update/delete for one resource
kind. The reconcile() and destroy() template methods drive those operations
the way a declarative framework would: create when nothing is recorded,
otherwise refresh and update, re-create records that vanished remotely and
replace records whose immutable attributes changed.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict

from cloudfoundry.errors import CloudFoundryError

logger = logging.getLogger(__name__)


class ReconcileAction(Enum):
    """What a reconcile pass did to the remote resource."""

    CREATED = "created"
    ADOPTED = "adopted"
    UPDATED = "updated"
    REPLACED = "replaced"
    UNCHANGED = "unchanged"
    DELETED = "deleted"


@dataclass
class ReconcileResult:
    """Result from a reconcile() or destroy() call."""

    success: bool = False
    message: str = ""
    action: ReconcileAction = ReconcileAction.UNCHANGED

    @property
    def changed(self) -> bool:
        """True if the pass issued remote writes."""
        return self.success and self.action != ReconcileAction.UNCHANGED


@dataclass
class ResourceState:
    """
    Persisted state of one managed resource.

    id is the remote identifier; an empty id means the resource does not
    exist (never created, or removed out-of-band).
    """

    id: str = ""
    attributes: Dict[str, Any] = field(default_factory=dict)

    def clear(self) -> None:
        """Forget the remote resource."""
        self.id = ""
        self.attributes = {}

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "attributes": dict(self.attributes)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ResourceState":
        return cls(id=data.get("id", ""), attributes=dict(data.get("attributes", {})))


class ResourceReconciler(ABC):
    """
    Abstract base class for resource reconcilers.

    Operations raise CloudFoundryError subclasses on failure and mutate the
    passed ResourceState in place. A missing remote record is reported by
    clearing state.id, never by raising.
    """

    @property
    @abstractmethod
    def resource_type(self) -> str:
        """Name of the resource kind this reconciler manages."""
        pass

    @abstractmethod
    async def exists(self, spec: Any, state: ResourceState) -> bool:
        """
        Check whether the desired resource already exists remotely.

        Sets state.id when a match is found.
        """
        pass

    @abstractmethod
    async def create(self, spec: Any, state: ResourceState) -> ReconcileAction:
        """
        Create the resource, or adopt an existing one with the same identity.

        Returns:
            ReconcileAction.CREATED or ReconcileAction.ADOPTED.
        """
        pass

    @abstractmethod
    async def read(self, spec: Any, state: ResourceState) -> None:
        """Refresh state.attributes from the remote resource."""
        pass

    @abstractmethod
    async def update(self, spec: Any, state: ResourceState) -> ReconcileAction:
        """
        Converge the remote resource onto the desired state.

        Returns:
            ReconcileAction.UPDATED if anything was written, otherwise
            ReconcileAction.UNCHANGED.
        """
        pass

    @abstractmethod
    async def delete(self, state: ResourceState) -> None:
        """Delete the remote resource identified by state.id."""
        pass

    def requires_replacement(self, spec: Any, state: ResourceState) -> bool:
        """
        Whether the desired state changes an attribute that cannot be
        updated in place.

        The default implementation never replaces.
        """
        return False

    async def reconcile(self, spec: Any, state: ResourceState) -> ReconcileResult:
        """
        Drive one reconcile pass for a resource.

        Args:
            spec: The desired state
            state: Persisted state; updated in place

        Returns:
            ReconcileResult describing what happened.
        """
        try:
            if state.id:
                await self.read(spec, state)

            if state.id and self.requires_replacement(spec, state):
                logger.info(
                    f"Replacing {self.resource_type} {state.id}: "
                    f"immutable attributes changed"
                )
                await self.delete(state)
                state.clear()
                await self.create(spec, state)
                action = ReconcileAction.REPLACED
            elif state.id:
                action = await self.update(spec, state)
                if not state.id:
                    action = await self.create(spec, state)
            else:
                action = await self.create(spec, state)
        except CloudFoundryError as e:
            logger.error(f"Failed to reconcile {self.resource_type}: {e}")
            return ReconcileResult(success=False, message=str(e))

        return ReconcileResult(
            success=True,
            message=f"{self.resource_type} {action.value}",
            action=action,
        )

    async def destroy(self, state: ResourceState) -> ReconcileResult:
        """
        Delete a resource and clear its state.

        Resources without an id are already gone and succeed without a
        remote call. On failure the id is kept so the next attempt targets
        the same record.
        """
        if not state.id:
            return ReconcileResult(
                success=True, message=f"{self.resource_type} already absent"
            )

        try:
            await self.delete(state)
        except CloudFoundryError as e:
            logger.error(f"Failed to delete {self.resource_type} {state.id}: {e}")
            return ReconcileResult(success=False, message=str(e))

        state.clear()
        return ReconcileResult(
            success=True,
            message=f"{self.resource_type} deleted",
            action=ReconcileAction.DELETED,
        )
