"""
Buildpack records exchanged with the Cloud Controller.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass
class Buildpack:
    """
    A buildpack record as seen on (or sent to) the Cloud Controller.

    position, enabled and locked are Optional so that "unset" stays distinct
    from False/0.
    """

    guid: str = ""
    name: str = ""
    filename: str = ""
    position: Optional[int] = None
    enabled: Optional[bool] = None
    locked: Optional[bool] = None

    @classmethod
    def from_api(cls, resource: Dict[str, Any]) -> "Buildpack":
        """
        Build a record from a v2 API resource.

        Args:
            resource: Dict with "metadata" and "entity" keys.

        Returns:
            A new Buildpack instance.
        """
        metadata = resource.get("metadata") or {}
        entity = resource.get("entity") or {}
        return cls(
            guid=metadata.get("guid", ""),
            name=entity.get("name", ""),
            filename=entity.get("filename") or "",
            position=entity.get("position"),
            enabled=entity.get("enabled"),
            locked=entity.get("locked"),
        )

    def to_request(self) -> Dict[str, Any]:
        """Return the mutable fields as a create/update request body."""
        body: Dict[str, Any] = {"name": self.name}
        for key in ("position", "enabled", "locked"):
            value = getattr(self, key)
            if value is not None:
                body[key] = value
        return body
