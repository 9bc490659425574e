"""Marketplace user as seen by the payment gate."""

from typing import Any

from pydantic import BaseModel, Field


class MarketplaceUser(BaseModel):
    """Subset of a Sharetribe user record.

    ``metadata`` is the operator-writable profile metadata, the only place
    paid flags are read from.
    """

    id: str
    email: str | None = None
    banned: bool = False
    deleted: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_api_resource(cls, resource: dict[str, Any]) -> "MarketplaceUser":
        """Build from a Sharetribe API ``data`` resource.

        Args:
            resource: ``{"id": ..., "type": "user"|"currentUser", "attributes": {...}}``

        Returns:
            MarketplaceUser with the profile metadata extracted.
        """
        attributes = resource.get("attributes") or {}
        profile = attributes.get("profile") or {}
        raw_id = resource.get("id")
        # The SDKs wrap ids as {"uuid": ...}; the raw HTTP API returns strings
        if isinstance(raw_id, dict):
            raw_id = raw_id.get("uuid")
        return cls(
            id=str(raw_id),
            email=attributes.get("email"),
            banned=attributes.get("banned") is True,
            deleted=attributes.get("deleted") is True,
            metadata=dict(profile.get("metadata") or {}),
        )
