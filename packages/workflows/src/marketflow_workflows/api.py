"""Collaborator API boundary.

The remote marketplace API is not part of this package. The engines talk to
anything satisfying :class:`CollaboratorAPI`; every method returns the raw
``{"success": bool, ...}`` envelope, which the engines decode with
:func:`marketflow_workflows.results.decode_response`. Transport details
(HTTP, auth headers, timeouts) belong to the implementation.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class StatusUpdate:
    """Body of a status update request.

    Attributes:
        status: Target lifecycle state
        note: Free-text note recorded with the change
        tracking_ref: Carrier tracking reference, sent only when present
    """

    status: str
    note: str = ""
    tracking_ref: str | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"status": self.status, "note": self.note}
        if self.tracking_ref:
            body["trackingRef"] = self.tracking_ref
        return body

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> StatusUpdate:
        return cls(
            status=data["status"],
            note=data.get("note", ""),
            tracking_ref=data.get("trackingRef"),
        )


@runtime_checkable
class CollaboratorAPI(Protocol):
    """Operations the engines call on the remote marketplace API."""

    async def fetch_entity_detail(self, entity_id: str) -> Mapping[str, Any]:
        ...

    async def create_entity(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        ...

    async def update_entity_status(
        self, entity_id: str, update: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        ...

    async def toggle_membership(self, entity_id: str, add: bool) -> Mapping[str, Any]:
        ...

    async def set_account_active(
        self, entity_id: str, active: bool, reason: str
    ) -> Mapping[str, Any]:
        ...

    async def add_to_cart(self, entity_id: str, quantity: int) -> Mapping[str, Any]:
        ...

    async def delete_entity(self, entity_id: str) -> Mapping[str, Any]:
        ...
