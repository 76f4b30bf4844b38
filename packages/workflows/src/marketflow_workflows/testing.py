"""Test doubles for code built on marketflow workflows.

Example:
    ```python
    api = FakeCollaboratorAPI(entities={"ord-1": {"status": "shipped"}})
    api.fail_next("update_entity_status", "Carrier rejected update")

    recorder = NotificationRecorder()
    notifier = Notifier()
    await recorder.attach(notifier)
    ```
"""

from __future__ import annotations

import asyncio
import copy
import itertools
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from marketflow_common.events import Event, Subscription

from .notifications import Notification, NotificationLevel, Notifier


@dataclass(frozen=True)
class RecordedCall:
    operation: str
    args: tuple[Any, ...] = ()
    kwargs: dict[str, Any] = field(default_factory=dict)


class FakeCollaboratorAPI:
    """In-memory collaborator with scripted failures.

    Every method records its call, then either fails (when a failure was
    scripted with :meth:`fail_next`) or succeeds with a
    ``{"success": True, ...}`` envelope. :meth:`hold` makes an operation
    wait until :meth:`release` so tests can observe in-flight state.

    A scripted failure that is an exception is raised; a string produces a
    ``{"success": False, "message": ...}`` envelope; a mapping is returned
    as is.
    """

    def __init__(self, entities: Mapping[str, Mapping[str, Any]] | None = None):
        self.entities: dict[str, dict[str, Any]] = {
            k: dict(v) for k, v in (entities or {}).items()
        }
        self.memberships: set[str] = set()
        self.cart: dict[str, int] = {}
        self.accounts: dict[str, bool] = {}
        self.calls: list[RecordedCall] = []
        self._failures: dict[str, list[Any]] = {}
        self._gates: dict[str, asyncio.Event] = {}
        self._ids = itertools.count(1)

    # ------------------------------------------------------------------
    # Scripting
    # ------------------------------------------------------------------

    def fail_next(self, operation: str, error: Any = "Request failed") -> None:
        self._failures.setdefault(operation, []).append(error)

    def hold(self, operation: str) -> None:
        self._gates[operation] = asyncio.Event()

    def release(self, operation: str) -> None:
        gate = self._gates.pop(operation, None)
        if gate is not None:
            gate.set()

    def calls_for(self, operation: str) -> list[RecordedCall]:
        return [c for c in self.calls if c.operation == operation]

    async def _enter(self, operation: str, *args: Any, **kwargs: Any) -> Mapping[str, Any] | None:
        self.calls.append(RecordedCall(operation, args, kwargs))
        gate = self._gates.get(operation)
        if gate is not None:
            await gate.wait()
        queued = self._failures.get(operation)
        if not queued:
            return None
        error = queued.pop(0)
        if isinstance(error, BaseException):
            raise error
        if isinstance(error, Mapping):
            return error
        return {"success": False, "message": str(error)}

    # ------------------------------------------------------------------
    # CollaboratorAPI
    # ------------------------------------------------------------------

    async def fetch_entity_detail(self, entity_id: str) -> Mapping[str, Any]:
        failure = await self._enter("fetch_entity_detail", entity_id)
        if failure is not None:
            return failure
        if entity_id not in self.entities:
            return {"success": False, "message": f"Entity {entity_id} not found"}
        return {"success": True, "data": {"id": entity_id, **copy.deepcopy(self.entities[entity_id])}}

    async def create_entity(self, payload: Mapping[str, Any]) -> Mapping[str, Any]:
        failure = await self._enter("create_entity", copy.deepcopy(dict(payload)))
        if failure is not None:
            return failure
        entity_id = f"ent-{next(self._ids)}"
        self.entities[entity_id] = copy.deepcopy(dict(payload))
        return {"success": True, "data": {"id": entity_id, **copy.deepcopy(dict(payload))}}

    async def update_entity_status(
        self, entity_id: str, update: Mapping[str, Any]
    ) -> Mapping[str, Any]:
        failure = await self._enter("update_entity_status", entity_id, dict(update))
        if failure is not None:
            return failure
        self.entities.setdefault(entity_id, {})["status"] = update["status"]
        return {"success": True, "data": {"id": entity_id, "status": update["status"]}}

    async def toggle_membership(self, entity_id: str, add: bool) -> Mapping[str, Any]:
        failure = await self._enter("toggle_membership", entity_id, add)
        if failure is not None:
            return failure
        if add:
            self.memberships.add(entity_id)
        else:
            self.memberships.discard(entity_id)
        return {"success": True, "data": {"items": sorted(self.memberships)}}

    async def set_account_active(
        self, entity_id: str, active: bool, reason: str
    ) -> Mapping[str, Any]:
        failure = await self._enter("set_account_active", entity_id, active, reason)
        if failure is not None:
            return failure
        self.accounts[entity_id] = active
        return {"success": True, "data": {"id": entity_id, "isActive": active}}

    async def add_to_cart(self, entity_id: str, quantity: int) -> Mapping[str, Any]:
        failure = await self._enter("add_to_cart", entity_id, quantity)
        if failure is not None:
            return failure
        self.cart[entity_id] = self.cart.get(entity_id, 0) + quantity
        return {"success": True, "data": {"items": dict(self.cart)}}

    async def delete_entity(self, entity_id: str) -> Mapping[str, Any]:
        failure = await self._enter("delete_entity", entity_id)
        if failure is not None:
            return failure
        self.entities.pop(entity_id, None)
        return {"success": True, "message": "Deleted"}


class NotificationRecorder:
    """Collects notifications published on a notifier's topic."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []
        self._subscription: Subscription | None = None

    async def attach(self, notifier: Notifier) -> NotificationRecorder:
        if not getattr(notifier.bus, "connected", True):
            await notifier.bus.connect()
        self._subscription = await notifier.bus.subscribe(notifier.topic, self._record)
        return self

    async def detach(self) -> None:
        if self._subscription is not None:
            await self._subscription.cancel()
            self._subscription = None

    async def _record(self, event: Event) -> None:
        self.notifications.append(Notification.from_dict(event.payload))

    @property
    def messages(self) -> list[str]:
        return [n.message for n in self.notifications]

    @property
    def errors(self) -> list[Notification]:
        return [n for n in self.notifications if n.level is NotificationLevel.ERROR]

    @property
    def successes(self) -> list[Notification]:
        return [n for n in self.notifications if n.level is NotificationLevel.SUCCESS]

    def clear(self) -> None:
        self.notifications.clear()
