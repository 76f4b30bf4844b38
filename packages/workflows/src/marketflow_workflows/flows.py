"""Page-level flows built on the engines.

Each controller owns one piece of local state (saved items, a cart, an
inventory list), changes it through the optimistic mutator, and reports
back with an :class:`Outcome`.
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from marketflow_common.exceptions import NotFoundError, SerializationError, ValidationError

from .api import CollaboratorAPI
from .lifecycle import LifecycleDefinition, LifecycleEntity
from .mutator import MutationIntent, OptimisticMutator
from .persistence import DraftStore, InMemoryKeyValueStore, KeyValueStore
from .results import Failure, Outcome, Result, Success, decode_response
from .settings import WorkflowSettings
from .wizard import WizardController

logger = logging.getLogger(__name__)


class _Flow:
    def __init__(
        self,
        api: CollaboratorAPI,
        mutator: OptimisticMutator | None = None,
        settings: WorkflowSettings | None = None,
    ):
        self._api = api
        self._mutator = mutator or OptimisticMutator(settings=settings)
        self._settings = settings or self._mutator.settings

    @property
    def mutator(self) -> OptimisticMutator:
        return self._mutator

    def is_pending(self, entity_id: str) -> bool:
        return self._mutator.is_pending(entity_id)

    async def _reject(self, entity_id: str, error: ValidationError | NotFoundError) -> Outcome[Any]:
        await self._mutator.notifier.error(error.message, entity_id=entity_id)
        return Outcome(success=False, entity_id=entity_id, error=error, message=error.message)


class WishlistController(_Flow):
    """Saved-item membership, mirrored into a key-value store.

    Args:
        api: Collaborator API
        store: Persists the saved ids under ``settings.saved_items_key``
        mutator: Shared optimistic mutator
        settings: Messages and keys
    """

    def __init__(
        self,
        api: CollaboratorAPI,
        store: KeyValueStore | None = None,
        mutator: OptimisticMutator | None = None,
        settings: WorkflowSettings | None = None,
    ):
        super().__init__(api, mutator, settings)
        self._store = store if store is not None else InMemoryKeyValueStore()
        self._saved: set[str] = set(self._store.get(self._settings.saved_items_key, []) or [])

    @property
    def saved_ids(self) -> frozenset[str]:
        return frozenset(self._saved)

    def is_saved(self, product_id: str) -> bool:
        return product_id in self._saved

    def _set_saved(self, product_id: str, saved: bool) -> None:
        if saved:
            self._saved.add(product_id)
        else:
            self._saved.discard(product_id)
        self._store.set(self._settings.saved_items_key, sorted(self._saved))

    async def toggle(self, product_id: str) -> Outcome[bool]:
        """Flip membership; the outcome's ``value`` is the membership after resolution."""
        return await self._change(product_id, not self.is_saved(product_id))

    async def add(self, product_id: str) -> Outcome[bool]:
        if self.is_saved(product_id):
            return Outcome(success=True, entity_id=product_id, value=True)
        return await self._change(product_id, True)

    async def remove(self, product_id: str) -> Outcome[bool]:
        if not self.is_saved(product_id):
            return Outcome(success=True, entity_id=product_id, value=False)
        return await self._change(product_id, False)

    async def _change(self, product_id: str, add: bool) -> Outcome[bool]:
        api = self._api

        async def remote_call() -> Any:
            return await api.toggle_membership(product_id, add)

        intent = MutationIntent.create(
            product_id,
            self.is_saved(product_id),
            add,
            lambda saved: self._set_saved(product_id, saved),
            remote_call,
            on_success_message="Added to wishlist" if add else "Removed from wishlist",
            on_failure_message="Failed to update wishlist",
        )
        return await self._mutator.execute(intent)


class CartController(_Flow):
    """Cart quantities per product."""

    def __init__(
        self,
        api: CollaboratorAPI,
        mutator: OptimisticMutator | None = None,
        settings: WorkflowSettings | None = None,
        items: Mapping[str, int] | None = None,
    ):
        super().__init__(api, mutator, settings)
        self._items: dict[str, int] = dict(items or {})

    @property
    def items(self) -> dict[str, int]:
        return dict(self._items)

    @property
    def total_quantity(self) -> int:
        return sum(self._items.values())

    def quantity_of(self, product_id: str) -> int:
        return self._items.get(product_id, 0)

    async def add(self, product_id: str, quantity: int = 1) -> Outcome[Any]:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            return await self._reject(
                product_id,
                ValidationError(
                    "Quantity must be a positive whole number",
                    context={"errors": {"quantity": "Quantity must be a positive whole number"}},
                ),
            )

        api = self._api

        async def remote_call() -> Any:
            return await api.add_to_cart(product_id, quantity)

        intent = MutationIntent.for_key(
            self._items,
            product_id,
            self.quantity_of(product_id) + quantity,
            remote_call,
            entity_id=product_id,
            on_success_message="Added to cart",
            on_failure_message="Failed to add to cart",
        )
        return await self._mutator.execute(intent)


class InventoryListController(_Flow):
    """A supplier's inventory list with optimistic create and delete.

    Each intent adds or removes exactly one item, so a rollback never
    rewrites items owned by other in-flight intents.

    Args:
        api: Collaborator API
        items: Initial list; each item needs an ``id``
        drafts: Where :meth:`save_draft` keeps unsubmitted wizards. A bare
            key-value store is wrapped in a :class:`DraftStore` keyed by
            ``settings.draft_key``.
        mutator: Shared optimistic mutator
        settings: Messages and keys
    """

    def __init__(
        self,
        api: CollaboratorAPI,
        items: Iterable[Mapping[str, Any]] = (),
        *,
        drafts: DraftStore | KeyValueStore | None = None,
        mutator: OptimisticMutator | None = None,
        settings: WorkflowSettings | None = None,
    ):
        super().__init__(api, mutator, settings)
        self._items: list[dict[str, Any]] = [dict(item) for item in items]
        if drafts is None or isinstance(drafts, DraftStore):
            self._drafts = drafts
        else:
            self._drafts = DraftStore.from_settings(drafts, self._settings)

    @property
    def items(self) -> list[dict[str, Any]]:
        return copy.deepcopy(self._items)

    @property
    def drafts(self) -> DraftStore | None:
        return self._drafts

    def find(self, item_id: str) -> dict[str, Any] | None:
        for item in self._items:
            if item.get("id") == item_id:
                return copy.deepcopy(item)
        return None

    def _index_of(self, item: dict[str, Any]) -> int | None:
        for index, listed in enumerate(self._items):
            if listed is item:
                return index
        return None

    def _presence(self, item: dict[str, Any], index: int) -> Callable[[bool], None]:
        """Local writer that lists or unlists one item object.

        A reinserted item goes back to ``index``, clamped to the list length.
        """

        def apply_local(present: bool) -> None:
            current = self._index_of(item)
            if present and current is None:
                self._items.insert(min(index, len(self._items)), item)
            elif not present and current is not None:
                del self._items[current]

        return apply_local

    async def delete(self, item_id: str) -> Outcome[Any]:
        """Unlist an item, then delete it remotely.

        The outcome's ``value`` is whether the item is listed after resolution.
        """
        index = next((i for i, item in enumerate(self._items) if item.get("id") == item_id), None)
        if index is None:
            return await self._reject(
                item_id, NotFoundError(f"Inventory item not found: {item_id}", context={"id": item_id})
            )

        api = self._api

        async def remote_call() -> Any:
            return await api.delete_entity(item_id)

        intent = MutationIntent.create(
            item_id,
            True,
            False,
            self._presence(self._items[index], index),
            remote_call,
            on_success_message="Inventory item deleted",
            on_failure_message="Failed to delete inventory item",
        )
        return await self._mutator.execute(intent)

    async def create(self, wizard: WizardController) -> Outcome[Any]:
        """Submit a wizard and show the new item before the server confirms it.

        The item is listed first under a placeholder id. On success it is
        replaced by the server's record (when the response carries one) and
        the wizard is reset; on failure only the placeholder is removed and
        the wizard keeps its data.
        """
        prepared = wizard.prepare_submission()
        if isinstance(prepared, ValidationError):
            return await self._reject(wizard.name, prepared)

        api = self._api
        payload = prepared

        async def remote_call() -> Any:
            return await api.create_entity(payload)

        placeholder = {**copy.deepcopy(payload), "id": f"pending-{uuid.uuid4().hex[:12]}"}
        intent = MutationIntent.create(
            wizard.name,
            False,
            True,
            self._presence(placeholder, 0),
            remote_call,
            on_success_message="Inventory item added successfully",
            on_failure_message="Failed to add inventory item",
        )

        outcome = await self._mutator.execute(intent)
        if outcome.success:
            record = outcome.data.get("item", outcome.data) if isinstance(outcome.data, Mapping) else None
            index = self._index_of(placeholder)
            if isinstance(record, Mapping) and record.get("id") and index is not None:
                self._items[index] = dict(record)
            wizard.reset()
        return outcome

    async def save_draft(self, wizard: WizardController) -> dict[str, Any]:
        """Store the wizard's form data as a draft.

        Raises:
            NotFoundError: If the controller has no draft store
        """
        if self._drafts is None:
            raise NotFoundError("No draft store configured", context={"wizard": wizard.name})
        draft = wizard.save_draft(self._drafts)
        await self._mutator.notifier.success("Inventory item saved as draft", entity_id=draft["id"])
        return draft


async def fetch_lifecycle_entity(
    api: CollaboratorAPI,
    entity_id: str,
    definition: LifecycleDefinition,
    *,
    entity_cls: type[LifecycleEntity] = LifecycleEntity,
    record_key: str | None = None,
    settings: WorkflowSettings | None = None,
) -> Result[LifecycleEntity]:
    """Fetch an entity's detail and wrap it for its lifecycle.

    Args:
        api: Collaborator API
        entity_id: Entity to fetch
        definition: Lifecycle the record's ``status`` belongs to
        entity_cls: Entity class to build
        record_key: Key of the record inside the response data (e.g.
            ``"order"``); ``None`` when the data is the record
        settings: Fallback messages

    Returns:
        ``Success`` with the entity, or ``Failure`` when the call fails or
        the record cannot be read
    """
    fallback = (settings or WorkflowSettings()).generic_failure_message
    try:
        raw = await api.fetch_entity_detail(entity_id)
    except Exception as e:
        logger.warning("Fetching %s %s failed: %s", definition.name, entity_id, e)
        return Failure(error=str(e) or fallback, exception=e)

    result = decode_response(raw, fallback)
    if isinstance(result, Failure):
        return result

    record = result.data
    if record_key is not None and isinstance(record, Mapping):
        record = record.get(record_key)
    if not isinstance(record, Mapping):
        return Failure(error=fallback, raw=raw)

    try:
        entity = entity_cls.from_record({"id": entity_id, **record}, definition)
    except (ValidationError, SerializationError) as e:
        return Failure(error=e.message, exception=e, raw=raw)
    return Success(data=entity, message=result.message)
