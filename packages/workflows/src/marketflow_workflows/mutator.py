"""Optimistic mutation with rollback.

A :class:`MutationIntent` describes one user action: the value currently
shown, the value the action wants, how to write either of them into local
state, and the remote call that makes the change real. The
:class:`OptimisticMutator` writes the new value immediately, awaits the
remote call, and writes the previous value back if the call fails.

Intents for the same entity are not queued. If a second intent starts
before the first resolves, both apply immediately in call order, and a
later rollback of the first overwrites whatever the second applied. Callers
avoid this by disabling the triggering control while
:meth:`OptimisticMutator.is_pending` is true for the entity.

Example:
    ```python
    product = {"id": "p-1", "saved": False}

    intent = MutationIntent.for_key(
        product, "saved", True,
        remote_call=lambda: api.toggle_membership("p-1", add=True),
        entity_id="p-1",
        on_success_message="Added to wishlist",
        on_failure_message="Failed to update wishlist",
    )
    outcome = await mutator.execute(intent)
    # product["saved"] is True on success, False again on failure
    ```
"""

from __future__ import annotations

import copy
import logging
import uuid
from collections.abc import Awaitable, Callable, MutableMapping
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from marketflow_common.events import EventType

from .exceptions import RemoteFailure
from .notifications import Notifier
from .results import Failure, Outcome, Success, decode_response
from .settings import WorkflowSettings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Absent:
    """Marker for a mapping key that did not exist before the mutation."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT: Any = _Absent()


@dataclass
class MutationIntent(Generic[T]):
    """One optimistic change, owned by the component that issued it.

    Attributes:
        entity_id: Entity the change targets
        previous_value: Value rendered before the action, captured
            synchronously when the intent is built
        next_value: Value the action applies
        apply_local: Writes a value into local state
        remote_call: Performs the remote mutation, returning an envelope
        on_success_message: Published when the remote call succeeds
        on_failure_message: Published (with the server detail) on failure
        intent_id: Correlates this intent's events on the bus
    """

    entity_id: str
    previous_value: T
    next_value: T
    apply_local: Callable[[T], Any]
    remote_call: Callable[[], Awaitable[Any]]
    on_success_message: str = ""
    on_failure_message: str = "Update failed"
    intent_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @classmethod
    def create(
        cls,
        entity_id: str,
        previous_value: T,
        next_value: T,
        apply_local: Callable[[T], Any],
        remote_call: Callable[[], Awaitable[Any]],
        *,
        on_success_message: str = "",
        on_failure_message: str = "Update failed",
    ) -> MutationIntent[T]:
        return cls(
            entity_id=entity_id,
            previous_value=previous_value,
            next_value=next_value,
            apply_local=apply_local,
            remote_call=remote_call,
            on_success_message=on_success_message,
            on_failure_message=on_failure_message,
        )

    @classmethod
    def for_attribute(
        cls,
        target: Any,
        attribute: str,
        next_value: Any,
        remote_call: Callable[[], Awaitable[Any]],
        *,
        entity_id: str | None = None,
        on_success_message: str = "",
        on_failure_message: str = "Update failed",
    ) -> MutationIntent[Any]:
        """Build an intent that flips ``target.<attribute>``.

        The current attribute value becomes ``previous_value``.
        """
        previous = copy.copy(getattr(target, attribute))

        def apply_local(value: Any) -> None:
            setattr(target, attribute, value)

        return cls(
            entity_id=entity_id or str(getattr(target, "id", attribute)),
            previous_value=previous,
            next_value=next_value,
            apply_local=apply_local,
            remote_call=remote_call,
            on_success_message=on_success_message,
            on_failure_message=on_failure_message,
        )

    @classmethod
    def for_key(
        cls,
        mapping: MutableMapping[str, Any],
        key: str,
        next_value: Any,
        remote_call: Callable[[], Awaitable[Any]],
        *,
        entity_id: str | None = None,
        on_success_message: str = "",
        on_failure_message: str = "Update failed",
    ) -> MutationIntent[Any]:
        """Build an intent that sets ``mapping[key]``.

        A key missing before the mutation is recorded as :data:`ABSENT` and
        is removed again on rollback.
        """
        previous = copy.copy(mapping[key]) if key in mapping else ABSENT

        def apply_local(value: Any) -> None:
            if value is ABSENT:
                mapping.pop(key, None)
            else:
                mapping[key] = value

        return cls(
            entity_id=entity_id or key,
            previous_value=previous,
            next_value=next_value,
            apply_local=apply_local,
            remote_call=remote_call,
            on_success_message=on_success_message,
            on_failure_message=on_failure_message,
        )


class OptimisticMutator:
    """Applies intents locally, persists them remotely, rolls back on failure.

    ``execute`` never raises for remote problems: a raised exception, a
    ``success: false`` envelope and a malformed response all end in a
    rollback, an error notification and a failed :class:`Outcome`.
    Exceptions raised by ``apply_local`` itself are programming errors and
    propagate.

    Args:
        notifier: Notification channel; a private one is created if omitted
        settings: Fallback messages; defaults to the notifier's settings
    """

    def __init__(
        self,
        notifier: Notifier | None = None,
        settings: WorkflowSettings | None = None,
    ):
        self._settings = settings or (notifier.settings if notifier else WorkflowSettings())
        self._notifier = notifier or Notifier(settings=self._settings)
        self._in_flight: dict[str, int] = {}

    @property
    def notifier(self) -> Notifier:
        return self._notifier

    @property
    def settings(self) -> WorkflowSettings:
        return self._settings

    def is_pending(self, entity_id: str) -> bool:
        """True while at least one intent for ``entity_id`` awaits its remote call."""
        return self._in_flight.get(entity_id, 0) > 0

    def pending_count(self, entity_id: str) -> int:
        return self._in_flight.get(entity_id, 0)

    def _release(self, entity_id: str) -> None:
        remaining = self._in_flight.get(entity_id, 0) - 1
        if remaining > 0:
            self._in_flight[entity_id] = remaining
        else:
            self._in_flight.pop(entity_id, None)

    async def execute(self, intent: MutationIntent[T]) -> Outcome[T]:
        """Run one intent to completion.

        Returns:
            Outcome whose ``value`` is the local value after resolution
        """
        entity_id = intent.entity_id

        # Local apply happens before the first await
        intent.apply_local(intent.next_value)
        self._in_flight[entity_id] = self._in_flight.get(entity_id, 0) + 1
        logger.debug("Applied intent %s to %s", intent.intent_id[:8], entity_id)

        try:
            await self._notifier.mutation_event(
                EventType.APPLIED, entity_id, correlation_id=intent.intent_id
            )
            try:
                raw = await intent.remote_call()
            except Exception as e:
                result: Success[Any] | Failure = Failure(
                    error=str(e) or self._settings.generic_failure_message, exception=e
                )
            else:
                result = decode_response(raw, self._settings.generic_failure_message)
        finally:
            self._release(entity_id)

        if isinstance(result, Success):
            logger.info("Committed intent %s for %s", intent.intent_id[:8], entity_id)
            await self._notifier.mutation_event(
                EventType.COMMITTED, entity_id, correlation_id=intent.intent_id
            )
            if intent.on_success_message:
                await self._notifier.success(intent.on_success_message, entity_id=entity_id)
            return Outcome(
                success=True,
                entity_id=entity_id,
                value=intent.next_value,
                message=intent.on_success_message or result.message,
                data=result.data,
            )

        intent.apply_local(intent.previous_value)
        logger.warning(
            "Reverted intent %s for %s: %s", intent.intent_id[:8], entity_id, result.error
        )
        failure = RemoteFailure(
            intent.on_failure_message,
            entity_id=entity_id,
            server_message=result.error,
            cause=result.exception,
            raw=result.raw,
        )
        await self._notifier.mutation_event(
            EventType.REVERTED,
            entity_id,
            payload={"error": result.error},
            correlation_id=intent.intent_id,
        )
        await self._notifier.error(
            intent.on_failure_message, detail=result.error, entity_id=entity_id
        )
        return Outcome(
            success=False,
            entity_id=entity_id,
            value=intent.previous_value,
            error=failure,
            message=intent.on_failure_message,
        )
