"""Entity lifecycles: declarative state machines with remote status updates.

A :class:`LifecycleDefinition` is plain data: states, the allowed next
states of each, a display progress per state, aliases for labels used by
other systems, states whose transition needs a reason, and the actions
offered in each state. Legality checks are delegated to
:class:`marketflow_common.transitions.TransitionValidator`.

A :class:`LifecycleEntity` holds one entity's current state and status
history. Only the :class:`LifecycleMachine` moves it: the move is checked,
applied locally, and then persisted through the optimistic mutator so a
rejected update restores the previous state and history.

Example:
    ```python
    machine = LifecycleMachine(ORDER_LIFECYCLE, updater=api.update_entity_status)
    order = LifecycleEntity("ord-1", ORDER_LIFECYCLE, state="shipped")

    outcome = await machine.transition(order, "delivered", "Left at front door")
    machine.progress_of(order.current_state)   # 100
    ```
"""

from __future__ import annotations

import copy
import functools
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from marketflow_common.events import EventType
from marketflow_common.exceptions import ConfigurationError, ValidationError
from marketflow_common.serialization import dump_many, load_many
from marketflow_common.transitions import InvalidTransitionError, TransitionValidator

from .api import StatusUpdate
from .coercion import is_blank
from .mutator import MutationIntent, OptimisticMutator
from .notifications import Notifier
from .results import Outcome
from .schema import LifecycleConfig, validate_config
from .settings import WorkflowSettings

logger = logging.getLogger(__name__)

StatusUpdater = Callable[[str, Mapping[str, Any]], Awaitable[Any]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class HistoryEntry:
    """One recorded status change.

    ``from_dict`` reads the note from ``note`` or, as collaborator records
    spell it, ``notes``.
    """

    state: str
    timestamp: datetime
    note: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"status": self.state, "timestamp": self.timestamp.isoformat(), "note": self.note}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> HistoryEntry:
        timestamp = data.get("timestamp")
        if isinstance(timestamp, str):
            timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
        elif timestamp is None:
            timestamp = _utcnow()
        return cls(
            state=data.get("status") or data["state"],
            timestamp=timestamp,
            note=data.get("note") or data.get("notes") or "",
        )


class LifecycleDefinition:
    """Declarative lifecycle of one entity type.

    Args:
        name: Entity type name, used in messages and the registry
        states: All canonical states, in display order
        transitions: State to allowed next states; states without an entry
            (or with an empty one) are terminal
        progress: State to display percentage (0..100), required for every
            state
        initial: State of a new entity; defaults to the first state
        aliases: Label used elsewhere to canonical state
        reason_required: Target states whose transition note must not be
            blank
        actions: Action name to the states in which it is offered
        labels: Display label per state

    Raises:
        ConfigurationError: If any of the above refer to unknown states,
            a state has no progress value, or a value is out of range
    """

    def __init__(
        self,
        name: str,
        states: Iterable[str],
        transitions: Mapping[str, Iterable[str]],
        progress: Mapping[str, int],
        *,
        initial: str | None = None,
        aliases: Mapping[str, str] | None = None,
        reason_required: Iterable[str] = (),
        actions: Mapping[str, Iterable[str]] | None = None,
        labels: Mapping[str, str] | None = None,
    ):
        self._name = name
        self._states: tuple[str, ...] = tuple(states)
        self._known = frozenset(self._states)
        self._transitions = {s: frozenset(t) for s, t in transitions.items()}
        self._progress = dict(progress)
        self._initial = initial if initial is not None else (self._states[0] if self._states else "")
        self._aliases = dict(aliases or {})
        self._reason_required = frozenset(reason_required)
        self._actions = {a: frozenset(s) for a, s in (actions or {}).items()}
        self._labels = dict(labels or {})
        self._check()
        self._validator = TransitionValidator(
            name, {s: self._transitions.get(s, frozenset()) for s in self._states}
        )

    def _fail(self, message: str, **context: Any) -> None:
        raise ConfigurationError(
            f"Lifecycle '{self._name}': {message}", context={"lifecycle": self._name, **context}
        )

    def _check(self) -> None:
        if not self._states:
            self._fail("no states declared")
        known = set(self._states)
        if len(known) != len(self._states):
            self._fail("duplicate states", states=list(self._states))

        for source, targets in self._transitions.items():
            if source not in known:
                self._fail(f"transition from unknown state '{source}'", state=source)
            unknown = sorted(targets - known)
            if unknown:
                self._fail(
                    f"'{source}' transitions to unknown states: {', '.join(unknown)}",
                    state=source,
                    unknown=unknown,
                )

        missing = [s for s in self._states if s not in self._progress]
        if missing:
            self._fail(f"no progress value for: {', '.join(missing)}", missing=missing)
        for state, value in self._progress.items():
            if state not in known:
                self._fail(f"progress for unknown state '{state}'", state=state)
            if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value <= 100:
                self._fail(f"progress for '{state}' must be an int in 0..100", state=state, value=value)

        if self._initial not in known:
            self._fail(f"unknown initial state '{self._initial}'", state=self._initial)

        for alias, target in self._aliases.items():
            if target not in known:
                self._fail(f"alias '{alias}' points to unknown state '{target}'", alias=alias)
            if alias in known:
                self._fail(f"alias '{alias}' shadows a state", alias=alias)

        for label, states in (
            ("reason_required", self._reason_required),
            *((f"action '{a}'", s) for a, s in self._actions.items()),
            ("labels", frozenset(self._labels)),
        ):
            unknown = sorted(states - known)
            if unknown:
                self._fail(f"{label} names unknown states: {', '.join(unknown)}", unknown=unknown)

    # ------------------------------------------------------------------
    # Construction from data
    # ------------------------------------------------------------------

    @classmethod
    def from_config(cls, config: LifecycleConfig) -> LifecycleDefinition:
        return cls(
            config.name,
            config.states,
            config.transitions,
            config.progress,
            initial=config.initial,
            aliases=config.aliases,
            reason_required=config.reason_required,
            actions=config.actions,
            labels=config.labels,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> LifecycleDefinition:
        config = validate_config(LifecycleConfig, dict(data), "lifecycle")
        return cls.from_config(config)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self._name,
            "states": list(self._states),
            "transitions": {s: sorted(t) for s, t in self._transitions.items()},
            "progress": dict(self._progress),
            "initial": self._initial,
            "aliases": dict(self._aliases),
            "reason_required": sorted(self._reason_required),
            "actions": {a: sorted(s) for a, s in self._actions.items()},
            "labels": dict(self._labels),
        }

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def states(self) -> tuple[str, ...]:
        return self._states

    @property
    def initial(self) -> str:
        return self._initial

    @property
    def aliases(self) -> dict[str, str]:
        return dict(self._aliases)

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(self._actions)

    @property
    def validator(self) -> TransitionValidator:
        return self._validator

    @property
    def terminal_states(self) -> frozenset[str]:
        return frozenset(s for s in self._states if self._validator.is_terminal(s))

    def canonical(self, state: str) -> str | None:
        """Canonical name for a state or alias, or ``None`` if unknown.

        Lookup ignores surrounding whitespace, then case.
        """
        if not isinstance(state, str):
            return None
        key = state.strip()
        for candidate in (key, key.lower()):
            if candidate in self._known:
                return candidate
            if candidate in self._aliases:
                return self._aliases[candidate]
        return None

    def resolve(self, state: str) -> str:
        """Like :meth:`canonical` but raises ``ValidationError`` when unknown."""
        canonical = self.canonical(state)
        if canonical is None:
            raise ValidationError(
                f"Unknown {self._name} state: {state!r}",
                context={"lifecycle": self._name, "state": state},
            )
        return canonical

    def progress_of(self, state: str) -> int:
        return self._progress[self.resolve(state)]

    def allowed_next(self, state: str) -> frozenset[str]:
        return self._validator.allowed_from(self.resolve(state))

    def is_terminal(self, state: str) -> bool:
        return self._validator.is_terminal(self.resolve(state))

    def requires_reason(self, target: str) -> bool:
        return self.canonical(target) in self._reason_required

    def actions_for(self, state: str) -> tuple[str, ...]:
        """Actions offered in ``state``, in declaration order."""
        current = self.resolve(state)
        return tuple(a for a, states in self._actions.items() if current in states)

    def label(self, state: str) -> str:
        canonical = self.resolve(state)
        return self._labels.get(canonical, canonical.replace("_", " ").title())

    def __repr__(self) -> str:
        return f"LifecycleDefinition({self._name!r}, {len(self._states)} states)"


@dataclass(frozen=True)
class LifecycleSnapshot:
    """Everything a transition may change, captured for rollback."""

    state: str
    history: tuple[HistoryEntry, ...]
    attributes: dict[str, Any] = field(default_factory=dict)


class LifecycleEntity:
    """One entity moving through a lifecycle.

    ``current_state`` and ``history`` are read-only here; the
    :class:`LifecycleMachine` is the only writer.
    """

    def __init__(
        self,
        entity_id: str,
        definition: LifecycleDefinition,
        state: str | None = None,
        history: Iterable[HistoryEntry] | None = None,
        attributes: Mapping[str, Any] | None = None,
    ):
        self.entity_id = entity_id
        self.definition = definition
        self._state = definition.resolve(state) if state is not None else definition.initial
        self._history: tuple[HistoryEntry, ...] = tuple(history or ())
        self.attributes: dict[str, Any] = dict(attributes or {})

    @classmethod
    def from_record(
        cls,
        record: Mapping[str, Any],
        definition: LifecycleDefinition,
        *,
        id_key: str = "id",
        state_key: str = "status",
        history_key: str = "statusHistory",
    ) -> LifecycleEntity:
        """Build an entity from a collaborator record.

        Keys other than the id, state and history are kept as attributes.
        """
        history = load_many(HistoryEntry, record.get(history_key))
        attributes = {
            k: v for k, v in record.items() if k not in (id_key, state_key, history_key)
        }
        return cls(
            str(record[id_key]),
            definition,
            state=record.get(state_key),
            history=history,
            attributes=attributes,
        )

    @property
    def current_state(self) -> str:
        return self._state

    @property
    def history(self) -> tuple[HistoryEntry, ...]:
        return self._history

    @property
    def progress(self) -> int:
        return self.definition.progress_of(self._state)

    @property
    def allowed_next_states(self) -> frozenset[str]:
        return self.definition.allowed_next(self._state)

    @property
    def is_terminal(self) -> bool:
        return self.definition.is_terminal(self._state)

    def snapshot(self) -> LifecycleSnapshot:
        return LifecycleSnapshot(
            state=self._state,
            history=self._history,
            attributes=copy.deepcopy(self.attributes),
        )

    def _restore(self, snapshot: LifecycleSnapshot) -> None:
        self._state = snapshot.state
        self._history = snapshot.history
        self.attributes = copy.deepcopy(snapshot.attributes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.entity_id,
            **copy.deepcopy(self.attributes),
            "status": self._state,
            "statusHistory": dump_many(self._history),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.entity_id!r}, state={self._state!r})"


class LifecycleMachine:
    """Checks and performs lifecycle transitions for one definition.

    Args:
        definition: The lifecycle to enforce
        mutator: Runs remote updates with rollback; one is created (sharing
            ``notifier``) when omitted
        updater: Default remote status call, e.g.
            ``api.update_entity_status``; without it (and without a
            per-call ``remote_call``) transitions are local only
        notifier: Notification channel
        settings: Messages
        clock: Timestamp source for history entries
    """

    def __init__(
        self,
        definition: LifecycleDefinition,
        *,
        mutator: OptimisticMutator | None = None,
        updater: StatusUpdater | None = None,
        notifier: Notifier | None = None,
        settings: WorkflowSettings | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self._definition = definition
        if mutator is not None:
            self._mutator = mutator
        else:
            self._mutator = OptimisticMutator(notifier=notifier, settings=settings)
        self._notifier = notifier or self._mutator.notifier
        self._settings = settings or self._mutator.settings
        self._updater = updater
        self._clock = clock or _utcnow

    @property
    def definition(self) -> LifecycleDefinition:
        return self._definition

    @property
    def mutator(self) -> OptimisticMutator:
        return self._mutator

    def progress_of(self, state: str) -> int:
        return self._definition.progress_of(state)

    def allowed_next_states(self, entity: LifecycleEntity) -> frozenset[str]:
        return self._definition.allowed_next(entity.current_state)

    def can_transition(self, entity: LifecycleEntity, target: str) -> bool:
        if entity.definition is not self._definition:
            return False
        canonical = self._definition.canonical(target)
        return canonical is not None and self._definition.validator.is_allowed(
            entity.current_state, canonical
        )

    def allowed_actions(self, entity: LifecycleEntity) -> tuple[str, ...]:
        return self._definition.actions_for(entity.current_state)

    def check_transition(
        self,
        entity: LifecycleEntity,
        target: str,
        note: str = "",
        *,
        reason_message: str | None = None,
    ) -> str:
        """Check a transition without performing it.

        Args:
            entity: Entity to move; must belong to this machine's lifecycle
            target: Target state or alias
            note: Reason for the move
            reason_message: Replaces ``settings.reason_required_message``
                when a required reason is blank

        Returns:
            The canonical target state

        Raises:
            InvalidTransitionError: If the entity belongs to another
                lifecycle, or the target is not allowed from the entity's
                current state
            ValidationError: If the target requires a reason and ``note`` is
                blank
        """
        if entity.definition is not self._definition:
            raise InvalidTransitionError(
                entity=self._definition.name,
                current_status=entity.current_state,
                target_status=target,
                allowed=(),
                message=(
                    f"{self._definition.name}: entity {entity.entity_id} belongs to "
                    f"the '{entity.definition.name}' lifecycle"
                ),
            )
        canonical = self._definition.canonical(target)
        if canonical is None:
            raise InvalidTransitionError(
                entity=self._definition.name,
                current_status=entity.current_state,
                target_status=target,
                allowed=set(self.allowed_next_states(entity)),
            )
        self._definition.validator.validate(entity.current_state, canonical)
        if self._definition.requires_reason(canonical) and is_blank(note):
            message = reason_message or self._settings.reason_required_message
            raise ValidationError(
                message,
                context={
                    "errors": {"note": message},
                    "target": canonical,
                },
            )
        return canonical

    async def transition(
        self,
        entity: LifecycleEntity,
        target: str,
        note: str = "",
        *,
        tracking_ref: str | None = None,
        remote_call: Callable[[], Awaitable[Any]] | None = None,
        success_message: str | None = None,
        failure_message: str | None = None,
        reason_message: str | None = None,
    ) -> Outcome[str]:
        """Move ``entity`` to ``target``.

        Args:
            entity: Entity to move
            target: Target state or alias
            note: Recorded in history and sent with the update
            tracking_ref: Sent as ``trackingRef`` and kept as an attribute
            remote_call: Replaces the bound updater for this call
            success_message: Notification on success; defaults to
                "Status updated to <label>"
            failure_message: Notification on rejection
            reason_message: Notification when a required reason is blank

        Returns:
            Outcome whose ``value`` is the entity's state after resolution
        """
        try:
            canonical = self.check_transition(
                entity, target, note, reason_message=reason_message
            )
        except (InvalidTransitionError, ValidationError) as e:
            logger.warning("%s %s: %s", self._definition.name, entity.entity_id, e)
            await self._notifier.error(e.message, entity_id=entity.entity_id)
            return Outcome(
                success=False,
                entity_id=entity.entity_id,
                value=entity.current_state,
                error=e,
                message=e.message,
            )

        previous = entity.snapshot()
        attributes = copy.deepcopy(previous.attributes)
        if tracking_ref:
            attributes["trackingRef"] = tracking_ref
        following = LifecycleSnapshot(
            state=canonical,
            history=previous.history + (HistoryEntry(canonical, self._clock(), note),),
            attributes=attributes,
        )

        call = remote_call
        if call is None and self._updater is not None:
            body = StatusUpdate(canonical, note, tracking_ref).to_dict()
            call = functools.partial(self._updater, entity.entity_id, body)

        if call is None:
            entity._restore(following)
            logger.info(
                "%s %s: %s -> %s (local)",
                self._definition.name, entity.entity_id, previous.state, canonical,
            )
            await self._notifier.mutation_event(
                EventType.TRANSITIONED,
                entity.entity_id,
                payload={"from": previous.state, "to": canonical},
            )
            return Outcome(success=True, entity_id=entity.entity_id, value=canonical)

        intent = MutationIntent.create(
            entity.entity_id,
            previous,
            following,
            entity._restore,
            call,
            on_success_message=(
                success_message
                if success_message is not None
                else f"Status updated to {self._definition.label(canonical)}"
            ),
            on_failure_message=failure_message or "Failed to update status",
        )
        outcome = await self._mutator.execute(intent)
        if outcome.success:
            logger.info(
                "%s %s: %s -> %s", self._definition.name, entity.entity_id, previous.state, canonical
            )
            await self._notifier.mutation_event(
                EventType.TRANSITIONED,
                entity.entity_id,
                payload={"from": previous.state, "to": canonical},
                correlation_id=intent.intent_id,
            )
        return Outcome(
            success=outcome.success,
            entity_id=entity.entity_id,
            value=entity.current_state,
            error=outcome.error,
            message=outcome.message,
            data=outcome.data,
        )

    def __repr__(self) -> str:
        return f"LifecycleMachine({self._definition.name!r})"
