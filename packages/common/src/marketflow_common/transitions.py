"""Status graphs declared as data.

A :class:`TransitionValidator` knows which status may follow which and
nothing else: it never stores an entity's status. The lifecycle machine in
``marketflow_workflows`` keeps status and history per entity and asks the
validator before every move.

Example:
    ```python
    ORDER_STATUS = TransitionValidator("order", {
        "pending":    {"confirmed", "cancelled"},
        "confirmed":  {"processing", "cancelled"},
        "processing": {"shipped", "cancelled"},
        "shipped":    {"delivered"},
    })

    ORDER_STATUS.is_terminal("delivered")           # True, no outgoing edges
    ORDER_STATUS.validate("shipped", "pending")     # raises InvalidTransitionError
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping

from marketflow_common.exceptions import OperationError

logger = logging.getLogger(__name__)

_EMPTY: frozenset[str] = frozenset()


class InvalidTransitionError(OperationError):
    """A requested status change is not an edge of the graph.

    Attributes:
        entity: Graph name, e.g. ``"order"``
        current_status: Status the entity is in
        target_status: Status that was requested
        allowed: Legal targets from ``current_status``; ``None`` when the
            current status is not part of the graph at all
        message: Replaces the generated message
    """

    def __init__(
        self,
        entity: str,
        current_status: str,
        target_status: str,
        allowed: Iterable[str] | None = None,
        message: str | None = None,
    ) -> None:
        self.entity = entity
        self.current_status = current_status
        self.target_status = target_status
        self.allowed = set(allowed) if allowed is not None else None

        if message is None and self.allowed is None:
            message = f"{entity}: unknown current status '{current_status}'"
        elif message is None:
            targets = ", ".join(sorted(self.allowed)) or "(none, terminal)"
            message = (
                f"{entity}: cannot transition from '{current_status}' to "
                f"'{target_status}'. Allowed targets: {targets}"
            )

        super().__init__(
            message,
            context={
                "entity": entity,
                "current_status": current_status,
                "target_status": target_status,
                "allowed": sorted(self.allowed or ()),
            },
        )


class TransitionValidator:
    """Legal moves of one status graph.

    Args:
        name: Graph name used in error messages
        transitions: Status to the statuses it may move to. A status that
            only ever appears as a target has no outgoing moves.
    """

    def __init__(self, name: str, transitions: Mapping[str, Iterable[str]]) -> None:
        self._name = name
        self._edges: dict[str, frozenset[str]] = {
            source: frozenset(targets) for source, targets in transitions.items()
        }
        self._statuses = frozenset(self._edges).union(*self._edges.values())

    @property
    def name(self) -> str:
        return self._name

    @property
    def statuses(self) -> frozenset[str]:
        """Every status named as a source or a target."""
        return self._statuses

    def as_dict(self) -> dict[str, set[str]]:
        return {source: set(targets) for source, targets in self._edges.items()}

    def allowed_from(self, status: str) -> frozenset[str]:
        """One-step targets of ``status``; empty for terminal or unknown statuses."""
        return self._edges.get(status, _EMPTY)

    def is_terminal(self, status: str) -> bool:
        return not self.allowed_from(status)

    def is_allowed(self, current_status: str, target_status: str) -> bool:
        return target_status in self.allowed_from(current_status)

    def validate(self, current_status: str | None, target_status: str) -> None:
        """Raise unless ``current_status -> target_status`` is an edge.

        A ``current_status`` of ``None`` (not yet known to the caller) is
        accepted without checking.

        Raises:
            InvalidTransitionError: If the move is not allowed
        """
        if current_status is None:
            return
        if current_status not in self._statuses:
            raise InvalidTransitionError(self._name, current_status, target_status)
        if not self.is_allowed(current_status, target_status):
            logger.debug("%s: rejected %s -> %s", self._name, current_status, target_status)
            raise InvalidTransitionError(
                self._name, current_status, target_status, self.allowed_from(current_status)
            )

    def __repr__(self) -> str:
        return f"TransitionValidator({self._name!r}, {len(self._statuses)} statuses)"
