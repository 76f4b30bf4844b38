"""Workflow-specific exceptions.

Local failures reuse :class:`marketflow_common.exceptions.ValidationError`
and :class:`marketflow_common.transitions.InvalidTransitionError`; the only
new type here describes a rejected collaborator call.
"""

from typing import Any

from marketflow_common.exceptions import OperationError


class RemoteFailure(OperationError):
    """The collaborator API rejected, raised, or returned ``success: false``.

    Never raised by the engines. It is returned inside an ``Outcome`` so the
    caller can inspect what went wrong after the local rollback.

    Attributes:
        entity_id: The entity the failed call targeted
        server_message: Message supplied by the server (or the fallback)
        cause: The exception raised by the call, if there was one
    """

    def __init__(
        self,
        message: str,
        entity_id: str | None = None,
        server_message: str | None = None,
        cause: BaseException | None = None,
        raw: Any = None,
    ):
        self.entity_id = entity_id
        self.server_message = server_message
        self.cause = cause
        self.raw = raw
        super().__init__(
            message,
            context={
                "entity_id": entity_id,
                "server_message": server_message,
                "cause": type(cause).__name__ if cause is not None else None,
            },
        )
