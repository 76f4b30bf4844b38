"""Account freeze and reactivation.

Freezing flips the account to inactive immediately and asks the collaborator
to disable it; a rejected call brings the account back. Both directions need
a non-blank reason, checked before anything changes.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .api import CollaboratorAPI
from .lifecycle import LifecycleDefinition, LifecycleEntity, LifecycleMachine
from .lifecycles import ACCOUNT_LIFECYCLE
from .mutator import OptimisticMutator
from .notifications import Notifier
from .results import Outcome
from .settings import WorkflowSettings

logger = logging.getLogger(__name__)

FREEZE_SUCCESS = "User wallet frozen successfully"
FREEZE_FAILURE = "Failed to freeze wallet"
UNFREEZE_SUCCESS = "User reactivated successfully"
UNFREEZE_FAILURE = "Failed to reactivate user"
FREEZE_REASON_REQUIRED = "Please provide a reason for disabling this user"
UNFREEZE_REASON_REQUIRED = "Please provide a reason for reactivating this user"


class AccountEntity(LifecycleEntity):
    """A user account in the ``active``/``frozen`` lifecycle."""

    def __init__(
        self,
        entity_id: str,
        definition: LifecycleDefinition = ACCOUNT_LIFECYCLE,
        state: str | None = None,
        history: Any = None,
        attributes: Mapping[str, Any] | None = None,
    ):
        super().__init__(entity_id, definition, state, history, attributes)

    @property
    def is_active(self) -> bool:
        return self.current_state == "active"

    @classmethod
    def from_user(cls, record: Mapping[str, Any], *, id_key: str = "id") -> AccountEntity:
        """Build from a user record carrying ``isActive``."""
        attributes = {k: v for k, v in record.items() if k not in (id_key, "isActive")}
        state = "active" if record.get("isActive", True) else "frozen"
        return cls(str(record[id_key]), state=state, attributes=attributes)


class AccountFreezeController:
    """Freezes and reactivates accounts through ``set_account_active``.

    Args:
        api: Collaborator API
        mutator: Shared optimistic mutator
        notifier: Notification channel, used when no mutator is given
        settings: Messages
    """

    def __init__(
        self,
        api: CollaboratorAPI,
        mutator: OptimisticMutator | None = None,
        *,
        notifier: Notifier | None = None,
        settings: WorkflowSettings | None = None,
    ):
        self._api = api
        self._machine = LifecycleMachine(
            ACCOUNT_LIFECYCLE, mutator=mutator, notifier=notifier, settings=settings
        )

    @property
    def machine(self) -> LifecycleMachine:
        return self._machine

    def allowed_actions(self, account: AccountEntity) -> tuple[str, ...]:
        return self._machine.allowed_actions(account)

    async def freeze(self, account: AccountEntity, reason: str) -> Outcome[str]:
        return await self._set_active(account, False, reason)

    async def unfreeze(self, account: AccountEntity, reason: str) -> Outcome[str]:
        return await self._set_active(account, True, reason)

    async def _set_active(self, account: AccountEntity, active: bool, reason: str) -> Outcome[str]:
        target = "active" if active else "frozen"
        api = self._api

        async def remote_call() -> Any:
            return await api.set_account_active(account.entity_id, active, reason.strip())

        outcome = await self._machine.transition(
            account,
            target,
            reason,
            remote_call=remote_call,
            success_message=UNFREEZE_SUCCESS if active else FREEZE_SUCCESS,
            failure_message=UNFREEZE_FAILURE if active else FREEZE_FAILURE,
            reason_message=UNFREEZE_REASON_REQUIRED if active else FREEZE_REASON_REQUIRED,
        )
        logger.debug("Account %s %s: %s", account.entity_id, target, outcome.success)
        return outcome
