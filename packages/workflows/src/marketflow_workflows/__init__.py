"""Client-side workflow engines for the marketplace.

- **OptimisticMutator**: apply a change locally, persist it remotely, roll
  back on rejection
- **WizardController**: multi-step forms gated by per-step validation
- **LifecycleMachine**: declarative entity state machines with history
- **Flows**: wishlist, cart, inventory list and account freeze controllers

Example:
    ```python
    from marketflow_workflows import LifecycleEntity, LifecycleMachine, ORDER_LIFECYCLE

    machine = LifecycleMachine(ORDER_LIFECYCLE, updater=api.update_entity_status)
    order = LifecycleEntity("ord-1", ORDER_LIFECYCLE, state="processing")
    outcome = await machine.transition(order, "shipped", tracking_ref="1Z999")
    ```
"""

from marketflow_workflows.api import CollaboratorAPI, StatusUpdate
from marketflow_workflows.exceptions import RemoteFailure
from marketflow_workflows.flows import (
    CartController,
    InventoryListController,
    WishlistController,
    fetch_lifecycle_entity,
)
from marketflow_workflows.inventory import (
    INVENTORY_DEFAULTS,
    INVENTORY_WIZARD,
    StockStatus,
    build_inventory_payload,
    derive_stock_status,
    normalize_stock_status,
)
from marketflow_workflows.lifecycle import (
    HistoryEntry,
    LifecycleDefinition,
    LifecycleEntity,
    LifecycleMachine,
    LifecycleSnapshot,
)
from marketflow_workflows.lifecycles import (
    ACCOUNT_LIFECYCLE,
    ORDER_LIFECYCLE,
    RETURN_LIFECYCLE,
    VENDOR_REQUEST_LIFECYCLE,
    get_lifecycle,
    lifecycles,
)
from marketflow_workflows.loader import load_lifecycle_definition, load_wizard_definition
from marketflow_workflows.mutator import ABSENT, MutationIntent, OptimisticMutator
from marketflow_workflows.notifications import Notification, NotificationLevel, Notifier
from marketflow_workflows.persistence import (
    DraftStore,
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
)
from marketflow_workflows.results import Failure, Outcome, Result, Success, decode_response
from marketflow_workflows.security import AccountEntity, AccountFreezeController
from marketflow_workflows.settings import WorkflowSettings, load_settings
from marketflow_workflows.wizard import (
    FieldRule,
    WizardController,
    WizardDefinition,
    WizardState,
    WizardStep,
)

__version__ = "1.0.0"

__all__ = [
    "__version__",
    # Engines
    "MutationIntent",
    "OptimisticMutator",
    "ABSENT",
    "WizardController",
    "WizardDefinition",
    "WizardStep",
    "WizardState",
    "FieldRule",
    "LifecycleMachine",
    "LifecycleDefinition",
    "LifecycleEntity",
    "LifecycleSnapshot",
    "HistoryEntry",
    # Built-in definitions
    "ORDER_LIFECYCLE",
    "VENDOR_REQUEST_LIFECYCLE",
    "RETURN_LIFECYCLE",
    "ACCOUNT_LIFECYCLE",
    "lifecycles",
    "get_lifecycle",
    "INVENTORY_WIZARD",
    "INVENTORY_DEFAULTS",
    "build_inventory_payload",
    "StockStatus",
    "normalize_stock_status",
    "derive_stock_status",
    # Flows
    "WishlistController",
    "CartController",
    "InventoryListController",
    "AccountEntity",
    "AccountFreezeController",
    "fetch_lifecycle_entity",
    # Boundary
    "CollaboratorAPI",
    "StatusUpdate",
    "decode_response",
    "Success",
    "Failure",
    "Result",
    "Outcome",
    "RemoteFailure",
    # Ambient
    "Notifier",
    "Notification",
    "NotificationLevel",
    "WorkflowSettings",
    "load_settings",
    "KeyValueStore",
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "DraftStore",
    "load_wizard_definition",
    "load_lifecycle_definition",
]
