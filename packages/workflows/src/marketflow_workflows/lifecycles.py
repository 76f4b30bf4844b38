"""Built-in marketplace lifecycles and the registry that names them.

Example:
    ```python
    from marketflow_workflows.lifecycles import get_lifecycle

    order = get_lifecycle("order")
    order.allowed_next("processing")   # frozenset({'shipped', 'cancelled'})
    order.progress_of("canceled")      # 0, via alias
    ```
"""

from __future__ import annotations

from marketflow_common.registry import Registry

from .lifecycle import LifecycleDefinition

ORDER_LIFECYCLE = LifecycleDefinition(
    "order",
    states=(
        "pending",
        "confirmed",
        "processing",
        "shipped",
        "delivered",
        "cancelled",
        "refunded",
    ),
    transitions={
        "pending": {"confirmed", "cancelled"},
        "confirmed": {"processing", "cancelled"},
        "processing": {"shipped", "cancelled"},
        "shipped": {"delivered"},
    },
    progress={
        "pending": 10,
        "confirmed": 30,
        "processing": 50,
        "shipped": 75,
        "delivered": 100,
        "cancelled": 0,
        "refunded": 0,
    },
    aliases={"canceled": "cancelled"},
    actions={
        "edit": {"pending", "confirmed", "processing", "shipped"},
        "update_status": {"pending", "confirmed", "processing", "shipped"},
        "cancel": {"pending", "confirmed", "processing"},
        "add_tracking": {"processing", "shipped"},
        "request_return": {"delivered"},
    },
)

VENDOR_REQUEST_LIFECYCLE = LifecycleDefinition(
    "vendor_request",
    states=("pending", "approved", "rejected", "cancelled", "completed"),
    transitions={
        "pending": {"approved", "rejected", "cancelled"},
        "approved": {"completed", "cancelled"},
    },
    progress={
        "pending": 25,
        "approved": 60,
        "completed": 100,
        "rejected": 0,
        "cancelled": 0,
    },
    aliases={"canceled": "cancelled"},
    reason_required={"rejected"},
    actions={
        "edit": {"pending"},
        "approve": {"pending"},
        "reject": {"pending"},
        "cancel": {"pending", "approved"},
        "complete": {"approved"},
    },
)

RETURN_LIFECYCLE = LifecycleDefinition(
    "return",
    states=(
        "requested",
        "approved",
        "item_received",
        "inspected",
        "refund_processing",
        "refunded",
        "completed",
        "rejected",
        "cancelled",
    ),
    transitions={
        "requested": {"approved", "rejected", "cancelled"},
        "approved": {"item_received", "cancelled"},
        "item_received": {"inspected"},
        "inspected": {"refund_processing", "rejected"},
        "refund_processing": {"refunded"},
        "refunded": {"completed"},
    },
    progress={
        "requested": 10,
        "approved": 30,
        "item_received": 50,
        "inspected": 65,
        "refund_processing": 80,
        "refunded": 90,
        "completed": 100,
        "rejected": 0,
        "cancelled": 0,
    },
    aliases={"pending_approval": "requested", "canceled": "cancelled"},
    reason_required={"rejected"},
    actions={
        "cancel": {"requested", "approved"},
        "approve": {"requested"},
        "reject": {"requested", "inspected"},
        "receive_item": {"approved"},
        "inspect": {"item_received"},
        "refund": {"inspected", "refund_processing"},
    },
    labels={"item_received": "Item Received", "refund_processing": "Refund Processing"},
)

ACCOUNT_LIFECYCLE = LifecycleDefinition(
    "account",
    states=("active", "frozen"),
    transitions={"active": {"frozen"}, "frozen": {"active"}},
    progress={"active": 100, "frozen": 0},
    aliases={"disabled": "frozen", "inactive": "frozen"},
    reason_required={"active", "frozen"},
    actions={"freeze": {"active"}, "unfreeze": {"frozen"}},
)

lifecycles: Registry[LifecycleDefinition] = Registry(
    "lifecycles",
    [ORDER_LIFECYCLE, VENDOR_REQUEST_LIFECYCLE, RETURN_LIFECYCLE, ACCOUNT_LIFECYCLE],
)


def get_lifecycle(name: str) -> LifecycleDefinition:
    """Look up a registered lifecycle, raising ``NotFoundError`` if absent."""
    return lifecycles.get(name)
