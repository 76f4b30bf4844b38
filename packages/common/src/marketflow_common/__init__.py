"""Common utilities and base classes for marketflow packages.

- **Exceptions**: exception hierarchy with context support
- **Transitions**: stateless validation of declarative status graphs
- **Events**: in-process event bus used as the notification channel
- **Registry**: named lookup of definitions
- **Serialization**: to_dict/from_dict protocol and helpers
- **Substitution**: ``${VAR:default}`` expansion for configuration values

Example:
    ```python
    from marketflow_common import TransitionValidator, InvalidTransitionError

    REQUEST = TransitionValidator("vendor_request", {
        "pending": {"approved", "rejected", "cancelled"},
        "approved": {"completed", "cancelled"},
    })
    REQUEST.validate("pending", "approved")
    ```
"""

from marketflow_common.events import (
    Event,
    EventBus,
    EventType,
    InMemoryEventBus,
    Subscription,
)
from marketflow_common.exceptions import (
    ConfigurationError,
    MarketflowError,
    NotFoundError,
    OperationError,
    SerializationError,
    ValidationError,
)
from marketflow_common.registry import Named, Registry
from marketflow_common.serialization import (
    Serializable,
    dump,
    dump_many,
    load,
    load_many,
)
from marketflow_common.substitution import VariableSubstitution, coerce_scalar
from marketflow_common.transitions import InvalidTransitionError, TransitionValidator

__version__ = "1.0.0"

__all__ = [
    # Version
    "__version__",
    # Exceptions
    "MarketflowError",
    "ValidationError",
    "ConfigurationError",
    "NotFoundError",
    "OperationError",
    "SerializationError",
    "InvalidTransitionError",
    # Transitions
    "TransitionValidator",
    # Events
    "Event",
    "EventBus",
    "EventType",
    "InMemoryEventBus",
    "Subscription",
    # Registry
    "Named",
    "Registry",
    # Serialization
    "Serializable",
    "dump",
    "load",
    "dump_many",
    "load_many",
    # Substitution
    "VariableSubstitution",
    "coerce_scalar",
]
