"""Common exception hierarchy for all marketflow packages.

Every marketflow error carries an optional ``context`` dictionary so that
callers (and notification handlers) can inspect the details of a failure
without parsing its message.

Example:
    ```python
    from marketflow_common.exceptions import ValidationError

    raise ValidationError(
        "Step 'quantity_pricing' has errors",
        context={"errors": {"totalQuantity": "Valid quantity is required"}},
    )
    ```

Package-Specific Extensions:
    ```python
    from marketflow_common.exceptions import OperationError

    class RemoteFailure(OperationError):
        '''The collaborator API rejected a call.'''
    ```
"""

from typing import Any, Dict


class MarketflowError(Exception):
    """Base exception for all marketflow packages.

    Attributes:
        context: Dictionary containing contextual information about the error
        details: Alias for context

    Args:
        message: Human-readable error message
        context: Optional dictionary with error context (field names, IDs, etc.)
        details: Alternative to context (both are supported)

    Example:
        ```python
        error = MarketflowError(
            "Operation failed",
            context={"operation": "toggle", "entity_id": "p-1"}
        )
        str(error)
        # 'Operation failed'
        ```
    """

    def __init__(
        self,
        message: str,
        context: Dict[str, Any] | None = None,
        details: Dict[str, Any] | None = None,
    ):
        super().__init__(message)
        # Details takes precedence if both are provided
        self.context = details or context or {}
        self.details = self.context

    @property
    def message(self) -> str:
        """The human-readable message the error was raised with."""
        return str(self.args[0]) if self.args else ""


class ValidationError(MarketflowError):
    """Raised when local data fails validation.

    Validation errors never reach the network. Field-scoped failures keep
    the field map under ``context["errors"]``.

    Example:
        ```python
        raise ValidationError(
            "A reason is required",
            context={"errors": {"reason": "A reason is required"}}
        )
        ```
    """

    @property
    def errors(self) -> Dict[str, str]:
        """Field name to message map, empty when the error is not field-scoped."""
        return dict(self.context.get("errors", {}))


class ConfigurationError(MarketflowError):
    """Raised when a definition or settings source is invalid.

    Example:
        ```python
        raise ConfigurationError(
            "Transition target is not a declared state",
            context={"definition": "order", "target": "lost"}
        )
        ```
    """

    pass


class NotFoundError(MarketflowError):
    """Raised when a requested item is not found.

    Example:
        ```python
        raise NotFoundError(
            "Draft not found",
            context={"draft_id": "draft_1700000000000"}
        )
        ```
    """

    pass


class OperationError(MarketflowError):
    """Raised when an operation fails.

    Used for state transition errors and remote collaborator failures.

    Example:
        ```python
        raise OperationError(
            "Failed to update order",
            context={"entity_id": "ord-1", "error": "connection lost"}
        )
        ```
    """

    pass


class SerializationError(MarketflowError):
    """Raised when serialization or deserialization fails.

    Example:
        ```python
        raise SerializationError(
            "Cannot deserialize history entry",
            context={"field": "timestamp", "value": "yesterday"}
        )
        ```
    """

    pass


__all__ = [
    "MarketflowError",
    "ValidationError",
    "ConfigurationError",
    "NotFoundError",
    "OperationError",
    "SerializationError",
]
