"""Named lookup of definitions.

Lifecycle and wizard definitions carry their own ``name``; a
:class:`Registry` indexes them by it so views can find "the order
lifecycle" or "the add-inventory wizard" without importing the constant.

Example:
    ```python
    lifecycles = Registry("lifecycles", [ORDER_LIFECYCLE, RETURN_LIFECYCLE])
    lifecycles.get("order").progress_of("shipped")
    # 75
    ```
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from typing import Generic, Protocol, TypeVar

from marketflow_common.exceptions import NotFoundError, OperationError


class Named(Protocol):
    @property
    def name(self) -> str:
        ...


D = TypeVar("D", bound=Named)


class Registry(Generic[D]):
    """Definitions keyed by their ``name``, in registration order.

    Args:
        name: Registry name, used in error context
        definitions: Definitions to register up front
    """

    def __init__(self, name: str, definitions: Iterable[D] = ()):
        self._name = name
        self._definitions: dict[str, D] = {}
        self._lock = threading.RLock()
        for definition in definitions:
            self.register(definition)

    @property
    def name(self) -> str:
        return self._name

    def register(self, definition: D, *, replace: bool = False) -> D:
        """Add a definition under its own name and return it.

        Raises:
            OperationError: If the name is taken and ``replace`` is false
        """
        key = definition.name
        with self._lock:
            if key in self._definitions and not replace:
                raise OperationError(
                    f"{self._name}: '{key}' is already registered",
                    context={"name": key, "registry": self._name},
                )
            self._definitions[key] = definition
        return definition

    def remove(self, name: str) -> D:
        with self._lock:
            try:
                return self._definitions.pop(name)
            except KeyError:
                raise self._missing(name) from None

    def get(self, name: str) -> D:
        """Return the definition called ``name``.

        Raises:
            NotFoundError: If nothing is registered under ``name``
        """
        with self._lock:
            definition = self._definitions.get(name)
            if definition is None:
                raise self._missing(name)
            return definition

    def find(self, name: str) -> D | None:
        with self._lock:
            return self._definitions.get(name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._definitions)

    def definitions(self) -> list[D]:
        with self._lock:
            return list(self._definitions.values())

    def _missing(self, name: str) -> NotFoundError:
        return NotFoundError(
            f"{self._name}: no definition named '{name}'",
            context={"name": name, "registry": self._name, "available": sorted(self._definitions)},
        )

    def __len__(self) -> int:
        with self._lock:
            return len(self._definitions)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._definitions

    def __iter__(self) -> Iterator[D]:
        return iter(self.definitions())

    def __repr__(self) -> str:
        return f"Registry({self._name!r}, {len(self)} definitions)"


__all__ = ["Named", "Registry"]
