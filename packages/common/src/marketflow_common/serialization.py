"""Dictionary round-tripping for value objects.

Anything handed to a key-value store or the collaborator API (lifecycle
history entries, notifications) implements ``to_dict``/``from_dict``.
:func:`dump` and :func:`load` call those methods and turn every failure into
a :class:`SerializationError` that names the class and, for sequences, the
offending position.

Example:
    ```python
    history = load_many(HistoryEntry, record["statusHistory"])
    record["statusHistory"] = dump_many(history)
    ```
"""

from collections.abc import Iterable, Mapping
from typing import Any, Dict, List, Protocol, Type, TypeVar, runtime_checkable

from marketflow_common.exceptions import SerializationError

T = TypeVar("T")


@runtime_checkable
class Serializable(Protocol):
    def to_dict(self) -> Dict[str, Any]:
        ...

    @classmethod
    def from_dict(cls: Type[T], data: Dict[str, Any]) -> T:
        ...


def dump(obj: Any) -> Dict[str, Any]:
    """Return ``obj.to_dict()``.

    Raises:
        SerializationError: If ``obj`` has no ``to_dict``, it fails, or it
            returns something other than a dict
    """
    class_name = type(obj).__name__
    to_dict = getattr(obj, "to_dict", None)
    if not callable(to_dict):
        raise SerializationError(
            f"{class_name} has no to_dict()", context={"class": class_name}
        )
    try:
        data = to_dict()
    except Exception as e:
        raise SerializationError(
            f"Cannot serialize {class_name}: {e}", context={"class": class_name}
        ) from e
    if not isinstance(data, dict):
        raise SerializationError(
            f"{class_name}.to_dict() returned {type(data).__name__}, expected dict",
            context={"class": class_name, "returned": type(data).__name__},
        )
    return data


def load(cls: Type[T], data: Any) -> T:
    """Build ``cls`` from a mapping with ``cls.from_dict``.

    Raises:
        SerializationError: If ``cls`` has no ``from_dict``, ``data`` is not
            a mapping, or ``from_dict`` fails
    """
    if not callable(getattr(cls, "from_dict", None)):
        raise SerializationError(
            f"{cls.__name__} has no from_dict()", context={"class": cls.__name__}
        )
    if not isinstance(data, Mapping):
        raise SerializationError(
            f"Cannot load {cls.__name__} from {type(data).__name__}",
            context={"class": cls.__name__, "data_type": type(data).__name__},
        )
    try:
        return cls.from_dict(dict(data))
    except SerializationError:
        raise
    except Exception as e:
        raise SerializationError(
            f"Cannot load {cls.__name__}: {e}",
            context={"class": cls.__name__, "data": dict(data)},
        ) from e


def dump_many(items: Iterable[Any]) -> List[Dict[str, Any]]:
    return [dump(item) for item in items]


def load_many(cls: Type[T], rows: Any) -> List[T]:
    """Load a list of ``cls``; ``None`` loads as an empty list.

    Raises:
        SerializationError: If ``rows`` is not a list or tuple, or any row
            fails to load (``context["index"]`` gives its position)
    """
    if rows is None:
        return []
    if not isinstance(rows, (list, tuple)):
        raise SerializationError(
            f"Expected a list of {cls.__name__}, got {type(rows).__name__}",
            context={"class": cls.__name__, "data_type": type(rows).__name__},
        )
    loaded: List[T] = []
    for index, row in enumerate(rows):
        try:
            loaded.append(load(cls, row))
        except SerializationError as e:
            raise SerializationError(
                f"{e.message} (item {index})", context={**e.context, "index": index}
            ) from e
    return loaded


__all__ = [
    "Serializable",
    "dump",
    "load",
    "dump_many",
    "load_many",
]
