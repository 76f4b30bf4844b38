"""Injected key-value persistence.

The engines never touch a storage medium directly. Anything that needs to
survive a page reload (wizard drafts, saved-item ids) goes through a
:class:`KeyValueStore`, which the host application supplies.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
import time
from collections.abc import Callable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from marketflow_common.exceptions import NotFoundError, SerializationError

from .settings import WorkflowSettings

logger = logging.getLogger(__name__)

DRAFT_METADATA_KEYS = frozenset({"id", "status", "createdAt"})


@runtime_checkable
class KeyValueStore(Protocol):
    """Minimal get/set/delete storage capability."""

    def get(self, key: str, default: Any = None) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryKeyValueStore:
    """Dictionary-backed store. Values are deep-copied on the way in and out."""

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = copy.deepcopy(dict(initial or {}))

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._data)


class JsonFileKeyValueStore:
    """Store backed by a single JSON object file.

    The file is read on every ``get`` and replaced on every ``set`` or
    ``delete`` by writing a temporary file beside it and renaming it over
    the original. Values must be JSON-serializable.
    """

    def __init__(self, path: str | Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with open(self._path, encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise SerializationError(
                f"Corrupt store file {self._path}: {e}",
                context={"path": str(self._path)},
            ) from e
        if not isinstance(data, dict):
            raise SerializationError(
                "Store file must contain a JSON object",
                context={"path": str(self._path), "type": type(data).__name__},
            )
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            text = json.dumps(data, indent=2, sort_keys=True)
        except (TypeError, ValueError) as e:
            raise SerializationError(
                f"Value is not JSON-serializable: {e}", context={"path": str(self._path)}
            ) from e
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
            os.replace(temp_path, self._path)
        except Exception:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise

    def get(self, key: str, default: Any = None) -> Any:
        return self._read().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class DraftStore:
    """Saved-but-unsubmitted wizard form data, kept as a list under one key.

    Each draft is the form data plus ``id`` (``draft_<epoch ms>``),
    ``status: "draft"`` and an ISO ``createdAt``.

    Args:
        store: Backing key-value store
        key: Key holding the draft list
        clock: Returns epoch seconds; injectable for tests
    """

    def __init__(
        self,
        store: KeyValueStore,
        key: str = "inventory_drafts",
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self._key = key
        self._clock = clock

    @classmethod
    def from_settings(
        cls,
        store: KeyValueStore,
        settings: WorkflowSettings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> DraftStore:
        """Draft store keyed by ``settings.draft_key``."""
        return cls(store, (settings or WorkflowSettings()).draft_key, clock)

    @property
    def key(self) -> str:
        return self._key

    def list(self) -> list[dict[str, Any]]:
        drafts = self._store.get(self._key, [])
        if not isinstance(drafts, list):
            raise SerializationError(
                f"Draft list under '{self._key}' is not a list",
                context={"key": self._key, "type": type(drafts).__name__},
            )
        return drafts

    def save(self, form_data: Mapping[str, Any]) -> dict[str, Any]:
        """Append a draft and return it."""
        drafts = self.list()
        now = self._clock()
        draft_id = f"draft_{int(now * 1000)}"
        existing = {d.get("id") for d in drafts}
        suffix = 1
        while draft_id in existing:
            draft_id = f"draft_{int(now * 1000)}_{suffix}"
            suffix += 1

        draft = {
            "id": draft_id,
            **copy.deepcopy(dict(form_data)),
            "status": "draft",
            "createdAt": datetime.fromtimestamp(now, tz=timezone.utc).isoformat(),
        }
        drafts.append(draft)
        self._store.set(self._key, drafts)
        logger.debug("Saved draft %s under %s", draft_id, self._key)
        return draft

    def load(self, draft_id: str) -> dict[str, Any]:
        for draft in self.list():
            if draft.get("id") == draft_id:
                return draft
        raise NotFoundError(
            f"Draft not found: {draft_id}", context={"draft_id": draft_id, "key": self._key}
        )

    def discard(self, draft_id: str) -> None:
        drafts = self.list()
        remaining = [d for d in drafts if d.get("id") != draft_id]
        if len(remaining) == len(drafts):
            raise NotFoundError(
                f"Draft not found: {draft_id}", context={"draft_id": draft_id, "key": self._key}
            )
        self._store.set(self._key, remaining)


def draft_form_data(draft: Mapping[str, Any]) -> dict[str, Any]:
    """Strip draft bookkeeping keys, leaving only form fields."""
    return {k: copy.deepcopy(v) for k, v in draft.items() if k not in DRAFT_METADATA_KEYS}
