# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Per-chat variable storage used to persist timed-effect state.

The engine only needs ``get`` / ``set`` / ``delete`` / ``in``; hosts plug
in their own backend (database row, Redis hash, ...) by subclassing
:class:`VariablesStore`.  Values are stored as strings.

The engine performs no locking: the host is responsible for serializing
evaluations of the same chat.
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterator, MutableMapping
from pathlib import Path

logger = logging.getLogger("loreworks.variables")


class VariablesStore(ABC):
    """Abstract key/value store contract."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value or ``None`` when missing."""

    @abstractmethod
    def set(self, key: str, value: object) -> None:
        """Store *value* (stringified) under *key*."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove *key*; missing keys are ignored."""

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    @staticmethod
    def _coerce_key(key: object) -> str:
        k = str(key).strip()
        if not k:
            raise ValueError("variable key cannot be empty")
        return k


class InMemoryVariables(VariablesStore):
    """Dict-backed store.

    When *backing* is given it is mutated in place, which lets callers keep
    the state inside an object they already persist.
    """

    def __init__(self, backing: MutableMapping[str, str] | None = None) -> None:
        self._store: MutableMapping[str, str] = backing if backing is not None else {}

    def get(self, key: str) -> str | None:
        return self._store.get(self._coerce_key(key))

    def set(self, key: str, value: object) -> None:
        self._store[self._coerce_key(key)] = "" if value is None else str(value)

    def delete(self, key: str) -> None:
        self._store.pop(self._coerce_key(key), None)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._store))

    def __len__(self) -> int:
        return len(self._store)

    def to_dict(self) -> dict[str, str]:
        return dict(self._store)

    # ── Persistence ──────────────────────────────────────────

    def dump(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, sort_keys=True)

    @classmethod
    def load(cls, text: str) -> InMemoryVariables:
        data = json.loads(text) if text.strip() else {}
        if not isinstance(data, dict):
            raise ValueError("variables document must be a JSON object")
        return cls({str(k): "" if v is None else str(v) for k, v in data.items()})

    def dump_to_file(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.dump() + "\n", encoding="utf-8")
        logger.debug("Variables saved to %s (%d keys)", path, len(self))

    @classmethod
    def load_from_file(cls, path: Path) -> InMemoryVariables:
        """Load a store from *path*; a missing file yields an empty store."""
        if not path.is_file():
            return cls()
        return cls.load(path.read_text(encoding="utf-8"))
