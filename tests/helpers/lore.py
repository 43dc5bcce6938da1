# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
"""Builders for lore entries and books.

Keeps test bodies focused on the behaviour under test: only the fields
that matter are spelled out, everything else takes the entry defaults.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from loreworks.lore import Book, Entry


class FixedRng:
    """``random.Random`` stand-in returning a fixed draw (or a sequence)."""

    def __init__(self, *values: float) -> None:
        self.values = list(values) or [0.0]
        self.calls = 0

    def random(self) -> float:
        value = self.values[min(self.calls, len(self.values) - 1)]
        self.calls += 1
        return value


class FixedEstimator:
    """Token estimator returning per-content costs from a table (default 1)."""

    def __init__(self, costs: dict[str, int] | None = None, default: int = 1) -> None:
        self.costs = costs or {}
        self.default = default

    def estimate(self, text: str) -> int:
        return self.costs.get(text, self.default)


def make_entry(uid: int | str, keys: list[str] | str | None = None, content: str = "", **fields: Any) -> Entry:
    """Build an :class:`Entry`; ``content`` defaults to ``"<uid> content"``."""
    return Entry(
        uid=uid,
        keys=keys or [],
        content=content or f"{uid} content",
        **fields,
    )


def make_book(*entries: Entry, name: str = "test", **fields: Any) -> Book:
    return Book(name=name, entries=entries, **fields)


def write_book_file(path: Path, data: dict[str, Any]) -> Path:
    """Write *data* as JSON or YAML depending on the suffix of *path*."""
    if path.suffix in (".yaml", ".yml"):
        import yaml

        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
    return path


def uids(entries: list[Entry]) -> list[Any]:
    return [e.uid for e in entries]
