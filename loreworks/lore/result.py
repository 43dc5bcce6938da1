from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Evaluation output: every candidate considered and the final selection."""

from dataclasses import dataclass, field
from typing import Any

from loreworks.lore.entry import Entry
from loreworks.schemas import (
    SOURCE_CHARACTER,
    SOURCE_GLOBAL,
    ActivationType,
    DropReason,
    InsertionStrategy,
    Position,
)


@dataclass
class ActivationCandidate:
    """One entry that passed its activation predicate (or was reported at the depth limit)."""

    entry: Entry
    activation_type: ActivationType
    pass_index: int = 0
    matched_keys: tuple[str, ...] = ()
    matched_secondary_keys: tuple[str, ...] = ()
    token_estimate: int = 0
    selected: bool = False
    dropped_reason: DropReason | None = None

    @property
    def uid(self) -> int | str:
        return self.entry.uid

    @property
    def matched_key(self) -> str | None:
        return self.matched_keys[0] if self.matched_keys else None

    def drop(self, reason: DropReason) -> None:
        self.selected = False
        self.dropped_reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.entry.uid,
            "book_name": self.entry.book_name,
            "source": self.entry.source,
            "comment": self.entry.comment,
            "activation_type": self.activation_type.value,
            "pass_index": self.pass_index,
            "matched_keys": list(self.matched_keys),
            "matched_secondary_keys": list(self.matched_secondary_keys),
            "token_estimate": self.token_estimate,
            "selected": self.selected,
            "dropped_reason": self.dropped_reason.value if self.dropped_reason else None,
        }


_PREFERRED_SOURCE: dict[InsertionStrategy, str] = {
    InsertionStrategy.CHARACTER_LORE_FIRST: SOURCE_CHARACTER,
    InsertionStrategy.GLOBAL_LORE_FIRST: SOURCE_GLOBAL,
}


def placement_key(entry: Entry, strategy: InsertionStrategy = InsertionStrategy.SORTED_EVENLY) -> tuple:
    """Sort key for placing *entry* under *strategy*.

    ``sorted_evenly`` interleaves books by ``insertion_order``.  The
    ``*_lore_first`` strategies rank the preferred source first, untagged
    books second and any other source last.
    """
    tail = (entry.insertion_order, entry.book_name or "", str(entry.uid))
    preferred = _PREFERRED_SOURCE.get(strategy)
    if preferred is None:
        return tail
    if entry.source == preferred:
        rank = 0
    elif entry.source is None:
        rank = 1
    else:
        rank = 2
    return (rank, *tail)


@dataclass
class Result:
    candidates: list[ActivationCandidate] = field(default_factory=list)
    budget: int | None = None
    used_tokens: int = 0
    scan_text: str = ""
    passes: int = 0
    insertion_strategy: InsertionStrategy = InsertionStrategy.SORTED_EVENLY
    book_names: tuple[str, ...] = ()

    @property
    def activated_candidates(self) -> list[ActivationCandidate]:
        return [c for c in self.candidates if c.dropped_reason is not DropReason.DEPTH_LIMIT]

    @property
    def activated_entries(self) -> list[Entry]:
        """Entries whose activation predicate held, in activation order."""
        return [c.entry for c in self.activated_candidates]

    @property
    def selected_candidates(self) -> list[ActivationCandidate]:
        return sorted(
            (c for c in self.candidates if c.selected),
            key=lambda c: placement_key(c.entry, self.insertion_strategy),
        )

    @property
    def selected_entries(self) -> list[Entry]:
        """Selected non-outlet entries in placement order (see :func:`placement_key`)."""
        return [c.entry for c in self.selected_candidates if not c.entry.is_outlet]

    @property
    def dropped_candidates(self) -> list[ActivationCandidate]:
        return [c for c in self.candidates if c.dropped_reason is not None]

    @property
    def outlets(self) -> dict[str, str]:
        """Outlet name → contents of its selected entries joined by newline."""
        grouped: dict[str, list[str]] = {}
        for c in self.selected_candidates:
            if c.entry.is_outlet and c.entry.outlet_name:
                grouped.setdefault(c.entry.outlet_name, []).append(c.entry.content)
        return {name: "\n".join(parts) for name, parts in grouped.items()}

    def selected_by_position(
        self, insertion_strategy: InsertionStrategy | str | None = None,
    ) -> dict[Position, list[Entry]]:
        """Selected non-outlet entries per position, placed by *insertion_strategy*
        (the evaluation's own strategy when omitted)."""
        strategy = (
            self.insertion_strategy if insertion_strategy is None
            else InsertionStrategy.parse(insertion_strategy)
        )
        entries = sorted(
            (c.entry for c in self.candidates if c.selected and not c.entry.is_outlet),
            key=lambda e: placement_key(e, strategy),
        )
        out: dict[Position, list[Entry]] = {}
        for entry in entries:
            out.setdefault(entry.position, []).append(entry)
        return out

    def to_dict(self) -> dict[str, Any]:
        return {
            "budget": self.budget,
            "used_tokens": self.used_tokens,
            "passes": self.passes,
            "insertion_strategy": self.insertion_strategy.value,
            "books": list(self.book_names),
            "activated": [str(e.uid) for e in self.activated_entries],
            "selected": [str(e.uid) for e in self.selected_entries],
            "dropped": [
                {"uid": str(c.entry.uid), "reason": c.dropped_reason.value}
                for c in self.dropped_candidates
                if c.dropped_reason is not None
            ],
            "outlets": self.outlets,
            "candidates": [c.to_dict() for c in self.candidates],
        }
