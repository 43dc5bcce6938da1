from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Sticky / cooldown / delay bookkeeping across evaluations.

State lives in the host's :class:`~loreworks.variables.VariablesStore` as a
JSON document under a single key::

    {
      "sticky":   {"<book>.<uid>": {"start": 4, "end": 6, "protected": false}},
      "cooldown": {"<book>.<uid>": {"start": 6, "end": 9, "protected": true}}
    }

``delay`` is derived from the message count alone and is never stored.
"""

import json
import logging
from collections.abc import Iterable
from typing import Any

from loreworks.config.models import DEFAULT_TIMED_EFFECTS_KEY
from loreworks.exceptions import StateCorruptedError
from loreworks.lore.entry import Entry
from loreworks.variables import VariablesStore

logger = logging.getLogger("loreworks.lore.timed_effects")

EFFECT_TYPES = ("sticky", "cooldown")


def _empty_state() -> dict[str, dict[str, Any]]:
    return {t: {} for t in EFFECT_TYPES}


class TimedEffectsStore:
    """Timed-effect state for one evaluation of one chat.

    Call :meth:`check` once before querying; it expires windows, turns
    finished sticky windows into cooldowns and writes the cleaned state
    back.  :meth:`set_effects` records windows for the selected entries.
    With ``persist=False`` nothing is written.
    """

    def __init__(
        self,
        message_count: int,
        entries: Iterable[Entry],
        variables_store: VariablesStore,
        state_key: str = DEFAULT_TIMED_EFFECTS_KEY,
        *,
        persist: bool = True,
    ) -> None:
        self.message_count = int(message_count)
        self.variables_store = variables_store
        self.state_key = state_key
        self.persist = persist
        self._entries: dict[str, Entry] = {e.key: e for e in entries}
        self._state = self._load()
        self._active: dict[str, set[str]] = {t: set() for t in EFFECT_TYPES}

    # ── State I/O ────────────────────────────────────────

    def _load(self) -> dict[str, dict[str, Any]]:
        raw = self.variables_store.get(self.state_key)
        if raw is None or not str(raw).strip():
            return _empty_state()
        try:
            return self._decode(str(raw))
        except StateCorruptedError as exc:
            logger.warning("Resetting timed-effect state %r: %s", self.state_key, exc)
            return _empty_state()

    @staticmethod
    def _decode(raw: str) -> dict[str, dict[str, Any]]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StateCorruptedError(f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise StateCorruptedError(f"expected an object, got {type(data).__name__}")
        state = _empty_state()
        for effect_type in EFFECT_TYPES:
            section = data.get(effect_type)
            if isinstance(section, dict):
                state[effect_type] = section
        return state

    def _save(self) -> None:
        if not self.persist:
            return
        self.variables_store.set(self.state_key, json.dumps(self._state, sort_keys=True))

    @property
    def state(self) -> dict[str, dict[str, Any]]:
        return self._state

    # ── Expiry ───────────────────────────────────────────

    def check(self) -> None:
        """Recompute the active windows for :attr:`message_count`."""
        self._active = {t: set() for t in EFFECT_TYPES}
        self._process("sticky")
        self._process("cooldown")
        self._save()

    def _process(self, effect_type: str) -> None:
        effects = self._state[effect_type]
        for key, data in list(effects.items()):
            if not isinstance(data, dict):
                del effects[key]
                continue
            try:
                start = int(data.get("start", 0))
                end = int(data.get("end", 0))
            except (TypeError, ValueError):
                del effects[key]
                continue
            protected = bool(data.get("protected"))

            # Chat has not advanced since the window was set (regenerate/swipe).
            if self.message_count <= start and not protected:
                del effects[key]
                continue

            entry = self._entries.get(key)
            if entry is None:
                # Entry from another book: keep until it would have expired.
                if self.message_count >= end:
                    del effects[key]
                continue

            if getattr(entry, effect_type) is None:
                del effects[key]
                continue

            if self.message_count >= end:
                del effects[key]
                if effect_type == "sticky":
                    self._start_cooldown_after_sticky(entry, end)
                continue

            self._active[effect_type].add(key)

    def _start_cooldown_after_sticky(self, entry: Entry, sticky_end: int) -> None:
        if entry.cooldown is None:
            return
        self._state["cooldown"][entry.key] = {
            "start": sticky_end,
            "end": sticky_end + entry.cooldown,
            "protected": True,
        }
        logger.debug("Sticky ended for %s; cooldown until %d", entry.key, sticky_end + entry.cooldown)

    # ── Queries ──────────────────────────────────────────

    def is_delay_active(self, entry: Entry) -> bool:
        return entry.delay is not None and self.message_count < entry.delay

    def is_sticky_active(self, entry: Entry) -> bool:
        return entry.key in self._active["sticky"]

    def is_cooldown_active(self, entry: Entry) -> bool:
        return entry.key in self._active["cooldown"]

    # ── Updates ──────────────────────────────────────────

    def set_effects(self, entries: Iterable[Entry]) -> None:
        """Open sticky/cooldown windows for *entries*; existing windows are kept."""
        if not self.persist:
            return
        for entry in entries:
            for effect_type in EFFECT_TYPES:
                duration = getattr(entry, effect_type)
                if duration is None:
                    continue
                self._state[effect_type].setdefault(entry.key, {
                    "start": self.message_count,
                    "end": self.message_count + duration,
                    "protected": False,
                })
        self._save()
