from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Lore activation engine.

:class:`LoreEngine` decides which entries of a :class:`~loreworks.lore.book.Book`
are relevant to the recent conversation and which of those fit the token
budget.  One ``evaluate()`` call runs a worklist of scan passes:

1. **Direct pass** over the newest ``scan_depth`` messages.  Forced,
   constant and sticky entries activate here without key matches.
2. **Recursive passes** (``Book.recursive_scanning``) re-scan with the
   content of entries accepted in the previous pass appended, up to
   ``EngineConfig.max_recursion_steps`` extra passes.
3. **Min-activation passes** widen the message window one message at a time
   while fewer than ``min_activations`` entries are selected.  These replace
   recursion when both are configured.

Each pass orders its new candidates (sticky first, then insertion order
descending), resolves inclusion groups, rolls probability and applies the
budget.  Several books may be evaluated together; they share one budget
and one set of passes.  Timed effects are read before the first pass and
written once at the end.

The engine keeps no per-call state on the instance and may be shared across
threads.
"""

import logging
import random
from collections.abc import Iterable, Mapping, Sequence
from enum import Enum
from typing import Any

from loreworks.config.models import EngineConfig
from loreworks.exceptions import EvaluationError
from loreworks.lore.book import Book
from loreworks.lore.budget import BudgetSelector, RandomSource, order_candidates
from loreworks.lore.entry import MATCH_FLAG_FIELDS, Entry
from loreworks.lore.matching import MatchEngine
from loreworks.lore.result import ActivationCandidate, Result
from loreworks.lore.timed_effects import TimedEffectsStore
from loreworks.schemas import ActivationType, DropReason, GenerationType, InsertionStrategy
from loreworks.token_estimator import CharDivEstimator, TokenEstimator
from loreworks.variables import InMemoryVariables, VariablesStore

logger = logging.getLogger("loreworks.lore.engine")


class ScanKind(str, Enum):
    DIRECT = "direct"
    RECURSIVE = "recursive"
    MIN_ACTIVATIONS = "min_activations"


_KIND_ACTIVATION = {
    ScanKind.DIRECT: ActivationType.DIRECT,
    ScanKind.RECURSIVE: ActivationType.RECURSIVE,
    ScanKind.MIN_ACTIVATIONS: ActivationType.MIN_ACTIVATIONS,
}


def _head(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[:limit]


def _tail(text: str, limit: int) -> str:
    return text if len(text) <= limit else text[-limit:]


class _Pass:
    """Inputs shared by every entry tested in one scan pass."""

    __slots__ = ("index", "kind", "depth", "level", "recursion_buffer", "injects", "_windows")

    def __init__(
        self,
        index: int,
        kind: ScanKind,
        depth: int | None,
        level: int,
        recursion_buffer: str,
        injects: str = "",
    ) -> None:
        self.index = index
        self.kind = kind
        self.depth = depth
        self.level = level
        self.recursion_buffer = recursion_buffer
        self.injects = injects
        self._windows: dict[int, str] = {}


class LoreEngine:
    """Stateless lore activation engine."""

    def __init__(
        self,
        config: EngineConfig | None = None,
        token_estimator: TokenEstimator | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.token_estimator = token_estimator or CharDivEstimator()
        self.matcher = MatchEngine(
            case_sensitive=self.config.case_sensitive,
            match_whole_words=self.config.match_whole_words,
        )

    # ── Public API ───────────────────────────────────────

    def evaluate(
        self,
        book: Book | None = None,
        *,
        books: Sequence[Book] | None = None,
        scan_text: str | None = None,
        scan_messages: Sequence[str] | None = None,
        scan_depth: int | None = None,
        message_count: int | None = None,
        generation_type: GenerationType | str = GenerationType.NORMAL,
        variables_store: VariablesStore | None = None,
        rng: RandomSource | None = None,
        token_estimator: TokenEstimator | None = None,
        forced_activations: Iterable[Any] | None = None,
        min_activations: int | None = None,
        min_activations_depth_max: int | None = None,
        token_budget: int | None = None,
        scan_context: Mapping[str, str] | None = None,
        scan_injects: Iterable[str] | None = None,
        insertion_strategy: InsertionStrategy | str = InsertionStrategy.SORTED_EVENLY,
        use_group_scoring: bool = False,
        persist_effects: bool = True,
    ) -> Result:
        """Evaluate *book* (or several *books*) against the scan input and
        return the selection.

        ``scan_messages`` are newest first; ``scan_text`` is split on newlines
        and treated the same way.  ``scan_injects`` are extra lines matched by
        every entry after the message window and context fields.

        With several books the entries are scanned together: the budget is
        the sum of the books' budgets, recursion runs when any book enables
        it, and ``insertion_strategy`` decides how the books interleave in
        the placement order.

        Raises :class:`GenerationTypeError` for an unknown ``generation_type``
        and :class:`EvaluationError` for missing or clashing books, before
        anything is scanned.
        """
        gen_type = GenerationType.parse(generation_type)
        strategy = InsertionStrategy.parse(insertion_strategy)
        all_books = self._collect_books(book, books)

        if scan_messages is not None:
            messages = [str(m) for m in scan_messages]
        else:
            messages = scan_text.split("\n") if scan_text else []
        text = scan_text if scan_text is not None else "\n".join(messages)

        depth = scan_depth if scan_depth is not None else max(
            (b.scan_depth for b in all_books if b.scan_depth is not None), default=None,
        )
        if token_budget is not None:
            budget = token_budget
        else:
            budget = sum(b.token_budget for b in all_books if b.token_budget and b.token_budget > 0)
        budget = budget if budget and budget > 0 else None
        msg_count = int(message_count) if message_count is not None else len(messages)
        min_act = max(
            0,
            min_activations if min_activations is not None
            else max(b.min_activations for b in all_books),
        )
        depth_max = max(
            0,
            min_activations_depth_max if min_activations_depth_max is not None
            else max(b.min_activations_depth_max for b in all_books),
        )
        recursive = any(b.recursive_scanning for b in all_books) and min_act == 0
        book_names = tuple(b.name or "" for b in all_books)

        every_entry = [e for b in all_books for e in b.entries]
        entries = [e for e in every_entry if e.enabled and e.triggered_by(gen_type)]
        selector = BudgetSelector(budget, token_estimator or self.token_estimator)
        if not entries:
            return Result(budget=budget, scan_text=text, insertion_strategy=strategy, book_names=book_names)

        rng = rng if rng is not None else random.Random()
        timed = TimedEffectsStore(
            msg_count,
            every_entry,
            variables_store if variables_store is not None else InMemoryVariables(),
            self.config.timed_effects_key,
            persist=persist_effects,
        )
        timed.check()

        forced = self._index_forced(forced_activations)
        context = dict(scan_context or {})
        injects = _tail(
            "\n".join(str(s) for s in scan_injects or () if s),
            self.config.max_scan_buffer_size,
        )

        def is_sticky(c: ActivationCandidate) -> bool:
            return timed.is_sticky_active(c.entry)

        candidates: dict[str, ActivationCandidate] = {}
        recursion_buffer = ""
        max_level = max((e.delay_until_recursion or 0 for e in entries), default=0)
        level = 0
        steps = 0
        skew = 0
        pass_index = 0

        while True:
            if recursive and recursion_buffer:
                kind = ScanKind.RECURSIVE
            elif skew > 0:
                kind = ScanKind.MIN_ACTIVATIONS
            else:
                kind = ScanKind.DIRECT
            scan = _Pass(
                pass_index,
                kind,
                depth + skew if depth is not None else None,
                level,
                recursion_buffer,
                injects,
            )

            activated_now: list[ActivationCandidate] = []
            for entry in entries:
                if entry.key in candidates:
                    continue
                cand = self._try_activate(entry, scan, messages, context, msg_count, timed, forced)
                if cand is not None:
                    candidates[entry.key] = cand
                    activated_now.append(cand)

            accepted: list[ActivationCandidate] = []
            if activated_now:
                ordered = order_candidates(activated_now, is_sticky)
                survivors = selector.apply_inclusion_groups(
                    ordered,
                    is_sticky,
                    score=lambda c, scan=scan: self.matcher.score(
                        c.entry, self._scan_buffer(c.entry, scan, messages, context),
                    ),
                    use_group_scoring=use_group_scoring,
                )
                accepted = selector.select(survivors, rng, is_sticky)

            logger.debug(
                "Pass %d (%s, depth=%s, level=%d): %d activated, %d accepted, %d tokens used",
                pass_index, kind.value, scan.depth, level,
                len(activated_now), len(accepted), selector.used_tokens,
            )
            pass_index += 1

            if selector.overflowed:
                break

            if recursive:
                new_text = "\n".join(
                    c.entry.content for c in accepted
                    if not c.entry.prevent_recursion and c.entry.content.strip()
                )
                if new_text:
                    joined = f"{recursion_buffer}\n{new_text}" if recursion_buffer else new_text
                    recursion_buffer = _tail(joined, self.config.max_scan_buffer_size)
                    if level < max_level:
                        level += 1
                elif level < max_level and recursion_buffer:
                    level += 1
                else:
                    break

                if steps >= self.config.max_recursion_steps:
                    self._report_depth_limit(
                        entries, candidates,
                        _Pass(pass_index, ScanKind.RECURSIVE, depth, level, recursion_buffer, injects),
                        messages, context, msg_count, timed,
                    )
                    break
                steps += 1
                continue

            if min_act and sum(1 for c in candidates.values() if c.selected) < min_act:
                if depth is None:
                    break
                next_depth = depth + skew + 1
                if (depth_max > 0 and next_depth > depth_max) or next_depth > len(messages):
                    break
                skew += 1
                continue

            break

        timed.set_effects(c.entry for c in candidates.values() if c.selected)

        result = Result(
            candidates=list(candidates.values()),
            budget=budget,
            used_tokens=selector.used_tokens,
            scan_text=text,
            passes=pass_index,
            insertion_strategy=strategy,
            book_names=book_names,
        )
        logger.debug(
            "Evaluated %s: %d activated, %d selected, %d dropped in %d passes",
            ", ".join(repr(n) for n in book_names),
            len(result.activated_entries), len(result.selected_candidates),
            len(result.dropped_candidates), pass_index,
        )
        return result

    # ── Activation predicate ─────────────────────────────

    def _try_activate(
        self,
        entry: Entry,
        scan: _Pass,
        messages: list[str],
        context: Mapping[str, str],
        message_count: int,
        timed: TimedEffectsStore,
        forced: Mapping[str, list[tuple[str | None, Mapping[str, Any]]]],
    ) -> ActivationCandidate | None:
        sticky = timed.is_sticky_active(entry)

        if entry.activate_only_after is not None and message_count < entry.activate_only_after:
            return None
        if entry.activate_only_every is not None and message_count % entry.activate_only_every != 0:
            return None
        if timed.is_cooldown_active(entry) and not sticky:
            return None
        if timed.is_delay_active(entry):
            return None
        if entry.delay_until_recursion is not None and not sticky:
            if scan.kind is not ScanKind.RECURSIVE or scan.level < entry.delay_until_recursion:
                return None
        if scan.kind is ScanKind.RECURSIVE and entry.exclude_recursion and not sticky:
            return None

        override = _forced_for(forced, entry) if scan.index == 0 else None
        if override is not None:
            return ActivationCandidate(
                entry=entry.with_overrides(override),
                activation_type=ActivationType.FORCED,
                pass_index=scan.index,
            )
        if entry.constant:
            return ActivationCandidate(entry=entry, activation_type=ActivationType.CONSTANT, pass_index=scan.index)
        if sticky:
            return ActivationCandidate(entry=entry, activation_type=ActivationType.STICKY, pass_index=scan.index)
        if entry.dont_activate:
            return None

        buffer = self._scan_buffer(entry, scan, messages, context)
        match = self.matcher.match(entry, buffer)
        if match is None:
            return None
        return ActivationCandidate(
            entry=entry,
            activation_type=_KIND_ACTIVATION[scan.kind],
            pass_index=scan.index,
            matched_keys=match.matched_keys,
            matched_secondary_keys=match.matched_secondary_keys,
        )

    def _scan_buffer(
        self,
        entry: Entry,
        scan: _Pass,
        messages: list[str],
        context: Mapping[str, str],
    ) -> str:
        """Text one entry is matched against in one pass.

        Message window (entry ``scan_depth`` overrides the pass depth), then
        the context fields selected by the entry's ``match_*`` flags, then the
        scan injects, then the recursion buffer.  A depth of 0 scans nothing at all.
        """
        depth = entry.scan_depth if entry.scan_depth is not None else scan.depth
        if depth is None:
            depth = len(messages)
        if depth <= 0:
            return ""

        window = scan._windows.get(depth)
        if window is None:
            window = _head("\n".join(messages[:depth]), self.config.max_scan_buffer_size)
            scan._windows[depth] = window

        parts = [window]
        if entry.has_match_flags():
            for flag, field_name in MATCH_FLAG_FIELDS.items():
                value = context.get(field_name) if getattr(entry, flag) else None
                if value:
                    parts.append(str(value))
        if scan.injects:
            parts.append(scan.injects)
        if scan.kind is ScanKind.RECURSIVE and scan.recursion_buffer:
            parts.append(scan.recursion_buffer)
        return "\n".join(p for p in parts if p)

    def _report_depth_limit(
        self,
        entries: list[Entry],
        candidates: dict[str, ActivationCandidate],
        scan: _Pass,
        messages: list[str],
        context: Mapping[str, str],
        message_count: int,
        timed: TimedEffectsStore,
    ) -> None:
        """Record entries the next, capped, recursion pass would have activated."""
        for entry in entries:
            if entry.key in candidates:
                continue
            cand = self._try_activate(entry, scan, messages, context, message_count, timed, {})
            if cand is None:
                continue
            cand.drop(DropReason.DEPTH_LIMIT)
            candidates[entry.key] = cand
            logger.debug("Entry %r not scanned: recursion step limit reached", entry.uid)

    # ── Books ────────────────────────────────────────────

    @staticmethod
    def _collect_books(book: Book | None, books: Sequence[Book] | None) -> list[Book]:
        """*book* followed by *books*; names must be unique so entry keys stay distinct."""
        all_books = ([book] if book is not None else []) + list(books or ())
        if not all_books:
            raise EvaluationError("evaluate() needs a book or books")
        seen: set[str | None] = set()
        for b in all_books:
            if b.name in seen:
                raise EvaluationError(f"duplicate book name {b.name!r} in one evaluation")
            seen.add(b.name)
        return all_books

    # ── Forced activations ───────────────────────────────

    @staticmethod
    def _index_forced(
        forced_activations: Iterable[Any] | None,
    ) -> dict[str, list[tuple[str | None, Mapping[str, Any]]]]:
        """Map uid → ``(book name or None, override mapping)`` pairs.

        Items are bare uids or mappings with ``uid`` (or ``id``) plus
        optional field overrides and an optional ``book_name`` (``book``,
        ``world``) target.
        """
        out: dict[str, list[tuple[str | None, Mapping[str, Any]]]] = {}
        for item in forced_activations or ():
            if isinstance(item, Mapping):
                uid = item.get("uid", item.get("id"))
                if uid is None:
                    continue
                target = item.get("book_name") or item.get("book") or item.get("world")
                out.setdefault(str(uid), []).append((str(target) if target else None, item))
            elif isinstance(item, (int, str)) and not isinstance(item, bool):
                out.setdefault(str(item), []).append((None, {}))
        return out


def _forced_for(
    forced: Mapping[str, list[tuple[str | None, Mapping[str, Any]]]],
    entry: Entry,
) -> Mapping[str, Any] | None:
    """Override mapping forcing *entry*, or ``None``.

    An item naming the entry's book wins over an untargeted one.  Items
    naming another book never apply, except to entries of an unnamed book.
    """
    fallback = None
    for target, item in forced.get(str(entry.uid), ()):
        if target is None or entry.book_name is None:
            if fallback is None:
                fallback = item
        elif target == entry.book_name:
            return item
    return fallback
