from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Per-pass selection: inclusion groups, probability, then the token budget.

A :class:`BudgetSelector` lives for one ``evaluate()`` call and carries the
running token total, the overflow flag and the groups already won across
passes.
"""

import logging
from collections.abc import Callable, Sequence
from typing import Protocol

from loreworks.lore.result import ActivationCandidate
from loreworks.schemas import ActivationType, DropReason
from loreworks.token_estimator import CharDivEstimator, TokenEstimator

logger = logging.getLogger("loreworks.lore.budget")


class RandomSource(Protocol):
    def random(self) -> float: ...


def order_candidates(
    candidates: Sequence[ActivationCandidate],
    is_sticky: Callable[[ActivationCandidate], bool],
) -> list[ActivationCandidate]:
    """Sticky first, then ``insertion_order`` descending; ties keep input order."""
    return sorted(
        candidates,
        key=lambda c: (0 if is_sticky(c) else 1, -c.entry.insertion_order),
    )


def passes_probability(candidate: ActivationCandidate, rng: RandomSource, *, sticky: bool) -> bool:
    """One draw of ``rng.random() * 100 <= probability``.

    No draw is made when probability is off, 100, or a sticky window is open.
    """
    entry = candidate.entry
    if not entry.use_probability or entry.probability >= 100 or sticky:
        return True
    return rng.random() * 100 <= entry.probability


class BudgetSelector:
    """Greedy, order-preserving selection under a token budget.

    ``budget`` of ``None`` or 0 disables the limit.
    """

    def __init__(self, budget: int | None, estimator: TokenEstimator | None = None) -> None:
        self.budget = budget if budget else None
        self.estimator = estimator or CharDivEstimator()
        self.used_tokens = 0
        self.overflowed = False
        self.selected_groups: set[str] = set()

    def estimate(self, candidate: ActivationCandidate) -> int:
        candidate.token_estimate = int(self.estimator.estimate(candidate.entry.content))
        return candidate.token_estimate

    # ── Inclusion groups ─────────────────────────────────

    def apply_inclusion_groups(
        self,
        candidates: list[ActivationCandidate],
        is_sticky: Callable[[ActivationCandidate], bool],
        *,
        score: Callable[[ActivationCandidate], int] | None = None,
        use_group_scoring: bool = False,
    ) -> list[ActivationCandidate]:
        """Drop group losers with ``group_lost``; returns the survivors in order.

        *candidates* must already be ordered (see :func:`order_candidates`),
        so the first member of a group is its highest-priority member.

        With group scoring on (the *use_group_scoring* default, or an entry's
        own ``use_group_scoring``), scored members below the group's best
        *score* lose before the override rule picks the winner.
        """
        grouped: dict[str, list[ActivationCandidate]] = {}
        for c in candidates:
            for name in c.entry.group_names:
                grouped.setdefault(name, []).append(c)
        if not grouped:
            return list(candidates)

        removed: set[int] = set()

        def lose(c: ActivationCandidate) -> None:
            if id(c) not in removed:
                c.drop(DropReason.GROUP_LOST)
                removed.add(id(c))

        for name, members in grouped.items():
            members = [c for c in members if id(c) not in removed]
            if not members:
                continue

            sticky = [c for c in members if is_sticky(c) or c.activation_type is ActivationType.STICKY]
            if sticky:
                for c in members:
                    if c not in sticky:
                        lose(c)
                continue

            if name in self.selected_groups:
                for c in members:
                    lose(c)
                continue

            if score is not None and (
                use_group_scoring or any(c.entry.use_group_scoring for c in members)
            ):
                scores = {id(c): score(c) for c in members}
                best = max(scores.values())
                for c in members:
                    scored = use_group_scoring if c.entry.use_group_scoring is None else c.entry.use_group_scoring
                    if scored and scores[id(c)] < best:
                        lose(c)
                members = [c for c in members if id(c) not in removed]

            if len(members) == 1:
                continue

            overrides = [c for c in members if c.entry.group_override]
            pool = overrides or members
            winner = max(pool, key=lambda c: c.entry.insertion_order)
            for c in members:
                if c is not winner:
                    lose(c)
            logger.debug("Group %r won by entry %r", name, winner.entry.uid)

        return [c for c in candidates if id(c) not in removed]

    # ── Probability + budget ─────────────────────────────

    def select(
        self,
        candidates: Sequence[ActivationCandidate],
        rng: RandomSource,
        is_sticky: Callable[[ActivationCandidate], bool],
    ) -> list[ActivationCandidate]:
        """Run probability and budget over ordered *candidates*; returns the accepted ones."""
        accepted: list[ActivationCandidate] = []
        for c in candidates:
            exempt = c.entry.ignore_budget
            if self.overflowed and not exempt:
                c.drop(DropReason.BUDGET_EXCEEDED)
                continue

            if not passes_probability(c, rng, sticky=is_sticky(c)):
                c.drop(DropReason.PROBABILITY_FAILED)
                continue

            tokens = self.estimate(c)
            if not exempt:
                if self.budget is not None and self.used_tokens + tokens > self.budget:
                    c.drop(DropReason.BUDGET_EXCEEDED)
                    self.overflowed = True
                    logger.debug(
                        "Budget overflow at entry %r (%d + %d > %d)",
                        c.entry.uid, self.used_tokens, tokens, self.budget,
                    )
                    continue
                self.used_tokens += tokens

            c.selected = True
            c.dropped_reason = None
            self.selected_groups.update(c.entry.group_names)
            accepted.append(c)
        return accepted
