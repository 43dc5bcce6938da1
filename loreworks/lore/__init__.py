# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from loreworks.lore.book import Book
from loreworks.lore.budget import BudgetSelector
from loreworks.lore.decorators import DecoratorParser, ParsedDecorators
from loreworks.lore.engine import LoreEngine
from loreworks.lore.entry import Entry
from loreworks.lore.matching import MatchEngine
from loreworks.lore.result import ActivationCandidate, Result
from loreworks.lore.timed_effects import TimedEffectsStore

__all__ = [
    "ActivationCandidate",
    "Book",
    "BudgetSelector",
    "DecoratorParser",
    "Entry",
    "LoreEngine",
    "MatchEngine",
    "ParsedDecorators",
    "Result",
    "TimedEffectsStore",
]
