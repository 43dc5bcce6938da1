# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

"""Token estimation for lore budget accounting.

Hosts with a real tokenizer implement :class:`TokenEstimator`; the
character heuristic is the default.  Estimator exceptions are never caught
by the engine.
"""

from __future__ import annotations

import math
from typing import Protocol, runtime_checkable

# Rough characters-per-token for English-like text
CHARS_PER_TOKEN = 4


@runtime_checkable
class TokenEstimator(Protocol):
    def estimate(self, text: str) -> int: ...


class CharDivEstimator:
    """``ceil(len(text) / chars_per_token)``; empty text costs 0 tokens."""

    def __init__(self, chars_per_token: int = CHARS_PER_TOKEN) -> None:
        if chars_per_token <= 0:
            raise ValueError("chars_per_token must be positive")
        self.chars_per_token = chars_per_token

    def estimate(self, text: str) -> int:
        if not text:
            return 0
        return math.ceil(len(text) / self.chars_per_token)

    def __repr__(self) -> str:
        return f"CharDivEstimator(chars_per_token={self.chars_per_token})"
