from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Unified exception hierarchy for LoreWorks.

All domain-specific exceptions derive from :class:`LoreWorksError`,
enabling callers to catch the entire family with a single clause::

    try:
        ...
    except LoreWorksError as e:
        logger.error("Lore error: %s", e)

Token estimator and RNG failures are intentionally *not* wrapped; they
propagate unchanged to the caller.
"""


class LoreWorksError(Exception):
    """Base exception for all LoreWorks errors."""


# ── Validation ───────────────────────────────────────────────


class LoreValidationError(LoreWorksError):
    """Declarative lore data failed validation."""


class EntryValidationError(LoreValidationError):
    """A single lore entry is malformed (bad field value, outlet without name)."""


class BookValidationError(LoreValidationError):
    """A lore book is malformed (duplicate uid, negative budget, bad entries)."""


# ── Evaluation ───────────────────────────────────────────────


class EvaluationError(LoreWorksError):
    """Errors raised by the activation engine before or during scanning."""


class GenerationTypeError(EvaluationError):
    """Unknown generation type passed to ``evaluate()``."""

    def __init__(self, value: object, allowed: tuple[str, ...]) -> None:
        super().__init__(
            f"generation_type must be one of {list(allowed)}, got: {value!r}"
        )
        self.value = value
        self.allowed = allowed


# ── Timed-effect state ───────────────────────────────────────


class StateError(LoreWorksError):
    """Timed-effect state errors."""


class StateCorruptedError(StateError):
    """Persisted timed-effect state could not be decoded."""


# ── Configuration ────────────────────────────────────────────


class ConfigError(LoreWorksError):
    """Configuration errors."""


class ConfigValidationError(ConfigError):
    """Configuration validation failure."""
