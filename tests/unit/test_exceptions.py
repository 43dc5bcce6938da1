"""Unit tests for loreworks.exceptions: unified exception hierarchy."""
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest

from loreworks.exceptions import (
    LoreWorksError,
    LoreValidationError, EntryValidationError, BookValidationError,
    EvaluationError, GenerationTypeError,
    StateError, StateCorruptedError,
    ConfigError, ConfigValidationError,
)
from loreworks.schemas import GenerationType

# ── Helpers ──────────────────────────────────────────────────

FAMILY_MAP: dict[type[LoreWorksError], list[type[LoreWorksError]]] = {
    LoreValidationError: [EntryValidationError, BookValidationError],
    EvaluationError: [GenerationTypeError],
    StateError: [StateCorruptedError],
    ConfigError: [ConfigValidationError],
}


# ── 1. Family hierarchy ─────────────────────────────────────


class TestFamilyHierarchy:
    @pytest.mark.parametrize(
        "parent, children",
        list(FAMILY_MAP.items()),
        ids=lambda x: x.__name__ if isinstance(x, type) else None,
    )
    def test_family_hierarchy(self, parent, children) -> None:
        assert issubclass(parent, LoreWorksError)
        for child in children:
            assert issubclass(child, parent), (
                f"{child.__name__} should be a subclass of {parent.__name__}"
            )

    def test_catch_all_with_base(self) -> None:
        with pytest.raises(LoreWorksError):
            raise BookValidationError("duplicate uid")


# ── 2. GenerationTypeError ──────────────────────────────────


class TestGenerationTypeError:
    def test_message_lists_allowed_values(self) -> None:
        err = GenerationTypeError("bogus", ("normal", "swipe"))
        assert str(err) == "generation_type must be one of ['normal', 'swipe'], got: 'bogus'"
        assert err.value == "bogus"
        assert err.allowed == ("normal", "swipe")

    def test_raised_by_parse(self) -> None:
        with pytest.raises(GenerationTypeError) as exc_info:
            GenerationType.parse(42)
        assert "regenerate" in str(exc_info.value)
