"""Unit tests for loreworks/schemas.py: shared enums and coercion helpers."""
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest

from loreworks.exceptions import EvaluationError, GenerationTypeError
from loreworks.schemas import GenerationType, InsertionStrategy, Position, coerce_position


class TestGenerationTypeParse:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("normal", GenerationType.NORMAL),
            (" Swipe ", GenerationType.SWIPE),
            ("REGENERATE", GenerationType.REGENERATE),
            (GenerationType.QUIET, GenerationType.QUIET),
        ],
    )
    def test_known_values(self, value, expected):
        assert GenerationType.parse(value) is expected

    @pytest.mark.parametrize("value", ["", "brainstorm", None, 1])
    def test_unknown_values_raise(self, value):
        with pytest.raises(GenerationTypeError):
            GenerationType.parse(value)


class TestCoercePosition:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("in_chat", Position.IN_CHAT),
            ("OUTLET", Position.OUTLET),
            (4, Position.IN_CHAT),
            ("0", Position.BEFORE_CHAR_DEFS),
            ("after_desc", Position.AFTER_CHAR_DEFS),
            ("@D", Position.IN_CHAT),
            (Position.SCENARIO, Position.SCENARIO),
        ],
    )
    def test_names_aliases_and_codes(self, value, expected):
        assert coerce_position(value) is expected

    @pytest.mark.parametrize("value", [None, True, 99, "nowhere"])
    def test_unknown_falls_back_to_default(self, value):
        assert coerce_position(value) is Position.AFTER_CHAR_DEFS
        assert coerce_position(value, Position.IN_CHAT) is Position.IN_CHAT

    def test_enum_compares_to_string(self):
        assert Position.OUTLET == "outlet"


class TestInsertionStrategyParse:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("sorted_evenly", InsertionStrategy.SORTED_EVENLY),
            (" Character_Lore_First ", InsertionStrategy.CHARACTER_LORE_FIRST),
            ("global_first", InsertionStrategy.GLOBAL_LORE_FIRST),
            (InsertionStrategy.GLOBAL_LORE_FIRST, InsertionStrategy.GLOBAL_LORE_FIRST),
        ],
    )
    def test_known_values(self, value, expected):
        assert InsertionStrategy.parse(value) is expected

    def test_unknown_value_raises(self):
        with pytest.raises(EvaluationError, match="insertion_strategy"):
            InsertionStrategy.parse("random")
