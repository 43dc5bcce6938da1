from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Closed vocabularies shared by the lore engine.

String-valued enums so that values survive a JSON round trip unchanged and
compare equal to their plain-string spelling (``Position.OUTLET == "outlet"``).
"""

from enum import Enum

from loreworks.exceptions import EvaluationError, GenerationTypeError


class GenerationType(str, Enum):
    NORMAL = "normal"
    CONTINUE = "continue"
    IMPERSONATE = "impersonate"
    SWIPE = "swipe"
    REGENERATE = "regenerate"
    QUIET = "quiet"

    @classmethod
    def parse(cls, value: object) -> GenerationType:
        """Strictly resolve *value*; unknown values raise :class:`GenerationTypeError`."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise GenerationTypeError(value, tuple(m.value for m in cls))


class Position(str, Enum):
    BEFORE_CHAR_DEFS = "before_char_defs"
    AFTER_CHAR_DEFS = "after_char_defs"
    IN_CHAT = "in_chat"
    PERSONALITY = "personality"
    SCENARIO = "scenario"
    OUTLET = "outlet"
    TOP_OF_AN = "top_of_an"
    BOTTOM_OF_AN = "bottom_of_an"
    BEFORE_EXAMPLE_MESSAGES = "before_example_messages"
    AFTER_EXAMPLE_MESSAGES = "after_example_messages"


# Aliases seen in world-info exports and @@position directives.
# Integer codes are the SillyTavern ``position`` numbering.
POSITION_ALIASES: dict[object, Position] = {
    0: Position.BEFORE_CHAR_DEFS,
    1: Position.AFTER_CHAR_DEFS,
    2: Position.TOP_OF_AN,
    3: Position.BOTTOM_OF_AN,
    4: Position.IN_CHAT,
    5: Position.BEFORE_EXAMPLE_MESSAGES,
    6: Position.AFTER_EXAMPLE_MESSAGES,
    7: Position.OUTLET,
    "before_char": Position.BEFORE_CHAR_DEFS,
    "before_desc": Position.BEFORE_CHAR_DEFS,
    "before_main": Position.BEFORE_CHAR_DEFS,
    "after_char": Position.AFTER_CHAR_DEFS,
    "after_desc": Position.AFTER_CHAR_DEFS,
    "after_main": Position.AFTER_CHAR_DEFS,
    "top_an": Position.TOP_OF_AN,
    "bottom_an": Position.BOTTOM_OF_AN,
    "at_depth": Position.IN_CHAT,
    "depth": Position.IN_CHAT,
    "@d": Position.IN_CHAT,
}


def coerce_position(value: object, default: Position = Position.AFTER_CHAR_DEFS) -> Position:
    """Map a position name, alias or ST integer code onto :class:`Position`."""
    if value is None:
        return default
    if isinstance(value, Position):
        return value
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return POSITION_ALIASES.get(value, default)
    key = str(value).strip().lower()
    if key.isdigit():
        return POSITION_ALIASES.get(int(key), default)
    try:
        return Position(key)
    except ValueError:
        return POSITION_ALIASES.get(key, default)


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


# ST stores depth roles as 0/1/2.
ROLE_CODES: dict[int, Role] = {0: Role.SYSTEM, 1: Role.USER, 2: Role.ASSISTANT}


class SelectiveLogic(str, Enum):
    AND_ANY = "and_any"
    AND_ALL = "and_all"
    NOT_ANY = "not_any"
    NOT_ALL = "not_all"


# ST ``selectiveLogic`` integer codes.
SELECTIVE_LOGIC_CODES: dict[int, SelectiveLogic] = {
    0: SelectiveLogic.AND_ANY,
    1: SelectiveLogic.NOT_ALL,
    2: SelectiveLogic.NOT_ANY,
    3: SelectiveLogic.AND_ALL,
}


class ActivationType(str, Enum):
    CONSTANT = "constant"
    FORCED = "forced"
    STICKY = "sticky"
    DIRECT = "direct"
    RECURSIVE = "recursive"
    MIN_ACTIVATIONS = "min_activations"


class DropReason(str, Enum):
    BUDGET_EXCEEDED = "budget_exceeded"
    PROBABILITY_FAILED = "probability_failed"
    GROUP_LOST = "group_lost"
    DEPTH_LIMIT = "depth_limit"


class InsertionStrategy(str, Enum):
    """Placement order of selected entries coming from several books."""

    SORTED_EVENLY = "sorted_evenly"
    CHARACTER_LORE_FIRST = "character_lore_first"
    GLOBAL_LORE_FIRST = "global_lore_first"

    @classmethod
    def parse(cls, value: object) -> InsertionStrategy:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower()
        key = INSERTION_STRATEGY_ALIASES.get(key, key)
        try:
            return cls(key)
        except ValueError:
            raise EvaluationError(
                f"insertion_strategy must be one of {[m.value for m in cls]}, got: {value!r}"
            ) from None


INSERTION_STRATEGY_ALIASES: dict[str, str] = {
    "evenly": "sorted_evenly",
    "character_first": "character_lore_first",
    "global_first": "global_lore_first",
}

# Book/entry ``source`` values ranked by the *_lore_first strategies.
SOURCE_CHARACTER = "character"
SOURCE_GLOBAL = "global"
