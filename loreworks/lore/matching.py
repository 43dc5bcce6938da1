from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Key matching against a scan buffer.

Key forms:

- ``/pattern/flags`` literal: always compiled as a regex (flags ``gimsuy``;
  ``i``, ``m`` and ``s`` are honoured).
- any key when the entry has ``use_regex``: the key is a ready pattern.
- otherwise a plain string: case-insensitive substring, or a whole-word
  match when ``match_whole_words`` is on and the key is a single word.

Invalid patterns never match.  Compiled patterns are cached process-wide.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache

from loreworks.lore.entry import Entry
from loreworks.schemas import SelectiveLogic

logger = logging.getLogger("loreworks.lore.matching")

_REGEX_LITERAL_RE = re.compile(r"^/(.+)/([a-z]*)$", re.DOTALL)
_JS_NAMED_GROUP_RE = re.compile(r"\(\?<(?=[A-Za-z_])")
_JS_FLAGS = frozenset("gimsuy")

_warned: set[str] = set()


# ── Pattern compilation ───────────────────────────────────


def parse_regex_literal(key: str) -> tuple[str, str] | None:
    """Split ``/pattern/flags`` into its parts; ``None`` for anything else."""
    m = _REGEX_LITERAL_RE.match(key.strip())
    if not m:
        return None
    source, flags = m.group(1), m.group(2)
    if not set(flags) <= _JS_FLAGS:
        return None
    return source, flags


def _translate(source: str) -> str:
    return _JS_NAMED_GROUP_RE.sub("(?P<", source)


@lru_cache(maxsize=4096)
def compile_key(key: str, use_regex: bool, case_sensitive: bool) -> re.Pattern[str] | None:
    """Compiled regex for *key*, or ``None`` when the key is matched literally
    or the pattern is invalid."""
    literal = parse_regex_literal(key)
    if literal is not None:
        source, js_flags = literal
        flags = 0
        if "i" in js_flags:
            flags |= re.IGNORECASE
        if "m" in js_flags:
            flags |= re.MULTILINE
        if "s" in js_flags:
            flags |= re.DOTALL
    elif use_regex:
        source = key
        flags = 0 if case_sensitive else re.IGNORECASE
    else:
        return None

    try:
        return re.compile(_translate(source), flags)
    except re.error as exc:
        if key not in _warned:
            _warned.add(key)
            logger.warning("Invalid regex key %r ignored: %s", key, exc)
        return None


def is_regex_key(key: str, use_regex: bool) -> bool:
    return use_regex or parse_regex_literal(key) is not None


# ── Matcher ───────────────────────────────────────────────


@dataclass(frozen=True)
class MatchOptions:
    """Effective per-entry matching switches (entry value or engine default)."""

    use_regex: bool = False
    case_sensitive: bool = False
    match_whole_words: bool = False

    @classmethod
    def for_entry(cls, entry: Entry, *, case_sensitive: bool, match_whole_words: bool) -> MatchOptions:
        return cls(
            use_regex=entry.use_regex,
            case_sensitive=case_sensitive if entry.case_sensitive is None else entry.case_sensitive,
            match_whole_words=match_whole_words if entry.match_whole_words is None else entry.match_whole_words,
        )


def key_matches(key: str, text: str, options: MatchOptions) -> bool:
    """Whether *key* occurs in *text* under *options*."""
    if not key or not text:
        return False

    if is_regex_key(key, options.use_regex):
        pattern = compile_key(key, options.use_regex, options.case_sensitive)
        return pattern is not None and pattern.search(text) is not None

    needle = key.strip()
    if not needle:
        return False
    haystack = text
    if not options.case_sensitive:
        needle = needle.casefold()
        haystack = haystack.casefold()

    if options.match_whole_words and len(needle.split()) == 1:
        pattern = compile_key(
            r"(?:^|\W)" + re.escape(needle) + r"(?:$|\W)", True, True,
        )
        return pattern is not None and pattern.search(haystack) is not None
    return needle in haystack


@dataclass(frozen=True)
class KeyMatch:
    """Outcome of testing one entry's keys against one buffer."""

    matched_keys: tuple[str, ...] = ()
    matched_secondary_keys: tuple[str, ...] = ()

    @property
    def primary_key(self) -> str | None:
        return self.matched_keys[0] if self.matched_keys else None


class MatchEngine:
    """Evaluates primary, exclude and secondary keys for an entry."""

    def __init__(self, *, case_sensitive: bool = False, match_whole_words: bool = False) -> None:
        self.case_sensitive = case_sensitive
        self.match_whole_words = match_whole_words

    def options_for(self, entry: Entry) -> MatchOptions:
        return MatchOptions.for_entry(
            entry,
            case_sensitive=self.case_sensitive,
            match_whole_words=self.match_whole_words,
        )

    def match(self, entry: Entry, text: str) -> KeyMatch | None:
        """Match *entry* against *text*; ``None`` when it does not activate.

        Exclude keys are always matched as plain strings, even for regex
        entries.
        """
        if not entry.keys or not text:
            return None
        options = self.options_for(entry)

        matched = tuple(k for k in entry.keys if key_matches(k, text, options))
        if not matched:
            return None

        if entry.exclude_keys:
            plain = MatchOptions(
                case_sensitive=options.case_sensitive,
                match_whole_words=options.match_whole_words,
            )
            if any(key_matches(k, text, plain) for k in entry.exclude_keys):
                return None

        secondary: tuple[str, ...] = ()
        if entry.selective and entry.secondary_keys:
            secondary = tuple(k for k in entry.secondary_keys if key_matches(k, text, options))
            if not _secondary_passes(entry.selective_logic, len(secondary), len(entry.secondary_keys)):
                return None

        return KeyMatch(matched_keys=matched, matched_secondary_keys=secondary)

    def score(self, entry: Entry, text: str) -> int:
        """Number of keys of *entry* found in *text*, for group scoring.

        Primary hits always count.  Secondary hits are added under
        ``and_any``, and under ``and_all`` only when every secondary key hit.
        """
        if not entry.keys or not text:
            return 0
        options = self.options_for(entry)
        primary = sum(1 for k in entry.keys if key_matches(k, text, options))
        if not (entry.selective and entry.secondary_keys):
            return primary
        secondary = sum(1 for k in entry.secondary_keys if key_matches(k, text, options))
        if entry.selective_logic is SelectiveLogic.AND_ANY:
            return primary + secondary
        if entry.selective_logic is SelectiveLogic.AND_ALL and secondary == len(entry.secondary_keys):
            return primary + secondary
        return primary


def _secondary_passes(logic: SelectiveLogic, hits: int, total: int) -> bool:
    if logic is SelectiveLogic.AND_ANY:
        return hits > 0
    if logic is SelectiveLogic.AND_ALL:
        return hits == total
    if logic is SelectiveLogic.NOT_ANY:
        return hits == 0
    if logic is SelectiveLogic.NOT_ALL:
        return hits < total
    return True
