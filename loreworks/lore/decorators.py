from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Inline ``@@decorator`` directives for lore entry content.

Directives are written one per line at the very start of an entry's
content, before the text that gets injected::

    @@depth 2
    @@role assistant
    @@@position outlet
    The actual content.

``@@name value`` lines are primary decorators and override the entry's own
field.  ``@@@name value`` lines are fallback decorators: they only fill a
field that neither a primary decorator nor the entry itself supplies.

Directive handling is table-driven (:data:`DIRECTIVES`): each name maps to
a value parser and the entry field it writes, so adding a directive never
touches the line scanner.
"""

import logging
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from loreworks.schemas import POSITION_ALIASES, Position, Role

logger = logging.getLogger("loreworks.lore.decorators")

# ── Line patterns ─────────────────────────────────────────

_PRIMARY_RE = re.compile(r"^@@(\w+)(?:\s+(.+))?$")
_FALLBACK_RE = re.compile(r"^@@@(\w+)(?:\s+(.+))?$")
_LEADING_INT_RE = re.compile(r"^[+-]?\d+")


# ── Value parsers ─────────────────────────────────────────


def parse_int(value: str | None) -> int | None:
    """Leading integer of *value*; ``None`` when there is none."""
    if value is None:
        return None
    m = _LEADING_INT_RE.match(value.strip())
    return int(m.group(0)) if m else None


def parse_flag(_value: str | None) -> bool:
    """Presence of a flag directive means true, whatever follows it."""
    return True


def parse_unflag(_value: str | None) -> bool:
    return False


def parse_list(value: str | None) -> list[str]:
    if value is None:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


def parse_role(value: str | None) -> Role | None:
    if value is None:
        return None
    try:
        return Role(value.strip().lower())
    except ValueError:
        return None


def parse_position(value: str | None) -> Position | None:
    if value is None:
        return None
    key = value.strip().lower()
    try:
        return Position(key)
    except ValueError:
        return POSITION_ALIASES.get(key)


def parse_text(value: str | None) -> str:
    return "" if value is None else value.strip()


# ── Directive table ───────────────────────────────────────


@dataclass(frozen=True)
class Directive:
    """How one directive name is parsed and applied.

    ``target`` is the entry field written; ``extend`` appends list values to
    the field instead of replacing it.
    """

    parse: Callable[[str | None], Any]
    target: str
    extend: bool = False


DIRECTIVES: dict[str, Directive] = {
    # integers
    "depth": Directive(parse_int, "depth"),
    "scan_depth": Directive(parse_int, "scan_depth"),
    "activate_only_after": Directive(parse_int, "activate_only_after"),
    "activate_only_every": Directive(parse_int, "activate_only_every"),
    "sticky": Directive(parse_int, "sticky"),
    "cooldown": Directive(parse_int, "cooldown"),
    "delay": Directive(parse_int, "delay"),
    # flags
    "constant": Directive(parse_flag, "constant"),
    "dont_activate": Directive(parse_flag, "dont_activate"),
    "activate": Directive(parse_unflag, "dont_activate"),
    "use_regex": Directive(parse_flag, "use_regex"),
    "case_sensitive": Directive(parse_flag, "case_sensitive"),
    "match_whole_words": Directive(parse_flag, "match_whole_words"),
    "prevent_recursion": Directive(parse_flag, "prevent_recursion"),
    "exclude_recursion": Directive(parse_flag, "exclude_recursion"),
    "ignore_budget": Directive(parse_flag, "ignore_budget"),
    # lists
    "additional_keys": Directive(parse_list, "keys", extend=True),
    "exclude_keys": Directive(parse_list, "exclude_keys"),
    # enums
    "role": Directive(parse_role, "role"),
    "position": Directive(parse_position, "position"),
}


# ── Parser ────────────────────────────────────────────────


@dataclass(frozen=True)
class ParsedDecorators:
    """Directive maps plus the content left after the directive block."""

    decorators: dict[str, Any] = field(default_factory=dict)
    fallback_decorators: dict[str, Any] = field(default_factory=dict)
    content: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.decorators and not self.fallback_decorators


class DecoratorParser:
    """Splits leading ``@@`` / ``@@@`` directive lines off entry content."""

    def __init__(self, directives: Mapping[str, Directive] | None = None) -> None:
        self.directives = DIRECTIVES if directives is None else directives

    def parse(self, raw_content: str | None) -> ParsedDecorators:
        if not raw_content:
            return ParsedDecorators(content="")

        lines = raw_content.splitlines(keepends=True)
        decorators: dict[str, Any] = {}
        fallback: dict[str, Any] = {}
        last_directive = -1

        for idx, line in enumerate(lines):
            stripped = line.strip()
            if not stripped:
                continue
            m = _FALLBACK_RE.match(stripped)
            if m:
                name = m.group(1).lower()
                fallback[name] = self._parse_value(name, m.group(2))
                last_directive = idx
                continue
            m = _PRIMARY_RE.match(stripped)
            if m:
                name = m.group(1).lower()
                decorators[name] = self._parse_value(name, m.group(2))
                last_directive = idx
                continue
            break

        if last_directive < 0:
            return ParsedDecorators(content=raw_content)

        rest = lines[last_directive + 1:]
        if rest and not rest[0].strip():
            rest = rest[1:]
        return ParsedDecorators(
            decorators=decorators,
            fallback_decorators=fallback,
            content="".join(rest),
        )

    def _parse_value(self, name: str, value: str | None) -> Any:
        directive = self.directives.get(name)
        if directive is None:
            return parse_text(value)
        return directive.parse(value)

    def apply(self, fields: Mapping[str, Any], parsed: ParsedDecorators) -> dict[str, Any]:
        """Merge *parsed* onto entry *fields* and return the new field map.

        Precedence per field: primary decorator, then the supplied field,
        then fallback decorator.  A field counts as supplied when it is
        present and not ``None`` (or a non-empty list for list fields).
        """
        out = dict(fields)
        primary_targets: set[str] = set()

        for name, value in parsed.decorators.items():
            directive = self.directives.get(name)
            if directive is None or value is None:
                continue
            self._write(out, directive, value)
            primary_targets.add(directive.target)

        for name, value in parsed.fallback_decorators.items():
            directive = self.directives.get(name)
            if directive is None or value is None:
                continue
            if directive.target in primary_targets or _is_supplied(fields.get(directive.target)):
                continue
            self._write(out, directive, value)

        return out

    @staticmethod
    def _write(out: dict[str, Any], directive: Directive, value: Any) -> None:
        if directive.extend:
            existing = list(out.get(directive.target) or [])
            out[directive.target] = existing + [v for v in value if v not in existing]
        else:
            out[directive.target] = value


def _is_supplied(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (list, tuple, str)) and not value:
        return False
    return True


default_parser = DecoratorParser()
