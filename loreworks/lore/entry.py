from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Lore entry value object.

An :class:`Entry` is built once from keyword arguments or a world-info
mapping (:meth:`Entry.from_dict`).  ``@@decorator`` lines in the supplied
content are resolved during validation: the original text is kept in
``raw_content``, the body in ``content``, and the entry is frozen from then
on.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from loreworks.exceptions import EntryValidationError
from loreworks.lore.decorators import default_parser
from loreworks.schemas import (
    ROLE_CODES,
    GenerationType,
    Position,
    Role,
    SELECTIVE_LOGIC_CODES,
    SelectiveLogic,
    coerce_position,
)

logger = logging.getLogger("loreworks.lore.entry")

# ── Source field names ────────────────────────────────────

# Entry field → accepted names in world-info exports (snake_case first).
# The same names are looked up inside ``extensions`` as a fallback.
FIELD_SOURCES: dict[str, tuple[str, ...]] = {
    "keys": ("keys", "key"),
    "secondary_keys": ("secondary_keys", "keysecondary", "secondaryKeys"),
    "selective": ("selective",),
    "selective_logic": ("selective_logic", "selectiveLogic"),
    "exclude_keys": ("exclude_keys", "excludeKeys"),
    "content": ("content",),
    "comment": ("comment", "memo", "name"),
    "constant": ("constant",),
    "position": ("position", "pos"),
    "outlet_name": ("outlet_name", "outletName", "outlet"),
    "role": ("role", "depth_role"),
    "depth": ("depth", "insert_depth"),
    "insertion_order": ("insertion_order", "insertionOrder", "order", "priority"),
    "use_regex": ("use_regex", "useRegex"),
    "case_sensitive": ("case_sensitive", "caseSensitive"),
    "match_whole_words": ("match_whole_words", "matchWholeWords"),
    "probability": ("probability",),
    "use_probability": ("use_probability", "useProbability"),
    "sticky": ("sticky",),
    "cooldown": ("cooldown",),
    "delay": ("delay",),
    "delay_until_recursion": ("delay_until_recursion", "delayUntilRecursion"),
    "prevent_recursion": ("prevent_recursion", "preventRecursion"),
    "exclude_recursion": ("exclude_recursion", "excludeRecursion"),
    "dont_activate": ("dont_activate", "dontActivate"),
    "activate_only_after": ("activate_only_after", "activateOnlyAfter"),
    "activate_only_every": ("activate_only_every", "activateOnlyEvery"),
    "scan_depth": ("scan_depth", "scanDepth"),
    "group": ("group",),
    "group_override": ("group_override", "groupOverride"),
    "use_group_scoring": ("use_group_scoring", "useGroupScoring"),
    "ignore_budget": ("ignore_budget", "ignoreBudget"),
    "triggers": ("triggers",),
    "match_persona_description": ("match_persona_description", "matchPersonaDescription"),
    "match_character_description": ("match_character_description", "matchCharacterDescription"),
    "match_character_personality": ("match_character_personality", "matchCharacterPersonality"),
    "match_character_depth_prompt": ("match_character_depth_prompt", "matchCharacterDepthPrompt"),
    "match_scenario": ("match_scenario", "matchScenario"),
    "match_creator_notes": ("match_creator_notes", "matchCreatorNotes"),
}

# Fields a forced activation may override.
OVERRIDABLE_FIELDS: tuple[str, ...] = (
    "content", "comment", "position", "outlet_name", "role", "depth",
    "insertion_order", "probability", "use_probability", "sticky", "cooldown",
    "delay", "delay_until_recursion", "prevent_recursion", "exclude_recursion",
    "group", "group_override", "use_group_scoring", "ignore_budget",
)

KEY_LIST_FIELDS: tuple[str, ...] = ("keys", "secondary_keys", "exclude_keys")

# Scan-context fields appended to an entry's buffer by its match_* flags.
MATCH_FLAG_FIELDS: dict[str, str] = {
    "match_persona_description": "persona_description",
    "match_character_description": "character_description",
    "match_character_personality": "character_personality",
    "match_character_depth_prompt": "character_depth_prompt",
    "match_scenario": "scenario",
    "match_creator_notes": "creator_notes",
}


def collect_fields(source: Mapping[str, Any], names: tuple[str, ...] | None = None) -> dict[str, Any]:
    """Translate world-info names in *source* to entry field names.

    Only fields actually present (and not ``None``) are returned, so the
    result can tell decorator resolution which fields were supplied.
    Direct keys win over ``extensions`` keys.
    """
    ext = source.get("extensions")
    ext = ext if isinstance(ext, Mapping) else {}
    out: dict[str, Any] = {}
    for field_name in names or tuple(FIELD_SOURCES):
        aliases = FIELD_SOURCES.get(field_name, (field_name,))
        for alias in aliases:
            if source.get(alias) is not None:
                out[field_name] = source[alias]
                break
        else:
            for alias in aliases:
                if ext.get(alias) is not None:
                    out[field_name] = ext[alias]
                    break
    return out


def _split_keys(value: Any) -> Any:
    if value is None:
        return ()
    if isinstance(value, str):
        return tuple(k.strip() for k in value.split(",") if k.strip())
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(k) for k in value if k is not None and str(k).strip())
    return value


def _positive_or_none(value: Any) -> int | None:
    if value is None or value is False:
        return None
    if value is True:
        return 1
    number = int(value)
    return number if number > 0 else None


def _truthy(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


# ── Entry ─────────────────────────────────────────────────


class Entry(BaseModel):
    """One lore rule.  Immutable once constructed."""

    model_config = ConfigDict(frozen=True)

    uid: int | str
    keys: tuple[str, ...] = ()
    secondary_keys: tuple[str, ...] = ()
    selective: bool = False
    selective_logic: SelectiveLogic = SelectiveLogic.AND_ANY
    exclude_keys: tuple[str, ...] = ()

    content: str = ""
    raw_content: str = ""
    comment: str = ""
    enabled: bool = True
    constant: bool = False

    position: Position = Position.AFTER_CHAR_DEFS
    outlet_name: str | None = None
    role: Role = Role.SYSTEM
    depth: int = 0
    insertion_order: int = 0

    use_regex: bool = False
    case_sensitive: bool | None = None  # None = engine default
    match_whole_words: bool | None = None  # None = engine default

    probability: int = 100
    use_probability: bool = True

    sticky: int | None = None
    cooldown: int | None = None
    delay: int | None = None
    delay_until_recursion: int | None = None
    prevent_recursion: bool = False
    exclude_recursion: bool = False
    dont_activate: bool = False
    activate_only_after: int | None = None
    activate_only_every: int | None = None
    scan_depth: int | None = None

    group: str | None = None
    group_override: bool = False
    use_group_scoring: bool | None = None  # None = evaluate() default
    ignore_budget: bool = False
    triggers: tuple[GenerationType, ...] = ()

    match_persona_description: bool = False
    match_character_description: bool = False
    match_character_personality: bool = False
    match_character_depth_prompt: bool = False
    match_scenario: bool = False
    match_creator_notes: bool = False

    book_name: str | None = None
    source: str | None = None
    extensions: dict[str, Any] = {}
    decorators: dict[str, Any] = {}
    fallback_decorators: dict[str, Any] = {}

    # ── Construction ─────────────────────────────────────

    @model_validator(mode="before")
    @classmethod
    def _resolve_decorators(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        fields = {k: v for k, v in data.items() if v is not None}
        if "raw_content" in fields and "decorators" in fields:
            # Already resolved (copy / re-validation): never parse twice.
            return fields

        # Key lists must be tuples before @@additional_keys extends them.
        for name in KEY_LIST_FIELDS:
            if name in fields:
                fields[name] = _split_keys(fields[name])

        raw = str(fields.get("content") or "")
        parsed = default_parser.parse(raw)
        fields = default_parser.apply(fields, parsed)
        fields["raw_content"] = raw
        fields["content"] = parsed.content
        fields["decorators"] = parsed.decorators
        fields["fallback_decorators"] = parsed.fallback_decorators

        if "selective" not in fields:
            fields["selective"] = bool(_split_keys(fields.get("secondary_keys")))
        if coerce_position(fields.get("position")) is not Position.OUTLET:
            fields.pop("outlet_name", None)
        return fields

    @field_validator(*KEY_LIST_FIELDS, mode="before")
    @classmethod
    def _coerce_keys(cls, value: Any) -> Any:
        return _split_keys(value)

    @field_validator("position", mode="before")
    @classmethod
    def _coerce_position(cls, value: Any) -> Position:
        return coerce_position(value)

    @field_validator("role", mode="before")
    @classmethod
    def _coerce_role(cls, value: Any) -> Any:
        if value is None:
            return Role.SYSTEM
        if isinstance(value, int) and not isinstance(value, bool):
            return ROLE_CODES.get(value, Role.SYSTEM)
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("selective_logic", mode="before")
    @classmethod
    def _coerce_selective_logic(cls, value: Any) -> Any:
        if value is None:
            return SelectiveLogic.AND_ANY
        if isinstance(value, int) and not isinstance(value, bool):
            return SELECTIVE_LOGIC_CODES.get(value, SelectiveLogic.AND_ANY)
        if isinstance(value, str) and value.strip().isdigit():
            return SELECTIVE_LOGIC_CODES.get(int(value), SelectiveLogic.AND_ANY)
        return str(value).strip().lower() if isinstance(value, str) else value

    @field_validator("probability", mode="before")
    @classmethod
    def _clamp_probability(cls, value: Any) -> int:
        if value is None:
            return 100
        return max(0, min(100, int(value)))

    @field_validator(
        "sticky", "cooldown", "delay", "delay_until_recursion",
        "activate_only_after", "activate_only_every", mode="before",
    )
    @classmethod
    def _coerce_positive(cls, value: Any) -> int | None:
        if isinstance(value, str):
            text = value.strip().lower()
            if text in {"", "false"}:
                return None
            if text == "true":
                return 1
        return _positive_or_none(value)

    @field_validator("scan_depth", mode="before")
    @classmethod
    def _coerce_scan_depth(cls, value: Any) -> int | None:
        if value is None:
            return None
        return max(0, int(value))

    @field_validator("group", "outlet_name", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        text = str(value).strip()
        return text or None

    @field_validator("triggers", mode="before")
    @classmethod
    def _coerce_triggers(cls, value: Any) -> tuple[GenerationType, ...]:
        if value is None:
            return ()
        items = [value] if isinstance(value, str) else list(value)
        out: list[GenerationType] = []
        for item in items:
            try:
                gen = GenerationType(str(getattr(item, "value", item)).strip().lower())
            except ValueError:
                logger.debug("Ignoring unknown trigger %r", item)
                continue
            if gen not in out:
                out.append(gen)
        return tuple(out)

    @model_validator(mode="after")
    def _check_outlet(self) -> Entry:
        if self.position is Position.OUTLET and not self.outlet_name:
            raise ValueError(f"entry {self.uid!r}: position 'outlet' requires outlet_name")
        return self

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        uid: int | str | None = None,
        book_name: str | None = None,
        source: str | None = None,
    ) -> Entry:
        """Build an entry from a world-info / character-book mapping."""
        if not isinstance(data, Mapping):
            raise EntryValidationError(f"entry must be a mapping, got {type(data).__name__}")

        fields = collect_fields(data)
        fields["uid"] = uid if uid is not None else data.get("uid", data.get("id"))
        if fields["uid"] is None:
            raise EntryValidationError("entry has no uid")
        if data.get("disable") is not None:
            fields["enabled"] = not _truthy(data["disable"])
        elif data.get("enabled") is not None:
            fields["enabled"] = _truthy(data["enabled"])
        ext = data.get("extensions")
        if isinstance(ext, Mapping):
            fields["extensions"] = dict(ext)
        if book_name is not None:
            fields["book_name"] = book_name
        if source is not None:
            fields["source"] = source

        try:
            return cls.model_validate(fields)
        except ValidationError as exc:
            raise EntryValidationError(f"invalid entry {fields['uid']!r}: {exc}") from exc

    # ── Queries ──────────────────────────────────────────

    @property
    def key(self) -> str:
        """Identity used for timed-effect state: ``<book>.<uid>``."""
        return f"{self.book_name or 'unnamed'}.{self.uid}"

    @property
    def group_names(self) -> tuple[str, ...]:
        if not self.group:
            return ()
        return tuple(g.strip() for g in self.group.split(",") if g.strip())

    @property
    def is_outlet(self) -> bool:
        return self.position is Position.OUTLET

    def has_match_flags(self) -> bool:
        return any(getattr(self, flag) for flag in MATCH_FLAG_FIELDS)

    def triggered_by(self, generation_type: GenerationType) -> bool:
        return not self.triggers or generation_type in self.triggers

    def with_overrides(self, overrides: Mapping[str, Any]) -> Entry:
        """Copy with the given fields replaced (forced activations).

        The override content is used verbatim; decorators are not re-parsed.
        """
        update = collect_fields(overrides, OVERRIDABLE_FIELDS)
        if not update:
            return self
        merged = {**self.model_dump(), **update}
        try:
            return type(self).model_validate(merged)
        except ValidationError as exc:
            raise EntryValidationError(f"invalid override for entry {self.uid!r}: {exc}") from exc
