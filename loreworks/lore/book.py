from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Lore book: an ordered, validated collection of entries plus scan settings."""

import json
import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator

from loreworks.exceptions import BookValidationError, EntryValidationError
from loreworks.lore.entry import Entry
from loreworks.schemas import SOURCE_CHARACTER

logger = logging.getLogger("loreworks.lore.book")

# Book field → accepted names in world-info / character-book exports.
BOOK_FIELD_SOURCES: dict[str, tuple[str, ...]] = {
    "name": ("name",),
    "source": ("source",),
    "description": ("description",),
    "scan_depth": ("scan_depth", "scanDepth"),
    "token_budget": ("token_budget", "tokenBudget"),
    "recursive_scanning": ("recursive_scanning", "recursiveScanning"),
    "min_activations": ("min_activations", "minActivations"),
    "min_activations_depth_max": ("min_activations_depth_max", "minActivationsDepthMax"),
}


def _numeric_first(key: object) -> tuple[int, int, str]:
    text = str(key)
    try:
        return (0, int(text), text)
    except ValueError:
        return (1, 0, text)


class Book(BaseModel):
    """Immutable lore collection.  ``token_budget`` of ``None`` or 0 means unlimited."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    source: str | None = None
    description: str = ""
    entries: tuple[Entry, ...] = ()
    token_budget: int | None = None
    scan_depth: int | None = None
    recursive_scanning: bool = False
    min_activations: int = 0
    min_activations_depth_max: int = 0
    extensions: dict[str, Any] = {}

    @model_validator(mode="before")
    @classmethod
    def _stamp_entries(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        stamp = {k: data[k] for k in ("name", "source") if data.get(k)}
        if not stamp:
            return data
        if "name" in stamp:
            stamp["book_name"] = stamp.pop("name")
        stamped = []
        for item in data.get("entries") or ():
            if isinstance(item, Entry):
                update = {k: v for k, v in stamp.items() if getattr(item, k) is None}
                if update:
                    item = item.model_copy(update=update)
            elif isinstance(item, Mapping):
                item = {**item, **{k: v for k, v in stamp.items() if item.get(k) is None}}
            stamped.append(item)
        return {**data, "entries": tuple(stamped)}

    @field_validator("token_budget", "scan_depth")
    @classmethod
    def _non_negative_or_none(cls, value: int | None, info) -> int | None:
        if value is not None and value < 0:
            raise ValueError(f"{info.field_name} must be >= 0, got {value}")
        return value

    @field_validator("min_activations", "min_activations_depth_max", mode="before")
    @classmethod
    def _none_to_zero(cls, value: Any) -> Any:
        return 0 if value is None else value

    @field_validator("min_activations", "min_activations_depth_max")
    @classmethod
    def _non_negative(cls, value: int, info) -> int:
        if value < 0:
            raise ValueError(f"{info.field_name} must be >= 0, got {value}")
        return value

    @model_validator(mode="after")
    def _unique_uids(self) -> Book:
        seen: set[str] = set()
        for entry in self.entries:
            uid = str(entry.uid)
            if uid in seen:
                raise ValueError(f"duplicate entry uid {entry.uid!r}")
            seen.add(uid)
        return self

    # ── Construction ─────────────────────────────────────

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        *,
        name: str | None = None,
        source: str | None = None,
    ) -> Book:
        """Build a book from a world-info JSON object.

        Accepts entries as a list or a uid-keyed object, and unwraps a
        Character Card V2 (``spec: chara_card_v2``) to its ``character_book``.
        *name* is used only when the data carries no name of its own.
        *source* tags the book and its entries (``"global"``, ``"character"``,
        ...) and wins over a ``source`` in the data; an unwrapped card
        defaults to ``"character"``.
        """
        if not isinstance(data, Mapping):
            raise BookValidationError(f"book must be a mapping, got {type(data).__name__}")

        card = data.get("data")
        if data.get("spec") == "chara_card_v2" or (isinstance(card, Mapping) and "character_book" in card):
            card = card if isinstance(card, Mapping) else {}
            book = card.get("character_book")
            if not isinstance(book, Mapping):
                raise BookValidationError("character card has no character_book")
            name = book.get("name") or card.get("name") or name
            data = {**book, "source": book.get("source") or SOURCE_CHARACTER}

        fields: dict[str, Any] = {}
        ext = data.get("extensions") if isinstance(data.get("extensions"), Mapping) else {}
        for field_name, aliases in BOOK_FIELD_SOURCES.items():
            for alias in aliases:
                if data.get(alias) is not None:
                    fields[field_name] = data[alias]
                    break
            else:
                for alias in aliases:
                    if ext.get(alias) is not None:
                        fields[field_name] = ext[alias]
                        break
        if fields.get("name") is None and name is not None:
            fields["name"] = name
        if source is not None:
            fields["source"] = source
        if ext:
            fields["extensions"] = dict(ext)

        book_name = fields.get("name")
        source = fields.get("source")
        try:
            fields["entries"] = tuple(
                Entry.from_dict(raw, uid=uid, book_name=book_name, source=source)
                for uid, raw in _iter_raw_entries(data.get("entries"))
            )
            return cls.model_validate(fields)
        except EntryValidationError as exc:
            raise BookValidationError(f"book {book_name!r}: {exc}") from exc
        except ValidationError as exc:
            raise BookValidationError(f"invalid book {book_name!r}: {exc}") from exc

    @classmethod
    def load_file(cls, path: str | Path, *, source: str | None = None) -> Book:
        """Load a book from ``.json`` or ``.yaml`` / ``.yml``."""
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        try:
            if path.suffix.lower() in (".yaml", ".yml"):
                data = yaml.safe_load(text)
            else:
                data = json.loads(text)
        except (json.JSONDecodeError, yaml.YAMLError) as exc:
            raise BookValidationError(f"cannot parse {path}: {exc}") from exc
        if data is None:
            data = {}
        logger.debug("Loaded book source %s", path)
        return cls.from_dict(data, name=path.stem, source=source)

    # ── Queries ──────────────────────────────────────────

    def get(self, uid: int | str) -> Entry | None:
        for entry in self.entries:
            if str(entry.uid) == str(uid):
                return entry
        return None


def _iter_raw_entries(raw: Any):
    """Yield ``(uid, mapping)`` pairs in book order."""
    if raw is None:
        return
    if isinstance(raw, Mapping):
        for key in sorted(raw, key=_numeric_first):
            item = raw[key]
            if not isinstance(item, Mapping):
                raise BookValidationError(f"entry {key!r} must be a mapping")
            uid = item.get("uid", item.get("id"))
            if uid is None:
                uid = int(key) if str(key).isdigit() else key
            yield uid, item
        return
    if isinstance(raw, (list, tuple)):
        for idx, item in enumerate(raw):
            if not isinstance(item, Mapping):
                raise BookValidationError(f"entry #{idx} must be a mapping")
            uid = item.get("uid", item.get("id"))
            yield (idx + 1 if uid is None else uid), item
        return
    raise BookValidationError(f"entries must be a list or an object, got {type(raw).__name__}")
