from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

"""Inspect command - show how a book's entries were parsed."""

import argparse
import json
import logging
import sys

from loreworks.exceptions import LoreWorksError
from loreworks.lore import Book, Entry

logger = logging.getLogger("loreworks.cli.inspect")


def _entry_summary(entry: Entry) -> dict:
    return {
        "uid": entry.uid,
        "comment": entry.comment,
        "keys": list(entry.keys),
        "constant": entry.constant,
        "enabled": entry.enabled,
        "position": entry.position.value,
        "outlet_name": entry.outlet_name,
        "insertion_order": entry.insertion_order,
        "group": entry.group,
        "decorators": {k: getattr(v, "value", v) for k, v in entry.decorators.items()},
        "fallback_decorators": {k: getattr(v, "value", v) for k, v in entry.fallback_decorators.items()},
        "content": entry.content,
    }


def cmd_inspect(args: argparse.Namespace) -> None:
    """Print every entry of a book with its resolved settings."""
    try:
        book = Book.load_file(args.book)
    except (LoreWorksError, OSError) as e:
        logger.error("Cannot load book %s: %s", args.book, e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    summaries = [_entry_summary(e) for e in book.entries]
    if args.json:
        print(json.dumps(
            {"name": book.name, "token_budget": book.token_budget, "entries": summaries},
            ensure_ascii=False, indent=2, default=str,
        ))
        return

    print(f"Book: {book.name or '(unnamed)'}  entries={len(book.entries)}"
          f"  budget={book.token_budget or 'unlimited'}"
          f"  recursive={'yes' if book.recursive_scanning else 'no'}")
    for s in summaries:
        flags = []
        if s["constant"]:
            flags.append("constant")
        if not s["enabled"]:
            flags.append("disabled")
        print(f"  [{s['uid']}] {s['comment'] or ', '.join(s['keys']) or '-'}"
              f"  ({s['position']}, order={s['insertion_order']})"
              + (f"  {' '.join(flags)}" if flags else ""))
        for name, value in s["decorators"].items():
            print(f"      @@{name} {value}")
        for name, value in s["fallback_decorators"].items():
            print(f"      @@@{name} {value}")
