from __future__ import annotations
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

"""Evaluate command - run the activation engine over books and chat text."""

import argparse
import json
import logging
import random
import sys
import uuid
from pathlib import Path

from loreworks.config import load_config
from loreworks.exceptions import LoreWorksError
from loreworks.logging_config import set_request_id
from loreworks.lore import Book, LoreEngine, Result
from loreworks.paths import get_state_dir
from loreworks.variables import InMemoryVariables

logger = logging.getLogger("loreworks.cli.evaluate")


def _read_messages(args: argparse.Namespace) -> list[str]:
    if args.messages_file:
        data = json.loads(Path(args.messages_file).read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise ValueError("messages file must contain a JSON array")
        return [str(m) for m in data]
    text = args.text if args.text is not None else sys.stdin.read()
    return text.split("\n") if text else []


def _state_path(args: argparse.Namespace) -> Path | None:
    if args.state_file:
        return Path(args.state_file)
    if getattr(args, "chat", None):
        return get_state_dir() / f"{args.chat}.json"
    return None


def _print_result(result: Result) -> None:
    print(f"Passes: {result.passes}  Tokens: {result.used_tokens}"
          + (f"/{result.budget}" if result.budget else ""))
    print()
    print("Selected:")
    for entry in result.selected_entries:
        label = entry.comment or ", ".join(entry.keys) or "-"
        prefix = f"{entry.book_name}:" if len(result.book_names) > 1 and entry.book_name else ""
        print(f"  [{prefix}{entry.uid}] {label} ({entry.position.value}, order={entry.insertion_order})")
    for name, text in result.outlets.items():
        print(f"  outlet {name!r}: {len(text)} chars")
    dropped = result.dropped_candidates
    if dropped:
        print()
        print("Dropped:")
        for c in dropped:
            print(f"  [{c.entry.uid}] {c.dropped_reason.value}")


def cmd_evaluate(args: argparse.Namespace) -> None:
    """Evaluate one or more lore books and print the selection."""
    set_request_id(uuid.uuid4().hex[:12])

    state_path = _state_path(args)
    try:
        books = [Book.load_file(path) for path in args.book]
        messages = _read_messages(args)
        store = InMemoryVariables.load_from_file(state_path) if state_path else InMemoryVariables()
        engine = LoreEngine(load_config().engine)
        result = engine.evaluate(
            books=books,
            scan_messages=messages,
            scan_depth=args.scan_depth,
            message_count=args.message_count,
            generation_type=args.generation_type,
            variables_store=store,
            rng=random.Random(args.seed),
            token_budget=args.token_budget,
            insertion_strategy=args.insertion_strategy,
            use_group_scoring=args.group_scoring,
        )
    except (LoreWorksError, OSError, ValueError) as e:
        logger.error("Evaluation failed: %s", e)
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    if state_path:
        store.dump_to_file(state_path)

    if args.json:
        print(json.dumps(result.to_dict(), ensure_ascii=False, indent=2))
    else:
        _print_result(result)
