# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import argparse
import os
import sys


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="loreworks",
        description="LoreWorks - World Info Activation Engine",
    )
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Override data directory (default: ~/.loreworks or LOREWORKS_DATA_DIR)",
    )
    sub = parser.add_subparsers(dest="command")

    # ── Evaluate ──────────────────────────────────────────
    p_eval = sub.add_parser("evaluate", help="Evaluate a lore book against chat text")
    p_eval.add_argument(
        "book", nargs="+",
        help="Lore book files (.json, .yaml, .yml); several are evaluated together",
    )
    source = p_eval.add_mutually_exclusive_group()
    source.add_argument(
        "--text", default=None,
        help="Scan text; lines are messages, newest first (default: stdin)",
    )
    source.add_argument(
        "--messages-file", default=None, metavar="PATH",
        help="JSON array of messages, newest first",
    )
    p_eval.add_argument("--scan-depth", type=int, default=None, help="Messages to scan")
    p_eval.add_argument(
        "--message-count", type=int, default=None,
        help="Chat length for timed effects (default: number of messages)",
    )
    p_eval.add_argument(
        "--generation-type", default="normal",
        help="normal | continue | impersonate | swipe | regenerate | quiet",
    )
    p_eval.add_argument(
        "--state-file", default=None, metavar="PATH",
        help="JSON variables file holding timed-effect state (read and updated)",
    )
    p_eval.add_argument(
        "--chat", default=None, metavar="ID",
        help="Keep timed-effect state under the data directory for this chat id",
    )
    p_eval.add_argument("--token-budget", type=int, default=None, help="Override the summed book budgets")
    p_eval.add_argument(
        "--insertion-strategy", default="sorted_evenly",
        help="sorted_evenly | character_lore_first | global_lore_first",
    )
    p_eval.add_argument(
        "--group-scoring", action="store_true",
        help="Keep only the best-matching members of inclusion groups",
    )
    p_eval.add_argument("--seed", type=int, default=None, help="Seed for probability rolls")
    p_eval.add_argument("--json", action="store_true", help="Print the full result as JSON")
    p_eval.set_defaults(func=_lazy_evaluate)

    # ── Inspect ───────────────────────────────────────────
    p_inspect = sub.add_parser("inspect", help="List entries with their parsed decorators")
    p_inspect.add_argument("book", help="Lore book file (.json, .yaml, .yml)")
    p_inspect.add_argument("--json", action="store_true", help="Print entries as JSON")
    p_inspect.set_defaults(func=_lazy_inspect)

    return parser


def cli_main(argv: list[str] | None = None) -> None:
    from dotenv import load_dotenv

    load_dotenv()

    parser = build_parser()
    args = parser.parse_args(argv)

    # Apply --data-dir override before any command
    if args.data_dir:
        os.environ["LOREWORKS_DATA_DIR"] = args.data_dir

    from loreworks.config import load_config
    from loreworks.logging_config import setup_logging
    from loreworks.paths import get_logs_dir

    config = load_config()
    setup_logging(
        level=os.environ.get("LOREWORKS_LOG_LEVEL", config.system.log_level),
        log_dir=get_logs_dir(),
        json_file=config.system.json_log_file,
    )

    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()
        sys.exit(1)


# ── Lazy import wrappers ──────────────────────────────────


def _lazy_evaluate(args: argparse.Namespace) -> None:
    from cli.commands.evaluate import cmd_evaluate

    cmd_evaluate(args)


def _lazy_inspect(args: argparse.Namespace) -> None:
    from cli.commands.inspect_cmd import cmd_inspect

    cmd_inspect(args)
