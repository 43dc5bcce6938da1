# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Logging setup for LoreWorks hosts and the CLI.

Library modules log through ``logging.getLogger("loreworks.<component>")``
and never configure handlers themselves.  :func:`setup_logging` routes
those records through structlog so that every line carries a timestamp,
the logger name and the evaluation's request id:

- console: human-readable ``ConsoleRenderer``
- ``<log_dir>/loreworks.log``: one JSON object per line (orjson), rotated
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import orjson
import structlog

LOG_FILE_NAME = "loreworks.log"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5


def set_request_id(request_id: str) -> None:
    """Bind *request_id* to every log line emitted in the current context."""
    structlog.contextvars.bind_contextvars(request_id=request_id)


def get_request_id() -> str:
    return structlog.contextvars.get_contextvars().get("request_id", "-")


# ── Processors ─────────────────────────────────────────────────

_PRE_CHAIN = (
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_log_level,
    structlog.stdlib.add_logger_name,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
)


def _dumps(obj: object, **_kw) -> str:  # noqa: ANN001
    return orjson.dumps(obj, default=str).decode("utf-8")


def _formatter(renderer) -> structlog.stdlib.ProcessorFormatter:  # noqa: ANN001
    # stdlib records go through the same pre-chain as structlog loggers
    return structlog.stdlib.ProcessorFormatter(
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        foreign_pre_chain=list(_PRE_CHAIN),
    )


def _file_handler(log_dir: Path, json_file: bool) -> RotatingFileHandler:
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUPS,
        encoding="utf-8",
    )
    renderer = (
        structlog.processors.JSONRenderer(serializer=_dumps)
        if json_file
        else structlog.dev.ConsoleRenderer(colors=False)
    )
    handler.setFormatter(_formatter(renderer))
    return handler


# ── Setup ──────────────────────────────────────────────────────


def setup_logging(
    level: str = "INFO",
    log_dir: Path | None = None,
    json_file: bool = True,
) -> None:
    """Replace the root handlers with the LoreWorks console/file pair.

    Args:
        level: Root log level name; unknown names fall back to INFO.
        log_dir: Directory for ``loreworks.log``; ``None`` logs to the console only.
        json_file: Write the file as JSON lines instead of plain text.
    """
    structlog.configure(
        processors=[*_PRE_CHAIN, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    for handler in root.handlers:
        handler.close()
    root.handlers.clear()

    console = logging.StreamHandler()
    console.setFormatter(_formatter(structlog.dev.ConsoleRenderer()))
    root.addHandler(console)

    if log_dir is not None:
        root.addHandler(_file_handler(Path(log_dir), json_file))
