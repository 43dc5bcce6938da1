# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Central configuration module for LoreWorks.

Defines Pydantic models for config.json and provides
load / save helpers with a module-level singleton cache.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ValidationError, model_validator

from loreworks.exceptions import ConfigValidationError

logger = logging.getLogger("loreworks.config")

DEFAULT_TIMED_EFFECTS_KEY = "__loreworks__timed_world_info"

# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------


class SystemConfig(BaseModel):
    log_level: str = "INFO"
    json_log_file: bool = True


class EngineConfig(BaseModel):
    """Limits and matching defaults injected into :class:`LoreEngine`.

    ``max_scan_buffer_size`` is measured in characters and caps both the
    message window of pass 0 and the accumulated recursion buffer.
    """

    max_recursion_steps: int = 3
    hard_max_recursion_steps: int = 10
    max_scan_buffer_size: int = 1_000_000
    match_whole_words: bool = False
    case_sensitive: bool = False
    timed_effects_key: str = DEFAULT_TIMED_EFFECTS_KEY

    @model_validator(mode="after")
    def _validate_limits(self) -> EngineConfig:
        if self.max_recursion_steps < 0:
            raise ValueError("max_recursion_steps must be >= 0")
        if self.max_recursion_steps > self.hard_max_recursion_steps:
            raise ValueError(
                f"max_recursion_steps ({self.max_recursion_steps}) must not exceed "
                f"hard_max_recursion_steps ({self.hard_max_recursion_steps})"
            )
        if self.max_scan_buffer_size <= 0:
            raise ValueError("max_scan_buffer_size must be positive")
        if not self.timed_effects_key.strip():
            raise ValueError("timed_effects_key must not be blank")
        return self


class LoreWorksConfig(BaseModel):
    version: int = 1
    system: SystemConfig = SystemConfig()
    engine: EngineConfig = EngineConfig()


# ---------------------------------------------------------------------------
# Cached access
# ---------------------------------------------------------------------------

_cached: LoreWorksConfig | None = None
_cached_path: Path | None = None
_cached_mtime: float = 0.0


def invalidate_cache() -> None:
    """Forget the cached configuration; the next load reads from disk."""
    global _cached, _cached_path, _cached_mtime
    _cached = None
    _cached_path = None
    _cached_mtime = 0.0


def _mtime(path: Path) -> float:
    try:
        return path.stat().st_mtime
    except OSError:
        return 0.0


def _remember(config: LoreWorksConfig, path: Path) -> None:
    global _cached, _cached_path, _cached_mtime
    _cached = config
    _cached_path = path
    _cached_mtime = _mtime(path)


def get_config_path(data_dir: Path | None = None) -> Path:
    """``config.json`` inside *data_dir* (default: the LoreWorks data directory)."""
    if data_dir is None:
        from loreworks.paths import get_data_dir

        data_dir = get_data_dir()
    return data_dir / "config.json"


def load_config(path: Path | None = None) -> LoreWorksConfig:
    """Return the configuration stored at *path*.

    A missing file yields the defaults.  The parsed config is cached and
    reused until the file's mtime changes.  Values rejected by the models
    raise :class:`ConfigValidationError`; malformed JSON propagates as
    :class:`json.JSONDecodeError`.
    """
    if path is None:
        path = get_config_path()

    if _cached is not None and _cached_path == path:
        current = _mtime(path)
        if current == _cached_mtime:
            return _cached
        logger.debug("Config %s modified (mtime %.3f -> %.3f); reloading", path, _cached_mtime, current)

    if not path.is_file():
        logger.info("No config at %s; using defaults", path)
        config = LoreWorksConfig()
    else:
        logger.debug("Loading config from %s", path)
        try:
            data: dict[str, Any] = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            logger.error("Config %s is not valid JSON: %s", path, exc)
            raise
        try:
            config = LoreWorksConfig.model_validate(data)
        except ValidationError as exc:
            logger.error("Config %s rejected: %s", path, exc)
            raise ConfigValidationError(str(exc)) from exc

    _remember(config, path)
    return config


def save_config(config: LoreWorksConfig, path: Path | None = None) -> None:
    """Write *config* as indented JSON and make it the cached instance."""
    if path is None:
        path = get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        json.dumps(config.model_dump(mode="json"), indent=2, ensure_ascii=False) + "\n",
        encoding="utf-8",
    )
    logger.debug("Config saved to %s", path)
    _remember(config, path)
