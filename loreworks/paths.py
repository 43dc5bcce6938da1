# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
#
# This file is part of LoreWorks, licensed under Apache-2.0.
# See LICENSE for the full license text.

"""Centralized path resolution for LoreWorks.

Runtime data directory can be overridden via LOREWORKS_DATA_DIR environment variable.
"""

from __future__ import annotations

import os
from pathlib import Path

# Default runtime data directory
_DEFAULT_DATA_DIR = Path.home() / ".loreworks"


def get_data_dir() -> Path:
    """Return the runtime data directory, respecting LOREWORKS_DATA_DIR env var."""
    env_val = os.environ.get("LOREWORKS_DATA_DIR")
    if env_val:
        return Path(env_val).expanduser().resolve()
    return _DEFAULT_DATA_DIR


def get_logs_dir() -> Path:
    return get_data_dir() / "logs"


def get_state_dir() -> Path:
    """Directory for persisted per-chat variable stores (timed effects)."""
    return get_data_dir() / "state"
