# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

from loreworks.config.models import (
    DEFAULT_TIMED_EFFECTS_KEY,
    EngineConfig,
    LoreWorksConfig,
    SystemConfig,
    get_config_path,
    invalidate_cache,
    load_config,
    save_config,
)
