# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0
"""Global test fixtures for LoreWorks.

Provides filesystem isolation, config cache management and deterministic
collaborators (variables store, token estimator, rng) for the engine.
"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest

from loreworks.config.models import EngineConfig
from loreworks.lore import LoreEngine
from loreworks.token_estimator import CharDivEstimator
from loreworks.variables import InMemoryVariables
from tests.helpers.lore import FixedRng

logger = logging.getLogger(__name__)


# ── Fixtures ──────────────────────────────────────────────


@pytest.fixture
def data_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Create an isolated LoreWorks data directory.

    - Redirects ``LOREWORKS_DATA_DIR`` to a temp directory
    - Invalidates the config cache before and after the test
    """
    from loreworks.config import invalidate_cache

    d = tmp_path / ".loreworks"
    d.mkdir()
    monkeypatch.setenv("LOREWORKS_DATA_DIR", str(d))
    invalidate_cache()

    yield d

    invalidate_cache()


@pytest.fixture
def variables() -> InMemoryVariables:
    return InMemoryVariables()


@pytest.fixture
def estimator() -> CharDivEstimator:
    return CharDivEstimator()


@pytest.fixture
def rng_low() -> FixedRng:
    """Rng whose every draw is 0.0 (probability rolls always pass)."""
    return FixedRng(0.0)


@pytest.fixture
def rng_high() -> FixedRng:
    """Rng whose every draw is 0.99 (rolls below 99% fail)."""
    return FixedRng(0.99)


@pytest.fixture
def engine() -> LoreEngine:
    return LoreEngine(EngineConfig())
