"""Unit tests for loreworks/token_estimator.py."""
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest

from loreworks.token_estimator import CharDivEstimator, TokenEstimator
from tests.helpers.lore import FixedEstimator


class TestCharDivEstimator:
    @pytest.mark.parametrize(
        "text, expected",
        [("", 0), ("a", 1), ("abcd", 1), ("abcde", 2), ("x" * 40, 10)],
    )
    def test_rounds_up(self, estimator, text, expected):
        assert estimator.estimate(text) == expected

    def test_custom_ratio(self):
        assert CharDivEstimator(chars_per_token=2).estimate("abcde") == 3

    def test_non_positive_ratio_rejected(self):
        with pytest.raises(ValueError):
            CharDivEstimator(chars_per_token=0)

    def test_satisfies_protocol(self, estimator):
        assert isinstance(estimator, TokenEstimator)
        assert isinstance(FixedEstimator(), TokenEstimator)
