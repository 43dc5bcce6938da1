"""Unit tests for loreworks/variables.py: per-chat variable storage."""
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest

from loreworks.variables import InMemoryVariables, VariablesStore


class TestInMemoryVariables:
    def test_get_missing_returns_none(self, variables):
        assert variables.get("nope") is None
        assert "nope" not in variables

    def test_values_are_stringified(self, variables):
        variables.set("count", 3)
        variables.set("empty", None)
        assert variables.get("count") == "3"
        assert variables.get("empty") == ""

    def test_delete_ignores_missing(self, variables):
        variables.set("a", "1")
        variables.delete("a")
        variables.delete("a")
        assert len(variables) == 0

    def test_keys_are_stripped(self, variables):
        variables.set("  spaced ", "x")
        assert variables.get("spaced") == "x"

    def test_empty_key_rejected(self, variables):
        with pytest.raises(ValueError, match="empty"):
            variables.set("   ", "x")

    def test_backing_mapping_mutated_in_place(self):
        backing: dict[str, str] = {}
        store = InMemoryVariables(backing)
        store.set("k", "v")
        assert backing == {"k": "v"}

    def test_is_a_variables_store(self, variables):
        assert isinstance(variables, VariablesStore)


class TestPersistence:
    def test_dump_and_load(self):
        store = InMemoryVariables({"b": "2", "a": "1"})
        assert store.dump() == '{"a": "1", "b": "2"}'
        assert InMemoryVariables.load(store.dump()).to_dict() == {"a": "1", "b": "2"}

    def test_load_blank_text(self):
        assert len(InMemoryVariables.load("  \n")) == 0

    def test_load_rejects_non_object(self):
        with pytest.raises(ValueError, match="JSON object"):
            InMemoryVariables.load("[1, 2]")

    def test_file_round_trip(self, tmp_path):
        path = tmp_path / "state" / "chat.json"
        store = InMemoryVariables()
        store.set("timed", '{"sticky": {}}')
        store.dump_to_file(path)
        assert InMemoryVariables.load_from_file(path).get("timed") == '{"sticky": {}}'

    def test_missing_file_gives_empty_store(self, tmp_path):
        assert len(InMemoryVariables.load_from_file(tmp_path / "absent.json")) == 0
