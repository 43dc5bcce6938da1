"""Unit tests for loreworks/lore/engine.py: scan inputs, gates and forced entries."""
# LoreWorks - World Info Activation Engine
# Copyright (C) 2026 LoreWorks Authors
# SPDX-License-Identifier: Apache-2.0

from __future__ import annotations

import pytest

from loreworks.config.models import EngineConfig
from loreworks.exceptions import EvaluationError, GenerationTypeError
from loreworks.lore import Entry, LoreEngine
from loreworks.schemas import ActivationType, DropReason, GenerationType, InsertionStrategy, Position
from tests.helpers.lore import FixedRng, make_book, make_entry, uids


# ── Inputs ────────────────────────────────────────────────


class TestGenerationType:
    def test_invalid_type_raises_before_scanning(self, engine, variables):
        book = make_book(make_entry(1, ["a"], sticky=2))
        with pytest.raises(GenerationTypeError) as exc_info:
            engine.evaluate(book, scan_text="a", generation_type="brainstorm", variables_store=variables)
        assert "brainstorm" in str(exc_info.value)
        assert isinstance(exc_info.value, EvaluationError)
        assert len(variables) == 0

    def test_enum_and_string_accepted(self, engine):
        book = make_book(make_entry(1, ["a"]))
        assert engine.evaluate(book, scan_text="a", generation_type=GenerationType.SWIPE).activated_entries
        assert engine.evaluate(book, scan_text="a", generation_type="Quiet").activated_entries

    def test_triggers_filter_entries(self, engine):
        book = make_book(
            make_entry(1, ["a"], triggers=["continue"]),
            make_entry(2, ["a"]),
        )
        assert uids(engine.evaluate(book, scan_text="a").activated_entries) == [2]
        assert uids(engine.evaluate(book, scan_text="a", generation_type="continue").activated_entries) == [1, 2]


class TestScanWindow:
    def test_scan_text_lines_newest_first(self, engine):
        book = make_book(make_entry(1, ["old"]), make_entry(2, ["new"]))
        result = engine.evaluate(book, scan_text="new line\nold line", scan_depth=1)
        assert uids(result.activated_entries) == [2]

    def test_book_scan_depth_used_by_default(self, engine):
        book = make_book(make_entry(1, ["old"]), scan_depth=1)
        assert engine.evaluate(book, scan_messages=["new", "old"]).activated_entries == []

    def test_entry_scan_depth_overrides(self, engine):
        book = make_book(make_entry(1, ["old"], scan_depth=2), scan_depth=1)
        assert uids(engine.evaluate(book, scan_messages=["new", "old"]).activated_entries) == [1]

    def test_zero_depth_scans_nothing(self, engine):
        book = make_book(make_entry(1, ["new"]))
        assert engine.evaluate(book, scan_messages=["new"], scan_depth=0).activated_entries == []

    def test_message_window_capped(self):
        engine = LoreEngine(EngineConfig(max_scan_buffer_size=10))
        book = make_book(make_entry(1, ["needle"]), make_entry(2, ["head"]))
        result = engine.evaluate(book, scan_text="head " + "x" * 20 + " needle")
        assert uids(result.activated_entries) == [2]

    def test_match_flags_add_context(self, engine):
        book = make_book(
            make_entry(1, ["castle"], match_scenario=True),
            make_entry(2, ["castle"]),
        )
        result = engine.evaluate(
            book, scan_text="hello", scan_context={"scenario": "A castle on a hill."},
        )
        assert uids(result.activated_entries) == [1]

    def test_whole_words_engine_default(self):
        engine = LoreEngine(EngineConfig(match_whole_words=True))
        book = make_book(make_entry(1, ["cat"]), make_entry(2, ["cat"], match_whole_words=False))
        assert uids(engine.evaluate(book, scan_text="concatenate").activated_entries) == [2]

    def test_scan_injects_are_matched(self, engine):
        book = make_book(make_entry(1, ["dragon"]), make_entry(2, ["hello"]))
        result = engine.evaluate(book, scan_text="hello", scan_injects=["", "a dragon lands"])
        assert uids(result.activated_entries) == [1, 2]

    def test_string_key_with_additional_keys_decorator(self, engine):
        entry = Entry.from_dict({"uid": 1, "key": "dragon", "content": "@@additional_keys wyrm\nbody"})
        book = make_book(entry)
        assert engine.evaluate(book, scan_text="a cat sat").activated_entries == []
        assert uids(engine.evaluate(book, scan_text="a wyrm").activated_entries) == [1]
        assert uids(engine.evaluate(book, scan_text="the dragon").activated_entries) == [1]

    def test_empty_book(self, engine):
        result = engine.evaluate(make_book(), scan_text="anything", token_budget=10)
        assert result.candidates == []
        assert result.budget == 10


# ── Gates ─────────────────────────────────────────────────


class TestGates:
    def test_disabled_never_activates(self, engine):
        book = make_book(make_entry(1, ["a"], enabled=False, constant=True))
        assert engine.evaluate(book, scan_text="a").activated_entries == []

    def test_activate_only_after(self, engine):
        book = make_book(make_entry(1, ["a"], activate_only_after=3))
        assert not engine.evaluate(book, scan_text="a", message_count=2).activated_entries
        assert engine.evaluate(book, scan_text="a", message_count=3).activated_entries

    def test_activate_only_every(self, engine):
        book = make_book(make_entry(1, ["a"], activate_only_every=3))
        assert not engine.evaluate(book, scan_text="a", message_count=4).activated_entries
        assert engine.evaluate(book, scan_text="a", message_count=6).activated_entries

    def test_delay(self, engine):
        book = make_book(make_entry(1, ["a"], delay=5))
        assert not engine.evaluate(book, scan_text="a", message_count=4).activated_entries
        assert engine.evaluate(book, scan_text="a", message_count=5).activated_entries

    def test_gates_apply_to_constant(self, engine):
        book = make_book(make_entry(1, constant=True, activate_only_after=10))
        assert not engine.evaluate(book, scan_text="", message_count=1).activated_entries

    def test_message_count_defaults_to_message_total(self, engine):
        book = make_book(make_entry(1, ["a"], activate_only_after=3))
        assert engine.evaluate(book, scan_messages=["a", "b", "c"]).activated_entries


# ── Forced activations ────────────────────────────────────


class TestForcedActivations:
    def test_forced_by_uid(self, engine):
        book = make_book(make_entry(1, ["never"]), make_entry(2, ["never"]))
        result = engine.evaluate(book, scan_text="hello", forced_activations=[2])
        assert uids(result.activated_entries) == [2]
        assert result.candidates[0].activation_type is ActivationType.FORCED

    def test_forced_content_override(self, engine):
        book = make_book(make_entry(1, ["never"], content="original"))
        result = engine.evaluate(
            book, scan_text="", forced_activations=[{"uid": 1, "content": "replacement", "position": "in_chat"}],
        )
        [entry] = result.selected_entries
        assert entry.content == "replacement"
        assert entry.position is Position.IN_CHAT
        assert book.entries[0].content == "original"

    def test_forced_for_other_book_ignored(self, engine):
        book = make_book(make_entry(1, ["never"]), name="mine")
        result = engine.evaluate(book, scan_text="", forced_activations=[{"uid": 1, "book": "theirs"}])
        assert result.activated_entries == []

    def test_forced_still_gated(self, engine):
        book = make_book(make_entry(1, ["never"], delay=10))
        result = engine.evaluate(book, scan_text="", message_count=1, forced_activations=[1])
        assert result.activated_entries == []


# ── Result shape ──────────────────────────────────────────


class TestResultShape:
    def test_selected_entries_in_placement_order(self, engine):
        book = make_book(
            make_entry("b", ["x"], insertion_order=5),
            make_entry("a", ["x"], insertion_order=5),
            make_entry("c", ["x"], insertion_order=1),
        )
        result = engine.evaluate(book, scan_text="x")
        assert uids(result.selected_entries) == ["c", "a", "b"]

    def test_outlets_collected(self, engine):
        book = make_book(
            make_entry(1, ["x"], content="first", position="outlet", outlet_name="notes", insertion_order=1),
            make_entry(2, ["x"], content="second", position="outlet", outlet_name="notes", insertion_order=2),
            make_entry(3, ["x"], content="inline"),
        )
        result = engine.evaluate(book, scan_text="x")
        assert result.outlets == {"notes": "first\nsecond"}
        assert uids(result.selected_entries) == [3]

    def test_outlets_count_toward_budget(self, engine):
        book = make_book(
            make_entry(1, ["x"], content="o" * 40, position="outlet", outlet_name="side", insertion_order=10),
            make_entry(2, ["x"], content="p" * 8, insertion_order=1),
            token_budget=10,
        )
        result = engine.evaluate(book, scan_text="x")
        assert result.outlets == {"side": "o" * 40}
        assert result.selected_entries == []
        assert result.used_tokens == 10

    def test_selected_by_position(self, engine):
        book = make_book(
            make_entry(1, ["x"], position="in_chat"),
            make_entry(2, ["x"]),
        )
        grouped = engine.evaluate(book, scan_text="x").selected_by_position()
        assert uids(grouped[Position.IN_CHAT]) == [1]
        assert uids(grouped[Position.AFTER_CHAR_DEFS]) == [2]

    def test_to_dict(self, engine):
        book = make_book(make_entry(1, ["x"], probability=10))
        data = engine.evaluate(book, scan_text="x", rng=FixedRng(0.99)).to_dict()
        assert data["activated"] == ["1"]
        assert data["selected"] == []
        assert data["dropped"] == [{"uid": "1", "reason": "probability_failed"}]
        assert data["candidates"][0]["activation_type"] == "direct"

    def test_persist_effects_false(self, engine, variables):
        book = make_book(make_entry(1, ["x"], sticky=3))
        engine.evaluate(book, scan_text="x", variables_store=variables, persist_effects=False)
        assert len(variables) == 0


# ── Group scoring ─────────────────────────────────────────


class TestGroupScoring:
    def _book(self, **weak_fields):
        return make_book(
            make_entry(1, ["dragon"], group="beasts", insertion_order=100, **weak_fields),
            make_entry(2, ["dragon", "fire"], group="beasts", insertion_order=1),
        )

    def test_order_decides_without_scoring(self, engine):
        result = engine.evaluate(self._book(), scan_text="dragon fire")
        assert uids(result.selected_entries) == [1]

    def test_best_match_wins_with_scoring(self, engine):
        result = engine.evaluate(self._book(), scan_text="dragon fire", use_group_scoring=True)
        assert uids(result.selected_entries) == [2]
        [lost] = result.dropped_candidates
        assert lost.entry.uid == 1
        assert lost.dropped_reason is DropReason.GROUP_LOST

    def test_entry_flag_scores_that_entry(self, engine):
        result = engine.evaluate(self._book(use_group_scoring=True), scan_text="dragon fire")
        assert uids(result.selected_entries) == [2]

    def test_equal_scores_fall_back_to_order(self, engine):
        result = engine.evaluate(self._book(), scan_text="dragon", use_group_scoring=True)
        assert uids(result.selected_entries) == [1]


# ── Several books ─────────────────────────────────────────


def _placed(entries: list[Entry]) -> list[tuple[str | None, int | str]]:
    return [(e.book_name, e.uid) for e in entries]


class TestMultipleBooks:
    def test_budgets_are_summed(self, engine):
        a = make_book(make_entry(1, ["x"], content="a" * 40), name="a", token_budget=10)
        b = make_book(make_entry(1, ["x"], content="b" * 40), name="b", token_budget=10)
        result = engine.evaluate(books=[a, b], scan_text="x")
        assert result.budget == 20
        assert result.used_tokens == 20
        assert _placed(result.selected_entries) == [("a", 1), ("b", 1)]

    def test_explicit_budget_replaces_sum(self, engine):
        a = make_book(make_entry(1, ["x"], content="a" * 40, insertion_order=2), name="a", token_budget=10)
        b = make_book(make_entry(1, ["x"], content="b" * 40, insertion_order=1), name="b", token_budget=10)
        result = engine.evaluate(books=[a, b], scan_text="x", token_budget=10)
        assert _placed(result.selected_entries) == [("a", 1)]
        assert result.dropped_candidates[0].entry.book_name == "b"

    def test_unlimited_when_no_book_has_budget(self, engine):
        a = make_book(make_entry(1, ["x"]), name="a")
        b = make_book(make_entry(1, ["x"]), name="b", token_budget=0)
        assert engine.evaluate(books=[a, b], scan_text="x").budget is None

    def test_book_and_books_combined(self, engine):
        a = make_book(make_entry(1, ["x"]), name="a")
        b = make_book(make_entry(2, ["x"]), name="b")
        result = engine.evaluate(a, books=[b], scan_text="x")
        assert result.book_names == ("a", "b")
        assert uids(result.activated_entries) == [1, 2]

    def test_recursion_when_any_book_enables_it(self, engine):
        a = make_book(make_entry(1, ["x"], content="mentions yonder"), name="a", recursive_scanning=True)
        b = make_book(make_entry(2, ["yonder"]), name="b")
        result = engine.evaluate(books=[a, b], scan_text="x")
        assert uids(result.selected_entries) == [1, 2]
        assert result.candidates[1].activation_type is ActivationType.RECURSIVE

    def test_forced_activation_targets_one_book(self, engine):
        a = make_book(make_entry(1, ["never"]), name="a")
        b = make_book(make_entry(1, ["never"]), name="b")
        targeted = engine.evaluate(books=[a, b], scan_text="", forced_activations=[{"uid": 1, "book": "b"}])
        assert _placed(targeted.activated_entries) == [("b", 1)]
        bare = engine.evaluate(books=[a, b], scan_text="", forced_activations=[1])
        assert _placed(bare.activated_entries) == [("a", 1), ("b", 1)]

    def test_duplicate_book_names_rejected(self, engine):
        a = make_book(make_entry(1, ["x"]), name="same")
        b = make_book(make_entry(2, ["x"]), name="same")
        with pytest.raises(EvaluationError, match="duplicate book name"):
            engine.evaluate(books=[a, b], scan_text="x")

    def test_no_books_rejected(self, engine):
        with pytest.raises(EvaluationError):
            engine.evaluate(scan_text="x")


# ── Insertion strategies ──────────────────────────────────


class TestInsertionStrategy:
    @pytest.fixture
    def books(self):
        return [
            make_book(make_entry(1, ["x"], insertion_order=1), name="world", source="global"),
            make_book(make_entry(1, ["x"], insertion_order=50), name="Aria", source="character"),
            make_book(make_entry(1, ["x"], insertion_order=20), name="misc"),
        ]

    @pytest.mark.parametrize("strategy, expected", [
        ("sorted_evenly", [("world", 1), ("misc", 1), ("Aria", 1)]),
        ("character_lore_first", [("Aria", 1), ("misc", 1), ("world", 1)]),
        ("global_lore_first", [("world", 1), ("misc", 1), ("Aria", 1)]),
    ])
    def test_placement_order(self, engine, books, strategy, expected):
        result = engine.evaluate(books=books, scan_text="x", insertion_strategy=strategy)
        assert result.insertion_strategy is InsertionStrategy(strategy)
        assert _placed(result.selected_entries) == expected

    def test_selected_by_position_accepts_strategy(self, engine, books):
        result = engine.evaluate(books=books, scan_text="x")
        grouped = result.selected_by_position("character_lore_first")
        assert _placed(grouped[Position.AFTER_CHAR_DEFS])[0] == ("Aria", 1)

    def test_outlets_follow_strategy(self, engine):
        books = [
            make_book(
                make_entry(1, ["x"], content="global", position="outlet", outlet_name="n", insertion_order=1),
                name="world", source="global",
            ),
            make_book(
                make_entry(1, ["x"], content="char", position="outlet", outlet_name="n", insertion_order=9),
                name="Aria", source="character",
            ),
        ]
        result = engine.evaluate(books=books, scan_text="x", insertion_strategy="character_lore_first")
        assert result.outlets == {"n": "char\nglobal"}

    def test_unknown_strategy_rejected(self, engine):
        with pytest.raises(EvaluationError, match="insertion_strategy"):
            engine.evaluate(make_book(make_entry(1, ["x"])), scan_text="x", insertion_strategy="shuffle")

    def test_to_dict_reports_books(self, engine, books):
        data = engine.evaluate(books=books, scan_text="x").to_dict()
        assert data["books"] == ["world", "Aria", "misc"]
        assert data["insertion_strategy"] == "sorted_evenly"
        assert {c["book_name"] for c in data["candidates"]} == {"world", "Aria", "misc"}
