"""Tests for heuristic clarity/completeness scoring."""

import pytest

from prompt_practice.evaluation.scorers import (
    CLARITY_RULES,
    MAX_SCORE,
    MIN_SCORE,
    ScoringRule,
    TextStats,
    apply_rules,
    clamp,
    score_response,
)

STRUCTURED = (
    "Photosynthesis converts light energy into chemical energy. "
    "Plants use chlorophyll to capture sunlight. "
    "The process produces glucose and oxygen."
)

RELEVANT = (
    "The photosynthesis process happens in leaves. "
    "Light is absorbed by chlorophyll. "
    "Sugar is made from carbon dioxide and water."
)


class TestTextStats:
    def test_measure(self) -> None:
        stats = TextStats.measure("Explain photosynthesis", STRUCTURED)
        assert stats.length == len(STRUCTURED)
        assert stats.has_terminal_punctuation
        assert stats.line_count == 1
        assert stats.sentence_split_count == 3
        assert stats.has_structure
        assert stats.prompt_word_count == 2
        assert stats.matched_prompt_words == 1
        assert stats.relevance_ratio == 0.5

    def test_short_prompt_words_ignored(self) -> None:
        stats = TextStats.measure("is it a cat", "A cat.")
        assert stats.prompt_word_count == 0
        assert stats.relevance_ratio == 0.0

    def test_substring_and_duplicate_matching(self) -> None:
        stats = TextStats.measure("test test", "testing things")
        assert stats.prompt_word_count == 2
        assert stats.matched_prompt_words == 2

    def test_multiline_counts_as_structure(self) -> None:
        stats = TextStats.measure("x", "First line\nSecond line")
        assert stats.line_count == 2
        assert stats.has_structure


class TestRules:
    def test_clamp(self) -> None:
        assert clamp(-3) == MIN_SCORE
        assert clamp(9) == MAX_SCORE
        assert clamp(4) == 4

    def test_first_match_wins(self) -> None:
        rules = [
            ScoringRule("high", 7, lambda s: True),
            ScoringRule("low", 1, lambda s: True),
        ]
        stats = TextStats.measure("x", "y")
        assert apply_rules(rules, stats) == (5, "high")

    def test_baseline_when_nothing_matches(self) -> None:
        stats = TextStats.measure("x", "A single sentence that is long enough to be considered.")
        assert apply_rules(CLARITY_RULES, stats) == (3, "baseline")


class TestScoreResponse:
    def test_structured_but_partial_coverage(self) -> None:
        scores = score_response("Explain photosynthesis", STRUCTURED)
        assert scores["clarity"].score == 4
        assert scores["clarity"].rule == "well_structured"
        assert scores["completeness"].score == 3
        assert scores["completeness"].rule == "baseline"

    def test_relevant_and_substantial(self) -> None:
        scores = score_response("photosynthesis process", RELEVANT)
        assert scores["clarity"].score == 4
        assert scores["completeness"].score == 4
        assert scores["completeness"].rule == "relevant_and_substantial"

    def test_terse_answer(self) -> None:
        scores = score_response("Explain photosynthesis", "Yes")
        assert scores["clarity"].score == 2
        assert scores["clarity"].rule == "unpunctuated_or_short"
        assert scores["completeness"].score == 2
        assert scores["completeness"].rule == "off_topic_or_thin"

    def test_empty_response(self) -> None:
        scores = score_response("Explain photosynthesis", "")
        assert scores["clarity"].score == 2
        assert scores["completeness"].score == 2

    def test_over_long_response_is_not_well_structured(self) -> None:
        response = "Photosynthesis matters. " * 60
        scores = score_response("Explain photosynthesis", response)
        assert scores["clarity"].rule == "baseline"

    @pytest.mark.parametrize(
        "prompt,response",
        [
            ("", ""),
            ("Explain photosynthesis", STRUCTURED),
            ("a" * 2000, "b" * 5000),
            ("Why?", "\n\n\n"),
        ],
    )
    def test_scores_always_in_bounds(self, prompt: str, response: str) -> None:
        for criterion in score_response(prompt, response).values():
            assert MIN_SCORE <= criterion.score <= MAX_SCORE

    def test_deterministic(self) -> None:
        assert score_response("Explain photosynthesis", STRUCTURED) == score_response(
            "Explain photosynthesis", STRUCTURED
        )
