"""
Heuristic Scoring Rules

Each criterion is a baseline score plus an ordered list of named rules. A
rule is a predicate over TextStats; the first rule that matches sets the
score, which is then clamped to [0, 5]. Adding a criterion means adding an
entry to CRITERIA.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

MIN_SCORE = 0
MAX_SCORE = 5
BASELINE_SCORE = 3

TERMINAL_PUNCTUATION = (".", "!", "?")


@dataclass(frozen=True)
class TextStats:
    """Measurements of a response relative to the prompt it answers."""

    length: int
    has_terminal_punctuation: bool
    line_count: int
    sentence_split_count: int
    prompt_word_count: int
    matched_prompt_words: int

    @property
    def has_structure(self) -> bool:
        """Multi-line, or at least three '. '-separated segments."""
        return self.line_count > 1 or self.sentence_split_count > 2

    @property
    def relevance_ratio(self) -> float:
        return self.matched_prompt_words / max(self.prompt_word_count, 1)

    @classmethod
    def measure(cls, prompt: str, response: str) -> "TextStats":
        # Prompt words longer than 3 chars count if they appear inside any
        # response word; duplicates in the prompt are counted separately.
        prompt_words = [w for w in prompt.lower().split() if len(w) > 3]
        response_words = response.lower().split()
        matched = sum(1 for w in prompt_words if any(w in r for r in response_words))
        return cls(
            length=len(response),
            has_terminal_punctuation=any(p in response for p in TERMINAL_PUNCTUATION),
            line_count=len(response.split("\n")),
            sentence_split_count=len(response.split(". ")),
            prompt_word_count=len(prompt_words),
            matched_prompt_words=matched,
        )


@dataclass(frozen=True)
class ScoringRule:
    """Named predicate that assigns ``score`` when it matches."""

    name: str
    score: int
    predicate: Callable[[TextStats], bool]
    description: str = ""

    def matches(self, stats: TextStats) -> bool:
        return bool(self.predicate(stats))


def clamp(score: int) -> int:
    return max(MIN_SCORE, min(MAX_SCORE, score))


def apply_rules(rules: List[ScoringRule], stats: TextStats, baseline: int = BASELINE_SCORE) -> Tuple[int, str]:
    """
    Fixed reducer: first matching rule wins, otherwise the baseline.

    Returns:
        (clamped score, name of the rule applied or "baseline")
    """
    for rule in rules:
        if rule.matches(stats):
            return clamp(rule.score), rule.name
    return clamp(baseline), "baseline"


CLARITY_RULES: List[ScoringRule] = [
    ScoringRule(
        name="well_structured",
        score=4,
        predicate=lambda s: 50 <= s.length <= 1000 and s.has_terminal_punctuation and s.has_structure,
        description="50-1000 chars, terminal punctuation and multi-sentence or multi-line",
    ),
    ScoringRule(
        name="unpunctuated_or_short",
        score=2,
        predicate=lambda s: not s.has_terminal_punctuation or s.length < 20,
        description="No terminal punctuation or under 20 chars",
    ),
]

COMPLETENESS_RULES: List[ScoringRule] = [
    ScoringRule(
        name="relevant_and_substantial",
        score=4,
        predicate=lambda s: s.relevance_ratio > 0.5 and s.length > 100,
        description="Over half the prompt words covered and over 100 chars",
    ),
    ScoringRule(
        name="off_topic_or_thin",
        score=2,
        predicate=lambda s: s.relevance_ratio < 0.2 or s.length < 30,
        description="Under 20% prompt coverage or under 30 chars",
    ),
]

CRITERIA: Dict[str, List[ScoringRule]] = {
    "clarity": CLARITY_RULES,
    "completeness": COMPLETENESS_RULES,
}


@dataclass(frozen=True)
class CriterionScore:
    criterion: str
    score: int
    rule: str


def score_response(prompt: str, response: str) -> Dict[str, CriterionScore]:
    """Score every criterion for one (prompt, response) pair."""
    stats = TextStats.measure(prompt, response)
    scores: Dict[str, CriterionScore] = {}
    for criterion, rules in CRITERIA.items():
        value, rule = apply_rules(rules, stats)
        scores[criterion] = CriterionScore(criterion=criterion, score=value, rule=rule)
    logger.debug(
        "Scored response: "
        + ", ".join(f"{c}={s.score} ({s.rule})" for c, s in scores.items())
    )
    return scores
