"""
Feedback Templates

Fixed, score-banded explanation and suggestion text per criterion, and the
composer that turns two criterion scores into the notes shown to the user.
Everything here is a pure function of its inputs.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .rubric import Rubric

MAX_SUGGESTIONS = 3
_SUBJECT_LIMIT = 80


@dataclass
class CriterionFeedback:
    """Template output for one criterion at one score."""

    explanation: str
    example_fix: str
    suggestions: List[str] = field(default_factory=list)
    positives: List[str] = field(default_factory=list)


@dataclass
class Feedback:
    """Composed feedback for one evaluated response."""

    notes: str
    example_fix: str
    suggestions: List[str]
    positives: List[str]


def score_band(score: int) -> str:
    """strong (4-5), adequate (3), weak (1-2) or missing (0)."""
    if score >= 4:
        return "strong"
    if score == 3:
        return "adequate"
    if score >= 1:
        return "weak"
    return "missing"


def _prompt_subject(user_prompt: str) -> str:
    subject = " ".join(user_prompt.split()).rstrip(".?! ")
    if len(subject) > _SUBJECT_LIMIT:
        subject = subject[: _SUBJECT_LIMIT - 3].rstrip() + "..."
    return subject


def clarity_feedback(score: int, user_prompt: str = "") -> CriterionFeedback:
    band = score_band(score)
    subject = _prompt_subject(user_prompt)

    if band == "strong":
        positives = [
            "Response has excellent structure and flow",
            "Language is clear and accessible",
        ]
        if score == 5:
            positives.append("Exceptional organization and formatting")
            fix = (
                "Outstanding work! This prompt demonstrates excellent clarity techniques. "
                "Consider sharing this approach with others learning prompt engineering."
            )
        else:
            fix = (
                "Great work! Try experimenting with different formatting requests "
                "(like bullet points or numbered steps) to see how they affect clarity."
            )
        return CriterionFeedback(
            explanation="Your prompt produced a clear, well-structured response that's easy to understand.",
            example_fix=fix,
            positives=positives,
        )

    if band == "adequate":
        return CriterionFeedback(
            explanation=(
                "The response is generally clear but could benefit from better "
                "organization or structure."
            ),
            example_fix='Try: "Please explain this in 3 clear steps with examples for each step."',
            suggestions=[
                "Ask for numbered lists or bullet points",
                "Request step-by-step explanations",
                "Be more specific about the format you want",
            ],
            positives=["Basic clarity is maintained"],
        )

    if band == "weak":
        if subject:
            fix = (
                f'Instead of "{subject}", try: "{subject}. Explain it in simple terms with '
                '2-3 specific examples, organized with clear headings."'
            )
        else:
            fix = (
                'Instead of "Tell me about X", try "Explain X in simple terms with 2-3 '
                'specific examples, organized with clear headings."'
            )
        return CriterionFeedback(
            explanation=(
                "The response could be much clearer with better prompt structure and specificity."
            ),
            example_fix=fix,
            suggestions=[
                "Be more specific about the format you want",
                "Ask for examples or concrete details",
                "Break complex requests into smaller parts",
                "Request organized information with headings",
            ],
        )

    return CriterionFeedback(
        explanation=(
            "The model didn't provide a clear response. This often happens with unclear "
            "prompts or technical issues."
        ),
        example_fix=f'Try a clear, direct prompt like: "Please explain {subject or "[topic]"} in simple terms."',
        suggestions=[
            "Try rephrasing your prompt more clearly",
            "Check for technical issues or try a different model",
            "Start with a simpler, more direct question",
        ],
    )


def completeness_feedback(score: int, user_prompt: str = "") -> CriterionFeedback:
    band = score_band(score)
    subject = _prompt_subject(user_prompt)

    if band == "strong":
        positives = [
            "Response covers all key points comprehensively",
            "Good depth of information provided",
        ]
        if score == 5:
            positives.append("Goes beyond requirements with valuable insights")
            fix = (
                "Exceptional completeness! Consider using this prompt as a template "
                "for similar questions."
            )
        else:
            fix = (
                "Excellent coverage! Consider asking follow-up questions to explore "
                "specific aspects in even more detail."
            )
        return CriterionFeedback(
            explanation=(
                "Your prompt successfully guided the model to address all the important "
                "aspects thoroughly."
            ),
            example_fix=fix,
            positives=positives,
        )

    if band == "adequate":
        return CriterionFeedback(
            explanation=(
                "The response covers the main points but might be missing some important "
                "details or context."
            ),
            example_fix=(
                'Try adding: "Please make sure to cover all aspects including '
                '[specific areas you want covered]."'
            ),
            suggestions=[
                "Specify exactly what information you need",
                "Ask for comprehensive coverage of the topic",
                "List all aspects you want covered",
            ],
            positives=["Addresses the primary request adequately"],
        )

    if band == "weak":
        if subject:
            fix = (
                f'Try: "{subject}. Please provide a complete explanation covering: '
                '1) [point A], 2) [point B], 3) [point C]."'
            )
        else:
            fix = (
                'Try: "Please provide a complete explanation covering: '
                '1) [point A], 2) [point B], 3) [point C]."'
            )
        return CriterionFeedback(
            explanation=(
                "The response only partially addresses your prompt. More specific guidance would help."
            ),
            example_fix=fix,
            suggestions=[
                "List all the specific points you want covered",
                "Provide context about why you need this information",
                "Ask for comprehensive explanations",
                "Break complex questions into smaller parts",
            ],
        )

    return CriterionFeedback(
        explanation=(
            "The model didn't address your prompt. This might be due to an unclear "
            "request or technical issues."
        ),
        example_fix=(
            f'Try a direct approach: "Please explain {subject or "[specific topic]"} and '
            'include [specific details you need]."'
        ),
        suggestions=[
            "Try rephrasing your prompt or checking for technical issues",
            "Be more specific about what you want",
            "Start with a simpler, more focused question",
        ],
    )


def weakest_criterion(breakdown: Dict[str, int]) -> str:
    """Lowest-scoring criterion; clarity wins ties."""
    return "clarity" if breakdown["clarity"] <= breakdown["completeness"] else "completeness"


def compose_feedback(
    breakdown: Dict[str, int],
    user_prompt: str,
    rubric: Optional[Rubric] = None,
) -> Feedback:
    """
    Build the notes for a clarity/completeness breakdown.

    The result is never empty. When both criteria are 3 or lower the notes
    include a "Weakest criterion" line.
    """
    clarity = breakdown["clarity"]
    completeness = breakdown["completeness"]
    per_criterion = {
        "clarity": clarity_feedback(clarity, user_prompt),
        "completeness": completeness_feedback(completeness, user_prompt),
    }
    positives = per_criterion["clarity"].positives + per_criterion["completeness"].positives
    suggestions = (
        per_criterion["clarity"].suggestions + per_criterion["completeness"].suggestions
    )[:MAX_SUGGESTIONS]
    notes: List[str] = []

    if clarity >= 4 and completeness >= 4:
        notes.append("Excellent work! Your prompt produced a high-quality response.")
        if clarity == 5:
            notes.append("Outstanding clarity: the response is exceptionally well-organized.")
        if completeness == 5:
            notes.append("Comprehensive coverage: all aspects thoroughly addressed.")
        leader = "clarity" if clarity >= completeness else "completeness"
        example_fix = per_criterion[leader].example_fix
        notes.append("")
        notes.append(f"Tip: {example_fix}")
    else:
        if positives:
            notes.append("What worked well:")
            notes.extend(f"  - {p}" for p in positives)
            notes.append("")

        notes.append("Areas to improve:")
        for name in ("clarity", "completeness"):
            score = breakdown[name]
            if score <= 3:
                notes.append(f"  - {name.capitalize()} ({score}/5): {per_criterion[name].explanation}")
        notes.append("")

        if clarity <= 3 and completeness <= 3:
            weakest = weakest_criterion(breakdown)
            other = "completeness" if weakest == "clarity" else "clarity"
            if breakdown[weakest] == breakdown[other]:
                notes.append(
                    f"Weakest criterion: {weakest.capitalize()} "
                    f"(tied with {other.capitalize()} at {breakdown[weakest]}/5)"
                )
            else:
                notes.append(f"Weakest criterion: {weakest.capitalize()} ({breakdown[weakest]}/5)")
            notes.append("")

        if suggestions:
            notes.append("Try this:")
            notes.extend(f"  - {s}" for s in suggestions)
            notes.append("")

        example_fix = per_criterion[weakest_criterion(breakdown)].example_fix
        notes.append(f"Example: {example_fix}")

    if rubric is not None:
        notes.append("")
        notes.append(f"Rubric v{rubric.version}:")
        for name in ("clarity", "completeness"):
            wording = rubric.criterion(name).describe(breakdown[name])
            if wording:
                notes.append(f"  - {name.capitalize()} {breakdown[name]}: {wording}")

    return Feedback(
        notes="\n".join(notes).strip(),
        example_fix=example_fix,
        suggestions=suggestions,
        positives=positives,
    )
