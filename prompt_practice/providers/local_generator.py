"""
Local Response Generator

Deterministic, prompt-derived text used both for the ``sample`` models and as
the fallback body when a hosted or runtime call fails. Every output field is a
pure function of (variant, prompt, system_prompt).
"""

import hashlib
import logging
import re
from typing import Dict, List, Optional

from .base import ModelResult, ModelSource, estimate_tokens

logger = logging.getLogger(__name__)

VARIANTS = ("stub", "creative", "analytical")

# Simulated latency: base per variant plus a per-character cost
BASE_LATENCY_MS: Dict[str, int] = {"stub": 400, "creative": 650, "analytical": 800}
LATENCY_PER_CHAR_MS = 2

QUESTION_WORDS = ("what", "why", "how", "when", "where", "who", "which", "can", "is", "are", "does")
INSTRUCTIONAL_VERBS = (
    "explain", "describe", "list", "summarize", "outline", "define", "show", "teach",
)

CATEGORY_KEYWORDS: Dict[str, tuple] = {
    "creative": ("write", "create", "story", "poem", "creative", "imagine", "fiction"),
    "analytical": (
        "analyze", "compare", "evaluate", "assess", "pros", "cons",
        "advantages", "disadvantages", "problem", "solve",
    ),
    "instructional": ("steps", "how to", "guide", "tutorial", "process", "method", "instructions"),
    "conversational": ("chat", "talk", "discuss", "conversation", "opinion", "think", "feel"),
}

STOPWORDS = frozenset(
    "a an the and or but of to in on for with about from into that this these those "
    "what why how when where who which can is are does do please me my your you it "
    "explain describe list tell give write create some".split()
)

CATEGORY_BODIES: Dict[str, List[str]] = {
    "general": [
        "{Topic} is easiest to understand by looking at what it is and how it works. "
        "At its core, {topic} rests on a few key ideas that build on each other. "
        "Once those ideas are clear, the details fall into place.",
        "Here is an overview of {topic}. It starts with a simple foundation, adds a few "
        "important mechanisms, and ends with practical consequences. "
        "A more specific prompt would let the explanation focus on the part you care about most.",
    ],
    "creative": [
        "Once, in a place shaped by {topic}, a quiet idea began to grow. "
        "It gathered colour and sound until everyone nearby could feel it. "
        "By the end, {topic} was no longer an idea but a story worth telling.",
        "Picture {topic} as a landscape at dawn. Light moves across it slowly, "
        "revealing shapes that were hidden a moment ago. "
        "Every detail invites you to look a little closer.",
    ],
    "analytical": [
        "Looking at {topic} systematically, the first factor is its underlying structure. "
        "The second factor is how it behaves under different conditions. "
        "Weighing both gives a balanced view of its strengths and weaknesses.",
        "A careful assessment of {topic} separates evidence from assumption. "
        "The main advantages are clear once the context is defined. "
        "The disadvantages matter most when resources or time are limited.",
    ],
    "instructional": [
        "To work through {topic}, begin by defining the goal clearly.\n"
        "Next, gather the resources and information you need.\n"
        "Then follow each step in order and check your progress.\n"
        "Finally, review the result and note what you would change next time.",
        "A simple process for {topic}:\n"
        "First, break the task into small parts.\n"
        "Second, complete one part at a time.\n"
        "Third, test what you have before moving on.",
    ],
    "conversational": [
        "That is an interesting thing to discuss. {Topic} has several sides worth exploring, "
        "and people often see it differently. "
        "Which part of {topic} are you most curious about?",
        "Happy to talk about {topic}. My view is that the most useful angle depends on "
        "what you want to do with it. Tell me a bit more and we can go deeper.",
    ],
}

CREATIVE_OPENERS = [
    "Imagine this for a moment.",
    "Let the picture unfold slowly.",
]
CREATIVE_CLOSERS = [
    "And that is where the story of {topic} pauses, for now.",
    "What happens next is up to your imagination.",
]

_SENTENCE_RE = re.compile(r"(?<=[.!?])\s+|\n+")
_WORD_RE = re.compile(r"[a-zA-Z][a-zA-Z0-9'-]*")


def _digest(*parts: str) -> int:
    data = "\x1f".join(parts).encode("utf-8")
    return int.from_bytes(hashlib.sha256(data).digest()[:8], "big")


def categorize_prompt(prompt: str) -> str:
    """Map a prompt to one of the demo response categories."""
    lower = prompt.lower()
    for category in ("creative", "analytical", "instructional", "conversational"):
        if any(keyword in lower for keyword in CATEGORY_KEYWORDS[category]):
            return category
    words = lower.split()
    if words and words[0] in INSTRUCTIONAL_VERBS:
        return "instructional" if len(words) > 6 else "general"
    return "general"


def is_question(prompt: str) -> bool:
    stripped = prompt.strip().lower()
    if stripped.endswith("?"):
        return True
    words = stripped.split()
    return bool(words) and words[0] in QUESTION_WORDS


def extract_topic(prompt: str, max_words: int = 3) -> str:
    """Leading content words of the prompt, used to keep responses on topic."""
    words = [w.lower() for w in _WORD_RE.findall(prompt)]
    content = [w for w in words if w not in STOPWORDS and len(w) > 2]
    if not content:
        return "your request"
    return " ".join(content[:max_words])


class LocalResponseGenerator:
    """
    Deterministic sample generator.

    Variants apply different transformations to the same category body:
    ``stub`` returns it as written, ``creative`` frames it as narrative and
    ``analytical`` restructures it into numbered points with a conclusion.
    """

    def generate(
        self,
        variant: str,
        prompt: str,
        system_prompt: Optional[str] = None,
        model_id: Optional[str] = None,
    ) -> ModelResult:
        """
        Generate a sample response.

        Args:
            variant: One of ``stub``, ``creative`` or ``analytical``.
            prompt: User prompt.
            system_prompt: Optional system instructions to acknowledge.
            model_id: Reported model id; defaults to ``local-<variant>``.
        """
        if variant not in VARIANTS:
            logger.warning(f"Unknown local variant '{variant}', using stub")
            variant = "stub"

        system_prompt = system_prompt or ""
        seed = _digest(variant, prompt, system_prompt)
        category = categorize_prompt(prompt)
        topic = extract_topic(prompt)

        bodies = CATEGORY_BODIES[category]
        body = bodies[seed % len(bodies)].format(topic=topic, Topic=topic[:1].upper() + topic[1:])

        if variant == "creative":
            text = self._creative(body, topic, seed)
        elif variant == "analytical":
            text = self._analytical(body, topic)
        else:
            text = body

        if is_question(prompt):
            text = f"Good question about {topic}. {text}"

        if system_prompt:
            text = f"[Following your system instructions: {self._summarize(system_prompt)}]\n\n{text}"

        latency = BASE_LATENCY_MS[variant] + LATENCY_PER_CHAR_MS * (len(prompt) + len(system_prompt))

        return ModelResult(
            model_id=model_id or f"local-{variant}",
            text=text,
            latency_ms=latency,
            token_count=estimate_tokens(text),
            source=ModelSource.SAMPLE,
        )

    def _creative(self, body: str, topic: str, seed: int) -> str:
        opener = CREATIVE_OPENERS[seed % len(CREATIVE_OPENERS)]
        closer = CREATIVE_CLOSERS[(seed >> 8) % len(CREATIVE_CLOSERS)].format(topic=topic)
        return f"{opener} {body}\n\n{closer}"

    def _analytical(self, body: str, topic: str) -> str:
        sentences = [s.strip() for s in _SENTENCE_RE.split(body) if s.strip()]
        points = "\n".join(f"{i}. {s}" for i, s in enumerate(sentences, start=1))
        return (
            f"Analysis of {topic}:\n\n{points}\n\n"
            f"Conclusion: these {len(sentences)} points together give a structured view of {topic}."
        )

    @staticmethod
    def _summarize(system_prompt: str, limit: int = 80) -> str:
        collapsed = " ".join(system_prompt.split())
        if len(collapsed) <= limit:
            return collapsed
        return collapsed[: limit - 3].rstrip() + "..."
