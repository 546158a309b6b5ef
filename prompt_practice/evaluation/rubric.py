"""
Rubric Document Parser

Reads the versioned markdown rubric that supplies the wording for each score
band. The rubric never changes the numeric scoring; it only grounds the notes.
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

CURRENT_RUBRIC_VERSION = "1.0"
SUPPORTED_RUBRIC_VERSIONS: List[str] = ["1.0"]
DEFAULT_RUBRIC_PATH = Path(__file__).parent / "rubric.md"

_VERSION_RE = re.compile(r"\*\*Rubric Version\*\*:\s*([^\n]+)")
_SECTION_RE = re.compile(r"^##\s+(.+?)\s*$", re.MULTILINE)
_SCORE_RE = re.compile(r"^\s*[-*]\s*\*\*(\d)\*\*:\s*(.+?)\s*$", re.MULTILINE)

SECTION_NAMES = {"clarity": "Clarity Metric", "completeness": "Completeness Metric"}


@dataclass
class CriterionRubric:
    """Description and per-score wording for one criterion."""

    description: str = ""
    score_descriptions: Dict[int, str] = field(default_factory=dict)

    def describe(self, score: int) -> str:
        return self.score_descriptions.get(score, "")


@dataclass
class Rubric:
    version: str
    clarity: CriterionRubric
    completeness: CriterionRubric

    def criterion(self, name: str) -> CriterionRubric:
        return self.clarity if name == "clarity" else self.completeness


def _split_sections(content: str) -> Dict[str, str]:
    sections: Dict[str, str] = {}
    matches = list(_SECTION_RE.finditer(content))
    for i, match in enumerate(matches):
        end = matches[i + 1].start() if i + 1 < len(matches) else len(content)
        sections[match.group(1).strip()] = content[match.end():end]
    return sections


def _parse_criterion(body: str) -> CriterionRubric:
    scores = {int(m.group(1)): m.group(2) for m in _SCORE_RE.finditer(body)}
    description = ""
    for line in body.strip().splitlines():
        line = line.strip()
        if line and not _SCORE_RE.match(line):
            description = line
            break
    return CriterionRubric(description=description, score_descriptions=scores)


def parse_rubric_text(content: str, version: Optional[str] = None) -> Optional[Rubric]:
    """
    Parse rubric markdown.

    Returns None when the requested version does not match the document or the
    criterion sections are missing.
    """
    version_match = _VERSION_RE.search(content)
    document_version = version_match.group(1).strip() if version_match else CURRENT_RUBRIC_VERSION

    if version and version != document_version:
        logger.warning(f"Requested rubric version {version} but found {document_version}")
        return None

    sections = _split_sections(content)
    clarity = sections.get(SECTION_NAMES["clarity"])
    completeness = sections.get(SECTION_NAMES["completeness"])
    if clarity is None or completeness is None:
        logger.warning("Rubric is missing the Clarity or Completeness section")
        return None

    return Rubric(
        version=document_version,
        clarity=_parse_criterion(clarity),
        completeness=_parse_criterion(completeness),
    )


def load_rubric(path: Optional[Path] = None, version: Optional[str] = None) -> Optional[Rubric]:
    """Read and parse a rubric file; None if it is missing or unusable."""
    rubric_path = Path(path) if path else DEFAULT_RUBRIC_PATH
    try:
        content = rubric_path.read_text(encoding="utf-8")
    except OSError as e:
        logger.warning(f"Could not read rubric file {rubric_path}: {e}")
        return None
    return parse_rubric_text(content, version)


def is_rubric_version_supported(version: str) -> bool:
    return version in SUPPORTED_RUBRIC_VERSIONS
