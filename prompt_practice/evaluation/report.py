"""
Attempt Report Generator

Renders a stored Attempt and its Evaluation as a markdown report with a JSON
companion, for reviewing results outside the CLI.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from jinja2 import Environment, FileSystemLoader, TemplateError, select_autoescape

from utils.exceptions import ReportingError

from .. import __version__
from ..attempts.contracts import Attempt, Evaluation
from ..providers.base import ModelSource
from ..providers.registry import get_by_id

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).parent / "templates"
DEFAULT_REPORT_DIR = Path("reports")


class EvaluationReportGenerator:
    """Generates per-attempt evaluation reports."""

    def __init__(self, report_dir: Optional[Path] = None) -> None:
        self.report_dir = Path(report_dir) if report_dir else DEFAULT_REPORT_DIR
        self._env = Environment(
            loader=FileSystemLoader(str(TEMPLATE_DIR)),
            trim_blocks=True,
            lstrip_blocks=True,
            autoescape=select_autoescape(["html"]),
        )

    def render(self, attempt: Attempt, evaluation: Evaluation) -> str:
        """Render the markdown report without writing it."""
        try:
            template = self._env.get_template("evaluation_report.md.j2")
            return template.render(**self._build_context(attempt, evaluation))
        except TemplateError as e:
            raise ReportingError(f"Failed to render report for {attempt.attempt_id}: {e}") from e

    def generate(self, attempt: Attempt, evaluation: Evaluation) -> Path:
        """Write ``<attempt_id>.md`` and ``<attempt_id>.json``.

        Returns:
            Path to the generated markdown report.
        """
        rendered = self.render(attempt, evaluation)
        md_path = self.report_dir / f"{attempt.attempt_id}.md"
        json_path = self.report_dir / f"{attempt.attempt_id}.json"

        try:
            self.report_dir.mkdir(parents=True, exist_ok=True)
            md_path.write_text(rendered, encoding="utf-8")
            with open(json_path, "w", encoding="utf-8") as f:
                json.dump(
                    {"attempt": attempt.to_dict(), "evaluation": evaluation.to_dict()},
                    f,
                    indent=2,
                    ensure_ascii=False,
                )
        except OSError as e:
            raise ReportingError(f"Failed to write report to {self.report_dir}: {e}") from e

        logger.info(f"Report for {attempt.attempt_id} saved to {md_path}")
        return md_path

    def _build_context(self, attempt: Attempt, evaluation: Evaluation) -> Dict[str, Any]:
        results: List[Dict[str, Any]] = []
        for scored in evaluation.ordered_results(list(attempt.models)):
            mr = scored.model_result
            scores = scored.scores or {}
            feedback = scored.feedback or {}
            descriptor = get_by_id(mr.model_id)
            results.append(
                {
                    "model_id": mr.model_id,
                    "source": mr.source.value,
                    # Served by the sample generator in place of its real source
                    "degraded": (
                        descriptor is not None
                        and descriptor.source != ModelSource.SAMPLE
                        and mr.source == ModelSource.SAMPLE
                    ),
                    "clarity": scores.get("clarity", "-"),
                    "completeness": scores.get("completeness", "-"),
                    "total": scores.get("total", "-"),
                    "latency": mr.latency_ms,
                    "tokens": mr.token_count,
                    "response": mr.text,
                    "notes": feedback.get("explanation", ""),
                }
            )

        scored_totals = [r for r in results if isinstance(r["total"], int)]
        best_model = None
        if len(scored_totals) > 1:
            best_model = max(scored_totals, key=lambda r: r["total"])["model_id"]

        return {
            "attempt_id": attempt.attempt_id,
            "lab_id": attempt.lab_id,
            "status": evaluation.status.value,
            "submitted": attempt.timestamp,
            "evaluated": evaluation.timestamp,
            "rubric_version": evaluation.rubric_version,
            "schema_version": evaluation.schema_version,
            "user_prompt": attempt.user_prompt,
            "system_prompt": attempt.system_prompt,
            "error": evaluation.error.to_dict() if evaluation.error else None,
            "results": results,
            "best_model": best_model,
            "version": __version__,
        }
