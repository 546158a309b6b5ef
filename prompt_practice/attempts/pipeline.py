"""
Evaluation Pipeline

Request handling around the dispatcher and evaluation engine: validate a
submission, persist the Attempt, fan out one task per model, score each
result and persist the Evaluation through its status lifecycle.

Usage:
    pipeline = EvaluationPipeline(PipelineSettings.from_env())
    created = await pipeline.submit(
        {"labId": "practice-basics", "userPrompt": "Explain photosynthesis", "models": ["local-stub"]}
    )
    status = pipeline.get_status(created.attempt_id)
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Set

from utils.exceptions import AttemptNotFoundError, UnknownModelError, ValidationError
from utils.logging_config import LogContext
from utils.state_machine import StateMachine

from ..evaluation.evaluator import EvaluationEngine
from ..providers.dispatcher import Dispatcher
from ..settings import PipelineSettings
from .contracts import (
    EVALUATION_TRANSITIONS,
    TERMINAL_STATUSES,
    Attempt,
    AttemptStatus,
    ErrorContract,
    Evaluation,
    ScoredResult,
    classify_error,
    generate_attempt_id,
    is_valid_attempt_id,
    utc_now_iso,
)
from .storage import AttemptStore
from .validation import AttemptRequest, validate_request

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmissionResult:
    attempt_id: str
    lab_id: str
    created_at: str

    def to_dict(self) -> Dict[str, str]:
        return {"attemptId": self.attempt_id, "labId": self.lab_id, "createdAt": self.created_at}


class EvaluationPipeline:
    """
    Orchestrates one attempt from request to persisted evaluation.

    Model calls that outlive the attempt timeout keep running in the
    background and update the stored results when they finish; the terminal
    status does not change.
    """

    def __init__(
        self,
        settings: PipelineSettings,
        dispatcher: Optional[Dispatcher] = None,
        engine: Optional[EvaluationEngine] = None,
        store: Optional[AttemptStore] = None,
    ):
        """
        Args:
            settings: Timeout, rubric and storage configuration.
            dispatcher: Routes each model id to a provider.
            engine: Scores model responses.
            store: Persists attempts and evaluations.

        Collaborators left as None are built from ``settings``.
        """
        self.settings = settings
        self.dispatcher = dispatcher or Dispatcher.from_settings(settings)
        self.engine = engine or EvaluationEngine(rubric_path=settings.rubric_path)
        self.store = store or AttemptStore(settings.data_dir)
        self.attempt_timeout = settings.attempt_timeout
        self.rubric_version = settings.rubric_version
        self._background: Set[asyncio.Task] = set()

    # -- Submission --------------------------------------------------------------

    def create_attempt(self, request: AttemptRequest) -> Attempt:
        """Build and persist an immutable Attempt for a validated request."""
        attempt = Attempt(
            attempt_id=generate_attempt_id(),
            lab_id=request.lab_id,
            user_prompt=request.user_prompt,
            models=request.models,
            system_prompt=request.system_prompt,
            rubric_version=self.rubric_version or self.engine.current_rubric_version(),
        )
        self.store.write_attempt(attempt)
        logger.info(f"Created attempt {attempt.attempt_id} for {attempt.lab_id}: {list(attempt.models)}")
        return attempt

    async def submit(
        self, body: Mapping[str, Any], timeout: Optional[float] = None
    ) -> SubmissionResult:
        """
        Validate, persist and run a create-attempt request.

        Raises:
            ValidationError / UnknownModelError: after an ``error`` evaluation
                has been persisted under ``error.attempt_id``. No model is called.
        """
        try:
            request = validate_request(body)
        except (ValidationError, UnknownModelError) as e:
            e.attempt_id = generate_attempt_id()
            await self._reject(e.attempt_id, e)
            raise

        attempt = self.create_attempt(request)
        await self.run(attempt, timeout=timeout)
        return SubmissionResult(
            attempt_id=attempt.attempt_id,
            lab_id=attempt.lab_id,
            created_at=attempt.timestamp,
        )

    async def _reject(self, attempt_id: str, error: Exception) -> None:
        evaluation = Evaluation(attempt_id=attempt_id)
        machine = self._state_machine(evaluation)
        evaluation.error = classify_error(error, stage="validation")
        await machine.transition_to(AttemptStatus.ERROR, reason=evaluation.error.code)
        logger.warning(f"Rejected attempt {attempt_id}: {error}")

    # -- Execution ---------------------------------------------------------------

    def _state_machine(self, evaluation: Evaluation) -> StateMachine[AttemptStatus]:
        machine: StateMachine[AttemptStatus] = StateMachine(
            initial_state=evaluation.status,
            allowed_transitions=EVALUATION_TRANSITIONS,
            terminal_states=TERMINAL_STATUSES,
        )

        async def persist(old: AttemptStatus, new: AttemptStatus, reason: str) -> None:
            evaluation.status = new
            evaluation.timestamp = utc_now_iso()
            self.store.write_evaluation(evaluation)

        machine.on_transition(persist)
        return machine

    async def run(self, attempt: Attempt, timeout: Optional[float] = None) -> Evaluation:
        """
        Dispatch and score every model of an attempt.

        Ends in ``success`` when all models finish in time, ``partial`` when
        only some do and ``timeout`` when none do. An attempt whose stored
        evaluation is already running or terminal is returned unchanged.
        """
        existing = self.store.read_evaluation(attempt.attempt_id)
        if existing is not None and (
            existing.status in TERMINAL_STATUSES or existing.status == AttemptStatus.RUNNING
        ):
            logger.info(
                f"Attempt {attempt.attempt_id} already {existing.status.value}, not dispatching again"
            )
            return existing

        budget = timeout if timeout is not None else self.attempt_timeout
        evaluation = Evaluation(attempt_id=attempt.attempt_id, rubric_version=attempt.rubric_version)
        machine = self._state_machine(evaluation)
        self.store.write_evaluation(evaluation)

        with LogContext(attempt_id=attempt.attempt_id, lab_id=attempt.lab_id):
            await machine.transition_to(AttemptStatus.RUNNING, reason="dispatch started")

            tasks = [
                asyncio.create_task(
                    self._run_model(attempt, model_id, evaluation, machine),
                    name=f"{attempt.attempt_id}:{model_id}",
                )
                for model_id in attempt.models
            ]
            done, pending = await asyncio.wait(tasks, timeout=budget)

            failures = [t for t in done if t.exception() is not None]
            for task in failures:
                logger.error(f"Model task {task.get_name()} failed: {task.exception()}")

            for task in pending:
                self._background.add(task)
                task.add_done_callback(self._late_task_done)

            if not pending and not failures:
                status, reason = AttemptStatus.SUCCESS, "all models completed"
            elif evaluation.results:
                status, reason = AttemptStatus.PARTIAL, f"{len(evaluation.results)}/{len(tasks)} results"
            elif pending:
                status, reason = AttemptStatus.TIMEOUT, f"no results within {budget}s"
                evaluation.error = ErrorContract(
                    stage="dispatch",
                    code="TIMEOUT",
                    message=f"No model finished within {budget} seconds",
                    retryable=True,
                    help="Wait a moment and check again, or retry with a new attempt.",
                )
            else:
                status, reason = AttemptStatus.ERROR, "all models failed"
                evaluation.error = classify_error(failures[0].exception(), stage="dispatch")

            await machine.transition_to(status, reason=reason)

        return evaluation

    async def _run_model(
        self,
        attempt: Attempt,
        model_id: str,
        evaluation: Evaluation,
        machine: StateMachine[AttemptStatus],
    ) -> ScoredResult:
        result = await self.dispatcher.dispatch(model_id, attempt.user_prompt, attempt.system_prompt)
        scored_feedback = self.engine.score_and_feedback(
            attempt.user_prompt, result, attempt.rubric_version
        )
        scored = ScoredResult(
            model_result=result,
            scores=scored_feedback["scores"],
            feedback=scored_feedback["feedback"],
        )
        evaluation.upsert_result(scored)
        if machine.is_terminal:
            logger.info(f"Late result for {model_id} on {attempt.attempt_id}")
            self.store.write_evaluation(evaluation)
        return scored

    def _late_task_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Late model task {task.get_name()} failed: {error}")

    async def drain(self) -> None:
        """Wait for model calls that outlived their attempt timeout."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- Polling -----------------------------------------------------------------

    def get_status(self, attempt_id: str) -> Dict[str, Any]:
        """
        Poll shape for an attempt.

        Raises:
            ValidationError: attempt_id contains disallowed characters.
            AttemptNotFoundError: neither an attempt nor an evaluation exists.
        """
        if not is_valid_attempt_id(attempt_id):
            raise ValidationError([f"Invalid attemptId format: {attempt_id!r}"])

        evaluation = self.store.read_evaluation(attempt_id)
        attempt = self.store.read_attempt(attempt_id)

        if evaluation is None:
            if attempt is None:
                raise AttemptNotFoundError(f"Attempt not found: {attempt_id}")
            return {
                "attemptId": attempt_id,
                "status": AttemptStatus.QUEUED.value,
                "timestamp": attempt.timestamp,
            }

        payload: Dict[str, Any] = {
            "attemptId": attempt_id,
            "status": evaluation.status.value,
            "timestamp": evaluation.timestamp,
        }
        order = list(attempt.models) if attempt else []
        results = evaluation.ordered_results(order)
        if results:
            payload["results"] = [r.to_dict() for r in results]
        if evaluation.error is not None:
            payload["error"] = evaluation.error.to_poll_dict()
        return payload
