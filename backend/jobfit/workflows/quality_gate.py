"""LangGraph workflow for the generate-then-critique cover-letter loop.

Each round drafts a letter with a variant not used yet in the run and
scores it with an independent critique call. The run stops on the first
draft that clears the threshold, on a score regression, or at the attempt
limit (where the best draft seen wins).
"""

import asyncio
import logging
import random
from typing import Any, Optional, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from jobfit.llm.cancellation import CancellationToken
from jobfit.llm.variants import ALL_VARIANTS, CoverLetterVariant, select_variant
from jobfit.models.llm_outputs import (
    CoverLetterDraft,
    CoverLetterRequest,
    GenerationAttempt,
    QualityGateResult,
    UserTier,
)
from jobfit.services.job_ai import JobAIService, create_job_ai_service_from_settings

from .progress import ProgressCallback, ProgressReporter, as_reporter

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_THRESHOLD = 75
DEFAULT_COMPARE_COUNT = 2


def choose_attempt(scores: Sequence[int], threshold: int, max_attempts: int) -> Optional[int]:
    """Decide whether the run stops after the latest attempt.

    Args:
        scores: Scores of the attempts so far, in order
        threshold: Minimum acceptable score
        max_attempts: Attempt limit for the run

    Returns:
        Index of the attempt to return, or None to keep going
    """
    if not scores:
        return None
    latest = len(scores) - 1
    if scores[latest] >= threshold:
        return latest
    if len(scores) >= max_attempts:
        # First attempt wins ties
        return max(range(len(scores)), key=lambda i: (scores[i], -i))
    if latest > 0 and scores[latest] < scores[latest - 1]:
        return latest
    return None


class QualityGateState(TypedDict, total=False):
    # Input
    request: CoverLetterRequest
    max_attempts: int
    threshold: int
    force_variant: Optional[CoverLetterVariant]

    # Request plumbing (not persisted)
    reporter: ProgressReporter
    cancel_token: Optional[CancellationToken]

    # Loop state
    attempts: list[GenerationAttempt]
    selected_index: Optional[int]


class QualityGateGenerator:
    """Drafts cover letters until one passes the automated critique."""

    def __init__(
        self,
        service: JobAIService,
        variants: Sequence[CoverLetterVariant] = ALL_VARIANTS,
        rng: Optional[random.Random] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        threshold: int = DEFAULT_THRESHOLD,
    ):
        """Initialize the generator.

        Args:
            service: LLM operations for drafting and critique
            variants: Variants the gate may choose from
            rng: Random source for variant selection (tests pass a seeded one)
            max_attempts: Default attempt limit for runs
            threshold: Default acceptance score for runs
        """
        if not variants:
            raise ValueError("QualityGateGenerator needs at least one variant")
        self.service = service
        self.variants = tuple(variants)
        self.rng = rng
        self.max_attempts = max_attempts
        self.threshold = threshold
        self._graph = self._build_graph()

    def _build_graph(self) -> Any:
        workflow = StateGraph(QualityGateState)

        workflow.add_node("draft_and_critique", self._draft_and_critique_node)
        workflow.add_node("evaluate", self._evaluate_node)

        workflow.set_entry_point("draft_and_critique")
        workflow.add_edge("draft_and_critique", "evaluate")
        workflow.add_conditional_edges(
            "evaluate",
            self._should_continue,
            {"continue": "draft_and_critique", "done": END},
        )

        return workflow.compile()

    def _next_variant(self, state: QualityGateState) -> CoverLetterVariant:
        attempts = state.get("attempts") or []
        if not attempts and state.get("force_variant") is not None:
            return state["force_variant"]
        used = {attempt.variant for attempt in attempts}
        return select_variant(self.variants, used, rng=self.rng)

    async def _draft_and_critique_node(self, state: QualityGateState) -> dict[str, Any]:
        reporter = state["reporter"]
        request = state["request"]
        attempts = list(state.get("attempts") or [])
        attempt_number = len(attempts) + 1
        max_attempts = state["max_attempts"]
        previous = attempts[-1] if attempts else None

        if previous is not None:
            reporter.emit(
                f"Refining based on feedback (score {previous.score}/100)...",
                attempt_number,
                max_attempts,
            )
        reporter.emit(
            f"Drafting cover letter (attempt {attempt_number}/{max_attempts})...",
            attempt_number,
            max_attempts,
        )

        variant = self._next_variant(state)
        draft = await self.service.generate_cover_letter(
            request,
            variant,
            revision=previous.critique if previous is not None else None,
            on_progress=reporter,
            cancel_token=state.get("cancel_token"),
        )

        reporter.emit(f"Critiquing draft (attempt {attempt_number})...", attempt_number, max_attempts)
        critique = await self.service.critique_cover_letter(
            request,
            draft.text,
            on_progress=reporter,
            cancel_token=state.get("cancel_token"),
        )

        logger.info(
            f"[QUALITY] Attempt {attempt_number}/{max_attempts} | variant={variant.value} | "
            f"score={critique.score} | decision={critique.decision}"
        )
        attempts.append(
            GenerationAttempt(
                text=draft.text,
                variant=variant,
                score=critique.score,
                critique=critique,
            )
        )
        return {"attempts": attempts}

    @staticmethod
    def _evaluate_node(state: QualityGateState) -> dict[str, Any]:
        scores = [attempt.score for attempt in state["attempts"]]
        return {
            "selected_index": choose_attempt(scores, state["threshold"], state["max_attempts"])
        }

    @staticmethod
    def _should_continue(state: QualityGateState) -> str:
        return "continue" if state.get("selected_index") is None else "done"

    async def run(
        self,
        request: CoverLetterRequest,
        max_attempts: Optional[int] = None,
        threshold: Optional[int] = None,
        force_variant: Optional[CoverLetterVariant] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> QualityGateResult:
        """Run the quality gate.

        Args:
            request: Cover-letter inputs shared by every attempt
            max_attempts: Attempt limit, at least 1 (generator default when None)
            threshold: Score at which a draft is accepted immediately
                (generator default when None)
            force_variant: Variant for the first attempt (random otherwise)
            on_progress: Receives ``(message, attempt, max_attempts)``
            cancel_token: Aborts the in-flight call or backoff wait

        Returns:
            QualityGateResult with the chosen draft and the attempt history
        """
        if max_attempts is None:
            max_attempts = self.max_attempts
        if threshold is None:
            threshold = self.threshold
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        initial_state = QualityGateState(
            request=request,
            max_attempts=max_attempts,
            threshold=threshold,
            force_variant=force_variant,
            reporter=as_reporter(on_progress),
            cancel_token=cancel_token,
            attempts=[],
            selected_index=None,
        )
        final_state = await self._graph.ainvoke(
            initial_state,
            config={"recursion_limit": max_attempts * 2 + 5},
        )

        attempts = final_state["attempts"]
        chosen = attempts[final_state["selected_index"]]
        logger.info(
            f"[QUALITY] Complete | attempts={len(attempts)} | variant={chosen.variant.value} | "
            f"score={chosen.score}"
        )
        return QualityGateResult(
            text=chosen.text,
            variant_used=chosen.variant,
            score=chosen.score,
            attempts_taken=len(attempts),
            attempts=attempts,
        )

    async def run_for_tier(
        self,
        request: CoverLetterRequest,
        tier: UserTier,
        max_attempts: Optional[int] = None,
        threshold: Optional[int] = None,
        force_variant: Optional[CoverLetterVariant] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> QualityGateResult:
        """Run the gate for tiers that include it; otherwise draft once.

        Single drafts skip the critique entirely and carry no score.
        """
        if tier.uses_quality_gate:
            return await self.run(
                request,
                max_attempts=max_attempts,
                threshold=threshold,
                force_variant=force_variant,
                on_progress=on_progress,
                cancel_token=cancel_token,
            )

        reporter = as_reporter(on_progress)
        reporter.emit("Drafting cover letter...", 1, 1)
        variant = force_variant or CoverLetterVariant.V1_DIRECT
        draft = await self.service.generate_cover_letter(
            request,
            variant,
            on_progress=reporter,
            cancel_token=cancel_token,
        )
        logger.info(f"[QUALITY] Single draft | tier={tier.value} | variant={variant.value}")
        return QualityGateResult(
            text=draft.text,
            variant_used=variant,
            score=None,
            attempts_taken=1,
            attempts=[GenerationAttempt(text=draft.text, variant=variant)],
        )

    async def compare_variants(
        self,
        request: CoverLetterRequest,
        variants: Optional[Sequence[CoverLetterVariant]] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[CoverLetterDraft]:
        """Draft several variants concurrently for side-by-side comparison.

        No critique is run. Every branch settles before this returns; if any
        branch failed, the first failure (in ``variants`` order) is raised.
        """
        chosen = list(variants) if variants is not None else list(self.variants[:DEFAULT_COMPARE_COUNT])
        if not chosen:
            return []

        results = await asyncio.gather(
            *(
                self.service.generate_cover_letter(request, variant, cancel_token=cancel_token)
                for variant in chosen
            ),
            return_exceptions=True,
        )

        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            logger.error(
                f"[QUALITY] Compare failed | variants={[v.value for v in chosen]} | "
                f"failed={len(failures)}"
            )
            raise failures[0]
        return list(results)


def create_quality_gate_from_settings(
    service: Optional[JobAIService] = None,
) -> QualityGateGenerator:
    """Create a QualityGateGenerator using QUALITY_THRESHOLD and QUALITY_MAX_ATTEMPTS."""
    from jobfit.config import get_settings

    settings = get_settings()
    return QualityGateGenerator(
        service or create_job_ai_service_from_settings(),
        max_attempts=settings.quality_max_attempts,
        threshold=settings.quality_threshold,
    )
