"""LangGraph workflow for staged job analysis.

Stage 1 distils the raw posting with the low-cost model. Stage 2, which
compares the job against the candidate's profiles with the higher-cost
model, only runs when at least one profile is supplied.
"""

import logging
from typing import Any, Optional, Sequence, TypedDict

from langgraph.graph import END, StateGraph

from jobfit.llm.cancellation import CancellationToken
from jobfit.models.job import ExtractionResult, FitAssessment, JobAnalysis
from jobfit.models.resume import CustomSkill, ResumeProfile
from jobfit.services.job_ai import JobAIService

from .progress import ProgressCallback, ProgressReporter, as_reporter

logger = logging.getLogger(__name__)

TOTAL_STEPS = 2
EXTRACTING_MESSAGE = "Extracting job details..."
ANALYZING_MESSAGE = "Analyzing your fit..."


class AnalysisState(TypedDict, total=False):
    """State flowing through the analysis graph."""

    # Input
    raw_text: str
    profiles: list[ResumeProfile]
    skills: list[CustomSkill]
    job_id: Optional[str]

    # Request plumbing (not persisted)
    reporter: ProgressReporter
    cancel_token: Optional[CancellationToken]

    # Stage outputs
    extraction: Optional[ExtractionResult]
    assessment: Optional[FitAssessment]


class StagedAnalysisPipeline:
    """Extraction followed by an optional fit comparison."""

    def __init__(self, service: JobAIService):
        self.service = service
        self._graph = self._build_graph()

    def _build_graph(self) -> Any:
        workflow = StateGraph(AnalysisState)

        workflow.add_node("extract_job", self._extract_job_node)
        workflow.add_node("analyze_fit", self._analyze_fit_node)

        workflow.set_entry_point("extract_job")
        workflow.add_conditional_edges(
            "extract_job",
            self._route_after_extraction,
            {"analyze_fit": "analyze_fit", "end": END},
        )
        workflow.add_edge("analyze_fit", END)

        return workflow.compile()

    @staticmethod
    def _route_after_extraction(state: AnalysisState) -> str:
        if not state.get("profiles"):
            logger.info("[PIPELINE] No candidate profiles | skipping fit analysis")
            return "end"
        return "analyze_fit"

    async def _extract_job_node(self, state: AnalysisState) -> dict[str, Any]:
        reporter = state["reporter"]
        reporter.emit(EXTRACTING_MESSAGE, 1, TOTAL_STEPS)
        logger.info(f"[PIPELINE] Stage 1 | extracting | chars={len(state['raw_text'])}")

        extraction = await self.service.extract_job_info(
            state["raw_text"],
            job_id=state.get("job_id"),
            on_progress=reporter,
            cancel_token=state.get("cancel_token"),
        )
        return {"extraction": extraction}

    async def _analyze_fit_node(self, state: AnalysisState) -> dict[str, Any]:
        reporter = state["reporter"]
        reporter.emit(ANALYZING_MESSAGE, 2, TOTAL_STEPS)
        extraction = state["extraction"]
        logger.info(
            f"[PIPELINE] Stage 2 | analyzing fit | profiles={len(state['profiles'])} | "
            f"category={extraction.distilled_job.category}"
        )

        assessment = await self.service.analyze_fit(
            extraction.cleaned_description,
            extraction.distilled_job,
            state["profiles"],
            state.get("skills") or [],
            job_id=state.get("job_id"),
            on_progress=reporter,
            cancel_token=state.get("cancel_token"),
        )
        return {"assessment": assessment}

    async def run(
        self,
        raw_text: str,
        profiles: Sequence[ResumeProfile] = (),
        skills: Sequence[CustomSkill] = (),
        job_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> JobAnalysis:
        """Run the pipeline.

        Args:
            raw_text: Unstructured job posting text
            profiles: Candidate resume profiles; none skips stage 2
            skills: Extra skill evidence for stage 2
            job_id: Optional job id attached to telemetry
            on_progress: Receives ``(message, step, total)`` at each stage
                and any retry notices
            cancel_token: Aborts the in-flight call or backoff wait

        Returns:
            JobAnalysis; check ``has_fit_analysis`` before using fit fields
        """
        initial_state = AnalysisState(
            raw_text=raw_text,
            profiles=list(profiles),
            skills=list(skills),
            job_id=job_id,
            reporter=as_reporter(on_progress),
            cancel_token=cancel_token,
            extraction=None,
            assessment=None,
        )
        final_state = await self._graph.ainvoke(initial_state)

        analysis = JobAnalysis.from_stages(final_state["extraction"], final_state.get("assessment"))
        logger.info(
            f"[PIPELINE] Complete | role={analysis.distilled_job.role_title!r} | "
            f"score={analysis.compatibility_score}"
        )
        return analysis
