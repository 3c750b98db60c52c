"""LangGraph workflows for job analysis and cover-letter generation.

Example usage:
    from jobfit.services.job_ai import create_job_ai_service_from_settings
    from jobfit.workflows import QualityGateGenerator, StagedAnalysisPipeline

    service = create_job_ai_service_from_settings()

    analysis = await StagedAnalysisPipeline(service).run(
        raw_text,
        profiles=profiles,
        on_progress=lambda message, step, total: print(f"[{step}/{total}] {message}"),
    )
    if analysis.has_fit_analysis:
        print(analysis.compatibility_score)

    result = await QualityGateGenerator(service).run(cover_letter_request)
    print(result.variant_used, result.score, result.attempts_taken)
"""

from .analysis_pipeline import AnalysisState, StagedAnalysisPipeline
from .progress import ProgressEvent, ProgressReporter, ProgressStream, as_reporter
from .quality_gate import (
    QualityGateGenerator,
    QualityGateState,
    choose_attempt,
    create_quality_gate_from_settings,
)

__all__ = [
    # Pipelines
    "StagedAnalysisPipeline",
    "AnalysisState",
    "QualityGateGenerator",
    "QualityGateState",
    "choose_attempt",
    "create_quality_gate_from_settings",
    # Progress
    "ProgressEvent",
    "ProgressReporter",
    "ProgressStream",
    "as_reporter",
]
