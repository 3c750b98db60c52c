"""Single-call LLM operations for job analysis and application writing.

Each public method builds one InvocationRequest, runs it through the
RetryExecutor with an InvocationContext for telemetry, and turns the raw
response into a validated model.
"""

import logging
from typing import Any, Callable, Optional, Sequence, TypeVar

from jobfit.llm.cancellation import CancellationToken
from jobfit.llm.config import GeminiModel, TaskType
from jobfit.llm.gateway import ModelGateway
from jobfit.llm.retry import ProgressCallback, RetryExecutor, RetryPolicy
from jobfit.llm.structured import (
    parse_json_response,
    parse_model,
    strip_block_ids,
    validate_model,
)
from jobfit.llm.types import (
    EventType,
    ExecutionMetadata,
    GenerationConfig,
    GenerationResponse,
    InvocationContext,
    InvocationRequest,
)
from jobfit.llm.variants import CoverLetterVariant
from jobfit.models.job import DistilledJob, ExtractionResult, FitAssessment
from jobfit.models.llm_outputs import CoverLetterDraft, CoverLetterRequest, CritiqueResult
from jobfit.models.resume import CustomSkill, ExperienceBlock, ResumeProfile, profiles_context
from jobfit.prompts import schemas
from jobfit.prompts.cover_letter import build_cover_letter_prompt, build_critique_prompt
from jobfit.prompts.job_analysis import (
    build_extraction_prompt,
    build_fit_analysis_prompt,
    build_tailor_block_prompt,
    build_tailored_summary_prompt,
)
from jobfit.utils.errors import ResponseValidationError
from jobfit.utils.logging import setup_logging

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Sampling temperatures
TEMPERATURE_STRICT = 0.0  # Structured extraction and scoring
TEMPERATURE_BALANCED = 0.3  # Analysis and tailoring
TEMPERATURE_CREATIVE = 0.7  # Free-form writing

DEFAULT_MAX_JOB_DESCRIPTION_LENGTH = 15000


class JobAIService:
    """LLM operations used by the analysis pipeline and the quality gate."""

    def __init__(
        self,
        gateway: ModelGateway,
        executor: RetryExecutor,
        retry_policy: Optional[RetryPolicy] = None,
        max_job_description_length: int = DEFAULT_MAX_JOB_DESCRIPTION_LENGTH,
    ):
        """Initialize the service.

        Args:
            gateway: Resolves models to direct or relay invokers
            executor: Wraps every call with retries and telemetry
            retry_policy: Policy for every call (executor default when None)
            max_job_description_length: Raw job text is truncated to this
        """
        self.gateway = gateway
        self.executor = executor
        self.retry_policy = retry_policy
        self.max_job_description_length = max_job_description_length

    async def _invoke(
        self,
        event_type: EventType,
        model: GeminiModel,
        prompt: str,
        generation_config: GenerationConfig,
        parse: Callable[[str], T],
        task: Optional[TaskType] = None,
        job_id: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> T:
        request = InvocationRequest.from_text(model, prompt)
        context = InvocationContext(
            event_type=event_type,
            prompt=prompt,
            model=model.value,
            metadata=metadata or {},
            job_id=job_id,
        )

        async def call(execution: ExecutionMetadata) -> T:
            invoker = await self.gateway.resolve(model, generation_config, task=task)
            response: GenerationResponse = await invoker.generate_content(request)
            execution.record_usage(response.usage_metadata)
            if not response.text or not response.text.strip():
                raise ResponseValidationError(f"Empty response from AI ({event_type.value})")
            return parse(response.text)

        return await self.executor.execute(
            call,
            context,
            policy=self.retry_policy,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def extract_job_info(
        self,
        raw_text: str,
        job_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> ExtractionResult:
        """Stage 1: distil a raw posting with the low-cost model.

        Raises:
            ResponseValidationError: Empty response or a missing
                ``distilledJob`` / ``cleanedDescription``
        """
        truncated = raw_text[: self.max_job_description_length]
        prompt = build_extraction_prompt(truncated)

        def parse(text: str) -> ExtractionResult:
            data = parse_json_response(text, "job extraction")
            if not isinstance(data, dict) or not data.get("distilledJob") or not data.get(
                "cleanedDescription"
            ):
                raise ResponseValidationError(
                    "AI response is missing distilledJob or cleanedDescription"
                )
            return validate_model(data, ExtractionResult, "job extraction")

        return await self._invoke(
            EventType.JOB_EXTRACTION,
            self.gateway.model_for(TaskType.EXTRACTION),
            prompt,
            GenerationConfig.json(schemas.EXTRACTION_SCHEMA, temperature=TEMPERATURE_STRICT),
            parse,
            task=TaskType.EXTRACTION,
            job_id=job_id,
            metadata={"input_chars": len(raw_text), "truncated": len(raw_text) > len(truncated)},
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def analyze_fit(
        self,
        cleaned_description: str,
        distilled_job: DistilledJob,
        profiles: Sequence[ResumeProfile],
        skills: Sequence[CustomSkill] = (),
        job_id: Optional[str] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> FitAssessment:
        """Stage 2: compare the job against every candidate profile.

        Raises:
            ResponseValidationError: Missing compatibility score or best
                profile id
        """
        prompt = build_fit_analysis_prompt(
            cleaned_description,
            profiles_context(profiles, skills),
            distilled_job.category,
        )

        def parse(text: str) -> FitAssessment:
            data = parse_json_response(strip_block_ids(text), "fit analysis")
            if (
                not isinstance(data, dict)
                or data.get("compatibilityScore") is None
                or not data.get("bestResumeProfileId")
            ):
                raise ResponseValidationError(
                    "AI response is missing compatibilityScore or bestResumeProfileId"
                )
            return validate_model(data, FitAssessment, "fit analysis")

        return await self._invoke(
            EventType.ANALYSIS,
            self.gateway.model_for(TaskType.ANALYSIS),
            prompt,
            GenerationConfig.json(schemas.FIT_ANALYSIS_SCHEMA, temperature=TEMPERATURE_BALANCED),
            parse,
            task=TaskType.ANALYSIS,
            job_id=job_id,
            metadata={
                "profile_count": len(profiles),
                "skill_count": len(skills),
                "category": distilled_job.category,
            },
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def generate_cover_letter(
        self,
        request: CoverLetterRequest,
        variant: CoverLetterVariant = CoverLetterVariant.V1_DIRECT,
        revision: Optional[CritiqueResult] = None,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CoverLetterDraft:
        """Draft a cover letter with one variant's template.

        Args:
            request: Job, resume and tailoring inputs
            variant: Prompt template to use
            revision: Critique of a previous draft to fix in this one
        """
        prompt = build_cover_letter_prompt(
            variant.template,
            request.job_description,
            request.resume.to_prompt_text(),
            request.tailoring_instructions,
            additional_context=request.additional_context,
            trajectory_context=request.trajectory_context,
            revision_score=revision.score if revision else None,
            revision_feedback=revision.feedback if revision else None,
        )
        model = variant.model_override or self.gateway.model_for(TaskType.ANALYSIS)

        def parse(text: str) -> CoverLetterDraft:
            cleaned = strip_block_ids(text).strip()
            if not cleaned:
                raise ResponseValidationError("Empty cover letter from AI")
            return CoverLetterDraft(text=cleaned, variant=variant)

        return await self._invoke(
            EventType.COVER_LETTER,
            model,
            prompt,
            GenerationConfig(temperature=TEMPERATURE_CREATIVE),
            parse,
            task=TaskType.ANALYSIS,
            job_id=request.job_id,
            metadata={"variant": variant.value, "revision": revision is not None},
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def critique_cover_letter(
        self,
        request: CoverLetterRequest,
        cover_letter: str,
        on_progress: Optional[ProgressCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> CritiqueResult:
        """Score a draft against the hiring-manager rubric."""
        prompt = build_critique_prompt(
            request.job_description,
            cover_letter,
            resume_text=request.resume.to_prompt_text(),
        )

        def parse(text: str) -> CritiqueResult:
            return parse_model(text, CritiqueResult, "critique")

        return await self._invoke(
            EventType.CRITIQUE,
            self.gateway.model_for(TaskType.ANALYSIS),
            prompt,
            GenerationConfig.json(schemas.CRITIQUE_SCHEMA, temperature=TEMPERATURE_STRICT),
            parse,
            task=TaskType.ANALYSIS,
            job_id=request.job_id,
            on_progress=on_progress,
            cancel_token=cancel_token,
        )

    async def generate_tailored_summary(
        self,
        job_description: str,
        profiles: Sequence[ResumeProfile],
        job_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> str:
        """Write a 2-3 sentence professional summary aimed at one job."""
        resume_context = "\n---\n".join(profile.to_prompt_text() for profile in profiles)
        prompt = build_tailored_summary_prompt(job_description, resume_context)

        def parse(text: str) -> str:
            data = parse_json_response(strip_block_ids(text), "tailored summary")
            summary = data.get("summary") if isinstance(data, dict) else None
            if not summary or not str(summary).strip():
                raise ResponseValidationError("AI response is missing the summary")
            return str(summary).strip()

        return await self._invoke(
            EventType.TAILORED_SUMMARY,
            self.gateway.model_for(TaskType.EXTRACTION),
            prompt,
            GenerationConfig.json(
                schemas.TAILORED_SUMMARY_SCHEMA, temperature=TEMPERATURE_BALANCED
            ),
            parse,
            task=TaskType.EXTRACTION,
            job_id=job_id,
            cancel_token=cancel_token,
        )

    async def tailor_experience_block(
        self,
        job_description: str,
        block: ExperienceBlock,
        instructions: Sequence[str] = (),
        job_id: Optional[str] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> list[str]:
        """Rewrite one experience block's bullets for the target job."""
        prompt = build_tailor_block_prompt(
            job_description,
            block.title,
            block.organization,
            block.bullets,
            list(instructions),
        )

        def parse(text: str) -> list[str]:
            data = parse_json_response(text, "tailored bullets")
            if not isinstance(data, list):
                raise ResponseValidationError("Expected a JSON array of bullet points")
            bullets = [str(item).strip() for item in data if str(item).strip()]
            if not bullets:
                raise ResponseValidationError("AI returned no bullet points")
            return bullets

        return await self._invoke(
            EventType.TAILOR_BLOCK,
            self.gateway.model_for(TaskType.ANALYSIS),
            prompt,
            GenerationConfig.json(
                schemas.TAILORED_BULLETS_SCHEMA, temperature=TEMPERATURE_BALANCED
            ),
            parse,
            task=TaskType.ANALYSIS,
            job_id=job_id,
            metadata={"block_id": block.id, "bullet_count": len(block.bullets)},
            cancel_token=cancel_token,
        )


def create_job_ai_service_from_settings() -> JobAIService:
    """Wire a JobAIService (gateway, executor, telemetry) from settings.

    Also configures logging from ``LOG_LEVEL`` and ``LOG_DIR``.
    """
    from jobfit.config import get_settings
    from jobfit.llm.gateway import create_gateway_from_settings
    from jobfit.services.telemetry import (
        LoggingTelemetrySink,
        SupabaseTelemetrySink,
        TelemetryLogger,
    )
    from jobfit.services.usage_counter import (
        InMemoryUsageCounterStore,
        JsonFileUsageCounterStore,
    )

    settings = get_settings()
    setup_logging(settings.log_level, settings.log_dir)

    if settings.supabase_configured:
        sink = SupabaseTelemetrySink(
            table=settings.telemetry_table,
            usage_rpc=settings.usage_rpc,
        )
    else:
        sink = LoggingTelemetrySink()

    if settings.usage_counter_path:
        usage_counter = JsonFileUsageCounterStore(settings.usage_counter_path)
    else:
        usage_counter = InMemoryUsageCounterStore()

    policy = RetryPolicy(
        max_attempts=settings.llm_max_attempts,
        initial_delay=settings.llm_initial_retry_delay,
    )
    executor = RetryExecutor(TelemetryLogger(sink, usage_counter), default_policy=policy)

    logger.info(
        f"JobAIService initialized | telemetry={type(sink).__name__} | "
        f"max_attempts={policy.max_attempts}"
    )
    return JobAIService(
        create_gateway_from_settings(),
        executor,
        max_job_description_length=settings.max_job_description_length,
    )
