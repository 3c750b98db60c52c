"""Job-side models produced by the staged analysis pipeline.

Fields mirror the camelCase JSON the model is asked to return; every model
accepts either naming style.
"""

from typing import Literal, Optional

from pydantic import Field, field_validator

from .base import CamelModel

SkillLevel = Literal["learning", "comfortable", "expert"]
JobCategory = Literal["technical", "managerial", "general"]


class RequiredSkill(CamelModel):
    name: str
    level: SkillLevel = "comfortable"

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("learning", "comfortable", "expert"):
            return v.strip().lower()
        return "comfortable"


class DistilledJob(CamelModel):
    """Structured extraction of a job posting."""

    company_name: str = ""
    role_title: str = ""
    location: Optional[str] = None
    application_deadline: Optional[str] = None
    salary_range: Optional[str] = None
    source: Optional[str] = None
    reference_code: Optional[str] = None
    key_skills: list[str] = Field(default_factory=list)
    required_skills: list[RequiredSkill] = Field(default_factory=list)
    core_responsibilities: list[str] = Field(default_factory=list)
    category: JobCategory = "general"
    is_ai_banned: bool = False
    ai_ban_reason: Optional[str] = None

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v):
        if isinstance(v, str) and v.strip().lower() in ("technical", "managerial", "general"):
            return v.strip().lower()
        return "general"

    @field_validator("company_name", "role_title", mode="before")
    @classmethod
    def none_to_empty(cls, v):
        return v or ""


class ExtractionResult(CamelModel):
    """Stage 1 output: the distilled job plus boilerplate-free description."""

    distilled_job: DistilledJob
    cleaned_description: str

    @field_validator("cleaned_description")
    @classmethod
    def description_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Cleaned description cannot be empty")
        return v


class FitAssessment(CamelModel):
    """Stage 2 output: how well the candidate's profiles fit the job."""

    compatibility_score: int
    best_resume_profile_id: str
    reasoning: str = ""
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    resume_tailoring_instructions: list[str] = Field(default_factory=list)
    cover_letter_tailoring_instructions: list[str] = Field(default_factory=list)
    recommended_block_ids: list[str] = Field(default_factory=list)

    @field_validator("compatibility_score", mode="before")
    @classmethod
    def clamp_score(cls, v):
        try:
            score = float(v)
        except (TypeError, ValueError):
            raise ValueError(f"Compatibility score must be a number, got {v!r}")
        return max(0, min(100, int(round(score))))

    @field_validator("best_resume_profile_id")
    @classmethod
    def profile_id_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Best resume profile id cannot be empty")
        return v.strip()


class JobAnalysis(CamelModel):
    """Pipeline output.

    Fit fields are only populated when at least one profile was supplied;
    check ``has_fit_analysis`` before using them.
    """

    distilled_job: DistilledJob
    cleaned_description: str
    compatibility_score: Optional[int] = None
    best_resume_profile_id: Optional[str] = None
    reasoning: Optional[str] = None
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
    resume_tailoring_instructions: list[str] = Field(default_factory=list)
    cover_letter_tailoring_instructions: list[str] = Field(default_factory=list)
    recommended_block_ids: list[str] = Field(default_factory=list)

    @property
    def has_fit_analysis(self) -> bool:
        return self.compatibility_score is not None

    @classmethod
    def from_stages(
        cls, extraction: ExtractionResult, assessment: Optional[FitAssessment] = None
    ) -> "JobAnalysis":
        fit = assessment.model_dump() if assessment else {}
        return cls(
            distilled_job=extraction.distilled_job,
            cleaned_description=extraction.cleaned_description,
            **fit,
        )
