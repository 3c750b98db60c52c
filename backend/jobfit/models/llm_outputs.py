"""Models for cover-letter generation, critique and quality-gate results."""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator

from jobfit.llm.variants import CoverLetterVariant

from .base import CamelModel
from .resume import ResumeProfile

CritiqueDecision = Literal["interview", "reject", "maybe"]

_DECISION_ALIASES = {
    "interview": "interview",
    "strong": "interview",
    "exceptional": "interview",
    "reject": "reject",
    "weak": "reject",
    "maybe": "maybe",
    "average": "maybe",
}


class UserTier(Enum):
    FREE = "free"
    PLUS = "plus"
    PRO = "pro"
    ADMIN = "admin"
    TESTER = "tester"

    @property
    def uses_quality_gate(self) -> bool:
        """Free and plus tiers get a single draft without critique."""
        return self not in (UserTier.FREE, UserTier.PLUS)


class CritiqueResult(CamelModel):
    """Automated hiring-manager review of one draft."""

    score: int
    decision: CritiqueDecision = "maybe"
    feedback: list[str] = Field(default_factory=list)
    strengths: list[str] = Field(default_factory=list)
    hallucination_alerts: list[str] = Field(default_factory=list)

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v):
        try:
            score = float(v)
        except (TypeError, ValueError):
            raise ValueError(f"Critique score must be a number, got {v!r}")
        return max(0, min(100, int(round(score))))

    @field_validator("decision", mode="before")
    @classmethod
    def normalize_decision(cls, v):
        if isinstance(v, str):
            return _DECISION_ALIASES.get(v.strip().lower(), "maybe")
        return "maybe"


class CoverLetterRequest(BaseModel):
    """Everything needed to draft a cover letter for one job."""

    job_description: str
    resume: ResumeProfile
    tailoring_instructions: list[str] = Field(default_factory=list)
    additional_context: Optional[str] = None
    trajectory_context: Optional[str] = None
    job_id: Optional[str] = None


class CoverLetterDraft(BaseModel):
    text: str
    variant: CoverLetterVariant


class GenerationAttempt(BaseModel):
    """One generate-then-critique round of a quality-gate run."""

    text: str
    variant: CoverLetterVariant
    score: Optional[int] = None
    critique: Optional[CritiqueResult] = None


class QualityGateResult(BaseModel):
    text: str
    variant_used: CoverLetterVariant
    score: Optional[int]
    attempts_taken: int
    attempts: list[GenerationAttempt] = Field(default_factory=list)
