"""Candidate-side inputs: resume profiles, experience blocks and skills."""

from typing import Literal, Sequence

from pydantic import Field

from .base import CamelModel


class ExperienceBlock(CamelModel):
    """One resume entry (a job, project or education item)."""

    id: str
    title: str = ""
    organization: str = ""
    date_range: str = ""
    bullets: list[str] = Field(default_factory=list)
    is_visible: bool = True

    def to_prompt_text(self) -> str:
        details = "\n".join(f"- {bullet}" for bullet in self.bullets)
        return (
            f"BLOCK_ID: {self.id}\n"
            f"ROLE: {self.title}\n"
            f"ORG: {self.organization}\n"
            f"DATE: {self.date_range}\n"
            f"DETAILS:\n{details}\n"
        )


class ResumeProfile(CamelModel):
    """A named resume variant made of experience blocks."""

    id: str
    name: str = ""
    blocks: list[ExperienceBlock] = Field(default_factory=list)

    @property
    def visible_blocks(self) -> list[ExperienceBlock]:
        return [block for block in self.blocks if block.is_visible]

    def to_prompt_text(self, include_header: bool = False) -> str:
        """Serialise visible blocks for a prompt.

        Args:
            include_header: Prefix the profile id and name, needed when several
                profiles are compared in one prompt
        """
        body = "\n---\n".join(block.to_prompt_text() for block in self.visible_blocks)
        if not include_header:
            return body
        return f"PROFILE_ID: {self.id}\nPROFILE_NAME: {self.name}\n{body}"


class CustomSkill(CamelModel):
    """A user-declared skill used as extra evidence in fit analysis."""

    name: str
    proficiency: Literal["learning", "comfortable", "expert"] = "comfortable"


def profiles_context(
    profiles: Sequence[ResumeProfile], skills: Sequence[CustomSkill] = ()
) -> str:
    """Build the candidate context block for fit analysis."""
    context = "\n---\n".join(profile.to_prompt_text(include_header=True) for profile in profiles)
    if skills:
        lines = "\n".join(f"- {skill.name}: {skill.proficiency}" for skill in skills)
        context += f"\nADDITIONAL SKILLS:\n{lines}"
    return context
