"""Prompts for cover-letter generation and critique."""

from typing import Optional

COVER_LETTER_DIRECT = """You are a Strategic Career Architect. Write a professional, high-impact, and substantial cover letter.

INSTRUCTIONS:
- Grounding Rule: Use ONLY evidence from the provided Resume Blocks. Do NOT invent skills or experience.
- Metric Uniqueness: Never repeat the same specific metric or stat more than once.
- Vocabulary Audit: Avoid generic filler phrasing (e.g. "look no further", "passion for").
- Structure:
  1. THE HOOK: Open with a compelling reason why this role and company align with your trajectory.
  2. THE EVIDENCE: Connect your most relevant achievements directly to the job's core challenges.
  3. STRATEGIC ALIGNMENT: Articulate why your background makes you a safe, high-ROI choice.
  4. THE CLOSE: A brief, confident call to action.
- Tone: Professional, authoritative yet human.
- Avoid cliches like "I am writing to apply..." start fresher.
- IMPORTANT: Do NOT include any (BLOCK_ID: ...) citations or metadata in the final text."""

COVER_LETTER_STORYTELLING = """You are a Career Architect helping a candidate stand out with narrative. Write a detailed, compelling letter that tells a professional story.

INSTRUCTIONS:
- Grounding Rule: Use ONLY evidence from the provided Resume Blocks. Do NOT invent skills or experience.
- Metric Uniqueness: Never repeat the same specific metric or stat more than once.
- DO NOT start with "I am writing to apply". Start with a statement about the company's mission or a specific problem they are solving.
- Narrative Arc: connect your interest in the industry or problem to why this company caught your eye, then pivot to a similar challenge you faced in a previous role.
- Ending: "I'd love to bring this energy to [Company]."
- Tone: Enthusiastic, genuine, slightly less formal than a standard corporate letter.
- IMPORTANT: Do NOT include any (BLOCK_ID: ...) citations or metadata in the final text."""

COVER_LETTER_EXECUTIVE = """You are a senior executive writing a cover letter. Write a sophisticated, high-level strategic letter with significant depth.
Focus on value proposition, ROI, and strategic alignment, not just skills.
- Grounding Rule: Use ONLY evidence from the provided Resume Blocks.
- Strategic Depth: Use the core pillars of your experience to demonstrate long-term value and leadership potential.
- Metric Uniqueness: Do not repeat specific stats.
- IMPORTANT: Do NOT include any (BLOCK_ID: ...) citations or metadata in the final text."""

COVER_LETTER_PROMPT = """{template}

JOB DESCRIPTION:
{job_description}

MY EXPERIENCE:
{resume_text}
{trajectory_section}
STRATEGY:
{strategy}
{context_section}{revision_section}
FINAL CHECK:
- Ensure no (BLOCK_ID) tags remain in the output.
- REFLECT: Does this letter repeat any specific metric more than once? If yes, remove the repetition.
- REFLECT: Does it sound like an AI? Remove "look no further" or excessive "passion for"."""

TRAJECTORY_SECTION = """
MY CAREER CONTEXT (Goals & Patterns):
{trajectory_context}
(Use this to ensure the letter aligns with my professional identity.)
"""

CONTEXT_SECTION = """
MY ADDITIONAL CONTEXT (Important):
{additional_context}
Include this context naturally if relevant to the job requirements.
"""

REVISION_SECTION = """
IMPORTANT - REVISION INSTRUCTIONS:
The previous draft was reviewed by a hiring manager.
PREVIOUS SCORE: {score}/100
CRITIQUE FEEDBACK: {feedback}
STRICT INSTRUCTION: Fix these specific issues. Do not regress on strengths.
"""

CRITIQUE_PROMPT = """You are a strict technical hiring manager. Review this cover letter for the job below.

JOB:
{job_description}
{resume_section}
CANDIDATE LETTER:
{cover_letter}

TASK:
1. Would you interview this person based on this letter?
2. Score it 0-100. (50 is average, 75 is strong, 90+ is perfect).

CRITIQUE CRITERIA:
- Truthfulness: Does the letter claim achievements not found in the resume? (Hallucinations mean reject.)
- Hook: Does it reference the company and role specifically, or is it generic?
- Storytelling: Is it a cohesive narrative, or just the resume restated?
- Concision and metric uniqueness.

3. List 3 strengths.
4. List 3 specific improvements needed to make it a "Must Hire".

Return specific JSON:
{{
  "score": number,
  "decision": "interview" | "reject" | "maybe",
  "strengths": ["string"],
  "feedback": ["string"],
  "hallucinationAlerts": ["string (claims not supported by the resume)"]
}}"""

RESUME_SECTION = """
CANDIDATE RESUME (Source of Truth):
{resume_text}
"""

CRITIQUE_JOB_CHARS = 5000


def build_cover_letter_prompt(
    template: str,
    job_description: str,
    resume_text: str,
    tailoring_instructions: list[str],
    additional_context: Optional[str] = None,
    trajectory_context: Optional[str] = None,
    revision_score: Optional[int] = None,
    revision_feedback: Optional[list[str]] = None,
) -> str:
    """Assemble a cover-letter prompt from a variant template.

    ``revision_score`` / ``revision_feedback`` come from the previous
    critique when the quality gate asks for a rewrite.
    """
    revision_section = ""
    if revision_feedback is not None:
        revision_section = REVISION_SECTION.format(
            score=revision_score if revision_score is not None else "?",
            feedback="; ".join(revision_feedback) or "No specific feedback",
        )
    return COVER_LETTER_PROMPT.format(
        template=template,
        job_description=job_description,
        resume_text=resume_text,
        trajectory_section=(
            TRAJECTORY_SECTION.format(trajectory_context=trajectory_context)
            if trajectory_context
            else ""
        ),
        strategy="\n".join(tailoring_instructions),
        context_section=(
            CONTEXT_SECTION.format(additional_context=additional_context)
            if additional_context
            else ""
        ),
        revision_section=revision_section,
    )


def build_critique_prompt(
    job_description: str,
    cover_letter: str,
    resume_text: Optional[str] = None,
) -> str:
    return CRITIQUE_PROMPT.format(
        job_description=job_description[:CRITIQUE_JOB_CHARS],
        resume_section=RESUME_SECTION.format(resume_text=resume_text) if resume_text else "",
        cover_letter=cover_letter,
    )
