"""Prompts for job extraction, fit analysis and resume tailoring."""

JOB_EXTRACTION_PROMPT = """Extract key info from this job posting and return a cleaned copy of its description.

JOB POSTING:
{job_text}

TASKS:
1. DISTILL: Fill the distilledJob object (company, role title, location, deadline, salary range, source, reference code, key skills, required skills with a level of learning, comfortable or expert, core responsibilities).
2. CLEAN: Return the posting as cleanedDescription with generic boilerplate removed (EEO statements, benefits marketing, cookie banners, navigation text). Keep every requirement and responsibility.

CRITICAL: Classify the job into one of these categories:
- 'technical': Software Engineering, Data Science, DevOps, IT, etc.
- 'managerial': Product Manager, Team Lead, VP, Director (non-technical).
- 'general': Marketing, Sales, HR, Customer Service, etc.

SECURITY SCAN:
Look for text explicitly prohibiting 'AI', 'ChatGPT', 'LLMs', 'Generative AI', or requiring 'original work without assistance'.
- If found, set 'isAiBanned': true and 'aiBanReason': "Quote the prohibition policy".
- Otherwise, set 'isAiBanned': false.

Return JSON with top-level 'distilledJob' and 'cleanedDescription' fields. Include 'category', 'isAiBanned' and 'aiBanReason' inside distilledJob."""

_FIT_ANALYSIS_BODY = """INPUT DATA:
1. JOB DESCRIPTION:
"{job_description}"

2. CANDIDATE CONTEXT (one or more resume profiles, plus declared skills):
{candidate_context}

TASK:
1. Compare the job against EVERY profile and pick the single best match as bestResumeProfileId (use the PROFILE_ID value exactly).
2. {focus}
3. GROUNDING RULE: Only credit the candidate for skills and experience explicitly present in the Candidate Context. Do NOT hallucinate levels of seniority.
4. MATCH BREAKDOWN: Identify key strengths and HONEST gaps.
5. SCORE: Rate compatibility (0-100) based on hard evidence.

OUTPUT SCHEMA:
Return ONLY valid JSON matching this structure:
{{
  "compatibilityScore": number (0-100),
  "bestResumeProfileId": "PROFILE_ID of the best matching profile",
  "reasoning": "Extremely concise professional insight (max 2 sentences). Avoid filler.",
  "strengths": ["list of 3-4 specific match points"],
  "weaknesses": ["list of 2-3 specific gaps or missing qualifications"],
  "resumeTailoringInstructions": ["3-4 bullet points on how to adjust the resume"],
  "coverLetterTailoringInstructions": ["3-4 bullet points for the cover letter strategy"],
  "recommendedBlockIds": ["BLOCK_ID values most relevant to this job"]
}}"""

FIT_ANALYSIS_DEFAULT_PROMPT = (
    "You are a Strategic Career Architect and Hiring Expert. Analyze this candidate's "
    "fit for the role with absolute professional objectivity.\n\n" + _FIT_ANALYSIS_BODY
)

FIT_ANALYSIS_TECHNICAL_PROMPT = (
    "You are a senior engineering hiring manager. Analyze this candidate's fit for a "
    "technical role with absolute professional objectivity.\n\n" + _FIT_ANALYSIS_BODY
)

DEFAULT_FOCUS = (
    "DOMAIN-AWARE ANALYSIS: For licensed or regulated roles prioritize certifications and "
    "compliance; for creative roles prioritize portfolio impact; for entry-level roles let "
    "academic background substitute for missing work experience."
)

TECHNICAL_FOCUS = (
    "TECHNICAL ANALYSIS: Prioritize hard skill stacks, system scale and project complexity. "
    "A required language or platform missing from every profile is a gap, not a strength."
)

TAILORED_SUMMARY_PROMPT = """You are an expert resume writer.
Write a 2-3 sentence "Professional Summary" for the top of my resume.

TARGET JOB:
{job_description}

MY BACKGROUND:
{resume_context}

INSTRUCTIONS:
- Pitch me as the perfect candidate for THIS specific role.
- Use keywords from the job description.
- Keep it concise, punchy, and confident (no "I believe", just facts).
- Do NOT return "N/A" or empty text.
- Return a JSON object: {{ "summary": "Text..." }}"""

TAILOR_EXPERIENCE_BLOCK_PROMPT = """You are an expert resume writer.
Rewrite the bullet points for this specific job experience to match the target job description.

TARGET JOB:
{job_description}

MY EXPERIENCE BLOCK:
Title: {title}
Company: {organization}
Original Bullets:
{bullets}

TAILORING INSTRUCTIONS (Strategy):
{instructions}

TASKS:
1. Rewrite the bullets to use keywords from the Target Job.
2. Shift the focus to relevant skills.
3. Quantify impact where possible.
4. Keep the same number of bullets (or fewer if some are irrelevant).
5. Tone: Action-oriented, professional, high-impact.

Return ONLY a JSON array of strings: ["bullet 1", "bullet 2"]"""

SUMMARY_JOB_CHARS = 5000
TAILOR_JOB_CHARS = 3000


def build_extraction_prompt(job_text: str) -> str:
    return JOB_EXTRACTION_PROMPT.format(job_text=job_text)


def build_fit_analysis_prompt(job_description: str, candidate_context: str, category: str) -> str:
    """Pick the template by job category and fill it in."""
    if category == "technical":
        template, focus = FIT_ANALYSIS_TECHNICAL_PROMPT, TECHNICAL_FOCUS
    else:
        template, focus = FIT_ANALYSIS_DEFAULT_PROMPT, DEFAULT_FOCUS
    return template.format(
        job_description=job_description,
        candidate_context=candidate_context,
        focus=focus,
    )


def build_tailored_summary_prompt(job_description: str, resume_context: str) -> str:
    return TAILORED_SUMMARY_PROMPT.format(
        job_description=job_description[:SUMMARY_JOB_CHARS],
        resume_context=resume_context,
    )


def build_tailor_block_prompt(
    job_description: str,
    title: str,
    organization: str,
    bullets: list[str],
    instructions: list[str],
) -> str:
    return TAILOR_EXPERIENCE_BLOCK_PROMPT.format(
        job_description=job_description[:TAILOR_JOB_CHARS],
        title=title,
        organization=organization,
        bullets="\n".join(f"- {bullet}" for bullet in bullets),
        instructions="\n".join(instructions),
    )
