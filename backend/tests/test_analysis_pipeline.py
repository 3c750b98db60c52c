"""Tests for the staged job-analysis pipeline.

Run with: pytest backend/tests/test_analysis_pipeline.py -v
"""

import pytest

from jobfit.models.resume import CustomSkill
from jobfit.utils.errors import ResponseValidationError
from jobfit.workflows import StagedAnalysisPipeline

from conftest import as_json


def extraction_body(category: str = "technical", **job_overrides) -> str:
    distilled = {
        "companyName": "Globex",
        "roleTitle": "Senior Python Engineer",
        "location": "Toronto",
        "keySkills": ["Python", "PostgreSQL"],
        "requiredSkills": [{"name": "Python", "level": "Expert"}],
        "coreResponsibilities": ["Build billing services"],
        "category": category,
        "isAiBanned": False,
    }
    distilled.update(job_overrides)
    return as_json(
        {
            "distilledJob": distilled,
            "cleanedDescription": "Build billing services in Python.",
        }
    )


def fit_body(score=82, profile_id="profile-eng") -> str:
    return as_json(
        {
            "compatibilityScore": score,
            "bestResumeProfileId": profile_id,
            "reasoning": "Strong payments background (BLOCK_ID: blk-1).",
            "strengths": ["Python payments work"],
            "weaknesses": ["No Kafka"],
            "resumeTailoringInstructions": ["Lead with billing"],
            "coverLetterTailoringInstructions": ["Mention latency wins"],
            "recommendedBlockIds": ["blk-1"],
        }
    )


@pytest.fixture
def pipeline(service) -> StagedAnalysisPipeline:
    return StagedAnalysisPipeline(service)


class TestStagedAnalysisPipeline:
    """Test StagedAnalysisPipeline.run."""

    @pytest.mark.asyncio
    async def test_no_profiles_skips_fit_analysis(self, pipeline, relay):
        """Test that only extraction runs when no profile is supplied."""
        relay.queue(extraction_body())
        progress = []

        analysis = await pipeline.run(
            "We are hiring a Senior Python Engineer...",
            on_progress=lambda message, step, total: progress.append((message, step, total)),
        )

        assert len(relay.calls) == 1
        assert relay.calls[0][1]["modelName"] == "gemini-2.0-flash"
        assert analysis.distilled_job.role_title == "Senior Python Engineer"
        assert analysis.distilled_job.required_skills[0].level == "expert"
        assert analysis.has_fit_analysis is False
        assert analysis.compatibility_score is None
        assert analysis.best_resume_profile_id is None
        assert progress == [("Extracting job details...", 1, 2)]

    @pytest.mark.asyncio
    async def test_full_analysis(self, pipeline, relay, profile):
        """Test both stages: cheap model first, higher-cost model second."""
        relay.queue(extraction_body(), fit_body(score=82))
        progress = []

        analysis = await pipeline.run(
            "We are hiring a Senior Python Engineer...",
            profiles=[profile],
            skills=[CustomSkill(name="Kafka", proficiency="learning")],
            job_id="job-1",
            on_progress=lambda message, step, total: progress.append((message, step, total)),
        )

        assert [body["modelName"] for _, body in relay.calls] == [
            "gemini-2.0-flash",
            "gemini-1.5-pro",
        ]
        assert analysis.has_fit_analysis
        assert analysis.compatibility_score == 82
        assert analysis.best_resume_profile_id == "profile-eng"
        assert "BLOCK_ID" not in analysis.reasoning
        assert analysis.recommended_block_ids == ["blk-1"]
        assert progress == [
            ("Extracting job details...", 1, 2),
            ("Analyzing your fit...", 2, 2),
        ]

    @pytest.mark.asyncio
    async def test_fit_prompt_contents(self, pipeline, relay, profile):
        """Test the fit prompt: cleaned description, visible blocks, skills, template."""
        relay.queue(extraction_body(category="technical"), fit_body())

        await pipeline.run(
            "raw posting",
            profiles=[profile],
            skills=[CustomSkill(name="Kafka", proficiency="learning")],
        )

        fit_prompt = relay.prompts()[1]
        assert "Build billing services in Python." in fit_prompt
        assert "PROFILE_ID: profile-eng" in fit_prompt
        assert "BLOCK_ID: blk-1" in fit_prompt
        assert "blk-hidden" not in fit_prompt
        assert "- Kafka: learning" in fit_prompt
        assert "TECHNICAL ANALYSIS" in fit_prompt

    @pytest.mark.asyncio
    async def test_general_category_uses_default_template(self, pipeline, relay, profile):
        """Test template selection for non-technical jobs."""
        relay.queue(extraction_body(category="Sales"), fit_body())

        analysis = await pipeline.run("raw posting", profiles=[profile])

        assert analysis.distilled_job.category == "general"
        assert "DOMAIN-AWARE ANALYSIS" in relay.prompts()[1]

    @pytest.mark.asyncio
    async def test_score_is_clamped(self, pipeline, relay, profile):
        """Test that an out-of-range score is clamped into [0, 100]."""
        relay.queue(extraction_body(), fit_body(score=130))

        analysis = await pipeline.run("raw posting", profiles=[profile])

        assert analysis.compatibility_score == 100

    @pytest.mark.asyncio
    async def test_long_input_is_truncated(self, service, relay):
        """Test that raw text beyond the limit never reaches the prompt."""
        relay.queue(extraction_body())
        raw_text = "a" * 15000 + "TAIL_MARKER"

        await StagedAnalysisPipeline(service).run(raw_text)

        prompt = relay.prompts()[0]
        assert "a" * 15000 in prompt
        assert "TAIL_MARKER" not in prompt

    @pytest.mark.asyncio
    async def test_extraction_missing_fields(self, pipeline, relay, sink, telemetry):
        """Test that a response without cleanedDescription fails validation."""
        relay.queue(as_json({"distilledJob": {"roleTitle": "Engineer"}}))

        with pytest.raises(ResponseValidationError, match="cleanedDescription"):
            await pipeline.run("raw posting")
        await telemetry.drain()

        assert len(relay.calls) == 1
        assert [row["status"] for row in sink.rows] == ["error"]
        assert sink.rows[0]["event_type"] == "job_extraction"

    @pytest.mark.asyncio
    async def test_fit_missing_profile_id(self, pipeline, relay, profile):
        """Test that a fit response without a best profile id fails validation."""
        relay.queue(extraction_body(), as_json({"compatibilityScore": 70}))

        with pytest.raises(ResponseValidationError, match="bestResumeProfileId"):
            await pipeline.run("raw posting", profiles=[profile])

    @pytest.mark.asyncio
    async def test_telemetry_per_stage(self, pipeline, relay, profile, sink, telemetry, usage_counter):
        """Test one success record per stage and usage tracked for both."""
        relay.queue(extraction_body(), fit_body())

        await pipeline.run("raw posting", profiles=[profile], job_id="job-7")
        await telemetry.drain()

        assert [row["event_type"] for row in sink.rows] == ["job_extraction", "analysis"]
        assert all(row["job_id"] == "job-7" for row in sink.rows)
        assert sink.rows[0]["metadata"]["token_usage"]["total_tokens"] == 15
        assert sink.usage_calls == [("user-1", 15), ("user-1", 15)]
