"""
Job-tailored candidate summaries.
"""
import json

from pydantic import ValidationError

from ..schemas.matching import ContextualSummary, JobDetails
from ..schemas.profile import ParsedProfile
from .errors import AiError
from .fallback import PROVIDER_GEMINI, PROVIDER_FALLBACK, with_fallback
from .prompts import CONTEXT_SUMMARY_PROMPT, CONTEXT_SUMMARY_SCHEMA, fill_prompt_template

NEUTRAL_RELEVANCE = 50
DEGRADED_RELEVANCE = 30
MAX_DESCRIPTION_CHARS = 1000


def generic_summary(profile: ParsedProfile, relevance_score: int = NEUTRAL_RELEVANCE) -> ContextualSummary:
    return ContextualSummary(
        contextual_summary=profile.professional_summary,
        key_highlights=list(profile.skills.technical[:5]),
        relevance_score=relevance_score,
    )


async def generate_contextual_summary(profile: ParsedProfile, job: JobDetails, client) -> ContextualSummary:
    """Single Gemini call; raises AiError on any failure."""
    prompt = fill_prompt_template(
        CONTEXT_SUMMARY_PROMPT,
        candidate_profile=json.dumps(profile.to_json(), indent=2),
        job_title=job.title,
        job_department=job.department,
        job_required_skills=", ".join(job.required_skills),
        job_description=job.description[:MAX_DESCRIPTION_CHARS],
    )
    data = await client.generate_json(
        prompt,
        CONTEXT_SUMMARY_SCHEMA,
        temperature=0.3,  # Slightly more creative for prose
        max_output_tokens=800,
    )
    try:
        return ContextualSummary.model_validate(data)
    except ValidationError as e:
        raise AiError(f"Gemini summary did not match schema: {e.error_count()} errors") from e


class GeminiSummarizer:
    provider = PROVIDER_GEMINI

    def __init__(self, client):
        self.client = client
        self.model = getattr(client, "model", None)

    async def run(self, profile: ParsedProfile, job: JobDetails) -> ContextualSummary:
        return await generate_contextual_summary(profile, job, self.client)


class GenericSummarizer:
    provider = PROVIDER_FALLBACK

    def __init__(self, relevance_score: int = NEUTRAL_RELEVANCE):
        self.relevance_score = relevance_score

    async def run(self, profile: ParsedProfile, job: JobDetails) -> ContextualSummary:
        return generic_summary(profile, self.relevance_score)


async def summarize(profile: ParsedProfile, job: JobDetails, client=None) -> ContextualSummary:
    primary = GeminiSummarizer(client) if client is not None else None
    outcome = await with_fallback(primary, GenericSummarizer(), profile, job, stage="summary")
    return outcome.value
