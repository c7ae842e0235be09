"""
Skill matching between a candidate and a job.

Both paths normalize skills the same way (trim + lowercase) before any
comparison. The basic matcher is exact-match only; Gemini additionally
recognises related technologies.
"""
import math
from typing import Iterable, List

from pydantic import ValidationError

from ..schemas.matching import SimilarMatch, SmartMatchResult
from .errors import AiError
from .fallback import PROVIDER_GEMINI, PROVIDER_FALLBACK, with_fallback
from .prompts import SMART_MATCHING_PROMPT, SMART_MATCH_SCHEMA, fill_prompt_template


def normalize_skill(skill: str) -> str:
    return skill.strip().lower()


def normalize_skills(skills: Iterable[str]) -> List[str]:
    """Normalized, de-duplicated, non-empty skills in first-seen order."""
    result = []
    for skill in skills:
        if not isinstance(skill, str):
            continue
        normalized = normalize_skill(skill)
        if normalized and normalized not in result:
            result.append(normalized)
    return result


def match_score(matched: int, required: int) -> int:
    """round(100 * matched / required), halves rounded up; 0 when nothing is required."""
    if required == 0:
        return 0
    return int(math.floor(100 * matched / required + 0.5))


def basic_match(candidate_skills: List[str], required_skills: List[str]) -> SmartMatchResult:
    candidate = set(normalize_skills(candidate_skills))
    required = normalize_skills(required_skills)

    exact = [skill for skill in required if skill in candidate]
    missing = [skill for skill in required if skill not in candidate]

    return SmartMatchResult(
        exact_matches=exact,
        missing_critical=missing,
        overall_match_score=match_score(len(exact), len(required)),
        match_explanation=f"Candidate matches {len(exact)} out of {len(required)} required skills.",
    )


def _normalize_ai_result(result: SmartMatchResult, required_skills: List[str]) -> SmartMatchResult:
    required = normalize_skills(required_skills)
    exact = [s for s in normalize_skills(result.exact_matches) if s in required]
    similar = []
    for m in result.similar_matches:
        job_skill = normalize_skill(m.job_skill)
        if job_skill in required and job_skill not in exact:
            similar.append(SimilarMatch(
                candidate_skill=normalize_skill(m.candidate_skill),
                job_skill=job_skill,
                reasoning=m.reasoning,
            ))
    covered = set(exact) | {m.job_skill for m in similar}
    missing = [s for s in normalize_skills(result.missing_critical) if s in required and s not in covered]
    # Required skills the model left unclassified count as missing
    missing += [s for s in required if s not in covered and s not in missing]

    return SmartMatchResult(
        exact_matches=exact,
        similar_matches=similar,
        missing_critical=missing,
        additional_strengths=normalize_skills(result.additional_strengths),
        overall_match_score=result.overall_match_score,
        match_explanation=result.match_explanation,
    )


async def smart_match(candidate_skills: List[str], required_skills: List[str], client) -> SmartMatchResult:
    """Gemini skill matching; raises AiError on any failure."""
    prompt = fill_prompt_template(
        SMART_MATCHING_PROMPT,
        candidate_skills=", ".join(normalize_skills(candidate_skills)),
        job_required_skills=", ".join(normalize_skills(required_skills)),
    )
    data = await client.generate_json(
        prompt,
        SMART_MATCH_SCHEMA,
        temperature=0.2,
        max_output_tokens=1500,
    )
    try:
        result = SmartMatchResult.model_validate(data)
    except ValidationError as e:
        raise AiError(f"Gemini match did not match schema: {e.error_count()} errors") from e
    return _normalize_ai_result(result, required_skills)


class GeminiSkillMatcher:
    provider = PROVIDER_GEMINI

    def __init__(self, client):
        self.client = client
        self.model = getattr(client, "model", None)

    async def run(self, candidate_skills: List[str], required_skills: List[str]) -> SmartMatchResult:
        return await smart_match(candidate_skills, required_skills, self.client)


class ExactSkillMatcher:
    provider = PROVIDER_FALLBACK

    async def run(self, candidate_skills: List[str], required_skills: List[str]) -> SmartMatchResult:
        return basic_match(candidate_skills, required_skills)


async def match(candidate_skills: List[str], required_skills: List[str], client=None) -> SmartMatchResult:
    # Nothing to match against: AI matching is pointless
    if not normalize_skills(required_skills) or client is None:
        return basic_match(candidate_skills, required_skills)
    outcome = await with_fallback(
        GeminiSkillMatcher(client), ExactSkillMatcher(),
        candidate_skills, required_skills, stage="match",
    )
    return outcome.value
