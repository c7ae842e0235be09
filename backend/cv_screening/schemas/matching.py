"""
Job context, contextual summary and skill matching schemas.
"""
from typing import List
from pydantic import BaseModel, Field, field_validator


def clamp_score(value) -> int:
    """Round a model-provided score into the 0-100 integer range."""
    try:
        score = int(round(float(value)))
    except (TypeError, ValueError):
        return 0
    return max(0, min(100, score))


class JobDetails(BaseModel):
    title: str
    department: str = "General"
    required_skills: List[str] = Field(default_factory=list)
    description: str = ""


class ContextualSummary(BaseModel):
    contextual_summary: str = Field("", alias="contextualSummary")
    key_highlights: List[str] = Field(default_factory=list, alias="keyHighlights")
    relevance_score: int = Field(0, alias="relevanceScore")

    class Config:
        populate_by_name = True

    @field_validator("relevance_score", mode="before")
    @classmethod
    def clamp(cls, value):
        return clamp_score(value)


class SimilarMatch(BaseModel):
    candidate_skill: str = Field(alias="candidateSkill")
    job_skill: str = Field(alias="jobSkill")
    reasoning: str = ""

    class Config:
        populate_by_name = True


class SmartMatchResult(BaseModel):
    exact_matches: List[str] = Field(default_factory=list, alias="exactMatches")
    similar_matches: List[SimilarMatch] = Field(default_factory=list, alias="similarMatches")
    missing_critical: List[str] = Field(default_factory=list, alias="missingCritical")
    additional_strengths: List[str] = Field(default_factory=list, alias="additionalStrengths")
    overall_match_score: int = Field(0, alias="overallMatchScore")
    match_explanation: str = Field("", alias="matchExplanation")

    class Config:
        populate_by_name = True

    @field_validator("overall_match_score", mode="before")
    @classmethod
    def clamp(cls, value):
        return clamp_score(value)

    @property
    def matched_skills(self) -> List[str]:
        """Exact matches plus the job skills covered by similar matches."""
        merged = []
        for skill in self.exact_matches + [m.job_skill for m in self.similar_matches]:
            if skill not in merged:
                merged.append(skill)
        return merged

    @property
    def missing_skills(self) -> List[str]:
        return list(self.missing_critical)
