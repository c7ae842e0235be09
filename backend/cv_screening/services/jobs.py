"""
Job metadata lookup helpers.
"""
from typing import List

from ..models.job import Job
from ..schemas.matching import JobDetails
from .matcher import normalize_skill

DEFAULT_DEPARTMENT = "General"


def extract_required_skills(requirements) -> List[str]:
    """
    Required skills from a job's free-form requirements JSON.

    Reads ``requiredSkills`` (or ``skills`` when that is absent), keeps only
    strings, trims and lowercases them and drops empties. Anything that is not
    a dict, or a skills value that is not a list, gives an empty list.
    """
    if not isinstance(requirements, dict):
        return []

    raw = requirements.get("requiredSkills")
    if raw is None:
        raw = requirements.get("skills")
    if not isinstance(raw, list):
        return []

    skills = [normalize_skill(item) for item in raw if isinstance(item, str)]
    return [skill for skill in skills if skill]


def job_details(job: Job) -> JobDetails:
    return JobDetails(
        title=job.title,
        department=job.department or DEFAULT_DEPARTMENT,
        required_skills=extract_required_skills(job.requirements),
        description=job.description or "",
    )
