import pytest

from cv_screening.models import Job
from cv_screening.services.jobs import extract_required_skills, job_details


@pytest.mark.parametrize("requirements, expected", [
    ({"requiredSkills": [" React ", "Docker"]}, ["react", "docker"]),
    ({"skills": ["Python", "", 3, None, "  "]}, ["python"]),
    ({"requiredSkills": ["go"], "skills": ["rust"]}, ["go"]),
    ({"requiredSkills": "python"}, []),
    ({"other": ["python"]}, []),
    (["python"], []),
    (None, []),
])
def test_extract_required_skills(requirements, expected):
    assert extract_required_skills(requirements) == expected


def test_extract_required_skills_keeps_duplicates():
    assert extract_required_skills({"requiredSkills": ["SQL", "sql"]}) == ["sql", "sql"]


def test_job_details_defaults():
    job = Job(title="Data Engineer", department=None, description=None, requirements={"skills": ["SQL"]})

    details = job_details(job)

    assert details.title == "Data Engineer"
    assert details.department == "General"
    assert details.description == ""
    assert details.required_skills == ["sql"]
