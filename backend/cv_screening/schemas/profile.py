"""
Parsed candidate profile schemas.

Field names are snake_case in Python and camelCase on the wire, so the same
model validates Gemini output and serializes stored CV_PROFILE records.
"""
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class _ProfileModel(BaseModel):
    class Config:
        populate_by_name = True
        frozen = True


class PersonalInfo(_ProfileModel):
    full_name: Optional[str] = Field(None, alias="fullName")
    email: Optional[str] = None
    phone: Optional[str] = None
    location: Optional[str] = None


class Skills(_ProfileModel):
    technical: List[str] = Field(default_factory=list)
    soft: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)

    @field_validator("technical", "soft", "languages", mode="before")
    @classmethod
    def none_to_list(cls, value):
        return [] if value is None else value


class Role(_ProfileModel):
    title: str = ""
    company: str = ""
    duration: str = ""
    key_responsibilities: List[str] = Field(default_factory=list, alias="keyResponsibilities")

    @field_validator("key_responsibilities", mode="before")
    @classmethod
    def none_to_list(cls, value):
        return [] if value is None else value


class Experience(_ProfileModel):
    total_years: float = Field(0, alias="totalYears")
    roles: List[Role] = Field(default_factory=list)

    @field_validator("roles", mode="before")
    @classmethod
    def none_to_list(cls, value):
        return [] if value is None else value

    @field_validator("total_years", mode="before")
    @classmethod
    def none_to_zero(cls, value):
        return 0 if value is None else value


class EducationEntry(_ProfileModel):
    degree: str = ""
    institution: str = ""
    year: Optional[str] = None
    field: str = ""


class ProjectEntry(_ProfileModel):
    name: str = ""
    description: str = ""
    technologies: List[str] = Field(default_factory=list)

    @field_validator("technologies", mode="before")
    @classmethod
    def none_to_list(cls, value):
        return [] if value is None else value


class ParsedProfile(_ProfileModel):
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo, alias="personalInfo")
    professional_summary: str = Field("", alias="professionalSummary")
    skills: Skills = Field(default_factory=Skills)
    experience: Experience = Field(default_factory=Experience)
    education: List[EducationEntry] = Field(default_factory=list)
    certifications: List[str] = Field(default_factory=list)
    projects: List[ProjectEntry] = Field(default_factory=list)

    @field_validator("education", "certifications", "projects", mode="before")
    @classmethod
    def none_to_list(cls, value):
        return [] if value is None else value

    @field_validator("personal_info", "skills", "experience", mode="before")
    @classmethod
    def none_to_object(cls, value):
        return {} if value is None else value

    @field_validator("professional_summary", mode="before")
    @classmethod
    def none_to_empty(cls, value):
        return value or ""

    def to_json(self) -> dict:
        """camelCase dict as stored in CV_PROFILE outputs and sent to prompts."""
        return self.model_dump(mode="json", by_alias=True)
