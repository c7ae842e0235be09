from .profile import ParsedProfile, PersonalInfo, Skills, Experience, Role, EducationEntry, ProjectEntry
from .matching import JobDetails, ContextualSummary, SimilarMatch, SmartMatchResult, clamp_score

__all__ = [
    "ParsedProfile", "PersonalInfo", "Skills", "Experience", "Role",
    "EducationEntry", "ProjectEntry",
    "JobDetails", "ContextualSummary", "SimilarMatch", "SmartMatchResult",
    "clamp_score",
]
