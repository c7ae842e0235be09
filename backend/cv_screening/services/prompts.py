"""
Prompt templates, response schemas and fallback vocabulary for CV analysis.

Kept apart from the calling code so prompts can be tuned without touching
pipeline logic.
"""
import re

# ============================================================================
# Phase 1: structured CV parsing
# ============================================================================

CV_PARSING_PROMPT = """
You are an expert CV/resume analyzer. Extract the candidate's information from
the CV text below and return it as JSON.

CV TEXT:
\"\"\"
{cv_text}
\"\"\"

OUTPUT FORMAT (JSON):
{
  "personalInfo": {"fullName": "string", "email": "string or null", "phone": "string or null", "location": "string or null"},
  "professionalSummary": "string",
  "skills": {"technical": ["string (lowercase)"], "soft": ["string"], "languages": ["string"]},
  "experience": {
    "totalYears": number,
    "roles": [{"title": "string", "company": "string", "duration": "string", "keyResponsibilities": ["string"]}]
  },
  "education": [{"degree": "string", "institution": "string", "year": "string or null", "field": "string"}],
  "certifications": ["string"],
  "projects": [{"name": "string", "description": "string", "technologies": ["string"]}]
}

INSTRUCTIONS:
- Technical skills in lowercase, using common tags (e.g. "node.js", "postgresql", "docker").
- Calculate total years of experience from dates where possible.
- Contact details have been redacted; leave email/phone null.
- If a field is missing, use null or [].
""".strip()

# ============================================================================
# Phase 2: job-tailored summary
# ============================================================================

CONTEXT_SUMMARY_PROMPT = """
You are a recruitment assistant. Write a concise, job-focused summary of this
candidate.

CANDIDATE PROFILE:
\"\"\"
{candidate_profile}
\"\"\"

JOB:
\"\"\"
Title: {job_title}
Department: {job_department}
Required Skills: {job_required_skills}
Description: {job_description}
\"\"\"

The summary (2-3 sentences) must:
1. Highlight the candidate's experience that is relevant to THIS job
2. Mention skills that match the job requirements
3. Mention years of experience where known
4. Note certifications or qualifications relevant to the role
5. Be factual - only use what is in the candidate profile

Return ONLY JSON:
{
  "contextualSummary": "string",
  "keyHighlights": ["3-5 short points showing the best matches with the job"],
  "relevanceScore": number (0-100, fit for this specific role)
}
""".strip()

# ============================================================================
# Phase 3: skill matching
# ============================================================================

SMART_MATCHING_PROMPT = """
You are an expert technical recruiter. Compare the candidate's skills with the
job's required skills.

CANDIDATE SKILLS:
{candidate_skills}

JOB REQUIRED SKILLS:
{job_required_skills}

Understand related technologies when matching:
- Similar technologies (e.g. "postgres" and "postgresql")
- Framework relationships (e.g. "react" implies "javascript")
- Tool ecosystems (e.g. "docker" complements "kubernetes")
- Naming variations (e.g. "vue.js" and "vue")

Return ONLY JSON:
{
  "exactMatches": ["required skills the candidate has exactly"],
  "similarMatches": [{"candidateSkill": "string", "jobSkill": "string", "reasoning": "string"}],
  "missingCritical": ["required skills the candidate lacks"],
  "additionalStrengths": ["candidate skills not required but valuable for the role"],
  "overallMatchScore": number (0-100),
  "matchExplanation": "string (1-2 sentences)"
}

RULES:
1. exactMatches must be the same technology
2. similarMatches only for genuinely related technologies
3. Every required skill appears in exactly one of exactMatches, similarMatches (as jobSkill) or missingCritical
""".strip()


def fill_prompt_template(template: str, **variables: str) -> str:
    """Replace {name} placeholders; other braces (JSON examples) are left alone."""
    result = template
    for key, value in variables.items():
        result = result.replace("{" + key + "}", value)
    return result


# ============================================================================
# Response schemas (Gemini OpenAPI subset)
# ============================================================================

_STRING_LIST = {"type": "ARRAY", "items": {"type": "STRING"}}

CV_PROFILE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "personalInfo": {
            "type": "OBJECT",
            "properties": {
                "fullName": {"type": "STRING"},
                "email": {"type": "STRING", "nullable": True},
                "phone": {"type": "STRING", "nullable": True},
                "location": {"type": "STRING", "nullable": True},
            },
            "required": ["fullName"],
        },
        "professionalSummary": {"type": "STRING"},
        "skills": {
            "type": "OBJECT",
            "properties": {
                "technical": _STRING_LIST,
                "soft": _STRING_LIST,
                "languages": _STRING_LIST,
            },
            "required": ["technical", "soft", "languages"],
        },
        "experience": {
            "type": "OBJECT",
            "properties": {
                "totalYears": {"type": "NUMBER"},
                "roles": {
                    "type": "ARRAY",
                    "items": {
                        "type": "OBJECT",
                        "properties": {
                            "title": {"type": "STRING"},
                            "company": {"type": "STRING"},
                            "duration": {"type": "STRING"},
                            "keyResponsibilities": _STRING_LIST,
                        },
                        "required": ["title", "company", "duration", "keyResponsibilities"],
                    },
                },
            },
            "required": ["totalYears", "roles"],
        },
        "education": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "degree": {"type": "STRING"},
                    "institution": {"type": "STRING"},
                    "year": {"type": "STRING", "nullable": True},
                    "field": {"type": "STRING"},
                },
                "required": ["degree", "institution", "field"],
            },
        },
        "certifications": _STRING_LIST,
        "projects": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "name": {"type": "STRING"},
                    "description": {"type": "STRING"},
                    "technologies": _STRING_LIST,
                },
                "required": ["name", "description", "technologies"],
            },
        },
    },
    "required": [
        "personalInfo", "professionalSummary", "skills", "experience",
        "education", "certifications", "projects",
    ],
}

CONTEXT_SUMMARY_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "contextualSummary": {"type": "STRING"},
        "keyHighlights": _STRING_LIST,
        "relevanceScore": {"type": "NUMBER"},
    },
    "required": ["contextualSummary", "keyHighlights", "relevanceScore"],
}

SMART_MATCH_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "exactMatches": _STRING_LIST,
        "similarMatches": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "candidateSkill": {"type": "STRING"},
                    "jobSkill": {"type": "STRING"},
                    "reasoning": {"type": "STRING"},
                },
                "required": ["candidateSkill", "jobSkill", "reasoning"],
            },
        },
        "missingCritical": _STRING_LIST,
        "additionalStrengths": _STRING_LIST,
        "overallMatchScore": {"type": "NUMBER"},
        "matchExplanation": {"type": "STRING"},
    },
    "required": [
        "exactMatches", "similarMatches", "missingCritical",
        "additionalStrengths", "overallMatchScore", "matchExplanation",
    ],
}

# ============================================================================
# Fallback extraction (no AI)
# ============================================================================

SKILL_KEYWORDS = [
    # Programming languages
    "javascript", "typescript", "python", "java", "kotlin", "swift", "dart",
    "flutter", "c++", "c#", "ruby", "go", "golang", "rust", "php", "scala", "sql",
    # Frontend
    "html", "css", "react", "vue", "angular", "next.js", "nuxt", "svelte",
    "redux", "tailwind", "bootstrap", "sass", "webpack", "vite",
    # Backend
    "node.js", "express", "fastify", "nest.js", "django", "flask", "fastapi",
    "spring", "springboot", "laravel", "rails", ".net", "asp.net",
    # Databases
    "postgresql", "postgres", "mysql", "mongodb", "redis", "sqlite",
    "cassandra", "dynamodb", "oracle", "mssql", "elasticsearch",
    # DevOps & cloud
    "docker", "kubernetes", "k8s", "jenkins", "github actions", "gitlab ci",
    "aws", "azure", "gcp", "terraform", "ansible", "ci/cd", "linux",
    # Mobile
    "android", "ios", "react native",
    # Other
    "api", "rest", "graphql", "microservices", "websocket", "grpc", "git",
    "github", "agile", "scrum", "jira", "figma",
]

EXPERIENCE_PATTERNS = [
    re.compile(r"(\d+)\+?\s*years?\s+(?:of\s+)?experience", re.I),
    re.compile(r"experience:?\s*(\d+)\+?\s*years?", re.I),
    re.compile(r"(\d+)\+?\s*years?\s+(?:working|developing)", re.I),
]
