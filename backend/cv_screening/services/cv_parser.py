"""
Structured profile parsing: Gemini with bounded retries, plus a keyword/regex
fallback that never fails.
"""
import asyncio
import logging
import re

from pydantic import ValidationError

from ..schemas.profile import ParsedProfile, PersonalInfo, Skills, Experience
from .errors import AiError
from .fallback import PROVIDER_GEMINI, PROVIDER_FALLBACK
from .prompts import (
    CV_PARSING_PROMPT,
    CV_PROFILE_SCHEMA,
    EXPERIENCE_PATTERNS,
    SKILL_KEYWORDS,
    fill_prompt_template,
)

logger = logging.getLogger(__name__)

MAX_PROMPT_CHARS = 25000
UNKNOWN_CANDIDATE = "Unknown Candidate"

_EMAIL_RE = re.compile(r"\b[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}\b", re.I)
_PHONE_RE = re.compile(r"(?<!\w)(\+?\d[\d\s().-]{7,}\d)\b")


def redact_pii(text: str) -> str:
    """Replace email addresses and phone-number-shaped runs before text leaves the process."""
    text = _EMAIL_RE.sub("<EMAIL_HIDDEN>", text)
    return _PHONE_RE.sub("<PHONE_HIDDEN>", text)


def _validate_profile(data) -> ParsedProfile:
    try:
        profile = ParsedProfile.model_validate(data)
    except ValidationError as e:
        raise AiError(f"Gemini profile did not match schema: {e.error_count()} errors") from e

    if not profile.personal_info.full_name and not profile.skills.technical:
        raise AiError("AI returned empty profile - CV might be unreadable or in unsupported format")
    return profile


async def parse_profile(text: str, client, attempts: int = 2, retry_delay_ms: int = 500,
                        sleep=asyncio.sleep) -> ParsedProfile:
    """
    Parse CV text into a ParsedProfile with Gemini.

    Any failure (network, quota, malformed JSON, schema violation, empty
    profile) is retried up to ``attempts`` calls in total, waiting
    ``retry_delay_ms * attempt`` between them.

    Raises:
        AiError (or a subclass) once all attempts are exhausted
    """
    safe_text = redact_pii(text)[:MAX_PROMPT_CHARS]
    prompt = fill_prompt_template(CV_PARSING_PROMPT, cv_text=safe_text)

    attempts = max(1, attempts)
    last_error = None
    for attempt in range(1, attempts + 1):
        try:
            data = await client.generate_json(
                prompt,
                CV_PROFILE_SCHEMA,
                temperature=0,  # Maximum determinism
                max_output_tokens=8000,
            )
            return _validate_profile(data)
        except Exception as e:
            last_error = e
            logger.warning(f"[AI] Profile parsing attempt {attempt}/{attempts} failed: {e}")
            if attempt < attempts:
                await sleep(retry_delay_ms * attempt / 1000)

    # Keep the typed reason (quota, auth, ...) of the last failure
    error_cls = last_error.__class__ if isinstance(last_error, AiError) else AiError
    raise error_cls(f"AI CV parsing failed after {attempts} attempts: {last_error}") from last_error


def _estimate_years(text: str) -> int:
    for pattern in EXPERIENCE_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return 0


def parse_profile_fallback(text: str) -> ParsedProfile:
    """Keyword/regex profile used when Gemini is unavailable. Never raises."""
    lowered = text.lower()

    technical = []
    for keyword in SKILL_KEYWORDS:
        if keyword in lowered and keyword not in technical:
            technical.append(keyword)

    lines = [line.strip() for line in text.splitlines() if line.strip()]
    name = lines[0] if lines else UNKNOWN_CANDIDATE

    total_years = _estimate_years(text)

    if technical:
        summary = f"Candidate with experience in {', '.join(technical[:3])}"
        if total_years > 0:
            summary += f" with approximately {total_years} years of experience"
        summary += "."
    else:
        summary = "Candidate profile (AI extraction unavailable - fallback mode)"

    return ParsedProfile(
        personal_info=PersonalInfo(full_name=name),
        professional_summary=summary,
        skills=Skills(technical=technical),
        experience=Experience(total_years=total_years),
    )


class GeminiProfileParser:
    provider = PROVIDER_GEMINI

    def __init__(self, client, attempts: int = 2, retry_delay_ms: int = 500, sleep=asyncio.sleep):
        self.client = client
        self.model = getattr(client, "model", None)
        self.attempts = attempts
        self.retry_delay_ms = retry_delay_ms
        self.sleep = sleep

    async def run(self, text: str) -> ParsedProfile:
        return await parse_profile(
            text, self.client,
            attempts=self.attempts,
            retry_delay_ms=self.retry_delay_ms,
            sleep=self.sleep,
        )


class KeywordProfileParser:
    provider = PROVIDER_FALLBACK

    async def run(self, text: str) -> ParsedProfile:
        return parse_profile_fallback(text)
