from .errors import (
    PipelineError, StorageError, PdfParseError, EmptyTextError,
    AiError, AiQuotaExceededError, AiRateLimitedError, AiAuthError, AiTimeoutError,
    DatabaseError, NotFoundError,
    classify_fail_reason,
)
from .cv_parser import parse_profile, parse_profile_fallback, redact_pii
from .summarizer import summarize, generic_summary
from .matcher import match, basic_match, normalize_skill
from .jobs import extract_required_skills
from .pipeline import CvPipeline
from .queue import QueueWorker, enqueue

__all__ = [
    # Errors
    "PipelineError", "StorageError", "PdfParseError", "EmptyTextError",
    "AiError", "AiQuotaExceededError", "AiRateLimitedError", "AiAuthError", "AiTimeoutError",
    "DatabaseError", "NotFoundError",
    "classify_fail_reason",
    # Profile parsing
    "parse_profile", "parse_profile_fallback", "redact_pii",
    # Summaries and matching
    "summarize", "generic_summary",
    "match", "basic_match", "normalize_skill",
    "extract_required_skills",
    # Pipeline and queue
    "CvPipeline", "QueueWorker", "enqueue",
]
