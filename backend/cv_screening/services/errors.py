"""
Pipeline error types and fail-reason classification.

Collaborators raise typed errors at their own boundary (storage, PDF, Gemini,
database) and the orchestrator maps them onto the FailReason stored on the
CV document. Message pattern matching is kept only for untyped exceptions.
"""
import re

import httpx
from sqlalchemy.exc import SQLAlchemyError

from ..models.cv import FailReason


class PipelineError(Exception):
    """Base class for classified pipeline failures."""
    fail_reason = FailReason.UNKNOWN


class StorageError(PipelineError):
    fail_reason = FailReason.S3_UPLOAD_FAILED


class PdfParseError(PipelineError):
    fail_reason = FailReason.PDF_PARSE_FAILED


class EmptyTextError(PipelineError):
    fail_reason = FailReason.PDF_TEXT_EMPTY


class AiError(PipelineError):
    fail_reason = FailReason.AI_FAILED


class AiQuotaExceededError(AiError):
    fail_reason = FailReason.AI_QUOTA_EXCEEDED


class AiRateLimitedError(AiError):
    fail_reason = FailReason.AI_RATE_LIMITED


class AiAuthError(AiError):
    fail_reason = FailReason.AI_AUTH_FAILED


class AiTimeoutError(AiError):
    fail_reason = FailReason.AI_TIMEOUT


class DatabaseError(PipelineError):
    fail_reason = FailReason.DB_FAILED


class NotFoundError(PipelineError):
    fail_reason = FailReason.UNKNOWN


# Last-resort rules for exceptions that did not come through a typed boundary.
# Order matters: first match wins.
_MESSAGE_RULES = [
    (re.compile(r"NoSuchBucket|bucket|S3|MinIO|download|storage", re.I), FailReason.S3_UPLOAD_FAILED),
    (re.compile(r"pdf contains no extractable text|scanned|image-based", re.I), FailReason.PDF_TEXT_EMPTY),
    (re.compile(r"pdf|parse|invalid pdf", re.I), FailReason.PDF_PARSE_FAILED),
    (re.compile(r"quota.*exceeded|exceeded.*quota|429.*quota", re.I), FailReason.AI_QUOTA_EXCEEDED),
    (re.compile(r"rate limit|too many requests|429", re.I), FailReason.AI_RATE_LIMITED),
    (re.compile(r"unauthorized|invalid.*api.*key|authentication|401|403", re.I), FailReason.AI_AUTH_FAILED),
    (re.compile(r"timeout|ETIMEDOUT|deadline|timed out", re.I), FailReason.AI_TIMEOUT),
    (re.compile(r"gemini|model|generate_content|extraction failed", re.I), FailReason.AI_FAILED),
    (re.compile(r"sqlalchemy|database|postgres|sqlite", re.I), FailReason.DB_FAILED),
]


def classify_fail_reason(exc: BaseException) -> FailReason:
    """Map any exception raised inside a pipeline run to a FailReason."""
    if isinstance(exc, PipelineError):
        return exc.fail_reason
    if isinstance(exc, SQLAlchemyError):
        return FailReason.DB_FAILED
    if isinstance(exc, httpx.TimeoutException):
        return FailReason.AI_TIMEOUT

    message = str(exc)
    for pattern, reason in _MESSAGE_RULES:
        if pattern.search(message):
            return reason
    return FailReason.UNKNOWN


def describe_error(exc: BaseException) -> str:
    """Human-readable message persisted on the CV document."""
    message = str(exc).strip()
    return message[:1000] if message else exc.__class__.__name__
