"""
Try/fallback combinator shared by the AI-backed capabilities.

Each capability (profile parsing, summarizing, matching) has an AI strategy
and a deterministic strategy exposing the same ``run`` coroutine. The
combinator tries the AI one, and on any failure logs and runs the fallback,
recording which provider produced the value.
"""
import logging
from dataclasses import dataclass
from typing import Any, Optional

from .errors import classify_fail_reason

logger = logging.getLogger(__name__)

PROVIDER_GEMINI = "gemini"
PROVIDER_FALLBACK = "fallback"


@dataclass
class Outcome:
    value: Any
    provider: str
    model: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[BaseException] = None

    @property
    def degraded(self) -> bool:
        return self.provider == PROVIDER_FALLBACK

    def model_meta(self) -> dict:
        """Provenance stored alongside every AI output record."""
        meta = {"provider": self.provider, "model": self.model}
        if self.reason:
            meta["reason"] = self.reason
        return meta


async def with_fallback(primary, fallback, *args, stage: str = "ai", skip_reason: str = "AI_UNAVAILABLE") -> Outcome:
    """
    Run ``primary.run(*args)``; on failure run ``fallback.run(*args)``.

    ``primary`` may be None (AI not configured), in which case the fallback
    runs directly with ``skip_reason`` as the recorded reason.
    """
    if primary is None:
        value = await fallback.run(*args)
        return Outcome(value, fallback.provider, reason=skip_reason)

    try:
        value = await primary.run(*args)
        return Outcome(value, primary.provider, model=getattr(primary, "model", None))
    except Exception as e:
        reason = classify_fail_reason(e).value
        logger.warning(f"[AI] {stage} failed ({reason}), using fallback: {e}")
        value = await fallback.run(*args)
        return Outcome(value, fallback.provider, reason=reason, error=e)
