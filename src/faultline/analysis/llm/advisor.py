"""Optional LLM second opinion on a fragment."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Sequence

from faultline.analysis.llm.backend import LLMBackend
from faultline.analysis.llm.protocol import parse_reply
from faultline.analysis.schemas import Diagnostic
from faultline.config import Settings
from faultline.prompts import build_error_detection_prompt
from faultline.resilience.errors import (
    AdvisorError,
    classify_error,
    is_retryable,
)

logger = logging.getLogger(__name__)


class LLMAdvisor:
    """Gate, call, and parse one advisor request per fragment.

    Gates, in order: advisor enabled, backend available, fragment
    length within bounds, fewer heuristic findings than
    ``advisor_max_existing``, and a free in-flight slot. Requests over
    the concurrency limit are skipped rather than queued; a stale
    fragment is not worth waiting for.

    Every failure mode (timeout, transport, server, malformed reply)
    is logged and yields ``[]``.
    """

    def __init__(self, backend: LLMBackend, settings: Settings) -> None:
        self._backend = backend
        self._settings = settings
        self._in_flight = 0
        self.skipped_busy = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    def _skip_reason(self, text: str, existing: Sequence[Diagnostic]) -> str:
        s = self._settings
        if not s.enable_llm_advisor:
            return "disabled"
        if not self._backend.is_available():
            return "backend_unavailable"
        if not s.min_fragment_length <= len(text) <= s.max_fragment_length:
            return "length"
        if len(existing) >= s.advisor_max_existing:
            return "enough_findings"
        if self._in_flight >= s.llm_max_concurrency:
            return "busy"
        return ""

    async def maybe_analyze(
        self,
        text: str,
        existing: Sequence[Diagnostic],
        *,
        language: str = "python",
    ) -> list[Diagnostic]:
        """Ask the backend about ``text`` when every gate passes."""
        reason = self._skip_reason(text, existing)
        if reason:
            if reason == "busy":
                self.skipped_busy += 1
            logger.debug("event=advisor_skipped reason=%s", reason)
            return []

        s = self._settings
        prompt = build_error_detection_prompt(
            text,
            language=language,
            known_issues=[f"line {d.line + 1}: {d.message}" for d in existing],
        )
        self._in_flight += 1
        start = time.monotonic()
        try:
            reply = await asyncio.wait_for(
                self._backend.complete(
                    s.llm_model,
                    prompt,
                    s.llm_max_tokens,
                    s.llm_temperature,
                ),
                timeout=s.llm_timeout_seconds,
            )
            found = parse_reply(
                reply, text, threshold=s.advisor_confidence_threshold
            )
        except TimeoutError:
            logger.warning(
                "event=advisor_timeout model=%s timeout_s=%.1f",
                s.llm_model,
                s.llm_timeout_seconds,
            )
            return []
        except AdvisorError as exc:
            logger.warning(
                "event=advisor_failed model=%s error_class=%s"
                " retryable=%s error=%s",
                s.llm_model,
                classify_error(exc).value,
                is_retryable(exc),
                exc,
            )
            return []
        finally:
            self._in_flight -= 1

        logger.info(
            "event=advisor_complete model=%s findings=%d duration_ms=%.0f",
            s.llm_model,
            len(found),
            (time.monotonic() - start) * 1000,
        )
        return found
