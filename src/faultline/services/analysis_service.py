"""Diagnostics service: the object editors and the CLI talk to."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from faultline.analysis.cache import AnalysisCache
from faultline.analysis.llm.advisor import LLMAdvisor
from faultline.analysis.llm.backend import LiteLLMBackend, LLMBackend
from faultline.analysis.pipeline import DiagnosticPipeline
from faultline.analysis.schemas import Diagnostic, SourceFragment
from faultline.config import Settings
from faultline.logger import AnalysisLogger
from faultline.resilience.supersede import SupersedingRunner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceStats:
    cache_size: int
    cache_hits: int
    cache_misses: int
    analyses_run: int
    diagnostics_emitted: int
    stage_failures: int
    advisor_skipped_busy: int
    pending: int


class DiagnosticsService:
    """Owns the settings, cache, backend and pipeline for one process.

    ``analyze`` runs immediately. ``submit`` is for keystroke-driven
    callers: it debounces per file and drops work for content that
    has since changed, returning ``[]`` to the superseded caller.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        backend: LLMBackend | None = None,
        cache: AnalysisCache | None = None,
        pipeline: DiagnosticPipeline | None = None,
    ) -> None:
        self._settings = settings or Settings()
        s = self._settings

        self._cache = cache or AnalysisCache(
            ttl_seconds=s.cache_ttl_seconds,
            max_entries=s.cache_max_entries,
        )
        self._advisor: LLMAdvisor | None = None
        if s.enable_llm_advisor:
            self._advisor = LLMAdvisor(
                backend
                or LiteLLMBackend(
                    s.llm_model,
                    timeout_seconds=s.llm_timeout_seconds,
                    api_base=s.llm_api_base,
                ),
                s,
            )
        analysis_logger = (
            AnalysisLogger(s.log_dir, s.log_level) if s.log_dir else None
        )
        self._pipeline = pipeline or DiagnosticPipeline(
            s,
            cache=self._cache,
            advisor=self._advisor,
            analysis_logger=analysis_logger,
        )
        self._runner: SupersedingRunner[list[Diagnostic]] = SupersedingRunner(
            debounce_seconds=s.debounce_ms / 1000
        )

    @property
    def settings(self) -> Settings:
        return self._settings

    async def analyze(
        self,
        fragment: SourceFragment,
        whole_file_text: str | None = None,
    ) -> list[Diagnostic]:
        if not self._settings.enable_error_detection:
            return []
        return await self._pipeline.analyze(fragment, whole_file_text)

    async def submit(
        self,
        fragment: SourceFragment,
        whole_file_text: str | None = None,
    ) -> list[Diagnostic]:
        """Debounced analysis; newer content for the same file wins."""
        if not self._settings.enable_error_detection:
            return []

        async def _operation() -> list[Diagnostic]:
            return await self._pipeline.analyze(fragment, whole_file_text)

        return await self._runner.submit(
            fragment.origin.file_path, _operation, default=[]
        )

    def clear(self) -> None:
        """Drop cached results and cancel pending submissions."""
        cancelled = self._runner.cancel_all()
        self._cache.clear()
        logger.info("event=service_cleared cancelled=%d", cancelled)

    def stats(self) -> ServiceStats:
        cache = self._cache.stats()
        counters = self._pipeline.counters
        return ServiceStats(
            cache_size=cache.size,
            cache_hits=cache.hits,
            cache_misses=cache.misses,
            analyses_run=counters.analyses_run,
            diagnostics_emitted=counters.diagnostics_emitted,
            stage_failures=counters.stage_failures,
            advisor_skipped_busy=(
                self._advisor.skipped_busy if self._advisor else 0
            ),
            pending=len(self._runner.pending_keys),
        )
