"""Diagnostic pipeline: typed stages, parallel fan-out, fusion, ranking."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeAlias, TypeVar

from faultline.analysis.cache import AnalysisCache, Fingerprint
from faultline.analysis.correlate import correlate, filter_and_rank
from faultline.analysis.llm.advisor import LLMAdvisor
from faultline.analysis.schemas import Diagnostic, SourceFragment
from faultline.analysis.semantic.heuristics import analyze_semantics
from faultline.analysis.static.delimiters import scan_delimiters
from faultline.analysis.static.structure import analyze_structure
from faultline.config import Settings
from faultline.constants import SLOW_ANALYSIS_MS, StageOutcome
from faultline.logger import AnalysisLogger
from faultline.resilience.idempotency import IdempotencyGuard

logger = logging.getLogger(__name__)

TInput = TypeVar("TInput")
TOutput = TypeVar("TOutput")


@dataclass
class StageResult(Generic[TOutput]):
    """Outcome of a single pipeline stage execution."""

    stage_name: str
    output: TOutput | None
    duration_ms: float
    status: StageOutcome
    error: str | None = None


@dataclass
class PipelineStage(Generic[TInput, TOutput]):
    """A named, typed, async pipeline stage with error isolation."""

    name: str
    execute: Callable[[TInput], Awaitable[TOutput]]

    async def run(
        self, input_data: TInput
    ) -> StageResult[TOutput]:
        """Execute the stage, capturing timing and errors."""
        start = time.monotonic()
        try:
            output = await self.execute(input_data)
            elapsed = (time.monotonic() - start) * 1000
            return StageResult(
                stage_name=self.name,
                output=output,
                duration_ms=elapsed,
                status=StageOutcome.COMPLETED,
            )
        except Exception as exc:
            elapsed = (time.monotonic() - start) * 1000
            logger.warning(
                "event=stage_failed stage=%s error=%s", self.name, exc
            )
            return StageResult(
                stage_name=self.name,
                output=None,
                duration_ms=elapsed,
                status=StageOutcome.FAILED,
                error=str(exc),
            )


@dataclass
class ParallelGroup(Generic[TInput]):
    """Run multiple stages concurrently on the same input."""

    name: str
    stages: list[PipelineStage[TInput, Any]] = field(
        default_factory=lambda: list[PipelineStage[Any, Any]]()
    )
    timeout: float | None = None  # seconds; None = no timeout

    async def execute(
        self, input_data: TInput
    ) -> list[StageResult[Any]]:
        """Run all stages concurrently.

        Failed stages do not cancel siblings. If ``timeout`` is set,
        stages still running after the deadline stay SKIPPED.
        """
        if not self.stages:
            return []

        results: list[StageResult[Any]] = [
            StageResult(
                stage_name=s.name,
                output=None,
                duration_ms=0.0,
                status=StageOutcome.SKIPPED,
            )
            for s in self.stages
        ]

        async def _run_stage(
            idx: int, stage: PipelineStage[TInput, Any]
        ) -> None:
            results[idx] = await stage.run(input_data)

        coro = asyncio.gather(
            *(_run_stage(i, s) for i, s in enumerate(self.stages)),
            return_exceptions=True,
        )
        if self.timeout is not None:
            try:
                await asyncio.wait_for(coro, timeout=self.timeout)
            except TimeoutError:
                logger.error(
                    "event=parallel_group_timeout group=%s"
                    " timeout_s=%.1f",
                    self.name,
                    self.timeout,
                )
        else:
            await coro

        return results


# ── Heuristic stages ─────────────────────────────────────


@dataclass(frozen=True)
class StageInput:
    """What every heuristic stage sees for one fragment."""

    text: str
    whole_file_text: str | None = None
    offset: int = 0


HeuristicStage: TypeAlias = "PipelineStage[StageInput, list[Diagnostic]]"


def threaded_stage(
    name: str, check: Callable[[StageInput], list[Diagnostic]]
) -> HeuristicStage:
    """Wrap a pure, CPU-bound check as a stage run in a worker thread."""

    async def _execute(stage_input: StageInput) -> list[Diagnostic]:
        return await asyncio.to_thread(check, stage_input)

    return PipelineStage(name=name, execute=_execute)


def default_stages() -> list[HeuristicStage]:
    return [
        threaded_stage("delimiters", lambda i: scan_delimiters(i.text)),
        threaded_stage("structure", lambda i: analyze_structure(i.text)),
        threaded_stage(
            "semantics",
            lambda i: analyze_semantics(
                i.text, i.whole_file_text, offset=i.offset
            ),
        ),
    ]


# ── Pipeline ─────────────────────────────────────────────


@dataclass
class PipelineCounters:
    analyses_run: int = 0
    cache_hits: int = 0
    diagnostics_emitted: int = 0
    stage_failures: int = 0
    stages_timed_out: int = 0


class DiagnosticPipeline:
    """Fragment in, ranked diagnostics out.

    1. Reject empty or oversize fragments.
    2. Serve from the cache when the fingerprint matches.
    3. Run the heuristic stages concurrently.
    4. Ask the advisor, if one is configured and its gates pass.
    5. Correlate, filter, rank, cache, return.

    A stage still running after ``stage_timeout_seconds`` contributes
    nothing; its worker thread finishes in the background.

    Identical requests for the same file that arrive while a run is in
    flight share it.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        cache: AnalysisCache | None = None,
        advisor: LLMAdvisor | None = None,
        stages: Sequence[HeuristicStage] | None = None,
        analysis_logger: AnalysisLogger | None = None,
    ) -> None:
        self._settings = settings
        self._cache = cache or AnalysisCache(
            ttl_seconds=settings.cache_ttl_seconds,
            max_entries=settings.cache_max_entries,
        )
        self._advisor = advisor
        self._group = ParallelGroup[StageInput](
            name="heuristics",
            stages=list(stages) if stages is not None else default_stages(),
            timeout=settings.stage_timeout_seconds,
        )
        self._analysis_logger = analysis_logger
        self._guard: IdempotencyGuard[list[Diagnostic]] = IdempotencyGuard()
        self.counters = PipelineCounters()

    @property
    def cache(self) -> AnalysisCache:
        return self._cache

    async def analyze(
        self,
        fragment: SourceFragment,
        whole_file_text: str | None = None,
    ) -> list[Diagnostic]:
        """Return ranked diagnostics for ``fragment``."""
        text = fragment.text
        if not text.strip():
            return []
        if len(text) > self._settings.max_fragment_length:
            logger.info(
                "event=fragment_rejected reason=too_long length=%d max=%d",
                len(text),
                self._settings.max_fragment_length,
            )
            return []

        start = time.monotonic()
        fingerprint = Fingerprint.of(fragment, whole_file_text)
        cached = self._cache.get(fingerprint)
        if cached is not None:
            self.counters.cache_hits += 1
            self._log_request(fragment, fingerprint, cached, True, start)
            return cached

        async def _run() -> list[Diagnostic]:
            return await self._run(fragment, whole_file_text, fingerprint)

        # Scoped per file: superseding one file must not cancel another's run.
        in_flight_key = f"{fragment.origin.file_path}|{fingerprint.key}"
        result = await self._guard.execute(in_flight_key, _run)
        return list(result)

    async def _run(
        self,
        fragment: SourceFragment,
        whole_file_text: str | None,
        fingerprint: Fingerprint,
    ) -> list[Diagnostic]:
        s = self._settings
        start = time.monotonic()
        self.counters.analyses_run += 1

        results = await self._group.execute(
            StageInput(
                text=fragment.text,
                whole_file_text=whole_file_text,
                offset=fragment.origin.start_offset,
            )
        )
        merged: list[Diagnostic] = []
        for result in results:
            self._log_stage(fingerprint, result)
            if result.status is StageOutcome.COMPLETED and result.output:
                merged.extend(result.output)
            elif result.status is StageOutcome.FAILED:
                self.counters.stage_failures += 1
            elif result.status is StageOutcome.SKIPPED:
                self.counters.stages_timed_out += 1

        advised: list[Diagnostic] = []
        if self._advisor is not None:
            advised = await self._advisor.maybe_analyze(
                fragment.text, merged, language=fragment.language
            )

        ranked = filter_and_rank(
            correlate([*merged, *advised]),
            fragment.text,
            confidence_floor=s.confidence_floor,
            max_diagnostics=s.max_diagnostics,
        )
        duration_ms = (time.monotonic() - start) * 1000
        self._cache.put(fingerprint, ranked, duration_ms)
        self.counters.diagnostics_emitted += len(ranked)

        if duration_ms > SLOW_ANALYSIS_MS:
            logger.warning(
                "event=slow_analysis file=%s duration_ms=%.0f",
                fragment.origin.file_path,
                duration_ms,
            )
        logger.debug(
            "event=analysis_complete file=%s found=%d advised=%d kept=%d",
            fragment.origin.file_path,
            len(merged),
            len(advised),
            len(ranked),
        )
        self._log_request(fragment, fingerprint, ranked, False, start)
        return ranked

    def _log_stage(
        self, fingerprint: Fingerprint, result: StageResult[Any]
    ) -> None:
        if self._analysis_logger is None:
            return
        self._analysis_logger.log_stage(
            fingerprint.content_hash[:16],
            result.stage_name,
            result.status.value,
            result.duration_ms,
            result.error,
        )
        if result.error:
            self._analysis_logger.log_error(
                fingerprint.content_hash[:16], result.stage_name, result.error
            )

    def _log_request(
        self,
        fragment: SourceFragment,
        fingerprint: Fingerprint,
        diagnostics: Sequence[Diagnostic],
        cache_hit: bool,
        start: float,
    ) -> None:
        if self._analysis_logger is None:
            return
        self._analysis_logger.log_request(
            fingerprint.content_hash[:16],
            fragment.origin.file_path,
            len(diagnostics),
            cache_hit,
            (time.monotonic() - start) * 1000,
        )
