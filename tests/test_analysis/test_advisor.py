"""Tests for LLMAdvisor gating, timeouts and failure handling."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

import pytest

from faultline.analysis.llm.advisor import LLMAdvisor
from faultline.analysis.llm.fakes import FakeLLMBackend
from faultline.analysis.static import scan_delimiters
from faultline.config import Settings
from faultline.constants import DiagnosticKind
from faultline.resilience.errors import ServerError, TransportError

_LOGGER = "faultline.analysis.llm.advisor"
_CODE = "if x\n    pass\n"
_HIT = "ERROR|1|4|SYNTAX|ERROR|Missing colon|Add ':'|0.99"


class TestHappyPath:
    async def test_returns_parsed_findings(
        self, advisor_settings: Settings
    ) -> None:
        backend = FakeLLMBackend([_HIT])
        advisor = LLMAdvisor(backend, advisor_settings)
        found = await advisor.maybe_analyze(_CODE, [])
        assert [(d.kind, d.position) for d in found] == [
            (DiagnosticKind.ADVISOR_SYNTAX, (0, 4))
        ]
        assert backend.calls == 1
        assert _CODE in backend.prompts[0]
        assert advisor.in_flight == 0

    async def test_prompt_lists_known_issues(
        self, advisor_settings: Settings
    ) -> None:
        backend = FakeLLMBackend()
        advisor = LLMAdvisor(backend, advisor_settings)
        existing = scan_delimiters("foo(")
        await advisor.maybe_analyze("foo(", existing)
        assert "already reported" in backend.prompts[0]
        assert "line 1: Unclosed '('" in backend.prompts[0]

    async def test_low_confidence_findings_dropped(
        self, advisor_settings: Settings
    ) -> None:
        backend = FakeLLMBackend(["ERROR|1|4|SYNTAX|ERROR|maybe|fix|0.97"])
        advisor = LLMAdvisor(backend, advisor_settings)
        assert await advisor.maybe_analyze(_CODE, []) == []

    async def test_logs_completion(
        self, advisor_settings: Settings, caplog: pytest.LogCaptureFixture
    ) -> None:
        advisor = LLMAdvisor(FakeLLMBackend([_HIT]), advisor_settings)
        with caplog.at_level(logging.INFO, logger=_LOGGER):
            await advisor.maybe_analyze(_CODE, [])
        assert "event=advisor_complete" in caplog.text
        assert "findings=1" in caplog.text


class TestGates:
    async def test_disabled(self, settings: Settings) -> None:
        backend = FakeLLMBackend([_HIT])
        advisor = LLMAdvisor(backend, settings)
        assert await advisor.maybe_analyze(_CODE, []) == []
        assert backend.calls == 0

    async def test_backend_unavailable(self, advisor_settings: Settings) -> None:
        backend = FakeLLMBackend([_HIT], available=False)
        advisor = LLMAdvisor(backend, advisor_settings)
        assert await advisor.maybe_analyze(_CODE, []) == []
        assert backend.calls == 0

    async def test_fragment_too_short(
        self, settings_factory: Callable[..., Settings]
    ) -> None:
        s = settings_factory(enable_llm_advisor=True, min_fragment_length=50)
        backend = FakeLLMBackend([_HIT])
        assert await LLMAdvisor(backend, s).maybe_analyze(_CODE, []) == []
        assert backend.calls == 0

    async def test_enough_heuristic_findings(
        self, settings_factory: Callable[..., Settings]
    ) -> None:
        s = settings_factory(enable_llm_advisor=True, advisor_max_existing=1)
        backend = FakeLLMBackend([_HIT])
        existing = scan_delimiters("foo(")
        assert await LLMAdvisor(backend, s).maybe_analyze("foo(", existing) == []
        assert backend.calls == 0

    async def test_busy_requests_are_skipped_not_queued(
        self, settings_factory: Callable[..., Settings]
    ) -> None:
        s = settings_factory(enable_llm_advisor=True, llm_max_concurrency=1)
        backend = FakeLLMBackend([_HIT], delay_seconds=0.05)
        advisor = LLMAdvisor(backend, s)
        first, second = await asyncio.gather(
            advisor.maybe_analyze(_CODE, []),
            advisor.maybe_analyze(_CODE, []),
        )
        assert len(first) == 1
        assert second == []
        assert backend.calls == 1
        assert advisor.skipped_busy == 1
        assert advisor.in_flight == 0


class TestFailures:
    async def test_timeout_yields_nothing(
        self,
        settings_factory: Callable[..., Settings],
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        s = settings_factory(enable_llm_advisor=True, llm_timeout_seconds=0.05)
        advisor = LLMAdvisor(FakeLLMBackend([_HIT], delay_seconds=1.0), s)
        with caplog.at_level(logging.WARNING, logger=_LOGGER):
            assert await advisor.maybe_analyze(_CODE, []) == []
        assert "event=advisor_timeout" in caplog.text
        assert advisor.in_flight == 0

    @pytest.mark.parametrize(
        "error",
        [TransportError("connection refused"), ServerError("boom", 503)],
    )
    async def test_backend_errors_yield_nothing(
        self,
        advisor_settings: Settings,
        caplog: pytest.LogCaptureFixture,
        error: Exception,
    ) -> None:
        advisor = LLMAdvisor(FakeLLMBackend([error]), advisor_settings)
        with caplog.at_level(logging.WARNING, logger=_LOGGER):
            assert await advisor.maybe_analyze(_CODE, []) == []
        assert "event=advisor_failed" in caplog.text
        assert advisor.in_flight == 0

    async def test_malformed_reply_yields_nothing(
        self, advisor_settings: Settings, caplog: pytest.LogCaptureFixture
    ) -> None:
        advisor = LLMAdvisor(
            FakeLLMBackend(["Looks good to me!"]), advisor_settings
        )
        with caplog.at_level(logging.WARNING, logger=_LOGGER):
            assert await advisor.maybe_analyze(_CODE, []) == []
        assert "event=advisor_failed" in caplog.text
