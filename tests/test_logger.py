"""Tests for the JSON-lines AnalysisLogger."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

import pytest

from faultline.analysis.pipeline import DiagnosticPipeline
from faultline.analysis.schemas import FragmentOrigin, SourceFragment
from faultline.config import Settings
from faultline.logger import ANALYSIS_LOG_FILE, ANALYSIS_LOGGER, AnalysisLogger


def _drop_handlers() -> None:
    lg = logging.getLogger(ANALYSIS_LOGGER)
    for handler in list(lg.handlers):
        handler.close()
        lg.removeHandler(handler)


@pytest.fixture(autouse=True)
def _fresh_handlers() -> Iterator[None]:
    """The analysis logger is process-wide; start each test clean."""
    _drop_handlers()
    yield
    _drop_handlers()


def _records(log_dir: Path) -> list[dict[str, object]]:
    for handler in logging.getLogger(ANALYSIS_LOGGER).handlers:
        handler.flush()
    text = (log_dir / ANALYSIS_LOG_FILE).read_text()
    return [json.loads(line) for line in text.splitlines() if line]


class TestAnalysisLogger:
    def test_creates_log_dir(self, tmp_path: Path) -> None:
        log_dir = tmp_path / "nested" / "logs"
        AnalysisLogger(log_dir)
        assert log_dir.is_dir()

    def test_request_record(self, tmp_path: Path) -> None:
        log = AnalysisLogger(tmp_path)
        log.log_request("abc123", "a.py", 2, False, 12.345)
        [record] = _records(tmp_path)
        assert record["type"] == "request"
        assert record["fingerprint"] == "abc123"
        assert record["file_path"] == "a.py"
        assert record["diagnostics"] == 2
        assert record["cache_hit"] is False
        assert record["duration_ms"] == 12.35
        assert "timestamp" in record

    def test_stage_records_only_at_debug(self, tmp_path: Path) -> None:
        log = AnalysisLogger(tmp_path, level="debug")
        log.log_stage("abc123", "delimiters", "completed", 1.0)
        [record] = _records(tmp_path)
        assert (record["type"], record["stage"]) == ("stage", "delimiters")
        assert record["error"] is None

    def test_stage_records_hidden_at_info(self, tmp_path: Path) -> None:
        log = AnalysisLogger(tmp_path)
        log.log_stage("abc123", "delimiters", "completed", 1.0)
        log.log_request("abc123", "a.py", 0, True, 0.1)
        assert [r["type"] for r in _records(tmp_path)] == ["request"]

    def test_error_is_truncated(self, tmp_path: Path) -> None:
        log = AnalysisLogger(tmp_path)
        log.log_error("abc123", "structure", "x" * 1000)
        [record] = _records(tmp_path)
        assert record["component"] == "structure"
        assert len(str(record["error"])) == 200

    def test_records_stay_off_the_console(
        self, tmp_path: Path, caplog: pytest.LogCaptureFixture
    ) -> None:
        log = AnalysisLogger(tmp_path)
        with caplog.at_level(logging.INFO):
            log.log_request("abc123", "a.py", 0, False, 0.1)
        assert "abc123" not in caplog.text


class TestPipelineLogging:
    async def test_pipeline_writes_request_and_stages(
        self, tmp_path: Path, settings: Settings
    ) -> None:
        pipeline = DiagnosticPipeline(
            settings, analysis_logger=AnalysisLogger(tmp_path, level="DEBUG")
        )
        fragment = SourceFragment(
            text="foo(", origin=FragmentOrigin(file_path="demo.py")
        )
        await pipeline.analyze(fragment)
        await pipeline.analyze(fragment)

        records = _records(tmp_path)
        stages = [r["stage"] for r in records if r["type"] == "stage"]
        requests = [r for r in records if r["type"] == "request"]
        assert stages == ["delimiters", "structure", "semantics"]
        assert [r["cache_hit"] for r in requests] == [False, True]
        assert requests[0]["file_path"] == "demo.py"
        assert requests[0]["diagnostics"] == 1
