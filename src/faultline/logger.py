"""JSON-lines analysis log, one record per request, stage and error.

Records share the fragment fingerprint prefix so a slow or failing
request can be traced through its stages.
"""

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from faultline.constants import ERROR_TRUNCATION_CHARS

ANALYSIS_LOGGER = "faultline.analysis_log"
ANALYSIS_LOG_FILE = "analysis.log"


class AnalysisLogger:
    """Structured JSON logger keyed by fragment fingerprint."""

    def __init__(self, log_dir: Path, level: str = "INFO") -> None:
        self._log_dir = log_dir
        self._log_dir.mkdir(parents=True, exist_ok=True)
        self._logger = logging.getLogger(ANALYSIS_LOGGER)
        self._logger.setLevel(getattr(logging, level.upper()))
        # JSON lines go to the file only, never the console.
        self._logger.propagate = False

        if not self._logger.handlers:
            handler = logging.FileHandler(log_dir / ANALYSIS_LOG_FILE)
            handler.setFormatter(logging.Formatter("%(message)s"))
            self._logger.addHandler(handler)

    def _emit(self, level: int, record_type: str, **fields: Any) -> None:
        self._logger.log(
            level,
            json.dumps({
                "type": record_type,
                "timestamp": datetime.now(UTC).isoformat(),
                **fields,
            }),
        )

    def log_request(
        self,
        fingerprint: str,
        file_path: str,
        diagnostics: int,
        cache_hit: bool,
        duration_ms: float,
    ) -> None:
        self._emit(
            logging.INFO,
            "request",
            fingerprint=fingerprint,
            file_path=file_path,
            diagnostics=diagnostics,
            cache_hit=cache_hit,
            duration_ms=round(duration_ms, 2),
        )

    def log_stage(
        self,
        fingerprint: str,
        stage_name: str,
        status: str,
        duration_ms: float,
        error: str | None = None,
    ) -> None:
        self._emit(
            logging.DEBUG,
            "stage",
            fingerprint=fingerprint,
            stage=stage_name,
            status=status,
            duration_ms=round(duration_ms, 2),
            error=error,
        )

    def log_error(
        self,
        fingerprint: str,
        component: str,
        error: str,
    ) -> None:
        self._emit(
            logging.ERROR,
            "error",
            fingerprint=fingerprint,
            component=component,
            error=error[:ERROR_TRUNCATION_CHARS],
        )
