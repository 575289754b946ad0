"""Line protocol spoken by the LLM advisor.

One finding per line::

    ERROR|<line>|<col>|<type>|<severity>|<message>|<suggestion>|<confidence>

or the sentinel ``NO_ERRORS_DETECTED``. Lines are 1-based on the wire
and 0-based everywhere else.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from faultline.analysis.patterns import (
    ADVISOR_KIND_BY_CATEGORY,
    CATALOGUE,
    TextBounds,
    make_diagnostic,
)
from faultline.analysis.schemas import Diagnostic
from faultline.constants import (
    ADVISOR_FIELD_COUNT,
    ADVISOR_LINE_PREFIX,
    ADVISOR_NO_ERRORS,
    MAX_QUICK_FIXES,
    DiagnosticSource,
    ErrorCategory,
    Severity,
)
from faultline.resilience.errors import MalformedReplyError

logger = logging.getLogger(__name__)


def parse_category(raw: str) -> ErrorCategory:
    """Map a wire error type to a category; unknown types are SYNTAX."""
    try:
        return ErrorCategory[raw.strip().upper()]
    except KeyError:
        return ErrorCategory.SYNTAX


def parse_severity(raw: str) -> Severity:
    """Map a wire severity to Severity; unknown values are ERROR."""
    try:
        return Severity[raw.strip().upper()]
    except KeyError:
        return Severity.ERROR


def quick_fixes_for(category: ErrorCategory, suggestion: str) -> tuple[str, ...]:
    """Suggestion text first, then the category's stock fixes."""
    fixes: list[str] = []
    if suggestion:
        fixes.append(suggestion)
    fixes.extend(CATALOGUE[ADVISOR_KIND_BY_CATEGORY[category]].quick_fixes)
    unique = list(dict.fromkeys(fixes))
    return tuple(unique[:MAX_QUICK_FIXES])


def parse_reply(
    reply: str,
    text: str,
    *,
    threshold: float,
) -> list[Diagnostic]:
    """Parse an advisor reply into diagnostics for ``text``.

    Lines that do not follow the protocol are skipped. Findings whose
    confidence is below ``threshold`` are discarded.

    Raises:
        MalformedReplyError: the reply holds neither the sentinel nor
            a single protocol line.
    """
    stripped = reply.strip()
    if not stripped or ADVISOR_NO_ERRORS in stripped.upper():
        return []

    bounds = TextBounds.of(text)
    source_lines = text.split("\n")
    candidates = [
        line.strip()
        for line in stripped.splitlines()
        if line.strip().upper().startswith(ADVISOR_LINE_PREFIX)
    ]
    if not candidates:
        raise MalformedReplyError(
            f"advisor reply has no protocol lines: {stripped[:80]!r}"
        )

    found: list[Diagnostic] = []
    for raw in candidates:
        diagnostic = _parse_line(raw, bounds, source_lines)
        if diagnostic is None:
            continue
        if diagnostic.confidence < threshold:
            logger.debug(
                "event=advisor_finding_below_threshold confidence=%.2f"
                " threshold=%.2f",
                diagnostic.confidence,
                threshold,
            )
            continue
        found.append(diagnostic)
    return found


def _parse_line(
    raw: str, bounds: TextBounds, source_lines: Sequence[str]
) -> Diagnostic | None:
    parts = raw.split("|")
    if len(parts) != ADVISOR_FIELD_COUNT:
        logger.debug("event=advisor_line_skipped reason=field_count line=%r", raw)
        return None
    _, line_raw, col_raw, type_raw, sev_raw, message, suggestion, conf_raw = parts
    try:
        line = max(0, int(line_raw.strip()) - 1)
        confidence = float(conf_raw.strip())
    except ValueError:
        logger.debug("event=advisor_line_skipped reason=number line=%r", raw)
        return None
    try:
        column = max(0, int(col_raw.strip()))
    except ValueError:
        column = 0

    category = parse_category(type_raw)
    suggestion = suggestion.strip()
    clamped_line, _ = bounds.clamp(line, column)
    return make_diagnostic(
        ADVISOR_KIND_BY_CATEGORY[category],
        bounds,
        line,
        column,
        source=DiagnosticSource.ADVISOR,
        context=source_lines[clamped_line],
        severity=parse_severity(sev_raw),
        confidence=confidence,
        message=f"AI: {message.strip()}",
        suggestion=suggestion,
        quick_fixes=quick_fixes_for(category, suggestion),
    )
