"""Merge, deduplicate, filter and rank diagnostics from all stages."""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from faultline.analysis.patterns import BLOCK_KEYWORDS, has_assignment, mask_code
from faultline.analysis.schemas import Diagnostic
from faultline.constants import HEURISTIC_SOURCES, DiagnosticKind

logger = logging.getLogger(__name__)

_K = DiagnosticKind
_ADVISOR_KINDS = frozenset({
    _K.ADVISOR_SYNTAX,
    _K.ADVISOR_SEMANTIC,
    _K.ADVISOR_LOGICAL,
    _K.ADVISOR_STRUCTURAL,
})
_CALL_STATEMENT_RE = re.compile(r"^[A-Za-z_][\w.]*\(.*\)$")
_SHORT_LINE_CHARS = 8


def _source_rank(d: Diagnostic) -> int:
    """Heuristic stages sort ahead of the advisor."""
    return 0 if d.source in HEURISTIC_SOURCES else 1


def position_key(d: Diagnostic) -> tuple[int, int, float, int, str]:
    return (d.line, d.column, -d.confidence, _source_rank(d), d.kind.value)


def correlate(diagnostics: Iterable[Diagnostic]) -> list[Diagnostic]:
    """Deduplicate and order diagnostics from every stage.

    One diagnostic survives per (line, column, kind): the most
    confident, with heuristic stages winning ties. Advisor findings at
    a position a heuristic stage already reported are dropped.
    """
    best: dict[tuple[int, int, DiagnosticKind], Diagnostic] = {}
    for d in diagnostics:
        key = (d.line, d.column, d.kind)
        current = best.get(key)
        if current is None or (d.confidence, -_source_rank(d)) > (
            current.confidence,
            -_source_rank(current),
        ):
            best[key] = d

    held = {d.position for d in best.values() if d.source in HEURISTIC_SOURCES}
    kept = [
        d
        for d in best.values()
        if d.source in HEURISTIC_SOURCES or d.position not in held
    ]
    return sorted(kept, key=position_key)


# ── False-positive suppression ───────────────────────────


@dataclass(frozen=True)
class SuppressionRule:
    """Drop diagnostics of ``kinds`` whose source line matches."""

    name: str
    kinds: frozenset[DiagnosticKind]
    matches: Callable[[str], bool]

    def suppresses(self, diagnostic: Diagnostic, line: str) -> bool:
        return diagnostic.kind in self.kinds and self.matches(line)


def _starts_with_block_keyword(line: str) -> bool:
    return any(
        line == kw or line.startswith((f"{kw} ", f"{kw}:", f"{kw}("))
        for kw in BLOCK_KEYWORDS
    )


def _is_assignment_line(line: str) -> bool:
    return has_assignment(line) and not _starts_with_block_keyword(line)


def _is_call_statement(line: str) -> bool:
    return (
        _CALL_STATEMENT_RE.match(line) is not None
        and not _starts_with_block_keyword(line)
        and _balanced(line)
    )


def _is_balanced_expression(line: str) -> bool:
    return line.endswith((")", "]", "}")) and _balanced(line)


def _is_import_line(line: str) -> bool:
    return line.startswith(("import ", "from "))


def _is_short_expression(line: str) -> bool:
    return len(line) < _SHORT_LINE_CHARS and not _starts_with_block_keyword(line)


def _balanced(line: str) -> bool:
    depth = 0
    for ch in line:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


DEFAULT_SUPPRESSIONS: tuple[SuppressionRule, ...] = (
    SuppressionRule(
        "assignment_line",
        _ADVISOR_KINDS | {_K.MISSING_COLON},
        _is_assignment_line,
    ),
    SuppressionRule(
        "call_statement",
        _ADVISOR_KINDS | {_K.MISSING_COLON, _K.DANGLING_OPERATOR},
        _is_call_statement,
    ),
    SuppressionRule(
        "balanced_expression",
        frozenset({_K.ADVISOR_SYNTAX, _K.ADVISOR_STRUCTURAL}),
        _is_balanced_expression,
    ),
    SuppressionRule(
        "import_line",
        _ADVISOR_KINDS | {_K.MISSING_COLON},
        _is_import_line,
    ),
    SuppressionRule(
        "short_expression",
        _ADVISOR_KINDS,
        _is_short_expression,
    ),
)


def filter_and_rank(
    diagnostics: Sequence[Diagnostic],
    text: str,
    *,
    confidence_floor: float,
    max_diagnostics: int,
    rules: Sequence[SuppressionRule] = DEFAULT_SUPPRESSIONS,
) -> list[Diagnostic]:
    """Apply the confidence floor and suppression rules, keep the top N.

    The ``max_diagnostics`` most confident survivors are returned in
    position order. Suppression rules look at the masked source line,
    so string contents never trigger them.
    """
    masked_lines = mask_code(text).lines
    kept: list[Diagnostic] = []
    for d in diagnostics:
        if d.confidence < confidence_floor:
            continue
        line = masked_lines[d.line].strip() if d.line < len(masked_lines) else ""
        rule = next((r for r in rules if r.suppresses(d, line)), None)
        if rule is not None:
            logger.debug(
                "event=diagnostic_suppressed rule=%s kind=%s line=%d",
                rule.name,
                d.kind.value,
                d.line,
            )
            continue
        kept.append(d)

    top = sorted(
        kept,
        key=lambda d: (-d.confidence, _source_rank(d), d.line, d.column),
    )[:max_diagnostics]
    return sorted(top, key=position_key)
