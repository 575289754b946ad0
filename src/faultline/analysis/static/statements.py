"""Line-level statement checks that need no block context."""

from __future__ import annotations

import keyword
import re
from collections.abc import Sequence

from faultline.analysis.patterns import (
    AUGMENTED_ASSIGN_START_RE,
    DANGLING_OPERATOR_RE,
    STRING_PREFIX_RE,
    VALID_STRING_PREFIXES,
    LogicalLine,
    MaskedText,
    TextBounds,
    make_diagnostic,
    match_block_keyword,
)
from faultline.analysis.schemas import Diagnostic
from faultline.analysis.static.indentation import indent_width
from faultline.constants import DiagnosticKind, DiagnosticSource

_AWAIT_RE = re.compile(r"\bawait\b")
_IMPORT_RE = re.compile(r"\bimport\b")
_SCOPE_KEYWORDS = frozenset({"def", "async def", "class"})


def check_statements(
    lines: Sequence[str],
    masked: MaskedText,
    logical: Sequence[LogicalLine],
    bounds: TextBounds,
) -> list[Diagnostic]:
    """Run every per-statement check over the fragment."""
    found: list[Diagnostic] = []
    for ll in logical:
        found.extend(_check_import(ll, lines, bounds))
        found.extend(_check_augmented_target(ll, lines, bounds))
        found.extend(_check_dangling_operator(ll, lines, masked, bounds))
    found.extend(_check_string_prefixes(lines, masked, bounds))
    found.extend(_check_await(lines, masked, logical, bounds))
    found.extend(_check_trailing_continuation(lines, masked, bounds))
    return found


def _check_import(
    ll: LogicalLine, lines: Sequence[str], bounds: TextBounds
) -> list[Diagnostic]:
    head = ll.flat
    words = head.split()
    if not words or words[0] not in ("import", "from"):
        return []
    if words[0] == "import" and len(words) > 1:
        return []
    if words[0] == "from" and _IMPORT_RE.search(head):
        return []
    return [
        make_diagnostic(
            DiagnosticKind.INCOMPLETE_IMPORT,
            bounds,
            ll.start,
            len(ll.indent),
            length=len(lines[ll.start].strip()) or 1,
            source=DiagnosticSource.STRUCTURE,
            context=lines[ll.start],
        )
    ]


def _check_augmented_target(
    ll: LogicalLine, lines: Sequence[str], bounds: TextBounds
) -> list[Diagnostic]:
    m = AUGMENTED_ASSIGN_START_RE.match(ll.head)
    if m is None:
        return []
    operator = m.group("op")
    return [
        make_diagnostic(
            DiagnosticKind.MISSING_ASSIGNMENT_TARGET,
            bounds,
            ll.start,
            len(ll.indent),
            length=len(operator),
            source=DiagnosticSource.STRUCTURE,
            context=lines[ll.start],
            operator=operator,
        )
    ]


def _check_dangling_operator(
    ll: LogicalLine,
    lines: Sequence[str],
    masked: MaskedText,
    bounds: TextBounds,
) -> list[Diagnostic]:
    # Open brackets legitimately carry expressions across lines; the
    # delimiter scanner owns unbalanced ones.
    if not ll.balanced:
        return []
    head = ll.flat
    if head.startswith(("import ", "from ", "@")):
        return []
    last = masked.lines[ll.end].rstrip()
    m = DANGLING_OPERATOR_RE.search(last)
    if m is None:
        return []
    operator = m.group().strip()
    if operator == "*" and match_block_keyword(head) in ("def", "async def"):
        return []
    return [
        make_diagnostic(
            DiagnosticKind.DANGLING_OPERATOR,
            bounds,
            ll.end,
            m.start(),
            length=len(operator),
            source=DiagnosticSource.STRUCTURE,
            context=lines[ll.end],
            operator=operator,
        )
    ]


def _check_string_prefixes(
    lines: Sequence[str], masked: MaskedText, bounds: TextBounds
) -> list[Diagnostic]:
    found: list[Diagnostic] = []
    for idx, mline in enumerate(masked.lines):
        for m in STRING_PREFIX_RE.finditer(mline):
            prefix = m.group("prefix")
            if prefix.lower() in VALID_STRING_PREFIXES:
                continue
            # ``if"x"`` and ``not'y'`` are keywords, not prefixes.
            if keyword.iskeyword(prefix):
                continue
            found.append(
                make_diagnostic(
                    DiagnosticKind.INVALID_STRING_PREFIX,
                    bounds,
                    idx,
                    m.start("prefix"),
                    length=len(prefix),
                    source=DiagnosticSource.STRUCTURE,
                    context=lines[idx],
                    prefix=prefix,
                )
            )
    return found


def _check_await(
    lines: Sequence[str],
    masked: MaskedText,
    logical: Sequence[LogicalLine],
    bounds: TextBounds,
) -> list[Diagnostic]:
    """Flag ``await`` whose innermost enclosing scope is not ``async def``.

    Scopes are tracked by indentation: a def/class opens one, and any
    later statement at or left of its header closes it.
    """
    found: list[Diagnostic] = []
    scopes: list[tuple[int, bool]] = []  # (header width, is async def)

    for ll in logical:
        width = indent_width(ll.indent)
        while scopes and width <= scopes[-1][0]:
            scopes.pop()

        in_async = bool(scopes) and scopes[-1][1]
        if not in_async:
            for idx in range(ll.start, ll.end + 1):
                m = _AWAIT_RE.search(masked.lines[idx])
                if m is None:
                    continue
                found.append(
                    make_diagnostic(
                        DiagnosticKind.AWAIT_OUTSIDE_ASYNC,
                        bounds,
                        idx,
                        m.start(),
                        length=len("await"),
                        source=DiagnosticSource.STRUCTURE,
                        context=lines[idx],
                    )
                )
                break

        kw = match_block_keyword(ll.head)
        if kw in _SCOPE_KEYWORDS:
            scopes.append((width, kw == "async def"))
    return found


def _check_trailing_continuation(
    lines: Sequence[str], masked: MaskedText, bounds: TextBounds
) -> list[Diagnostic]:
    last = len(masked.lines) - 1
    while last >= 0 and not masked.lines[last].strip():
        last -= 1
    if last < 0:
        return []
    mline = masked.lines[last].rstrip()
    if not mline.endswith("\\"):
        return []
    return [
        make_diagnostic(
            DiagnosticKind.LINE_CONTINUATION_AT_EOF,
            bounds,
            last,
            len(mline) - 1,
            source=DiagnosticSource.STRUCTURE,
            context=lines[last],
        )
    ]
