"""Header, definition, and block-structure checks.

Works on logical lines: physical lines joined while brackets are open,
a backslash continues the line, or a multi-line string is still open.
String bodies and comments are masked first, so colons, brackets and
keywords inside them never match.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence

from faultline.analysis.patterns import (
    CLASS_HEADER_RE,
    CONDITION_KEYWORDS,
    DEF_HEADER_RE,
    IDENTIFIER_RE,
    LogicalLine,
    TextBounds,
    has_assignment,
    iter_logical_lines,
    make_diagnostic,
    mask_code,
    match_block_keyword,
    strip_brackets,
)
from faultline.analysis.schemas import Diagnostic
from faultline.analysis.static.indentation import (
    check_blocks,
    check_indent_style,
    indent_width,
)
from faultline.analysis.static.statements import check_statements
from faultline.constants import DiagnosticKind, DiagnosticSource

logger = logging.getLogger(__name__)

_DEPTH0_COLON_RE = re.compile(r":(?!=)")
_IN_RE = re.compile(r"\bin\b")
_BARE_EXCEPT_RE = re.compile(r"^except\s*:")
_TWO_WORDS_RE = re.compile(
    r"^(?P<left>\*{0,2}[A-Za-z_]\w*)\s+(?P<right>[A-Za-z_]\w*)$"
)


def analyze_structure(text: str) -> list[Diagnostic]:
    """Run header, definition, keyword, indentation and statement checks."""
    if not text.strip():
        return []

    lines = text.split("\n")
    masked = mask_code(text)
    logical = list(iter_logical_lines(masked))
    bounds = TextBounds.of(text)

    found: list[Diagnostic] = []
    for pos, ll in enumerate(logical):
        keyword = match_block_keyword(ll.head)
        if keyword is None:
            continue
        found.extend(_check_colon(ll, keyword, lines, masked.lines, bounds))
        found.extend(_check_condition(ll, keyword, lines, bounds))
        if keyword in ("def", "async def"):
            found.extend(_check_def(ll, lines, bounds))
        elif keyword == "class":
            found.extend(_check_class(ll, lines, bounds))
        elif keyword == "except":
            found.extend(_check_bare_except(ll, logical[pos + 1 :], lines, bounds))

    found.extend(check_indent_style(lines, masked, bounds))
    found.extend(check_blocks(lines, logical, bounds))
    found.extend(check_statements(lines, masked, logical, bounds))

    logger.debug(
        "event=structure_checked lines=%d logical=%d found=%d",
        len(lines),
        len(logical),
        len(found),
    )
    return found


def _after_keyword(ll: LogicalLine, keyword: str) -> str:
    return ll.flat[len(keyword) :]


def _check_colon(
    ll: LogicalLine,
    keyword: str,
    lines: Sequence[str],
    masked_lines: Sequence[str],
    bounds: TextBounds,
) -> list[Diagnostic]:
    # Unbalanced headers belong to the delimiter scanner.
    if not ll.balanced:
        return []
    rest = _after_keyword(ll, keyword)
    if rest.rstrip().endswith("\\"):
        return []
    if _DEPTH0_COLON_RE.search(strip_brackets(rest)):
        return []
    if has_assignment(rest):
        return []
    column = len(masked_lines[ll.end].rstrip())
    return [
        make_diagnostic(
            DiagnosticKind.MISSING_COLON,
            bounds,
            ll.end,
            column,
            source=DiagnosticSource.STRUCTURE,
            context=lines[ll.end],
            keyword=keyword,
            keyword_id=keyword.replace(" ", "_"),
        )
    ]


def _check_condition(
    ll: LogicalLine, keyword: str, lines: Sequence[str], bounds: TextBounds
) -> list[Diagnostic]:
    rest = _after_keyword(ll, keyword).strip()
    subject = rest[:-1].strip() if rest.endswith(":") else rest

    if keyword in CONDITION_KEYWORDS and not subject:
        kind = DiagnosticKind.MISSING_CONDITION
    elif keyword in ("for", "async for") and not _IN_RE.search(subject):
        kind = DiagnosticKind.FOR_MISSING_IN
    else:
        return []
    return [
        make_diagnostic(
            kind,
            bounds,
            ll.start,
            len(ll.indent),
            length=len(keyword),
            source=DiagnosticSource.STRUCTURE,
            context=lines[ll.start],
            keyword=keyword,
            keyword_id=keyword.replace(" ", "_"),
        )
    ]


def _check_def(
    ll: LogicalLine, lines: Sequence[str], bounds: TextBounds
) -> list[Diagnostic]:
    head = ll.flat
    m = DEF_HEADER_RE.match(head)
    if m is None:
        return []
    name = m.group("name")
    base = len(ll.indent)

    if not name:
        return [
            _definition_diag(
                DiagnosticKind.EMPTY_DEFINITION_NAME,
                ll, lines, bounds, base, len(head.split()[0]),
                keyword="def", keyword_id="def",
            )
        ]
    if not IDENTIFIER_RE.match(name):
        return [
            _definition_diag(
                DiagnosticKind.INVALID_IDENTIFIER,
                ll, lines, bounds, base + m.start("name"), len(name),
                name=name,
            )
        ]
    if m.group("paren") is None:
        return [
            _definition_diag(
                DiagnosticKind.INVALID_FUNCTION_DEFINITION,
                ll, lines, bounds, base + m.start("name"), len(name),
                name=name,
            )
        ]
    if not ll.balanced:
        return []
    return _check_parameters(ll, lines, bounds, head, m.start("paren"))


def _check_parameters(
    ll: LogicalLine,
    lines: Sequence[str],
    bounds: TextBounds,
    head: str,
    paren: int,
) -> list[Diagnostic]:
    """Find a parameter slot holding two bare words (``def f(x y)``)."""
    for slot in _split_parameters(head, paren):
        name_part = re.split(r"[:=]", slot, maxsplit=1)[0].strip()
        pair = _TWO_WORDS_RE.match(name_part)
        if pair is None:
            continue
        # The '(' sits on the header's first physical line.
        return [
            make_diagnostic(
                DiagnosticKind.MISSING_COMMA,
                bounds,
                ll.start,
                len(ll.indent) + paren,
                source=DiagnosticSource.STRUCTURE,
                context=lines[ll.start],
                left=pair.group("left"),
                right=pair.group("right"),
            )
        ]
    return []


def _split_parameters(head: str, paren: int) -> list[str]:
    """Split the parenthesised parameter list at depth-0 commas."""
    slots: list[str] = []
    depth = 0
    current: list[str] = []
    for ch in head[paren + 1 :]:
        if ch in "([{":
            depth += 1
        elif ch in ")]}":
            if depth == 0:
                break
            depth -= 1
        elif ch == "," and depth == 0:
            slots.append("".join(current))
            current = []
            continue
        current.append(ch)
    slots.append("".join(current))
    return [s.strip() for s in slots if s.strip()]


def _check_class(
    ll: LogicalLine, lines: Sequence[str], bounds: TextBounds
) -> list[Diagnostic]:
    m = CLASS_HEADER_RE.match(ll.flat)
    if m is None:
        return []
    name = m.group("name")
    base = len(ll.indent)
    if not name:
        return [
            _definition_diag(
                DiagnosticKind.EMPTY_DEFINITION_NAME,
                ll, lines, bounds, base, len("class"),
                keyword="class", keyword_id="class",
            )
        ]
    if not IDENTIFIER_RE.match(name):
        return [
            _definition_diag(
                DiagnosticKind.INVALID_IDENTIFIER,
                ll, lines, bounds, base + m.start("name"), len(name),
                name=name,
            )
        ]
    return []


def _definition_diag(
    kind: DiagnosticKind,
    ll: LogicalLine,
    lines: Sequence[str],
    bounds: TextBounds,
    column: int,
    length: int,
    **fields: str,
) -> Diagnostic:
    return make_diagnostic(
        kind,
        bounds,
        ll.start,
        column,
        length=length,
        source=DiagnosticSource.STRUCTURE,
        context=lines[ll.start],
        **fields,
    )


def _check_bare_except(
    ll: LogicalLine,
    following: Sequence[LogicalLine],
    lines: Sequence[str],
    bounds: TextBounds,
) -> list[Diagnostic]:
    if not _BARE_EXCEPT_RE.match(ll.head):
        return []
    width = indent_width(ll.indent)
    for nxt in following:
        nxt_width = indent_width(nxt.indent)
        if nxt_width > width:
            continue  # handler body
        if nxt_width < width:
            return []
        if match_block_keyword(nxt.head) != "except":
            return []
        return [
            make_diagnostic(
                DiagnosticKind.BARE_EXCEPT_NOT_LAST,
                bounds,
                ll.start,
                len(ll.indent),
                length=len("except"),
                source=DiagnosticSource.STRUCTURE,
                context=lines[ll.start],
            )
        ]
    return []

