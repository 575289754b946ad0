"""Indentation style and block-structure checks."""

from __future__ import annotations

from collections.abc import Sequence

from faultline.analysis.patterns import (
    LogicalLine,
    MaskedText,
    TextBounds,
    leading_whitespace,
    make_diagnostic,
    match_block_keyword,
)
from faultline.analysis.schemas import Diagnostic
from faultline.constants import DiagnosticKind, DiagnosticSource, IndentStyle

_TAB_SIZE = 8


def classify_indent(prefix: str) -> IndentStyle:
    """Classify a run of leading whitespace."""
    if not prefix:
        return IndentStyle.NONE
    has_tab = "\t" in prefix
    has_space = " " in prefix
    if has_tab and has_space:
        return IndentStyle.MIXED
    return IndentStyle.TABS if has_tab else IndentStyle.SPACES


def indent_width(prefix: str) -> int:
    return len(prefix.expandtabs(_TAB_SIZE))


def check_indent_style(
    lines: Sequence[str],
    masked: MaskedText,
    bounds: TextBounds,
) -> list[Diagnostic]:
    """Flag mixed prefixes and lines that drift from the file's style.

    The first purely-tabbed or purely-spaced indented line decides the
    file style. Blank lines, comment-only lines and lines inside
    multi-line strings are ignored.
    """
    found: list[Diagnostic] = []
    file_style: IndentStyle | None = None

    for idx, line in enumerate(lines):
        if idx in masked.string_continuations:
            continue
        if not masked.lines[idx].strip():
            continue
        prefix = leading_whitespace(line)
        style = classify_indent(prefix)
        if style is IndentStyle.NONE:
            continue
        if style is IndentStyle.MIXED:
            found.append(
                make_diagnostic(
                    DiagnosticKind.MIXED_INDENTATION,
                    bounds,
                    idx,
                    0,
                    length=len(prefix),
                    source=DiagnosticSource.STRUCTURE,
                    context=line,
                )
            )
            continue
        if file_style is None:
            file_style = style
        elif style is not file_style:
            found.append(
                make_diagnostic(
                    DiagnosticKind.INCONSISTENT_INDENTATION,
                    bounds,
                    idx,
                    0,
                    length=len(prefix),
                    source=DiagnosticSource.STRUCTURE,
                    context=line,
                    style=file_style.value,
                )
            )
    return found


def check_blocks(
    lines: Sequence[str],
    logical: Sequence[LogicalLine],
    bounds: TextBounds,
) -> list[Diagnostic]:
    """Check block openings and dedents against an indentation stack.

    The stack starts at column 0. A dedent pops every deeper level; if
    the new width is not exactly a level that was already open, the
    line is flagged and its width becomes the new level. A header that
    is the last statement of the fragment is not flagged since its
    body may simply lie outside the fragment.
    """
    found: list[Diagnostic] = []
    stack = [0]
    header: LogicalLine | None = None
    header_keyword = ""

    for ll in logical:
        width = indent_width(ll.indent)

        if header is not None:
            header_width = indent_width(header.indent)
            if width > header_width:
                stack.append(width)
                header = None
                header_keyword = _header_keyword(ll)
                if header_keyword:
                    header = ll
                continue
            found.append(
                make_diagnostic(
                    DiagnosticKind.EXPECTED_INDENTED_BLOCK,
                    bounds,
                    ll.start,
                    0,
                    length=max(1, len(ll.indent)),
                    source=DiagnosticSource.STRUCTURE,
                    context=lines[ll.start],
                    keyword=header_keyword,
                    header_line=header.start + 1,
                )
            )
            header = None

        if width > stack[-1]:
            # Unexpected indent; adopt the level so later lines line up.
            stack.append(width)
        elif width < stack[-1]:
            while stack and stack[-1] > width:
                stack.pop()
            if not stack or stack[-1] != width:
                found.append(
                    make_diagnostic(
                        DiagnosticKind.IMPROPER_DEDENT,
                        bounds,
                        ll.start,
                        0,
                        length=max(1, len(ll.indent)),
                        source=DiagnosticSource.STRUCTURE,
                        context=lines[ll.start],
                    )
                )
                stack.append(width)

        header_keyword = _header_keyword(ll)
        if header_keyword:
            header = ll

    return found


def _header_keyword(ll: LogicalLine) -> str:
    """Keyword of a colon-terminated block header, or ''."""
    head = ll.flat
    if not ll.balanced or not head.endswith(":"):
        return ""
    return match_block_keyword(head) or ""
