"""Bracket and string balance scanning."""

from __future__ import annotations

from faultline.analysis.patterns import TextBounds, make_diagnostic
from faultline.analysis.schemas import DelimiterFrame, Diagnostic
from faultline.constants import DiagnosticKind, DiagnosticSource

_CLOSER_FOR = {"(": ")", "[": "]", "{": "}"}
_CLOSERS = frozenset(_CLOSER_FOR.values())
_QUOTES = ("'", '"')


class DelimiterScanner:
    """Single left-to-right pass over one fragment.

    State is the open-bracket stack plus, while inside a literal, the
    active quote, whether it is triple-quoted, and where it started.
    Every anomaly becomes a diagnostic and the scan recovers:

    * a stray closer leaves the stack untouched;
    * a mismatched closer pops the top frame anyway;
    * a newline inside a single-quoted string ends the string.
    """

    def __init__(self, text: str) -> None:
        self._text = text
        self._bounds = TextBounds.of(text)
        self._lines = text.split("\n")
        self._stack: list[DelimiterFrame] = []
        self._found: list[Diagnostic] = []
        self._quote = ""
        self._triple = False
        self._string_start: tuple[int, int] | None = None

    def scan(self) -> list[Diagnostic]:
        text = self._text
        n = len(text)
        i = 0
        line = 0
        col = 0
        while i < n:
            ch = text[i]
            if self._string_start is not None:
                step = self._in_string(i)
            elif ch == "#":
                step = self._skip_comment(i)
            elif ch in _QUOTES:
                step = self._open_string(i, line, col)
            elif ch in _CLOSER_FOR:
                self._stack.append(
                    DelimiterFrame(ch, line, col, _CLOSER_FOR[ch])
                )
                step = 1
            elif ch in _CLOSERS:
                self._close(ch, line, col)
                step = 1
            else:
                step = 1

            # Advance position counters over the consumed characters.
            for consumed in text[i : i + step]:
                if consumed == "\n":
                    line += 1
                    col = 0
                else:
                    col += 1
            i += step

        self._finish()
        return self._found

    # ── transitions ─────────────────────────────────────

    def _open_string(self, i: int, line: int, col: int) -> int:
        ch = self._text[i]
        self._quote = ch
        self._triple = self._text.startswith(ch * 3, i)
        self._string_start = (line, col)
        return 3 if self._triple else 1

    def _in_string(self, i: int) -> int:
        ch = self._text[i]
        if ch == "\\":
            # Escape consumes the next character, newline included.
            return 2 if i + 1 < len(self._text) else 1
        if self._triple:
            if self._text.startswith(self._quote * 3, i):
                self._string_start = None
                return 3
            return 1
        if ch == self._quote:
            self._string_start = None
            return 1
        if ch == "\n":
            self._report_unclosed_string(self._string_start)
            self._string_start = None
            return 1
        return 1

    def _skip_comment(self, i: int) -> int:
        end = self._text.find("\n", i)
        return (len(self._text) if end == -1 else end) - i

    def _close(self, ch: str, line: int, col: int) -> None:
        if not self._stack:
            self._emit(
                DiagnosticKind.UNEXPECTED_CLOSING_DELIMITER,
                line,
                col,
                char=ch,
            )
            return
        top = self._stack.pop()
        if top.expected != ch:
            self._emit(
                DiagnosticKind.MISMATCHED_DELIMITER,
                line,
                col,
                char=ch,
                expected=top.expected,
                opener=top.char,
                open_line=top.line + 1,
            )

    def _finish(self) -> None:
        if self._string_start is not None:
            if self._triple:
                line, col = self._string_start
                self._emit(
                    DiagnosticKind.UNCLOSED_TRIPLE_STRING,
                    line,
                    col,
                    length=3,
                    quote=self._quote * 3,
                    display_line=line + 1,
                )
            else:
                self._report_unclosed_string(self._string_start)
            self._string_start = None
        for frame in self._stack:
            self._emit(
                DiagnosticKind.UNCLOSED_DELIMITER,
                frame.line,
                frame.column,
                char=frame.char,
                expected=frame.expected,
                display_line=frame.line + 1,
            )
        self._stack.clear()

    def _report_unclosed_string(self, start: tuple[int, int]) -> None:
        line, col = start
        self._emit(
            DiagnosticKind.UNCLOSED_STRING,
            line,
            col,
            length=len(self._lines[line]) - col,
            quote=self._quote,
        )

    def _emit(
        self,
        kind: DiagnosticKind,
        line: int,
        col: int,
        *,
        length: int = 1,
        **fields: object,
    ) -> None:
        self._found.append(
            make_diagnostic(
                kind,
                self._bounds,
                line,
                col,
                length=length,
                source=DiagnosticSource.DELIMITER,
                context=self._lines[line],
                **fields,
            )
        )


def scan_delimiters(text: str) -> list[Diagnostic]:
    """Report unbalanced brackets and unterminated string literals."""
    return DelimiterScanner(text).scan()
