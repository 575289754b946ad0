"""Tests for the pattern library: catalogue, masking, logical lines."""

from __future__ import annotations

import pytest

from faultline.analysis.patterns import (
    CATALOGUE,
    TextBounds,
    has_assignment,
    iter_logical_lines,
    make_diagnostic,
    mask_code,
    match_block_keyword,
    strip_brackets,
    word_count,
)
from faultline.constants import (
    CONTEXT_SNIPPET_CHARS,
    DiagnosticKind,
    DiagnosticSource,
    Severity,
)


class TestCatalogue:
    def test_every_kind_has_an_entry(self) -> None:
        assert set(CATALOGUE) == set(DiagnosticKind)

    def test_confidences_are_probabilities(self) -> None:
        for kind, meta in CATALOGUE.items():
            assert 0.0 <= meta.confidence <= 1.0, kind

    def test_rule_ids_are_upper_case_templates(self) -> None:
        for meta in CATALOGUE.values():
            assert meta.rule_id == meta.rule_id.upper() or "{" in meta.rule_id


class TestMakeDiagnostic:
    def test_fills_templates(self) -> None:
        d = make_diagnostic(
            DiagnosticKind.MISSING_COLON,
            TextBounds.of("if x"),
            0,
            4,
            source=DiagnosticSource.STRUCTURE,
            keyword="if",
            keyword_id="if",
        )
        assert d.message == "Missing colon ':' after 'if' statement"
        assert d.rule_id == "PY-COLON-IF"
        assert d.quick_fixes == ("Add ':'", "Fix if syntax")
        assert d.severity is Severity.ERROR

    def test_clamps_position_into_bounds(self) -> None:
        """Out-of-range (line, col) → last line, end of line."""
        d = make_diagnostic(
            DiagnosticKind.UNCLOSED_STRING,
            TextBounds.of("ab\ncd"),
            5,
            10,
            source=DiagnosticSource.DELIMITER,
            quote='"',
        )
        assert d.position == (1, 2)
        assert d.length == 1

    def test_negative_position_clamps_to_origin(self) -> None:
        d = make_diagnostic(
            DiagnosticKind.UNCLOSED_STRING,
            TextBounds.of("abc"),
            -3,
            -1,
            source=DiagnosticSource.DELIMITER,
            quote="'",
        )
        assert d.position == (0, 0)

    def test_explicit_overrides_win(self) -> None:
        d = make_diagnostic(
            DiagnosticKind.ADVISOR_LOGICAL,
            TextBounds.of("x = 1 / 0"),
            0,
            4,
            source=DiagnosticSource.ADVISOR,
            severity=Severity.CRITICAL,
            confidence=0.99,
            message="AI: division by zero",
            suggestion="Guard the divisor",
            quick_fixes=["Guard the divisor"],
        )
        assert d.severity is Severity.CRITICAL
        assert d.confidence == 0.99
        assert d.message == "AI: division by zero"
        assert d.quick_fixes == ("Guard the divisor",)
        assert d.rule_id == "AI-LOGICAL"

    def test_context_is_truncated(self) -> None:
        d = make_diagnostic(
            DiagnosticKind.UNCLOSED_STRING,
            TextBounds.of("x"),
            0,
            0,
            source=DiagnosticSource.DELIMITER,
            context="y" * 500,
            quote='"',
        )
        assert len(d.context) == CONTEXT_SNIPPET_CHARS


class TestMaskCode:
    def test_blanks_string_body_and_comment(self) -> None:
        text = 'x = "a#b"  # c'
        masked = mask_code(text)
        assert masked.lines == ('x = "   "     ',)
        assert len(masked.lines[0]) == len(text)

    def test_keeps_newlines_and_marks_string_continuations(self) -> None:
        text = 's = """\nbody: (\n"""\nx = 1'
        masked = mask_code(text)
        assert len(masked.lines) == 4
        assert masked.string_continuations == frozenset({1, 2})
        assert "(" not in masked.lines[1]
        assert masked.lines[3] == "x = 1"

    def test_escaped_quote_stays_inside_string(self) -> None:
        masked = mask_code(r'"a\"b" + c')
        assert masked.lines[0].endswith("+ c")


class TestLogicalLines:
    def test_joins_open_brackets(self) -> None:
        logical = list(iter_logical_lines(mask_code("foo(1,\n    2)\nbar()")))
        assert [(ll.start, ll.end) for ll in logical] == [(0, 1), (2, 2)]
        assert all(ll.balanced for ll in logical)
        assert logical[0].flat == "foo(1, 2)"

    def test_joins_backslash_continuation(self) -> None:
        logical = list(iter_logical_lines(mask_code("x = 1 + \\\n    2\ny = 3")))
        assert [(ll.start, ll.end) for ll in logical] == [(0, 1), (2, 2)]

    def test_unclosed_bracket_runs_to_end(self) -> None:
        logical = list(iter_logical_lines(mask_code("foo(\nbar\n\n")))
        assert len(logical) == 1
        assert logical[0].balanced is False
        assert logical[0].end == 1

    def test_blank_lines_are_skipped(self) -> None:
        logical = list(iter_logical_lines(mask_code("\n\nx = 1\n\n")))
        assert [(ll.start, ll.end) for ll in logical] == [(2, 2)]


class TestBlockKeywords:
    @pytest.mark.parametrize(
        ("head", "expected"),
        [
            ("if x > 0:", "if"),
            ("else:", "else"),
            ("async def f():", "async def"),
            ("async for x in y:", "async for"),
            ("while(True):", "while"),
            ("match command:", "match"),
            ("case [x, y]:", "case"),
            ("match = 3", None),
            ("match(x)", None),
            ("iffy = 1", None),
            ("define = 2", None),
            ("print(x)", None),
        ],
    )
    def test_match_block_keyword(self, head: str, expected: str | None) -> None:
        assert match_block_keyword(head) == expected


class TestHelpers:
    def test_has_assignment(self) -> None:
        assert has_assignment("x = 1")
        assert has_assignment("x: int = 1")
        assert not has_assignment("x == 1")
        assert not has_assignment("f(a=1)")
        assert not has_assignment("x >= 1")
        assert not has_assignment("(y := 2)")

    def test_strip_brackets(self) -> None:
        assert strip_brackets("f(a, [b]) + c") == "f + c"

    def test_word_count_matches_whole_words(self) -> None:
        assert word_count("foo foobar foo.x", "foo") == 2
