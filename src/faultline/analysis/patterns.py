"""Pattern library: rule catalogue, keyword tables, and text helpers.

Every DiagnosticKind has exactly one RuleMeta entry; the module refuses
to import if the catalogue and the enum drift apart. Stages never build
Diagnostic objects directly; they call ``make_diagnostic``, which fills
in catalogue defaults and clamps positions into the fragment's bounds.
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Any

from faultline.analysis.schemas import Diagnostic
from faultline.constants import (
    CONTEXT_SNIPPET_CHARS,
    Confidence,
    DiagnosticKind,
    DiagnosticSource,
    ErrorCategory,
    Severity,
)

# ── Rule catalogue ───────────────────────────────────────


@dataclass(frozen=True)
class RuleMeta:
    """Defaults attached to a diagnostic kind."""

    category: ErrorCategory
    severity: Severity
    message: str  # str.format template
    suggestion: str
    confidence: float
    rule_id: str
    quick_fixes: tuple[str, ...] = ()


_K = DiagnosticKind
_S = Severity
_C = ErrorCategory

CATALOGUE: dict[DiagnosticKind, RuleMeta] = {
    _K.UNEXPECTED_CLOSING_DELIMITER: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Unexpected closing '{char}'",
        "Remove the extra '{char}' or add its opening delimiter",
        Confidence.DELIMITER, "PY-DELIM-UNEXPECTED",
        ("Remove '{char}'", "Add opening delimiter"),
    ),
    _K.MISMATCHED_DELIMITER: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Mismatched delimiter: expected '{expected}', found '{char}'",
        "Use '{expected}' to close '{opener}' from line {open_line}",
        Confidence.DELIMITER_MISMATCH, "PY-DELIM-MISMATCH",
        ("Change to '{expected}'", "Fix delimiter pairing"),
    ),
    _K.UNCLOSED_DELIMITER: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Unclosed '{char}' opened at line {display_line}",
        "Add closing '{expected}'",
        Confidence.DELIMITER, "PY-DELIM-UNCLOSED",
        ("Add '{expected}'", "Remove '{char}'"),
    ),
    _K.UNCLOSED_STRING: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Unclosed string literal",
        "Add closing quote {quote} or use triple quotes for multiline text",
        Confidence.DELIMITER, "PY-STRING-UNCLOSED",
        ("Add closing quote", "Use triple quotes"),
    ),
    _K.UNCLOSED_TRIPLE_STRING: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Unclosed triple-quoted string starting at line {display_line}",
        "Add closing {quote}",
        Confidence.DELIMITER, "PY-STRING-TRIPLE-UNCLOSED",
        ("Add closing {quote}",),
    ),
    _K.MISSING_COLON: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Missing colon ':' after '{keyword}' statement",
        "Add ':' at the end of the {keyword} statement",
        Confidence.COLON, "PY-COLON-{keyword_id}",
        ("Add ':'", "Fix {keyword} syntax"),
    ),
    _K.MIXED_INDENTATION: RuleMeta(
        _C.STRUCTURAL, _S.ERROR,
        "Mixed tabs and spaces in indentation",
        "Use either tabs or spaces consistently",
        Confidence.INDENT_HARD, "PY-INDENT-MIXED",
        ("Convert to spaces", "Convert to tabs"),
    ),
    _K.INCONSISTENT_INDENTATION: RuleMeta(
        _C.STRUCTURAL, _S.WARNING,
        "Inconsistent use of tabs and spaces (file uses {style})",
        "Use consistent indentation throughout the file",
        Confidence.INDENT_STYLE, "PY-INDENT-STYLE",
        ("Standardize indentation", "Use {style}"),
    ),
    _K.EXPECTED_INDENTED_BLOCK: RuleMeta(
        _C.STRUCTURAL, _S.ERROR,
        "Expected an indented block after '{keyword}' on line {header_line}",
        "Indent the block following the {keyword} statement",
        Confidence.INDENT_BLOCK, "PY-INDENT-EXPECTED",
        ("Indent block", "Add 'pass'"),
    ),
    _K.IMPROPER_DEDENT: RuleMeta(
        _C.STRUCTURAL, _S.ERROR,
        "Unindent does not match any outer indentation level",
        "Align with a previous indentation level",
        Confidence.INDENT_BLOCK, "PY-INDENT-DEDENT",
        ("Fix indentation alignment", "Match outer level"),
    ),
    _K.INVALID_FUNCTION_DEFINITION: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Function definition '{name}' is missing its parameter list",
        "Function definition needs parentheses: def {name}():",
        Confidence.DEFINITION, "PY-DEF-NO-PARENS",
        ("Add '()'", "Fix function definition"),
    ),
    _K.EMPTY_DEFINITION_NAME: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "'{keyword}' statement is missing a name",
        "Name the {keyword} after the keyword",
        Confidence.DEFINITION, "PY-{keyword_id}-NO-NAME",
        ("Add name",),
    ),
    _K.INVALID_IDENTIFIER: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "'{name}' is not a valid identifier",
        "Identifiers start with a letter or underscore",
        Confidence.DEFINITION, "PY-IDENTIFIER-INVALID",
        ("Rename", "Fix identifier"),
    ),
    _K.MISSING_COMMA: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Missing comma between parameters '{left}' and '{right}'",
        "Add a comma: {left}, {right}",
        Confidence.PARAMETER, "PY-PARAM-MISSING-COMMA",
        ("Add comma", "Fix parameter syntax"),
    ),
    _K.MISSING_CONDITION: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "'{keyword}' statement missing condition",
        "Add a condition after '{keyword}'",
        Confidence.DEFINITION, "PY-{keyword_id}-NO-CONDITION",
        ("Add condition", "Fix {keyword} syntax"),
    ),
    _K.FOR_MISSING_IN: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "for loop missing 'in' clause",
        "Add an 'in' clause: for item in iterable:",
        Confidence.KEYWORD, "PY-FOR-NO-IN",
        ("Add 'in' clause", "Fix for loop syntax"),
    ),
    _K.BARE_EXCEPT_NOT_LAST: RuleMeta(
        _C.STRUCTURAL, _S.ERROR,
        "Bare 'except:' must be the last exception handler",
        "Move the bare except to the end or name an exception type",
        Confidence.KEYWORD, "PY-EXCEPT-BARE-ORDER",
        ("Move to end", "Specify exception type"),
    ),
    _K.DANGLING_OPERATOR: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Incomplete expression: operator '{operator}' at end of line",
        "Complete the expression or remove the trailing operator",
        Confidence.STATEMENT, "PY-OPERATOR-DANGLING",
        ("Complete expression", "Remove operator"),
    ),
    _K.INVALID_STRING_PREFIX: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Invalid string prefix '{prefix}'",
        "Use a valid prefix (r, u, b, f and combinations) or remove it",
        Confidence.KEYWORD, "PY-STRING-PREFIX",
        ("Remove prefix", "Use valid prefix"),
    ),
    _K.MISSING_ASSIGNMENT_TARGET: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Augmented assignment '{operator}' without a target",
        "Put a variable name before '{operator}'",
        Confidence.KEYWORD, "PY-ASSIGN-NO-TARGET",
        ("Add variable name", "Use = instead"),
    ),
    _K.INCOMPLETE_IMPORT: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Incomplete import statement",
        "Use 'import module' or 'from module import name'",
        Confidence.DEFINITION, "PY-IMPORT-INCOMPLETE",
        ("Complete import", "Check module name"),
    ),
    _K.LINE_CONTINUATION_AT_EOF: RuleMeta(
        _C.SYNTAX, _S.ERROR,
        "Line continuation at end of input",
        "Remove the trailing '\\' or add the continued line",
        Confidence.KEYWORD, "PY-CONTINUATION-EOF",
        ("Remove \\", "Add continuation"),
    ),
    _K.AWAIT_OUTSIDE_ASYNC: RuleMeta(
        _C.SEMANTIC, _S.ERROR,
        "'await' used outside an async function",
        "Use 'await' inside an 'async def' function",
        Confidence.STATEMENT, "PY-AWAIT-OUTSIDE-ASYNC",
        ("Make function async", "Remove await"),
    ),
    _K.DUPLICATE_DEFINITION: RuleMeta(
        _C.SEMANTIC, _S.WARNING,
        "{what} '{name}' is defined multiple times",
        "Rename the {what_lower} or remove the duplicate definition",
        Confidence.SEMANTIC_DUPLICATE, "PY-DUPLICATE-{what_id}",
        ("Rename {what_lower}", "Remove duplicate"),
    ),
    _K.UNUSED_IMPORT: RuleMeta(
        _C.SEMANTIC, _S.WARNING,
        "Imported '{name}' but never used",
        "Remove the import or use '{name}'",
        Confidence.SEMANTIC_UNUSED, "PY-IMPORT-UNUSED",
        ("Remove import", "Add to __all__"),
    ),
    _K.FIRST_PARAMETER_CONVENTION: RuleMeta(
        _C.SEMANTIC, _S.WARNING,
        "First parameter of {method_kind} should be '{expected}', not '{found}'",
        "Change '{found}' to '{expected}'",
        Confidence.SEMANTIC_CONVENTION, "PY-FIRST-PARAM-{expected_id}",
        ("Change to '{expected}'",),
    ),
    _K.UNDEFINED_VARIABLE: RuleMeta(
        _C.SEMANTIC, _S.ERROR,
        "Variable '{name}' appears to be undefined",
        "Define '{name}' before using it",
        Confidence.SEMANTIC_UNDEFINED, "PY-UNDEFINED-VARIABLE",
        ("Define variable", "Check spelling", "Import if needed"),
    ),
    _K.ADVISOR_SYNTAX: RuleMeta(
        _C.SYNTAX, _S.ERROR, "AI: {text}", "", Confidence.ADVISOR_DEFAULT,
        "AI-SYNTAX", ("Fix syntax", "Check Python documentation"),
    ),
    _K.ADVISOR_SEMANTIC: RuleMeta(
        _C.SEMANTIC, _S.ERROR, "AI: {text}", "", Confidence.ADVISOR_DEFAULT,
        "AI-SEMANTIC", ("Define variable", "Check spelling", "Import if needed"),
    ),
    _K.ADVISOR_LOGICAL: RuleMeta(
        _C.LOGICAL, _S.WARNING, "AI: {text}", "", Confidence.ADVISOR_DEFAULT,
        "AI-LOGICAL", ("Apply suggestion",),
    ),
    _K.ADVISOR_STRUCTURAL: RuleMeta(
        _C.STRUCTURAL, _S.ERROR, "AI: {text}", "", Confidence.ADVISOR_DEFAULT,
        "AI-STRUCTURAL", ("Fix structure", "Apply suggestion"),
    ),
}

_uncatalogued = set(DiagnosticKind) - CATALOGUE.keys()
if _uncatalogued:
    raise RuntimeError(
        f"DiagnosticKind without catalogue entry: {sorted(_uncatalogued)}"
    )

ADVISOR_KIND_BY_CATEGORY: dict[ErrorCategory, DiagnosticKind] = {
    ErrorCategory.SYNTAX: DiagnosticKind.ADVISOR_SYNTAX,
    ErrorCategory.SEMANTIC: DiagnosticKind.ADVISOR_SEMANTIC,
    ErrorCategory.LOGICAL: DiagnosticKind.ADVISOR_LOGICAL,
    ErrorCategory.STRUCTURAL: DiagnosticKind.ADVISOR_STRUCTURAL,
}

# ── Keyword tables ───────────────────────────────────────

# Statement keywords whose header must end with ':'; longest first so
# "async def" wins over "async".
BLOCK_KEYWORDS: tuple[str, ...] = (
    "async with",
    "async for",
    "async def",
    "finally",
    "except",
    "while",
    "class",
    "match",
    "with",
    "elif",
    "else",
    "case",
    "try",
    "for",
    "def",
    "if",
)

CONDITION_KEYWORDS = frozenset({"if", "elif", "while"})

# Soft keywords: only statements when followed by a subject.
SOFT_KEYWORDS = frozenset({"match", "case"})

VALID_STRING_PREFIXES = frozenset({
    "r", "u", "b", "f", "br", "rb", "fr", "rf",
})

# Placeholder names that almost always mean "forgot to define this".
UNDEFINED_WATCHLIST: tuple[str, ...] = (
    "undefined_var",
    "unknown_var",
    "mystery_val",
    "not_defined",
    "missing_var",
    "error_var",
    "undefined_variable",
    "unknown_value",
    "temp_var",
    "placeholder",
    "todo_var",
    "fixme_var",
)

IMPLICIT_CLASSMETHODS = frozenset({
    "__new__", "__init_subclass__", "__class_getitem__",
})

# ── Compiled patterns ────────────────────────────────────

IDENTIFIER_RE = re.compile(r"^[A-Za-z_]\w*$")
WORD_RE = re.compile(r"[A-Za-z_]\w*")
DEF_HEADER_RE = re.compile(
    r"^(?:async\s+)?def\b\s*(?P<name>[^\s(:]*)\s*(?P<paren>\()?"
)
CLASS_HEADER_RE = re.compile(r"^class\b\s*(?P<name>[^\s(:]*)")
# Bare '=' that is neither a comparison nor part of an augmented
# operator, walrus, or arrow.
ASSIGNMENT_RE = re.compile(r"(?<![=!<>:+\-*/%&|^@])=(?![=>])")
AUGMENTED_ASSIGN_START_RE = re.compile(
    r"^(?P<op>\*\*=|//=|>>=|<<=|[+\-*/%&|^@]=)"
)
DANGLING_OPERATOR_RE = re.compile(
    r"(?:\*\*|//|<<|>>|==|!=|<=|>=|[+\-*/%&|^~<>=]|\band|\bor|\bnot)\s*$"
)
STRING_PREFIX_RE = re.compile(
    r"(?<![\w.])(?P<prefix>[A-Za-z]{1,3})(?P<quote>\"|')"
)
DECORATOR_RE = re.compile(r"^@\s*(?P<name>[\w.]+)")

# ── Text helpers ─────────────────────────────────────────


@dataclass(frozen=True)
class TextBounds:
    """Line lengths of a fragment, used to clamp positions."""

    line_lengths: tuple[int, ...]

    @classmethod
    def of(cls, text: str) -> TextBounds:
        return cls(tuple(len(line) for line in text.split("\n")))

    @property
    def last_line(self) -> int:
        return len(self.line_lengths) - 1

    def clamp(self, line: int, column: int) -> tuple[int, int]:
        line = min(max(0, line), self.last_line)
        column = min(max(0, column), self.line_lengths[line])
        return line, column


def make_diagnostic(
    kind: DiagnosticKind,
    bounds: TextBounds,
    line: int,
    column: int,
    *,
    source: DiagnosticSource,
    length: int | None = None,
    end_line: int | None = None,
    end_column: int | None = None,
    context: str = "",
    severity: Severity | None = None,
    confidence: float | None = None,
    message: str | None = None,
    suggestion: str | None = None,
    quick_fixes: Sequence[str] | None = None,
    **fields: Any,
) -> Diagnostic:
    """Build a Diagnostic from catalogue defaults, clamped to bounds.

    ``fields`` fill the catalogue's message/suggestion/quick-fix
    templates. Explicit ``message``/``suggestion``/``quick_fixes``
    override the templates entirely.
    """
    meta = CATALOGUE[kind]
    line, column = bounds.clamp(line, column)
    if end_line is None:
        end_line = line
        if end_column is None:
            end_column = column + (1 if length is None else length)
    end_line, end_col_clamped = bounds.clamp(
        end_line, column + 1 if end_column is None else end_column
    )
    if end_line == line and end_col_clamped == column and length != 0:
        # A zero-width span at end of line still marks one character.
        end_col_clamped = column + 1
    return Diagnostic(
        kind=kind,
        category=meta.category,
        severity=severity or meta.severity,
        message=message if message is not None else meta.message.format(**fields),
        line=line,
        column=column,
        end_line=end_line,
        end_column=end_col_clamped,
        confidence=meta.confidence if confidence is None else confidence,
        rule_id=meta.rule_id.format(**fields).upper(),
        suggestion=(
            suggestion
            if suggestion is not None
            else meta.suggestion.format(**fields)
        ),
        quick_fixes=tuple(
            quick_fixes
            if quick_fixes is not None
            else (fix.format(**fields) for fix in meta.quick_fixes)
        ),
        context=context.strip()[:CONTEXT_SNIPPET_CHARS],
        source=source,
    )


def leading_whitespace(line: str) -> str:
    """Return the run of spaces/tabs at the start of ``line``."""
    stripped = line.lstrip(" \t")
    return line[: len(line) - len(stripped)]


@dataclass(frozen=True)
class MaskedText:
    """Source with string bodies and comments blanked out.

    Positions are preserved character for character: quotes stay,
    string contents and comments become spaces, newlines are kept.
    ``string_continuations`` holds indices of physical lines that
    begin inside a multi-line string.
    """

    lines: tuple[str, ...]
    string_continuations: frozenset[int]


def mask_code(text: str) -> MaskedText:
    """Blank out string contents and comments, keeping layout intact."""
    out = list(text)
    n = len(text)
    i = 0
    line = 0
    in_string = False
    triple = False
    quote = ""
    continuations: set[int] = set()

    while i < n:
        ch = text[i]
        if ch == "\n":
            line += 1
            if in_string and not triple:
                in_string = False  # unterminated; the scanner reports it
            elif in_string:
                continuations.add(line)
            i += 1
            continue
        if in_string:
            if triple and text.startswith(quote * 3, i):
                in_string = False
                i += 3
                continue
            if ch == "\\":
                out[i] = " "
                if i + 1 < n and text[i + 1] != "\n":
                    out[i + 1] = " "
                    i += 2
                else:
                    i += 1
                continue
            if not triple and ch == quote:
                in_string = False
                i += 1
                continue
            out[i] = " "
            i += 1
            continue
        if ch == "#":
            while i < n and text[i] != "\n":
                out[i] = " "
                i += 1
            continue
        if ch in ("'", '"'):
            in_string = True
            quote = ch
            triple = text.startswith(ch * 3, i)
            i += 3 if triple else 1
            continue
        i += 1

    return MaskedText(
        lines=tuple("".join(out).split("\n")),
        string_continuations=frozenset(continuations),
    )


@dataclass(frozen=True)
class LogicalLine:
    """Physical lines joined while brackets, strings, or '\\' continue."""

    start: int
    end: int
    indent: str
    masked: str  # masked physical lines joined with "\n"
    balanced: bool

    @property
    def head(self) -> str:
        """Masked text of the logical line with outer whitespace removed."""
        return self.masked.strip()

    @property
    def flat(self) -> str:
        """Masked text collapsed onto one line."""
        return " ".join(part.strip() for part in self.masked.split("\n")).strip()


_OPENERS = "([{"
_CLOSERS = ")]}"


def bracket_delta(masked_line: str) -> int:
    """Net bracket depth change across one masked line."""
    return sum(
        (ch in _OPENERS) - (ch in _CLOSERS) for ch in masked_line
    )


def iter_logical_lines(masked: MaskedText) -> Iterator[LogicalLine]:
    """Group masked physical lines into logical lines.

    Blank lines between statements are skipped. A logical line whose
    brackets never close runs to the end of input with
    ``balanced=False``.
    """
    lines = masked.lines
    start: int | None = None
    depth = 0
    for idx, mline in enumerate(lines):
        if start is None:
            if not mline.strip():
                continue
            start = idx
            depth = 0
        depth += bracket_delta(mline)
        continued = mline.rstrip().endswith("\\")
        next_in_string = (idx + 1) in masked.string_continuations
        if depth <= 0 and not continued and not next_in_string:
            yield _logical(lines, start, idx, balanced=True)
            start = None
    if start is not None:
        yield _logical(lines, start, len(lines) - 1, balanced=depth <= 0)


def _logical(
    lines: Sequence[str], start: int, end: int, *, balanced: bool
) -> LogicalLine:
    # Trailing blank lines inside an unbalanced run are not part of it.
    while end > start and not lines[end].strip():
        end -= 1
    return LogicalLine(
        start=start,
        end=end,
        indent=leading_whitespace(lines[start]),
        masked="\n".join(lines[start : end + 1]),
        balanced=balanced,
    )


def match_block_keyword(head: str) -> str | None:
    """Return the block keyword a statement starts with, if any."""
    for keyword in BLOCK_KEYWORDS:
        if head == keyword:
            return keyword
        if not head.startswith(keyword):
            continue
        rest = head[len(keyword) :]
        if not rest or rest[0] in " \t:":
            if keyword in SOFT_KEYWORDS and not _is_soft_statement(rest):
                return None
            return keyword
        if rest[0] == "(":
            # match(...) and case(...) are ordinary calls.
            return None if keyword in SOFT_KEYWORDS else keyword
    return None


def _is_soft_statement(rest: str) -> bool:
    """``match x`` / ``case 1`` are statements; ``match = 1`` is not."""
    body = rest.strip()
    if not body or body.startswith(("=", ".", ",", ")")):
        return False
    return ASSIGNMENT_RE.search(body) is None or body.endswith(":")


def strip_brackets(text: str) -> str:
    """Remove bracketed sub-expressions (keyword args, calls, literals)."""
    out: list[str] = []
    depth = 0
    for ch in text:
        if ch in _OPENERS:
            depth += 1
        elif ch in _CLOSERS:
            depth = max(0, depth - 1)
        elif depth == 0:
            out.append(ch)
    return "".join(out)


def has_assignment(masked_text: str) -> bool:
    """True if a bare '=' appears outside brackets."""
    return ASSIGNMENT_RE.search(strip_brackets(masked_text)) is not None


def word_count(text: str, word: str) -> int:
    """Whole-word occurrences of ``word`` in ``text``."""
    return len(re.findall(rf"\b{re.escape(word)}\b", text))
