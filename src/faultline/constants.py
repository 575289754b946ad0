"""Shared constants: single source of truth for cross-module values.

All magic strings and numbers that appear in 2+ files belong here.
StrEnum members are str-compatible, so downstream code (JSON output,
log lines, cache keys) works unchanged.
"""

from __future__ import annotations

from enum import StrEnum

# ── String Enums ─────────────────────────────────────────


class Severity(StrEnum):
    """Diagnostic severity, most severe first."""

    CRITICAL = "critical"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    HINT = "hint"


class ErrorCategory(StrEnum):
    """Coarse diagnostic taxonomy shared with the LLM advisor prompt."""

    SYNTAX = "syntax"
    SEMANTIC = "semantic"
    LOGICAL = "logical"
    STRUCTURAL = "structural"


class DiagnosticKind(StrEnum):
    """Closed taxonomy of everything the pipeline can report.

    Per-kind metadata (category, severity, message, confidence, quick
    fixes) lives in ``faultline.analysis.patterns.CATALOGUE``.
    """

    # Delimiters and literals
    UNEXPECTED_CLOSING_DELIMITER = "unexpected_closing_delimiter"
    MISMATCHED_DELIMITER = "mismatched_delimiter"
    UNCLOSED_DELIMITER = "unclosed_delimiter"
    UNCLOSED_STRING = "unclosed_string"
    UNCLOSED_TRIPLE_STRING = "unclosed_triple_string"
    # Headers and blocks
    MISSING_COLON = "missing_colon"
    MIXED_INDENTATION = "mixed_indentation"
    INCONSISTENT_INDENTATION = "inconsistent_indentation"
    EXPECTED_INDENTED_BLOCK = "expected_indented_block"
    IMPROPER_DEDENT = "improper_dedent"
    INVALID_FUNCTION_DEFINITION = "invalid_function_definition"
    EMPTY_DEFINITION_NAME = "empty_definition_name"
    INVALID_IDENTIFIER = "invalid_identifier"
    MISSING_COMMA = "missing_comma"
    MISSING_CONDITION = "missing_condition"
    FOR_MISSING_IN = "for_missing_in"
    BARE_EXCEPT_NOT_LAST = "bare_except_not_last"
    # Statements
    DANGLING_OPERATOR = "dangling_operator"
    INVALID_STRING_PREFIX = "invalid_string_prefix"
    MISSING_ASSIGNMENT_TARGET = "missing_assignment_target"
    INCOMPLETE_IMPORT = "incomplete_import"
    LINE_CONTINUATION_AT_EOF = "line_continuation_at_eof"
    AWAIT_OUTSIDE_ASYNC = "await_outside_async"
    # Semantics
    DUPLICATE_DEFINITION = "duplicate_definition"
    UNUSED_IMPORT = "unused_import"
    FIRST_PARAMETER_CONVENTION = "first_parameter_convention"
    UNDEFINED_VARIABLE = "undefined_variable"
    # LLM advisor
    ADVISOR_SYNTAX = "advisor_syntax"
    ADVISOR_SEMANTIC = "advisor_semantic"
    ADVISOR_LOGICAL = "advisor_logical"
    ADVISOR_STRUCTURAL = "advisor_structural"


class DiagnosticSource(StrEnum):
    """Pipeline stage that produced a diagnostic."""

    DELIMITER = "delimiter"
    STRUCTURE = "structure"
    SEMANTIC = "semantic"
    ADVISOR = "advisor"


HEURISTIC_SOURCES = frozenset({
    DiagnosticSource.DELIMITER,
    DiagnosticSource.STRUCTURE,
    DiagnosticSource.SEMANTIC,
})


class StageOutcome(StrEnum):
    """Outcome of an individual pipeline stage execution."""

    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class IndentStyle(StrEnum):
    """Classification of a line's leading whitespace."""

    SPACES = "spaces"
    TABS = "tabs"
    MIXED = "mixed"
    NONE = "none"


class OutputFormat(StrEnum):
    """CLI output formats."""

    TEXT = "text"
    JSON = "json"


# ── Confidence Levels ────────────────────────────────────


class Confidence:
    """Named confidence scores."""

    COLON = 0.97  # Missing colon on a balanced header
    DELIMITER = 0.95  # Scanner-confirmed imbalance
    DELIMITER_MISMATCH = 0.90  # Closer paired with the wrong opener
    INDENT_HARD = 0.95  # Mixed tabs/spaces in one prefix
    INDENT_BLOCK = 0.90  # Missing or misaligned block
    INDENT_STYLE = 0.80  # File-level style drift
    DEFINITION = 0.95  # Malformed def/class header
    PARAMETER = 0.85  # Missing comma between parameters
    KEYWORD = 0.90  # Keyword-specific shape checks
    STATEMENT = 0.85  # Line-level statement checks
    SEMANTIC_DUPLICATE = 0.85
    SEMANTIC_CONVENTION = 0.80
    SEMANTIC_UNDEFINED = 0.80
    SEMANTIC_UNUSED = 0.70
    SEMANTIC_CEILING = 0.90  # Upper bound for the semantic stage
    ADVISOR_DEFAULT = 0.80  # Reply omitted a usable score


# ── Analysis Defaults ────────────────────────────────────

DEFAULT_MIN_FRAGMENT_LENGTH = 50
DEFAULT_MAX_FRAGMENT_LENGTH = 50_000
DEFAULT_CONFIDENCE_FLOOR = 0.70
DEFAULT_ADVISOR_THRESHOLD = 0.98
DEFAULT_MAX_DIAGNOSTICS = 5
DEFAULT_ADVISOR_MAX_EXISTING = 5
DEFAULT_CACHE_TTL_SECONDS = 600
DEFAULT_CACHE_MAX_ENTRIES = 10_000
CACHE_EVICTION_TARGET = 0.8
DEFAULT_LLM_TIMEOUT_SECONDS = 15.0
DEFAULT_LLM_MAX_CONCURRENCY = 3
DEFAULT_STAGE_TIMEOUT_SECONDS = 5.0

MAX_QUICK_FIXES = 3
CONTEXT_SNIPPET_CHARS = 120

# ── Advisor Protocol ─────────────────────────────────────

ADVISOR_LINE_PREFIX = "ERROR|"
ADVISOR_FIELD_COUNT = 8
ADVISOR_NO_ERRORS = "NO_ERRORS_DETECTED"

# ── Circuit Breaker Configuration ────────────────────────

CB_LLM_FAILURE_THRESHOLD = 5
CB_LLM_RECOVERY_TIMEOUT = 30

# ── Retry Strategy ───────────────────────────────────────

RETRY_MAX_ATTEMPTS = 3
RETRY_INITIAL_WAIT = 2
RETRY_MAX_WAIT = 30

# ── Misc ─────────────────────────────────────────────────

ERROR_TRUNCATION_CHARS = 200
SLOW_ANALYSIS_MS = 2000
