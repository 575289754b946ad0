"""LLM prompts for the diagnostic advisor.

The reply format is parsed mechanically by
``faultline.analysis.llm.protocol``; keep the two in step.
"""

from faultline.constants import ADVISOR_NO_ERRORS

# ── Error detection prompt ────────────────────────────────────────

ERROR_DETECTION_PROMPT = """\
You are an expert {language} code analyzer. Analyze the code below for errors \
with high precision.

Code to analyze:
```
{code}
```

Find and report these error types:

1. SYNTAX ERRORS (prevent execution):
   - Missing colons after control statements (if, for, def, class, etc.)
   - Unmatched brackets, parentheses, or quotes across multiple lines
   - Invalid indentation that breaks syntax rules
   - Incomplete statements or expressions
   - Invalid function/class definitions
   - Invalid string literals or f-strings

2. SEMANTIC ERRORS (runtime issues):
   - Variables used before definition
   - Invalid variable names
   - Incorrect function signatures
   - Invalid import statements

3. LOGICAL ERRORS (potential bugs):
   - Unreachable code
   - Infinite loops
   - Division by zero
   - Index out of bounds patterns

4. STRUCTURAL ISSUES:
   - Improper nesting
   - Missing function/class bodies
   - Invalid control flow

For EACH error found, respond with one line in this EXACT format:
ERROR|<line_number>|<column>|<error_type>|<severity>|<message>|<suggestion>|<confidence>

Line numbers start at 1. Columns start at 0.
Error types: SYNTAX, SEMANTIC, LOGICAL, STRUCTURAL
Severities: CRITICAL, ERROR, WARNING, INFO
Confidence: 0.5-1.0 (higher = more certain)
Do not use the '|' character inside messages or suggestions.

Examples:
ERROR|5|12|SYNTAX|ERROR|Missing colon after 'if' statement|Add ':' at end of line|0.99
ERROR|3|8|SYNTAX|ERROR|Unmatched opening parenthesis|Add closing ')'|0.98
ERROR|7|0|SEMANTIC|WARNING|Variable 'x' used before assignment|Define 'x' before using|0.80

If NO errors are found, respond with exactly: {no_errors}
{known_section}
Only report genuine problems, not style preferences.
"""

KNOWN_ISSUES_SECTION = """
These issues are already reported; do not repeat them:
{known}
"""


def build_error_detection_prompt(
    code: str,
    language: str = "python",
    known_issues: list[str] | None = None,
) -> str:
    """Assemble the advisor prompt for one fragment."""
    known_section = ""
    if known_issues:
        known_section = KNOWN_ISSUES_SECTION.format(
            known="\n".join(f"- {issue}" for issue in known_issues)
        )
    return ERROR_DETECTION_PROMPT.format(
        language=language.capitalize(),
        code=code,
        no_errors=ADVISOR_NO_ERRORS,
        known_section=known_section,
    )
