"""Cheap semantic heuristics over a fragment and its containing file.

None of these checks resolve names properly; they look for shapes
that are almost always mistakes. Confidence in this stage never
exceeds ``Confidence.SEMANTIC_CEILING``.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass

from faultline.analysis.patterns import (
    CLASS_HEADER_RE,
    DECORATOR_RE,
    DEF_HEADER_RE,
    IDENTIFIER_RE,
    IMPLICIT_CLASSMETHODS,
    UNDEFINED_WATCHLIST,
    LogicalLine,
    TextBounds,
    iter_logical_lines,
    make_diagnostic,
    mask_code,
    match_block_keyword,
    word_count,
)
from faultline.analysis.schemas import Diagnostic
from faultline.analysis.static.indentation import indent_width
from faultline.constants import (
    Confidence,
    DiagnosticKind,
    DiagnosticSource,
)

logger = logging.getLogger(__name__)

_ACCESSOR_SUFFIXES = (".setter", ".getter", ".deleter")
_OVERLOAD_DECORATORS = frozenset({"overload", "typing.overload"})
_CLS_NAMES = frozenset({"cls", "mcs", "metacls"})
_PARAM_TOKEN_RE = re.compile(r"\s*(?P<tok>\*{0,2}\w+|\)|/)")


@dataclass
class _Scope:
    header_width: int
    is_class: bool
    header_line: int = -1
    body_width: int | None = None


@dataclass(frozen=True)
class _Definition:
    ll: LogicalLine
    keyword: str
    name: str
    name_col: int
    decorators: tuple[str, ...]
    in_class: bool
    scope_line: int  # header line of the enclosing class, -1 at module level


def analyze_semantics(
    text: str,
    whole_file_text: str | None = None,
    *,
    offset: int = 0,
) -> list[Diagnostic]:
    """Run the semantic heuristics over ``text``.

    ``whole_file_text`` is the file the fragment was cut from and
    ``offset`` the character offset where the fragment starts in it.
    Import usage is counted across the whole file, and bindings made
    before the fragment count as definitions. Positions are always
    reported relative to the fragment.
    """
    if not text.strip():
        return []

    file_text = whole_file_text if whole_file_text is not None else text
    lines = text.split("\n")
    masked = mask_code(text)
    logical = list(iter_logical_lines(masked))
    bounds = TextBounds.of(text)

    definitions = list(_collect_definitions(logical))

    found: list[Diagnostic] = []
    found.extend(_check_duplicates(definitions, lines, bounds))
    found.extend(_check_first_parameter(definitions, masked.lines, lines, bounds))
    found.extend(
        _check_unused_imports(logical, masked.lines, lines, file_text, bounds)
    )

    prefix = ""
    if whole_file_text is not None and offset > 0:
        prefix = "\n".join(mask_code(whole_file_text).lines)[:offset]
    found.extend(_check_undefined(masked.lines, lines, prefix, bounds))

    logger.debug(
        "event=semantics_checked definitions=%d found=%d",
        len(definitions),
        len(found),
    )
    return [_capped(d) for d in found]


def _capped(diagnostic: Diagnostic) -> Diagnostic:
    if diagnostic.confidence <= Confidence.SEMANTIC_CEILING:
        return diagnostic
    return diagnostic.model_copy(
        update={"confidence": Confidence.SEMANTIC_CEILING}
    )


# ── Definitions ──────────────────────────────────────────


def _collect_definitions(logical: Sequence[LogicalLine]) -> Iterable[_Definition]:
    """Yield def/class headers that sit directly in a module or class body.

    Definitions nested in function bodies or under compound statements
    (``if``/``try``) are skipped; conditional redefinitions there are
    normal.
    """
    stack = [_Scope(header_width=-1, is_class=False)]
    decorators: list[str] = []

    for ll in logical:
        width = indent_width(ll.indent)
        while len(stack) > 1 and width <= stack[-1].header_width:
            stack.pop()
        scope = stack[-1]
        if scope.body_width is None:
            scope.body_width = width

        head = ll.head
        deco = DECORATOR_RE.match(head)
        if deco is not None:
            decorators.append(deco.group("name"))
            continue

        keyword = match_block_keyword(ll.flat)
        if keyword not in ("def", "async def", "class"):
            decorators = []
            continue

        header_re = CLASS_HEADER_RE if keyword == "class" else DEF_HEADER_RE
        m = header_re.match(ll.flat)
        name = m.group("name") if m is not None else ""
        direct = width == scope.body_width and (
            scope.is_class or len(stack) == 1
        )
        if m is not None and direct and IDENTIFIER_RE.match(name):
            yield _Definition(
                ll=ll,
                keyword=keyword,
                name=name,
                name_col=len(ll.indent) + m.start("name"),
                decorators=tuple(decorators),
                in_class=scope.is_class,
                scope_line=scope.header_line,
            )
        decorators = []
        stack.append(
            _Scope(
                header_width=width,
                is_class=keyword == "class",
                header_line=ll.start,
            )
        )


def _check_duplicates(
    definitions: Sequence[_Definition],
    lines: Sequence[str],
    bounds: TextBounds,
) -> list[Diagnostic]:
    found: list[Diagnostic] = []
    seen: set[tuple[int, str]] = set()

    for d in definitions:
        if any(
            deco in _OVERLOAD_DECORATORS or deco.endswith(_ACCESSOR_SUFFIXES)
            for deco in d.decorators
        ):
            continue

        key = (d.scope_line, d.name)
        if key not in seen:
            seen.add(key)
            continue
        what = "Class" if d.keyword == "class" else "Function"
        found.append(
            make_diagnostic(
                DiagnosticKind.DUPLICATE_DEFINITION,
                bounds,
                d.ll.start,
                d.name_col,
                length=len(d.name),
                source=DiagnosticSource.SEMANTIC,
                context=lines[d.ll.start],
                what=what,
                what_lower=what.lower(),
                what_id="FUNCTION" if what == "Function" else "CLASS",
                name=d.name,
            )
        )
    return found


def _check_first_parameter(
    definitions: Sequence[_Definition],
    masked_lines: Sequence[str],
    lines: Sequence[str],
    bounds: TextBounds,
) -> list[Diagnostic]:
    found: list[Diagnostic] = []
    for d in definitions:
        if not d.in_class or d.keyword == "class":
            continue
        short = {deco.rsplit(".", 1)[-1] for deco in d.decorators}
        if "staticmethod" in short:
            continue
        is_cls = "classmethod" in short or d.name in IMPLICIT_CLASSMETHODS

        located = _first_parameter(d.ll, masked_lines)
        if located is None:
            continue
        param, line, col = located
        if is_cls and param in _CLS_NAMES:
            continue
        expected = "cls" if is_cls else "self"
        if param == expected:
            continue
        found.append(
            make_diagnostic(
                DiagnosticKind.FIRST_PARAMETER_CONVENTION,
                bounds,
                line,
                col,
                length=len(param),
                source=DiagnosticSource.SEMANTIC,
                context=lines[line],
                method_kind="class method" if is_cls else "instance method",
                expected=expected,
                expected_id=expected.upper(),
                found=param,
            )
        )
    return found


def _first_parameter(
    ll: LogicalLine, masked_lines: Sequence[str]
) -> tuple[str, int, int] | None:
    """Return (name, line, column) of a def's first plain parameter."""
    opened = False
    for idx in range(ll.start, ll.end + 1):
        mline = masked_lines[idx]
        col = 0
        if not opened:
            paren = mline.find("(")
            if paren == -1:
                continue
            opened = True
            col = paren + 1
        m = _PARAM_TOKEN_RE.match(mline, col)
        if m is None:
            if mline[col:].strip():
                return None
            continue  # parameter list continues on the next line
        tok = m.group("tok")
        if tok in (")", "/") or tok.startswith("*"):
            return None
        return tok, idx, m.start("tok")
    return None


# ── Imports ──────────────────────────────────────────────

_IMPORT_RE = re.compile(r"^import\s+(?P<names>.+)$")
_FROM_RE = re.compile(r"^from\s+(?P<module>[\w.]+)\s+import\s+(?P<names>.+)$")


def _bound_import_names(flat: str) -> list[str]:
    """Names an import statement binds in the current namespace."""
    m = _FROM_RE.match(flat)
    if m is not None:
        if m.group("module") == "__future__":
            return []
        names = m.group("names").strip().strip("()").strip()
        if names == "*":
            return []
        bound: list[str] = []
        for part in names.split(","):
            words = part.split()
            if not words:
                continue
            bound.append(words[-1] if "as" in words else words[0])
        return bound

    m = _IMPORT_RE.match(flat)
    if m is None:
        return []
    bound = []
    for part in m.group("names").split(","):
        words = part.split()
        if not words:
            continue
        if "as" in words:
            bound.append(words[-1])
        else:
            bound.append(words[0].split(".")[0])
    return bound


def _check_unused_imports(
    logical: Sequence[LogicalLine],
    masked_lines: Sequence[str],
    lines: Sequence[str],
    file_text: str,
    bounds: TextBounds,
) -> list[Diagnostic]:
    found: list[Diagnostic] = []
    for ll in logical:
        flat = ll.flat
        if not flat.startswith(("import ", "from ")):
            continue
        for name in _bound_import_names(flat):
            if not IDENTIFIER_RE.match(name):
                continue
            if word_count(file_text, name) > 1:
                continue
            line, col = _locate_word(masked_lines, ll, name)
            found.append(
                make_diagnostic(
                    DiagnosticKind.UNUSED_IMPORT,
                    bounds,
                    line,
                    col,
                    length=len(name),
                    source=DiagnosticSource.SEMANTIC,
                    context=lines[line],
                    name=name,
                )
            )
    return found


def _locate_word(
    masked_lines: Sequence[str], ll: LogicalLine, word: str
) -> tuple[int, int]:
    pattern = re.compile(rf"\b{re.escape(word)}\b")
    # Search from the end so ``import x as x`` points at the alias.
    for idx in range(ll.end, ll.start - 1, -1):
        hits = list(pattern.finditer(masked_lines[idx]))
        if hits:
            return idx, hits[-1].start()
    return ll.start, len(ll.indent)


# ── Undefined placeholders ───────────────────────────────


def _assignment_patterns(name: str) -> list[re.Pattern[str]]:
    n = re.escape(name)
    return [
        re.compile(rf"(?<![\w.]){n}\s*(?::[^=\n]+)?=(?!=)"),
        re.compile(rf"(?<![\w.]){n}\s*:="),
    ]


def _statement_binding_patterns(name: str) -> list[re.Pattern[str]]:
    """Statements that bind ``name`` anywhere on their line."""
    n = re.escape(name)
    return [
        re.compile(rf"\b(?:def|class)\s+{n}\b"),
        re.compile(rf"\bdef\s+\w+\s*\([^)]*\b{n}\b"),
        re.compile(rf"\bimport\b[^\n]*\b{n}\b"),
        re.compile(rf"\bfor\s+[^\n]*\b{n}\b[^\n]*\bin\b"),
        re.compile(rf"\bas\s+{n}\b"),
        re.compile(rf"\b(?:global|nonlocal)\s+[^\n]*\b{n}\b"),
    ]


def _check_undefined(
    masked_lines: Sequence[str],
    lines: Sequence[str],
    prefix: str,
    bounds: TextBounds,
) -> list[Diagnostic]:
    found: list[Diagnostic] = []
    for name in UNDEFINED_WATCHLIST:
        usage = re.compile(rf"(?<![\w.]){re.escape(name)}\b")
        assignments = _assignment_patterns(name)
        statements = _statement_binding_patterns(name)
        for idx, mline in enumerate(masked_lines):
            hit = next(
                (
                    m
                    for m in usage.finditer(mline)
                    if not _is_binding_site(mline, m.end())
                ),
                None,
            )
            if hit is None:
                continue
            before = "\n".join(
                [prefix, *masked_lines[:idx], mline[: hit.start()]]
            )
            if any(p.search(mline) for p in statements):
                break
            if any(p.search(before) for p in [*assignments, *statements]):
                break
            found.append(
                make_diagnostic(
                    DiagnosticKind.UNDEFINED_VARIABLE,
                    bounds,
                    idx,
                    hit.start(),
                    length=len(name),
                    source=DiagnosticSource.SEMANTIC,
                    context=lines[idx],
                    name=name,
                )
            )
            break
    return found


def _is_binding_site(mline: str, end: int) -> bool:
    """True when the word ending at ``end`` is an assignment target."""
    rest = mline[end:]
    return re.match(r"\s*(?::[^=]+)?=(?!=)|\s*:=", rest) is not None
