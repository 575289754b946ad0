"""Tests for the semantic heuristics."""

from __future__ import annotations

from faultline.analysis.semantic import analyze_semantics
from faultline.constants import Confidence, DiagnosticKind, DiagnosticSource


def _found(
    text: str, whole_file_text: str | None = None, offset: int = 0
) -> list[tuple[DiagnosticKind, tuple[int, int]]]:
    return [
        (d.kind, d.position)
        for d in analyze_semantics(text, whole_file_text, offset=offset)
    ]


class TestDuplicateDefinitions:
    def test_duplicate_function(self) -> None:
        text = "def foo():\n    pass\n\ndef foo():\n    pass\n"
        found = analyze_semantics(text)
        assert len(found) == 1
        d = found[0]
        assert d.kind is DiagnosticKind.DUPLICATE_DEFINITION
        assert d.position == (3, 4)
        assert d.length == 3
        assert d.rule_id == "PY-DUPLICATE-FUNCTION"
        assert d.message == "Function 'foo' is defined multiple times"
        assert d.source is DiagnosticSource.SEMANTIC

    def test_duplicate_class(self) -> None:
        text = "class A:\n    pass\nclass A:\n    pass\n"
        found = analyze_semantics(text)
        assert [d.rule_id for d in found] == ["PY-DUPLICATE-CLASS"]

    def test_same_method_name_in_different_classes(self) -> None:
        text = (
            "class A:\n"
            "    def run(self):\n"
            "        pass\n"
            "class B:\n"
            "    def run(self):\n"
            "        pass\n"
        )
        assert _found(text) == []

    def test_property_accessors_are_not_duplicates(self) -> None:
        text = (
            "class A:\n"
            "    @property\n"
            "    def x(self):\n"
            "        return 1\n"
            "    @x.setter\n"
            "    def x(self, v):\n"
            "        pass\n"
        )
        assert _found(text) == []

    def test_overloads_are_not_duplicates(self) -> None:
        text = (
            "@overload\n"
            "def f(x: int) -> int: ...\n"
            "@overload\n"
            "def f(x: str) -> str: ...\n"
            "def f(x):\n"
            "    return x\n"
        )
        assert _found(text) == []

    def test_conditional_definitions_are_not_duplicates(self) -> None:
        text = (
            "if FAST:\n"
            "    def f():\n"
            "        pass\n"
            "else:\n"
            "    def f():\n"
            "        pass\n"
        )
        assert _found(text) == []


class TestFirstParameter:
    def test_instance_method_without_self(self) -> None:
        text = "class A:\n    def run(this):\n        pass\n"
        found = analyze_semantics(text)
        assert [(d.kind, d.position) for d in found] == [
            (DiagnosticKind.FIRST_PARAMETER_CONVENTION, (1, 12))
        ]
        assert found[0].rule_id == "PY-FIRST-PARAM-SELF"
        assert "'self', not 'this'" in found[0].message

    def test_classmethod_expects_cls(self) -> None:
        text = "class A:\n    @classmethod\n    def make(self):\n        pass\n"
        found = analyze_semantics(text)
        assert [(d.kind, d.position) for d in found] == [
            (DiagnosticKind.FIRST_PARAMETER_CONVENTION, (2, 13))
        ]
        assert found[0].rule_id == "PY-FIRST-PARAM-CLS"

    def test_accepted_shapes(self) -> None:
        text = (
            "class A:\n"
            "    def __new__(cls):\n"
            "        pass\n"
            "    @staticmethod\n"
            "    def helper(x):\n"
            "        pass\n"
            "    def varargs(*args):\n"
            "        pass\n"
            "    def multi(\n"
            "        self,\n"
            "        other,\n"
            "    ):\n"
            "        pass\n"
        )
        assert _found(text) == []

    def test_module_functions_ignored(self) -> None:
        assert _found("def run(x):\n    return x\n") == []


class TestUnusedImports:
    def test_unused_module(self) -> None:
        text = "import os\nimport sys\nprint(sys.argv)\n"
        found = analyze_semantics(text)
        assert [(d.kind, d.position) for d in found] == [
            (DiagnosticKind.UNUSED_IMPORT, (0, 7))
        ]
        assert found[0].confidence == Confidence.SEMANTIC_UNUSED
        assert found[0].message == "Imported 'os' but never used"

    def test_usage_elsewhere_in_file_counts(self) -> None:
        assert _found("import os\n", "import os\nos.getcwd()\n") == []

    def test_alias_is_the_bound_name(self) -> None:
        assert _found("from a import b as c\n") == [
            (DiagnosticKind.UNUSED_IMPORT, (0, 19))
        ]
        assert _found("from a import b as c\nprint(c)\n") == []

    def test_future_and_star_imports_skipped(self) -> None:
        assert _found("from __future__ import annotations\n") == []
        assert _found("from os.path import *\n") == []


class TestUndefinedPlaceholders:
    def test_undefined_placeholder(self) -> None:
        found = analyze_semantics("print(undefined_var)")
        assert [(d.kind, d.position) for d in found] == [
            (DiagnosticKind.UNDEFINED_VARIABLE, (0, 6))
        ]
        assert found[0].confidence == Confidence.SEMANTIC_UNDEFINED

    def test_assigned_before_use(self) -> None:
        assert _found("undefined_var = 1\nprint(undefined_var)\n") == []

    def test_assigned_earlier_in_whole_file(self) -> None:
        whole = "placeholder = 3\nprint(placeholder)\n"
        offset = len("placeholder = 3\n")
        assert _found("print(placeholder)\n", whole, offset) == []

    def test_bound_by_statement(self) -> None:
        assert _found("def f(placeholder):\n    return placeholder\n") == []
        assert _found("for temp_var in items:\n    print(temp_var)\n") == []
        assert _found("with open(p) as temp_var:\n    temp_var.read()\n") == []

    def test_attribute_access_is_not_a_variable(self) -> None:
        assert _found("print(obj.placeholder)\n") == []


class TestSemanticContract:
    def test_empty_text(self) -> None:
        assert analyze_semantics("") == []

    def test_confidence_ceiling(self) -> None:
        text = (
            "import os\n"
            "class A:\n"
            "    def run(x):\n"
            "        return missing_var\n"
            "def f():\n    pass\n"
            "def f():\n    pass\n"
        )
        found = analyze_semantics(text)
        assert found
        assert all(d.confidence <= Confidence.SEMANTIC_CEILING for d in found)
