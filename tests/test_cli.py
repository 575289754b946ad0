"""Tests for CLI argument parsing, output formatting and exit codes."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from faultline.analysis.static import scan_delimiters
from faultline.cli import _build_parser, _format_json, _format_text, main


class TestArgParser:
    def test_version_flag(self) -> None:
        parser = _build_parser()
        args = parser.parse_args(["--version"])
        assert args.version is True

    def test_check_defaults(self) -> None:
        parser = _build_parser()
        args = parser.parse_args(["check", "a.py"])
        assert args.command == "check"
        assert args.paths == ["a.py"]
        assert args.format == "text"
        assert args.no_llm is False
        assert args.max_diagnostics is None
        assert args.verbose is False

    def test_check_with_options(self) -> None:
        parser = _build_parser()
        args = parser.parse_args(
            ["check", "a.py", "b.py", "--format", "json", "--no-llm", "--max", "3"]
        )
        assert args.paths == ["a.py", "b.py"]
        assert args.format == "json"
        assert args.no_llm is True
        assert args.max_diagnostics == 3

    def test_check_requires_a_path(self) -> None:
        parser = _build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["check"])

    def test_no_command(self) -> None:
        parser = _build_parser()
        args = parser.parse_args([])
        assert args.command is None


class TestFormatting:
    def test_text_is_one_based(self) -> None:
        results = {"bad.py": scan_delimiters("foo(")}
        line = _format_text(results).splitlines()[0]
        assert line.startswith("bad.py:1:4: ")
        assert "Unclosed '(' opened at line 1" in line

    def test_text_includes_hint(self) -> None:
        results = {"bad.py": scan_delimiters("foo(")}
        assert "    hint: " in _format_text(results)

    def test_text_empty_when_clean(self) -> None:
        assert _format_text({"ok.py": []}) == ""

    def test_json_keyed_by_path(self) -> None:
        payload = json.loads(_format_json({"bad.py": scan_delimiters("foo(")}))
        [entry] = payload["bad.py"]
        assert entry["kind"] == "unclosed_delimiter"
        assert (entry["line"], entry["column"]) == (0, 3)


class TestMain:
    @pytest.fixture(autouse=True)
    def _isolated_cwd(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Keep a developer's .env out of the run."""
        monkeypatch.chdir(tmp_path)

    def test_version(self, capsys: pytest.CaptureFixture[str]) -> None:
        main(["--version"])
        assert capsys.readouterr().out.strip() == "faultline 0.1.0"

    def test_clean_file_exits_zero(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "ok.py"
        path.write_text("x = 1\nprint(x)\n")
        with pytest.raises(SystemExit) as excinfo:
            main(["check", str(path), "--no-llm"])
        assert excinfo.value.code == 0
        assert capsys.readouterr().out == ""

    def test_findings_exit_one(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "bad.py"
        path.write_text("foo(\n")
        with pytest.raises(SystemExit) as excinfo:
            main(["check", str(path), "--no-llm"])
        assert excinfo.value.code == 1
        assert f"{path}:1:4: " in capsys.readouterr().out

    def test_json_output(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        path = tmp_path / "bad.py"
        path.write_text("if x > 0\n    pass\n")
        with pytest.raises(SystemExit):
            main(["check", str(path), "--no-llm", "--format", "json"])
        payload = json.loads(capsys.readouterr().out)
        assert [d["kind"] for d in payload[str(path)]] == ["missing_colon"]

    def test_unreadable_path_exits_two(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        with pytest.raises(SystemExit) as excinfo:
            main(["check", str(tmp_path / "missing.py"), "--no-llm"])
        assert excinfo.value.code == 2
        assert "cannot read" in capsys.readouterr().err

    def test_no_command_prints_help(
        self, capsys: pytest.CaptureFixture[str]
    ) -> None:
        main([])
        assert "usage: faultline" in capsys.readouterr().out
