from __future__ import annotations

from typing import TYPE_CHECKING

from parse.features import ParseIssueKind, parse_feature, parse_many

if TYPE_CHECKING:
    from pathlib import Path


_MATHEMATICS = """Feature: Mathematics
  Given import Utils
  given IMPORT Logic

  Scenario: add
    Given two numbers
  Scenario: multiply
    Given two numbers
"""


def test_parse_extracts_name_imports_and_scenarios() -> None:
    parsed = parse_feature("mathematics.feature", _MATHEMATICS)

    assert parsed.ok
    assert parsed.feature_name == "Mathematics"
    assert parsed.imports == ("Utils", "Logic")
    assert [s.name for s in parsed.scenarios] == ["add", "multiply"]
    assert [s.line for s in parsed.scenarios] == [5, 7]
    assert parsed.file_path == "mathematics.feature"


def test_parse_handles_crlf_line_endings() -> None:
    text = "Feature: Utils\r\n\r\n  Scenario: identity\r\n"

    parsed = parse_feature("utils.feature", text)

    assert parsed.ok
    assert parsed.feature_name == "Utils"
    assert parsed.line_count == 4


def test_missing_feature_header_is_structural_error() -> None:
    parsed = parse_feature("x.feature", "Scenario: lonely\n")

    assert not parsed.ok
    assert parsed.feature_name == ""
    assert parsed.errors[0].kind == ParseIssueKind.STRUCTURE
    assert parsed.errors[0].line == 1


def test_invalid_feature_name_is_syntax_error() -> None:
    parsed = parse_feature("x.feature", "Feature: Math 2\n  Scenario: a\n")

    assert not parsed.ok
    assert parsed.errors[0].kind == ParseIssueKind.SYNTAX
    assert "Invalid feature name" in parsed.errors[0].message


def test_missing_scenarios_is_structural_error() -> None:
    parsed = parse_feature("x.feature", "Feature: Empty\n")

    assert not parsed.ok
    assert [issue.message for issue in parsed.errors] == ["Missing scenarios"]


def test_import_must_be_whole_line() -> None:
    text = "Feature: A\n  Given import B and C\n  Scenario: s\n"

    parsed = parse_feature("a.feature", text)

    assert parsed.imports == ()


def test_parse_many_reports_unreadable_file(tmp_path: Path) -> None:
    good = tmp_path / "utils.feature"
    good.write_text("Feature: Utils\n  Scenario: id\n", encoding="utf-8")
    missing = tmp_path / "missing.feature"

    results = parse_many([good, missing])

    assert results[str(good)].ok
    broken = results[str(missing)]
    assert not broken.ok
    assert broken.errors[0].kind == ParseIssueKind.SYSTEM
