from __future__ import annotations

import shutil
from pathlib import Path

import pytest

from cli import main
from pipeline.compile import compile_project
from pipeline.transform import TransformRequest, TransformResult


class _EchoTransformer:
    def transform(self, request: TransformRequest) -> TransformResult:
        return TransformResult(code=f"module.exports = '{request.module}';\n")


def _copy_mini_project_fixture(root: Path) -> None:
    fixture_project = Path(__file__).parent / "fixtures" / "mini_project"
    shutil.copytree(fixture_project, root)


def _built_project(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    _copy_mini_project_fixture(root)
    compile_project(root=root, transformer=_EchoTransformer())
    return root


def test_cli_order_prints_dependencies_first(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = tmp_path / "project"
    _copy_mini_project_fixture(root)

    exit_code = main(["order", str(root)])

    assert exit_code == 0
    assert capsys.readouterr().out.splitlines() == ["Utils", "Mathematics"]


def test_cli_order_reports_cycles(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = tmp_path / "project"
    (root / "features").mkdir(parents=True)
    (root / "features" / "a.feature").write_text(
        "Feature: A\n  Given import B\n  Scenario: a\n", encoding="utf-8"
    )
    (root / "features" / "b.feature").write_text(
        "Feature: B\n  Given import A\n  Scenario: b\n", encoding="utf-8"
    )

    exit_code = main(["order", str(root)])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert captured.out == ""
    assert "Circular dependency: A -> B -> A" in captured.err


def test_cli_order_reports_unknown_dependency(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = tmp_path / "project"
    root.mkdir()
    (root / "app.feature").write_text(
        "Feature: App\n  Given import Missing\n  Scenario: run\n", encoding="utf-8"
    )

    exit_code = main(["order", str(root)])

    assert exit_code == 1
    assert "Missing" in capsys.readouterr().err


def test_cli_missing_root_reports_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    exit_code = main(["order", str(tmp_path / "nope")])

    assert exit_code == 2
    assert "Root directory not found" in capsys.readouterr().err


def test_cli_invalid_config_reports_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = tmp_path / "project"
    _copy_mini_project_fixture(root)
    (root / "gherkin.toml").write_text("unknown = 1\n", encoding="utf-8")

    exit_code = main(["cache", "stats", str(root)])

    assert exit_code == 2
    assert capsys.readouterr().err.startswith("error: Invalid config")


def test_cli_cache_stats(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    root = _built_project(tmp_path)

    exit_code = main(["cache", "stats", str(root)])

    out = capsys.readouterr().out.splitlines()
    assert exit_code == 0
    assert out[0] == "entries: 2"
    assert out[2] == "max_size: 1048576"


def test_cli_cache_verify_then_clear(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _built_project(tmp_path)

    assert main(["cache", "verify", str(root)]) == 0
    assert main(["cache", "clear", str(root)]) == 0
    assert main(["cache", "stats", str(root)]) == 0

    assert "entries: 0" in capsys.readouterr().out


def test_cli_cache_verify_reports_drift(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _built_project(tmp_path)
    (root / ".gherkin-cache" / "stray.cache").write_text("{}", encoding="utf-8")

    exit_code = main(["cache", "verify", str(root)])

    assert exit_code == 1
    assert "extra: stray.cache" in capsys.readouterr().err


def test_cli_cache_verify_without_cache_dir(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = tmp_path / "project"
    _copy_mini_project_fixture(root)

    exit_code = main(["cache", "verify", str(root)])

    captured = capsys.readouterr()
    assert exit_code == 2
    assert "Cache directory does not exist" in captured.err


def test_cli_cache_evict_with_budget(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _built_project(tmp_path)

    exit_code = main(["cache", "evict", str(root), "--max-size", "0B"])

    assert exit_code == 0
    assert capsys.readouterr().out == "evicted: 2\n"


def test_cli_cache_evict_rejects_bad_budget(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _built_project(tmp_path)

    exit_code = main(["cache", "evict", str(root), "--max-size", "huge"])

    assert exit_code == 2
    assert "Invalid size string" in capsys.readouterr().err


def test_cli_cache_prune_after_rules_change(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _built_project(tmp_path)
    rules = root / "rules.md"
    rules.write_text(
        rules.read_text(encoding="utf-8").replace("CommonJS", "ES"),
        encoding="utf-8",
    )

    exit_code = main(["cache", "prune", str(root)])

    assert exit_code == 0
    assert capsys.readouterr().out == "pruned: 2\n"


def test_cli_cache_prune_keeps_current_entries(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    root = _built_project(tmp_path)

    exit_code = main(["cache", "prune", str(root)])

    assert exit_code == 0
    assert capsys.readouterr().out == "pruned: 0\n"
