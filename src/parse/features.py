"""Structural parsing of ``.feature`` modules.

Only the structure needed for dependency resolution is extracted here: the
``Feature:`` header, ``Given import <Name>`` lines and ``Scenario:`` names.
The scenario bodies are left to the transformation step.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

FEATURE_PREFIX = "Feature:"
SCENARIO_PREFIX = "Scenario:"

_IMPORT_LINE = re.compile(r"^Given\s+import\s+(\w+)$", re.IGNORECASE)
_FEATURE_NAME = re.compile(r"^[A-Za-z_]+$")
_LINE_SPLIT = re.compile(r"\r?\n")


class ParseIssueKind(str, Enum):
    """Category of a structural parse problem."""

    SYNTAX = "syntax"
    STRUCTURE = "structure"
    SYSTEM = "system"


@dataclass(frozen=True)
class ParseIssue:
    kind: ParseIssueKind
    message: str
    line: int | None = None


@dataclass(frozen=True)
class ScenarioInfo:
    name: str
    line: int


@dataclass(frozen=True)
class ParsedFeature:
    """Structure extracted from one ``.feature`` file."""

    file_path: str
    feature_name: str
    imports: tuple[str, ...] = field(default_factory=tuple)
    scenarios: tuple[ScenarioInfo, ...] = field(default_factory=tuple)
    errors: tuple[ParseIssue, ...] = field(default_factory=tuple)
    line_count: int = 0
    parsed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def ok(self) -> bool:
        return not self.errors


def _extract_feature_name(lines: list[str]) -> tuple[str, list[ParseIssue]]:
    header = lines[0].strip() if lines else ""
    if not header.startswith(FEATURE_PREFIX):
        return "", [
            ParseIssue(ParseIssueKind.STRUCTURE, "Missing feature name", line=1)
        ]

    name = header[len(FEATURE_PREFIX) :].strip()
    if not name:
        return "", [
            ParseIssue(ParseIssueKind.STRUCTURE, "Missing feature name", line=1)
        ]

    if not _FEATURE_NAME.match(name):
        msg = (
            f'Invalid feature name: "{name}". '
            "Must be a valid identifier (letters and underscore only)"
        )
        return name, [ParseIssue(ParseIssueKind.SYNTAX, msg, line=1)]

    return name, []


def _extract_imports(lines: list[str]) -> list[str]:
    imports: list[str] = []
    for raw in lines:
        match = _IMPORT_LINE.match(raw.strip())
        if match:
            imports.append(match.group(1))
    return imports


def _extract_scenarios(lines: list[str]) -> tuple[list[ScenarioInfo], list[ParseIssue]]:
    scenarios = [
        ScenarioInfo(name=line.strip()[len(SCENARIO_PREFIX) :].strip(), line=number)
        for number, line in enumerate(lines, start=1)
        if line.strip().startswith(SCENARIO_PREFIX)
    ]
    if not scenarios:
        return [], [ParseIssue(ParseIssueKind.STRUCTURE, "Missing scenarios")]
    return scenarios, []


def parse_feature(file_path: str | Path, content: str | None = None) -> ParsedFeature:
    """Parse a ``.feature`` file and extract its structure.

    Args:
        file_path: Path of the file; read from disk when ``content`` is None.
        content: Optional file text, used instead of reading ``file_path``.

    Returns:
        ParsedFeature. Structural problems are reported in ``errors`` rather
        than raised.

    Raises:
        OSError: If ``content`` is None and the file cannot be read.
    """
    text = content if content is not None else Path(file_path).read_text(encoding="utf-8")

    lines = _LINE_SPLIT.split(text)
    feature_name, feature_errors = _extract_feature_name(lines)
    imports = _extract_imports(lines)
    scenarios, scenario_errors = _extract_scenarios(lines)

    return ParsedFeature(
        file_path=str(file_path),
        feature_name=feature_name,
        imports=tuple(imports),
        scenarios=tuple(scenarios),
        errors=tuple(feature_errors + scenario_errors),
        line_count=len(lines),
    )


def parse_many(file_paths: Iterable[str | Path]) -> dict[str, ParsedFeature]:
    """Parse several files, keyed by path.

    A file that cannot be read yields a ParsedFeature carrying a single
    ``system`` issue, so one bad file never aborts discovery.
    """
    results: dict[str, ParsedFeature] = {}
    for file_path in file_paths:
        key = str(file_path)
        try:
            results[key] = parse_feature(file_path)
        except (OSError, UnicodeDecodeError) as exc:
            results[key] = ParsedFeature(
                file_path=key,
                feature_name="",
                errors=(ParseIssue(ParseIssueKind.SYSTEM, str(exc)),),
            )
    return results


__all__ = [
    "ParseIssue",
    "ParseIssueKind",
    "ParsedFeature",
    "ScenarioInfo",
    "parse_feature",
    "parse_many",
]
