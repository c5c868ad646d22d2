"""Parsing utilities for feature files."""

from parse.features import (
    ParsedFeature,
    ParseIssue,
    ParseIssueKind,
    ScenarioInfo,
    parse_feature,
    parse_many,
)

__all__ = [
    "ParseIssue",
    "ParseIssueKind",
    "ParsedFeature",
    "ScenarioInfo",
    "parse_feature",
    "parse_many",
]
