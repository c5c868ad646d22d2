from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from contract.artifacts import (
    DEFAULT_CACHE_DIR,
    DEFAULT_MAX_CACHE_SIZE,
    TOOL_VERSION,
)
from utils import SizeParseError, parse_size

CONFIG_FILENAME = "gherkin.toml"

Target = Literal["javascript", "elixir"]


class _StrictModel(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class OutputConfig(_StrictModel):
    """Where compiled modules and generated tests are written."""

    dir: str = Field(default="dist", description="Output directory for compiled code")
    test_dir: str = Field(
        default="test/generated",
        description="Output directory for generated tests",
    )


class CacheConfig(_StrictModel):
    """Compilation cache settings."""

    enabled: bool = Field(default=True, description="Enable the compilation cache")
    dir: str = Field(default=DEFAULT_CACHE_DIR, description="Cache directory")
    max_size: str = Field(
        default=DEFAULT_MAX_CACHE_SIZE,
        description="Maximum cache size, e.g. '100MB' (B/KB/MB/GB, powers of 1024)",
    )
    auto_evict: bool = Field(
        default=True,
        description="Evict down to max_size once after every build",
    )

    @field_validator("max_size", mode="before")
    @classmethod
    def validate_max_size(cls, v: Any) -> Any:
        """Reject malformed size strings at load time rather than mid-build."""
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if not isinstance(v, str):
            msg = "max_size must be a size string such as '100MB'"
            raise ValueError(msg)
        try:
            parse_size(v)
        except SizeParseError as exc:
            raise ValueError(str(exc)) from exc
        return v

    @property
    def max_size_bytes(self) -> int:
        return parse_size(self.max_size)


class AIConfig(_StrictModel):
    """Settings for calls to the transformation collaborator."""

    model: str = Field(
        default="claude-sonnet-4-5",
        description="Model identifier recorded in cache metadata",
    )
    max_retries: int = Field(
        default=3,
        ge=0,
        description="Extra attempts for a transformation that fails retryably",
    )
    retry_delay: float = Field(
        default=2.0,
        ge=0,
        description="Base backoff in seconds, doubled after each retry",
    )


class BuildConfig(_StrictModel):
    """Configuration for a gherkin-build project."""

    target: Target = Field(default="javascript", description="Target language")
    rules_path: str = Field(
        default="rules.md",
        description="Language rules file, relative to the project root",
    )
    tool_version: str = Field(
        default=TOOL_VERSION,
        description="Tool version mixed into every cache fingerprint",
    )
    include: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to include (empty = all .feature files)",
    )
    exclude: list[str] = Field(
        default_factory=list,
        description="Glob patterns for files to exclude",
    )
    output: OutputConfig = Field(default_factory=OutputConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    ai: AIConfig = Field(default_factory=AIConfig)


class ConfigError(Exception):
    """Raised when config file exists but cannot be parsed."""


def resolve_output_dir(root: Path, output_dir: str) -> Path:
    """Resolve a config-provided directory safely within the project root.

    The directory must be a non-empty relative path that remains within the
    project root after resolution. Absolute paths and paths that escape the
    root are rejected.
    """
    if not output_dir:
        msg = "output_dir must be a non-empty relative path"
        raise ConfigError(msg)

    if output_dir.startswith("~"):
        msg = "output_dir must be a relative path within the project root"
        raise ConfigError(msg)

    output_path = Path(output_dir)
    if output_path.is_absolute():
        msg = "output_dir must be a relative path within the project root"
        raise ConfigError(msg)

    try:
        resolved_root = root.resolve()
        resolved_output = (resolved_root / output_path).resolve()
    except OSError as exc:
        msg = f"Failed to resolve output_dir '{output_dir}': {exc}"
        raise ConfigError(msg) from exc

    try:
        resolved_output.relative_to(resolved_root)
    except ValueError as exc:
        msg = f"output_dir '{output_dir}' escapes the project root"
        raise ConfigError(msg) from exc

    return resolved_output


def load_config(root: Path) -> BuildConfig:
    """Load configuration from gherkin.toml if it exists."""
    config_path = Path(root) / CONFIG_FILENAME

    if not config_path.is_file():
        return BuildConfig()

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        msg = f"Invalid TOML in {config_path}: {e}"
        raise ConfigError(msg) from e

    try:
        return BuildConfig.model_validate(data)
    except Exception as e:
        msg = f"Invalid config in {config_path}: {e}"
        raise ConfigError(msg) from e
