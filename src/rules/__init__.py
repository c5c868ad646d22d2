"""Project configuration and language rules for gherkin-build."""

from rules.config import (
    BuildConfig,
    CacheConfig,
    ConfigError,
    load_config,
    resolve_output_dir,
)
from rules.loader import LanguageRules, RulesLoadError, RulesLoader

__all__ = [
    "BuildConfig",
    "CacheConfig",
    "ConfigError",
    "LanguageRules",
    "RulesLoadError",
    "RulesLoader",
    "load_config",
    "resolve_output_dir",
]
