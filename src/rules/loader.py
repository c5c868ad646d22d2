"""Language rules loading.

The rules file is markdown. Text before the first ``## ... Rules`` heading is
shared by every target; a ``## <Target> Rules`` section adds target-specific
instructions. The content hash covers the rules text a target actually sees,
so editing another target's section leaves its cache entries valid.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from contract.artifacts import TARGET_SPECS
from utils import sha256_text

logger = logging.getLogger(__name__)


class RulesLoadError(Exception):
    """Raised when language rules cannot be loaded."""

    def __init__(
        self,
        message: str,
        *,
        target: str | None = None,
        file_path: str | None = None,
    ) -> None:
        self.target = target
        self.file_path = file_path
        super().__init__(message)


@dataclass(frozen=True)
class LanguageRules:
    content: str
    target: str
    content_hash: str
    file_path: str
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class _FileState:
    file_path: str
    mtime_ns: int
    size: int


def extract_target_rules(content: str, target: str) -> str:
    """Return the shared preamble plus the section for ``target``.

    Falls back to the full content when the file has no section for the
    target.
    """
    target_header = f"## {target.capitalize()} Rules"
    if target_header not in content:
        return content

    result: list[str] = []
    in_target_section = False
    seen_section = False

    for line in content.split("\n"):
        if line.startswith("## ") and "Rules" in line:
            seen_section = True
            if line.startswith(target_header):
                in_target_section = True
                result.append(line)
                continue
            if in_target_section:
                break
            continue

        if in_target_section or not seen_section:
            result.append(line)

    return "\n".join(result).strip() or content


class RulesLoader:
    """Loads rules per target and remembers file state for change detection."""

    def __init__(self) -> None:
        self._cache: dict[str, LanguageRules] = {}
        self._file_states: dict[str, _FileState] = {}

    def load(self, target: str, rules_path: str | Path) -> LanguageRules:
        """Load the rules for ``target`` from ``rules_path``.

        Raises:
            RulesLoadError: If the target is unsupported or the file cannot
                be read.
        """
        if target not in TARGET_SPECS:
            msg = f"Invalid target: {target}"
            raise RulesLoadError(msg, target=target)

        path = Path(rules_path)
        try:
            content = path.read_text(encoding="utf-8")
            stat = path.stat()
        except FileNotFoundError as exc:
            msg = f"Rules file not found: {path}"
            raise RulesLoadError(msg, target=target, file_path=str(path)) from exc
        except PermissionError as exc:
            msg = f"Permission denied to read rules file: {path}"
            raise RulesLoadError(msg, target=target, file_path=str(path)) from exc
        except (OSError, UnicodeDecodeError) as exc:
            msg = f"Failed to read rules file: {path}: {exc}"
            raise RulesLoadError(msg, target=target, file_path=str(path)) from exc

        extracted = extract_target_rules(content, target)
        rules = LanguageRules(
            content=extracted,
            target=target,
            content_hash=sha256_text(extracted),
            file_path=str(path),
        )
        self._cache[target] = rules
        self._file_states[target] = _FileState(
            file_path=str(path),
            mtime_ns=stat.st_mtime_ns,
            size=stat.st_size,
        )
        logger.debug("Loaded %s rules from %s (%s)", target, path, rules.content_hash[:12])
        return rules

    def get_cached(self, target: str) -> LanguageRules | None:
        return self._cache.get(target)

    def has_changed(self, target: str, rules_path: str | Path) -> bool:
        """Return True if the rules file differs from the last load.

        Raises:
            RulesLoadError: If the file cannot be inspected.
        """
        state = self._file_states.get(target)
        if state is None or state.file_path != str(rules_path):
            return True

        try:
            stat = Path(rules_path).stat()
        except OSError as exc:
            msg = f"Failed to check if rules file has changed: {exc}"
            raise RulesLoadError(
                msg, target=target, file_path=str(rules_path)
            ) from exc

        return stat.st_mtime_ns != state.mtime_ns or stat.st_size != state.size


__all__ = ["LanguageRules", "RulesLoadError", "RulesLoader", "extract_target_rules"]
