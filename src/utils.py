"""Shared hashing and sizing utilities for gherkin-build."""

from __future__ import annotations

import hashlib
import re

_SIZE_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)\s*(KB|MB|GB|B)?$", re.IGNORECASE)

SIZE_MULTIPLIERS: dict[str, int] = {
    "B": 1,
    "KB": 1024,
    "MB": 1024 * 1024,
    "GB": 1024 * 1024 * 1024,
}


class SizeParseError(ValueError):
    """Raised when a size string such as ``"100MB"`` cannot be parsed."""


def sha256_text(text: str) -> str:
    """Return the hex SHA-256 digest of a UTF-8 string.

    Examples:
        >>> sha256_text("")[:16]
        'e3b0c44298fc1c14'
    """
    if not isinstance(text, str):
        msg = f"Expected str, got {type(text).__name__}"
        raise TypeError(msg)
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def sha256_concat(*parts: str) -> str:
    """Hash several strings into one digest.

    Each part is length-prefixed, so ``("ab", "c")`` and ``("a", "bc")``
    produce different digests.
    """
    if not parts:
        msg = "At least one input string is required"
        raise TypeError(msg)
    digest = hashlib.sha256()
    for part in parts:
        if not isinstance(part, str):
            msg = f"Expected str, got {type(part).__name__}"
            raise TypeError(msg)
        encoded = part.encode("utf-8")
        digest.update(f"{len(encoded)}:".encode("ascii"))
        digest.update(encoded)
    return digest.hexdigest()


def parse_size(size: str | int) -> int:
    """Convert a size string into a byte count.

    Units are powers of 1024; a bare number means bytes.

    Examples:
        >>> parse_size("1KB")
        1024
        >>> parse_size("1.5 mb")
        1572864
        >>> parse_size(512)
        512
    """
    if isinstance(size, bool):
        msg = f"Invalid size string: {size!r}"
        raise SizeParseError(msg)
    if isinstance(size, int):
        if size < 0:
            msg = f"Invalid size string: {size!r}"
            raise SizeParseError(msg)
        return size

    match = _SIZE_PATTERN.match(size.strip()) if isinstance(size, str) else None
    if match is None:
        msg = f"Invalid size string: {size!r}"
        raise SizeParseError(msg)

    value = float(match.group(1))
    unit = (match.group(2) or "B").upper()
    return int(value * SIZE_MULTIPLIERS[unit])


def fingerprint(source: str, rules: str, tool_version: str, target: str) -> str:
    """Derive the content-addressed cache key for one compilation.

    Identical inputs always give the same 64-character key; changing any
    single argument changes it.
    """
    return sha256_concat(source, rules, tool_version, target)
