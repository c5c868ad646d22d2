"""Request/response boundary to the transformation engine.

The engine itself is not part of gherkin-build. Anything with a matching
``transform`` method can be passed to ``compile_project``; it knows nothing
about caching.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


class TransformationError(Exception):
    """Raised by a transformer when a module cannot be compiled."""

    def __init__(
        self, message: str, *, module: str | None = None, retryable: bool = False
    ) -> None:
        self.module = module
        self.retryable = retryable
        super().__init__(message)


@dataclass(frozen=True)
class DependencyContext:
    """What a module can see of one of its dependencies."""

    name: str
    exports: tuple[str, ...]
    source_location: str


@dataclass(frozen=True)
class TransformRequest:
    module: str
    source: str
    rules: str
    target: str
    dependencies: tuple[DependencyContext, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class TransformResult:
    code: str
    generated_tests: str | None = None
    model: str = ""
    duration_ms: int = 0


@runtime_checkable
class Transformer(Protocol):
    def transform(self, request: TransformRequest) -> TransformResult: ...


__all__ = [
    "DependencyContext",
    "TransformRequest",
    "TransformResult",
    "TransformationError",
    "Transformer",
]
