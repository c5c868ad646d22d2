"""Module registry: the name -> descriptor mapping a build works from."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator

    from parse.features import ParsedFeature


class DuplicateModuleError(Exception):
    """Raised when two source files declare the same module name."""

    def __init__(self, name: str, first_location: str, second_location: str) -> None:
        self.name = name
        self.first_location = first_location
        self.second_location = second_location
        super().__init__(
            f'Duplicate feature name "{name}" found in:\n'
            f"  - {first_location}\n"
            f"  - {second_location}"
        )


@dataclass(frozen=True)
class ModuleDescriptor:
    """One discovered module. Replaced wholesale on re-parse, never mutated."""

    name: str
    source_location: str
    declared_dependencies: tuple[str, ...] = field(default_factory=tuple)
    declared_exports: tuple[str, ...] = field(default_factory=tuple)
    parsed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    has_errors: bool = False

    @classmethod
    def from_parsed(cls, parsed: ParsedFeature) -> ModuleDescriptor:
        return cls(
            name=parsed.feature_name,
            source_location=parsed.file_path,
            declared_dependencies=tuple(parsed.imports),
            declared_exports=tuple(scenario.name for scenario in parsed.scenarios),
            parsed_at=parsed.parsed_at,
            has_errors=not parsed.ok,
        )


class ModuleRegistry:
    """Registered modules keyed by name, in registration order."""

    def __init__(self) -> None:
        self._modules: dict[str, ModuleDescriptor] = {}

    def register(self, descriptors: Iterable[ModuleDescriptor]) -> None:
        """Add descriptors to the registry.

        Descriptors whose parse produced structural errors are skipped: they
        take no part in the graph and cannot be depended upon.

        Raises:
            DuplicateModuleError: If a name is already registered. Both
                source locations are reported.
        """
        for descriptor in descriptors:
            if descriptor.has_errors:
                continue

            existing = self._modules.get(descriptor.name)
            if existing is not None:
                raise DuplicateModuleError(
                    descriptor.name,
                    existing.source_location,
                    descriptor.source_location,
                )

            self._modules[descriptor.name] = descriptor

    def lookup(self, name: str) -> ModuleDescriptor | None:
        return self._modules.get(name)

    def dependencies_of(self, name: str) -> list[str]:
        """Return a copy of the declared dependencies (empty if unknown)."""
        descriptor = self._modules.get(name)
        if descriptor is None:
            return []
        return list(descriptor.declared_dependencies)

    def names(self) -> list[str]:
        return list(self._modules)

    def __contains__(self, name: object) -> bool:
        return name in self._modules

    def __iter__(self) -> Iterator[ModuleDescriptor]:
        return iter(list(self._modules.values()))

    def __len__(self) -> int:
        return len(self._modules)


__all__ = ["DuplicateModuleError", "ModuleDescriptor", "ModuleRegistry"]
