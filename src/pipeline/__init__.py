"""Build orchestration for gherkin-build."""

from pipeline.compile import (
    BuildReport,
    ModuleOutcome,
    ModuleStatus,
    build_order,
    compile_project,
    open_cache,
)
from pipeline.context import (
    ContextBuildError,
    CyclicDependencyError,
    ProjectContext,
    build_context,
)
from pipeline.transform import (
    DependencyContext,
    TransformationError,
    Transformer,
    TransformRequest,
    TransformResult,
)

__all__ = [
    "BuildReport",
    "ContextBuildError",
    "CyclicDependencyError",
    "DependencyContext",
    "ModuleOutcome",
    "ModuleStatus",
    "ProjectContext",
    "TransformRequest",
    "TransformResult",
    "TransformationError",
    "Transformer",
    "build_context",
    "build_order",
    "compile_project",
    "open_cache",
]
