"""Cross-build and packaging orchestrator for the Seance distribution."""

from .catalog import targets
from .config import DistConfig, load_config
from .errors import (
    ArtifactMissing,
    AssemblyConflict,
    BuildFailed,
    BuildSkipped,
    ConfigError,
    DistError,
    ErrorCode,
    ExternalToolUnavailable,
    PackagingFailed,
    ValidationError,
)
from .models import (
    BuildResult,
    DesktopAction,
    DistributionTree,
    DriverState,
    EnvironmentContext,
    PackageFile,
    PackageMetadata,
    PackageSpec,
    TargetSpec,
)
from .orchestrator import Orchestrator
from .report import RunReport

__all__ = [
    "ArtifactMissing",
    "AssemblyConflict",
    "BuildFailed",
    "BuildResult",
    "BuildSkipped",
    "ConfigError",
    "DesktopAction",
    "DistConfig",
    "DistError",
    "DistributionTree",
    "DriverState",
    "EnvironmentContext",
    "ErrorCode",
    "ExternalToolUnavailable",
    "Orchestrator",
    "PackageFile",
    "PackageMetadata",
    "PackageSpec",
    "PackagingFailed",
    "RunReport",
    "TargetSpec",
    "ValidationError",
    "load_config",
    "targets",
]
