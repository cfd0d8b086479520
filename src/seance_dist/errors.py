"""Typed orchestrator error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used in reports and on the console."""

    VALIDATION = "E_VALIDATION"
    CONFIG = "E_CONFIG"
    EXTERNAL_TOOL_UNAVAILABLE = "E_EXTERNAL_TOOL_UNAVAILABLE"
    BUILD_FAILED = "E_BUILD_FAILED"
    BUILD_SKIPPED = "E_BUILD_SKIPPED"
    ARTIFACT_MISSING = "E_ARTIFACT_MISSING"
    ASSEMBLY_CONFLICT = "E_ASSEMBLY_CONFLICT"
    PACKAGING_FAILED = "E_PACKAGING_FAILED"


# Build errors after which the remaining binaries of the same target are skipped.
INVOCATION_ERROR_CODES = frozenset(
    {ErrorCode.EXTERNAL_TOOL_UNAVAILABLE.value, ErrorCode.VALIDATION.value}
)


class DistError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    @property
    def message(self) -> str:
        return super().__str__()

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class ConfigError(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.CONFIG, hint=hint, context=context)


class ExternalToolUnavailable(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.EXTERNAL_TOOL_UNAVAILABLE,
            hint=hint,
            context=context,
        )


class BuildFailed(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD_FAILED, hint=hint, context=context)


class BuildSkipped(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.BUILD_SKIPPED, hint=hint, context=context)


class ArtifactMissing(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ARTIFACT_MISSING, hint=hint, context=context)


class AssemblyConflict(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ASSEMBLY_CONFLICT, hint=hint, context=context)


class PackagingFailed(DistError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PACKAGING_FAILED, hint=hint, context=context)


__all__ = [
    "INVOCATION_ERROR_CODES",
    "ArtifactMissing",
    "AssemblyConflict",
    "BuildFailed",
    "BuildSkipped",
    "ConfigError",
    "DistError",
    "ErrorCode",
    "ExternalToolUnavailable",
    "PackagingFailed",
    "ValidationError",
]
