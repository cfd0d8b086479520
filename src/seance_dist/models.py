"""Core typed dataclasses for targets, build results, trees, and packages."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath
from typing import Literal, Self

from .errors import INVOCATION_ERROR_CODES, DistError

OperatingSystem = Literal["linux", "windows"]
Arch = Literal["x86_64", "aarch64", "armv6l"]
PackageFormat = Literal["deb", "arch"]
OutcomeStatus = Literal["ok", "failed", "skipped", "info"]

DATA_DIRS_VARIABLE = "XDG_DATA_DIRS"


class DriverState(StrEnum):
    """Orchestration phases, in the only order they may be entered."""

    INIT = "Init"
    ENUMERATING = "Enumerating"
    BUILDING = "Building"
    COLLECTING = "Collecting"
    ASSEMBLING = "Assembling"
    PACKAGING = "Packaging"
    REPORTING = "Reporting"
    DONE = "Done"


PHASE_ORDER: tuple[DriverState, ...] = tuple(DriverState)


@dataclass(frozen=True, slots=True)
class BinarySpec:
    """A binary the external build tool knows how to produce."""

    name: str
    crate: str
    description: str = ""
    launcher: str | None = None

    def built_name(self, os_name: OperatingSystem) -> str:
        """Return the file name the toolchain emits under ``bin/``."""
        if os_name == "windows":
            return f"{self.crate}.exe"
        return self.crate

    def dist_name(self, os_name: OperatingSystem) -> str:
        """Return the file name used inside the distribution tree."""
        if os_name == "windows":
            return f"{self.name}.exe"
        return self.name


@dataclass(frozen=True, slots=True)
class PackageDecl:
    """A package the catalog declares for one target and format."""

    name: str
    format: PackageFormat
    binaries: tuple[str, ...]
    description: str = ""
    depends: tuple[str, ...] = ()
    section: str = "misc"
    skeleton: str | None = None


@dataclass(frozen=True, slots=True)
class TargetSpec:
    os: OperatingSystem
    arch: Arch
    toolchain: str
    binaries: tuple[str, ...]
    packages: tuple[PackageDecl, ...] = ()
    impure: bool = False
    build_env: tuple[tuple[str, str], ...] = ()

    @property
    def key(self) -> str:
        return f"{self.os}/{self.arch}"

    @property
    def slug(self) -> str:
        return f"{self.os}-{self.arch}"

    @property
    def formats(self) -> tuple[PackageFormat, ...]:
        seen: list[PackageFormat] = []
        for package in self.packages:
            if package.format not in seen:
                seen.append(package.format)
        return tuple(seen)


@dataclass(frozen=True, slots=True)
class BuiltArtifact:
    path: Path
    sha256: str


@dataclass(frozen=True, slots=True)
class BuildResult:
    """Outcome of one (target, binary) build; exactly one of artifact/error is set."""

    target: TargetSpec
    binary: str
    artifact: BuiltArtifact | None = None
    error: DistError | None = None

    @classmethod
    def success(cls, target: TargetSpec, binary: str, *, path: Path, sha256: str) -> Self:
        return cls(target=target, binary=binary, artifact=BuiltArtifact(path=path, sha256=sha256))

    @classmethod
    def failure(cls, target: TargetSpec, binary: str, error: DistError) -> Self:
        return cls(target=target, binary=binary, error=error)

    @property
    def ok(self) -> bool:
        return self.artifact is not None

    @property
    def invocation_error(self) -> bool:
        """True when the build tool could not be driven at all for this target."""
        return self.error is not None and self.error.code in INVOCATION_ERROR_CODES

    @property
    def diagnostic(self) -> str:
        return str(self.error) if self.error is not None else ""


@dataclass(frozen=True, slots=True)
class TreeEntry:
    target: str
    binary: str
    relative_path: PurePosixPath
    sha256: str


@dataclass(frozen=True, slots=True)
class DistributionTree:
    """Read-only view of an assembled distribution root."""

    root: Path
    entries: tuple[TreeEntry, ...] = ()

    def has(self, target: str, binary: str) -> bool:
        return any(e.target == target and e.binary == binary for e in self.entries)

    def entry(self, target: str, binary: str) -> TreeEntry:
        for e in self.entries:
            if e.target == target and e.binary == binary:
                return e
        raise KeyError(f"{target}:{binary}")

    def path_for(self, target: str, binary: str) -> Path:
        return self.root / self.entry(target, binary).relative_path

    def entries_for(self, target: str) -> tuple[TreeEntry, ...]:
        return tuple(e for e in self.entries if e.target == target)

    def to_manifest(self) -> dict[str, dict[str, str]]:
        manifest: dict[str, dict[str, str]] = {}
        for e in self.entries:
            manifest[str(e.relative_path)] = {
                "target": e.target,
                "binary": e.binary,
                "sha256": e.sha256,
            }
        return manifest


@dataclass(frozen=True, slots=True)
class EnvironmentContext:
    """Environment inputs read once per run."""

    data_dirs: tuple[str, ...] | None = None

    @property
    def present(self) -> bool:
        return self.data_dirs is not None

    @classmethod
    def from_environ(cls, environ: Mapping[str, str] | None = None) -> Self:
        source = os.environ if environ is None else environ
        raw = source.get(DATA_DIRS_VARIABLE)
        if raw is None or not raw.strip():
            return cls(data_dirs=None)
        return cls(data_dirs=tuple(part for part in raw.split(":") if part))


@dataclass(frozen=True, slots=True)
class DesktopAction:
    kind: Literal["place", "skip"]
    path: PurePosixPath | None = None
    reason: str = ""
    created: bool = False

    @classmethod
    def place(cls, path: PurePosixPath, *, created: bool = False) -> Self:
        return cls(kind="place", path=path, created=created)

    @classmethod
    def skip(cls, reason: str) -> Self:
        return cls(kind="skip", reason=reason)

    @property
    def placed(self) -> bool:
        return self.kind == "place"


@dataclass(frozen=True, slots=True)
class PackageMetadata:
    name: str
    version: str
    maintainer: str
    architecture: str
    description: str = ""
    depends: tuple[str, ...] = ()
    section: str = "misc"


@dataclass(frozen=True, slots=True)
class PackageSpec:
    format: PackageFormat
    target: TargetSpec
    binaries: tuple[BinarySpec, ...]
    metadata: PackageMetadata
    staging_dir: Path
    desktop: DesktopAction = field(default_factory=lambda: DesktopAction.skip("not resolved"))
    source_date_epoch: int = 0
    pkgrel: int = 1


@dataclass(frozen=True, slots=True)
class PackageFile:
    format: PackageFormat
    target: str
    name: str
    path: Path
    sha256: str
