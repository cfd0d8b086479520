"""Lay collected artifacts out into the canonical distribution tree."""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from seance_dist.backends.base import file_sha256
from seance_dist.catalog import binary
from seance_dist.errors import ArtifactMissing, AssemblyConflict, DistError
from seance_dist.models import BuiltArtifact, DistributionTree, TargetSpec, TreeEntry

BINARY_MODE = 0o755


@dataclass(frozen=True, slots=True)
class AssemblyFailure:
    target: str
    binary: str
    error: DistError


@dataclass(frozen=True, slots=True)
class Assembly:
    tree: DistributionTree
    failures: tuple[AssemblyFailure, ...] = ()

    def failed_targets(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(failure.target for failure in self.failures))


def canonical_path(target: TargetSpec, binary_name: str) -> PurePosixPath:
    return PurePosixPath(target.os, target.arch, binary(binary_name).dist_name(target.os))


def assemble(
    root: Path,
    artifacts: Mapping[str, Mapping[str, BuiltArtifact]],
    targets: Iterable[TargetSpec],
) -> Assembly:
    """Place every collected artifact at ``<os>/<arch>/<binary>`` under *root*.

    Re-running against an existing root leaves identical files untouched and
    fails loudly on different bytes.  Failures are scoped to one (target,
    binary) pair.
    """
    try:
        root.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise AssemblyConflict(
            "Could not create the distribution root.",
            hint="Check that the output directory is writable and not a file.",
            context={"operation": "assemble", "root": str(root), "error": str(exc)},
        ) from exc
    entries: list[TreeEntry] = []
    failures: list[AssemblyFailure] = []

    for target in targets:
        built = artifacts.get(target.key)
        if not built:
            continue
        for name in target.binaries:
            artifact = built.get(name)
            if artifact is None:
                continue
            relative = canonical_path(target, name)
            try:
                _place(artifact, root / relative, target=target.key, binary_name=name)
            except DistError as exc:
                failures.append(AssemblyFailure(target=target.key, binary=name, error=exc))
                continue
            entries.append(
                TreeEntry(
                    target=target.key,
                    binary=name,
                    relative_path=relative,
                    sha256=artifact.sha256,
                )
            )

    return Assembly(
        tree=DistributionTree(root=root, entries=tuple(entries)),
        failures=tuple(failures),
    )


def _place(artifact: BuiltArtifact, destination: Path, *, target: str, binary_name: str) -> None:
    context = {
        "operation": "assemble",
        "target": target,
        "binary": binary_name,
        "source": str(artifact.path),
        "destination": str(destination),
    }
    try:
        source_digest = file_sha256(artifact.path)
    except OSError as exc:
        raise ArtifactMissing(
            "Built artifact disappeared before assembly.",
            context={**context, "error": str(exc)},
        ) from exc
    if source_digest != artifact.sha256:
        raise ArtifactMissing(
            "Built artifact failed checksum re-verification.",
            hint="The build output changed after the build finished; rebuild the target.",
            context={**context, "expected": artifact.sha256, "actual": source_digest},
        )

    if destination.exists():
        try:
            existing_digest = file_sha256(destination)
        except OSError as exc:
            raise AssemblyConflict(
                "Could not read the file already at this path.",
                context={**context, "error": str(exc)},
            ) from exc
        if existing_digest != artifact.sha256:
            raise AssemblyConflict(
                "Distribution tree already holds a different artifact at this path.",
                hint="Remove the stale distribution root or the conflicting file and re-run.",
                context={**context, "expected": artifact.sha256, "existing": existing_digest},
            )
        try:
            if destination.stat().st_mode & 0o777 != BINARY_MODE:
                destination.chmod(BINARY_MODE)
        except OSError as exc:
            raise AssemblyConflict(
                "Could not fix the mode of the file already at this path.",
                context={**context, "error": str(exc)},
            ) from exc
        return

    try:
        destination.parent.mkdir(parents=True, exist_ok=True)
        # Copy into a sibling temp file and rename so a partial copy never lands.
        fd, temp_name = tempfile.mkstemp(prefix=f".{destination.name}.", dir=destination.parent)
    except OSError as exc:
        raise AssemblyConflict(
            "Could not create the target directory in the distribution tree.",
            context={**context, "error": str(exc)},
        ) from exc
    os.close(fd)
    temp_path = Path(temp_name)
    try:
        shutil.copyfile(artifact.path, temp_path)
        temp_path.chmod(BINARY_MODE)
        temp_path.replace(destination)
    except OSError as exc:
        raise AssemblyConflict(
            "Could not write the artifact into the distribution tree.",
            context={**context, "error": str(exc)},
        ) from exc
    finally:
        temp_path.unlink(missing_ok=True)
