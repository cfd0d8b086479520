"""Packager protocol and the staging tree shared by every package format."""

from __future__ import annotations

import shutil
from collections.abc import Mapping
from pathlib import Path, PurePosixPath
from typing import Protocol

from seance_dist.backends.base import file_sha256
from seance_dist.desktop import staged
from seance_dist.errors import PackagingFailed
from seance_dist.models import BinarySpec, DistributionTree, PackageFile, PackageFormat, PackageSpec

BIN_DIR = PurePosixPath("/usr/bin")
BINARY_MODE = 0o755
DATA_MODE = 0o644


class Packager(Protocol):
    format: PackageFormat

    def ensure_available(self) -> None:
        """Raise ExternalToolUnavailable when this format cannot be produced on this host."""

    def build(self, spec: PackageSpec, tree: DistributionTree) -> PackageFile:
        """Wrap the package's binaries into one installable package file."""


def render_desktop_entry(binary: BinarySpec) -> str:
    lines = [
        "[Desktop Entry]",
        "Type=Application",
        f"Name={binary.launcher or binary.name}",
        f"Comment={binary.description}" if binary.description else "",
        f"Exec={BIN_DIR / binary.name} %F",
        "Terminal=false",
        "Categories=Graphics;Engineering;",
    ]
    return "\n".join(line for line in lines if line) + "\n"


def stage_package(spec: PackageSpec, tree: DistributionTree) -> list[PurePosixPath]:
    """Populate ``spec.staging_dir`` with the install-path tree and return what was placed.

    The staging directory may already exist: :func:`prepare_staging` seeds it
    from a skeleton and the desktop resolver may have created the launcher
    directory in it.
    """
    staging = spec.staging_dir
    context = {"operation": "stage", "target": spec.target.key, "package": spec.metadata.name}
    placed: list[PurePosixPath] = []
    try:
        staging.mkdir(parents=True, exist_ok=True)

        for binary in spec.binaries:
            if not tree.has(spec.target.key, binary.name):
                raise PackagingFailed(
                    f"`{binary.name}` is not in the distribution tree.",
                    hint="The binary failed to build or assemble for this target.",
                    context=context,
                )
            install_path = BIN_DIR / binary.name
            destination = staged(staging, install_path)
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(tree.path_for(spec.target.key, binary.name), destination)
            destination.chmod(BINARY_MODE)
            placed.append(install_path)

        if spec.desktop.placed and spec.desktop.path is not None:
            for binary in spec.binaries:
                if binary.launcher is None:
                    continue
                install_path = spec.desktop.path / f"{binary.name}.desktop"
                destination = staged(staging, install_path)
                destination.parent.mkdir(parents=True, exist_ok=True)
                destination.write_text(render_desktop_entry(binary), encoding="utf-8")
                destination.chmod(DATA_MODE)
                placed.append(install_path)
    except OSError as exc:
        raise PackagingFailed(
            "Could not stage the package tree.",
            context={**context, "staging_dir": str(staging), "error": str(exc)},
        ) from exc
    return placed


def tree_size(root: Path, *, exclude: tuple[str, ...] = ()) -> int:
    total = 0
    for path in root.rglob("*"):
        relative = path.relative_to(root)
        if relative.parts and relative.parts[0] in exclude:
            continue
        if path.is_file() and not path.is_symlink():
            total += path.stat().st_size
    return total


def prepare_staging(staging_dir: Path, skeleton: Path | None = None) -> Path:
    """Recreate *staging_dir* empty, seeded from *skeleton*, which must exist when given."""
    if skeleton is not None and not skeleton.is_dir():
        raise PackagingFailed(
            "Declared package skeleton directory does not exist.",
            hint="Run from the workspace root or fix the skeleton path in the catalog.",
            context={"operation": "prepare_staging", "skeleton": str(skeleton)},
        )
    try:
        if staging_dir.exists():
            shutil.rmtree(staging_dir)
        staging_dir.mkdir(parents=True)
        if skeleton is not None:
            shutil.copytree(skeleton, staging_dir, dirs_exist_ok=True)
    except OSError as exc:
        raise PackagingFailed(
            "Could not prepare the staging directory.",
            context={
                "operation": "prepare_staging",
                "staging_dir": str(staging_dir),
                "error": str(exc),
            },
        ) from exc
    return staging_dir


def package_digest(path: Path, context: Mapping[str, str]) -> str:
    try:
        return file_sha256(path)
    except OSError as exc:
        raise PackagingFailed(
            "Could not checksum the finished package.",
            context={**context, "path": str(path), "error": str(exc)},
        ) from exc
