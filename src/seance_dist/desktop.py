"""Decide where a package's desktop launcher goes, if anywhere."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path, PurePosixPath

from seance_dist.catalog import FamilyConvention
from seance_dist.models import DATA_DIRS_VARIABLE, DesktopAction, EnvironmentContext

APPLICATIONS_DIR = "applications"


def conforming(data_dir: str, permitted: Iterable[str]) -> PurePosixPath | None:
    """Return *data_dir* as an install path when the family may ship files there.

    Build hosts often list store or ``/usr/local`` prefixes first; those are
    host-specific and never become package paths.
    """
    path = PurePosixPath(data_dir)
    if not path.is_absolute() or ".." in path.parts:
        return None
    if path not in {PurePosixPath(entry) for entry in permitted}:
        return None
    return path


def staged(staging_root: Path, install_path: PurePosixPath) -> Path:
    return staging_root.joinpath(*install_path.parts[1:])


def resolve(
    env: EnvironmentContext,
    family: FamilyConvention,
    *,
    staging_root: Path,
) -> DesktopAction:
    """Pick the launcher directory for a package staged under *staging_root*.

    Data directories are install paths on the target system and map onto the
    staging root.  Only entries in the family's permitted data directories are
    considered.  The first one whose ``applications`` subdirectory is already
    staged wins; when it is missing, it is created only if the family's
    conventions allow it.  With no data directory list, integration is
    skipped rather than defaulted.
    """
    if env.data_dirs is None:
        return DesktopAction.skip(f"{DATA_DIRS_VARIABLE} is not set")

    candidates = [
        path
        for path in (conforming(entry, family.data_dirs) for entry in env.data_dirs)
        if path is not None
    ]
    if not candidates:
        return DesktopAction.skip(
            f"{DATA_DIRS_VARIABLE} lists none of the {family.name} data directories "
            f"({', '.join(family.data_dirs)})"
        )

    for data_dir in candidates:
        install_path = data_dir / APPLICATIONS_DIR
        host_path = staged(staging_root, install_path)
        if host_path.is_dir():
            return DesktopAction.place(install_path)
        if family.create_applications_dir:
            host_path.mkdir(parents=True, exist_ok=True)
            return DesktopAction.place(install_path, created=True)

    return DesktopAction.skip(
        f"no `{APPLICATIONS_DIR}` directory is staged and {family.name} "
        "packages do not create one"
    )
