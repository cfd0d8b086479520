"""Package format builders."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path

from seance_dist.models import PackageFormat
from seance_dist.runner import CommandRunner

from .arch import ArchPackager
from .base import Packager, prepare_staging, render_desktop_entry, stage_package
from .debian import DebianPackager


def default_packagers(output_dir: Path, runner: CommandRunner) -> Mapping[PackageFormat, Packager]:
    """Return the closed set of package builders keyed by format."""
    return {
        "deb": DebianPackager(output_dir=output_dir, runner=runner),
        "arch": ArchPackager(output_dir=output_dir),
    }


__all__ = [
    "ArchPackager",
    "DebianPackager",
    "Packager",
    "default_packagers",
    "prepare_staging",
    "render_desktop_entry",
    "stage_package",
]
