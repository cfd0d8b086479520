"""Debian-style ``.deb`` packages built with ``dpkg-deb``."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from seance_dist.errors import ExternalToolUnavailable, PackagingFailed
from seance_dist.models import DistributionTree, PackageFile, PackageFormat, PackageMetadata, PackageSpec
from seance_dist.packagers.base import DATA_MODE, package_digest, stage_package, tree_size
from seance_dist.runner import CommandRunner, SubprocessRunner

CONTROL_DIR = "DEBIAN"


def render_control(metadata: PackageMetadata, *, installed_size_kib: int | None = None) -> str:
    lines = [
        f"Package: {metadata.name}",
        f"Version: {metadata.version}",
        f"Architecture: {metadata.architecture}",
        f"Maintainer: {metadata.maintainer}",
    ]
    if installed_size_kib is not None:
        lines.append(f"Installed-Size: {installed_size_kib}")
    if metadata.depends:
        lines.append(f"Depends: {', '.join(metadata.depends)}")
    lines.append(f"Section: {metadata.section}")
    lines.append("Priority: optional")
    lines.append(f"Description: {metadata.description or metadata.name}")
    return "\n".join(lines) + "\n"


def deb_filename(metadata: PackageMetadata) -> str:
    return f"{metadata.name}_{metadata.version}_{metadata.architecture}.deb"


def write_control(spec: PackageSpec) -> Path:
    """Write ``DEBIAN/control`` into the staging tree, sized from what is staged."""
    staging = spec.staging_dir
    control_dir = staging / CONTROL_DIR
    control_dir.mkdir(parents=True, exist_ok=True)
    control_dir.chmod(0o755)
    installed_size = (tree_size(staging, exclude=(CONTROL_DIR,)) + 1023) // 1024
    control_path = control_dir / "control"
    control_path.write_text(
        render_control(spec.metadata, installed_size_kib=installed_size),
        encoding="utf-8",
    )
    control_path.chmod(DATA_MODE)
    return control_path


@dataclass(slots=True)
class DebianPackager:
    output_dir: Path
    runner: CommandRunner = field(default_factory=SubprocessRunner)
    format: PackageFormat = "deb"
    tool: str = "dpkg-deb"

    def ensure_available(self) -> None:
        if self.runner.which(self.tool) is None:
            raise ExternalToolUnavailable(
                f"`{self.tool}` is required to build Debian packages.",
                hint="Install dpkg (it ships dpkg-deb) or enter the workspace dev shell.",
                context={"packager": self.format, "operation": "ensure_available"},
            )

    def build(self, spec: PackageSpec, tree: DistributionTree) -> PackageFile:
        self.ensure_available()
        stage_package(spec, tree)

        staging = spec.staging_dir
        destination = self.output_dir / "debian" / deb_filename(spec.metadata)
        context = {
            "packager": self.format,
            "operation": "build",
            "target": spec.target.key,
            "package": spec.metadata.name,
        }
        try:
            write_control(spec)
            destination.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PackagingFailed(
                f"Could not prepare the Debian package for {spec.metadata.name}.",
                context={**context, "destination": str(destination), "error": str(exc)},
            ) from exc

        cmd = [self.tool, "--root-owner-group", "--build", str(staging), str(destination)]
        context["command"] = " ".join(cmd)
        result = self.runner.run(
            cmd,
            cwd=staging.parent,
            env={"SOURCE_DATE_EPOCH": str(spec.source_date_epoch)},
        )
        if not result.launched:
            raise ExternalToolUnavailable(
                f"Could not launch `{self.tool}`.",
                context={**context, "stderr": result.diagnostic()},
            )
        if result.returncode != 0:
            raise PackagingFailed(
                f"{self.tool} failed for {spec.metadata.name} on {spec.target.key}.",
                hint="Check the control file and staging tree permissions.",
                context={
                    **context,
                    "returncode": str(result.returncode),
                    "stderr": result.diagnostic(),
                },
            )
        if not destination.is_file():
            raise PackagingFailed(
                f"{self.tool} reported success but produced no package.",
                context={**context, "expected": str(destination)},
            )
        return PackageFile(
            format=self.format,
            target=spec.target.key,
            name=spec.metadata.name,
            path=destination,
            sha256=package_digest(destination, context),
        )
