"""Arch-style ``.pkg.tar.xz`` packages written in-process."""

from __future__ import annotations

import tarfile
from dataclasses import dataclass
from pathlib import Path

from seance_dist.errors import PackagingFailed
from seance_dist.models import DistributionTree, PackageFile, PackageFormat, PackageSpec
from seance_dist.packagers.base import DATA_MODE, package_digest, stage_package, tree_size

PKGINFO = ".PKGINFO"


def render_pkginfo(spec: PackageSpec, *, size: int) -> str:
    metadata = spec.metadata
    lines = [
        "# Generated by seance-dist",
        f"pkgname = {metadata.name}",
        f"pkgbase = {metadata.name}",
        f"pkgver = {metadata.version}-{spec.pkgrel}",
        f"pkgdesc = {metadata.description or metadata.name}",
        f"builddate = {spec.source_date_epoch}",
        f"packager = {metadata.maintainer}",
        f"size = {size}",
        f"arch = {metadata.architecture}",
    ]
    lines.extend(f"depend = {dep}" for dep in metadata.depends)
    return "\n".join(lines) + "\n"


def package_filename(spec: PackageSpec) -> str:
    metadata = spec.metadata
    return f"{metadata.name}-{metadata.version}-{spec.pkgrel}-{metadata.architecture}.pkg.tar.xz"


@dataclass(slots=True)
class ArchPackager:
    output_dir: Path
    format: PackageFormat = "arch"

    def ensure_available(self) -> None:
        # tarfile and lzma ship with the interpreter.
        return None

    def build(self, spec: PackageSpec, tree: DistributionTree) -> PackageFile:
        stage_package(spec, tree)
        staging = spec.staging_dir
        context = {
            "packager": self.format,
            "operation": "build",
            "target": spec.target.key,
            "package": spec.metadata.name,
        }

        destination = self.output_dir / "arch" / package_filename(spec)
        partial = destination.with_name(destination.name + ".part")
        try:
            pkginfo_path = staging / PKGINFO
            pkginfo_path.write_text(
                render_pkginfo(spec, size=tree_size(staging, exclude=(PKGINFO,))),
                encoding="utf-8",
            )
            pkginfo_path.chmod(DATA_MODE)
            destination.parent.mkdir(parents=True, exist_ok=True)
            self._write_archive(staging, partial, mtime=spec.source_date_epoch)
            partial.replace(destination)
        except (OSError, tarfile.TarError) as exc:
            raise PackagingFailed(
                f"Could not write the Arch package for {spec.metadata.name}.",
                context={**context, "destination": str(destination), "error": str(exc)},
            ) from exc
        finally:
            if partial.exists():
                partial.unlink()

        return PackageFile(
            format=self.format,
            target=spec.target.key,
            name=spec.metadata.name,
            path=destination,
            sha256=package_digest(destination, context),
        )

    @staticmethod
    def _write_archive(staging: Path, destination: Path, *, mtime: int) -> None:
        def normalize(info: tarfile.TarInfo) -> tarfile.TarInfo:
            info.uid = info.gid = 0
            info.uname = info.gname = "root"
            info.mtime = mtime
            return info

        members = sorted(
            (path for path in staging.rglob("*") if path.name != PKGINFO or path.parent != staging),
            key=lambda path: path.relative_to(staging).as_posix(),
        )
        with tarfile.open(destination, "w:xz", format=tarfile.PAX_FORMAT) as tar:
            tar.add(staging / PKGINFO, arcname=PKGINFO, recursive=False, filter=normalize)
            for path in members:
                tar.add(
                    path,
                    arcname=path.relative_to(staging).as_posix(),
                    recursive=False,
                    filter=normalize,
                )
