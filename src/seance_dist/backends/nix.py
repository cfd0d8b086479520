"""Cross-compilation through the workspace Nix flake.

Each (target, binary) pair is built with::

    nix build .#cross-<toolchain> --out-link <work_root>/<os>-<arch>/<binary>/result

from the workspace root.  The flake builds every workspace binary for the
toolchain, so sibling binaries of one target resolve to the same store path
and later invocations are served from the Nix store.  Out-links live in a
target-scoped directory so concurrent targets never collide.

Toolchains that need impure evaluation (Windows cross builds) get
``--impure`` plus the target's build environment.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from seance_dist.backends.base import file_sha256
from seance_dist.catalog import KNOWN_TOOLCHAINS, binary
from seance_dist.errors import (
    ArtifactMissing,
    BuildFailed,
    DistError,
    ExternalToolUnavailable,
    ValidationError,
)
from seance_dist.models import BuildResult, TargetSpec
from seance_dist.runner import CommandRunner, SubprocessRunner


@dataclass(slots=True)
class NixCrossBackend:
    """Runs ``nix build`` per target toolchain and verifies the promised artifact."""

    workspace_root: Path
    work_root: Path
    runner: CommandRunner = field(default_factory=SubprocessRunner)
    name: str = "nix"
    tool: str = "nix"
    nix_args: list[str] = field(default_factory=list)

    def ensure_available(self) -> None:
        if self.runner.which(self.tool) is None:
            raise ExternalToolUnavailable(
                f"The build tool `{self.tool}` is not in PATH.",
                hint="Install Nix with flakes enabled: https://nixos.org/download.html",
                context={"backend": self.name, "operation": "ensure_available"},
            )

    def out_link(self, target: TargetSpec, binary_name: str) -> Path:
        return self.work_root / target.slug / binary_name / "result"

    def command(self, target: TargetSpec, binary_name: str) -> list[str]:
        cmd = [self.tool, "build"]
        if target.impure:
            cmd.append("--impure")
        cmd.extend(
            [
                f".#cross-{target.toolchain}",
                "--out-link",
                str(self.out_link(target, binary_name)),
                *self.nix_args,
            ]
        )
        return cmd

    def build(self, target: TargetSpec, binary: str) -> BuildResult:
        try:
            return self._build(target, binary)
        except DistError as exc:
            return BuildResult.failure(target, binary, exc)

    def _build(self, target: TargetSpec, binary_name: str) -> BuildResult:
        context = {
            "backend": self.name,
            "operation": "build",
            "target": target.key,
            "binary": binary_name,
        }
        if target.toolchain not in KNOWN_TOOLCHAINS:
            raise ValidationError(
                f"Malformed or unknown toolchain identifier `{target.toolchain}`.",
                hint="Use one of the flake's cross targets.",
                context=context,
            )
        spec = binary(binary_name)

        link = self.out_link(target, binary_name)
        try:
            link.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise BuildFailed(
                f"Could not prepare the out-link directory for {target.key}.",
                hint="Check that the work directory is writable.",
                context={**context, "out_link": str(link), "error": str(exc)},
            ) from exc
        cmd = self.command(target, binary_name)
        result = self.runner.run(
            cmd,
            cwd=self.workspace_root,
            env=dict(target.build_env) or None,
        )

        if not result.launched:
            raise ExternalToolUnavailable(
                f"Could not launch `{self.tool}` for {target.key}.",
                hint="Check that nix is installed and runnable on the build host.",
                context={**context, "stderr": result.diagnostic()},
            )
        if result.returncode != 0:
            raise BuildFailed(
                f"nix build failed for {spec.name} on {target.key}.",
                hint="Check the nix build log for details.",
                context={
                    **context,
                    "command": " ".join(cmd),
                    "returncode": str(result.returncode),
                    "stderr": result.diagnostic(),
                },
            )

        artifact = link / "bin" / spec.built_name(target.os)
        if not artifact.is_file():
            raise ArtifactMissing(
                f"nix build succeeded but `{artifact}` does not exist.",
                hint="Check that the flake builds this binary for the target.",
                context={**context, "expected": str(artifact)},
            )
        try:
            digest = file_sha256(artifact)
        except OSError as exc:
            raise ArtifactMissing(
                f"Could not read `{artifact}` after the build.",
                context={**context, "expected": str(artifact), "error": str(exc)},
            ) from exc
        return BuildResult.success(target, binary_name, path=artifact, sha256=digest)
