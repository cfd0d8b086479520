"""Shared test fixtures."""

from __future__ import annotations

import hashlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

import pytest

from seance_dist.catalog import BINARIES
from seance_dist.config import DistConfig
from seance_dist.models import EnvironmentContext, PackageDecl, TargetSpec
from seance_dist.observability import StructuredLogger
from seance_dist.orchestrator import Orchestrator
from seance_dist.runner import CommandResult

FailureMode = Literal["exit", "launch", "missing"]


@dataclass
class FakeRunner:
    """Simulates `nix build` and `dpkg-deb` deterministically."""

    tools: set[str] = field(default_factory=lambda: {"nix", "dpkg-deb"})
    nix_failures: dict[str, FailureMode] = field(default_factory=dict)
    dpkg_fails: bool = False
    calls: list[tuple[tuple[str, ...], Path, dict[str, str]]] = field(default_factory=list)

    def which(self, tool: str) -> str | None:
        return f"/usr/bin/{tool}" if tool in self.tools else None

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        command = tuple(argv)
        self.calls.append((command, cwd, dict(env or {})))
        if command[0] not in self.tools:
            return CommandResult(
                argv=command,
                returncode=None,
                launch_error=f"Failed to launch `{command[0]}`: No such file or directory",
            )
        if command[0] == "nix":
            return self._nix(command)
        if command[0] == "dpkg-deb":
            return self._dpkg_deb(command)
        return CommandResult(argv=command, returncode=127, stderr="unknown tool")

    def nix_calls(self) -> list[tuple[str, ...]]:
        return [call[0] for call in self.calls if call[0][0] == "nix"]

    def _nix(self, command: tuple[str, ...]) -> CommandResult:
        flake_ref = next(arg for arg in command if arg.startswith(".#cross-"))
        toolchain = flake_ref.removeprefix(".#cross-")
        out_link = Path(command[command.index("--out-link") + 1])
        mode = self.nix_failures.get(toolchain)
        if mode == "launch":
            return CommandResult(
                argv=command,
                returncode=None,
                launch_error="Failed to launch `nix`: Permission denied",
            )
        if mode == "exit":
            return CommandResult(
                argv=command,
                returncode=1,
                stderr=f"error: builder for cross-{toolchain} failed with exit code 101",
            )
        if mode == "missing":
            return CommandResult(argv=command, returncode=0)

        bin_dir = out_link / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        suffix = ".exe" if toolchain.endswith("windows") else ""
        for spec in BINARIES.values():
            (bin_dir / f"{spec.crate}{suffix}").write_bytes(
                f"{spec.crate} built for {toolchain}\n".encode()
            )
        return CommandResult(argv=command, returncode=0, stdout=str(out_link))

    def _dpkg_deb(self, command: tuple[str, ...]) -> CommandResult:
        if self.dpkg_fails:
            return CommandResult(
                argv=command,
                returncode=2,
                stderr="dpkg-deb: error: control directory has bad permissions",
            )
        staging = Path(command[-2])
        destination = Path(command[-1])
        lines = ["!<arch>"]
        for path in sorted(p for p in staging.rglob("*") if p.is_file()):
            digest = hashlib.sha256(path.read_bytes()).hexdigest()
            lines.append(f"{path.relative_to(staging).as_posix()} {digest}")
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return CommandResult(argv=command, returncode=0)


def scenario_targets() -> tuple[TargetSpec, ...]:
    """Two-target catalog: seance on x86_64, planchette on armv6l."""
    return (
        TargetSpec(
            os="linux",
            arch="x86_64",
            toolchain="x86_64-linux",
            binaries=("seance",),
            packages=(
                PackageDecl(
                    name="seance",
                    format="deb",
                    binaries=("seance",),
                    description=BINARIES["seance"].description,
                    depends=("libgl1",),
                ),
            ),
        ),
        TargetSpec(
            os="linux",
            arch="armv6l",
            toolchain="armv6l-linux",
            binaries=("planchette",),
            packages=(
                PackageDecl(
                    name="planchette",
                    format="deb",
                    binaries=("planchette",),
                    depends=("cups",),
                ),
            ),
        ),
    )


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


def seed_workspace(root: Path) -> Path:
    """Create a workspace with a flake and the planchette Debian skeleton."""
    root.mkdir(parents=True, exist_ok=True)
    (root / "flake.nix").write_text("{ }\n", encoding="utf-8")
    unit = root / "planchette-deb" / "lib" / "systemd" / "system" / "planchette.service"
    unit.parent.mkdir(parents=True)
    unit.write_text("[Service]\nExecStart=/usr/bin/planchette\n", encoding="utf-8")
    return root


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    return seed_workspace(tmp_path / "workspace")


@pytest.fixture
def make_orchestrator(workspace: Path, fake_runner: FakeRunner):
    def factory(
        *,
        catalog: Sequence[TargetSpec] | None = None,
        environment: EnvironmentContext | None = None,
        runner: FakeRunner | None = None,
        config: DistConfig | None = None,
    ) -> Orchestrator:
        return Orchestrator(
            workspace_root=workspace,
            config=config or DistConfig(jobs=2),
            catalog=scenario_targets() if catalog is None else catalog,
            runner=runner or fake_runner,
            environment=environment or EnvironmentContext(data_dirs=None),
            logger=StructuredLogger(),
        )

    return factory
