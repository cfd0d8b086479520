"""External command execution with a uniform, non-raising contract."""

from __future__ import annotations

import os
import shutil
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

DIAGNOSTIC_LIMIT = 2000


@dataclass(frozen=True, slots=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int | None
    stdout: str = ""
    stderr: str = ""
    launch_error: str | None = None

    @property
    def launched(self) -> bool:
        return self.launch_error is None

    @property
    def ok(self) -> bool:
        return self.launched and self.returncode == 0

    def diagnostic(self, limit: int = DIAGNOSTIC_LIMIT) -> str:
        """Return the tail of the most useful output stream."""
        if self.launch_error is not None:
            return self.launch_error
        text = self.stderr.strip() or self.stdout.strip()
        return text[-limit:]


class CommandRunner(Protocol):
    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        """Run *argv* to completion and capture its output. Never raises."""

    def which(self, tool: str) -> str | None:
        """Return the resolved path of *tool*, or None when it is not on PATH."""


@dataclass(slots=True)
class SubprocessRunner:
    """Runs commands on the build host via ``subprocess``."""

    def run(
        self,
        argv: Sequence[str],
        *,
        cwd: Path,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        command = tuple(argv)
        merged_env = None
        if env:
            merged_env = dict(os.environ)
            merged_env.update(env)
        try:
            completed = subprocess.run(
                command,
                cwd=str(cwd),
                env=merged_env,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as exc:
            return CommandResult(
                argv=command,
                returncode=None,
                launch_error=f"Failed to launch `{command[0]}`: {exc}",
            )
        return CommandResult(
            argv=command,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )

    def which(self, tool: str) -> str | None:
        return shutil.which(tool)
