"""Protocol for cross-build backends."""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Protocol

from seance_dist.models import BuildResult, TargetSpec

CHUNK_SIZE = 1 << 20


class BuildBackend(Protocol):
    name: str

    def ensure_available(self) -> None:
        """Raise ExternalToolUnavailable when the build tool cannot be launched."""

    def build(self, target: TargetSpec, binary: str) -> BuildResult:
        """Build one binary for one target. Per-build faults are returned, not raised."""


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()
