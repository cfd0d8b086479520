"""Aggregate build results into per-target artifacts and ordered failures."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from seance_dist.errors import ArtifactMissing
from seance_dist.models import BuildResult, BuiltArtifact, TargetSpec


@dataclass(frozen=True, slots=True)
class Collection:
    artifacts: dict[str, dict[str, BuiltArtifact]] = field(default_factory=dict)
    failures: tuple[BuildResult, ...] = ()

    def failed_targets(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(result.target.key for result in self.failures))


def collect(
    results: Sequence[BuildResult],
    targets: Iterable[TargetSpec] = (),
) -> Collection:
    """Split *results* into complete targets and failures.

    A target lands on the artifact side only when every one of its results
    succeeded.  Failures keep the order in which *results* were produced.
    Declared *targets* with no results at all are reported as missing so no
    target silently disappears.
    """
    failures: list[BuildResult] = [result for result in results if not result.ok]
    failed_keys = {result.target.key for result in failures}

    artifacts: dict[str, dict[str, BuiltArtifact]] = {}
    for result in results:
        key = result.target.key
        if key in failed_keys or result.artifact is None:
            continue
        artifacts.setdefault(key, {})[result.binary] = result.artifact

    produced = {result.target.key for result in results}
    for target in targets:
        if target.key in produced:
            continue
        for name in target.binaries:
            failures.append(
                BuildResult.failure(
                    target,
                    name,
                    ArtifactMissing(
                        f"No build result was produced for {name} on {target.key}.",
                        context={"operation": "collect", "target": target.key, "binary": name},
                    ),
                )
            )

    return Collection(artifacts=artifacts, failures=tuple(failures))
