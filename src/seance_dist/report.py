"""Run report: every phase outcome for every target in one run."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from seance_dist.errors import DistError
from seance_dist.models import DriverState, OutcomeStatus

RunStatus = Literal["success", "partial", "aborted"]

INTEGRATION_SKIPPED = "I_INTEGRATION_SKIPPED"
RUN_SCOPE = "*"

EXIT_CODES: dict[RunStatus, int] = {"success": 0, "partial": 1, "aborted": 2}


@dataclass(frozen=True, slots=True)
class Outcome:
    target: str
    phase: DriverState
    subject: str
    status: OutcomeStatus
    code: str = ""
    detail: str = ""
    context: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        return {
            "context": dict(self.context),
            "target": self.target,
            "phase": self.phase.value,
            "subject": self.subject,
            "status": self.status,
            "code": self.code,
            "detail": self.detail,
        }


@dataclass(slots=True)
class RunReport:
    """Append-only record owned by the orchestrator thread."""

    outcomes: list[Outcome] = field(default_factory=list)
    artifacts: dict[str, dict[str, str]] = field(default_factory=dict)
    packages: dict[str, str] = field(default_factory=dict)
    aborted: bool = False
    finalized: bool = False

    def record(
        self,
        *,
        target: str,
        phase: DriverState,
        subject: str,
        status: OutcomeStatus,
        code: str = "",
        detail: str = "",
        context: dict[str, str] | None = None,
    ) -> Outcome:
        if self.finalized:
            raise RuntimeError("RunReport is finalized; no further outcomes may be recorded.")
        outcome = Outcome(
            target=target,
            phase=phase,
            subject=subject,
            status=status,
            code=code,
            detail=detail,
            context=dict(context or {}),
        )
        self.outcomes.append(outcome)
        return outcome

    def record_error(
        self,
        *,
        target: str,
        phase: DriverState,
        subject: str,
        error: DistError,
        status: OutcomeStatus = "failed",
    ) -> Outcome:
        return self.record(
            target=target,
            phase=phase,
            subject=subject,
            status=status,
            code=error.code,
            detail=_detail(error),
            context=dict(error.context),
        )

    def abort(self, error: DistError, *, phase: DriverState) -> None:
        self.record_error(target=RUN_SCOPE, phase=phase, subject="run", error=error)
        self.aborted = True

    def finalize(self) -> None:
        self.finalized = True

    def failures(self) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if outcome.status == "failed"]

    def failures_for(self, target: str) -> list[Outcome]:
        return [outcome for outcome in self.failures() if outcome.target == target]

    def outcomes_for(self, target: str) -> list[Outcome]:
        return [outcome for outcome in self.outcomes if outcome.target == target]

    def failed_targets(self) -> list[str]:
        return list(dict.fromkeys(outcome.target for outcome in self.failures()))

    @property
    def status(self) -> RunStatus:
        if self.aborted:
            return "aborted"
        if any(outcome.status in ("failed", "skipped") for outcome in self.outcomes):
            return "partial"
        return "success"

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.status]

    def render(self) -> str:
        headers = ("TARGET", "PHASE", "SUBJECT", "OUTCOME", "DETAIL")
        rows = [
            (
                outcome.target,
                outcome.phase.value,
                outcome.subject,
                outcome.status if not outcome.code else f"{outcome.status} ({outcome.code})",
                outcome.detail,
            )
            for outcome in self.outcomes
        ]
        widths = [
            max([len(headers[index])] + [len(row[index]) for row in rows])
            for index in range(len(headers) - 1)
        ]

        def line(cells: tuple[str, ...]) -> str:
            padded = [cell.ljust(width) for cell, width in zip(cells, widths, strict=False)]
            return "  ".join([*padded, cells[-1]]).rstrip()

        lines = [line(headers), line(tuple("-" * width for width in widths) + ("-" * 6,))]
        lines.extend(line(row) for row in rows)
        failures = self.failures()
        lines.append("")
        lines.append(
            f"Run {self.status}: {len(self.outcomes)} outcome(s), {len(failures)} failure(s)."
        )
        return "\n".join(lines)

    def to_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "exit_code": self.exit_code,
            "outcomes": [outcome.to_dict() for outcome in self.outcomes],
            "artifacts": self.artifacts,
            "packages": dict(sorted(self.packages.items())),
        }

    def write_json(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(
            json.dumps(self.to_dict(), indent=2, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        return output_path


def _detail(error: DistError) -> str:
    """Message plus the last line of the underlying diagnostic, if any."""
    detail = error.message.strip()
    diagnostic = error.context.get("stderr", "").strip()
    if diagnostic:
        detail = f"{detail} {diagnostic.splitlines()[-1]}"
    return detail
