"""Driver log: structured records kept in memory, with optional live echo.

``nix build`` invocations can run for a long time without output, so the
driver can echo phase changes, build submissions and failures to a stream
(stderr from the CLI) while the full record set is written as JSON lines at
the end of the run.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Literal, TextIO

from seance_dist.models import DriverState

Level = Literal["info", "warning", "error"]

# Info-level operations worth echoing; warnings and errors are always echoed.
PROGRESS_OPERATIONS = frozenset({"phase_enter", "build_start", "build_complete", "package_built"})


@dataclass(slots=True)
class StructuredLogger:
    echo: TextIO | None = None
    records: list[dict[str, Any]] = field(default_factory=list)

    def log(
        self,
        *,
        operation: str,
        target: str | None,
        phase: DriverState | None,
        subject: str | None,
        message: str,
        level: Level = "info",
        extra: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        record: dict[str, Any] = {
            "level": level,
            "operation": operation,
            "target": target,
            "phase": phase.value if phase is not None else None,
            "subject": subject,
            "message": message,
        }
        if extra is not None:
            record["extra"] = extra
        self.records.append(record)
        if self.echo is not None and (level != "info" or operation in PROGRESS_OPERATIONS):
            print(format_record(record), file=self.echo, flush=True)
        return record

    def records_for_target(self, target: str) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("target") == target]

    def records_for_phase(self, phase: DriverState) -> list[dict[str, Any]]:
        return [record for record in self.records if record.get("phase") == phase.value]

    def problems(self) -> list[dict[str, Any]]:
        """Warning and error records, in the order they were logged."""
        return [record for record in self.records if record["level"] != "info"]

    def to_json_lines(self, path: str | Path) -> Path:
        output_path = Path(path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        lines = [json.dumps(record, sort_keys=True) for record in self.records]
        output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return output_path


def format_record(record: dict[str, Any]) -> str:
    """One-line human rendering, e.g. ``[Building] linux/armv6l planchette: Build submitted.``"""
    scope = " ".join(part for part in (record.get("target"), record.get("subject")) if part)
    prefix = f"[{record['phase']}]" if record.get("phase") else "[run]"
    if record["level"] != "info":
        prefix = f"{prefix} {record['level'].upper()}"
    head = f"{prefix} {scope}" if scope else prefix
    return f"{head}: {record['message']}"
