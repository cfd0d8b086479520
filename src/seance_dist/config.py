"""Run configuration: defaults, optional JSON file, and environment overrides."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

from seance_dist.errors import ConfigError

CONFIG_FILENAME = "seance-dist.json"
DEFAULT_OUTPUT_DIR = "seance-distribution"
DEFAULT_WORK_DIR = ".seance-build"


@dataclass(frozen=True, slots=True)
class DistConfig:
    version: str = "0.1.0"
    maintainer: str = "Seance Maintainers <seance@localhost>"
    output_dir: str = DEFAULT_OUTPUT_DIR
    work_dir: str = DEFAULT_WORK_DIR
    jobs: int = 2
    source_date_epoch: int = 0
    pkgrel: int = 1

    def __post_init__(self) -> None:
        if self.jobs < 1:
            raise ConfigError(
                "`jobs` must be at least 1.",
                context={"field": "jobs", "value": str(self.jobs)},
            )
        if self.pkgrel < 1:
            raise ConfigError(
                "`pkgrel` must be at least 1.",
                context={"field": "pkgrel", "value": str(self.pkgrel)},
            )
        if self.source_date_epoch < 0:
            raise ConfigError(
                "`source_date_epoch` must not be negative.",
                context={"field": "source_date_epoch", "value": str(self.source_date_epoch)},
            )
        if not self.version or any(ch.isspace() for ch in self.version):
            raise ConfigError(
                "`version` must be a non-empty string without whitespace.",
                context={"field": "version", "value": self.version},
            )

    def output_root(self, workspace_root: Path) -> Path:
        return _resolve(workspace_root, self.output_dir)

    def work_root(self, workspace_root: Path) -> Path:
        return _resolve(workspace_root, self.work_dir)


def load_config(
    workspace_root: Path,
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> DistConfig:
    """Build a config from defaults, ``seance-dist.json``, the environment and *overrides*.

    An explicit *path* must exist; the default file is optional.
    """
    config_path = _resolve(workspace_root, path) if path is not None else None
    default_path = workspace_root / CONFIG_FILENAME
    values: dict[str, Any] = {}
    if config_path is not None:
        values.update(_read_config_file(config_path, required=True))
    elif default_path.exists():
        values.update(_read_config_file(default_path, required=False))

    source = os.environ if environ is None else environ
    epoch = source.get("SOURCE_DATE_EPOCH")
    if epoch:
        try:
            values["source_date_epoch"] = int(epoch)
        except ValueError as exc:
            raise ConfigError(
                "SOURCE_DATE_EPOCH must be an integer.",
                context={"value": epoch},
            ) from exc

    values.update({key: value for key, value in (overrides or {}).items() if value is not None})
    return replace(DistConfig(), **values)


def _read_config_file(path: Path, *, required: bool) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        if not required:
            return {}
        raise ConfigError(
            "Config file does not exist.",
            context={"path": str(path)},
        ) from exc
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError("Invalid config JSON.", hint=str(exc), context={"path": str(path)}) from exc
    if not isinstance(payload, dict):
        raise ConfigError("Config file must hold a JSON object.", context={"path": str(path)})

    known = {f.name: f.type for f in fields(DistConfig)}
    values: dict[str, Any] = {}
    for key, value in payload.items():
        if key not in known:
            raise ConfigError(
                f"Unknown config key `{key}`.",
                hint=f"Known keys: {', '.join(sorted(known))}.",
                context={"path": str(path)},
            )
        expected = int if known[key] == "int" else str
        if isinstance(value, bool) or not isinstance(value, expected):
            raise ConfigError(
                f"Config key `{key}` must be of type {expected.__name__}.",
                context={"path": str(path), "value": repr(value)},
            )
        values[key] = value
    return values


def _resolve(workspace_root: Path, value: str | Path) -> Path:
    path = Path(value)
    return path if path.is_absolute() else workspace_root / path
