"""Orchestration driver: builds, collects, assembles, and packages every target."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from pathlib import Path

from .assemble import Assembly, assemble
from .backends import BuildBackend, NixCrossBackend
from .catalog import binary, family, targets, validate_catalog
from .collect import Collection, collect
from .config import DistConfig
from .desktop import resolve
from .errors import BuildSkipped, DistError, ErrorCode, ExternalToolUnavailable
from .models import (
    PHASE_ORDER,
    BuildResult,
    DesktopAction,
    DistributionTree,
    DriverState,
    EnvironmentContext,
    PackageDecl,
    PackageFile,
    PackageFormat,
    PackageMetadata,
    PackageSpec,
    TargetSpec,
)
from .observability import Level, StructuredLogger
from .packagers import Packager, default_packagers, prepare_staging
from .report import INTEGRATION_SKIPPED, RunReport
from .runner import CommandRunner, SubprocessRunner

REPORT_FILENAME = "run-report.json"
LOG_FILENAME = "run-log.jsonl"
PACKAGES_DIR = "packages"


@dataclass(slots=True)
class Orchestrator:
    """Sequences catalog enumeration, builds, collection, assembly, and packaging.

    Worker threads only return values; this object is the single owner of the
    run report and the logger.
    """

    workspace_root: Path
    config: DistConfig = field(default_factory=DistConfig)
    catalog: Sequence[TargetSpec] = field(default_factory=targets)
    runner: CommandRunner = field(default_factory=SubprocessRunner)
    environment: EnvironmentContext = field(default_factory=EnvironmentContext.from_environ)
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    backend: BuildBackend | None = None
    packagers: Mapping[PackageFormat, Packager] | None = None
    state: DriverState = field(init=False, default=DriverState.INIT)
    transitions: list[DriverState] = field(init=False, default_factory=list)

    def __post_init__(self) -> None:
        self.workspace_root = Path(self.workspace_root).resolve()
        self.transitions.append(self.state)
        if self.backend is None:
            self.backend = NixCrossBackend(
                workspace_root=self.workspace_root,
                work_root=self.work_root / "builds",
                runner=self.runner,
            )
        if self.packagers is None:
            self.packagers = default_packagers(self.output_root / PACKAGES_DIR, self.runner)

    @property
    def output_root(self) -> Path:
        return self.config.output_root(self.workspace_root)

    @property
    def work_root(self) -> Path:
        return self.config.work_root(self.workspace_root)

    def run(self) -> RunReport:
        report = RunReport()
        try:
            self._enter(DriverState.ENUMERATING)
            selected = self._enumerate()

            backend, packagers = self._components()

            self._enter(DriverState.BUILDING)
            results = self._build_all(selected, report, backend)

            self._enter(DriverState.COLLECTING)
            collection = self._collect(selected, results)

            self._enter(DriverState.ASSEMBLING)
            assembly = self._assemble(selected, collection, report)

            self._enter(DriverState.PACKAGING)
            self._package_all(selected, collection, assembly, report, packagers)
        except DistError as exc:
            report.abort(exc, phase=self.state)
            self._log("run_aborted", None, None, str(exc), level="error")

        self._enter(DriverState.REPORTING, allow_skip=True)
        report.finalize()
        self._write_outputs(report)
        self._enter(DriverState.DONE)
        self._log("run_complete", None, None, f"Run finished: {report.status}.")
        return report

    # ------------------------------------------------------------------
    # Phases
    # ------------------------------------------------------------------

    def _enumerate(self) -> tuple[TargetSpec, ...]:
        selected = tuple(self.catalog)
        validate_catalog(selected)
        for target in selected:
            self._log(
                "enumerate_target",
                target.key,
                None,
                "Target declared.",
                extra={"binaries": list(target.binaries), "formats": list(target.formats)},
            )
        return selected

    def _build_all(
        self,
        selected: Sequence[TargetSpec],
        report: RunReport,
        backend: BuildBackend,
    ) -> list[BuildResult]:
        # A missing build tool is fatal for the whole run.
        backend.ensure_available()

        # Binaries of one target run one after another so an invocation error
        # can skip the rest; targets run side by side on the bounded pool.
        queues = {target.key: list(target.binaries) for target in selected}
        by_key = {target.key: target for target in selected}
        produced: dict[tuple[str, str], BuildResult] = {}

        with ThreadPoolExecutor(max_workers=self.config.jobs) as pool:
            pending: dict[Future[BuildResult], tuple[str, str]] = {}

            def submit_next(key: str) -> None:
                if not queues[key]:
                    return
                name = queues[key].pop(0)
                self._log("build_start", key, DriverState.BUILDING, "Build submitted.", subject=name)
                pending[pool.submit(backend.build, by_key[key], name)] = (key, name)

            for target in selected:
                submit_next(target.key)

            while pending:
                done, _ = wait(tuple(pending), return_when=FIRST_COMPLETED)
                for future in done:
                    key, name = pending.pop(future)
                    result = future.result()
                    produced[(key, name)] = result
                    self._log_build(result)
                    if result.invocation_error:
                        for skipped in queues[key]:
                            produced[(key, skipped)] = BuildResult.failure(
                                by_key[key],
                                skipped,
                                BuildSkipped(
                                    f"Skipped {skipped}: the build tool could not be driven "
                                    f"for {key}.",
                                    context={"target": key, "binary": skipped, "cause": name},
                                ),
                            )
                        queues[key] = []
                    submit_next(key)

        ordered: list[BuildResult] = []
        for target in selected:
            for name in target.binaries:
                result = produced[(target.key, name)]
                ordered.append(result)
                if result.ok:
                    report.record(
                        target=target.key,
                        phase=DriverState.BUILDING,
                        subject=name,
                        status="ok",
                    )
                elif result.error is not None:
                    report.record_error(
                        target=target.key,
                        phase=DriverState.BUILDING,
                        subject=name,
                        error=result.error,
                        status="skipped" if isinstance(result.error, BuildSkipped) else "failed",
                    )
        return ordered

    def _collect(self, selected: Sequence[TargetSpec], results: Sequence[BuildResult]) -> Collection:
        collection = collect(results, selected)
        for key in collection.failed_targets():
            self._log(
                "collect_target_failed",
                key,
                DriverState.COLLECTING,
                "Target excluded from assembly after build failures.",
                level="warning",
            )
        return collection

    def _assemble(
        self,
        selected: Sequence[TargetSpec],
        collection: Collection,
        report: RunReport,
    ) -> Assembly:
        assembly = assemble(self.output_root, collection.artifacts, selected)
        for entry in assembly.tree.entries:
            report.record(
                target=entry.target,
                phase=DriverState.ASSEMBLING,
                subject=entry.binary,
                status="ok",
                detail=str(entry.relative_path),
            )
            report.artifacts[str(entry.relative_path)] = {
                "target": entry.target,
                "binary": entry.binary,
                "sha256": entry.sha256,
            }
        for failure in assembly.failures:
            report.record_error(
                target=failure.target,
                phase=DriverState.ASSEMBLING,
                subject=failure.binary,
                error=failure.error,
            )
            self._log(
                "assemble_failed",
                failure.target,
                DriverState.ASSEMBLING,
                failure.error.message,
                subject=failure.binary,
                level="error",
            )
        return assembly

    def _package_all(
        self,
        selected: Sequence[TargetSpec],
        collection: Collection,
        assembly: Assembly,
        report: RunReport,
        packagers: Mapping[PackageFormat, Packager],
    ) -> None:
        blocked = set(collection.failed_targets()) | set(assembly.failed_targets())

        unavailable: dict[PackageFormat, DistError] = {}
        for package_format, packager in packagers.items():
            try:
                packager.ensure_available()
            except ExternalToolUnavailable as exc:
                unavailable[package_format] = exc
                self._log(
                    "packager_unavailable",
                    None,
                    DriverState.PACKAGING,
                    exc.message,
                    subject=package_format,
                    level="warning",
                )

        jobs: list[tuple[TargetSpec, PackageDecl, PackageSpec | None]] = []
        for target in selected:
            for decl in target.packages:
                subject = _subject(decl)
                if target.key in blocked:
                    report.record(
                        target=target.key,
                        phase=DriverState.PACKAGING,
                        subject=subject,
                        status="skipped",
                        detail="Primary executable missing for this target.",
                    )
                    continue
                if decl.format in unavailable:
                    report.record_error(
                        target=target.key,
                        phase=DriverState.PACKAGING,
                        subject=subject,
                        error=unavailable[decl.format],
                    )
                    continue
                if decl.format not in packagers:
                    report.record(
                        target=target.key,
                        phase=DriverState.PACKAGING,
                        subject=subject,
                        status="failed",
                        code=ErrorCode.PACKAGING_FAILED.value,
                        detail=f"No packager registered for format `{decl.format}`.",
                    )
                    continue
                spec = self._package_spec(target, decl, report)
                jobs.append((target, decl, spec))

        with ThreadPoolExecutor(max_workers=self.config.jobs) as pool:
            futures = [
                pool.submit(_build_package, packagers[decl.format], spec, assembly.tree)
                for _, decl, spec in jobs
                if spec is not None
            ]
            outcomes = iter(futures)
            for target, decl, spec in jobs:
                if spec is None:
                    continue
                package = next(outcomes).result()
                subject = _subject(decl)
                if isinstance(package, DistError):
                    report.record_error(
                        target=target.key,
                        phase=DriverState.PACKAGING,
                        subject=subject,
                        error=package,
                    )
                    self._log(
                        "package_failed",
                        target.key,
                        DriverState.PACKAGING,
                        package.message,
                        subject=subject,
                        level="error",
                    )
                    continue
                relative = package.path.relative_to(self.output_root).as_posix()
                report.packages[relative] = package.sha256
                report.record(
                    target=target.key,
                    phase=DriverState.PACKAGING,
                    subject=subject,
                    status="ok",
                    detail=relative,
                )
                self._log(
                    "package_built",
                    target.key,
                    DriverState.PACKAGING,
                    "Package built.",
                    subject=subject,
                    extra={"path": relative, "sha256": package.sha256},
                )

    def _package_spec(
        self,
        target: TargetSpec,
        decl: PackageDecl,
        report: RunReport,
    ) -> PackageSpec | None:
        subject = _subject(decl)
        convention = family(decl.format)
        staging_dir = self.work_root / "staging" / f"{decl.name}-{decl.format}-{target.slug}"
        try:
            binaries = tuple(binary(name) for name in decl.binaries)
            skeleton = self.workspace_root / decl.skeleton if decl.skeleton else None
            prepare_staging(staging_dir, skeleton)
            if any(spec.launcher for spec in binaries):
                desktop = resolve(self.environment, convention, staging_root=staging_dir)
            else:
                desktop = DesktopAction.skip("no binary in this package has a desktop launcher")
            architecture = convention.architecture(target.arch)
        except DistError as exc:
            report.record_error(
                target=target.key,
                phase=DriverState.PACKAGING,
                subject=subject,
                error=exc,
            )
            return None

        if desktop.placed:
            self._log(
                "desktop_place",
                target.key,
                DriverState.PACKAGING,
                "Launcher directory resolved.",
                subject=subject,
                extra={"path": str(desktop.path), "created": desktop.created},
            )
        else:
            report.record(
                target=target.key,
                phase=DriverState.PACKAGING,
                subject=subject,
                status="info",
                code=INTEGRATION_SKIPPED,
                detail=desktop.reason,
            )

        return PackageSpec(
            format=decl.format,
            target=target,
            binaries=binaries,
            metadata=PackageMetadata(
                name=decl.name,
                version=self.config.version,
                maintainer=self.config.maintainer,
                architecture=architecture,
                description=decl.description,
                depends=decl.depends,
                section=decl.section,
            ),
            staging_dir=staging_dir,
            desktop=desktop,
            source_date_epoch=self.config.source_date_epoch,
            pkgrel=self.config.pkgrel,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _components(self) -> tuple[BuildBackend, Mapping[PackageFormat, Packager]]:
        if self.backend is None or self.packagers is None:
            raise RuntimeError("Orchestrator backend and packagers are resolved in __post_init__.")
        return self.backend, self.packagers

    def _enter(self, state: DriverState, *, allow_skip: bool = False) -> None:
        current = PHASE_ORDER.index(self.state)
        wanted = PHASE_ORDER.index(state)
        if wanted <= current or (wanted != current + 1 and not allow_skip):
            raise RuntimeError(f"Invalid driver transition {self.state} -> {state}.")
        self.state = state
        self.transitions.append(state)
        self._log("phase_enter", None, state, f"Entering {state.value}.")

    def _log_build(self, result: BuildResult) -> None:
        if result.artifact is not None:
            self._log(
                "build_complete",
                result.target.key,
                DriverState.BUILDING,
                "Build succeeded.",
                subject=result.binary,
                extra={"sha256": result.artifact.sha256},
            )
            return
        self._log(
            "build_failed",
            result.target.key,
            DriverState.BUILDING,
            result.error.message if result.error else "Build failed.",
            subject=result.binary,
            level="error",
            extra={"code": result.error.code} if result.error else None,
        )

    def _log(
        self,
        operation: str,
        target: str | None,
        phase: DriverState | None,
        message: str,
        *,
        subject: str | None = None,
        level: Level = "info",
        extra: dict[str, object] | None = None,
    ) -> None:
        self.logger.log(
            operation=operation,
            target=target,
            phase=phase,
            subject=subject,
            message=message,
            level=level,
            extra=extra,
        )

    def _write_outputs(self, report: RunReport) -> None:
        try:
            self.output_root.mkdir(parents=True, exist_ok=True)
            report.write_json(self.output_root / REPORT_FILENAME)
            self.logger.to_json_lines(self.output_root / LOG_FILENAME)
        except OSError as exc:
            # The in-memory report is still returned and rendered by the caller.
            self._log(
                "report_write_failed",
                None,
                DriverState.REPORTING,
                f"Could not write the run report: {exc}",
                level="error",
            )


def _subject(decl: PackageDecl) -> str:
    return f"{decl.name} ({decl.format})"


def _build_package(
    packager: Packager,
    spec: PackageSpec,
    tree: DistributionTree,
) -> PackageFile | DistError:
    """Worker entry point: return the package or the error, never raise a DistError."""
    try:
        return packager.build(spec, tree)
    except DistError as exc:
        return exc
