"""Build orchestrator: discovery, install/compile, glue, optimize, bootstrap."""

from __future__ import annotations

import contextvars
import logging
import shutil
import threading
import uuid
from datetime import datetime, timezone
from pathlib import Path

import structlog

from cargo_wasm.build.bootstrap import BootstrapEmitter
from cargo_wasm.build.compiler import Compiler
from cargo_wasm.build.discovery import PackageDiscovery
from cargo_wasm.build.glue import GlueGenerator
from cargo_wasm.config import BuildOptions, ToolSettings, resolve_path
from cargo_wasm.exceptions import (
    CargoWasmError,
    DownloadFailed,
    ExtractFailed,
    GlueGenerationFailed,
    InstallFailed,
    OptimizeFailed,
)
from cargo_wasm.logging.base import LogStore
from cargo_wasm.models.build import (
    BuildReport,
    OptimizationLevel,
    StageFailure,
    ToolInstallation,
)
from cargo_wasm.models.package import Package
from cargo_wasm.platform import PlatformResolver
from cargo_wasm.process import CommandRunner
from cargo_wasm.progress import PHASES, PhaseProgress, ProgressTracker
from cargo_wasm.tools.installer import ToolInstaller
from cargo_wasm.tools.optimizer import OptimizationRunner, OptimizerFetcher

log = structlog.get_logger(__name__)


class BuildOrchestrator:
    """
    Run one build of a cargo workspace.

    Phase 1: PackageDiscovery.inspect(); tools and build output are placed
             under the target directory cargo reports
    Phase 2: ToolInstaller.install_all() on a background thread, while
             Compiler.compile_all() runs on the calling thread; then join
    Phase 3: clean out_dir (optional), GlueGenerator.generate() per package
    Phase 4: OptimizerFetcher + OptimizationRunner (optional, only if every
             package got its glue)
    Phase 5: BootstrapEmitter (bundler/rollup targets, same condition)
    """

    def __init__(
        self,
        project_root: str | Path = ".",
        settings: ToolSettings | None = None,
        runner: CommandRunner | None = None,
        log_store: LogStore | None = None,
        platform_resolver: PlatformResolver | None = None,
        optimizer_fetcher: OptimizerFetcher | None = None,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.settings = settings or ToolSettings()
        self.log_store = log_store
        self.runner = runner or CommandRunner(
            timeout=self.settings.process_timeout, log_store=log_store
        )

        self.platform_resolver = platform_resolver
        self._fetcher_injected = optimizer_fetcher is not None
        self.optimizer_fetcher = optimizer_fetcher
        self.discovery = PackageDiscovery(self.settings.cargo, self.runner)
        # until discovery reports cargo's target directory
        self._bind_target_dir(resolve_path(self.project_root, self.settings.target_dir))
        self.bootstrap_emitter = BootstrapEmitter()
        self.progress = ProgressTracker()
        self.run_id: str | None = None

    def _bind_target_dir(self, target_dir: Path) -> None:
        """Point the compiler and the default tool roots at *target_dir*."""
        root = self.project_root
        s = self.settings
        self.target_dir = target_dir
        self.compiler = Compiler(s.cargo, root, target_dir, self.runner)
        self.installer = ToolInstaller(
            s.cargo, resolve_path(root, s.bindgen_root_for(target_dir)), self.runner
        )
        if not self._fetcher_injected:
            self.optimizer_fetcher = OptimizerFetcher(
                install_root=resolve_path(root, s.wasm_opt_root_for(target_dir)),
                version=s.binaryen_version,
                arch=s.binaryen_arch,
                base_url=s.binaryen_base_url,
                resolver=self.platform_resolver,
                timeout=s.download_timeout,
            )

    def _new_progress(self) -> ProgressTracker:
        """Create a fresh ProgressTracker for each build call."""
        tracker = ProgressTracker()
        if self.log_store:
            tracker.callbacks.append(self._log_phase_callback)
        return tracker

    def _log_phase_callback(self, phase: PhaseProgress) -> None:
        """Write phase status transitions to the LogStore."""
        if not self.log_store or not self.run_id:
            return
        try:
            with self.log_store.get_writer(self.run_id, phase.phase) as writer:
                duration_str = f" ({phase.duration}s)" if phase.duration is not None else ""
                detail_str = f" - {phase.detail}" if phase.detail else ""
                error_str = f" ERROR: {phase.error}" if phase.error else ""
                writer.write(f"[{phase.status}]{duration_str}{detail_str}{error_str}\n")
        except OSError:
            log.debug("phase_log.write_failed", phase=phase.phase, exc_info=True)

    def out_dir(self, options: BuildOptions) -> Path:
        return resolve_path(self.project_root, options.out_dir)

    def discover(self) -> list[Package]:
        return self.discovery.discover(self.project_root)

    def build(self, options: BuildOptions) -> BuildReport:
        """
        Full pipeline entry point.

        Per-package failures are collected in the report. MetadataUnavailable
        and UnsupportedPlatform propagate and end the build. With
        ``options.quiet`` only warnings and errors are logged.
        """
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
        self.run_id = f"{stamp}-{uuid.uuid4().hex[:6]}"
        self.runner.run_id = self.run_id
        progress = self._new_progress()
        self.progress = progress  # expose last run's progress for callers
        report = BuildReport()
        package_logger = logging.getLogger("cargo_wasm")
        previous_level = package_logger.level
        if options.quiet:
            package_logger.setLevel(max(package_logger.getEffectiveLevel(), logging.WARNING))
        structlog.contextvars.bind_contextvars(run_id=self.run_id)
        try:
            self._build(options, progress, report)
        finally:
            structlog.contextvars.unbind_contextvars("run_id")
            package_logger.setLevel(previous_level)
        return report

    def _build(
        self, options: BuildOptions, progress: ProgressTracker, report: BuildReport
    ) -> None:
        # Phase 1: discovery
        with progress.track("discover") as phase:
            workspace = self.discovery.inspect(self.project_root)
            packages = workspace.packages
            phase.detail = f"packages={len(packages)}, target_dir={workspace.target_dir}"
        self._bind_target_dir(workspace.target_dir)
        report.packages = packages
        if not packages:
            log.warning("build.no_packages", project=str(self.project_root))
            for name in PHASES[1:]:
                progress.skip_phase(name, "no wasm-bindgen packages")
            return

        versions = sorted({p.bindgen_version for p in packages})
        if len(versions) > 1:
            log.warning("build.mixed_bindgen_versions", versions=versions)

        # Phase 2: install (worker thread) + compile (this thread)
        installed, install_failures = self._install_and_compile(
            packages, versions, options, progress, report
        )
        report.installations = installed
        for exc in install_failures.values():
            report.failures.append(StageFailure(stage="install", error=exc))

        # Phase 3: glue
        self._generate_glue(packages, installed, install_failures, options, progress, report)
        if progress.status_of("glue") != "completed":
            reason = "glue generation incomplete"
            if options.optimization is not None:
                progress.skip_phase("optimize", reason)
            if options.target.wants_bootstrap:
                progress.skip_phase("bootstrap", reason)
            return

        # Phase 4: optimize
        if options.optimization is not None:
            self._optimize(options.optimization.level, options, progress, report)
        else:
            progress.skip_phase("optimize", "not requested")

        # Phase 5: bootstrap
        if options.target.wants_bootstrap:
            with progress.track("bootstrap") as phase:
                out_dir = self.out_dir(options)
                report.bootstrap_path = self.bootstrap_emitter.write(packages, out_dir)
                report.bootstrapped = True
                phase.detail = str(report.bootstrap_path)
        else:
            progress.skip_phase("bootstrap", f"not needed for target {options.target.value}")

    def _install_and_compile(
        self,
        packages: list[Package],
        versions: list[str],
        options: BuildOptions,
        progress: ProgressTracker,
        report: BuildReport,
    ) -> tuple[dict[str, ToolInstallation], dict[str, InstallFailed]]:
        outcome: dict[str, object] = {}

        def install_worker() -> None:
            progress.start_phase("install")
            try:
                installed, failures = self.installer.install_all(versions)
            except Exception as exc:  # re-raised on the calling thread after join
                progress.fail_phase("install", str(exc))
                outcome["error"] = exc
                return
            outcome["result"] = (installed, failures)
            detail = f"versions={','.join(versions)}"
            if failures:
                progress.fail_phase("install", "; ".join(str(e) for e in failures.values()), detail)
            else:
                progress.complete_phase("install", detail)

        # carries run_id and other bound log context into the worker
        worker_context = contextvars.copy_context()
        worker = threading.Thread(
            target=worker_context.run,
            args=(install_worker,),
            name="cargo-wasm-install",
            daemon=True,
        )
        worker.start()

        progress.start_phase("compile")
        try:
            artifacts, compile_failures = self.compiler.compile_all(packages, options)
        finally:
            worker.join()
        detail = f"built={len(artifacts)}/{len(packages)}"
        if compile_failures:
            progress.fail_phase("compile", f"failed: {', '.join(compile_failures)}", detail)
        else:
            progress.complete_phase("compile", detail)

        for package in packages:
            if package.name in artifacts:
                report.artifacts.append(artifacts[package.name])
            else:
                report.failures.append(
                    StageFailure(
                        stage="compile",
                        error=compile_failures[package.name],
                        package_name=package.name,
                    )
                )

        if "error" in outcome:
            raise outcome["error"]  # type: ignore[misc]
        return outcome["result"]  # type: ignore[return-value]

    def _generate_glue(
        self,
        packages: list[Package],
        installed: dict[str, ToolInstallation],
        install_failures: dict[str, InstallFailed],
        options: BuildOptions,
        progress: ProgressTracker,
        report: BuildReport,
    ) -> None:
        """Generate glue for every compiled package; the glue phase completes only if all did."""
        out_dir = self.out_dir(options)
        progress.start_phase("glue")
        if options.clean:
            log.info("build.clean", out_dir=str(out_dir))
            shutil.rmtree(out_dir, ignore_errors=True)

        glue = GlueGenerator(out_dir, self.runner)
        artifacts = {a.package.name: a for a in report.artifacts}
        generated = 0
        for package in packages:
            artifact = artifacts.get(package.name)
            if artifact is None:
                continue  # compile failure already recorded
            tool = installed.get(package.bindgen_version)
            if tool is None:
                cause = install_failures.get(
                    package.bindgen_version, "wasm-bindgen-cli not installed"
                )
                report.failures.append(
                    StageFailure(
                        stage="glue",
                        error=GlueGenerationFailed(package.name, cause),
                        package_name=package.name,
                    )
                )
                continue
            try:
                glue.generate(artifact, tool, options)
                generated += 1
            except GlueGenerationFailed as exc:
                log.error("glue.failed", package=package.name, error=str(exc))
                report.failures.append(
                    StageFailure(stage="glue", error=exc, package_name=package.name)
                )

        detail = f"generated={generated}/{len(packages)}, out_dir={out_dir}"
        if generated == len(packages):
            progress.complete_phase("glue", detail)
        else:
            missing = len(packages) - generated
            progress.fail_phase("glue", f"{missing} package(s) without glue", detail)

    def _optimize(
        self,
        level: OptimizationLevel,
        options: BuildOptions,
        progress: ProgressTracker,
        report: BuildReport,
    ) -> None:
        progress.start_phase("optimize")
        try:
            installation = self.optimizer_fetcher.ensure_installed()
        except (DownloadFailed, ExtractFailed) as exc:
            report.failures.append(StageFailure(stage="optimize", error=exc))
            progress.fail_phase("optimize", f"Could not install wasm-opt: {exc}")
            return
        except CargoWasmError as exc:
            progress.fail_phase("optimize", str(exc))
            raise

        optimizer = OptimizationRunner(installation, self.runner)
        failed = 0
        for artifact in report.artifacts:
            if artifact.bound_path is None:
                continue
            try:
                report.size_reports.append(
                    optimizer.run(artifact.bound_path, level, options.reference_types)
                )
            except OptimizeFailed as exc:
                failed += 1
                report.failures.append(
                    StageFailure(stage="optimize", error=exc, package_name=artifact.package.name)
                )
        report.optimized = True
        detail = f"level={level.value}, optimized={len(report.size_reports)}"
        if failed:
            progress.fail_phase("optimize", f"{failed} artifact(s) failed", detail)
        else:
            progress.complete_phase("optimize", detail)
