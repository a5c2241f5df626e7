"""Cross-compile packages to wasm32-unknown-unknown with `cargo build`."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from cargo_wasm.config import WASM32_UNKNOWN_UNKNOWN, BuildOptions
from cargo_wasm.exceptions import CommandError, CompileFailed
from cargo_wasm.models.build import BuildArtifact
from cargo_wasm.models.package import Package
from cargo_wasm.process import CommandRunner

logger = logging.getLogger(__name__)


def artifact_path(target_dir: Path, package: Package, release: bool) -> Path:
    """``<target-dir>/wasm32-unknown-unknown/<release|debug>/<crate_name>.wasm``"""
    profile = "release" if release else "debug"
    return Path(target_dir) / WASM32_UNKNOWN_UNKNOWN / profile / f"{package.crate_name}.wasm"


class Compiler:
    """
    Build one package at a time, so a failing package does not stop the others.
    """

    def __init__(
        self,
        cargo: str,
        project_root: Path,
        target_dir: Path,
        runner: CommandRunner,
    ) -> None:
        self.cargo = cargo
        self.project_root = Path(project_root)
        self.target_dir = Path(target_dir)
        self.runner = runner

    def compile(self, package: Package, options: BuildOptions) -> BuildArtifact:
        """
        Run `cargo build` for *package* and return the expected artifact.

        Raises:
            CompileFailed: cargo exited non-zero, timed out, or could not be started.
        """
        logger.info(
            "Building %s for %s (%s)", package.name, WASM32_UNKNOWN_UNKNOWN, options.profile
        )
        cmd = [
            self.cargo,
            "build",
            "--package",
            package.name,
            "--target",
            WASM32_UNKNOWN_UNKNOWN,
        ]
        if options.release:
            cmd.append("--release")

        try:
            self.runner.run(cmd, phase="compile", cwd=self.project_root)
        except CommandError as exc:
            logger.error("cargo build failed for %s: %s", package.name, exc)
            raise CompileFailed(package.name, exc) from exc

        return BuildArtifact(
            package=package,
            compiled_path=artifact_path(self.target_dir, package, options.release),
        )

    def compile_all(
        self, packages: Iterable[Package], options: BuildOptions
    ) -> tuple[dict[str, BuildArtifact], dict[str, CompileFailed]]:
        """Compile each package; returns artifacts and failures keyed by package name."""
        artifacts: dict[str, BuildArtifact] = {}
        failures: dict[str, CompileFailed] = {}
        for package in packages:
            try:
                artifacts[package.name] = self.compile(package, options)
            except CompileFailed as exc:
                failures[package.name] = exc
        return artifacts, failures
