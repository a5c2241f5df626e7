"""On-demand, version-pinned installation of wasm-bindgen-cli."""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

import structlog

from cargo_wasm.config import WASM_BINDGEN, WASM_BINDGEN_CLI
from cargo_wasm.exceptions import CommandError, InstallFailed
from cargo_wasm.models.build import ToolInstallation
from cargo_wasm.process import CommandRunner, executable_name

log = structlog.get_logger(__name__)


class ToolInstaller:
    """Install wasm-bindgen-cli into ``<install_root>/<version>``.

    Each version gets its own root, so installs of distinct versions never
    touch the same files. There is no locking: callers must not install the
    same version from two threads at once.
    """

    def __init__(self, cargo: str, install_root: Path, runner: CommandRunner) -> None:
        self.cargo = cargo
        self.install_root = Path(install_root)
        self.runner = runner

    def version_root(self, version: str) -> Path:
        return self.install_root / version

    def executable_path(self, version: str) -> Path:
        return self.version_root(version) / "bin" / executable_name(WASM_BINDGEN)

    def ensure_installed(self, version: str) -> ToolInstallation:
        """Return the install for *version*, running `cargo install` if it is missing.

        Presence is decided by the executable path alone; the binary itself is
        not checked.

        Raises:
            InstallFailed: cargo install failed, or did not produce the binary.
        """
        installation = ToolInstallation(version=version, executable=self.executable_path(version))
        if installation.present:
            log.debug("install.cached", version=version, path=str(installation.executable))
            return installation

        root = self.version_root(version)
        log.info("install.start", tool=WASM_BINDGEN_CLI, version=version, root=str(root))
        cmd = [
            self.cargo,
            "install",
            "--root",
            str(root),
            "--version",
            version,
            "--",
            WASM_BINDGEN_CLI,
        ]
        try:
            self.runner.run(cmd, phase="install")
        except CommandError as exc:
            log.error("install.failed", version=version, error=str(exc))
            raise InstallFailed(version, exc) from exc

        if not installation.present:
            raise InstallFailed(
                version, f"cargo install succeeded but {installation.executable} does not exist"
            )
        log.info("install.done", version=version, path=str(installation.executable))
        return installation

    def install_all(
        self, versions: Iterable[str]
    ) -> tuple[dict[str, ToolInstallation], dict[str, InstallFailed]]:
        """Install every distinct version once, sequentially.

        A failure for one version does not stop the others.
        """
        installed: dict[str, ToolInstallation] = {}
        failures: dict[str, InstallFailed] = {}
        for version in sorted(set(versions)):
            try:
                installed[version] = self.ensure_installed(version)
            except InstallFailed as exc:
                failures[version] = exc
        return installed, failures
