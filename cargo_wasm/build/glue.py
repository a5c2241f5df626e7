"""Generate js (and optionally TypeScript) glue code with wasm-bindgen."""

from __future__ import annotations

import logging
from pathlib import Path

from cargo_wasm.config import BuildOptions
from cargo_wasm.exceptions import CommandError, GlueGenerationFailed
from cargo_wasm.models.build import BuildArtifact, ToolInstallation
from cargo_wasm.models.package import Package
from cargo_wasm.process import CommandRunner

logger = logging.getLogger(__name__)

# BuildOptions field -> wasm-bindgen switch, passed when the field is true.
# https://rustwasm.github.io/docs/wasm-bindgen/reference/cli.html
FLAG_SWITCHES: dict[str, str] = {
    "weak_refs": "--weak-refs",
    "reference_types": "--reference-types",
    "no_demangle": "--no-demangle",
}


def output_files(package: Package, out_dir: Path, typescript: bool) -> list[Path]:
    """Files wasm-bindgen writes for *package*. Names are namespaced by crate name."""
    out_dir = Path(out_dir)
    files = [
        out_dir / f"{package.crate_name}.js",
        out_dir / f"{package.crate_name}_bg.wasm",
    ]
    if typescript:
        files.append(out_dir / f"{package.crate_name}.d.ts")
    return files


def bound_wasm_path(package: Package, out_dir: Path) -> Path:
    return Path(out_dir) / f"{package.crate_name}_bg.wasm"


class GlueGenerator:
    """Run the wasm-bindgen version a package was resolved against."""

    def __init__(self, out_dir: Path, runner: CommandRunner) -> None:
        self.out_dir = Path(out_dir)
        self.runner = runner

    def build_command(
        self, artifact: BuildArtifact, tool: ToolInstallation, options: BuildOptions
    ) -> list[str]:
        cmd = [
            str(tool.executable),
            str(artifact.compiled_path),
            "--target",
            options.target.bindgen_target,
        ]
        # TypeScript is on by default in wasm-bindgen, so it must be switched off explicitly
        if not options.typescript:
            cmd.append("--no-typescript")
        cmd.extend(switch for field, switch in FLAG_SWITCHES.items() if getattr(options, field))
        cmd.extend(["--out-dir", str(self.out_dir)])
        return cmd

    def generate(
        self, artifact: BuildArtifact, tool: ToolInstallation, options: BuildOptions
    ) -> Path:
        """
        Write ``<crate>.js``, ``<crate>_bg.wasm`` (and ``<crate>.d.ts``) into out_dir.

        Sets ``artifact.bound_path`` and returns it.

        Raises:
            GlueGenerationFailed: wasm-bindgen failed or left out one of the outputs.
        """
        package = artifact.package
        logger.info(
            "Building js glue code for %s with wasm-bindgen = %s. Output at: %s",
            package.crate_name,
            tool.version,
            self.out_dir,
        )
        self.out_dir.mkdir(parents=True, exist_ok=True)
        try:
            self.runner.run(self.build_command(artifact, tool, options), phase="glue")
        except CommandError as exc:
            raise GlueGenerationFailed(package.name, exc) from exc

        missing = [
            p for p in output_files(package, self.out_dir, options.typescript) if not p.exists()
        ]
        if missing:
            names = ", ".join(p.name for p in missing)
            raise GlueGenerationFailed(package.name, f"wasm-bindgen did not produce {names}")
        bound = bound_wasm_path(package, self.out_dir)
        artifact.bound_path = bound
        return bound
