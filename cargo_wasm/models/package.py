"""Data model for a workspace package that needs wasm-bindgen glue."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path


@dataclass(frozen=True)
class Package:
    """A workspace member that (transitively) depends on wasm-bindgen."""

    name: str  # cargo package name, e.g. "my-app"
    manifest_path: Path  # path to the package's Cargo.toml
    bindgen_version: str  # resolved wasm-bindgen version, e.g. "0.2.68"
    id: str = ""  # cargo package id

    @property
    def crate_name(self) -> str:
        """Name used for build artifacts: separators normalized to underscores."""
        return self.name.replace("-", "_")

    @property
    def directory(self) -> Path:
        return self.manifest_path.parent


@dataclass
class Workspace:
    """What one `cargo metadata` call says about the project."""

    root: Path  # workspace_root
    target_dir: Path  # target_directory, honoring CARGO_TARGET_DIR and build.target-dir
    packages: list[Package] = field(default_factory=list)
