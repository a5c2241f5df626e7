"""Tool settings and per-invocation build options."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, ConfigDict, field_validator

from cargo_wasm.models.build import ModuleTarget, OptimizationLevel

DEFAULT_OUT_DIR = Path("dist/js")
WASM32_UNKNOWN_UNKNOWN = "wasm32-unknown-unknown"
WASM_BINDGEN = "wasm-bindgen"
WASM_BINDGEN_CLI = "wasm-bindgen-cli"

# binaryen version_97 ships linux, windows & macos builds, x86_64 only
_DEFAULT_BINARYEN_VERSION = "version_97"
_DEFAULT_BINARYEN_URL = "https://github.com/WebAssembly/binaryen/releases/download"


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number of seconds, got {raw!r}") from None


def _env_path(key: str) -> Path | None:
    raw = os.environ.get(key)
    return Path(raw) if raw else None


def resolve_path(project_root: Path, path: Path) -> Path:
    """Anchor a relative settings path at the project root."""
    return path if path.is_absolute() else project_root / path


class ToolSettings(BaseModel):
    """Where external tools live and which versions are pinned.

    Relative paths are resolved against the project root at build time.
    ``bindgen_root`` and ``wasm_opt_root`` left unset live under the target
    directory cargo reports; ``target_dir`` is only used when cargo reports none.
    """

    model_config = ConfigDict(frozen=True)

    cargo: str = "cargo"
    target_dir: Path = Path("target")
    bindgen_root: Path | None = None
    binaryen_version: str = _DEFAULT_BINARYEN_VERSION
    binaryen_arch: str = "x86_64"
    binaryen_base_url: str = _DEFAULT_BINARYEN_URL
    wasm_opt_root: Path | None = None
    log_dir: Path = Path("target/cargo-wasm/logs")
    process_timeout: float | None = 3600.0  # seconds, None = no limit
    download_timeout: float = 120.0

    @field_validator("process_timeout", mode="before")
    @classmethod
    def _zero_disables_timeout(cls, v: float | None) -> float | None:
        if v is not None and float(v) <= 0:
            return None
        return v

    def bindgen_root_for(self, target_dir: Path) -> Path:
        return self.bindgen_root if self.bindgen_root is not None else target_dir / WASM_BINDGEN_CLI

    def wasm_opt_root_for(self, target_dir: Path) -> Path:
        return self.wasm_opt_root if self.wasm_opt_root is not None else target_dir / "wasm-opt"

    @classmethod
    def from_env(cls) -> ToolSettings:
        """Build settings from environment variables.

        CARGO is set by cargo itself when running `cargo wasm ...`.
        CARGO_TARGET_DIR is the fallback target directory; cargo metadata
        normally reports it already.
        Everything else is overridable via CARGO_WASM_* variables.
        """
        target_dir = Path(os.environ.get("CARGO_TARGET_DIR", "target"))
        return cls(
            cargo=os.environ.get("CARGO", "cargo"),
            target_dir=target_dir,
            bindgen_root=_env_path("CARGO_WASM_BINDGEN_ROOT"),
            binaryen_version=os.environ.get(
                "CARGO_WASM_BINARYEN_VERSION", _DEFAULT_BINARYEN_VERSION
            ),
            binaryen_base_url=os.environ.get("CARGO_WASM_BINARYEN_URL", _DEFAULT_BINARYEN_URL),
            wasm_opt_root=_env_path("CARGO_WASM_WASM_OPT_ROOT"),
            log_dir=Path(os.environ.get("CARGO_WASM_LOG_DIR", target_dir / "cargo-wasm" / "logs")),
            process_timeout=_env_float("CARGO_WASM_PROCESS_TIMEOUT", 3600),
            download_timeout=_env_float("CARGO_WASM_DOWNLOAD_TIMEOUT", 120),
        )


class OptimizationOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    level: OptimizationLevel = OptimizationLevel.DEFAULT


class BuildOptions(BaseModel):
    """Immutable snapshot of the options for one build invocation."""

    model_config = ConfigDict(frozen=True)

    release: bool = False
    target: ModuleTarget = ModuleTarget.WEB
    out_dir: Path = DEFAULT_OUT_DIR
    clean: bool = False
    typescript: bool = False
    # https://rustwasm.github.io/docs/wasm-bindgen/reference/cli.html
    weak_refs: bool = False
    reference_types: bool = False
    no_demangle: bool = False
    quiet: bool = False
    optimization: OptimizationOptions | None = None

    @field_validator("target", mode="before")
    @classmethod
    def _parse_target(cls, v: object) -> object:
        if isinstance(v, str) and not isinstance(v, ModuleTarget):
            lowered = v.strip().lower()
            if lowered not in {t.value for t in ModuleTarget}:
                raise ValueError(
                    f"'{v}' is not an allowed target. "
                    "Supported options are: web (default), bundler, rollup"
                )
            return lowered
        return v

    @property
    def profile(self) -> str:
        """Cargo output subdirectory for the selected mode."""
        return "release" if self.release else "debug"
