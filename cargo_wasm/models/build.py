"""Data models for build targets, tool installations and build outcomes."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from cargo_wasm.exceptions import CargoWasmError
from cargo_wasm.models.package import Package


class ModuleTarget(str, Enum):
    """Output module style of the generated js glue."""

    WEB = "web"
    BUNDLER = "bundler"
    ROLLUP = "rollup"

    @property
    def bindgen_target(self) -> str:
        """Value passed to `wasm-bindgen --target`. Rollup bundles web-style glue."""
        if self is ModuleTarget.BUNDLER:
            return "bundler"
        return "web"

    @property
    def wants_bootstrap(self) -> bool:
        return self in (ModuleTarget.BUNDLER, ModuleTarget.ROLLUP)


class OptimizationLevel(str, Enum):
    """wasm-opt optimization level. The value is the flag passed to wasm-opt."""

    NONE = "-O0"  # no optimization passes
    O1 = "-O1"  # quick & useful opts, useful for iteration builds
    O2 = "-O2"  # most opts, generally gets most perf
    O3 = "-O3"  # spends potentially a lot of time optimizing
    O4 = "-O4"  # also flattens the IR, needs more time and memory
    SIZE = "-Os"  # default passes, focusing on code size
    SIZE_AGGRESSIVE = "-Oz"  # default passes, super-focusing on code size
    DEFAULT = "-O"  # default optimization passes

    @classmethod
    def from_flags(
        cls,
        *,
        O0: bool = False,
        O1: bool = False,
        O2: bool = False,
        O3: bool = False,
        O4: bool = False,
        Os: bool = False,
        Oz: bool = False,
    ) -> OptimizationLevel:
        """Collapse wasm-opt style boolean flags into a single level.

        The first set flag in the order O0, O1, O2, O3, O4, Os, Oz wins.
        With no flag set the result is DEFAULT (``-O``), not O0.
        """
        ordered = (
            (O0, cls.NONE),
            (O1, cls.O1),
            (O2, cls.O2),
            (O3, cls.O3),
            (O4, cls.O4),
            (Os, cls.SIZE),
            (Oz, cls.SIZE_AGGRESSIVE),
        )
        for is_set, level in ordered:
            if is_set:
                return level
        return cls.DEFAULT


@dataclass(frozen=True)
class ToolInstallation:
    """An on-disk wasm-bindgen-cli install for one version."""

    version: str
    executable: Path

    @property
    def present(self) -> bool:
        return self.executable.exists()


@dataclass(frozen=True)
class OptimizerInstallation:
    """The process-wide wasm-opt install (binaryen is pinned globally)."""

    version: str
    root: Path
    executable: Path


@dataclass
class BuildArtifact:
    """Compiled .wasm for one package and, after glue generation, its _bg.wasm."""

    package: Package
    compiled_path: Path
    bound_path: Path | None = None


@dataclass(frozen=True)
class SizeReport:
    """Byte sizes of an artifact before and after wasm-opt."""

    path: Path
    original_size: int
    final_size: int

    @property
    def reduction_percent(self) -> float:
        """Percentage reduction. Negative when wasm-opt made the file larger."""
        if self.original_size == 0:
            return 0.0
        return (self.original_size - self.final_size) / self.original_size * 100


@dataclass
class StageFailure:
    """A failure recorded for one stage (and package, where applicable)."""

    stage: str  # "install" | "compile" | "glue" | "optimize"
    error: CargoWasmError
    package_name: str | None = None

    def __str__(self) -> str:
        return str(self.error)


@dataclass
class BuildReport:
    """Orchestrator return value for one `build` invocation."""

    packages: list[Package] = field(default_factory=list)
    artifacts: list[BuildArtifact] = field(default_factory=list)
    installations: dict[str, ToolInstallation] = field(default_factory=dict)
    size_reports: list[SizeReport] = field(default_factory=list)
    failures: list[StageFailure] = field(default_factory=list)
    bootstrap_path: Path | None = None
    optimized: bool = False
    bootstrapped: bool = False

    @property
    def ok(self) -> bool:
        return not self.failures

    def failures_for(self, stage: str) -> list[StageFailure]:
        return [f for f in self.failures if f.stage == stage]
