"""cargo-wasm: build a cargo workspace to wasm with wasm-bindgen glue and wasm-opt."""

__version__ = "0.1.0"

from cargo_wasm.build.bootstrap import BootstrapEmitter
from cargo_wasm.build.compiler import Compiler
from cargo_wasm.build.discovery import PackageDiscovery
from cargo_wasm.build.glue import GlueGenerator
from cargo_wasm.config import BuildOptions, OptimizationOptions, ToolSettings
from cargo_wasm.models.build import (
    BuildArtifact,
    BuildReport,
    ModuleTarget,
    OptimizationLevel,
    SizeReport,
    ToolInstallation,
)
from cargo_wasm.models.package import Package
from cargo_wasm.orchestrator import BuildOrchestrator
from cargo_wasm.platform import Platform, PlatformResolver
from cargo_wasm.tools.installer import ToolInstaller
from cargo_wasm.tools.optimizer import OptimizationRunner, OptimizerFetcher

__all__ = [
    "BootstrapEmitter",
    "BuildArtifact",
    "BuildOptions",
    "BuildOrchestrator",
    "BuildReport",
    "Compiler",
    "GlueGenerator",
    "ModuleTarget",
    "OptimizationLevel",
    "OptimizationOptions",
    "OptimizationRunner",
    "OptimizerFetcher",
    "Package",
    "PackageDiscovery",
    "Platform",
    "PlatformResolver",
    "SizeReport",
    "ToolInstallation",
    "ToolInstaller",
    "ToolSettings",
]
