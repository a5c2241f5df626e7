"""Tests for CLI commands. The orchestrator is mocked; no cargo needed."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from cargo_wasm.cli import main, run
from cargo_wasm.exceptions import CompileFailed, GlueGenerationFailed, MetadataUnavailable
from cargo_wasm.models.build import (
    BuildArtifact,
    BuildReport,
    ModuleTarget,
    OptimizationLevel,
    SizeReport,
    StageFailure,
)
from cargo_wasm.models.package import Package
from cargo_wasm.progress import ProgressTracker

PKG = Package("my-app", Path("/ws/my-app/Cargo.toml"), "0.2.68")


@pytest.fixture(autouse=True)
def _no_logging_setup():
    with patch("cargo_wasm.cli.setup_logging"):
        yield


@pytest.fixture
def orchestrator():
    with patch("cargo_wasm.cli.BuildOrchestrator") as cls:
        instance = cls.return_value
        instance.progress = ProgressTracker()
        instance.log_store = None
        instance.run_id = None
        instance.build.return_value = BuildReport(packages=[PKG])
        yield instance


def _invoke(*args):
    return CliRunner().invoke(main, list(args))


def _options(orchestrator):
    return orchestrator.build.call_args[0][0]


# ── build ──


class TestBuildCommand:
    def test_defaults(self, orchestrator):
        result = _invoke("build")
        assert result.exit_code == 0, result.output
        options = _options(orchestrator)
        assert options.target is ModuleTarget.WEB
        assert options.release is False
        assert options.out_dir == Path("dist/js")
        assert options.optimization is None

    def test_flags(self, orchestrator):
        result = _invoke(
            "build",
            "--release",
            "-t",
            "--target",
            "Bundler",
            "--out-dir",
            "www/pkg",
            "--clean",
            "--weak-refs",
            "--reference-types",
            "--no-demangle",
        )
        assert result.exit_code == 0, result.output
        options = _options(orchestrator)
        assert options.release
        assert options.typescript
        assert options.target is ModuleTarget.BUNDLER
        assert options.out_dir == Path("www/pkg")
        assert options.clean
        assert options.weak_refs and options.reference_types and options.no_demangle

    def test_unknown_target(self, orchestrator):
        result = _invoke("build", "--target", "nodejs")
        assert result.exit_code == 2
        orchestrator.build.assert_not_called()

    def test_wasm_opt_default_level(self, orchestrator):
        _invoke("build", "--wasm-opt")
        assert _options(orchestrator).optimization.level is OptimizationLevel.DEFAULT

    def test_level_flag_implies_wasm_opt(self, orchestrator):
        _invoke("build", "--Oz")
        assert _options(orchestrator).optimization.level is OptimizationLevel.SIZE_AGGRESSIVE

    def test_first_level_flag_wins(self, orchestrator):
        _invoke("build", "--wasm-opt", "--Oz", "--O1")
        assert _options(orchestrator).optimization.level is OptimizationLevel.O1

    def test_prints_outputs(self, orchestrator):
        artifact = BuildArtifact(
            PKG, Path("/ws/target/my_app.wasm"), Path("/ws/dist/js/my_app_bg.wasm")
        )
        orchestrator.build.return_value = BuildReport(
            packages=[PKG],
            artifacts=[artifact],
            size_reports=[SizeReport(Path("/ws/dist/js/my_app_bg.wasm"), 2000, 1500)],
            bootstrap_path=Path("/ws/dist/js/bootstrap.js"),
        )
        result = _invoke("build")
        assert "my-app: /ws/dist/js/my_app_bg.wasm" in result.output
        assert "2,000 -> 1,500 bytes (25.0% reduction)" in result.output
        assert "bootstrap: /ws/dist/js/bootstrap.js" in result.output
        assert "Pipeline summary" in result.output

    def test_no_packages(self, orchestrator):
        orchestrator.build.return_value = BuildReport()
        result = _invoke("build")
        assert result.exit_code == 0
        assert "nothing to build" in result.output

    def test_failures_exit_1(self, orchestrator):
        error = CompileFailed("my-app", "cargo exited with code 101")
        orchestrator.build.return_value = BuildReport(
            packages=[PKG],
            failures=[StageFailure("compile", error, "my-app")],
        )
        result = _invoke("build")
        assert result.exit_code == 1
        assert "[compile] my-app: Compiling my-app failed" in result.output

    def test_failures_listed_in_pipeline_order(self, orchestrator):
        orchestrator.build.return_value = BuildReport(
            packages=[PKG],
            failures=[
                StageFailure("glue", GlueGenerationFailed("b", "not installed"), "b"),
                StageFailure("compile", CompileFailed("a", "exit 101"), "a"),
            ],
        )
        result = _invoke("build")
        assert result.exit_code == 1
        assert result.output.index("[compile] a:") < result.output.index("[glue] b:")

    def test_malformed_timeout_env(self, orchestrator, monkeypatch):
        monkeypatch.setenv("CARGO_WASM_PROCESS_TIMEOUT", "soon")
        result = _invoke("build")
        assert result.exit_code == 2
        assert "CARGO_WASM_PROCESS_TIMEOUT must be a number of seconds, got 'soon'" in result.output
        assert "Traceback" not in result.output
        orchestrator.build.assert_not_called()

    def test_fatal_error_exit_2(self, orchestrator):
        orchestrator.build.side_effect = MetadataUnavailable("could not find `Cargo.toml`")
        result = _invoke("build")
        assert result.exit_code == 2
        assert "Unable to run cargo-wasm" in result.output

    def test_quiet(self, orchestrator):
        result = _invoke("-q", "build")
        assert result.exit_code == 0
        assert result.output == ""
        assert _options(orchestrator).quiet is True

    def test_timeout_zero_disables(self):
        with patch("cargo_wasm.cli.BuildOrchestrator") as cls:
            cls.return_value.build.return_value = BuildReport(packages=[PKG])
            cls.return_value.progress = ProgressTracker()
            cls.return_value.log_store = None
            _invoke("build", "--timeout", "0")
        assert cls.call_args.kwargs["settings"].process_timeout is None

    def test_project_dir(self, orchestrator, tmp_path):
        with patch("cargo_wasm.cli.BuildOrchestrator") as cls:
            cls.return_value = orchestrator
            _invoke("build", "--project-dir", str(tmp_path))
        assert cls.call_args.kwargs["project_root"] == tmp_path.resolve()


# ── packages ──


class TestPackagesCommand:
    def test_lists_packages(self, orchestrator):
        orchestrator.discover.return_value = [PKG]
        result = _invoke("packages")
        assert result.exit_code == 0
        assert "my-app" in result.output
        assert "0.2.68" in result.output

    def test_empty(self, orchestrator):
        orchestrator.discover.return_value = []
        result = _invoke("packages")
        assert "No workspace packages depend on wasm-bindgen" in result.output

    def test_metadata_error(self, orchestrator):
        orchestrator.discover.side_effect = MetadataUnavailable("boom")
        result = _invoke("packages")
        assert result.exit_code == 2


# ── cargo subcommand entry ──


class TestRun:
    def test_strips_cargo_subcommand_name(self):
        with patch("sys.argv", ["cargo-wasm", "wasm", "build", "--release"]):
            with patch.object(main, "main") as mock_main:
                run()
        mock_main.assert_called_once_with(args=["build", "--release"], prog_name="cargo wasm")

    def test_direct_invocation(self):
        with patch("sys.argv", ["cargo-wasm", "packages"]):
            with patch.object(main, "main") as mock_main:
                run()
        mock_main.assert_called_once_with(args=["packages"], prog_name="cargo wasm")


def test_help_lists_commands():
    result = _invoke("--help")
    assert result.exit_code == 0
    assert "build" in result.output
    assert "packages" in result.output


def test_build_help_lists_optimization_flags():
    result = _invoke("build", "--help")
    assert "--wasm-opt" in result.output
    assert "--Oz" in result.output
