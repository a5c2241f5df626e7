"""CLI entry point: cargo-wasm (also runs as the cargo subcommand `cargo wasm`).

Subcommands:
    cargo wasm build [--release] [--target bundler] [--wasm-opt --Oz]
    cargo wasm packages
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from cargo_wasm.config import DEFAULT_OUT_DIR, BuildOptions, OptimizationOptions, ToolSettings
from cargo_wasm.exceptions import CargoWasmError
from cargo_wasm.logging.local import LocalLogStore
from cargo_wasm.logging.setup import setup_logging
from cargo_wasm.models.build import BuildReport, ModuleTarget, OptimizationLevel
from cargo_wasm.orchestrator import BuildOrchestrator
from cargo_wasm.progress import PHASES

_STATUS_ICONS = {
    "completed": "+",
    "failed": "!",
    "skipped": "-",
    "running": "~",
    "pending": ".",
}


def _settings(timeout: float | None) -> ToolSettings:
    try:
        settings = ToolSettings.from_env()
    except ValueError as exc:
        raise click.UsageError(str(exc)) from exc
    if timeout is not None:
        limit = timeout if timeout > 0 else None
        settings = settings.model_copy(update={"process_timeout": limit})
    return settings


def _make_orchestrator(project_dir: str, timeout: float | None) -> BuildOrchestrator:
    root = Path(project_dir).resolve()
    settings = _settings(timeout)
    log_dir = settings.log_dir if settings.log_dir.is_absolute() else root / settings.log_dir
    return BuildOrchestrator(
        project_root=root, settings=settings, log_store=LocalLogStore(log_dir)
    )


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option("-q", "--quiet", is_flag=True, help="Only print warnings and errors")
@click.option(
    "--log-format",
    type=click.Choice(["console", "json"], case_sensitive=False),
    default=None,
    help="Log renderer (default: $CARGO_WASM_LOG_FORMAT or console)",
)
@click.pass_context
def main(ctx: click.Context, verbose: bool, quiet: bool, log_format: str | None) -> None:
    """cargo-wasm: compile a cargo workspace to wasm and generate js glue code."""
    if quiet:
        level = "WARNING"
    elif verbose:
        level = "DEBUG"
    else:
        level = None
    setup_logging(level=level, fmt=log_format)
    ctx.ensure_object(dict)
    ctx.obj["quiet"] = quiet


def _echo(ctx: click.Context, message: str) -> None:
    if not ctx.obj.get("quiet"):
        click.echo(message)


@main.command("build")
@click.option("-r", "--release", is_flag=True, help="Compile in release mode")
@click.option("-t", "--typescript", is_flag=True, help="Generate typescript files")
@click.option(
    "--target",
    type=click.Choice([t.value for t in ModuleTarget], case_sensitive=False),
    default=ModuleTarget.WEB.value,
    show_default=True,
    help="Module style of the generated js glue code",
)
@click.option("--out-dir", default=str(DEFAULT_OUT_DIR), show_default=True, help="Output directory")
@click.option("-c", "--clean", is_flag=True, help="Remove out-dir before writing glue code")
@click.option(
    "--weak-refs",
    is_flag=True,
    help="Use the TC39 Weak References proposal so wasm memory is eventually freed",
)
@click.option(
    "--reference-types",
    is_flag=True,
    help="Use the WebAssembly reference types proposal (externref for JsValue)",
)
@click.option(
    "--no-demangle", is_flag=True, help="Do not demangle Rust symbols in the names section"
)
@click.option("--wasm-opt", "wasm_opt", is_flag=True, help="Run binaryen's wasm-opt on the output")
@click.option("--O", "opt_default", is_flag=True, help="wasm-opt: default optimization passes")
@click.option("--O0", "o0", is_flag=True, help="wasm-opt: no optimization passes")
@click.option("--O1", "o1", is_flag=True, help="wasm-opt: quick & useful passes")
@click.option("--O2", "o2", is_flag=True, help="wasm-opt: most passes")
@click.option("--O3", "o3", is_flag=True, help="wasm-opt: spend a lot of time optimizing")
@click.option("--O4", "o4", is_flag=True, help="wasm-opt: also flatten the IR")
@click.option("--Os", "os_", is_flag=True, help="wasm-opt: focus on code size")
@click.option("--Oz", "oz", is_flag=True, help="wasm-opt: super-focus on code size")
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Cargo project or workspace root",
)
@click.option(
    "--timeout", type=float, default=None, help="Per-command timeout in seconds (0 = none)"
)
@click.pass_context
def build(
    ctx: click.Context,
    release: bool,
    typescript: bool,
    target: str,
    out_dir: str,
    clean: bool,
    weak_refs: bool,
    reference_types: bool,
    no_demangle: bool,
    wasm_opt: bool,
    opt_default: bool,
    o0: bool,
    o1: bool,
    o2: bool,
    o3: bool,
    o4: bool,
    os_: bool,
    oz: bool,
    project_dir: str,
    timeout: float | None,
) -> None:
    """Compile your project to wasm and generate js glue code."""
    level_flags = (opt_default, o0, o1, o2, o3, o4, os_, oz)
    optimization = None
    if wasm_opt or any(level_flags):
        level = OptimizationLevel.from_flags(O0=o0, O1=o1, O2=o2, O3=o3, O4=o4, Os=os_, Oz=oz)
        optimization = OptimizationOptions(level=level)

    options = BuildOptions(
        release=release,
        target=target,
        out_dir=Path(out_dir),
        clean=clean,
        typescript=typescript,
        weak_refs=weak_refs,
        reference_types=reference_types,
        no_demangle=no_demangle,
        quiet=ctx.obj.get("quiet", False),
        optimization=optimization,
    )

    orchestrator = _make_orchestrator(project_dir, timeout)
    try:
        report = orchestrator.build(options)
    except CargoWasmError as e:
        click.echo(f"Unable to run cargo-wasm: {e}", err=True)
        sys.exit(2)

    _print_report(ctx, report, orchestrator)
    if not report.ok:
        sys.exit(1)


def _print_report(
    ctx: click.Context, report: BuildReport, orchestrator: BuildOrchestrator
) -> None:
    if not report.packages:
        _echo(ctx, "No workspace packages depend on wasm-bindgen; nothing to build.")

    for artifact in report.artifacts:
        if artifact.bound_path is not None:
            _echo(ctx, f"  {artifact.package.name}: {artifact.bound_path}")

    for size in report.size_reports:
        _echo(
            ctx,
            f"  wasm-opt {size.path.name}: {size.original_size:,} -> {size.final_size:,} bytes "
            f"({size.reduction_percent:.1f}% reduction)",
        )

    if report.bootstrap_path is not None:
        _echo(ctx, f"  bootstrap: {report.bootstrap_path}")

    for stage in PHASES:
        for failure in report.failures_for(stage):
            prefix = f"[{stage}]"
            if failure.package_name:
                prefix += f" {failure.package_name}:"
            click.echo(f"{prefix} {failure}", err=True)

    summary = orchestrator.progress.get_summary()
    _echo(ctx, f"\nPipeline summary (total: {summary['total_duration']}s):")
    for p in summary["phases"]:
        status_icon = _STATUS_ICONS.get(p["status"], "?")
        duration = f" ({p['duration']}s)" if p["duration"] else ""
        detail = f" - {p['detail']}" if p["detail"] else ""
        _echo(ctx, f"  [{status_icon}] {p['phase']}{duration}{detail}")
    if orchestrator.log_store is not None and orchestrator.run_id:
        _echo(ctx, f"Logs: {orchestrator.log_store.location(orchestrator.run_id)}")


@main.command("packages")
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    help="Cargo project or workspace root",
)
@click.pass_context
def packages(ctx: click.Context, project_dir: str) -> None:
    """List workspace packages that need wasm-bindgen glue."""
    orchestrator = _make_orchestrator(project_dir, None)
    try:
        found = orchestrator.discover()
    except CargoWasmError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(2)
    if not found:
        click.echo("No workspace packages depend on wasm-bindgen.")
        return
    for p in found:
        click.echo(f"  {p.name:30s}  wasm-bindgen {p.bindgen_version:10s}  {p.directory}")


def run() -> None:
    """Console-script entry. `cargo wasm build` runs `cargo-wasm wasm build`."""
    args = sys.argv[1:]
    if args and args[0] == "wasm":
        args = args[1:]
    main.main(args=args, prog_name="cargo wasm")


if __name__ == "__main__":
    run()
