"""Loader script for bundler/rollup output: imports and initializes every module."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from cargo_wasm.models.package import Package

logger = logging.getLogger(__name__)

BOOTSTRAP_FILENAME = "bootstrap.js"


class BootstrapEmitter:
    """Build ``bootstrap.js``: all imports first, then one init call per package."""

    def emit(self, packages: Sequence[Package], out_dir: Path) -> str:
        """Return the script text. Paths are relative to *out_dir*, the script's own directory."""
        lines = [f"// Generated by cargo-wasm for {Path(out_dir).as_posix()}. Do not edit."]
        for p in packages:
            lines.append(f"import init_{p.crate_name} from './{p.crate_name}.js';")
        lines.append("")
        for p in packages:
            wasm = f"./{p.crate_name}_bg.wasm"
            lines.append(
                f"init_{p.crate_name}('{wasm}')"
                f".catch((e) => console.error('Failed to load wasm: {wasm}', e));"
            )
        return "\n".join(lines) + "\n"

    def write(self, packages: Sequence[Package], out_dir: Path) -> Path:
        out_dir = Path(out_dir)
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / BOOTSTRAP_FILENAME
        path.write_text(self.emit(packages, out_dir), encoding="utf-8")
        logger.info("Wrote %s (%d modules)", path, len(packages))
        return path
