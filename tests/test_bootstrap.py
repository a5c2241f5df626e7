"""Tests for BootstrapEmitter."""

from __future__ import annotations

from pathlib import Path

from cargo_wasm.build.bootstrap import BOOTSTRAP_FILENAME, BootstrapEmitter
from cargo_wasm.models.package import Package


def _packages(*names):
    return [Package(n, Path(f"/ws/{n}/Cargo.toml"), "0.2.68") for n in names]


class TestBootstrapEmitter:
    def test_imports_before_inits(self, tmp_path):
        text = BootstrapEmitter().emit(_packages("a", "b"), tmp_path)
        lines = [line for line in text.splitlines() if line and not line.startswith("//")]
        assert lines[0] == "import init_a from './a.js';"
        assert lines[1] == "import init_b from './b.js';"
        assert lines[2].startswith("init_a('./a_bg.wasm')")
        assert lines[3].startswith("init_b('./b_bg.wasm')")
        assert len(lines) == 4

    def test_load_failure_is_reported(self, tmp_path):
        text = BootstrapEmitter().emit(_packages("a"), tmp_path)
        assert "console.error('Failed to load wasm: ./a_bg.wasm', e)" in text

    def test_crate_names_used(self, tmp_path):
        text = BootstrapEmitter().emit(_packages("my-app"), tmp_path)
        assert "import init_my_app from './my_app.js';" in text
        assert "my-app" not in text.split("\n", 1)[1]

    def test_write(self, tmp_path):
        out_dir = tmp_path / "dist" / "js"
        path = BootstrapEmitter().write(_packages("a", "b"), out_dir)
        assert path == out_dir / BOOTSTRAP_FILENAME
        assert path.read_text(encoding="utf-8").endswith("\n")
