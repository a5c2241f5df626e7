"""Fake cargo toolchain for tests. No cargo, wasm-bindgen or network needed."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any, Callable

from cargo_wasm.config import WASM32_UNKNOWN_UNKNOWN
from cargo_wasm.exceptions import CommandError
from cargo_wasm.process import CommandResult, executable_name

COMPILED_WASM = b"\x00asm\x01\x00\x00\x00" + b"\x00" * 120


def wasm_bindgen_id(version: str) -> str:
    return f"registry+https://github.com/rust-lang/crates.io-index#wasm-bindgen@{version}"


def member_id(root: Path, name: str) -> str:
    return f"path+file://{root / name}#{name}@0.1.0"


def cargo_metadata(root: Path, members: dict[str, str | None]) -> dict[str, Any]:
    """`cargo metadata` output for a workspace.

    *members* maps member name to the wasm-bindgen version it depends on
    directly, or None for a member without wasm-bindgen.
    """
    packages: list[dict[str, Any]] = []
    nodes: list[dict[str, Any]] = []
    for version in sorted({v for v in members.values() if v}):
        packages.append(
            {
                "id": wasm_bindgen_id(version),
                "name": "wasm-bindgen",
                "version": version,
                "manifest_path": f"/registry/wasm-bindgen-{version}/Cargo.toml",
                "dependencies": [],
            }
        )
        nodes.append({"id": wasm_bindgen_id(version), "deps": []})
    for name, version in members.items():
        deps = []
        node_deps = []
        if version:
            deps.append({"name": "wasm-bindgen", "req": f"^{version}", "kind": None})
            node_deps.append(
                {
                    "name": "wasm_bindgen",
                    "pkg": wasm_bindgen_id(version),
                    "dep_kinds": [{"kind": None, "target": None}],
                }
            )
        packages.append(
            {
                "id": member_id(root, name),
                "name": name,
                "version": "0.1.0",
                "manifest_path": str(root / name / "Cargo.toml"),
                "dependencies": deps,
            }
        )
        nodes.append({"id": member_id(root, name), "deps": node_deps})
    return {
        "packages": packages,
        "workspace_members": [member_id(root, name) for name in members],
        "resolve": {"nodes": nodes, "root": None},
        "target_directory": str(root / "target"),
        "version": 1,
        "workspace_root": str(root),
    }


class FakeRunner:
    """Stands in for CommandRunner and simulates the cargo toolchain on disk.

    - ``cargo metadata`` prints ``self.metadata``
    - ``cargo install --root R`` creates ``R/bin/wasm-bindgen``
    - ``cargo build`` writes the compiled .wasm under the metadata's
      ``target_directory``, or ``<cwd>/target`` without one
    - ``wasm-bindgen`` writes ``.js``, ``_bg.wasm`` and, unless
      ``--no-typescript`` is given, ``.d.ts`` into ``--out-dir``
    - ``wasm-opt`` halves the file in place
    """

    def __init__(self, metadata: dict[str, Any] | str | None = None) -> None:
        self.metadata = metadata if metadata is not None else {}
        self.calls: list[tuple[str, list[str], Path | None]] = []
        self.run_id: str | None = None
        self.timeout: float | None = None
        self._failures: list[tuple[Callable[[list[str]], bool], int, str]] = []
        self._hooks: dict[str, Callable[[list[str]], None]] = {}
        self._lock = threading.Lock()

    def fail_when(
        self, predicate: Callable[[list[str]], bool], returncode: int = 101, stderr: str = "error"
    ) -> None:
        self._failures.append((predicate, returncode, stderr))

    def on(self, tool: str, hook: Callable[[list[str]], None]) -> None:
        """Replace the simulated effect of *tool* (``wasm-bindgen``, ``wasm-opt``)."""
        self._hooks[tool] = hook

    def commands(self, phase: str | None = None) -> list[list[str]]:
        return [args for p, args, _ in self.calls if phase is None or p == phase]

    def phases(self) -> list[str]:
        return [p for p, _, _ in self.calls]

    def run(self, cmd, *, phase, cwd=None) -> CommandResult:
        args = [str(a) for a in cmd]
        with self._lock:
            self.calls.append((phase, args, Path(cwd) if cwd else None))
        for predicate, returncode, stderr in self._failures:
            if predicate(args):
                raise CommandError(args, returncode, stderr)
        stdout = self._simulate(args, Path(cwd) if cwd else None)
        return CommandResult(args=args, returncode=0, stdout=stdout, stderr="")

    def _simulate(self, args: list[str], cwd: Path | None) -> str:
        tool = Path(args[0]).name
        for name, hook in self._hooks.items():
            if tool.startswith(name):
                hook(args)
                return ""
        subcommand = args[1] if len(args) > 1 else ""
        if tool.startswith("wasm-bindgen"):
            out_dir = Path(args[args.index("--out-dir") + 1])
            crate = Path(args[1]).stem
            js = f"export default function init() {{}} // {crate}\n"
            (out_dir / f"{crate}.js").write_text(js)
            (out_dir / f"{crate}_bg.wasm").write_bytes(COMPILED_WASM)
            if "--no-typescript" not in args:
                (out_dir / f"{crate}.d.ts").write_text("export default function init(): void;\n")
        elif tool.startswith("wasm-opt"):
            path = Path(args[1])
            data = path.read_bytes()
            path.write_bytes(data[: len(data) // 2])
        elif subcommand == "metadata":
            if isinstance(self.metadata, str):
                return self.metadata
            return json.dumps(self.metadata)
        elif subcommand == "install":
            root = Path(args[args.index("--root") + 1])
            exe = root / "bin" / executable_name("wasm-bindgen")
            exe.parent.mkdir(parents=True, exist_ok=True)
            exe.write_text("#!/bin/sh\n")
        elif subcommand == "build":
            name = args[args.index("--package") + 1]
            profile = "release" if "--release" in args else "debug"
            out = self._target_dir(cwd) / WASM32_UNKNOWN_UNKNOWN / profile
            out.mkdir(parents=True, exist_ok=True)
            (out / f"{name.replace('-', '_')}.wasm").write_bytes(COMPILED_WASM)
        return ""

    def _target_dir(self, cwd: Path | None) -> Path:
        if isinstance(self.metadata, dict) and self.metadata.get("target_directory"):
            return Path(self.metadata["target_directory"])
        return (cwd or Path.cwd()) / "target"


def is_cargo(subcommand: str, package: str | None = None) -> Callable[[list[str]], bool]:
    """Predicate for FakeRunner.fail_when matching a cargo subcommand (and package)."""

    def predicate(args: list[str]) -> bool:
        if Path(args[0]).name != "cargo" or args[1:2] != [subcommand]:
            return False
        return package is None or package in args

    return predicate


