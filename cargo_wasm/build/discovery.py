"""Find workspace packages that need wasm-bindgen glue, via `cargo metadata`."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from cargo_wasm.config import WASM_BINDGEN
from cargo_wasm.exceptions import CommandError, MetadataUnavailable
from cargo_wasm.models.package import Package, Workspace
from cargo_wasm.process import CommandRunner

logger = logging.getLogger(__name__)


class PackageDiscovery:
    """
    Query cargo metadata once and select the packages to build.

    A package is selected when it is a workspace member and wasm-bindgen is
    reachable from it in the resolved dependency graph. Members may resolve
    different wasm-bindgen versions; each keeps its own.
    """

    def __init__(self, cargo: str, runner: CommandRunner) -> None:
        self.cargo = cargo
        self.runner = runner

    def discover(self, project_root: str | Path) -> list[Package]:
        """
        Return bindgen packages in workspace-member order.

        Raises:
            MetadataUnavailable: cargo metadata could not run or its output is unusable.
        """
        return self.inspect(project_root).packages

    def inspect(self, project_root: str | Path) -> Workspace:
        """Like :meth:`discover`, also returning where cargo puts build output."""
        root = Path(project_root)
        metadata = self.load_metadata(root)
        packages = self.select_packages(metadata)
        logger.info(
            "Discovered %d wasm-bindgen package(s): %s",
            len(packages),
            ", ".join(f"{p.name}@{p.bindgen_version}" for p in packages) or "-",
        )
        workspace_root = Path(metadata.get("workspace_root") or root)
        # older cargo omits target_directory; it then defaults to <workspace>/target
        target_dir = Path(metadata.get("target_directory") or workspace_root / "target")
        return Workspace(root=workspace_root, target_dir=target_dir, packages=packages)

    def load_metadata(self, project_root: str | Path) -> dict[str, Any]:
        cmd = [self.cargo, "metadata", "--format-version", "1"]
        try:
            result = self.runner.run(cmd, phase="discover", cwd=Path(project_root))
        except CommandError as exc:
            raise MetadataUnavailable(exc) from exc
        try:
            metadata = json.loads(result.stdout)
        except json.JSONDecodeError as exc:
            raise MetadataUnavailable(f"invalid JSON from cargo metadata: {exc}") from exc
        if not isinstance(metadata, dict):
            raise MetadataUnavailable("cargo metadata did not return a JSON object")
        for key in ("packages", "workspace_members"):
            if key not in metadata:
                raise MetadataUnavailable(f"cargo metadata output is missing '{key}'")
        return metadata

    @staticmethod
    def select_packages(metadata: dict[str, Any]) -> list[Package]:
        """Filter parsed metadata down to workspace members that use wasm-bindgen."""
        by_id: dict[str, dict[str, Any]] = {p["id"]: p for p in metadata["packages"]}
        graph = _dependency_graph(metadata)

        selected: list[Package] = []
        for member_id in metadata["workspace_members"]:
            pkg = by_id.get(member_id)
            if pkg is None or pkg["name"] == WASM_BINDGEN:
                continue
            if graph is not None:
                version = _find_reachable_version(member_id, graph, by_id)
            else:
                version = _find_direct_version(pkg, metadata["packages"])
            if version is None:
                logger.debug("Skipping %s: no wasm-bindgen dependency", pkg["name"])
                continue
            selected.append(
                Package(
                    name=pkg["name"],
                    manifest_path=Path(pkg["manifest_path"]),
                    bindgen_version=version,
                    id=member_id,
                )
            )
        return selected


def _dependency_graph(metadata: dict[str, Any]) -> dict[str, list[str]] | None:
    """``{package_id: [dependency ids]}`` from ``resolve.nodes``, or None without a resolve."""
    resolve = metadata.get("resolve")
    if not resolve:
        return None
    graph: dict[str, list[str]] = {}
    for node in resolve.get("nodes", []):
        if "deps" in node:
            # dev-only edges (e.g. via wasm-bindgen-test) do not end up in the cdylib
            graph[node["id"]] = [
                d["pkg"]
                for d in node["deps"]
                if not d.get("dep_kinds")
                or any(k.get("kind") != "dev" for k in d["dep_kinds"])
            ]
        else:
            graph[node["id"]] = list(node.get("dependencies", []))
    return graph


def _find_reachable_version(
    root_id: str,
    graph: dict[str, list[str]],
    by_id: dict[str, dict[str, Any]],
) -> str | None:
    """Breadth-first walk from *root_id*; version of the first wasm-bindgen reached."""
    seen = {root_id}
    queue = list(graph.get(root_id, []))
    while queue:
        dep_id = queue.pop(0)
        if dep_id in seen:
            continue
        seen.add(dep_id)
        dep = by_id.get(dep_id)
        if dep is not None and dep["name"] == WASM_BINDGEN:
            return str(dep["version"])
        queue.extend(graph.get(dep_id, []))
    return None


def _find_direct_version(pkg: dict[str, Any], packages: list[dict[str, Any]]) -> str | None:
    """Fallback for metadata without a resolve graph (e.g. --no-deps)."""
    declared = {d["name"] for d in pkg.get("dependencies", []) if d.get("kind") in (None, "normal")}
    if WASM_BINDGEN not in declared:
        return None
    versions = sorted(
        {str(p["version"]) for p in packages if p["name"] == WASM_BINDGEN}, key=_version_key
    )
    if versions:
        return versions[-1]
    # Only the requirement is known, e.g. "^0.2" -> "0.2"
    for d in pkg.get("dependencies", []):
        if d["name"] == WASM_BINDGEN:
            return d.get("req", "").lstrip("^=~ ") or None
    return None


def _version_key(version: str) -> tuple[int, ...]:
    core = version.split("+", 1)[0].split("-", 1)[0]
    return tuple(int(part) if part.isdigit() else 0 for part in core.split("."))
