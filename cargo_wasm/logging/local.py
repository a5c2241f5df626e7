"""Transcripts as plain files under the cargo target directory."""

from __future__ import annotations

from pathlib import Path
from typing import IO

from cargo_wasm.logging.base import LogStore


class LocalLogStore(LogStore):
    """``<base_dir>/<run_id>/<phase>.log``"""

    def __init__(self, base_dir: str | Path = "target/cargo-wasm/logs") -> None:
        self.base_dir = Path(base_dir)

    def run_dir(self, run_id: str) -> Path:
        return self.base_dir / run_id

    def log_path(self, run_id: str, phase: str) -> Path:
        return self.run_dir(run_id) / f"{phase}.log"

    def get_writer(self, run_id: str, phase: str) -> IO:
        path = self.log_path(run_id, phase)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path.open("a", encoding="utf-8")

    def read_log(self, run_id: str, phase: str) -> str:
        try:
            return self.log_path(run_id, phase).read_text(encoding="utf-8")
        except FileNotFoundError:
            return ""

    def location(self, run_id: str) -> str:
        return str(self.run_dir(run_id))
