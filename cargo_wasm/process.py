"""Subprocess execution for cargo, wasm-bindgen and wasm-opt."""

from __future__ import annotations

import logging
import subprocess
import sys
import threading
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from cargo_wasm.exceptions import CommandError, CommandTimeout
from cargo_wasm.logging.base import LogStore

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    args: list[str]
    returncode: int
    stdout: str
    stderr: str


class CommandRunner:
    """Run external commands to completion, blocking the calling thread.

    Every command gets the same timeout (None waits forever). When a LogStore
    and a run id are set, the command line, exit code and captured output are
    appended to ``<run_id>/<phase>.log``.
    """

    def __init__(
        self,
        timeout: float | None = None,
        log_store: LogStore | None = None,
        run_id: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.log_store = log_store
        self.run_id = run_id
        self._log_lock = threading.Lock()

    def run(
        self,
        cmd: Sequence[str | Path],
        *,
        phase: str,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run *cmd* and return its captured output.

        Raises:
            CommandTimeout: the command exceeded ``self.timeout``.
            CommandError: non-zero exit, or the executable could not be started.
        """
        args = [str(a) for a in cmd]
        logger.debug("Running [%s]: %s", phase, " ".join(args))
        try:
            proc = subprocess.run(
                args,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            self._record(phase, args, None, _as_text(exc.stdout), _as_text(exc.stderr))
            raise CommandTimeout(args, exc.timeout) from exc
        except OSError as exc:
            self._record(phase, args, None, "", str(exc))
            raise CommandError(args, None, str(exc)) from exc

        self._record(phase, args, proc.returncode, proc.stdout, proc.stderr)
        if proc.returncode != 0:
            raise CommandError(args, proc.returncode, proc.stderr or "")
        return CommandResult(
            args=args, returncode=proc.returncode, stdout=proc.stdout, stderr=proc.stderr
        )

    def _record(
        self,
        phase: str,
        args: list[str],
        returncode: int | None,
        stdout: str,
        stderr: str,
    ) -> None:
        if not self.log_store or not self.run_id:
            return
        try:
            # compile and install phases write from different threads
            with self._log_lock, self.log_store.get_writer(self.run_id, phase) as writer:
                writer.write(f"$ {' '.join(args)}\n")
                if stdout:
                    writer.write(stdout if stdout.endswith("\n") else stdout + "\n")
                if stderr:
                    writer.write(stderr if stderr.endswith("\n") else stderr + "\n")
                writer.write(f"[exit {returncode if returncode is not None else '-'}]\n")
        except OSError:
            logger.debug("Failed to write %s log for run %s", phase, self.run_id, exc_info=True)


def _as_text(data: str | bytes | None) -> str:
    if data is None:
        return ""
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return data


def executable_name(name: str, windows: bool | None = None) -> str:
    """Append ``.exe`` on Windows (the host, unless *windows* is given)."""
    if windows is None:
        windows = sys.platform == "win32"
    return f"{name}.exe" if windows else name
