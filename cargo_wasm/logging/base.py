"""Build transcript storage interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import IO


class LogStore(ABC):
    """Per-run, per-phase transcripts of external tool output.

    Writers are opened in append mode: several commands of one phase share a log.
    """

    @abstractmethod
    def get_writer(self, run_id: str, phase: str) -> IO:
        """Open an append handle for one phase of a run."""
        ...

    @abstractmethod
    def read_log(self, run_id: str, phase: str) -> str:
        """Return the phase log, or an empty string if nothing was written."""
        ...

    @abstractmethod
    def location(self, run_id: str) -> str:
        """Human-readable place where the run's logs live."""
        ...
