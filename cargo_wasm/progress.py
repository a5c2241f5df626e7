"""Progress tracking for the build pipeline."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable

logger = logging.getLogger(__name__)

PHASES = ("discover", "install", "compile", "glue", "optimize", "bootstrap")


@dataclass
class PhaseProgress:
    phase: str
    status: str = "pending"  # "pending" | "running" | "completed" | "failed" | "skipped"
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 2)
        return None


class ProgressTracker:
    """Track the status of build phases.

    The install phase is reported from the background installer thread while
    the compile phase is reported from the invoking thread, so updates are
    serialized with a lock. Callbacks run outside the lock.
    """

    def __init__(self) -> None:
        self.phases: list[PhaseProgress] = []
        self._by_name: dict[str, PhaseProgress] = {}
        self._lock = threading.Lock()
        self.callbacks: list[Callable[[PhaseProgress], None]] = []

    def start_phase(self, phase: str) -> None:
        p = PhaseProgress(phase=phase, status="running", start_time=time.monotonic())
        with self._lock:
            self.phases.append(p)
            self._by_name[phase] = p
        self._notify(p)

    def complete_phase(self, phase: str, detail: str = "") -> None:
        with self._lock:
            p = self._by_name.get(phase)
            if p:
                p.status = "completed"
                p.end_time = time.monotonic()
                p.detail = detail
        if p:
            self._notify(p)

    def fail_phase(self, phase: str, error: str, detail: str = "") -> None:
        with self._lock:
            p = self._by_name.get(phase)
            if p:
                p.status = "failed"
                p.end_time = time.monotonic()
                p.error = error
                p.detail = detail
        if p:
            self._notify(p)

    def skip_phase(self, phase: str, reason: str) -> None:
        p = PhaseProgress(phase=phase, status="skipped", detail=reason)
        with self._lock:
            self.phases.append(p)
            self._by_name[phase] = p
        self._notify(p)

    @contextmanager
    def track(self, phase: str) -> Iterator[PhaseProgress]:
        """Start *phase*; fail it if the body raises, else complete it.

        The body may set ``detail`` on the yielded record, or call
        :meth:`fail_phase` itself for failures that do not raise.
        """
        self.start_phase(phase)
        p = self._by_name[phase]
        try:
            yield p
        except Exception as exc:
            self.fail_phase(phase, str(exc), detail=p.detail)
            raise
        if p.status == "running":
            self.complete_phase(phase, detail=p.detail)

    def status_of(self, phase: str) -> str:
        p = self._by_name.get(phase)
        return p.status if p else "pending"

    def get_summary(self) -> dict[str, Any]:
        total_duration = sum(p.duration or 0 for p in self.phases)
        return {
            "phases": [
                {
                    "phase": p.phase,
                    "status": p.status,
                    "duration": p.duration,
                    "detail": p.detail,
                    "error": p.error,
                }
                for p in self.phases
            ],
            "failed": [p.phase for p in self.phases if p.status == "failed"],
            "total_duration": round(total_duration, 2),
        }

    def _notify(self, p: PhaseProgress) -> None:
        for cb in self.callbacks:
            try:
                cb(p)
            except Exception:
                logger.debug("Progress callback error for phase %s", p.phase, exc_info=True)
