"""
optimizer/telemetry/recorder.py
────────────────────────────────
IterationRecorder: collects a run's per-iteration history.

What this is
─────────────
The driver hands every IterationRecord to its on_iteration callback. An
IterationRecorder is such a callback: it buffers the records with shared
metadata (problem id, seed, ...) so the caller can draw convergence curves
or write the run to CSV after it finishes.

    recorder = IterationRecorder(metadata={"problem_id": problem.id})
    OptimizationDriver(problem, seed=3, on_iteration=recorder).run()
    recorder.best_curve()           # best-ever fitness per iteration
    recorder.flush(Path("runs/"))   # one CSV row per iteration

Threading
──────────
The driver calls on_iteration from the thread that called run(), after the
update barrier. One recorder per run; recorders are not shared.
"""

from __future__ import annotations

import csv
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from optimizer.shared.results import IterationRecord


class IterationRecorder:
    """
    Buffer of IterationRecords for one run.

    Attributes:
        metadata: Columns repeated on every CSV row.
        records:  Every record received, in iteration order.
    """

    def __init__(self, metadata: Optional[Dict[str, Any]] = None) -> None:
        self.metadata: Dict[str, Any] = dict(metadata or {})
        self.records: List[IterationRecord] = []

    def __call__(self, record: IterationRecord) -> None:
        self.records.append(record)

    def __len__(self) -> int:
        return len(self.records)

    # ── Curves ────────────────────────────────────────────────────────────────

    def best_curve(self) -> List[float]:
        return [r.best_fitness for r in self.records]

    def average_curve(self) -> List[float]:
        return [r.average_fitness for r in self.records]

    def diversity_curve(self) -> List[float]:
        return [r.diversity for r in self.records]

    def restart_iterations(self) -> List[int]:
        """Iterations after which the colony was reinitialised."""
        return [r.iteration for r in self.records if r.restarted]

    @property
    def latest(self) -> Optional[IterationRecord]:
        return self.records[-1] if self.records else None

    # ── Persistence ───────────────────────────────────────────────────────────

    def rows(self) -> List[Dict[str, Any]]:
        """One flat dict per iteration: metadata columns first, then the record."""
        return [{**self.metadata, **record.model_dump()} for record in self.records]

    def flush(self, directory: Path, filename: Optional[str] = None) -> Path:
        """
        Write every buffered record to a CSV file and return its path.

        Raises:
            RuntimeError: nothing has been recorded yet.
        """
        if not self.records:
            raise RuntimeError("No iterations recorded; was the recorder passed as on_iteration?")

        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        if filename is None:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S")
            filename = f"run_{stamp}.csv"
        path = directory / filename

        rows = self.rows()
        with path.open("w", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=list(rows[0].keys()))
            writer.writeheader()
            writer.writerows(rows)
        return path
