"""
optimizer/telemetry — per-iteration run history.

Public API:
    IterationRecorder  — on_iteration callback that buffers IterationRecords
                         and writes them to CSV
"""

from optimizer.telemetry.recorder import IterationRecorder

__all__ = ["IterationRecorder"]
