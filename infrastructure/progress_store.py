# infrastructure/progress_store.py
"""In-memory analysis progress per session, doubling as the in-flight guard"""
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from core.enums import ErrorCode, ProcessingStatus
from core.exceptions import AnalysisInProgress

_RUNNING = (ProcessingStatus.PENDING, ProcessingStatus.EXTRACTING)


@dataclass
class AnalysisProgress:
    status: ProcessingStatus = ProcessingStatus.PENDING
    current_step: str = "Starting..."
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def running(self) -> bool:
        return self.status in _RUNNING


class ProgressStore:
    """
    Latest analysis run per session, for the status polling endpoint.

    A session with a running analysis cannot start another one. When more
    than MAX_ENTRIES runs are held, the oldest finished ones are dropped
    down to KEEP_ENTRIES. Lost on restart.
    Usage: start() -> update() -> complete()/fail().
    """
    MAX_ENTRIES = 500
    KEEP_ENTRIES = 250

    def __init__(self):
        self._runs: Dict[str, AnalysisProgress] = {}

    def _evict_finished(self) -> None:
        excess = len(self._runs) - self.KEEP_ENTRIES
        finished = sorted(
            (run.started_at, session_id)
            for session_id, run in self._runs.items()
            if not run.running
        )
        for _, session_id in finished[:excess]:
            del self._runs[session_id]

    def is_running(self, session_id: str) -> bool:
        run = self._runs.get(session_id)
        return run is not None and run.running

    def start(self, session_id: str) -> None:
        """Raises AnalysisInProgress if this session already has a running analysis."""
        if self.is_running(session_id):
            raise AnalysisInProgress(f"Analysis already running for session {session_id}")
        if len(self._runs) >= self.MAX_ENTRIES:
            self._evict_finished()
        self._runs[session_id] = AnalysisProgress()

    def update(self, session_id: str, status: ProcessingStatus, step: str) -> None:
        run = self._runs.get(session_id)
        if run is not None:
            run.status, run.current_step = status, step

    def fail(self, session_id: str, error: str, error_code: ErrorCode) -> None:
        run = self._runs.get(session_id)
        if run is not None:
            run.status, run.current_step = ProcessingStatus.FAILED, "Failed"
            run.error, run.error_code = error, error_code

    def complete(self, session_id: str) -> None:
        self.update(session_id, ProcessingStatus.COMPLETED, "Done!")

    def get(self, session_id: str) -> Optional[Dict]:
        """Snapshot of the latest run as a plain dict, or None."""
        run = self._runs.get(session_id)
        return asdict(run) if run is not None else None

    def remove(self, session_id: str) -> None:
        self._runs.pop(session_id, None)
