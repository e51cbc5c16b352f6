"""Periodic refresh of the materialized views derived from the log tables.

Each job re-reads its SQL script on every run and hands it to the driver
verbatim, in one transaction. Jobs run as soon as the scheduler starts and
then once per interval. A failing job is logged and recorded; it never stops
the scheduler or the other jobs.

Stopping the scheduler sets a cancellation event. No new runs start after
that. A script already executing is cancelled through its driver connection
where the driver supports it (psycopg2 ``cancel()``), and its transaction is
rolled back instead of committed.
"""

import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.engine import Engine

from ..utils.logging import get_logger
from ..utils.time import utc_now_z

logger = get_logger(__name__)

DEFAULT_INTERVAL_SECONDS = 4 * 60 * 60
DEFAULT_SCRIPT_DIR = Path("sql/views")

REFRESH_STATS_VIEWS = "refresh_stats_views"
REFRESH_ALL_TABLE_VIEWS = "refresh_all_table_views"

# How long the loop sleeps between due-checks when idle.
_TICK_SECONDS = 1.0
_RUN_HISTORY_LIMIT = 100


class RefreshCancelled(Exception):
    """Raised inside a job when the scheduler is stopping."""


@dataclass(frozen=True)
class RefreshJob:
    name: str
    script_path: Path


@dataclass
class JobRun:
    name: str
    started_at_utc: str
    finished_at_utc: Optional[str] = None
    success: bool = False
    error: Optional[str] = None


@dataclass
class _JobState:
    job: RefreshJob
    next_run: float
    runs: int = 0
    failures: int = 0
    last_run: Optional[JobRun] = None
    history: List[JobRun] = field(default_factory=list)


def default_jobs(script_dir: Path = DEFAULT_SCRIPT_DIR) -> List[RefreshJob]:
    script_dir = Path(script_dir)
    return [
        RefreshJob(REFRESH_STATS_VIEWS, script_dir / "refresh_mv_stats.sql"),
        RefreshJob(REFRESH_ALL_TABLE_VIEWS, script_dir / "refresh_all_tables.sql"),
    ]


def _cancel_driver_connection(driver_conn: Any) -> None:
    cancel = getattr(driver_conn, "cancel", None)
    if callable(cancel):
        cancel()


class ViewRefreshScheduler:
    def __init__(
        self,
        engine: Engine,
        jobs: Iterable[RefreshJob],
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.engine = engine
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._states: Dict[str, _JobState] = {}
        for job in jobs:
            if job.name in self._states:
                raise ValueError(f"Duplicate refresh job: {job.name}")
            self._states[job.name] = _JobState(job=job, next_run=float("-inf"))
        self._cancel = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # Guards job state and the in-flight table; never held while SQL runs.
        self._lock = threading.Lock()
        # Serializes run_pending callers.
        self._run_lock = threading.Lock()
        self._in_flight: Dict[str, Any] = {}

    @property
    def jobs(self) -> List[RefreshJob]:
        return [state.job for state in self._states.values()]

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def running_jobs(self) -> List[str]:
        with self._lock:
            return list(self._in_flight)

    def run_job(self, job: RefreshJob) -> JobRun:
        """
        Read the job's script and execute it verbatim in one transaction.

        Never raises: read, execute and cancellation failures are logged and
        returned in the JobRun.
        """
        run = JobRun(name=job.name, started_at_utc=utc_now_z())
        logger.info(f"Refreshing views: {job.name}")
        try:
            if self._cancel.is_set():
                raise RefreshCancelled(f"{job.name} cancelled before start")
            script = Path(job.script_path).read_text(encoding="utf-8")
            with self.engine.begin() as conn:
                with self._lock:
                    self._in_flight[job.name] = conn.connection.driver_connection
                try:
                    conn.exec_driver_sql(script, execution_options={"no_parameters": True})
                finally:
                    with self._lock:
                        self._in_flight.pop(job.name, None)
                if self._cancel.is_set():
                    raise RefreshCancelled(f"{job.name} cancelled while running")
            run.success = True
        except RefreshCancelled as e:
            run.error = str(e)
            logger.warning(f"View refresh {job.name} rolled back: {e}")
        except Exception as e:
            run.error = f"{type(e).__name__}: {e}"
            logger.error(f"View refresh {job.name} failed: {e}", exc_info=True)
        run.finished_at_utc = utc_now_z()
        return run

    def run_pending(self, now: Optional[float] = None) -> List[JobRun]:
        """
        Run every job that is due at ``now`` and schedule its next run.

        The next run is anchored to the previous schedule, not to when the run
        finished, so a slow job does not drift the period.
        """
        now = self._clock() if now is None else now
        results: List[JobRun] = []
        with self._run_lock:
            with self._lock:
                due = [state for state in self._states.values() if now >= state.next_run]
            for state in due:
                if self._cancel.is_set():
                    break
                run = self.run_job(state.job)
                with self._lock:
                    state.runs += 1
                    if not run.success:
                        state.failures += 1
                    state.last_run = run
                    state.history.append(run)
                    del state.history[:-_RUN_HISTORY_LIMIT]
                    if state.next_run == float("-inf"):
                        state.next_run = now
                    while state.next_run <= now:
                        state.next_run += self.interval_seconds
                results.append(run)
        return results

    def start(self) -> None:
        """Start the background loop; due jobs run immediately."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._cancel.clear()
        self._thread = threading.Thread(target=self._loop, name="view-refresh", daemon=True)
        self._thread.start()
        logger.info(f"View refresh scheduler started: {', '.join(self._states)} every {self.interval_seconds}s")

    def _loop(self) -> None:
        while not self._cancel.is_set():
            self.run_pending()
            self._cancel.wait(min(_TICK_SECONDS, self.seconds_until_next_run()))

    def seconds_until_next_run(self) -> float:
        with self._lock:
            if not self._states:
                return self.interval_seconds
            soonest = min(state.next_run for state in self._states.values())
        return max(0.0, soonest - self._clock())

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop scheduling and cancel any script currently executing."""
        self._cancel.set()
        with self._lock:
            in_flight = list(self._in_flight.items())
        for name, driver_conn in in_flight:
            logger.info(f"Cancelling in-flight view refresh {name}")
            try:
                _cancel_driver_connection(driver_conn)
            except Exception as e:
                logger.warning(f"Could not cancel view refresh {name}: {e}")
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("View refresh scheduler stopped")

    def status(self) -> List[Dict]:
        with self._lock:
            return [
                {
                    "name": state.job.name,
                    "script": str(state.job.script_path),
                    "running": state.job.name in self._in_flight,
                    "runs": state.runs,
                    "failures": state.failures,
                    "last_success": state.last_run.success if state.last_run else None,
                    "last_error": state.last_run.error if state.last_run else None,
                }
                for state in self._states.values()
            ]

    def history(self, name: str) -> List[JobRun]:
        with self._lock:
            return list(self._states[name].history)
