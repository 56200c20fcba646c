"""
Background maintenance of the analysis cache.
"""

import logging
import time
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED, JobExecutionEvent
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from chain_insight.cache.smart_cache import SmartCache
from chain_insight.config.models import MaintenanceConfig

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "cache_sweep"

_UNIT_SECONDS = {'s': 1, 'm': 60, 'h': 3600, 'd': 86400}


class SchedulerState(Enum):
    """Scheduler state enumeration."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    ERROR = "error"


def interval_seconds(interval: str) -> int:
    """
    Convert an interval string to seconds.

    Args:
        interval: Interval string (e.g., '30s', '10m', '1h', '1d')

    Returns:
        Interval length in seconds
    """
    if not interval or len(interval) < 2:
        raise ValueError(f"Invalid interval format: {interval}")

    unit = interval[-1].lower()
    try:
        value = int(interval[:-1])
    except ValueError:
        raise ValueError(f"Invalid interval format: {interval}")

    if unit not in _UNIT_SECONDS:
        raise ValueError(f"Unsupported interval unit: {unit}")
    if value <= 0:
        raise ValueError(f"Interval must be positive: {interval}")
    return value * _UNIT_SECONDS[unit]


class CacheMaintenanceScheduler:
    """
    Periodically sweeps expired entries out of a SmartCache.

    The sweep runs as an APScheduler job on the running event loop, so it
    takes the cache lock only for the duration of one ``clean_expired``
    call and never blocks request handling for longer. Cache statistics are
    logged at most once per ``stats_log_interval``.
    """

    def __init__(
        self,
        cache: SmartCache,
        config: Optional[MaintenanceConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the maintenance scheduler.

        Args:
            cache: Cache to sweep
            config: Sweep and stats-log intervals
            clock: Time source in seconds
        """
        self.cache = cache
        self.config = config or MaintenanceConfig()
        self._clock = clock
        self._state = SchedulerState.STOPPED
        self._scheduler = AsyncIOScheduler(
            timezone=self.config.timezone,
            job_defaults={
                'coalesce': True,
                'max_instances': 1,
                'misfire_grace_time': 60,
            },
        )
        self._stats_log_seconds = interval_seconds(self.config.stats_log_interval)
        self._last_stats_log: Optional[float] = None
        self._sweeps = 0
        self._successful_runs = 0
        self._failed_runs = 0
        self._total_removed = 0
        self._last_run: Optional[datetime] = None
        self._last_error: Optional[str] = None

        self._setup_event_listeners()

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == SchedulerState.RUNNING

    def _setup_event_listeners(self) -> None:
        """Track job outcomes reported by APScheduler."""

        def job_executed_listener(event: JobExecutionEvent) -> None:
            if event.job_id != SWEEP_JOB_ID:
                return
            self._successful_runs += 1
            self._last_run = datetime.now()
            logger.debug(f"Job {event.job_id} executed successfully")

        def job_error_listener(event: JobExecutionEvent) -> None:
            if event.job_id != SWEEP_JOB_ID:
                return
            self._failed_runs += 1
            self._last_run = datetime.now()
            self._last_error = str(event.exception)
            logger.error(f"Job {event.job_id} failed: {event.exception}")

        self._scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self._scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    def _create_trigger(self, interval: str) -> IntervalTrigger:
        """
        Create an APScheduler trigger from interval string.

        Args:
            interval: Interval string (e.g., '10m', '1h')

        Returns:
            IntervalTrigger instance
        """
        return IntervalTrigger(seconds=interval_seconds(interval))

    async def start(self) -> None:
        """
        Start the sweep job.

        Must be called from a running event loop.
        """
        if self._state != SchedulerState.STOPPED:
            logger.warning(f"Maintenance scheduler already started, current state: {self._state}")
            return

        self._state = SchedulerState.STARTING
        logger.info(f"Starting cache maintenance every {self.config.sweep_interval}")

        try:
            self._scheduler.add_job(
                func=self.run_sweep,
                trigger=self._create_trigger(self.config.sweep_interval),
                id=SWEEP_JOB_ID,
                name="Cache sweep",
                replace_existing=True,
            )
            self._scheduler.start()
            self._state = SchedulerState.RUNNING
            logger.info("Cache maintenance scheduler started")

        except Exception as e:
            self._state = SchedulerState.ERROR
            logger.error(f"Failed to start maintenance scheduler: {e}")
            raise

    async def stop(self) -> None:
        """Stop the sweep job."""
        if self._state not in (SchedulerState.RUNNING, SchedulerState.ERROR):
            logger.warning(f"Maintenance scheduler not running, current state: {self._state}")
            return

        self._state = SchedulerState.STOPPING
        logger.info("Stopping cache maintenance scheduler")

        try:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
            self._state = SchedulerState.STOPPED
            logger.info("Cache maintenance scheduler stopped")

        except Exception as e:
            self._state = SchedulerState.ERROR
            logger.error(f"Error stopping maintenance scheduler: {e}")
            raise

    async def run_sweep(self) -> int:
        """
        Remove expired cache entries once.

        Returns:
            Number of entries removed
        """
        removed = await self.cache.clean_expired()
        self._sweeps += 1
        self._total_removed += removed
        logger.debug(f"Cache sweep removed {removed} expired entries")

        now = self._clock()
        if self._last_stats_log is None or now - self._last_stats_log >= self._stats_log_seconds:
            stats = await self.cache.get_stats()
            logger.info(
                f"Cache stats: {stats['size']}/{stats['max_size']} entries, "
                f"hit rate {stats['hit_rate']:.1f}%, kinds {stats['kind_breakdown']}"
            )
            self._last_stats_log = now

        return removed

    def get_status(self) -> Dict[str, Any]:
        """Scheduler state and sweep counters."""
        return {
            "state": self._state.value,
            "sweep_interval": self.config.sweep_interval,
            "sweeps": self._sweeps,
            "successful_runs": self._successful_runs,
            "failed_runs": self._failed_runs,
            "total_removed": self._total_removed,
            "last_run": self._last_run.isoformat() if self._last_run else None,
            "last_error": self._last_error,
            "scheduler_running": self._scheduler.running,
        }
