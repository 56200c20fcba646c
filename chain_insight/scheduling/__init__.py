"""
Background scheduling.
"""

from chain_insight.scheduling.maintenance import (
    CacheMaintenanceScheduler,
    SchedulerState,
    interval_seconds,
)

__all__ = [
    "CacheMaintenanceScheduler",
    "SchedulerState",
    "interval_seconds",
]
