"""
settlement_batch -- time-triggered settlement batching across tenants.

Depends on settlement_kernel for batch creation; the cron parser in
``settlement_batch.schedule`` is pure and has no kernel dependency.
"""

from settlement_batch.schedule import CronSpec, matches_cron, parse_cron
from settlement_batch.scheduler import (
    SchedulerRunReport,
    SettlementBatchScheduler,
    TenantRunResult,
)
from settlement_batch.tenants import StaticTenantDirectory, TenantDirectory, TenantEntry

__all__ = [
    "CronSpec",
    "SchedulerRunReport",
    "SettlementBatchScheduler",
    "StaticTenantDirectory",
    "TenantDirectory",
    "TenantEntry",
    "TenantRunResult",
    "matches_cron",
    "parse_cron",
]
