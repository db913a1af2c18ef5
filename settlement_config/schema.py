"""
Typed runtime configuration for settlement batching.

All classes are frozen dataclasses; collections are tuples.
"""

from dataclasses import dataclass, field
from datetime import date

from settlement_kernel.domain.types import SettlementCycle


@dataclass(frozen=True)
class SchedulerSettings:
    """When and for which cycles the daily batch runs.

    ``enabled`` defaults to False so a fresh deployment never settles by
    surprise.
    """

    enabled: bool = False
    cron: str = "0 1 * * *"
    timezone: str = "Asia/Seoul"
    cycles: tuple[SettlementCycle, ...] = (
        SettlementCycle.D_PLUS_1,
        SettlementCycle.D_PLUS_3,
    )
    tick_interval_seconds: int = 30


@dataclass(frozen=True)
class HolidayDef:
    holiday_date: date
    name: str
    is_recurring: bool = False


@dataclass(frozen=True)
class TenantDef:
    tenant_id: str
    database_url: str
    active: bool = True


@dataclass(frozen=True)
class SettlementConfig:
    scheduler: SchedulerSettings = field(default_factory=SchedulerSettings)
    holidays: tuple[HolidayDef, ...] = ()
    tenants: tuple[TenantDef, ...] = ()
    country_code: str = "KR"
    checksum: str = ""

    def holiday_definitions(self) -> list[tuple[date, bool]]:
        """(date, is_recurring) pairs for HolidayCalendar.from_definitions()."""
        return [(h.holiday_date, h.is_recurring) for h in self.holidays]

    def active_tenants(self) -> tuple[TenantDef, ...]:
        return tuple(t for t in self.tenants if t.active)
