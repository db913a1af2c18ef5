"""
SettlementBatchScheduler -- daily batch trigger across tenants.

Contract:
    ``run_daily_batches(as_of)`` settles "yesterday" (in the configured
    timezone) for every active tenant and every configured cycle.  Each
    tenant runs in its own session and transaction; one tenant failing is
    rolled back, logged and recorded in the report, and the rest still run.

    ``tick(now)`` fires ``run_daily_batches`` when the scheduler is enabled
    and the cron expression matches ``now``'s wall-clock minute in the
    configured timezone, at most once per minute.  ``start()`` / ``stop()``
    drive ``tick`` from a background thread.

Non-goals:
    - NOT a distributed scheduler.  Running two copies is safe (batch
      creation is idempotent) but wasteful.
"""

import threading
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from uuid import UUID
from zoneinfo import ZoneInfo

from settlement_batch.schedule import DEFAULT_CRON, matches_cron, parse_cron
from settlement_batch.tenants import StaticTenantDirectory, TenantDirectory, TenantEntry
from settlement_kernel.domain.clock import Clock, SystemClock
from settlement_kernel.domain.context import SYSTEM_ACTOR_ID, ExecutionContext
from settlement_kernel.domain.types import SettlementCycle
from settlement_kernel.exceptions import SettlementKernelError
from settlement_kernel.logging_config import LogContext, get_logger
from settlement_kernel.services.business_day_calculator import (
    BusinessDayCalculator,
    HolidayCalendar,
)
from settlement_kernel.services.settlement_batch_service import (
    DEFAULT_TIMEZONE,
    SettlementBatchService,
)

logger = get_logger("batch.scheduler")

DEFAULT_CYCLES: tuple[SettlementCycle, ...] = (
    SettlementCycle.D_PLUS_1,
    SettlementCycle.D_PLUS_3,
)


@dataclass(frozen=True)
class TenantRunResult:
    tenant_id: str
    batch_numbers: tuple[str, ...] = ()
    error: str | None = None
    error_code: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class SchedulerRunReport:
    target_date: date
    started_at: datetime
    tenants: tuple[TenantRunResult, ...] = field(default_factory=tuple)

    @property
    def batch_numbers(self) -> tuple[str, ...]:
        return tuple(n for t in self.tenants for n in t.batch_numbers)

    @property
    def failed_tenants(self) -> tuple[str, ...]:
        return tuple(t.tenant_id for t in self.tenants if not t.succeeded)

    def for_tenant(self, tenant_id: str) -> TenantRunResult | None:
        return next((t for t in self.tenants if t.tenant_id == tenant_id), None)


class SettlementBatchScheduler:

    def __init__(
        self,
        directory: TenantDirectory,
        clock: Clock | None = None,
        enabled: bool = False,
        cron: str = DEFAULT_CRON,
        timezone_name: str = DEFAULT_TIMEZONE,
        cycles: Sequence[SettlementCycle] = DEFAULT_CYCLES,
        calendar: HolidayCalendar | None = None,
        country_code: str = "KR",
        actor_id: UUID = SYSTEM_ACTOR_ID,
        tick_interval_seconds: int = 30,
    ):
        self._directory = directory
        self._clock = clock or SystemClock()
        self.enabled = enabled
        self._cron_expression = cron
        self._cron = parse_cron(cron)
        self._timezone_name = timezone_name
        self._timezone = ZoneInfo(timezone_name)
        self._cycles = tuple(SettlementCycle(c) for c in cycles)
        self._calendar = calendar or HolidayCalendar()
        self._country_code = country_code
        self._actor_id = actor_id
        self._tick_interval = tick_interval_seconds
        self._last_fired_minute: datetime | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_config(
        cls,
        config,
        directory: TenantDirectory | None = None,
        clock: Clock | None = None,
    ) -> "SettlementBatchScheduler":
        """
        Build from a ``settlement_config.SettlementConfig``.

        Without an explicit ``directory`` one engine is created per
        configured tenant.
        """
        settings = config.scheduler
        if directory is None:
            directory = StaticTenantDirectory.from_urls(
                (t.tenant_id, t.database_url, t.active) for t in config.tenants
            )
        return cls(
            directory,
            clock=clock,
            enabled=settings.enabled,
            cron=settings.cron,
            timezone_name=settings.timezone,
            cycles=settings.cycles,
            calendar=HolidayCalendar.from_definitions(config.holiday_definitions()),
            country_code=config.country_code,
            tick_interval_seconds=settings.tick_interval_seconds,
        )

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def target_date(self, as_of: datetime | None = None) -> date:
        """The day before ``as_of`` in the configured timezone."""
        moment = as_of or self._clock.now()
        return moment.astimezone(self._timezone).date() - timedelta(days=1)

    def run_daily_batches(self, as_of: datetime | None = None) -> SchedulerRunReport:
        started_at = self._clock.now_utc()
        target = self.target_date(as_of)
        tenants = self._directory.active_tenants()

        logger.info(
            "daily_batch_run_started",
            extra={
                "target_date": target.isoformat(),
                "tenant_count": len(tenants),
                "cycles": [c.value for c in self._cycles],
            },
        )

        results = tuple(self._run_tenant(tenant, target) for tenant in tenants)
        report = SchedulerRunReport(target_date=target, started_at=started_at, tenants=results)

        logger.info(
            "daily_batch_run_completed",
            extra={
                "target_date": target.isoformat(),
                "batch_count": len(report.batch_numbers),
                "failed_tenants": list(report.failed_tenants),
            },
        )
        return report

    def tick(self, now: datetime | None = None) -> SchedulerRunReport | None:
        """Run when enabled and the cron matches; returns None otherwise."""
        if not self.enabled:
            return None

        moment = (now or self._clock.now()).astimezone(self._timezone)
        minute = moment.replace(second=0, microsecond=0)
        if not matches_cron(self._cron, minute):
            return None
        if self._last_fired_minute == minute:
            return None

        self._last_fired_minute = minute
        logger.info(
            "scheduler_fired",
            extra={"cron": self._cron_expression, "fired_at": minute.isoformat()},
        )
        return self.run_daily_batches(as_of=moment)

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="settlement-batch-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "enabled": self.enabled,
                "cron": self._cron_expression,
                "timezone": self._timezone_name,
                "tick_interval": self._tick_interval,
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception:
                logger.exception("scheduler_tick_exception")
            self._stop_event.wait(timeout=self._tick_interval)

    def _run_tenant(self, tenant: TenantEntry, target: date) -> TenantRunResult:
        context = ExecutionContext(
            tenant_id=tenant.tenant_id,
            actor_id=self._actor_id,
            clock=self._clock,
        )
        session = tenant.session_factory()
        with LogContext.bind(**context.log_fields()):
            try:
                calendar = HolidayCalendar.from_session(session, self._country_code).merge(
                    self._calendar
                )
                service = SettlementBatchService(
                    session,
                    context,
                    calculator=BusinessDayCalculator(calendar),
                    timezone_name=self._timezone_name,
                )
                batch_numbers = []
                for cycle in self._cycles:
                    batch = service.create_daily_batch(target, cycle)
                    if batch is not None:
                        batch_numbers.append(batch.batch_number)
                session.commit()
            except Exception as exc:
                session.rollback()
                logger.error(
                    "tenant_batch_failed",
                    extra={"target_date": target.isoformat()},
                    exc_info=True,
                )
                return TenantRunResult(
                    tenant_id=tenant.tenant_id,
                    error=str(exc),
                    error_code=(
                        exc.code if isinstance(exc, SettlementKernelError) else type(exc).__name__
                    ),
                )
            finally:
                session.close()

            logger.info(
                "tenant_batch_completed",
                extra={"target_date": target.isoformat(), "batch_numbers": batch_numbers},
            )
            return TenantRunResult(tenant_id=tenant.tenant_id, batch_numbers=tuple(batch_numbers))
