"""
YAML loader for ``settlement_config.schema``.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError``.
* Bad values (cron, cycle name, date, timezone)  -> ``ValueError``.

Every successfully parsed file carries a SHA-256 checksum of its canonical
JSON form, logged on load so a running scheduler can be matched to the file
it was started from.
"""

import hashlib
import json
from datetime import date
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from settlement_batch.schedule import parse_cron
from settlement_config.schema import (
    HolidayDef,
    SchedulerSettings,
    SettlementConfig,
    TenantDef,
)
from settlement_kernel.domain.types import SettlementCycle
from settlement_kernel.logging_config import get_logger

logger = get_logger("config.loader")


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Raises:
        FileNotFoundError: the file does not exist.
        yaml.YAMLError: the file is not valid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f)
    return data or {}


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization; deterministic."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def parse_scheduler(data: dict[str, Any] | None) -> SchedulerSettings:
    data = data or {}
    defaults = SchedulerSettings()

    cron = str(data.get("cron", defaults.cron))
    parse_cron(cron)

    timezone = str(data.get("timezone", defaults.timezone))
    try:
        ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"Unknown timezone: {timezone!r}") from exc

    raw_cycles = data.get("cycles")
    if raw_cycles is None:
        cycles = defaults.cycles
    else:
        cycles = tuple(SettlementCycle(str(c)) for c in raw_cycles)
        if not cycles:
            raise ValueError("scheduler.cycles must list at least one cycle")

    interval = int(data.get("tick_interval_seconds", defaults.tick_interval_seconds))
    if interval <= 0:
        raise ValueError(f"tick_interval_seconds must be positive, got {interval}")

    return SchedulerSettings(
        enabled=bool(data.get("enabled", defaults.enabled)),
        cron=cron,
        timezone=timezone,
        cycles=cycles,
        tick_interval_seconds=interval,
    )


def parse_holiday(data: dict[str, Any]) -> HolidayDef:
    raw_date = data["date"]
    holiday_date = raw_date if isinstance(raw_date, date) else date.fromisoformat(str(raw_date))
    return HolidayDef(
        holiday_date=holiday_date,
        name=data["name"],
        is_recurring=bool(data.get("recurring", False)),
    )


def parse_tenant(data: dict[str, Any]) -> TenantDef:
    return TenantDef(
        tenant_id=str(data["tenant_id"]),
        database_url=data["database_url"],
        active=bool(data.get("active", True)),
    )


def parse_settlement_config(data: dict[str, Any]) -> SettlementConfig:
    tenants = tuple(parse_tenant(t) for t in data.get("tenants", []))
    seen: set[str] = set()
    for tenant in tenants:
        if tenant.tenant_id in seen:
            raise ValueError(f"Duplicate tenant_id: {tenant.tenant_id}")
        seen.add(tenant.tenant_id)

    return SettlementConfig(
        scheduler=parse_scheduler(data.get("scheduler")),
        holidays=tuple(parse_holiday(h) for h in data.get("holidays", [])),
        tenants=tenants,
        country_code=str(data.get("country_code", "KR")),
        checksum=compute_checksum(data),
    )


def load_settlement_config(path: Path | str) -> SettlementConfig:
    path = Path(path)
    config = parse_settlement_config(load_yaml_file(path))
    logger.info(
        "settlement_config_loaded",
        extra={
            "path": str(path),
            "checksum": config.checksum,
            "scheduler_enabled": config.scheduler.enabled,
            "tenant_count": len(config.tenants),
            "holiday_count": len(config.holidays),
        },
    )
    return config
