"""
settlement_config -- runtime configuration for settlement batching.

``load_settlement_config(path)`` reads a YAML file; ``default_config()``
returns the built-in defaults (scheduler disabled, ``0 1 * * *`` in
Asia/Seoul, D+1 and D+3 cycles, no tenants).  ``DEFAULT_CONFIG_PATH``
points at the shipped example set.
"""

from pathlib import Path

from settlement_config.loader import load_settlement_config, parse_settlement_config
from settlement_config.schema import (
    HolidayDef,
    SchedulerSettings,
    SettlementConfig,
    TenantDef,
)

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def default_config() -> SettlementConfig:
    return parse_settlement_config({})


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "HolidayDef",
    "SchedulerSettings",
    "SettlementConfig",
    "TenantDef",
    "default_config",
    "load_settlement_config",
    "parse_settlement_config",
]
