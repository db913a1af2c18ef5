"""Pure domain values for the settlement kernel. No database access."""

from settlement_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from settlement_kernel.domain.context import SYSTEM_ACTOR_ID, ExecutionContext
from settlement_kernel.domain.fee_schedule import DEFAULT_KEY, FeeSchedule
from settlement_kernel.domain.hierarchy import MASTER_PATH, child_path, is_descendant
from settlement_kernel.domain.types import (
    CreationStatus,
    EntryType,
    EventType,
    MerchantStatus,
    OrganizationStatus,
    OrganizationType,
    SettlementBatchStatus,
    SettlementCycle,
    SettlementEntityType,
    SettlementStatus,
)

__all__ = [
    "Clock",
    "SystemClock",
    "DeterministicClock",
    "ExecutionContext",
    "SYSTEM_ACTOR_ID",
    "FeeSchedule",
    "DEFAULT_KEY",
    "MASTER_PATH",
    "child_path",
    "is_descendant",
    "CreationStatus",
    "EntryType",
    "EventType",
    "MerchantStatus",
    "OrganizationStatus",
    "OrganizationType",
    "SettlementBatchStatus",
    "SettlementCycle",
    "SettlementEntityType",
    "SettlementStatus",
]
