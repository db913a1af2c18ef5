"""Read-only selectors returning frozen DTOs."""

from settlement_kernel.selectors.organization_selector import (
    MerchantDTO,
    OrganizationDTO,
    OrganizationSelector,
)
from settlement_kernel.selectors.settlement_selector import (
    BatchDTO,
    BatchPage,
    DailyBatchReport,
    EntitySettlementSummary,
    SettlementDTO,
    SettlementQueryService,
    SettlementSummary,
)

__all__ = [
    "BatchDTO",
    "BatchPage",
    "DailyBatchReport",
    "EntitySettlementSummary",
    "MerchantDTO",
    "OrganizationDTO",
    "OrganizationSelector",
    "SettlementDTO",
    "SettlementQueryService",
    "SettlementSummary",
]
