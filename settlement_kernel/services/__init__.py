"""Settlement kernel services. Services flush; callers commit."""

from settlement_kernel.services.business_day_calculator import (
    BusinessDayCalculator,
    HolidayCalendar,
)
from settlement_kernel.services.fee_calculation_service import FeeCalculationService
from settlement_kernel.services.fee_config_resolver import FeeConfigResolver
from settlement_kernel.services.hierarchy_service import HierarchyService
from settlement_kernel.services.partial_cancel_calculator import PartialCancelCalculator
from settlement_kernel.services.resettlement_service import SettlementResettlementService
from settlement_kernel.services.settlement_batch_service import SettlementBatchService
from settlement_kernel.services.settlement_creation_service import (
    SettlementCreationResult,
    SettlementCreationService,
)
from settlement_kernel.services.settlement_service import SettlementService
from settlement_kernel.services.zero_sum_validator import ZeroSumValidator

__all__ = [
    "BusinessDayCalculator",
    "FeeCalculationService",
    "FeeConfigResolver",
    "HierarchyService",
    "HolidayCalendar",
    "PartialCancelCalculator",
    "SettlementBatchService",
    "SettlementCreationResult",
    "SettlementCreationService",
    "SettlementResettlementService",
    "SettlementService",
    "ZeroSumValidator",
]
