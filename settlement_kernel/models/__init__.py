"""ORM models for the settlement kernel."""

from settlement_kernel.models.holiday import Holiday
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.organization import Organization
from settlement_kernel.models.payment_method import PaymentMethod
from settlement_kernel.models.settlement import Settlement
from settlement_kernel.models.settlement_batch import SettlementBatch
from settlement_kernel.models.transaction_event import TransactionEvent

__all__ = [
    "Holiday",
    "Merchant",
    "Organization",
    "PaymentMethod",
    "Settlement",
    "SettlementBatch",
    "TransactionEvent",
]
