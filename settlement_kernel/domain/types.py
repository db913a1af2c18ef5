"""
settlement_kernel.domain.types -- Status and classification enums.

ZERO I/O.  Stored in String columns by value, so the values are part of the
persisted format and must not be renamed.
"""

from enum import Enum


class OrganizationType(str, Enum):
    """Tier of a node in the distribution tree, root first."""

    DISTRIBUTOR = "DISTRIBUTOR"
    AGENCY = "AGENCY"
    DEALER = "DEALER"
    SELLER = "SELLER"
    VENDOR = "VENDOR"


class OrganizationStatus(str, Enum):
    ACTIVE = "ACTIVE"
    DISABLED = "DISABLED"


class MerchantStatus(str, Enum):
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    TERMINATED = "TERMINATED"


class SettlementEntityType(str, Enum):
    """Who receives a settlement leg: the merchant or one organization tier."""

    MERCHANT = "MERCHANT"
    VENDOR = "VENDOR"
    SELLER = "SELLER"
    DEALER = "DEALER"
    AGENCY = "AGENCY"
    DISTRIBUTOR = "DISTRIBUTOR"

    @classmethod
    def for_organization(cls, org_type: OrganizationType) -> "SettlementEntityType":
        return cls(OrganizationType(org_type).value)


class EventType(str, Enum):
    APPROVAL = "APPROVAL"
    CANCEL = "CANCEL"
    PARTIAL_CANCEL = "PARTIAL_CANCEL"


class EntryType(str, Enum):
    """CREDIT for approval-side legs, DEBIT for cancel-side legs."""

    CREDIT = "CREDIT"
    DEBIT = "DEBIT"


class SettlementStatus(str, Enum):
    """Lifecycle of one settlement leg.

    PENDING -> COMPLETED when batched.  PENDING_REVIEW marks legs whose
    event failed the zero-sum check; FAILED and PENDING_REVIEW legs are the
    only ones resettlement will replace (-> CANCELLED).
    """

    PENDING = "PENDING"
    PENDING_REVIEW = "PENDING_REVIEW"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


RESETTLEABLE_STATUSES: frozenset[SettlementStatus] = frozenset({
    SettlementStatus.FAILED,
    SettlementStatus.PENDING_REVIEW,
})


class SettlementBatchStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class SettlementCycle(str, Enum):
    """Payout cadence of a merchant.

    ``business_days`` is the offset from transaction date to settlement
    date; ``batch_prefix`` is the cycle's tag inside batch numbers.
    """

    D_PLUS_1 = "D_PLUS_1"
    D_PLUS_3 = "D_PLUS_3"
    REALTIME = "REALTIME"

    @property
    def business_days(self) -> int:
        return _CYCLE_BUSINESS_DAYS[self]

    @property
    def batch_prefix(self) -> str:
        return _CYCLE_PREFIX[self]


_CYCLE_BUSINESS_DAYS = {
    SettlementCycle.D_PLUS_1: 1,
    SettlementCycle.D_PLUS_3: 3,
    SettlementCycle.REALTIME: 0,
}

_CYCLE_PREFIX = {
    SettlementCycle.D_PLUS_1: "D1",
    SettlementCycle.D_PLUS_3: "D3",
    SettlementCycle.REALTIME: "RT",
}


class CreationStatus(str, Enum):
    """Outcome of SettlementCreationService.create_settlements."""

    CREATED = "CREATED"
    NEEDS_REVIEW = "NEEDS_REVIEW"
