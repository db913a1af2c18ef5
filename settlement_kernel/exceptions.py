"""
Typed exception hierarchy for the settlement kernel.

Every error carries a class-level ``code`` (machine-readable, API-safe)
and its context as attributes, so the orchestration layer can map errors
to responses without parsing messages.

    SettlementKernelError (base)
    |
    +-- ConfigurationError
    |   +-- FeeConfigNotFoundError
    |   +-- InvalidFeeRateError
    |   +-- PaymentMethodNotFoundError
    |
    +-- SettlementCalculationError
    |   +-- MerchantNotFoundError
    |   +-- UnsupportedEventTypeError
    |   +-- OriginalApprovalNotFoundError
    |   +-- OriginalSettlementNotFoundError
    |   +-- ZeroSumViolationError
    |
    +-- ResettlementError
    |   +-- NoResettleableSettlementsError
    |   +-- TransactionEventNotFoundError
    |
    +-- HierarchyError
    |   +-- OrganizationNotFoundError
    |   +-- HierarchyCycleError
    |
    +-- InvalidCurrencyError

Category        | Code                            | When Raised
----------------|---------------------------------|-----------------------------------------
Configuration   | FEE_CONFIG_NOT_FOUND            | No rate for code and no "default"
                | INVALID_FEE_RATE                | Rate not numeric/decimal text, or out of range
                | PAYMENT_METHOD_NOT_FOUND        | Event references unknown payment method
Calculation     | MERCHANT_NOT_FOUND              | Event references unknown merchant
                | UNSUPPORTED_EVENT_TYPE          | Event type has no calculator
                | ORIGINAL_APPROVAL_NOT_FOUND     | Partial cancel without prior approval
                | ORIGINAL_SETTLEMENT_NOT_FOUND   | Approval exists but has no active legs
                | ZERO_SUM_VIOLATION              | sum(legs) != event amount
Resettlement    | NO_RESETTLEABLE_SETTLEMENTS     | Nothing FAILED / PENDING_REVIEW to fix
                | TRANSACTION_EVENT_NOT_FOUND     | Event id does not exist
Hierarchy       | ORGANIZATION_NOT_FOUND          | Organization id does not exist
                | HIERARCHY_CYCLE                 | Move would place a node under itself
Currency        | INVALID_CURRENCY                | Not an ISO 4217 code

ZeroSumViolationError is the one error the creation path does not
propagate: it is converted into a NEEDS_REVIEW result and the computed legs
are persisted as PENDING_REVIEW.
"""


class SettlementKernelError(Exception):
    """Base exception for all settlement kernel errors."""

    code: str = "SETTLEMENT_KERNEL_ERROR"


# Configuration errors


class ConfigurationError(SettlementKernelError):
    """Fee or reference configuration is missing or malformed."""

    code: str = "CONFIGURATION_ERROR"


class FeeConfigNotFoundError(ConfigurationError):
    """No fee rate resolvable for an entity and payment method."""

    code: str = "FEE_CONFIG_NOT_FOUND"

    def __init__(self, entity_id, entity_type: str, payment_method: str):
        self.entity_id = entity_id
        self.entity_type = entity_type
        self.payment_method = payment_method
        super().__init__(
            f"Fee configuration not found for entity {entity_id} "
            f"(type={entity_type}) and payment method={payment_method}"
        )


class InvalidFeeRateError(ConfigurationError):
    """A configured fee rate has an unsupported encoding or is out of range."""

    code: str = "INVALID_FEE_RATE"

    def __init__(self, key: str, value: object, reason: str):
        self.key = key
        self.value = repr(value)
        self.reason = reason
        super().__init__(f"Invalid fee rate for '{key}': {value!r} ({reason})")


class PaymentMethodNotFoundError(ConfigurationError):
    """Event references a payment method that does not exist."""

    code: str = "PAYMENT_METHOD_NOT_FOUND"

    def __init__(self, payment_method_id):
        self.payment_method_id = payment_method_id
        super().__init__(f"Payment method not found: {payment_method_id}")


# Calculation errors


class SettlementCalculationError(SettlementKernelError):
    """Base error for settlement computation. Fatal for the current event."""

    code: str = "SETTLEMENT_CALCULATION_ERROR"


class MerchantNotFoundError(SettlementCalculationError):
    """Event references a merchant that does not exist."""

    code: str = "MERCHANT_NOT_FOUND"

    def __init__(self, merchant_id):
        self.merchant_id = merchant_id
        super().__init__(f"Merchant not found: {merchant_id}")


class UnsupportedEventTypeError(SettlementCalculationError):
    """No calculator handles this event type."""

    code: str = "UNSUPPORTED_EVENT_TYPE"

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(f"Unsupported event type: {event_type}")


class OriginalApprovalNotFoundError(SettlementCalculationError):
    """A partial cancel arrived for a transaction with no approval event."""

    code: str = "ORIGINAL_APPROVAL_NOT_FOUND"

    def __init__(self, transaction_id):
        self.transaction_id = transaction_id
        super().__init__(
            f"Original approval event not found for transaction: {transaction_id}"
        )


class OriginalSettlementNotFoundError(SettlementCalculationError):
    """The approval event exists but has no active settlement legs."""

    code: str = "ORIGINAL_SETTLEMENT_NOT_FOUND"

    def __init__(self, transaction_id, cancel_event_id):
        self.transaction_id = transaction_id
        self.cancel_event_id = cancel_event_id
        super().__init__(
            f"Original approval settlement not found for transaction "
            f"{transaction_id} when processing cancel event {cancel_event_id}"
        )


class ZeroSumViolationError(SettlementCalculationError):
    """sum(settlement.amount) differs from the event's signed amount."""

    code: str = "ZERO_SUM_VIOLATION"

    def __init__(self, transaction_event_id, event_amount: int, settlement_total: int):
        self.transaction_event_id = transaction_event_id
        self.event_amount = event_amount
        self.settlement_total = settlement_total
        self.difference = event_amount - settlement_total
        super().__init__(
            f"Zero-sum validation failed for event {transaction_event_id}: "
            f"event amount={event_amount}, settlement total={settlement_total}, "
            f"difference={self.difference}"
        )


# Resettlement errors


class ResettlementError(SettlementKernelError):
    """Base error for the correction flow."""

    code: str = "RESETTLEMENT_ERROR"


class NoResettleableSettlementsError(ResettlementError):
    """Only FAILED or PENDING_REVIEW settlements can be resettled."""

    code: str = "NO_RESETTLEABLE_SETTLEMENTS"

    def __init__(self, transaction_event_id):
        self.transaction_event_id = transaction_event_id
        super().__init__(
            f"No FAILED or PENDING_REVIEW settlements to resettle for event "
            f"{transaction_event_id}"
        )


class TransactionEventNotFoundError(ResettlementError):
    """Transaction event id does not exist."""

    code: str = "TRANSACTION_EVENT_NOT_FOUND"

    def __init__(self, transaction_event_id):
        self.transaction_event_id = transaction_event_id
        super().__init__(f"Transaction event not found: {transaction_event_id}")


# Hierarchy errors


class HierarchyError(SettlementKernelError):
    """Base error for organization tree maintenance."""

    code: str = "HIERARCHY_ERROR"


class OrganizationNotFoundError(HierarchyError):
    code: str = "ORGANIZATION_NOT_FOUND"

    def __init__(self, organization_id):
        self.organization_id = organization_id
        super().__init__(f"Organization not found: {organization_id}")


class HierarchyCycleError(HierarchyError):
    """Moving a node beneath itself or one of its descendants."""

    code: str = "HIERARCHY_CYCLE"

    def __init__(self, organization_id, new_parent_id):
        self.organization_id = organization_id
        self.new_parent_id = new_parent_id
        super().__init__(
            f"Cannot move organization {organization_id} under its own "
            f"descendant {new_parent_id}"
        )


# Currency


class InvalidCurrencyError(SettlementKernelError):
    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid ISO 4217 currency code: '{currency}'")
