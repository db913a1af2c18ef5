"""
FeeConfigResolver -- rate lookup for one entity and payment method.

Lookup order inside a schedule: the payment-method code, then the
``"default"`` key.  For the merchant leg the merchant's own schedule is
consulted first and the owning organization's schedule second.

No side effects; every resolution is logged at DEBUG.
"""

from decimal import Decimal

from settlement_kernel.domain.fee_schedule import FeeSchedule
from settlement_kernel.domain.types import SettlementEntityType
from settlement_kernel.exceptions import FeeConfigNotFoundError
from settlement_kernel.logging_config import get_logger
from settlement_kernel.models.merchant import Merchant
from settlement_kernel.models.organization import Organization

logger = get_logger("services.fee_config")


class FeeConfigResolver:

    def resolve(
        self,
        entity: Organization | Merchant,
        entity_type: SettlementEntityType | str,
        payment_method_code: str,
    ) -> Decimal:
        """
        Rate configured on ``entity`` for ``payment_method_code``.

        Raises:
            FeeConfigNotFoundError: the entity has no map, or neither the
                code nor ``"default"`` is present.
            InvalidFeeRateError: the stored value is not numeric or
                decimal text.
        """
        rate = self._lookup(entity, payment_method_code)
        if rate is None:
            raise FeeConfigNotFoundError(entity.id, _type_value(entity_type), payment_method_code)

        logger.debug(
            "fee_rate_resolved",
            extra={
                "entity_id": str(entity.id),
                "entity_type": _type_value(entity_type),
                "payment_method": payment_method_code,
                "fee_rate": str(rate),
            },
        )
        return rate

    def resolve_merchant_rate(self, merchant: Merchant, payment_method_code: str) -> Decimal:
        """
        Merchant-leg rate: the merchant's own schedule overrides the
        organization's for this leg only.

        Raises:
            FeeConfigNotFoundError: neither schedule yields a rate.
        """
        own = self._lookup(merchant, payment_method_code)
        if own is not None:
            logger.debug(
                "fee_rate_resolved",
                extra={
                    "entity_id": str(merchant.id),
                    "entity_type": SettlementEntityType.MERCHANT.value,
                    "payment_method": payment_method_code,
                    "fee_rate": str(own),
                    "source": "merchant",
                },
            )
            return own

        organization = merchant.organization
        inherited = self._lookup(organization, payment_method_code) if organization else None
        if inherited is None:
            raise FeeConfigNotFoundError(
                merchant.id, SettlementEntityType.MERCHANT.value, payment_method_code
            )

        logger.debug(
            "fee_rate_resolved",
            extra={
                "entity_id": str(merchant.id),
                "entity_type": SettlementEntityType.MERCHANT.value,
                "payment_method": payment_method_code,
                "fee_rate": str(inherited),
                "source": "organization",
                "organization_id": str(organization.id),
            },
        )
        return inherited

    def resolve_organization_rate(self, organization: Organization, payment_method_code: str) -> Decimal:
        return self.resolve(
            organization,
            SettlementEntityType.for_organization(organization.org_type),
            payment_method_code,
        )

    @staticmethod
    def _lookup(entity: Organization | Merchant, payment_method_code: str) -> Decimal | None:
        if not entity.fee_config:
            return None
        schedule = FeeSchedule.from_mapping(entity.fee_config, validate_range=False)
        return schedule.rate_for(payment_method_code)


def _type_value(entity_type: SettlementEntityType | str) -> str:
    return entity_type.value if isinstance(entity_type, SettlementEntityType) else str(entity_type)
