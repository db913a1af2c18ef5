"""PaymentMethod -- reference row naming a fee-schedule key."""

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import Base


class PaymentMethod(Base):
    __tablename__ = "payment_methods"

    __table_args__ = (
        UniqueConstraint("method_code", name="uq_payment_method_code"),
    )

    # Key looked up in fee schedules, e.g. CARD
    method_code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        return f"<PaymentMethod {self.method_code}>"
