"""Holiday -- a non-business day used by settlement-date stepping."""

from datetime import date

from sqlalchemy import Boolean, Date, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from settlement_kernel.db.base import Base


class Holiday(Base):
    """
    A recurring holiday matches its month and day in every year; a
    non-recurring one matches only its exact date.
    """

    __tablename__ = "holidays"

    __table_args__ = (
        Index("idx_holiday_country_date", "country_code", "holiday_date"),
    )

    holiday_date: Mapped[date] = mapped_column(Date, nullable=False)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    country_code: Mapped[str] = mapped_column(String(2), nullable=False, default="KR")

    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    def matches(self, day: date) -> bool:
        if self.is_recurring:
            return (day.month, day.day) == (self.holiday_date.month, self.holiday_date.day)
        return day == self.holiday_date

    def __repr__(self) -> str:
        return f"<Holiday {self.holiday_date} {self.name}>"
