"""
Tenant directory -- where the scheduler finds each tenant's database.

Every tenant has its own database; the scheduler only needs a way to list
active tenants and open a session on one.  How tenants are registered
(configuration file, control-plane table) is the directory's business.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from sqlalchemy.orm import Session, sessionmaker

from settlement_kernel.db.engine import build_engine
from settlement_kernel.logging_config import get_logger

logger = get_logger("batch.tenants")


@dataclass(frozen=True)
class TenantEntry:
    tenant_id: str
    session_factory: Callable[[], Session]
    active: bool = True


class TenantDirectory(ABC):

    @abstractmethod
    def active_tenants(self) -> list[TenantEntry]:
        """Tenants the scheduler should process, in processing order."""
        ...


class StaticTenantDirectory(TenantDirectory):
    """Fixed list of tenants, e.g. from configuration or a test fixture."""

    def __init__(self, tenants: Iterable[TenantEntry]):
        self._tenants = list(tenants)

    @classmethod
    def from_urls(cls, urls: Iterable[tuple[str, str, bool]]) -> "StaticTenantDirectory":
        """Build one engine and session factory per (tenant_id, database_url, active)."""
        tenants = []
        for tenant_id, database_url, active in urls:
            engine = build_engine(database_url)
            tenants.append(
                TenantEntry(
                    tenant_id=tenant_id,
                    session_factory=sessionmaker(bind=engine, expire_on_commit=False),
                    active=active,
                )
            )
            logger.debug(
                "tenant_registered",
                extra={"tenant_id": tenant_id, "dialect": engine.dialect.name, "active": active},
            )
        return cls(tenants)

    def active_tenants(self) -> list[TenantEntry]:
        return [t for t in self._tenants if t.active]

    def all_tenants(self) -> list[TenantEntry]:
        return list(self._tenants)
