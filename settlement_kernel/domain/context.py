"""
ExecutionContext -- who and when for one unit of work.

Passed explicitly to services and built per tenant by the batch scheduler,
so tenant identity never lives in thread-local state.
"""

from dataclasses import dataclass, field, replace
from uuid import UUID, uuid4

from settlement_kernel.domain.clock import Clock, SystemClock

# Actor recorded on rows produced by unattended jobs
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000001")


@dataclass(frozen=True)
class ExecutionContext:
    tenant_id: str
    actor_id: UUID = SYSTEM_ACTOR_ID
    clock: Clock = field(default_factory=SystemClock)
    correlation_id: str = field(default_factory=lambda: str(uuid4()))

    def with_correlation(self, correlation_id: str) -> "ExecutionContext":
        return replace(self, correlation_id=correlation_id)

    def log_fields(self) -> dict[str, str]:
        """Fields for LogContext.bind()."""
        return {
            "tenant_id": self.tenant_id,
            "actor_id": str(self.actor_id),
            "correlation_id": self.correlation_id,
        }
