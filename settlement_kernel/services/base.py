"""
BaseService -- abstract base for kernel services that write.

Services receive the caller's ``Session`` and persist with
``session.flush()``; committing and rolling back belong to the caller
(``session_scope``, the batch scheduler, or
``SettlementService(auto_commit=True)``).
"""

from abc import ABC

from sqlalchemy.orm import Session

from settlement_kernel.domain.context import ExecutionContext


class BaseService(ABC):
    """
    Guarantees:
        - Never calls ``session.commit()`` or ``session.rollback()``.
        - ``self.context`` supplies the actor id recorded on new rows and
          the clock used for every timestamp.
    """

    def __init__(self, session: Session, context: ExecutionContext):
        self.session = session
        self.context = context

    @property
    def clock(self):
        return self.context.clock

    @property
    def actor_id(self):
        return self.context.actor_id
