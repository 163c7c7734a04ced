"""
BaseService -- abstract base for session-bound kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    services that write through a SQLAlchemy ``Session``.  Services use
    ``session.flush()`` and never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (the repository's unit of work, or a test harness) owns
      commit/rollback, so a delivery and its inventory receipt and budget
      expense commit or vanish together.
"""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for session-bound services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide role-filtered read projections -- those belong
          in ``supply_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
