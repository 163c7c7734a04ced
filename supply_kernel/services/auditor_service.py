"""
AuditorService -- persistent transition audit trail.

Responsibility:
    Writes one ``transition_audit`` row per transition (including entity
    creation) in the same transaction as the state change itself, and
    reads a single entity's history back in order.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the SQLAlchemy repository for every event the workflow
    engine records.

Invariants enforced:
    - Append-only: rows are inserted, never updated or deleted.
    - Atomicity: an audit row exists if and only if its transition
      committed.

Audit relevance:
    Every row is also logged at INFO as ``transition_recorded``.
"""

from uuid import UUID

from sqlalchemy import func, select

from supply_kernel.domain.dtos import TransitionEvent
from supply_kernel.logging_config import get_logger
from supply_kernel.models.audit_event import TransitionAuditModel
from supply_kernel.services.base import BaseService

logger = get_logger("services.auditor")


class AuditorService(BaseService):
    """Records and reads transition audit rows."""

    def record(self, event: TransitionEvent) -> TransitionAuditModel:
        """Persist one transition.  Flushes; never commits."""
        previous = self.session.execute(
            select(func.count())
            .select_from(TransitionAuditModel)
            .where(
                TransitionAuditModel.entity_type == event.entity_type,
                TransitionAuditModel.entity_id == event.entity_id,
            )
        ).scalar_one()

        row = TransitionAuditModel(
            entity_type=event.entity_type,
            entity_id=event.entity_id,
            sequence=previous + 1,
            entity_number=event.entity_number,
            from_state=event.from_state,
            to_state=event.to_state,
            actor_id=event.actor.user_id,
            actor_role=event.actor.role.value,
            occurred_at=event.occurred_at,
            payload=_json_safe(event.payload),
        )
        self.session.add(row)
        self.session.flush()

        logger.info(
            "transition_recorded",
            extra={
                "entity_type": event.entity_type,
                "entity_id": event.entity_id,
                "entity_number": event.entity_number,
                "from_state": event.from_state,
                "to_state": event.to_state,
                "sequence": row.sequence,
            },
        )
        return row

    def history(self, entity_type: str, entity_id: UUID) -> list[TransitionAuditModel]:
        """All audit rows for one entity, oldest first."""
        return list(
            self.session.execute(
                select(TransitionAuditModel)
                .where(
                    TransitionAuditModel.entity_type == entity_type,
                    TransitionAuditModel.entity_id == entity_id,
                )
                .order_by(TransitionAuditModel.sequence)
            ).scalars()
        )


def _json_safe(payload: dict) -> dict:
    """Stringify values the JSON column cannot store (UUID, Decimal, dates)."""
    safe = {}
    for key, value in payload.items():
        if value is None or isinstance(value, (bool, int, float, str)):
            safe[key] = value
        elif isinstance(value, dict):
            safe[key] = _json_safe(value)
        elif isinstance(value, (list, tuple)):
            safe[key] = [str(v) for v in value]
        else:
            safe[key] = str(value)
    return safe
