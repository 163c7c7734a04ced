"""
Module: supply_kernel.selectors.audit_selector
Responsibility: Read back the transition audit trail of one entity.
Architecture position: Kernel > Selectors.  Read-only.

Anyone who may read an entity may read its history.  Admin reads every
history, including that of ids no longer (or never) present.
"""

from uuid import UUID

from sqlalchemy import select

from supply_kernel.domain.actors import Actor, AdminActor
from supply_kernel.domain.dtos import AuditEntry
from supply_kernel.domain.workflow import ORDER, SHIPMENT, SUPPLY_REQUEST
from supply_kernel.exceptions import ValidationError
from supply_kernel.models.audit_event import TransitionAuditModel
from supply_kernel.selectors.base import BaseSelector
from supply_kernel.selectors.request_selector import RequestSelector


class AuditSelector(BaseSelector):
    def history(self, actor: Actor, entity_type: str, entity_id: UUID) -> list[AuditEntry]:
        """
        Transitions of one entity, oldest first.

        Raises:
            ValidationError: unknown entity type.
            NotFoundError: non-admin asking about an unknown entity.
            AuthorizationError: the actor may not read the entity.
        """
        entities = RequestSelector(self.session)
        readers = {
            SUPPLY_REQUEST: entities.get_request,
            ORDER: entities.get_order,
            SHIPMENT: entities.get_shipment,
        }
        if entity_type not in readers:
            raise ValidationError(f"Unknown entity type {entity_type!r}", field="entity_type")
        if not isinstance(actor, AdminActor):
            readers[entity_type](actor, entity_id)

        rows = self.session.execute(
            select(TransitionAuditModel)
            .where(
                TransitionAuditModel.entity_type == entity_type,
                TransitionAuditModel.entity_id == entity_id,
            )
            .order_by(TransitionAuditModel.sequence)
        ).scalars()
        return [row.to_dto() for row in rows]
