"""
Module: supply_kernel.selectors.request_selector
Responsibility: Role-filtered read projections of supply requests, orders and
    shipments, plus the per-status request counts shown on dashboards.
Architecture position: Kernel > Selectors.  Read-only.

Visibility:
    - admin sees everything;
    - a branch sees the requests, orders and shipments of its own branch;
    - a supplier sees approved requests, requests it has taken, and its own
      orders and shipments.
    The SQL filters narrow the rows; ``can_read`` has the final word on each.

Failure modes:
    - NotFoundError subclasses for unknown ids in the get_* methods.
    - AuthorizationError when the actor may not read the requested row.
    - ValidationError for an unknown status filter.
"""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import TypeVar
from uuid import UUID

from sqlalchemy import Select, or_, select

from supply_kernel.domain.actors import Actor, BranchActor, SupplierActor
from supply_kernel.domain.authorization import can_read
from supply_kernel.domain.dtos import (
    Order,
    OrderStatus,
    RequestStatus,
    Shipment,
    ShipmentStatus,
    SupplyRequest,
)
from supply_kernel.exceptions import (
    AuthorizationError,
    OrderNotFoundError,
    RequestNotFoundError,
    ShipmentNotFoundError,
    ValidationError,
)
from supply_kernel.models.order import OrderItemModel, OrderModel
from supply_kernel.models.shipment import ShipmentModel
from supply_kernel.models.supply_request import RequestItemModel, SupplyRequestModel
from supply_kernel.selectors.base import BaseSelector


E = TypeVar("E", bound=Enum)


def _status_filter(enum_cls: type[E], status: E | str) -> str:
    try:
        return enum_cls(status).value
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Unknown status {status!r}; expected one of: {allowed}", field="status",
        ) from exc


def _deny(actor: Actor, entity_type: str, entity_id: UUID, reason: str) -> AuthorizationError:
    return AuthorizationError(actor.role.value, f"read {entity_type}", reason, str(entity_id))


class RequestSelector(BaseSelector):
    """Read projections for the fulfillment workflow entities."""

    # ------------------------------------------------------------------
    # Supply requests
    # ------------------------------------------------------------------

    def _request_rows(self) -> Select:
        return (
            select(SupplyRequestModel, OrderModel.supplier_id)
            .select_from(SupplyRequestModel)
            .outerjoin(OrderModel, OrderModel.request_id == SupplyRequestModel.id)
        )

    def _visible_requests(self, actor: Actor) -> Select:
        stmt = self._request_rows()
        if isinstance(actor, BranchActor):
            stmt = stmt.where(SupplyRequestModel.branch_id == actor.branch_id)
        elif isinstance(actor, SupplierActor):
            stmt = stmt.where(
                or_(
                    SupplyRequestModel.status == RequestStatus.APPROVED.value,
                    OrderModel.supplier_id == actor.supplier_id,
                )
            )
        return stmt

    def _request_dtos(self, rows) -> list[SupplyRequest]:
        rows = list(rows)
        ids = [model.id for model, _ in rows]
        items: dict[UUID, list[RequestItemModel]] = {i: [] for i in ids}
        if ids:
            for item in self.session.execute(
                select(RequestItemModel)
                .where(RequestItemModel.request_id.in_(ids))
                .order_by(RequestItemModel.created_at, RequestItemModel.id)
            ).scalars():
                items[item.request_id].append(item)
        return [
            model.to_dto(items=items[model.id], supplier_id=supplier_id)
            for model, supplier_id in rows
        ]

    def list_requests(
        self,
        actor: Actor,
        status: RequestStatus | str | None = None,
        branch_id: UUID | None = None,
    ) -> list[SupplyRequest]:
        """Requests visible to ``actor``, newest first."""
        stmt = self._visible_requests(actor)
        if status is not None:
            stmt = stmt.where(SupplyRequestModel.status == _status_filter(RequestStatus, status))
        if branch_id is not None:
            stmt = stmt.where(SupplyRequestModel.branch_id == branch_id)
        stmt = stmt.order_by(
            SupplyRequestModel.requested_date.desc(), SupplyRequestModel.request_number.desc(),
        ).execution_options(populate_existing=True)

        requests = self._request_dtos(self.session.execute(stmt).all())
        return [
            r for r in requests
            if can_read(actor, r.ownership(), r.status.value).allowed
        ]

    def get_request(self, actor: Actor, request_id: UUID) -> SupplyRequest:
        row = self.session.execute(
            self._request_rows()
            .where(SupplyRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).first()
        if row is None:
            raise RequestNotFoundError(str(request_id))

        request = self._request_dtos([row])[0]
        decision = can_read(actor, request.ownership(), request.status.value)
        if not decision.allowed:
            raise _deny(actor, "supply_request", request_id, decision.reason)
        return request

    def status_counts(self, actor: Actor) -> dict[str, int]:
        """Visible requests per status; every status present, zero if none."""
        counts = Counter(r.status.value for r in self.list_requests(actor))
        return {status.value: counts.get(status.value, 0) for status in RequestStatus}

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def _order_dtos(self, rows) -> list[Order]:
        rows = list(rows)
        ids = [model.id for model, _ in rows]
        items: dict[UUID, list[OrderItemModel]] = {i: [] for i in ids}
        if ids:
            for item in self.session.execute(
                select(OrderItemModel)
                .where(OrderItemModel.order_id.in_(ids))
                .order_by(OrderItemModel.created_at, OrderItemModel.id)
            ).scalars():
                items[item.order_id].append(item)
        return [
            model.to_dto(branch_id=branch_id, items=items[model.id])
            for model, branch_id in rows
        ]

    def _order_rows(self) -> Select:
        return (
            select(OrderModel, SupplyRequestModel.branch_id)
            .select_from(OrderModel)
            .join(SupplyRequestModel, SupplyRequestModel.id == OrderModel.request_id)
        )

    def _orders_stmt(self, actor: Actor) -> Select:
        stmt = self._order_rows()
        if isinstance(actor, BranchActor):
            stmt = stmt.where(SupplyRequestModel.branch_id == actor.branch_id)
        elif isinstance(actor, SupplierActor):
            stmt = stmt.where(OrderModel.supplier_id == actor.supplier_id)
        return stmt

    def list_orders(
        self,
        actor: Actor,
        status: OrderStatus | str | None = None,
    ) -> list[Order]:
        stmt = self._orders_stmt(actor)
        if status is not None:
            stmt = stmt.where(OrderModel.status == _status_filter(OrderStatus, status))
        stmt = stmt.order_by(OrderModel.order_number.desc()).execution_options(
            populate_existing=True
        )
        orders = self._order_dtos(self.session.execute(stmt).all())
        return [o for o in orders if can_read(actor, o.ownership()).allowed]

    def get_order(self, actor: Actor, order_id: UUID) -> Order:
        row = self.session.execute(
            self._order_rows()
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        ).first()
        if row is None:
            raise OrderNotFoundError(str(order_id))

        order = self._order_dtos([row])[0]
        decision = can_read(actor, order.ownership())
        if not decision.allowed:
            raise _deny(actor, "order", order_id, decision.reason)
        return order

    # ------------------------------------------------------------------
    # Shipments
    # ------------------------------------------------------------------

    def _shipment_rows(self) -> Select:
        return (
            select(ShipmentModel, OrderModel.supplier_id, SupplyRequestModel.branch_id)
            .select_from(ShipmentModel)
            .join(OrderModel, OrderModel.id == ShipmentModel.order_id)
            .join(SupplyRequestModel, SupplyRequestModel.id == OrderModel.request_id)
        )

    def _shipments_stmt(self, actor: Actor) -> Select:
        stmt = self._shipment_rows()
        if isinstance(actor, BranchActor):
            stmt = stmt.where(SupplyRequestModel.branch_id == actor.branch_id)
        elif isinstance(actor, SupplierActor):
            stmt = stmt.where(OrderModel.supplier_id == actor.supplier_id)
        return stmt

    def list_shipments(
        self,
        actor: Actor,
        status: ShipmentStatus | str | None = None,
        order_id: UUID | None = None,
    ) -> list[Shipment]:
        stmt = self._shipments_stmt(actor)
        if status is not None:
            stmt = stmt.where(ShipmentModel.status == _status_filter(ShipmentStatus, status))
        if order_id is not None:
            stmt = stmt.where(ShipmentModel.order_id == order_id)
        stmt = stmt.order_by(ShipmentModel.shipment_number.desc()).execution_options(
            populate_existing=True
        )
        shipments = [
            model.to_dto(supplier_id=supplier_id, branch_id=branch_id)
            for model, supplier_id, branch_id in self.session.execute(stmt).all()
        ]
        return [s for s in shipments if can_read(actor, s.ownership()).allowed]

    def get_shipment(self, actor: Actor, shipment_id: UUID) -> Shipment:
        row = self.session.execute(
            self._shipment_rows()
            .where(ShipmentModel.id == shipment_id)
            .execution_options(populate_existing=True)
        ).first()
        if row is None:
            raise ShipmentNotFoundError(str(shipment_id))

        model, supplier_id, branch_id = row
        shipment = model.to_dto(supplier_id=supplier_id, branch_id=branch_id)
        decision = can_read(actor, shipment.ownership())
        if not decision.allowed:
            raise _deny(actor, "shipment", shipment_id, decision.reason)
        return shipment

