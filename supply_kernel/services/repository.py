"""
Persistence collaborator for the workflow engine.

Responsibility:
    Defines the read/write contract the workflow engine needs
    (``SupplyRepository``) and implements it on SQLAlchemy
    (``SqlAlchemySupplyRepository``).  Every status write is a
    compare-and-swap UPDATE; every read returns frozen DTOs, never ORM rows.

Architecture position:
    Kernel > Services -- imperative shell.  The engine depends only on the
    protocol; tests and alternative stores may supply their own
    implementation.

Invariants enforced:
    - Status writes are ``UPDATE ... WHERE id = :id AND status = :expected``.
      Zero affected rows on an existing row is a ConcurrentModificationError,
      never a silent overwrite.
    - A request has at most one order (unique ``orders.request_id``); a
      duplicate surfaces as ConcurrentModificationError.
    - ``unit_of_work()`` commits on success and rolls back on any error, so
      a multi-step transition is all-or-nothing.
    - Reads always refresh from the database (``populate_existing``); the
      session keeps objects across commits and must not serve stale status.

Failure modes:
    - NotFoundError subclasses for missing rows.
    - CollaboratorUnavailableError when the database is unreachable, the
      pool is exhausted, or a statement times out.  The transaction is
      rolled back first.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import (
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from supply_config.schema import NumberingConfig
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import (
    DraftItem,
    Order,
    RequestItem,
    Shipment,
    ShipmentStatus,
    SupplyRequest,
    TransitionEvent,
)
from supply_kernel.domain.workflow import ORDER, SHIPMENT, SUPPLY_REQUEST
from supply_kernel.exceptions import (
    CollaboratorUnavailableError,
    ConcurrentModificationError,
    OrderNotFoundError,
    RequestNotFoundError,
    ShipmentNotFoundError,
)
from supply_kernel.logging_config import get_logger
from supply_kernel.models.catalog import ItemModel
from supply_kernel.models.order import OrderItemModel, OrderModel
from supply_kernel.models.shipment import ShipmentModel
from supply_kernel.models.supply_request import RequestItemModel, SupplyRequestModel
from supply_kernel.services.auditor_service import AuditorService
from supply_kernel.services.number_service import NumberService

logger = get_logger("services.repository")

# Errors meaning "the database did not answer", as opposed to "it said no".
UNAVAILABLE_ERRORS: tuple[type[Exception], ...] = (
    OperationalError,
    InterfaceError,
    DisconnectionError,
    PoolTimeoutError,
)


class SupplyRepository(Protocol):
    """Everything the workflow engine asks of its data store."""

    def unit_of_work(self, operation: str = "transaction") -> Any: ...

    def read_request(self, request_id: UUID) -> SupplyRequest: ...

    def read_request_items(self, request_id: UUID) -> tuple[RequestItem, ...]: ...

    def insert_request(
        self,
        request_number: str,
        title: str,
        branch_id: UUID,
        requested_by: UUID,
        requested_date: date,
        items: Sequence[DraftItem],
        description: str | None = None,
        priority: str = "medium",
        required_date: date | None = None,
        notes: str | None = None,
    ) -> SupplyRequest: ...

    def replace_request_items(
        self, request_id: UUID, items: Sequence[DraftItem],
    ) -> tuple[RequestItem, ...]: ...

    def write_request_transition(
        self,
        request_id: UUID,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any] | None = None,
    ) -> SupplyRequest: ...

    def create_order(
        self,
        request_id: UUID,
        supplier_id: UUID,
        order_number: str,
        lines: Sequence[tuple[UUID, int, Decimal]],
        expected_delivery: date | None = None,
        notes: str | None = None,
    ) -> Order: ...

    def read_order(self, order_id: UUID) -> Order: ...

    def read_order_for_request(self, request_id: UUID) -> Order | None: ...

    def write_order_transition(
        self,
        order_id: UUID,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any] | None = None,
    ) -> Order: ...

    def create_shipment(
        self,
        order_id: UUID,
        shipment_number: str,
        carrier: str | None = None,
        tracking_number: str | None = None,
        estimated_delivery: date | None = None,
        notes: str | None = None,
    ) -> Shipment: ...

    def read_shipment(self, shipment_id: UUID) -> Shipment: ...

    def read_live_shipment_for_order(self, order_id: UUID) -> Shipment | None: ...

    def write_shipment_transition(
        self,
        shipment_id: UUID,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any] | None = None,
    ) -> Shipment: ...

    def missing_items(self, item_ids: Sequence[UUID]) -> set[UUID]: ...

    def generate_unique_number(self, prefix: str) -> str: ...

    def record_transition(self, event: TransitionEvent) -> None: ...


class SqlAlchemySupplyRepository:
    """
    ``SupplyRepository`` backed by a SQLAlchemy session.

    Contract:
        Methods other than ``unit_of_work`` only flush.  The unit of work
        owns commit and rollback.

    Non-goals:
        - Does NOT check authorization or state-machine legality; that is
          the workflow engine's job.  The CAS write only guarantees that
          the state the engine checked is still the state being replaced.
    """

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        numbering: NumberingConfig | None = None,
    ):
        self.session = session
        self._clock = clock or SystemClock()
        self._numbers = NumberService(session, self._clock, numbering)
        self._auditor = AuditorService(session)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    @contextmanager
    def unit_of_work(self, operation: str = "transaction") -> Iterator[SqlAlchemySupplyRepository]:
        """
        Run a block as one transaction.

        Postconditions: On normal exit the session is committed.  On any
            exception it is rolled back and the exception re-raised;
            connectivity and timeout errors are re-raised as
            CollaboratorUnavailableError.
        """
        try:
            yield self
            self.session.commit()
        except UNAVAILABLE_ERRORS as exc:
            self.session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation, "cause": "collaborator_unavailable"},
                exc_info=True,
            )
            raise CollaboratorUnavailableError(
                "database", operation, str(getattr(exc, "orig", None) or exc),
            ) from exc
        except Exception:
            self.session.rollback()
            logger.warning(
                "transaction_rolled_back",
                extra={"operation": operation},
                exc_info=True,
            )
            raise

    # ------------------------------------------------------------------
    # Supply requests
    # ------------------------------------------------------------------

    def _request_model(self, request_id: UUID) -> SupplyRequestModel:
        model = self.session.execute(
            select(SupplyRequestModel)
            .where(SupplyRequestModel.id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise RequestNotFoundError(str(request_id))
        return model

    def _request_item_models(self, request_id: UUID) -> list[RequestItemModel]:
        return list(
            self.session.execute(
                select(RequestItemModel)
                .where(RequestItemModel.request_id == request_id)
                .order_by(RequestItemModel.created_at, RequestItemModel.id)
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def _supplier_for_request(self, request_id: UUID) -> UUID | None:
        return self.session.execute(
            select(OrderModel.supplier_id).where(OrderModel.request_id == request_id)
        ).scalar_one_or_none()

    def read_request(self, request_id: UUID) -> SupplyRequest:
        model = self._request_model(request_id)
        return model.to_dto(
            items=self._request_item_models(request_id),
            supplier_id=self._supplier_for_request(request_id),
        )

    def read_request_items(self, request_id: UUID) -> tuple[RequestItem, ...]:
        self._request_model(request_id)
        return tuple(i.to_dto() for i in self._request_item_models(request_id))

    def insert_request(
        self,
        request_number: str,
        title: str,
        branch_id: UUID,
        requested_by: UUID,
        requested_date: date,
        items: Sequence[DraftItem],
        description: str | None = None,
        priority: str = "medium",
        required_date: date | None = None,
        notes: str | None = None,
    ) -> SupplyRequest:
        model = SupplyRequestModel(
            request_number=request_number,
            title=title,
            description=description,
            priority=priority,
            branch_id=branch_id,
            requested_by=requested_by,
            status="pending",
            requested_date=requested_date,
            required_date=required_date,
            notes=notes,
        )
        self.session.add(model)
        self.session.flush()
        self._add_request_items(model.id, items)
        return self.read_request(model.id)

    def _add_request_items(self, request_id: UUID, items: Sequence[DraftItem]) -> None:
        for item in items:
            self.session.add(
                RequestItemModel(
                    request_id=request_id,
                    item_id=item.item_id,
                    quantity=item.quantity,
                    specifications=item.specifications,
                    notes=item.notes,
                )
            )
        self.session.flush()

    def replace_request_items(
        self, request_id: UUID, items: Sequence[DraftItem],
    ) -> tuple[RequestItem, ...]:
        for existing in self._request_item_models(request_id):
            self.session.delete(existing)
        self.session.flush()
        self._add_request_items(request_id, items)
        return self.read_request_items(request_id)

    def write_request_transition(
        self,
        request_id: UUID,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any] | None = None,
    ) -> SupplyRequest:
        self._compare_and_swap(
            SupplyRequestModel, SUPPLY_REQUEST, request_id,
            expected_status, new_status, fields, RequestNotFoundError,
        )
        return self.read_request(request_id)

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def _order_dto(self, model: OrderModel) -> Order:
        branch_id = self.session.execute(
            select(SupplyRequestModel.branch_id)
            .where(SupplyRequestModel.id == model.request_id)
        ).scalar_one()
        items = list(
            self.session.execute(
                select(OrderItemModel)
                .where(OrderItemModel.order_id == model.id)
                .order_by(OrderItemModel.created_at, OrderItemModel.id)
            ).scalars()
        )
        return model.to_dto(branch_id=branch_id, items=items)

    def create_order(
        self,
        request_id: UUID,
        supplier_id: UUID,
        order_number: str,
        lines: Sequence[tuple[UUID, int, Decimal]],
        expected_delivery: date | None = None,
        notes: str | None = None,
    ) -> Order:
        model = OrderModel(
            order_number=order_number,
            request_id=request_id,
            supplier_id=supplier_id,
            status="pending",
            expected_delivery=expected_delivery,
            notes=notes,
        )
        self.session.add(model)
        try:
            self.session.flush()
        except IntegrityError as exc:
            raise ConcurrentModificationError(
                ORDER,
                str(request_id),
                "absent",
                message=f"Supply request {request_id} already has an order",
            ) from exc

        for item_id, quantity, unit_price in lines:
            self.session.add(
                OrderItemModel(
                    order_id=model.id,
                    item_id=item_id,
                    quantity=quantity,
                    unit_price=unit_price,
                )
            )
        self.session.flush()
        return self._order_dto(model)

    def read_order(self, order_id: UUID) -> Order:
        model = self.session.execute(
            select(OrderModel)
            .where(OrderModel.id == order_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise OrderNotFoundError(str(order_id))
        return self._order_dto(model)

    def read_order_for_request(self, request_id: UUID) -> Order | None:
        model = self.session.execute(
            select(OrderModel)
            .where(OrderModel.request_id == request_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        return self._order_dto(model) if model is not None else None

    def write_order_transition(
        self,
        order_id: UUID,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any] | None = None,
    ) -> Order:
        self._compare_and_swap(
            OrderModel, ORDER, order_id,
            expected_status, new_status, fields, OrderNotFoundError,
        )
        return self.read_order(order_id)

    # ------------------------------------------------------------------
    # Shipments
    # ------------------------------------------------------------------

    def _shipment_dto(self, model: ShipmentModel) -> Shipment:
        supplier_id, branch_id = self.session.execute(
            select(OrderModel.supplier_id, SupplyRequestModel.branch_id)
            .select_from(OrderModel)
            .join(SupplyRequestModel, SupplyRequestModel.id == OrderModel.request_id)
            .where(OrderModel.id == model.order_id)
        ).one()
        return model.to_dto(supplier_id=supplier_id, branch_id=branch_id)

    def create_shipment(
        self,
        order_id: UUID,
        shipment_number: str,
        carrier: str | None = None,
        tracking_number: str | None = None,
        estimated_delivery: date | None = None,
        notes: str | None = None,
    ) -> Shipment:
        model = ShipmentModel(
            shipment_number=shipment_number,
            order_id=order_id,
            status=ShipmentStatus.PREPARING.value,
            carrier=carrier,
            tracking_number=tracking_number,
            estimated_delivery=estimated_delivery,
            notes=notes,
        )
        self.session.add(model)
        self.session.flush()
        return self._shipment_dto(model)

    def read_shipment(self, shipment_id: UUID) -> Shipment:
        model = self.session.execute(
            select(ShipmentModel)
            .where(ShipmentModel.id == shipment_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if model is None:
            raise ShipmentNotFoundError(str(shipment_id))
        return self._shipment_dto(model)

    def read_live_shipment_for_order(self, order_id: UUID) -> Shipment | None:
        model = self.session.execute(
            select(ShipmentModel)
            .where(
                ShipmentModel.order_id == order_id,
                ShipmentModel.status != ShipmentStatus.CANCELLED.value,
            )
            .execution_options(populate_existing=True)
        ).scalars().first()
        return self._shipment_dto(model) if model is not None else None

    def write_shipment_transition(
        self,
        shipment_id: UUID,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any] | None = None,
    ) -> Shipment:
        self._compare_and_swap(
            ShipmentModel, SHIPMENT, shipment_id,
            expected_status, new_status, fields, ShipmentNotFoundError,
        )
        return self.read_shipment(shipment_id)

    # ------------------------------------------------------------------
    # Catalog, numbering, audit
    # ------------------------------------------------------------------

    def missing_items(self, item_ids: Sequence[UUID]) -> set[UUID]:
        wanted = set(item_ids)
        if not wanted:
            return set()
        found = set(
            self.session.execute(
                select(ItemModel.id).where(ItemModel.id.in_(wanted))
            ).scalars()
        )
        return wanted - found

    def generate_unique_number(self, prefix: str) -> str:
        return self._numbers.generate(prefix)

    def record_transition(self, event: TransitionEvent) -> None:
        self._auditor.record(event)

    # ------------------------------------------------------------------
    # Compare-and-swap
    # ------------------------------------------------------------------

    def _compare_and_swap(
        self,
        model_cls: type,
        entity_type: str,
        entity_id: UUID,
        expected_status: str,
        new_status: str,
        fields: dict[str, Any] | None,
        not_found: type[Exception],
    ) -> None:
        values = dict(fields or {})
        values["status"] = new_status
        values["updated_at"] = self._clock.now()

        result = self.session.execute(
            update(model_cls)
            .where(model_cls.id == entity_id, model_cls.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 1:
            logger.debug(
                "status_swapped",
                extra={
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "from_state": expected_status,
                    "to_state": new_status,
                },
            )
            return

        exists = self.session.execute(
            select(model_cls.id).where(model_cls.id == entity_id)
        ).scalar_one_or_none()
        if exists is None:
            raise not_found(str(entity_id))

        logger.warning(
            "status_swap_conflict",
            extra={
                "entity_type": entity_type,
                "entity_id": entity_id,
                "expected_state": expected_status,
                "to_state": new_status,
            },
        )
        raise ConcurrentModificationError(entity_type, str(entity_id), expected_status)
