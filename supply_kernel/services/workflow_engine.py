"""
WorkflowEngine -- the supply request, order and shipment lifecycle.

Responsibility:
    Validates and applies every status transition of the fulfillment
    chain: a branch submits a supply request, an admin decides it, a
    supplier responds (confirming creates the order), the supplier ships,
    and the destination branch confirms delivery.  Computes the side
    effects of each transition: order creation, order status following
    its shipment, and inventory receipt and budget charge on delivery.

Architecture position:
    Kernel > Services -- imperative shell.  Orchestrates the pure domain
    (workflow definitions, authorization gate, notes, numbering) over a
    ``SupplyRepository``.  UI layers call it; it never reads ambient
    session state -- the acting user is always an explicit argument.

Invariants enforced:
    - Every command checks, in order: the actor's role for the action,
      then (after loading) ownership via the authorization gate, then
      state-machine legality.  Role and ownership failures are
      AuthorizationError, illegal transitions InvalidTransitionError,
      malformed input ValidationError.
    - Each command is one unit of work: status CAS writes, order/shipment
      creation, audit rows and delivery effects commit together or not
      at all.  A confirm that fails to create its order leaves the
      request ``approved``.
    - Reasons for reject/modify/deny/cancel are mandatory and appended
      to the notes log, never replacing earlier entries.
    - Transition events reach subscribers only after commit.
    - Retrying a confirm returns the order created by the first call;
      a request never gets two orders.

Failure modes:
    - AuthorizationError, InvalidTransitionError, ValidationError as above.
    - ConcurrentModificationError when another writer changed the entity
      between read and write.
    - CollaboratorUnavailableError when the database is unreachable or a
      call times out.  Nothing is written.
    - NotFoundError subclasses for unknown ids.

Audit relevance:
    Every transition, including creation, is persisted to
    ``transition_audit`` and logged.  Commands log ``<command>_started``
    and ``<command>_completed`` with the acting user bound into the log
    context.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from supply_config.schema import SupplyConfig
from supply_kernel.domain.actors import Actor
from supply_kernel.domain.authorization import (
    CREATE,
    OwnershipContext,
    require_ownership,
    require_role,
    require_transition,
)
from supply_kernel.domain.clock import Clock, SystemClock
from supply_kernel.domain.dtos import (
    REQUEST_DECISION_TARGET,
    SUPPLIER_DECISION_TARGET,
    ConfirmationResult,
    DraftItem,
    Order,
    OrderStatus,
    Priority,
    RequestDecision,
    RequestDraft,
    RequestStatus,
    Shipment,
    ShipmentStatus,
    SupplierDecision,
    SupplyRequest,
    TransitionEvent,
)
from supply_kernel.domain.notes import append_note, require_reason
from supply_kernel.domain.workflow import (
    ORDER,
    ORDER_WORKFLOW,
    SHIPMENT,
    SHIPMENT_WORKFLOW,
    SUPPLY_REQUEST,
    SUPPLY_REQUEST_WORKFLOW,
    Transition,
    Workflow,
    find_transition,
    transitions_for_action,
)
from supply_kernel.exceptions import InvalidTransitionError, ValidationError
from supply_kernel.logging_config import LogContext, actor_fields, get_logger
from supply_kernel.services.budget_service import BudgetService
from supply_kernel.services.event_publisher import TransitionPublisher
from supply_kernel.services.inventory_service import InventoryService
from supply_kernel.services.repository import SqlAlchemySupplyRepository, SupplyRepository

logger = get_logger("services.workflow")

E = TypeVar("E", bound=Enum)

# Shipment target status -> the supplier action that reaches it.
_SHIPMENT_ACTIONS: dict[ShipmentStatus, str] = {
    ShipmentStatus.SHIPPED: "ship",
    ShipmentStatus.IN_TRANSIT: "dispatch",
    ShipmentStatus.DELIVERED: "deliver",
    ShipmentStatus.CANCELLED: "cancel",
}

# Shipment status -> the order status it drags along.
_ORDER_FOLLOWS: dict[ShipmentStatus, OrderStatus] = {
    ShipmentStatus.SHIPPED: OrderStatus.SHIPPED,
    ShipmentStatus.DELIVERED: OrderStatus.DELIVERED,
    ShipmentStatus.CANCELLED: OrderStatus.CANCELLED,
}


def _parse(enum_cls: type[E], value: Any, field: str) -> E:
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValidationError(
            f"Invalid {field} {value!r}; expected one of: {allowed}", field=field,
        ) from exc


def _optional_text(text: str | None) -> str | None:
    if text is None or not text.strip():
        return None
    return text.strip()


def _validate_items(items: Sequence[DraftItem] | None) -> tuple[DraftItem, ...]:
    """At least one line; every line names a catalog item and a positive int quantity."""
    if not items:
        raise ValidationError("A supply request needs at least one item", field="items")
    for index, item in enumerate(items):
        if item.item_id is None:
            raise ValidationError(
                f"Item line {index + 1} has no catalog item", field=f"items[{index}].item_id",
            )
        quantity = item.quantity
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(
                f"Item line {index + 1} quantity must be a positive integer, got {quantity!r}",
                field=f"items[{index}].quantity",
            )
    return tuple(items)


def _validate_prices(unit_prices: Mapping[UUID, Any] | None) -> dict[UUID, Decimal]:
    prices: dict[UUID, Decimal] = {}
    for item_id, raw in (unit_prices or {}).items():
        if isinstance(raw, float):
            raise ValidationError("Unit prices must not be floats", field="unit_prices")
        try:
            price = Decimal(raw)
        except (InvalidOperation, TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid unit price {raw!r}", field="unit_prices") from exc
        if price < 0:
            raise ValidationError(
                f"Unit price for item {item_id} cannot be negative", field="unit_prices",
            )
        prices[item_id] = price
    return prices


class WorkflowEngine:
    """
    Command side of the fulfillment workflow.

    Contract:
        Every public command takes the acting ``Actor`` first, runs as one
        repository unit of work and returns frozen DTOs.

    Non-goals:
        - Does NOT retry.  ConcurrentModificationError and
          CollaboratorUnavailableError go straight back to the caller,
          who may reload and try again.
        - Does NOT serve role-filtered reads; see ``supply_kernel.selectors``.
    """

    def __init__(
        self,
        repository: SupplyRepository,
        clock: Clock | None = None,
        config: SupplyConfig | None = None,
        publisher: TransitionPublisher | None = None,
        inventory: InventoryService | None = None,
        budget: BudgetService | None = None,
    ):
        self._repository = repository
        self._clock = clock or SystemClock()
        self._config = config or SupplyConfig()
        self._publisher = publisher or TransitionPublisher()
        self._inventory = inventory
        self._budget = budget

    @classmethod
    def from_session(
        cls,
        session: Session,
        clock: Clock | None = None,
        config: SupplyConfig | None = None,
        publisher: TransitionPublisher | None = None,
    ) -> WorkflowEngine:
        """Wire the engine and its collaborators onto one session."""
        clock = clock or SystemClock()
        config = config or SupplyConfig()
        return cls(
            SqlAlchemySupplyRepository(session, clock, config.numbering),
            clock=clock,
            config=config,
            publisher=publisher,
            inventory=InventoryService(session, clock),
            budget=BudgetService(session, clock, config.budget),
        )

    @property
    def publisher(self) -> TransitionPublisher:
        return self._publisher

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _command(
        self,
        operation: str,
        actor: Actor,
        entity_id: UUID | None = None,
    ) -> Iterator[list[TransitionEvent]]:
        """One unit of work; yields the list events are recorded into."""
        events: list[TransitionEvent] = []
        with LogContext.bind(
            **actor_fields(actor),
            operation=operation,
            entity_id=str(entity_id) if entity_id else None,
        ):
            logger.info(f"{operation}_started")
            with self._repository.unit_of_work(operation):
                yield events
            self._publisher.publish(events)
            logger.info(
                f"{operation}_completed",
                extra={"transition_count": len(events)},
            )

    def _record(
        self,
        events: list[TransitionEvent],
        actor: Actor,
        entity_type: str,
        entity_id: UUID,
        entity_number: str | None,
        from_state: str | None,
        to_state: str,
        **payload: Any,
    ) -> None:
        event = TransitionEvent(
            entity_type=entity_type,
            entity_id=entity_id,
            from_state=from_state,
            to_state=to_state,
            actor=actor,
            occurred_at=self._clock.now(),
            entity_number=entity_number,
            payload={k: v for k, v in payload.items() if v is not None},
        )
        self._repository.record_transition(event)
        events.append(event)

    def _gate(
        self,
        actor: Actor,
        workflow: Workflow,
        resource: OwnershipContext,
        current: str,
        target: str,
        action: str,
        legal_from: tuple[str, ...] | None = None,
    ) -> Transition:
        """
        Authorize, then check legality of ``current -> target`` via ``action``.

        Authorization is judged against the transition the action would
        take from its legal source state, so an actor who may not touch
        the entity learns nothing about its state.
        """
        candidates = [
            t for t in transitions_for_action(workflow, action)
            if t.to_state == target and (legal_from is None or t.from_state in legal_from)
        ]
        if not candidates:
            raise InvalidTransitionError(workflow.name, str(resource.entity_id), current, target)

        transition = next((t for t in candidates if t.from_state == current), None)
        nominal = transition or candidates[0]
        require_transition(actor, resource, nominal.from_state, target, action)

        if transition is None:
            raise InvalidTransitionError(workflow.name, str(resource.entity_id), current, target)
        return transition

    def _separator(self) -> str:
        return self._config.workflow.note_separator

    def _require_known_items(self, items: Sequence[DraftItem]) -> None:
        missing = self._repository.missing_items([i.item_id for i in items])
        if missing:
            raise ValidationError(
                f"Unknown catalog items: {', '.join(sorted(str(m) for m in missing))}",
                field="items",
            )

    # ------------------------------------------------------------------
    # Supply requests
    # ------------------------------------------------------------------

    def submit_request(self, actor: Actor, draft: RequestDraft) -> SupplyRequest:
        """
        Create a supply request in ``pending`` for the actor's branch.

        Raises:
            AuthorizationError: actor is not a branch, or targets another branch.
            ValidationError: blank title, bad priority, no items, an item
                without a (known) catalog reference, a non-positive
                quantity, or a required date before today.
        """
        require_role(actor, SUPPLY_REQUEST, CREATE)
        branch_id = draft.branch_id or actor.branch_id
        require_transition(
            actor,
            OwnershipContext(SUPPLY_REQUEST, branch_id=branch_id),
            None,
            SUPPLY_REQUEST_WORKFLOW.initial_state,
        )

        title = (draft.title or "").strip()
        if not title:
            raise ValidationError("A supply request needs a title", field="title")
        priority = _parse(Priority, draft.priority, "priority")
        items = _validate_items(draft.items)
        requested_date = self._clock.now().date()
        if draft.required_date is not None and draft.required_date < requested_date:
            raise ValidationError(
                f"Required date {draft.required_date} is before the request date "
                f"{requested_date}",
                field="required_date",
            )

        with self._command("submit_request", actor) as events:
            self._require_known_items(items)
            number = self._repository.generate_unique_number(
                self._config.numbering.request_prefix
            )
            request = self._repository.insert_request(
                request_number=number,
                title=title,
                branch_id=branch_id,
                requested_by=actor.user_id,
                requested_date=requested_date,
                items=items,
                description=_optional_text(draft.description),
                priority=priority.value,
                required_date=draft.required_date,
                notes=_optional_text(draft.notes),
            )
            self._record(
                events, actor, SUPPLY_REQUEST, request.id, number,
                None, RequestStatus.PENDING.value,
                item_count=len(items), priority=priority.value,
            )
        return request

    def decide_request(
        self,
        actor: Actor,
        request_id: UUID,
        decision: RequestDecision | str,
        reason: str | None = None,
    ) -> SupplyRequest:
        """
        Admin decision on a pending request: approve, reject or modify.

        ``approve`` stamps the approver and approval time; a reason is
        optional.  ``reject`` and ``modify`` require one.  Every given
        reason is appended to the notes as ``<DECISION>: <reason>``.
        """
        decision = _parse(RequestDecision, decision, "decision")
        pending = RequestStatus.PENDING.value
        require_role(actor, SUPPLY_REQUEST, decision.value, from_state=pending)

        target = REQUEST_DECISION_TARGET[decision].value
        transition = find_transition(SUPPLY_REQUEST_WORKFLOW, pending, target, decision.value)
        if transition is not None and transition.requires_reason:
            reason = require_reason(reason, decision.value)
        else:
            reason = _optional_text(reason)

        with self._command("decide_request", actor, request_id) as events:
            request = self._repository.read_request(request_id)
            self._gate(
                actor, SUPPLY_REQUEST_WORKFLOW, request.ownership(),
                request.status.value, target, decision.value, legal_from=(pending,),
            )

            fields: dict[str, Any] = {}
            if reason:
                fields["notes"] = append_note(
                    request.notes, decision.value, reason, self._separator()
                )
            if decision is RequestDecision.APPROVE:
                fields["approved_by"] = actor.user_id
                fields["approved_date"] = self._clock.now()

            updated = self._repository.write_request_transition(
                request.id, request.status.value, target, fields,
            )
            self._record(
                events, actor, SUPPLY_REQUEST, updated.id, updated.request_number,
                request.status.value, target, decision=decision.value, reason=reason,
            )
        return updated

    def supplier_respond(
        self,
        actor: Actor,
        request_id: UUID,
        decision: SupplierDecision | str,
        notes: str | None = None,
        unit_prices: Mapping[UUID, Any] | None = None,
        expected_delivery: date | None = None,
    ) -> ConfirmationResult:
        """
        Supplier response to an approved request: confirm, modify or deny.

        ``confirm`` moves the request to ``confirmed`` and creates its one
        order (``pending``) with lines priced from ``unit_prices`` (item id
        to price; unlisted items are priced 0), in one unit of work.
        Repeating a confirm after success returns the existing order with
        ``replayed=True`` if the same supplier asks, and fails with
        InvalidTransitionError for anyone else.  ``modify`` and ``deny``
        require ``notes`` as the reason.
        """
        decision = _parse(SupplierDecision, decision, "decision")
        approved = RequestStatus.APPROVED.value
        require_role(actor, SUPPLY_REQUEST, decision.value, from_state=approved)

        target = SUPPLIER_DECISION_TARGET[decision].value
        transition = find_transition(SUPPLY_REQUEST_WORKFLOW, approved, target, decision.value)
        if transition is not None and transition.requires_reason:
            notes = require_reason(notes, decision.value)
        else:
            notes = _optional_text(notes)
        prices = _validate_prices(unit_prices)

        with self._command("supplier_respond", actor, request_id) as events:
            request = self._repository.read_request(request_id)

            if (
                decision is SupplierDecision.CONFIRM
                and request.status is RequestStatus.CONFIRMED
            ):
                existing = self._repository.read_order_for_request(request.id)
                if existing is not None and existing.supplier_id == actor.supplier_id:
                    logger.info(
                        "confirmation_replayed",
                        extra={
                            "request_number": request.request_number,
                            "order_number": existing.order_number,
                        },
                    )
                    return ConfirmationResult(request=request, order=existing, replayed=True)
                raise InvalidTransitionError(
                    SUPPLY_REQUEST, str(request.id), request.status.value, target,
                )

            self._gate(
                actor, SUPPLY_REQUEST_WORKFLOW, request.ownership(),
                request.status.value, target, decision.value, legal_from=(approved,),
            )

            requested = {i.item_id for i in request.items}
            unknown = set(prices) - requested
            if unknown:
                raise ValidationError(
                    f"Prices given for items not on the request: "
                    f"{', '.join(sorted(str(u) for u in unknown))}",
                    field="unit_prices",
                )

            fields: dict[str, Any] = {}
            if notes:
                fields["notes"] = append_note(
                    request.notes, decision.value, notes, self._separator()
                )
            updated = self._repository.write_request_transition(
                request.id, request.status.value, target, fields,
            )
            self._record(
                events, actor, SUPPLY_REQUEST, updated.id, updated.request_number,
                request.status.value, target, decision=decision.value, reason=notes,
            )

            order: Order | None = None
            if decision is SupplierDecision.CONFIRM:
                order_number = self._repository.generate_unique_number(
                    self._config.numbering.order_prefix
                )
                order = self._repository.create_order(
                    request_id=request.id,
                    supplier_id=actor.supplier_id,
                    order_number=order_number,
                    lines=[
                        (i.item_id, i.quantity, prices.get(i.item_id, Decimal("0")))
                        for i in request.items
                    ],
                    expected_delivery=expected_delivery,
                    notes=notes,
                )
                self._record(
                    events, actor, ORDER, order.id, order.order_number,
                    None, order.status.value,
                    request_number=request.request_number, total=order.total,
                )
                updated = self._repository.read_request(request.id)

        return ConfirmationResult(request=updated, order=order)

    def resubmit_request(
        self,
        actor: Actor,
        request_id: UUID,
        items: Sequence[DraftItem] | None = None,
        note: str | None = None,
    ) -> SupplyRequest:
        """
        Send a ``modified`` request back to ``pending`` after branch revision.

        ``items``, when given, replaces the request's item lines (validated
        like a submission).  Approval stamps are cleared so the next
        approval is recorded afresh.  Fails with InvalidTransitionError
        when resubmission is disabled by configuration.
        """
        require_role(actor, SUPPLY_REQUEST, "resubmit")
        revised = _validate_items(items) if items is not None else None
        note = _optional_text(note)
        pending = RequestStatus.PENDING.value

        with self._command("resubmit_request", actor, request_id) as events:
            request = self._repository.read_request(request_id)
            self._gate(
                actor, SUPPLY_REQUEST_WORKFLOW, request.ownership(),
                request.status.value, pending, "resubmit",
            )
            if not self._config.workflow.allow_resubmission:
                raise InvalidTransitionError(
                    SUPPLY_REQUEST, str(request.id), request.status.value, pending,
                )

            fields: dict[str, Any] = {"approved_by": None, "approved_date": None}
            if note:
                fields["notes"] = append_note(request.notes, "resubmit", note, self._separator())
            updated = self._repository.write_request_transition(
                request.id, request.status.value, pending, fields,
            )
            if revised is not None:
                self._require_known_items(revised)
                self._repository.replace_request_items(request.id, revised)
                updated = self._repository.read_request(request.id)

            self._record(
                events, actor, SUPPLY_REQUEST, updated.id, updated.request_number,
                request.status.value, pending,
                items_revised=revised is not None, reason=note,
            )
        return updated

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def cancel_order(self, actor: Actor, order_id: UUID, reason: str) -> Order:
        """Owning supplier cancels an order that has no shipment yet."""
        require_role(actor, ORDER, "cancel")
        reason = require_reason(reason, "cancel")
        pending = OrderStatus.PENDING.value
        cancelled = OrderStatus.CANCELLED.value

        with self._command("cancel_order", actor, order_id) as events:
            order = self._repository.read_order(order_id)
            self._gate(
                actor, ORDER_WORKFLOW, order.ownership(),
                order.status.value, cancelled, "cancel", legal_from=(pending,),
            )
            updated = self._repository.write_order_transition(
                order.id,
                order.status.value,
                cancelled,
                {"notes": append_note(order.notes, "cancel", reason, self._separator())},
            )
            self._record(
                events, actor, ORDER, updated.id, updated.order_number,
                order.status.value, cancelled, reason=reason,
            )
        return updated

    def create_shipment(
        self,
        actor: Actor,
        order_id: UUID,
        carrier: str | None = None,
        tracking_number: str | None = None,
        estimated_delivery: date | None = None,
        notes: str | None = None,
    ) -> Shipment:
        """
        Start fulfilling a pending order: new shipment in ``preparing``,
        order ``pending -> confirmed``.
        """
        require_role(actor, ORDER, "prepare_shipment")
        confirmed = OrderStatus.CONFIRMED.value

        with self._command("create_shipment", actor, order_id) as events:
            order = self._repository.read_order(order_id)
            self._gate(
                actor, ORDER_WORKFLOW, order.ownership(),
                order.status.value, confirmed, "prepare_shipment",
            )
            live = self._repository.read_live_shipment_for_order(order.id)
            if live is not None:
                raise InvalidTransitionError(
                    SHIPMENT, str(live.id), live.status.value, SHIPMENT_WORKFLOW.initial_state,
                )

            number = self._repository.generate_unique_number(
                self._config.numbering.shipment_prefix
            )
            shipment = self._repository.create_shipment(
                order.id,
                number,
                carrier=_optional_text(carrier),
                tracking_number=_optional_text(tracking_number),
                estimated_delivery=estimated_delivery,
                notes=_optional_text(notes),
            )
            self._record(
                events, actor, SHIPMENT, shipment.id, number,
                None, shipment.status.value, order_number=order.order_number,
            )

            updated_order = self._repository.write_order_transition(
                order.id, order.status.value, confirmed,
            )
            self._record(
                events, actor, ORDER, updated_order.id, updated_order.order_number,
                order.status.value, confirmed, shipment_number=number,
            )
        return shipment

    # ------------------------------------------------------------------
    # Shipments
    # ------------------------------------------------------------------

    def advance_shipment(
        self,
        actor: Actor,
        shipment_id: UUID,
        next_status: ShipmentStatus | str,
        tracking_number: str | None = None,
        carrier: str | None = None,
        notes: str | None = None,
    ) -> Shipment:
        """
        Owning supplier moves a shipment one step forward, or cancels it.

        ``preparing -> shipped -> in_transit -> delivered``; skips and
        backward moves are InvalidTransitionError.  ``shipped`` stamps
        ``shipped_date`` unless already set; ``delivered`` stamps
        ``actual_delivery``.  The order follows: shipped, delivered (with
        delivery effects) or cancelled.  Tracking number and carrier are
        overwritten when given; notes are appended.
        """
        target = _parse(ShipmentStatus, next_status, "next_status")
        action = _SHIPMENT_ACTIONS.get(target)
        # Nothing leads back to preparing; only the shipment's own side
        # gets as far as the state error.
        require_role(actor, SHIPMENT, action or CREATE)

        with self._command("advance_shipment", actor, shipment_id) as events:
            shipment = self._repository.read_shipment(shipment_id)
            if action is None:
                require_ownership(actor, shipment.ownership(), "advance")
                raise InvalidTransitionError(
                    SHIPMENT, str(shipment.id), shipment.status.value, target.value,
                )
            self._gate(
                actor, SHIPMENT_WORKFLOW, shipment.ownership(),
                shipment.status.value, target.value, action,
            )

            now = self._clock.now()
            fields: dict[str, Any] = {}
            if _optional_text(tracking_number):
                fields["tracking_number"] = tracking_number.strip()
            if _optional_text(carrier):
                fields["carrier"] = carrier.strip()
            if _optional_text(notes):
                fields["notes"] = append_note(
                    shipment.notes, action, notes.strip(), self._separator()
                )
            if target is ShipmentStatus.SHIPPED and shipment.shipped_date is None:
                fields["shipped_date"] = now
            if target is ShipmentStatus.DELIVERED:
                fields["actual_delivery"] = now

            updated = self._repository.write_shipment_transition(
                shipment.id, shipment.status.value, target.value, fields,
            )
            self._record(
                events, actor, SHIPMENT, updated.id, updated.shipment_number,
                shipment.status.value, target.value,
                tracking_number=updated.tracking_number, carrier=updated.carrier,
            )
            self._order_follows(events, actor, updated, now)
        return updated

    def confirm_delivery(self, actor: Actor, shipment_id: UUID) -> Shipment:
        """
        Destination branch confirms an in-transit shipment arrived.

        Authorization is checked before state: a branch that is not the
        destination gets AuthorizationError whatever the shipment's status.
        """
        require_role(actor, SHIPMENT, "confirm_delivery")
        delivered = ShipmentStatus.DELIVERED.value

        with self._command("confirm_delivery", actor, shipment_id) as events:
            shipment = self._repository.read_shipment(shipment_id)
            self._gate(
                actor, SHIPMENT_WORKFLOW, shipment.ownership(),
                shipment.status.value, delivered, "confirm_delivery",
            )

            now = self._clock.now()
            updated = self._repository.write_shipment_transition(
                shipment.id, shipment.status.value, delivered, {"actual_delivery": now},
            )
            self._record(
                events, actor, SHIPMENT, updated.id, updated.shipment_number,
                shipment.status.value, delivered, confirmed_by_branch=True,
            )
            self._order_follows(events, actor, updated, now)
        return updated

    def _order_follows(
        self,
        events: list[TransitionEvent],
        actor: Actor,
        shipment: Shipment,
        now: datetime,
    ) -> None:
        order_target = _ORDER_FOLLOWS.get(shipment.status)
        if order_target is None:
            return

        order = self._repository.read_order(shipment.order_id)
        if find_transition(ORDER_WORKFLOW, order.status.value, order_target.value) is None:
            raise InvalidTransitionError(
                ORDER, str(order.id), order.status.value, order_target.value,
            )

        fields: dict[str, Any] = {}
        if order_target is OrderStatus.DELIVERED:
            fields["actual_delivery"] = now
        updated = self._repository.write_order_transition(
            order.id, order.status.value, order_target.value, fields,
        )
        self._record(
            events, actor, ORDER, updated.id, updated.order_number,
            order.status.value, order_target.value,
            shipment_number=shipment.shipment_number,
        )
        if order_target is OrderStatus.DELIVERED:
            self._apply_delivery_effects(actor, updated, now)

    def _apply_delivery_effects(self, actor: Actor, order: Order, now: datetime) -> None:
        if self._inventory is not None and self._config.inventory.receive_on_delivery:
            self._inventory.receive_items(
                order.branch_id, [(i.item_id, i.quantity) for i in order.items],
            )
        if self._budget is not None and self._config.budget.charge_on_delivery:
            self._budget.charge_delivery(actor, order, now)
