"""
Pure domain layer.

This module contains pure data transfer objects and domain logic
with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O (SystemClock aside)

All domain objects are immutable and deterministic.
"""

from supply_kernel.domain.actors import (
    Actor,
    AdminActor,
    BranchActor,
    Role,
    SupplierActor,
    actor_from_profile,
)
from supply_kernel.domain.authorization import (
    AuthorizationDecision,
    OwnershipContext,
    can_read,
    can_transition,
)
from supply_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from supply_kernel.domain.dtos import (
    ConfirmationResult,
    DraftItem,
    Order,
    OrderStatus,
    Priority,
    RequestDecision,
    RequestDraft,
    RequestItem,
    RequestStatus,
    Shipment,
    ShipmentStatus,
    SupplierDecision,
    SupplyRequest,
    TransitionEvent,
)
from supply_kernel.domain.workflow import (
    ORDER_WORKFLOW,
    SHIPMENT_WORKFLOW,
    SUPPLY_REQUEST_WORKFLOW,
    Transition,
    Workflow,
)

__all__ = [
    "Actor",
    "AdminActor",
    "AuthorizationDecision",
    "BranchActor",
    "Clock",
    "ConfirmationResult",
    "DeterministicClock",
    "DraftItem",
    "ORDER_WORKFLOW",
    "Order",
    "OrderStatus",
    "OwnershipContext",
    "Priority",
    "RequestDecision",
    "RequestDraft",
    "RequestItem",
    "RequestStatus",
    "Role",
    "SHIPMENT_WORKFLOW",
    "SUPPLY_REQUEST_WORKFLOW",
    "Shipment",
    "ShipmentStatus",
    "SupplierActor",
    "SupplierDecision",
    "SupplyRequest",
    "SystemClock",
    "Transition",
    "TransitionEvent",
    "Workflow",
    "actor_from_profile",
    "can_read",
    "can_transition",
]
