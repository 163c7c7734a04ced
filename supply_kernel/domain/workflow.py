"""
Canonical workflow types (``supply_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the three state machines of the fulfillment chain
(supply request, order, shipment) and lookup helpers used by the workflow
engine and the authorization gate.  Each transition names the roles that
may fire it and whether a written reason is mandatory.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* ``terminal_states`` have no outgoing transitions.
* Delivery is a separate action per role: the supplier ``deliver``s,
  the destination branch ``confirm_delivery``s.
* Shipments move strictly forward: each non-cancel transition advances
  exactly one step along ``preparing -> shipped -> in_transit -> delivered``.
"""

from __future__ import annotations

from dataclasses import dataclass

from supply_kernel.domain.actors import Role

SUPPLY_REQUEST = "supply_request"
ORDER = "order"
SHIPMENT = "shipment"


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow.

    Contract: frozen.  ``actor_roles`` lists every role allowed to fire the
    transition; ownership is checked separately by the authorization gate.
    ``requires_reason=True`` means the caller must supply a non-blank reason
    which is appended to the entity's notes log.
    """
    from_state: str
    to_state: str
    action: str
    actor_roles: tuple[Role, ...]
    requires_reason: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a document lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    ``created_by`` is the role allowed to create the entity in
    ``initial_state``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    created_by: Role
    terminal_states: tuple[str, ...] = ()


# -----------------------------------------------------------------------------
# Supply request
# -----------------------------------------------------------------------------

SUPPLY_REQUEST_WORKFLOW = Workflow(
    name=SUPPLY_REQUEST,
    description="Branch supply request: admin decision, then supplier response",
    initial_state="pending",
    states=("pending", "approved", "rejected", "modified", "confirmed", "denied"),
    transitions=(
        Transition("pending", "approved", "approve", (Role.ADMIN,)),
        Transition("pending", "rejected", "reject", (Role.ADMIN,), requires_reason=True),
        Transition("pending", "modified", "modify", (Role.ADMIN,), requires_reason=True),
        Transition("approved", "confirmed", "confirm", (Role.SUPPLIER,)),
        Transition("approved", "modified", "modify", (Role.SUPPLIER,), requires_reason=True),
        Transition("approved", "denied", "deny", (Role.SUPPLIER,), requires_reason=True),
        Transition("modified", "pending", "resubmit", (Role.BRANCH,)),
    ),
    created_by=Role.BRANCH,
    terminal_states=("rejected", "denied", "confirmed"),
)


# -----------------------------------------------------------------------------
# Order
# -----------------------------------------------------------------------------

ORDER_WORKFLOW = Workflow(
    name=ORDER,
    description="Supplier order created by confirming an approved request",
    initial_state="pending",
    states=("pending", "confirmed", "shipped", "delivered", "cancelled"),
    transitions=(
        Transition("pending", "confirmed", "prepare_shipment", (Role.SUPPLIER,)),
        Transition("confirmed", "shipped", "ship", (Role.SUPPLIER,)),
        Transition("shipped", "delivered", "deliver", (Role.SUPPLIER,)),
        Transition("shipped", "delivered", "confirm_delivery", (Role.BRANCH,)),
        Transition("pending", "cancelled", "cancel", (Role.SUPPLIER,), requires_reason=True),
        Transition("confirmed", "cancelled", "cancel", (Role.SUPPLIER,)),
        Transition("shipped", "cancelled", "cancel", (Role.SUPPLIER,)),
    ),
    created_by=Role.SUPPLIER,
    terminal_states=("delivered", "cancelled"),
)


# -----------------------------------------------------------------------------
# Shipment
# -----------------------------------------------------------------------------

SHIPMENT_PROGRESSION: tuple[str, ...] = ("preparing", "shipped", "in_transit", "delivered")

SHIPMENT_WORKFLOW = Workflow(
    name=SHIPMENT,
    description="Carrier lifecycle of one order's shipment",
    initial_state="preparing",
    states=SHIPMENT_PROGRESSION + ("cancelled",),
    transitions=(
        Transition("preparing", "shipped", "ship", (Role.SUPPLIER,)),
        Transition("shipped", "in_transit", "dispatch", (Role.SUPPLIER,)),
        Transition("in_transit", "delivered", "deliver", (Role.SUPPLIER,)),
        Transition("in_transit", "delivered", "confirm_delivery", (Role.BRANCH,)),
        Transition("preparing", "cancelled", "cancel", (Role.SUPPLIER,)),
        Transition("shipped", "cancelled", "cancel", (Role.SUPPLIER,)),
        Transition("in_transit", "cancelled", "cancel", (Role.SUPPLIER,)),
    ),
    created_by=Role.SUPPLIER,
    terminal_states=("delivered", "cancelled"),
)


WORKFLOWS: dict[str, Workflow] = {
    wf.name: wf
    for wf in (SUPPLY_REQUEST_WORKFLOW, ORDER_WORKFLOW, SHIPMENT_WORKFLOW)
}


def get_workflow(entity_type: str) -> Workflow:
    """Return the workflow for an entity type.

    Raises:
        KeyError: unknown entity type.
    """
    return WORKFLOWS[entity_type]


def find_transition(
    workflow: Workflow,
    from_state: str,
    to_state: str,
    action: str | None = None,
) -> Transition | None:
    """Return the transition ``from_state -> to_state``, or None if illegal.

    The same pair of states can be reached by different actions (a supplier
    delivering vs. a branch confirming delivery); pass ``action`` to pick one.
    """
    for transition in workflow.transitions:
        if transition.from_state != from_state or transition.to_state != to_state:
            continue
        if action is None or transition.action == action:
            return transition
    return None


def transitions_for_action(workflow: Workflow, action: str) -> tuple[Transition, ...]:
    """All transitions of a workflow that carry the given action name."""
    return tuple(t for t in workflow.transitions if t.action == action)


def is_terminal(workflow: Workflow, state: str) -> bool:
    return state in workflow.terminal_states
