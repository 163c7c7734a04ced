"""
Authorization Gate (``supply_kernel.domain.authorization``).

Responsibility
--------------
Pure mapping ``(actor, resource ownership, from_state, to_state) ->
allow | deny(reason)``.  The workflow engine consults the gate before
every mutation, and selectors consult ``can_read`` before returning a
projection.  Role checks are driven by the ``actor_roles`` declared on
each workflow transition, never by scattered conditionals.

Architecture position
---------------------
**Kernel domain layer** -- pure functions.  ZERO I/O.  May import only
from ``domain/`` and ``exceptions``.

Invariants enforced
-------------------
* Only branch actors create supply requests, and only for their branch.
* Only admin actors decide pending requests.
* Any supplier may respond to an approved request; orders and shipments
  are reachable only by the supplier they belong to.
* Only the destination branch confirms delivery.
* Admin reads everything; branch and supplier actors read only what they
  are a party to (suppliers additionally see approved requests).
"""

from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from supply_kernel.domain.actors import Actor, AdminActor, BranchActor, Role, SupplierActor
from supply_kernel.domain.workflow import (
    SUPPLY_REQUEST,
    find_transition,
    get_workflow,
    transitions_for_action,
)
from supply_kernel.exceptions import AuthorizationError

CREATE = "create"


@dataclass(frozen=True)
class OwnershipContext:
    """Who an entity belongs to, as far as authorization is concerned.

    ``supplier_id`` is None for requests no supplier has taken yet.
    """

    entity_type: str
    entity_id: UUID | None = None
    branch_id: UUID | None = None
    supplier_id: UUID | None = None


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> AuthorizationDecision:
        return cls(True)

    @classmethod
    def deny(cls, reason: str) -> AuthorizationDecision:
        return cls(False, reason)


_ALLOW = AuthorizationDecision.allow()


def _ownership(actor: Actor, resource: OwnershipContext) -> AuthorizationDecision:
    if isinstance(actor, AdminActor):
        return _ALLOW
    if isinstance(actor, BranchActor):
        if resource.branch_id is not None and resource.branch_id == actor.branch_id:
            return _ALLOW
        return AuthorizationDecision.deny(
            f"{resource.entity_type} does not belong to branch {actor.branch_id}"
        )
    if isinstance(actor, SupplierActor):
        if resource.supplier_id is None and resource.entity_type == SUPPLY_REQUEST:
            return _ALLOW
        if resource.supplier_id == actor.supplier_id:
            return _ALLOW
        return AuthorizationDecision.deny(
            f"{resource.entity_type} is not assigned to supplier {actor.supplier_id}"
        )
    return AuthorizationDecision.deny(f"unknown actor type {type(actor).__name__}")


def _roles_for(
    entity_type: str,
    from_state: str | None,
    to_state: str,
    action: str | None,
) -> tuple[Role, ...]:
    """Roles admitted by the matching transitions.

    ``from_state=None`` matches any source state.
    """
    workflow = get_workflow(entity_type)
    roles: list[Role] = []
    for transition in workflow.transitions:
        if transition.to_state != to_state:
            continue
        if from_state is not None and transition.from_state != from_state:
            continue
        if action is not None and transition.action != action:
            continue
        roles.extend(r for r in transition.actor_roles if r not in roles)
    return tuple(roles)


def can_transition(
    actor: Actor,
    resource: OwnershipContext,
    from_state: str | None,
    to_state: str,
    action: str | None = None,
) -> AuthorizationDecision:
    """Decide whether ``actor`` may move ``resource`` from one state to another.

    ``from_state=None`` asks whether the actor may create the entity.
    ``action`` narrows the check when several actions share a pair of
    states.  When the transition itself is illegal the decision is still
    made on the roles that could ever reach ``to_state``; the state-machine
    error is the engine's concern, not the gate's.
    """
    workflow = get_workflow(resource.entity_type)
    if from_state is None:
        roles: tuple[Role, ...] = (workflow.created_by,)
        label = CREATE
    else:
        transition = find_transition(workflow, from_state, to_state, action)
        if transition is not None:
            roles = _roles_for(resource.entity_type, from_state, to_state, action)
            label = action or transition.action
        else:
            roles = _roles_for(resource.entity_type, None, to_state, action)
            label = action or f"move to {to_state}"

    if actor.role not in roles:
        return AuthorizationDecision.deny(
            f"role '{actor.role.value}' cannot {label} a {resource.entity_type}"
        )
    return _ownership(actor, resource)


def require_transition(
    actor: Actor,
    resource: OwnershipContext,
    from_state: str | None,
    to_state: str,
    action: str | None = None,
) -> None:
    """Raise AuthorizationError unless ``can_transition`` allows it."""
    decision = can_transition(actor, resource, from_state, to_state, action)
    if not decision.allowed:
        raise AuthorizationError(
            actor.role.value,
            CREATE if from_state is None else f"move {resource.entity_type} to {to_state}",
            decision.reason,
            entity_id=str(resource.entity_id) if resource.entity_id else None,
        )


def require_role(
    actor: Actor,
    entity_type: str,
    action: str,
    from_state: str | None = None,
) -> None:
    """State-independent role check for an action.

    Raises AuthorizationError when no transition with this action name
    (or entity creation, for ``action="create"``) admits the actor's role.
    ``from_state`` restricts the check to transitions leaving that state,
    for action names shared by several roles (``modify``).
    """
    workflow = get_workflow(entity_type)
    if action == CREATE:
        roles: tuple[Role, ...] = (workflow.created_by,)
    else:
        roles = tuple({
            r
            for t in transitions_for_action(workflow, action)
            if from_state is None or t.from_state == from_state
            for r in t.actor_roles
        })
    if actor.role not in roles:
        raise AuthorizationError(
            actor.role.value,
            f"{action} {entity_type}",
            f"only {', '.join(sorted(r.value for r in roles)) or 'nobody'} may {action}",
        )


def require_ownership(actor: Actor, resource: OwnershipContext, action: str) -> None:
    """Raise AuthorizationError unless the actor is a party to the resource."""
    decision = _ownership(actor, resource)
    if not decision.allowed:
        raise AuthorizationError(
            actor.role.value,
            f"{action} {resource.entity_type}",
            decision.reason,
            entity_id=str(resource.entity_id) if resource.entity_id else None,
        )


def can_read(
    actor: Actor,
    resource: OwnershipContext,
    status: str | None = None,
) -> AuthorizationDecision:
    """Read access: admin everything, others only what they are party to."""
    if isinstance(actor, SupplierActor) and resource.entity_type == SUPPLY_REQUEST:
        if status == "approved" or (
            resource.supplier_id is not None and resource.supplier_id == actor.supplier_id
        ):
            return _ALLOW
        return AuthorizationDecision.deny("suppliers only see approved or their own requests")
    if isinstance(actor, SupplierActor) and resource.supplier_id is None:
        return AuthorizationDecision.deny(f"{resource.entity_type} has no supplier")
    return _ownership(actor, resource)


def require_admin(actor: Actor, action: str) -> None:
    if not isinstance(actor, AdminActor):
        raise AuthorizationError(actor.role.value, action, "admin only")


def require_branch_access(actor: Actor, branch_id: UUID, action: str) -> None:
    """Admin, or a branch actor acting on its own branch."""
    if isinstance(actor, AdminActor):
        return
    if isinstance(actor, BranchActor) and actor.branch_id == branch_id:
        return
    raise AuthorizationError(
        actor.role.value, action, f"no access to branch {branch_id}",
    )
