"""
Actor identities (``supply_kernel.domain.actors``).

Responsibility
--------------
Closed set of role-tagged identities that every workflow command receives
explicitly.  The kernel never reads a "current user" from ambient state.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.

Invariants enforced
-------------------
* An actor's role is fixed by its type; it cannot change after creation.
* Branch actors always carry a ``branch_id``; supplier actors always carry
  a ``supplier_id``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union
from uuid import UUID


class Role(str, Enum):
    """Application roles."""

    ADMIN = "admin"
    BRANCH = "branch"
    SUPPLIER = "supplier"


@dataclass(frozen=True)
class AdminActor:
    """Central administrator with global read access."""

    user_id: UUID

    @property
    def role(self) -> Role:
        return Role.ADMIN


@dataclass(frozen=True)
class BranchActor:
    """User acting on behalf of one branch."""

    user_id: UUID
    branch_id: UUID

    @property
    def role(self) -> Role:
        return Role.BRANCH


@dataclass(frozen=True)
class SupplierActor:
    """User acting on behalf of one supplier company."""

    user_id: UUID
    supplier_id: UUID

    @property
    def role(self) -> Role:
        return Role.SUPPLIER


Actor = Union[AdminActor, BranchActor, SupplierActor]


def actor_from_profile(
    user_id: UUID,
    role: str,
    branch_id: UUID | None = None,
    supplier_id: UUID | None = None,
) -> Actor:
    """Build an actor from a stored profile row.

    Raises:
        ValueError: unknown role, or a branch/supplier role without its
            association.
    """
    parsed = Role(role)
    if parsed is Role.ADMIN:
        return AdminActor(user_id=user_id)
    if parsed is Role.BRANCH:
        if branch_id is None:
            raise ValueError(f"Branch user {user_id} has no branch association")
        return BranchActor(user_id=user_id, branch_id=branch_id)
    if supplier_id is None:
        raise ValueError(f"Supplier user {user_id} has no supplier association")
    return SupplierActor(user_id=user_id, supplier_id=supplier_id)
